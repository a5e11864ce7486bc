"""
Config Cache — cache read-through de TagConfig por entity_type.

Configs mudam raramente e são lidas a cada alocação. O backend é injetado
(qualquer objeto com get/set/delete no estilo do cache do Django); por
padrão usa `caches[TAGMAN["CACHE_ALIAS"]]`.

Falha do backend nunca falha a alocação: o erro é logado e a leitura vai
direto ao banco (fail-open).
"""

from __future__ import annotations

import hashlib
import logging
import threading
import weakref
from typing import Any, Protocol

from tagman.conf import get_tagman_setting


logger = logging.getLogger(__name__)

KEY_PREFIX = "tag_config:"

# Todo ConfigCache vivo; invalidate_everywhere() alcança backends injetados.
_live_caches: "weakref.WeakSet[ConfigCache]" = weakref.WeakSet()
_live_lock = threading.Lock()


class CacheBackend(Protocol):
    """Subconjunto da API de cache do Django usado pelo ConfigCache."""

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any, timeout: Any = None) -> None:
        ...

    def delete(self, key: str) -> Any:
        ...


def cache_key(entity_type: str) -> str:
    """Chave estável: tag_config:<md5(entity_type)>."""
    return KEY_PREFIX + hashlib.md5(entity_type.encode()).hexdigest()


class ConfigCache:
    """
    Cache de TagConfig.

    Args:
        backend: Backend de cache (None = caches[CACHE_ALIAS], resolvido por chamada)
        enabled: Liga/desliga cache (None = TAGMAN["CACHE_ENABLED"])
        ttl: TTL em segundos (None = TAGMAN["CACHE_TTL"])
    """

    def __init__(
        self,
        backend: CacheBackend | None = None,
        *,
        enabled: bool | None = None,
        ttl: int | None = None,
    ) -> None:
        self._backend = backend
        self._enabled = enabled
        self._ttl = ttl
        with _live_lock:
            _live_caches.add(self)

    @property
    def enabled(self) -> bool:
        if self._enabled is not None:
            return self._enabled
        return bool(get_tagman_setting("CACHE_ENABLED"))

    @property
    def ttl(self) -> int:
        if self._ttl is not None:
            return self._ttl
        return int(get_tagman_setting("CACHE_TTL"))

    @property
    def backend(self) -> CacheBackend:
        if self._backend is not None:
            return self._backend
        from django.core.cache import caches

        return caches[get_tagman_setting("CACHE_ALIAS")]

    def get(self, entity_type: str):
        """
        Retorna o TagConfig do entity_type (ou None).

        Hit não toca o banco. Miss lê do banco e popula o cache; ausência
        de config não é cacheada.
        """
        if not self.enabled:
            return self._load(entity_type)

        key = cache_key(entity_type)
        try:
            cached = self.backend.get(key)
        except Exception:
            logger.warning(
                "Config cache read failed, reading from store",
                extra={"entity_type": entity_type},
                exc_info=True,
            )
            return self._load(entity_type)

        if cached is not None:
            return cached

        config = self._load(entity_type)
        if config is not None:
            self.set(entity_type, config)
        return config

    def set(self, entity_type: str, config) -> None:
        try:
            self.backend.set(cache_key(entity_type), config, self.ttl)
        except Exception:
            logger.warning(
                "Config cache write failed",
                extra={"entity_type": entity_type},
                exc_info=True,
            )

    def invalidate(self, entity_type: str) -> None:
        """Remove a entrada. Chamado em todo create/update/delete de TagConfig."""
        try:
            self.backend.delete(cache_key(entity_type))
        except Exception:
            logger.warning(
                "Config cache invalidation failed",
                extra={"entity_type": entity_type},
                exc_info=True,
            )

    @staticmethod
    def _load(entity_type: str):
        from tagman.models import TagConfig

        return TagConfig.objects.filter(entity_type=entity_type).first()


def invalidate_everywhere(entity_type: str) -> None:
    """
    Invalida a entrada no backend padrão e em todo ConfigCache vivo.

    Chamado por TagConfig.save()/delete(); cobre caches injetados em
    Allocators (ex.: ConfigCache(backend=LocMemCache(...))).
    """
    with _live_lock:
        live = list(_live_caches)

    seen: set[int] = set()
    for config_cache in [ConfigCache(), *live]:
        backend = config_cache.backend
        if id(backend) in seen:
            continue
        seen.add(id(backend))
        config_cache.invalidate(entity_type)
