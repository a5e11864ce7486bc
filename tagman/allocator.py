"""
Allocator — Gera o próximo valor de tag para uma entidade.

Estratégias (TagConfig.number_format):
- sequential: UPDATE current_number = current_number + 1 na linha de
  TagConfig (lock de escrita), relê e formata PREFIX + SEP + número com
  padding. Duas alocações concorrentes nunca observam o mesmo número.
- random: PREFIX + SEP + unix timestamp. Sem lock; alocações no mesmo
  segundo podem colidir (best-effort, não remediado).
- branch_based: lock na linha de TagConfig e no contador do branch,
  PREFIX + SEP + número + SEP + branch. Numeração independente por branch.

Conflitos de lock (timeout, deadlock, serialização) são retentados com
backoff exponencial. Esgotadas as tentativas, ou sem TagConfig, gera tag de
fallback FALLBACK_PREFIX-<timestamp> (em modo debug o erro propaga).
Falhas de infraestrutura do banco viram StoreUnavailable e propagam sempre.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from django.db import DatabaseError, InterfaceError, OperationalError, connection, transaction
from django.db.models import F
from django.utils import timezone

from tagman.cache import ConfigCache
from tagman.conf import get_tagman_setting, is_debug
from tagman.events import emit_generation_failed
from tagman.exceptions import (
    ConcurrencyExhausted,
    ConfigNotFound,
    StoreUnavailable,
    TagGenerationError,
)
from tagman.models import Tag, TagBranchCounter, TagConfig
from tagman.registry import branch_field_for, entity_type_for


logger = logging.getLogger(__name__)

# PostgreSQL: serialization_failure, deadlock_detected, lock_not_available
LOCK_CONFLICT_SQLSTATES = frozenset({"40001", "40P01", "55P03"})
# MySQL: ER_LOCK_WAIT_TIMEOUT, ER_LOCK_DEADLOCK
LOCK_CONFLICT_MYSQL_CODES = frozenset({1205, 1213})
LOCK_CONFLICT_MESSAGES = (
    "database is locked",
    "database table is locked",
    "deadlock",
    "lock wait timeout",
    "lock timeout",
    "could not serialize",
    "could not obtain lock",
)

_LOAD = object()


def is_lock_conflict(exc: BaseException) -> bool:
    """True para erros de lock/serialização (retentáveis)."""
    cause = exc.__cause__ or exc
    sqlstate = getattr(cause, "sqlstate", None) or getattr(cause, "pgcode", None)
    if sqlstate in LOCK_CONFLICT_SQLSTATES:
        return True
    args = getattr(cause, "args", ())
    if args and args[0] in LOCK_CONFLICT_MYSQL_CODES:
        return True
    message = str(exc).lower()
    return any(fragment in message for fragment in LOCK_CONFLICT_MESSAGES)


def unix_timestamp() -> int:
    return int(time.time())


class Allocator:
    """
    Alocador de tags.

    Args:
        config_cache: Cache de TagConfig (None = ConfigCache() com settings)
        max_retries: Retries após a primeira tentativa (None = TAGMAN["MAX_RETRIES"])
        retry_backoff: Delay inicial em segundos, dobra a cada retry
        lock_timeout: Timeout de lock em segundos (0 = usa o do banco)
        fallback_prefix: Prefixo da tag de fallback
        sleep: Função de espera (injetável para testes)
    """

    def __init__(
        self,
        config_cache: ConfigCache | None = None,
        *,
        max_retries: int | None = None,
        retry_backoff: float | None = None,
        lock_timeout: float | None = None,
        fallback_prefix: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config_cache = config_cache or ConfigCache()
        self.max_retries = int(get_tagman_setting("MAX_RETRIES") if max_retries is None else max_retries)
        self.retry_backoff = float(get_tagman_setting("RETRY_BACKOFF") if retry_backoff is None else retry_backoff)
        self.lock_timeout = float(get_tagman_setting("LOCK_TIMEOUT") if lock_timeout is None else lock_timeout)
        self.fallback_prefix = fallback_prefix or get_tagman_setting("FALLBACK_PREFIX")
        self.sleep = sleep

    # -------------------------------------------------------------------------
    # API
    # -------------------------------------------------------------------------

    def allocate(self, entity: Any) -> str:
        """Idempotente: devolve a tag já persistida ou gera uma nova."""
        existing = self.existing_value(entity)
        if existing is not None:
            return existing
        return self.generate(entity)

    def generate(self, entity: Any, config: Any = _LOAD) -> str:
        """
        Gera um valor novo, ignorando qualquer tag existente.

        Args:
            entity: Instância do model dono
            config: TagConfig já carregado (omitido = carrega via cache)

        Returns:
            Valor da tag, ou tag de fallback.

        Raises:
            StoreUnavailable: Banco indisponível
            ConfigNotFound, ConcurrencyExhausted, TagGenerationError: apenas em modo debug
        """
        entity_type = entity_type_for(entity)
        log_context = {
            "entity_type": entity_type,
            "owner_id": None if entity.pk is None else str(entity.pk),
        }

        if config is _LOAD:
            config = self.load_config(entity_type)

        try:
            if config is None:
                raise ConfigNotFound(entity_type)
            return self._dispatch(entity, entity_type, config, log_context)

        except ConfigNotFound:
            if is_debug():
                raise
            fallback = self.fallback_value()
            logger.info("No tag config, using fallback tag", extra={**log_context, "fallback": fallback})
            return fallback

        except (ConcurrencyExhausted, TagGenerationError) as exc:
            debug = is_debug()
            fallback = None if debug else self.fallback_value()
            logger.error(
                "Tag generation failed",
                extra={**log_context, "error_code": exc.code, "fallback": fallback},
            )
            emit_generation_failed(entity, exc, fallback_value=fallback)
            if debug:
                raise
            return fallback

    def load_config(self, entity_type: str) -> TagConfig | None:
        """TagConfig via cache. Falha do banco vira StoreUnavailable."""
        try:
            return self.config_cache.get(entity_type)
        except (OperationalError, InterfaceError) as exc:
            logger.error("Tag config store unavailable", extra={"entity_type": entity_type}, exc_info=True)
            raise StoreUnavailable(
                code="store_unavailable",
                message=str(exc),
                context={"entity_type": entity_type},
            ) from exc

    @staticmethod
    def existing_value(entity: Any) -> str | None:
        if entity.pk is None:
            return None
        return Tag.objects.for_owner(entity).values_list("value", flat=True).first()

    def fallback_value(self) -> str:
        return f"{self.fallback_prefix}-{unix_timestamp()}"

    # -------------------------------------------------------------------------
    # Strategies
    # -------------------------------------------------------------------------

    def _dispatch(self, entity: Any, entity_type: str, config: TagConfig, log_context: dict) -> str:
        number_format = config.number_format

        if number_format == TagConfig.NumberFormat.SEQUENTIAL:
            return self._with_retries(lambda: self._allocate_sequential(config), log_context)

        if number_format == TagConfig.NumberFormat.RANDOM:
            return f"{config.prefix}{config.separator}{unix_timestamp()}"

        if number_format == TagConfig.NumberFormat.BRANCH_BASED:
            branch = self._branch_of(entity, entity_type, log_context)
            return self._with_retries(
                lambda: self._allocate_branch(config, entity_type, branch),
                {**log_context, "branch": branch},
            )

        raise TagGenerationError(
            code="invalid_config",
            message=f"Unknown number format: {number_format}",
            context=log_context,
        )

    def _allocate_sequential(self, config: TagConfig) -> str:
        with transaction.atomic(), self._lock_timeout():
            locked = self._lock_config(config, current_number=F("current_number") + 1)
            return locked.format_number(locked.current_number)

    def _allocate_branch(self, config: TagConfig, entity_type: str, branch: str) -> str:
        with transaction.atomic(), self._lock_timeout():
            locked = self._lock_config(config)
            # Lock do config serializa todos os branches; o contador não tem corrida de criação.
            counter = (
                TagBranchCounter.objects.select_for_update()
                .filter(config=locked, branch=branch)
                .first()
            )
            if counter is None:
                counter = TagBranchCounter.objects.create(
                    config=locked,
                    branch=branch,
                    current_number=self._scan_branch_max(locked, entity_type, branch),
                )
            counter.current_number += 1
            counter.save(update_fields=["current_number"])
            return locked.format_number(counter.current_number, branch=branch)

    def _lock_config(self, config: TagConfig, **changes: Any) -> TagConfig:
        """
        Trava a linha do TagConfig escrevendo nela antes de qualquer leitura.

        O UPDATE pega o lock de escrita já no primeiro comando da transação,
        então bancos sem lock de linha (SQLite) também serializam os
        alocadores em vez de falhar ao promover um lock de leitura.
        """
        changes["updated_at"] = timezone.now()
        if not TagConfig.objects.filter(pk=config.pk).update(**changes):
            # Config removida depois de cacheada
            self.config_cache.invalidate(config.entity_type)
            raise ConfigNotFound(config.entity_type)
        return TagConfig.objects.select_for_update().get(pk=config.pk)

    @staticmethod
    def _scan_branch_max(config: TagConfig, entity_type: str, branch: str) -> int:
        """Maior número já usado no branch (tags anteriores ao contador)."""
        head = f"{config.prefix}{config.separator}"
        tail = f"{config.separator}{branch}"
        values = (
            Tag.objects.of_type(entity_type)
            .filter(value__startswith=head, value__endswith=tail)
            .values_list("value", flat=True)
        )
        highest = 0
        for value in values:
            middle = value[len(head):len(value) - len(tail)]
            if middle.isdigit():
                highest = max(highest, int(middle))
        return highest

    @staticmethod
    def _branch_of(entity: Any, entity_type: str, log_context: dict) -> str:
        field = branch_field_for(entity_type)
        branch = getattr(entity, field, None)
        if branch is None or str(branch) == "":
            raise TagGenerationError(
                code="missing_branch",
                message=f"{entity_type} has no value for branch field '{field}'",
                context={**log_context, "branch_field": field},
            )
        return str(branch)

    # -------------------------------------------------------------------------
    # Locking / retry
    # -------------------------------------------------------------------------

    def _with_retries(self, operation: Callable[[], str], log_context: dict) -> str:
        attempt = 0
        while True:
            attempt += 1
            try:
                return operation()
            except DatabaseError as exc:
                if not is_lock_conflict(exc):
                    if isinstance(exc, (OperationalError, InterfaceError)):
                        logger.error(
                            "Tag store unavailable",
                            extra={**log_context, "attempt": attempt},
                            exc_info=True,
                        )
                        raise StoreUnavailable(
                            code="store_unavailable",
                            message=str(exc),
                            context={**log_context, "attempt": attempt},
                        ) from exc
                    raise

                if attempt > self.max_retries:
                    logger.error(
                        "Tag allocation retries exhausted",
                        extra={**log_context, "attempt": attempt},
                    )
                    raise ConcurrencyExhausted(
                        log_context["entity_type"], attempt, log_context.get("owner_id")
                    ) from exc

                delay = self.retry_backoff * (2 ** (attempt - 1))
                logger.warning(
                    "Tag allocation lock conflict, retrying",
                    extra={**log_context, "attempt": attempt, "delay": delay, "error": str(exc)},
                )
                self.sleep(delay)

    @contextmanager
    def _lock_timeout(self) -> Iterator[None]:
        """
        Aplica LOCK_TIMEOUT dentro da transação de alocação.

        PostgreSQL: set_config local à transação. MySQL: a variável é de
        sessão, então o valor anterior é restaurado na saída.
        """
        if not self.lock_timeout:
            yield
            return

        if connection.vendor == "postgresql":
            with connection.cursor() as cursor:
                cursor.execute(
                    "SELECT set_config('lock_timeout', %s, true)",
                    [f"{int(self.lock_timeout * 1000)}ms"],
                )
            yield
            return

        if connection.vendor != "mysql":
            yield
            return

        with connection.cursor() as cursor:
            cursor.execute("SELECT @@SESSION.innodb_lock_wait_timeout")
            (previous,) = cursor.fetchone()
            cursor.execute(
                "SET SESSION innodb_lock_wait_timeout = %s",
                [max(1, int(self.lock_timeout))],
            )
        try:
            yield
        finally:
            with connection.cursor() as cursor:
                cursor.execute("SET SESSION innodb_lock_wait_timeout = %s", [previous])
