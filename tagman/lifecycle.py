"""
Lifecycle Binder — Liga a geração de tags ao save/delete das entidades.

Cada model registrado via `registry.register_taggable` tem seus callbacks
conectados explicitamente:

    post_save   -> on_saved     aloca e persiste a tag se ainda não existe
    pre_delete  -> on_deleting  remove a tag antes da entidade sumir

Falhas de alocação no save são logadas e emitem tag_generation_failed; só
propagam ao chamador em modo debug, para não bloquear a persistência da
entidade em produção. DuplicateTag sempre propaga.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from django.db.models.signals import post_save, pre_delete

from tagman.allocator import Allocator
from tagman.conf import is_debug
from tagman.events import emit_generation_failed
from tagman.exceptions import ConcurrencyExhausted, DuplicateTag, TagGenerationError
from tagman.models import Tag
from tagman.registry import entity_type_for
from tagman.services.tags import TagService


logger = logging.getLogger(__name__)


class LifecycleBinder:
    """
    Callbacks de lifecycle para models com tag.

    Args:
        allocator_factory: Cria o Allocator usado a cada evento (lê settings atuais)
    """

    def __init__(self, allocator_factory: Callable[[], Allocator] = Allocator) -> None:
        self.allocator_factory = allocator_factory

    @staticmethod
    def _uid(phase: str, model: type) -> str:
        return f"tagman.lifecycle.{phase}.{entity_type_for(model)}"

    def bind(self, model: type) -> None:
        post_save.connect(self.on_saved, sender=model, weak=False, dispatch_uid=self._uid("saved", model))
        pre_delete.connect(self.on_deleting, sender=model, weak=False, dispatch_uid=self._uid("deleting", model))

    def unbind(self, model: type) -> None:
        post_save.disconnect(sender=model, dispatch_uid=self._uid("saved", model))
        pre_delete.disconnect(sender=model, dispatch_uid=self._uid("deleting", model))

    def ensure(self, instance: Any) -> Tag | None:
        """Aloca e persiste a tag se a entidade não tem uma. No-op caso contrário."""
        return TagService.ensure_tag(instance, self.allocator_factory())

    def on_saved(self, sender, instance, created: bool = False, raw: bool = False, **kwargs) -> None:
        if raw:
            return
        try:
            TagService.ensure_tag(instance, self.allocator_factory(), respect_auto_generate=True)
        except DuplicateTag:
            raise
        except Exception as exc:
            logger.exception(
                "Tag generation failed on save",
                extra={"entity_type": entity_type_for(instance), "owner_id": str(instance.pk)},
            )
            # Allocator já emitiu para estes
            if not isinstance(exc, (ConcurrencyExhausted, TagGenerationError)):
                emit_generation_failed(instance, exc)
            if is_debug():
                raise

    def on_deleting(self, sender, instance, **kwargs) -> None:
        TagService.clear_tag(instance)
