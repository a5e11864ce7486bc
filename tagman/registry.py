"""
Tagman Registry — Registro explícito dos models que recebem tags.

Models participam da geração de tags apenas quando registrados (normalmente
em AppConfig.ready()). O registro liga os callbacks post_save/pre_delete do
model ao LifecycleBinder e alimenta o endpoint de "available models".

Uso:
    from tagman import registry

    class InventoryConfig(AppConfig):
        def ready(self):
            from .models import Equipment
            registry.register_taggable(Equipment, label="Equipamento", branch_field="branch_id")
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any


def entity_type_for(obj: Any) -> str:
    """Chave do tipo de entidade (label do model) para instância ou classe."""
    return obj._meta.label


@dataclass(frozen=True)
class TaggableType:
    """
    Tipo de entidade registrado.

    Attributes:
        entity_type: Label do model (ex: "inventory.Equipment"); chave de TagConfig
        label: Rótulo para UI (ex: "Equipamento")
        model: Classe do model
        branch_field: Atributo lido pelo formato branch_based
    """

    entity_type: str
    label: str
    model: type
    branch_field: str = "branch_id"

    def __post_init__(self):
        if not self.entity_type:
            raise ValueError("TaggableType.entity_type cannot be empty")
        if not self.branch_field:
            raise ValueError("TaggableType.branch_field cannot be empty")


class _TaggableRegistry:
    """Registro central de TaggableTypes."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._types: dict[str, TaggableType] = {}
        self._binders: dict[str, Any] = {}

    def register(
        self,
        model: type,
        *,
        label: str | None = None,
        branch_field: str = "branch_id",
        binder: Any = None,
    ) -> TaggableType:
        """
        Registra um model e conecta seus callbacks de lifecycle.

        Raises:
            ValueError: Se o model já está registrado.
        """
        entity_type = entity_type_for(model)
        taggable = TaggableType(
            entity_type=entity_type,
            label=label or str(model._meta.verbose_name).title(),
            model=model,
            branch_field=branch_field,
        )
        if binder is None:
            from tagman.lifecycle import LifecycleBinder

            binder = LifecycleBinder()

        with self._lock:
            if entity_type in self._types:
                raise ValueError(f"Taggable '{entity_type}' already registered")
            self._types[entity_type] = taggable
            self._binders[entity_type] = binder

        binder.bind(model)
        return taggable

    def unregister(self, model: type) -> None:
        """Remove o registro e desconecta os callbacks. No-op se não registrado."""
        entity_type = entity_type_for(model)
        with self._lock:
            self._types.pop(entity_type, None)
            binder = self._binders.pop(entity_type, None)
        if binder is not None:
            binder.unbind(model)

    def get(self, entity_type: str) -> TaggableType | None:
        """Retorna TaggableType por entity_type ou None."""
        with self._lock:
            return self._types.get(entity_type)

    def get_all(self) -> list[TaggableType]:
        """Retorna todos os TaggableTypes registrados."""
        with self._lock:
            return list(self._types.values())

    def branch_field_for(self, entity_type: str) -> str:
        taggable = self.get(entity_type)
        return taggable.branch_field if taggable else "branch_id"


# Instância global
_registry = _TaggableRegistry()

# API pública
register_taggable = _registry.register
unregister_taggable = _registry.unregister
get_taggable = _registry.get
get_all_taggables = _registry.get_all
branch_field_for = _registry.branch_field_for
