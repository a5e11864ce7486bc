"""
ConfigService — CRUD de TagConfig.

Toda escrita passa por TagConfig.save()/delete(), que invalidam o cache.
"""

from __future__ import annotations

import logging
from typing import Any

from django.db import IntegrityError, transaction

from tagman.cache import ConfigCache
from tagman.exceptions import ConfigConflict, ConfigNotFound, InvalidConfig
from tagman.models import TagConfig


logger = logging.getLogger(__name__)


class ConfigService:
    """Serviço para configurações de geração de tags."""

    @staticmethod
    def get(entity_type: str, *, cache: ConfigCache | None = None) -> TagConfig:
        """
        TagConfig do entity_type, via cache.

        Raises:
            ConfigNotFound: se não existe config
        """
        config = (cache or ConfigCache()).get(entity_type)
        if config is None:
            raise ConfigNotFound(entity_type)
        return config

    @staticmethod
    def create(**fields: Any) -> TagConfig:
        """
        Cria uma config.

        Raises:
            ConfigConflict: entity_type já configurado
        """
        config = TagConfig(**fields)
        try:
            with transaction.atomic():
                config.save()
        except IntegrityError as exc:
            raise ConfigConflict(fields.get("entity_type", "")) from exc

        logger.info(
            "Tag config created",
            extra={"entity_type": config.entity_type, "number_format": config.number_format},
        )
        return config

    @staticmethod
    def update(config: TagConfig, **fields: Any) -> TagConfig:
        """
        Atualiza campos da config sob lock da linha.

        Só os campos informados são gravados: current_number nunca é
        sobrescrito por um snapshot antigo da instância.

        Returns:
            A config relida do banco, já atualizada.

        Raises:
            ConfigConflict: novo entity_type colide com outra config
            InvalidConfig: current_number menor que o atual
        """
        try:
            with transaction.atomic():
                locked = TagConfig.objects.select_for_update().get(pk=config.pk)
                if "current_number" in fields and fields["current_number"] < locked.current_number:
                    raise InvalidConfig(
                        code="counter_decrease",
                        message=f"Counter cannot be decreased (current: {locked.current_number})",
                        context={"entity_type": locked.entity_type, "current_number": locked.current_number},
                    )
                for name, value in fields.items():
                    setattr(locked, name, value)
                locked.save(update_fields=[*fields, "updated_at"])
        except IntegrityError as exc:
            raise ConfigConflict(fields.get("entity_type", config.entity_type)) from exc

        logger.info(
            "Tag config updated",
            extra={"entity_type": locked.entity_type, "fields": sorted(fields)},
        )
        return locked

    @staticmethod
    def delete(config: TagConfig) -> None:
        entity_type = config.entity_type
        config.delete()
        logger.info("Tag config deleted", extra={"entity_type": entity_type})
