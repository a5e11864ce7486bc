"""
TagService — Leitura e escrita de Tags por entidade dona.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from django.db import IntegrityError, transaction

from tagman.allocator import Allocator
from tagman.conf import get_tagman_setting
from tagman.events import emit_created, emit_deleted, emit_updated
from tagman.exceptions import DuplicateTag, InvalidTagFormat
from tagman.models import Tag
from tagman.registry import entity_type_for


logger = logging.getLogger(__name__)


class TagService:
    """
    Serviço para Tags de uma entidade.

    Atribuição explícita (set_tag/create_tag) não passa pelo Allocator;
    ensure_tag aloca apenas se a entidade ainda não tem tag.
    """

    @staticmethod
    def get_tag(entity: Any) -> Tag | None:
        if entity.pk is None:
            return None
        return Tag.objects.for_owner(entity).first()

    @staticmethod
    def get_tag_value(entity: Any) -> str | None:
        tag = TagService.get_tag(entity)
        return tag.value if tag else None

    @staticmethod
    def validate_value(value: str) -> str:
        """
        Valida um valor definido manualmente.

        Raises:
            InvalidTagFormat: vazio, longo demais ou com caracteres inválidos
        """
        normalized = (value or "").strip()
        if not normalized:
            raise InvalidTagFormat(code="empty", message="Tag value cannot be empty")

        max_length = int(get_tagman_setting("MAX_TAG_LENGTH"))
        if len(normalized) > max_length:
            raise InvalidTagFormat(
                code="length_exceeded",
                message=f"Tag value '{normalized}' exceeds maximum length of {max_length} characters",
                context={"value": normalized, "max_length": max_length},
            )

        pattern = get_tagman_setting("TAG_VALUE_PATTERN")
        if not re.match(pattern, normalized):
            raise InvalidTagFormat(
                code="invalid_characters",
                message=f"Tag value '{normalized}' contains invalid characters. Allowed pattern: {pattern}",
                context={"value": normalized, "pattern": pattern},
            )
        return normalized

    @staticmethod
    def create_tag(entity: Any, value: str, *, config: Any = None, validate: bool = True) -> Tag:
        """
        Insere a Tag da entidade.

        Raises:
            DuplicateTag: se a entidade já tem Tag
            InvalidTagFormat: se validate=True e o valor é inválido
        """
        if entity.pk is None:
            raise ValueError("Entity must be saved before it can be tagged")
        if validate:
            value = TagService.validate_value(value)

        owner_type = entity_type_for(entity)
        owner_id = str(entity.pk)
        try:
            with transaction.atomic():
                tag = Tag.objects.create(value=value, owner_type=owner_type, owner_id=owner_id)
        except IntegrityError as exc:
            logger.warning(
                "Duplicate tag rejected",
                extra={"entity_type": owner_type, "owner_id": owner_id, "value": value},
            )
            raise DuplicateTag(owner_type, owner_id) from exc

        emit_created(tag, entity, config)
        return tag

    @staticmethod
    def set_tag(entity: Any, value: str | None) -> Tag | None:
        """
        Define o valor da tag explicitamente (upsert).

        - sem tag anterior: cria, emite tag_created
        - tag anterior com valor diferente: atualiza, emite tag_updated
        - value vazio/None: remove, emite tag_deleted

        Returns:
            Tag resultante, ou None quando removida.
        """
        if not value:
            TagService.clear_tag(entity)
            return None

        value = TagService.validate_value(value)
        if entity.pk is None:
            raise ValueError("Entity must be saved before it can be tagged")

        with transaction.atomic():
            tag = Tag.objects.select_for_update().for_owner(entity).first()
            if tag is None:
                return TagService.create_tag(entity, value, validate=False)

            old_value = tag.value
            if old_value == value:
                return tag
            tag.value = value
            tag.save(update_fields=["value", "updated_at"])

        emit_updated(tag, entity, old_value)
        return tag

    @staticmethod
    def clear_tag(entity: Any) -> bool:
        """Remove a Tag da entidade. Retorna True se havia tag."""
        tag = TagService.get_tag(entity)
        if tag is None:
            return False

        tag_value, owner_type, owner_id = tag.value, tag.owner_type, tag.owner_id
        tag.delete()
        emit_deleted(tag_value, owner_type, owner_id)
        return True

    @staticmethod
    def ensure_tag(
        entity: Any,
        allocator: Allocator | None = None,
        *,
        respect_auto_generate: bool = False,
    ) -> Tag | None:
        """
        Garante que a entidade tem Tag (idempotente).

        Args:
            entity: Instância salva
            allocator: Allocator a usar (None = Allocator())
            respect_auto_generate: Se True, não aloca quando config.auto_generate=False

        Returns:
            Tag existente ou criada; None se a geração foi pulada.
        """
        existing = TagService.get_tag(entity)
        if existing is not None:
            return existing

        allocator = allocator or Allocator()
        config = allocator.load_config(entity_type_for(entity))
        if respect_auto_generate and config is not None and not config.auto_generate:
            return None

        value = allocator.generate(entity, config=config)
        return TagService.create_tag(entity, value, config=config, validate=False)
