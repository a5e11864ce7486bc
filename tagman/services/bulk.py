"""
BulkService — Regeneração e remoção de tags em lote.

Regenerate roda dentro de uma transação externa, com um savepoint por item:
a falha de um item é registrada em "failed" e não aborta os demais.
"""

from __future__ import annotations

import logging
from typing import Iterable

from django.db import transaction

from tagman.allocator import Allocator
from tagman.events import emit_deleted, emit_updated
from tagman.models import Tag


logger = logging.getLogger(__name__)


class BulkService:
    """
    Operações em lote sobre Tags existentes.

    Args:
        allocator: Allocator usado no regenerate (None = Allocator())
    """

    def __init__(self, allocator: Allocator | None = None) -> None:
        self.allocator = allocator

    def regenerate(self, tag_ids: Iterable[int]) -> dict:
        """
        Gera um valor novo para cada tag, no lugar.

        Returns:
            {"regenerated": [{id, old_value, new_value}], "failed": [{id, error}]}
        """
        allocator = self.allocator or Allocator()
        regenerated: list[dict] = []
        failed: list[dict] = []

        with transaction.atomic():
            for tag_id in tag_ids:
                try:
                    with transaction.atomic():
                        regenerated.append(self._regenerate_one(allocator, tag_id))
                except Exception as exc:
                    logger.warning(
                        "Bulk regenerate item failed",
                        extra={"tag_id": tag_id, "error": str(exc)},
                    )
                    failed.append({"id": tag_id, "error": str(exc)})

        logger.info(
            "Bulk regenerate finished",
            extra={"regenerated": len(regenerated), "failed": len(failed)},
        )
        return {"regenerated": regenerated, "failed": failed}

    @staticmethod
    def _regenerate_one(allocator: Allocator, tag_id: int) -> dict:
        tag = Tag.objects.select_for_update().filter(pk=tag_id).first()
        if tag is None:
            raise LookupError(f"Tag {tag_id} not found")

        owner = tag.owner
        if owner is None:
            raise LookupError(f"Owner {tag.owner_type}:{tag.owner_id} of tag {tag_id} not found")

        old_value = tag.value
        tag.value = allocator.generate(owner)
        tag.save(update_fields=["value", "updated_at"])
        emit_updated(tag, owner, old_value)
        return {"id": tag.pk, "old_value": old_value, "new_value": tag.value}

    def delete(self, tag_ids: Iterable[int]) -> dict:
        """
        Remove as tags em uma única operação.

        Returns:
            {"deleted_count": n} com o número realmente removido.
        """
        with transaction.atomic():
            queryset = Tag.objects.filter(pk__in=list(tag_ids))
            removed = list(queryset.values_list("value", "owner_type", "owner_id"))
            deleted_count, _ = queryset.delete()

        for tag_value, owner_type, owner_id in removed:
            emit_deleted(tag_value, owner_type, owner_id)

        logger.info("Bulk delete finished", extra={"deleted_count": deleted_count})
        return {"deleted_count": deleted_count}
