"""
Tagman Events — Sinais observáveis do ciclo de vida das tags.

Quatro sinais Django (fire-and-observe):

    tag_created(tag, owner, config)             após persistir uma Tag nova
    tag_updated(tag, owner, old_value)          após trocar o value de uma Tag
    tag_deleted(tag_value, owner_type, owner_id) após remover uma Tag
    tag_generation_failed(owner, error, fallback_value)
                                                após esgotar retries ou erro irrecuperável

Uso:
    from django.dispatch import receiver
    from tagman.events import tag_created

    @receiver(tag_created)
    def audit_tag(sender, tag, owner, config, **kwargs):
        ...

Receivers são chamados via send_robust: um receiver que falha é logado e
nunca interrompe a escrita que disparou o evento.
"""

from __future__ import annotations

import logging
from typing import Any

from django.dispatch import Signal


logger = logging.getLogger(__name__)


tag_created = Signal()
tag_updated = Signal()
tag_deleted = Signal()
tag_generation_failed = Signal()


def _send(signal: Signal, name: str, sender: Any, **kwargs) -> None:
    for receiver, response in signal.send_robust(sender=sender, **kwargs):
        if isinstance(response, Exception):
            logger.error(
                "Tag event receiver failed",
                extra={"event": name, "receiver": repr(receiver)},
                exc_info=(type(response), response, response.__traceback__),
            )


def emit_created(tag, owner, config=None) -> None:
    from tagman.models import Tag

    _send(tag_created, "tag.created", Tag, tag=tag, owner=owner, config=config)


def emit_updated(tag, owner, old_value: str | None) -> None:
    from tagman.models import Tag

    _send(tag_updated, "tag.updated", Tag, tag=tag, owner=owner, old_value=old_value)


def emit_deleted(tag_value: str, owner_type: str, owner_id: str) -> None:
    from tagman.models import Tag

    _send(
        tag_deleted,
        "tag.deleted",
        Tag,
        tag_value=tag_value,
        owner_type=owner_type,
        owner_id=owner_id,
    )


def emit_generation_failed(owner, error: BaseException, fallback_value: str | None = None) -> None:
    from tagman.models import Tag

    _send(
        tag_generation_failed,
        "tag.generation_failed",
        Tag,
        owner=owner,
        error=error,
        fallback_value=fallback_value,
    )
