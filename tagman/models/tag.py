from __future__ import annotations

from django.apps import apps
from django.db import models
from django.utils.translation import gettext_lazy as _

from tagman.registry import entity_type_for


class TagQuerySet(models.QuerySet):
    def for_owner(self, owner) -> "TagQuerySet":
        """Filtra pela entidade dona (polimórfico: owner_type + owner_id)."""
        return self.filter(owner_type=entity_type_for(owner), owner_id=str(owner.pk))

    def of_type(self, entity_type: str) -> "TagQuerySet":
        return self.filter(owner_type=entity_type)


class Tag(models.Model):
    """
    Tag alocada para uma instância de entidade.

    No máximo uma Tag por (owner_type, owner_id). O value é indexado para
    busca mas não é único no banco.
    """

    value = models.CharField(_("valor"), max_length=255, db_index=True)
    owner_type = models.CharField(
        _("tipo do dono"),
        max_length=255,
        help_text="Label do model dono (ex: inventory.Equipment)",
    )
    owner_id = models.CharField(
        _("ID do dono"),
        max_length=64,
        help_text="Primary key do dono, como string",
    )

    created_at = models.DateTimeField(_("criado em"), auto_now_add=True)
    updated_at = models.DateTimeField(_("atualizado em"), auto_now=True)

    objects = TagQuerySet.as_manager()

    class Meta:
        app_label = "tagman"
        verbose_name = _("tag")
        verbose_name_plural = _("tags")
        ordering = ("-created_at", "-id")
        constraints = [
            models.UniqueConstraint(fields=["owner_type", "owner_id"], name="tagman_unique_owner"),
        ]
        indexes = [
            models.Index(fields=["owner_type", "value"], name="tagman_tag_type_value_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.value} -> {self.owner_type}:{self.owner_id}"

    @property
    def owner(self):
        """Instância dona ou None se o model/linha não existe mais."""
        try:
            model = apps.get_model(self.owner_type)
        except (LookupError, ValueError):
            return None
        return model._default_manager.filter(pk=self.owner_id).first()
