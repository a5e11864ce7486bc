"""
Models de exemplo que recebem tags.

Equipment e Brand são registrados em InventoryConfig.ready(); Location
fica de fora e nunca recebe tag.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class Equipment(models.Model):
    name = models.CharField(_("name"), max_length=200)
    serial_no = models.CharField(_("serial number"), max_length=64, blank=True, default="")
    branch_id = models.PositiveIntegerField(_("branch"), null=True, blank=True)

    class Meta:
        verbose_name = _("equipment")
        verbose_name_plural = _("equipment")
        ordering = ("name",)

    def __str__(self) -> str:
        return self.name


class Brand(models.Model):
    name = models.CharField(_("name"), max_length=200)

    class Meta:
        verbose_name = _("brand")
        verbose_name_plural = _("brands")
        ordering = ("name",)

    def __str__(self) -> str:
        return self.name


class Location(models.Model):
    name = models.CharField(_("name"), max_length=200)

    class Meta:
        verbose_name = _("location")
        verbose_name_plural = _("locations")

    def __str__(self) -> str:
        return self.name
