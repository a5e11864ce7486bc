"""
Django AppConfig para tagman.
"""

from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class TagmanConfig(AppConfig):
    name = "tagman"
    label = "tagman"
    verbose_name = _("Etiquetas")
    default_auto_field = "django.db.models.BigAutoField"
