from __future__ import annotations

import logging

from django.contrib import admin, messages
from django.utils.translation import gettext_lazy as _
from unfold.admin import ModelAdmin, TabularInline
from unfold.contrib.filters.admin.choice_filters import ChoicesRadioFilter
from unfold.decorators import action, display

from .models import Tag, TagBranchCounter, TagConfig
from .registry import get_taggable
from .services import BulkService


logger = logging.getLogger(__name__)


class TagBranchCounterInline(TabularInline):
    model = TagBranchCounter
    extra = 0
    fields = ("branch", "current_number")
    readonly_fields = ("branch", "current_number")
    can_delete = False
    tab = True

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(TagConfig)
class TagConfigAdmin(ModelAdmin):
    list_display = (
        "entity_type",
        "prefix",
        "separator",
        "number_format_badge",
        "auto_generate",
        "current_number",
        "padding_length",
        "example_display",
        "updated_at",
    )
    list_filter = (("number_format", ChoicesRadioFilter), "auto_generate")
    search_fields = ("entity_type", "prefix", "description")
    ordering = ("entity_type",)
    list_filter_submit = True
    list_fullwidth = True
    compressed_fields = True
    warn_unsaved_form = True
    inlines = [TagBranchCounterInline]

    fieldsets = (
        (_("Identidade"), {"fields": ("entity_type", "description"), "classes": ("tab",)}),
        (
            _("Formato"),
            {
                "fields": ("prefix", "separator", "number_format", "padding_length", "example_display"),
                "classes": ("tab",),
            },
        ),
        (_("Geração"), {"fields": ("auto_generate", "current_number"), "classes": ("tab",)}),
        (_("Auditoria"), {"fields": ("created_at", "updated_at"), "classes": ("tab",)}),
    )
    readonly_fields = ("created_at", "updated_at", "example_display")

    @display(
        description=_("formato"),
        label={"sequencial": "success", "aleatório (timestamp)": "warning", "por filial": "info"},
    )
    def number_format_badge(self, obj: TagConfig) -> str:
        return obj.get_number_format_display()

    @display(description=_("exemplo"))
    def example_display(self, obj: TagConfig) -> str:
        if not obj or not obj.prefix:
            return "-"
        if obj.number_format == TagConfig.NumberFormat.RANDOM:
            return f"{obj.prefix}{obj.separator}1698765432"
        branch = "1" if obj.number_format == TagConfig.NumberFormat.BRANCH_BASED else None
        return obj.format_number(obj.current_number + 1, branch=branch)


@admin.register(Tag)
class TagAdmin(ModelAdmin):
    list_display = ("value", "owner_label", "owner_id", "created_at", "updated_at")
    list_filter = ("owner_type",)
    search_fields = ("value", "owner_id")
    ordering = ("-created_at", "-id")
    date_hierarchy = "created_at"
    list_filter_submit = True
    list_fullwidth = True
    readonly_fields = ("owner_type", "owner_id", "created_at", "updated_at")
    actions = ["regenerate_selected"]

    @display(description=_("tipo"), ordering="owner_type")
    def owner_label(self, obj: Tag) -> str:
        taggable = get_taggable(obj.owner_type)
        return taggable.label if taggable else obj.owner_type

    @action(description=_("Regenerar tags selecionadas"))
    def regenerate_selected(self, request, queryset):
        result = BulkService().regenerate(list(queryset.values_list("pk", flat=True)))
        regenerated, failed = len(result["regenerated"]), len(result["failed"])
        if regenerated:
            self.message_user(request, _("%(n)s tag(s) regenerada(s).") % {"n": regenerated}, messages.SUCCESS)
        if failed:
            logger.warning("Admin regenerate had failures", extra={"failed": result["failed"]})
            self.message_user(request, _("%(n)s tag(s) falharam.") % {"n": failed}, messages.ERROR)

    def has_add_permission(self, request):
        return False
