from django.contrib import admin
from unfold.admin import ModelAdmin

from tagman.services import TagService

from .models import Brand, Equipment


@admin.register(Equipment)
class EquipmentAdmin(ModelAdmin):
    list_display = ("name", "serial_no", "branch_id", "tag_display")
    search_fields = ("name", "serial_no")

    @admin.display(description="tag")
    def tag_display(self, obj: Equipment) -> str:
        return TagService.get_tag_value(obj) or "-"


@admin.register(Brand)
class BrandAdmin(ModelAdmin):
    list_display = ("name", "tag_display")
    search_fields = ("name",)

    @admin.display(description="tag")
    def tag_display(self, obj: Brand) -> str:
        return TagService.get_tag_value(obj) or "-"
