from django.apps import AppConfig


class InventoryConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "example.inventory"
    verbose_name = "Inventory (Example)"

    def ready(self):
        from tagman import registry
        from .models import Brand, Equipment

        registry.register_taggable(Equipment, label="Equipment", branch_field="branch_id")
        registry.register_taggable(Brand, label="Brand")
