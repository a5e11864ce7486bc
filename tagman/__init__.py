"""
Django Tagman — Alocação de etiquetas (tags) legíveis para models Django.

Uso básico:
    from tagman import registry
    from tagman.services import TagService, BulkService

    # Em AppConfig.ready()
    registry.register_taggable(Equipment, label="Equipamento", branch_field="branch_id")

    # Tag gerada automaticamente no save()
    equipment = Equipment.objects.create(name="Router")
    TagService.get_tag_value(equipment)  # "EQ-001"
"""

__title__ = "Django Tagman"
__version__ = "0.1.0"
