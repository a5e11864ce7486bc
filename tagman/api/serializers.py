from __future__ import annotations

from rest_framework import serializers

from tagman import registry
from tagman.models import Tag, TagConfig
from tagman.services import ConfigService


class TagConfigSerializer(serializers.ModelSerializer):
    """
    Config de geração de tags.

    Unicidade de entity_type é verificada no banco (ConfigConflict -> 409),
    não pelo validator do DRF (que responderia 400).
    """

    description = serializers.CharField(required=False, allow_blank=True, max_length=1000)

    class Meta:
        model = TagConfig
        fields = (
            "id",
            "entity_type",
            "prefix",
            "separator",
            "number_format",
            "auto_generate",
            "current_number",
            "padding_length",
            "description",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("created_at", "updated_at")
        extra_kwargs = {"entity_type": {"validators": []}}

    def validate_current_number(self, value: int) -> int:
        if self.instance is not None and value < self.instance.current_number:
            raise serializers.ValidationError(
                f"Counter cannot be decreased (current: {self.instance.current_number})."
            )
        return value

    def create(self, validated_data):
        return ConfigService.create(**validated_data)

    def update(self, instance, validated_data):
        return ConfigService.update(instance, **validated_data)


class TagSerializer(serializers.ModelSerializer):
    owner_label = serializers.SerializerMethodField()

    class Meta:
        model = Tag
        fields = ("id", "value", "owner_type", "owner_id", "owner_label", "created_at", "updated_at")
        read_only_fields = fields

    def get_owner_label(self, obj: Tag) -> str:
        taggable = registry.get_taggable(obj.owner_type)
        return taggable.label if taggable else obj.owner_type


class BulkTagIdsSerializer(serializers.Serializer):
    """
    POST /api/tags/bulk/regenerate e /api/tags/bulk/delete

    Body: {"tag_ids": [1, 2, 3]}
    """

    tag_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        allow_empty=False,
        max_length=1000,
    )
