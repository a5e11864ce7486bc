from __future__ import annotations

from django.core.cache import cache
from django.test import TestCase, override_settings

from example.inventory.models import Brand, Equipment
from tagman.events import tag_created, tag_deleted, tag_updated
from tagman.exceptions import ConfigConflict, ConfigNotFound, DuplicateTag, InvalidConfig, InvalidTagFormat
from tagman.models import Tag, TagConfig
from tagman.services import ConfigService, TagService

from .helpers import SignalRecorder, make_config


class TagServiceTests(TestCase):
    def setUp(self) -> None:
        cache.clear()
        # Sem config: Brand recebe fallback no save, removido para partir do zero
        self.brand = Brand.objects.create(name="Acme")
        TagService.clear_tag(self.brand)
        self.created = SignalRecorder(tag_created)
        self.updated = SignalRecorder(tag_updated)
        self.deleted = SignalRecorder(tag_deleted)
        for recorder in (self.created, self.updated, self.deleted):
            self.addCleanup(recorder.disconnect)

    def test_set_tag_creates_then_updates(self) -> None:
        TagService.set_tag(self.brand, "BR-100")
        tag = TagService.set_tag(self.brand, "BR-200")

        self.assertEqual(tag.value, "BR-200")
        self.assertEqual(Tag.objects.for_owner(self.brand).count(), 1)
        self.assertEqual(self.created.count, 1)
        self.assertEqual(self.updated.count, 1)
        self.assertEqual(self.updated.calls[0]["old_value"], "BR-100")

    def test_set_same_value_emits_nothing(self) -> None:
        TagService.set_tag(self.brand, "BR-100")
        TagService.set_tag(self.brand, "BR-100")
        self.assertEqual(self.created.count, 1)
        self.assertEqual(self.updated.count, 0)

    def test_set_tag_strips_whitespace(self) -> None:
        self.assertEqual(TagService.set_tag(self.brand, "  BR-1  ").value, "BR-1")

    def test_set_empty_clears(self) -> None:
        TagService.set_tag(self.brand, "BR-100")
        self.assertIsNone(TagService.set_tag(self.brand, ""))
        self.assertIsNone(TagService.get_tag(self.brand))
        self.assertEqual(self.deleted.count, 1)
        self.assertEqual(self.deleted.calls[0]["tag_value"], "BR-100")

    def test_invalid_values_rejected(self) -> None:
        with self.assertRaises(InvalidTagFormat) as ctx:
            TagService.validate_value("   ")
        self.assertEqual(ctx.exception.code, "empty")

        with self.assertRaises(InvalidTagFormat) as ctx:
            TagService.set_tag(self.brand, "BR 100!")
        self.assertEqual(ctx.exception.code, "invalid_characters")
        self.assertIsNone(TagService.get_tag(self.brand))

    @override_settings(TAGMAN={"MAX_TAG_LENGTH": 5})
    def test_length_limit(self) -> None:
        with self.assertRaises(InvalidTagFormat) as ctx:
            TagService.set_tag(self.brand, "BR-1000")
        self.assertEqual(ctx.exception.code, "length_exceeded")
        self.assertEqual(ctx.exception.context["max_length"], 5)

    def test_create_tag_twice_raises_duplicate(self) -> None:
        TagService.create_tag(self.brand, "BR-1")
        with self.assertRaises(DuplicateTag) as ctx:
            TagService.create_tag(self.brand, "BR-2")
        self.assertEqual(ctx.exception.context["owner_id"], str(self.brand.pk))
        self.assertEqual(TagService.get_tag_value(self.brand), "BR-1")

    def test_unsaved_entity(self) -> None:
        unsaved = Brand(name="Ghost")
        self.assertIsNone(TagService.get_tag(unsaved))
        with self.assertRaises(ValueError):
            TagService.create_tag(unsaved, "BR-1")

    def test_clear_without_tag_returns_false(self) -> None:
        self.assertFalse(TagService.clear_tag(self.brand))
        self.assertEqual(self.deleted.count, 0)

    def test_ensure_tag_allocates_once(self) -> None:
        make_config("inventory.Brand", prefix="BR")
        first = TagService.ensure_tag(self.brand)
        second = TagService.ensure_tag(self.brand)
        self.assertEqual(first.pk, second.pk)
        self.assertEqual(first.value, "BR-001")


class ConfigServiceTests(TestCase):
    def setUp(self) -> None:
        cache.clear()

    def test_create_and_get(self) -> None:
        with self.assertLogs("tagman.services.configs", "INFO"):
            config = ConfigService.create(entity_type="inventory.Equipment", prefix="EQ")
        self.assertEqual(ConfigService.get("inventory.Equipment").pk, config.pk)

    def test_duplicate_entity_type_is_conflict(self) -> None:
        ConfigService.create(entity_type="inventory.Equipment", prefix="EQ")
        with self.assertRaises(ConfigConflict):
            ConfigService.create(entity_type="inventory.Equipment", prefix="EQ2")
        self.assertEqual(TagConfig.objects.count(), 1)

    def test_update_to_taken_entity_type_is_conflict(self) -> None:
        ConfigService.create(entity_type="inventory.Equipment", prefix="EQ")
        brand = ConfigService.create(entity_type="inventory.Brand", prefix="BR")
        with self.assertRaises(ConfigConflict):
            ConfigService.update(brand, entity_type="inventory.Equipment")

    def test_update_applies_to_next_allocation(self) -> None:
        config = ConfigService.create(entity_type="inventory.Equipment", prefix="EQ")
        ConfigService.update(config, prefix="NEW", padding_length=2)
        equipment = Equipment.objects.create(name="Router")
        self.assertEqual(TagService.get_tag_value(equipment), "NEW-01")

    def test_update_from_stale_instance_keeps_counter(self) -> None:
        config = ConfigService.create(entity_type="inventory.Equipment", prefix="EQ")
        Equipment.objects.create(name="A")
        Equipment.objects.create(name="B")

        updated = ConfigService.update(config, description="renamed")
        third = Equipment.objects.create(name="C")

        self.assertEqual(updated.current_number, 2)
        self.assertEqual(
            sorted(Tag.objects.of_type("inventory.Equipment").values_list("value", flat=True)),
            ["EQ-001", "EQ-002", "EQ-003"],
        )
        self.assertEqual(TagService.get_tag_value(third), "EQ-003")
        self.assertEqual(TagConfig.objects.get().current_number, 3)

    def test_update_cannot_lower_counter(self) -> None:
        config = ConfigService.create(entity_type="inventory.Equipment", prefix="EQ")
        Equipment.objects.create(name="A")
        Equipment.objects.create(name="B")

        with self.assertRaises(InvalidConfig) as ctx:
            ConfigService.update(config, current_number=1)

        self.assertEqual(ctx.exception.code, "counter_decrease")
        self.assertEqual(TagConfig.objects.get().current_number, 2)

    def test_update_can_reseed_counter_upwards(self) -> None:
        config = ConfigService.create(entity_type="inventory.Equipment", prefix="EQ")
        ConfigService.update(config, current_number=41)
        equipment = Equipment.objects.create(name="Router")
        self.assertEqual(TagService.get_tag_value(equipment), "EQ-042")

    def test_get_missing_raises(self) -> None:
        with self.assertRaises(ConfigNotFound):
            ConfigService.get("inventory.Brand")

    def test_delete(self) -> None:
        config = ConfigService.create(entity_type="inventory.Equipment", prefix="EQ")
        ConfigService.delete(config)
        self.assertFalse(TagConfig.objects.exists())
