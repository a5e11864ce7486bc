"""
Tests for tagman.registry.

Covers:
- Registration and lookup of taggable models
- Lifecycle wiring on register/unregister
- Duplicate registration errors
"""

from __future__ import annotations

from django.core.cache import cache
from django.test import TestCase

from example.inventory.models import Equipment, Location
from tagman import registry
from tagman.models import Tag
from tagman.registry import TaggableType, entity_type_for

from .helpers import make_config


class RegistryTests(TestCase):
    def setUp(self) -> None:
        cache.clear()
        self.addCleanup(registry.unregister_taggable, Location)

    def test_example_models_registered_on_ready(self) -> None:
        types = {t.entity_type for t in registry.get_all_taggables()}
        self.assertIn("inventory.Equipment", types)
        self.assertIn("inventory.Brand", types)
        self.assertEqual(registry.get_taggable("inventory.Equipment").model, Equipment)

    def test_entity_type_is_model_label(self) -> None:
        self.assertEqual(entity_type_for(Equipment), "inventory.Equipment")
        self.assertEqual(entity_type_for(Equipment(name="x")), "inventory.Equipment")

    def test_register_connects_lifecycle(self) -> None:
        make_config("inventory.Location", prefix="LOC")
        taggable = registry.register_taggable(Location, label="Local")

        location = Location.objects.create(name="Warehouse")

        self.assertEqual(taggable.label, "Local")
        self.assertEqual(Tag.objects.for_owner(location).get().value, "LOC-001")

    def test_unregister_disconnects_lifecycle(self) -> None:
        make_config("inventory.Location", prefix="LOC")
        registry.register_taggable(Location)
        registry.unregister_taggable(Location)

        location = Location.objects.create(name="Warehouse")

        self.assertIsNone(registry.get_taggable("inventory.Location"))
        self.assertFalse(Tag.objects.for_owner(location).exists())

    def test_duplicate_registration_raises(self) -> None:
        registry.register_taggable(Location)
        with self.assertRaises(ValueError):
            registry.register_taggable(Location)

    def test_default_label_and_branch_field(self) -> None:
        taggable = registry.register_taggable(Location)
        self.assertEqual(taggable.label, "Location")
        self.assertEqual(registry.branch_field_for("inventory.Location"), "branch_id")
        self.assertEqual(registry.branch_field_for("unknown.Model"), "branch_id")

    def test_custom_binder_receives_model(self) -> None:
        class RecordingBinder:
            def __init__(self) -> None:
                self.bound: list = []

            def bind(self, model) -> None:
                self.bound.append(model)

            def unbind(self, model) -> None:
                self.bound.remove(model)

        binder = RecordingBinder()
        registry.register_taggable(Location, binder=binder)
        self.assertEqual(binder.bound, [Location])
        registry.unregister_taggable(Location)
        self.assertEqual(binder.bound, [])

    def test_taggable_type_validates(self) -> None:
        with self.assertRaises(ValueError):
            TaggableType(entity_type="", label="x", model=Location)
