from __future__ import annotations

from io import StringIO

from django.core.cache import cache
from django.core.management import CommandError, call_command
from django.test import TestCase

from example.inventory.models import Equipment
from tagman.models import Tag

from .helpers import make_config


class EnsureTagsCommandTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        cache.clear()
        self.config = make_config(auto_generate=False)
        self.items = [Equipment.objects.create(name=f"E{i}") for i in range(2)]

    def test_dry_run_reports_without_writing(self) -> None:
        out = StringIO()
        call_command("ensure_tags", "--entity-type", "inventory.Equipment", "--dry-run", stdout=out)

        self.assertIn("inventory.Equipment: 2 sem tag", out.getvalue())
        self.assertFalse(Tag.objects.exists())

    def test_backfills_missing_tags(self) -> None:
        out = StringIO()
        call_command("ensure_tags", "--entity-type", "inventory.Equipment", stdout=out)

        values = [Tag.objects.for_owner(item).get().value for item in self.items]
        self.assertEqual(values, ["EQ-001", "EQ-002"])
        self.assertIn("Total: 2 gerada(s), 0 falha(s)", out.getvalue())

    def test_second_run_is_noop(self) -> None:
        call_command("ensure_tags", stdout=StringIO())
        call_command("ensure_tags", stdout=StringIO())
        self.assertEqual(Tag.objects.of_type("inventory.Equipment").count(), 2)

    def test_unknown_entity_type(self) -> None:
        with self.assertRaises(CommandError):
            call_command("ensure_tags", "--entity-type", "nowhere.Model")
