"""
Management command para gerar tags de instâncias que ainda não têm.

Uso:
    python manage.py ensure_tags
    python manage.py ensure_tags --entity-type inventory.Equipment
    python manage.py ensure_tags --dry-run

Útil após registrar um model que já tem linhas no banco.
"""

from django.core.management.base import BaseCommand, CommandError

from tagman import registry
from tagman.allocator import Allocator
from tagman.exceptions import TagmanError
from tagman.models import Tag
from tagman.services import TagService


class Command(BaseCommand):
    help = "Gera tags para instâncias de models registrados que ainda não têm tag"

    def add_arguments(self, parser):
        parser.add_argument(
            "--entity-type",
            help="Restringe a um entity_type (ex: inventory.Equipment)",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Mostra quantas tags seriam geradas sem gerar",
        )

    def handle(self, *args, **options):
        entity_type = options["entity_type"]
        dry_run = options["dry_run"]

        taggables = registry.get_all_taggables()
        if entity_type:
            taggables = [t for t in taggables if t.entity_type == entity_type]
            if not taggables:
                raise CommandError(f"Entity type '{entity_type}' is not registered")

        allocator = Allocator()
        total_created = 0
        total_failed = 0

        for taggable in sorted(taggables, key=lambda t: t.entity_type):
            tagged = set(Tag.objects.of_type(taggable.entity_type).values_list("owner_id", flat=True))
            missing = [
                obj for obj in taggable.model._default_manager.order_by("pk").iterator()
                if str(obj.pk) not in tagged
            ]

            if dry_run:
                self.stdout.write(f"[DRY RUN] {taggable.entity_type}: {len(missing)} sem tag")
                continue

            created = 0
            for obj in missing:
                try:
                    TagService.ensure_tag(obj, allocator)
                    created += 1
                except TagmanError as e:
                    total_failed += 1
                    self.stderr.write(f"{taggable.entity_type} #{obj.pk}: {e.code} {e.message}")

            total_created += created
            self.stdout.write(f"{taggable.entity_type}: {created} tag(s) gerada(s)")

        if dry_run:
            return

        style = self.style.SUCCESS if not total_failed else self.style.WARNING
        self.stdout.write(style(f"Total: {total_created} gerada(s), {total_failed} falha(s)"))
