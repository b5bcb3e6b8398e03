from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from apps.stories.services.catalog import seed_catalog


class Command(BaseCommand):
    help = "Load the built-in catalog books. Safe to re-run; entries are matched by slug."

    def handle(self, *args, **options):
        try:
            created, updated = seed_catalog()
        except ValueError as exc:
            raise CommandError(str(exc)) from exc
        self.stdout.write(
            self.style.SUCCESS(f"Catalog seeded: {created} created, {updated} updated.")
        )
