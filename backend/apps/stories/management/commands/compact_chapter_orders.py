from __future__ import annotations

from django.core.management.base import BaseCommand

from apps.stories.models import Story
from apps.stories.services.chapters import compact_orders


class Command(BaseCommand):
    help = "Renumber chapter orders to 0..n-1 for stories whose ordering has gaps or duplicates."

    def add_arguments(self, parser):
        parser.add_argument("--story-id", type=str, default="", help="Optional story UUID filter.")

    def handle(self, *args, **options):
        story_id = str(options.get("story_id", "")).strip()
        qs = Story.objects.all().order_by("created_at")
        if story_id:
            qs = qs.filter(id=story_id)

        total = 0
        repaired = 0
        for story in qs:
            total += 1
            orders = list(story.chapters.order_by("order", "created_at").values_list("order", flat=True))
            if orders != list(range(len(orders))):
                compact_orders(story)
                repaired += 1

        self.stdout.write(self.style.SUCCESS(f"Repaired chapter order for {repaired}/{total} story(ies)."))
