from __future__ import annotations

from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase

from apps.stories.models import Chapter, Story
from apps.stories.services.catalog import (
    CATALOG_BOOKS,
    discoverable_stories,
    search_stories,
    seed_catalog,
    titles_for_genres,
)


class CatalogSearchTests(TestCase):
    def setUp(self):
        seed_catalog()
        self.user = get_user_model().objects.create_user(username="author@example.com", password="pass12345")

        self.finished = Story.objects.create(
            owner=self.user, author_name="Nova Reyes", slug="orbit-of-ash", title="Orbit of Ash",
            description="Colony ships adrift.", genre="Science Fiction", is_mature=True,
        )
        Chapter.objects.create(story=self.finished, title="One", is_published=True, order=0)
        Chapter.objects.create(story=self.finished, title="Two", is_published=True, order=1)

        self.ongoing = Story.objects.create(
            owner=self.user, author_name="Nova Reyes", slug="salt-crown", title="Salt Crown",
            description="A queen of the tides.", genre="Fantasy",
        )
        Chapter.objects.create(story=self.ongoing, title="One", is_published=True, order=0)
        Chapter.objects.create(story=self.ongoing, title="Two", is_published=False, order=1)

        self.private = Story.objects.create(
            owner=self.user, author_name="Nova Reyes", slug="hidden-drafts", title="Hidden Drafts",
            description="Not yet.", genre="Fantasy",
        )
        Chapter.objects.create(story=self.private, title="One", is_published=False, order=0)

    def _slugs(self, qs):
        return {story.slug for story in qs}

    def test_discoverable_includes_catalog_and_published_work_only(self):
        slugs = self._slugs(discoverable_stories())
        self.assertEqual(len(slugs), len(CATALOG_BOOKS) + 2)
        self.assertIn("orbit-of-ash", slugs)
        self.assertIn("salt-crown", slugs)
        self.assertNotIn("hidden-drafts", slugs)

    def test_query_matches_title_author_description_and_genre(self):
        self.assertIn("dune", self._slugs(search_stories(query="DUNE")))
        self.assertEqual(self._slugs(search_stories(query="nova reyes")), {"orbit-of-ash", "salt-crown"})
        self.assertEqual(self._slugs(search_stories(query="tides")), {"salt-crown"})
        self.assertIn("orbit-of-ash", self._slugs(search_stories(query="science fic")))

    def test_empty_query_matches_everything(self):
        self.assertEqual(search_stories(query="  ").count(), discoverable_stories().count())

    def test_genre_filter_is_exact(self):
        results = search_stories(genres=["Fantasy", "Horror"])
        self.assertTrue(all(story.genre in {"Fantasy", "Horror"} for story in results))
        self.assertIn("salt-crown", self._slugs(results))
        self.assertEqual(search_stories(genres=["fantasy"]).count(), 0)

    def test_status_filter(self):
        self.assertEqual(self._slugs(search_stories(status="published")), {"orbit-of-ash"})
        ongoing = self._slugs(search_stories(status="ongoing"))
        self.assertIn("salt-crown", ongoing)
        self.assertIn("dune", ongoing)
        self.assertNotIn("orbit-of-ash", ongoing)

    def test_rating_filter(self):
        self.assertEqual(self._slugs(search_stories(rating="mature")), {"orbit-of-ash"})

    def test_filters_combine(self):
        self.assertEqual(
            self._slugs(search_stories(query="nova", genres=["Fantasy"], status="ongoing")),
            {"salt-crown"},
        )

    def test_unknown_status_or_rating_is_rejected(self):
        with self.assertRaises(ValueError):
            search_stories(status="finished")
        with self.assertRaises(ValueError):
            search_stories(rating="teen")

    def test_titles_for_genres(self):
        titles = titles_for_genres(["Science Fiction"], limit=10)
        self.assertIn("Dune", titles)
        self.assertIn("Orbit of Ash", titles)
        self.assertEqual(titles_for_genres([]), [])


class SeedCatalogTests(TestCase):
    def test_seed_is_idempotent(self):
        self.assertEqual(seed_catalog(), (len(CATALOG_BOOKS), 0))
        self.assertEqual(seed_catalog(), (0, 0))
        self.assertEqual(Story.objects.filter(owner__isnull=True).count(), len(CATALOG_BOOKS))

    def test_seed_refreshes_changed_entries(self):
        seed_catalog()
        Story.objects.filter(slug="dune").update(description="stale")
        self.assertEqual(seed_catalog(), (0, 1))
        self.assertNotEqual(Story.objects.get(slug="dune").description, "stale")

    def test_seed_skips_slug_taken_by_authored_story(self):
        user = get_user_model().objects.create_user(username="fan@example.com", password="pass12345")
        Story.objects.create(owner=user, slug="dune", title="Dune", description="Fan work.", genre="Fantasy")
        created, _ = seed_catalog()
        self.assertEqual(created, len(CATALOG_BOOKS) - 1)
        self.assertEqual(Story.objects.get(slug="dune").owner, user)

    def test_unknown_genre_is_rejected(self):
        with self.assertRaises(ValueError):
            seed_catalog([{"title": "Odd", "genre": "Cooking"}])

    def test_management_command_reports_counts(self):
        out = StringIO()
        call_command("seed_catalog", stdout=out)
        self.assertIn(f"{len(CATALOG_BOOKS)} created", out.getvalue())
