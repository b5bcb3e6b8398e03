from __future__ import annotations

from django.contrib.auth import get_user_model
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient, APITestCase

from apps.stories.models import Chapter, Story
from apps.stories.services.catalog import seed_catalog


class StoryOwnershipTests(APITestCase):
    def setUp(self):
        user_model = get_user_model()
        self.user_a = user_model.objects.create_user(username="a@example.com", email="a@example.com", password="pass12345")
        self.user_b = user_model.objects.create_user(username="b@example.com", email="b@example.com", password="pass12345")
        self.token_a = Token.objects.create(user=self.user_a)
        self.token_b = Token.objects.create(user=self.user_b)
        self.story_a = Story.objects.create(
            owner=self.user_a, author_name="a", slug="a-story", title="A Story", description="x", genre="Mystery"
        )
        self.chapter_a = Chapter.objects.create(story=self.story_a, title="One", order=0)

    def test_unauthenticated_requests_receive_401(self):
        client = APIClient()
        self.assertEqual(client.get("/api/stories/").status_code, 401)
        self.assertEqual(client.get(f"/api/chapters/{self.chapter_a.id}/").status_code, 401)
        self.assertEqual(client.post("/api/stories/drafts/", {}, format="json").status_code, 401)

    def test_user_cannot_touch_other_users_story(self):
        self.client.credentials(HTTP_AUTHORIZATION=f"Token {self.token_b.key}")
        base = f"/api/stories/{self.story_a.id}/"
        self.assertEqual(self.client.get(base).status_code, 404)
        self.assertEqual(self.client.patch(base, {"title": "Mine"}, format="json").status_code, 404)
        self.assertEqual(self.client.post(f"{base}chapters/", {"title": "X"}, format="json").status_code, 404)
        self.assertEqual(self.client.put(f"{base}draft/", {"chapters": []}, format="json").status_code, 404)
        self.assertEqual(self.client.delete(f"/api/chapters/{self.chapter_a.id}/").status_code, 404)
        self.assertTrue(Chapter.objects.filter(pk=self.chapter_a.pk).exists())

    def test_list_is_owner_scoped(self):
        self.client.credentials(HTTP_AUTHORIZATION=f"Token {self.token_b.key}")
        self.assertEqual(self.client.get("/api/stories/").data, [])


class StoryAuthoringApiTests(APITestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user(
            username="writer@example.com", email="writer@example.com", password="pass12345"
        )
        self.client.force_authenticate(self.user)

    def _create_story(self, **overrides):
        payload = {"title": "North Wind", "description": "Cold tales.", "genre": "Adventure", "keywords": "ice, wind"}
        payload.update(overrides)
        return self.client.post("/api/stories/", payload, format="json")

    def test_create_story(self):
        response = self._create_story()
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["slug"], "north-wind")
        self.assertEqual(response.data["author_name"], "writer")
        self.assertEqual(response.data["keywords"], ["ice", "wind"])
        self.assertEqual(response.data["status"], "draft")
        self.assertEqual(response.data["chapters"], [])

    def test_create_requires_description_and_known_genre(self):
        self.assertEqual(self._create_story(description="").status_code, 400)
        self.assertEqual(self._create_story(genre="Cooking").status_code, 400)

    def test_retitle_recomputes_slug(self):
        story_id = self._create_story().data["id"]
        response = self.client.patch(f"/api/stories/{story_id}/", {"title": "South Wind"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["slug"], "south-wind")

    def test_chapter_lifecycle(self):
        story_id = self._create_story().data["id"]
        base = f"/api/stories/{story_id}/chapters/"
        first = self.client.post(base, {"title": "One", "content": "<p>1</p>"}, format="json")
        second = self.client.post(base, {}, format="json")
        self.assertEqual(first.status_code, 201)
        self.assertEqual(second.data["title"], "New Chapter")
        self.assertEqual(second.data["order"], 1)

        moved = self.client.post(f"{base}move/", {"source_index": 1, "destination_index": 0}, format="json")
        self.assertEqual([c["title"] for c in moved.data], ["New Chapter", "One"])

        bad = self.client.post(f"{base}move/", {"source_index": 4, "destination_index": 0}, format="json")
        self.assertEqual(bad.status_code, 400)
        self.assertIn("detail", bad.data)

        reordered = self.client.post(f"{base}reorder/", {"chapter_ids": [first.data["id"]]}, format="json")
        self.assertEqual([c["title"] for c in reordered.data], ["One", "New Chapter"])

        toggled = self.client.post(f"/api/chapters/{first.data['id']}/toggle-publish/")
        self.assertTrue(toggled.data["is_published"])

        published = self.client.post(f"/api/stories/{story_id}/publish/")
        self.assertEqual(published.data["chapters_published"], 1)
        self.assertEqual(published.data["status"], "published")

        deleted = self.client.delete(f"/api/chapters/{first.data['id']}/")
        self.assertEqual(deleted.status_code, 204)
        remaining = self.client.get(base).data
        self.assertEqual([(c["title"], c["order"]) for c in remaining], [("New Chapter", 0)])

    def test_draft_round_trip_through_api(self):
        created = self.client.post(
            "/api/stories/drafts/",
            {
                "story": {"title": "Lantern", "description": "Light.", "genre": "Horror"},
                "chapters": [{"title": "Dark", "content": "<p>...</p>"}],
            },
            format="json",
        )
        self.assertEqual(created.status_code, 201)
        story_id = created.data["id"]
        self.assertEqual(created.data["slug"], "lantern")

        snapshot = self.client.get(f"/api/stories/{story_id}/draft/").data
        snapshot["story"]["title"] = "Lanterns"
        snapshot["chapters"].append({"title": "Dawn"})
        synced = self.client.put(f"/api/stories/{story_id}/draft/", snapshot, format="json")

        self.assertEqual(synced.status_code, 200)
        self.assertTrue(synced.data["slug_changed"])
        self.assertEqual(synced.data["slug"], "lanterns")
        self.assertEqual(synced.data["counts"]["created"], 1)
        self.assertEqual(len(synced.data["snapshot"]["chapters"]), 2)

    def test_draft_push_without_content_keeps_chapter_text(self):
        story_id = self._create_story().data["id"]
        chapter = self.client.post(
            f"/api/stories/{story_id}/chapters/", {"title": "One", "content": "<p>precious text</p>"}, format="json"
        ).data
        response = self.client.put(
            f"/api/stories/{story_id}/draft/",
            {"chapters": [{"id": chapter["id"], "title": "One renamed"}]},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        stored = Chapter.objects.get(pk=chapter["id"])
        self.assertEqual(stored.title, "One renamed")
        self.assertEqual(stored.content, "<p>precious text</p>")

    def test_new_draft_requires_basics(self):
        response = self.client.post("/api/stories/drafts/", {"story": {"title": "Only"}}, format="json")
        self.assertEqual(response.status_code, 400)


class LibraryAndReaderApiTests(APITestCase):
    def setUp(self):
        seed_catalog()
        self.user = get_user_model().objects.create_user(username="pub@example.com", password="pass12345")
        self.story = Story.objects.create(
            owner=self.user, author_name="Pub Lisher", slug="bright-lines", title="Bright Lines",
            description="Neon.", genre="Thriller", audio_narration_enabled=True,
        )
        Chapter.objects.create(story=self.story, title="Hidden", order=0, is_published=False)
        Chapter.objects.create(story=self.story, title="Shown", order=1, is_published=True)
        self.draft_only = Story.objects.create(
            owner=self.user, author_name="Pub Lisher", slug="not-yet", title="Not Yet",
            description="Soon.", genre="Thriller",
        )
        self.client = APIClient()

    def test_library_is_public_and_filters(self):
        response = self.client.get("/api/library/stories/", {"q": "neon", "genres": "Thriller,Horror"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([s["slug"] for s in response.data], ["bright-lines"])
        self.assertEqual(response.data[0]["status"], "ongoing")

    def test_library_rejects_unknown_status(self):
        response = self.client.get("/api/library/stories/", {"status": "done"})
        self.assertEqual(response.status_code, 400)

    def test_library_detail_hides_undiscoverable(self):
        dune = self.client.get("/api/library/stories/dune/")
        self.assertEqual(dune.status_code, 200)
        self.assertEqual(dune.data["status"], "ongoing")
        self.assertEqual(self.client.get("/api/library/stories/not-yet/").status_code, 404)
        by_id = self.client.get(f"/api/library/stories/{self.story.id}/")
        self.assertEqual(by_id.data["slug"], "bright-lines")

    def test_genres(self):
        response = self.client.get("/api/library/genres/")
        self.assertIn("Fantasy", response.data["genres"])

    def test_reader_shows_published_chapters_with_labels(self):
        response = self.client.get("/api/read/bright-lines/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual([c["label"] for c in response.data["chapters"]], ["Chapter 1: Shown"])
        self.assertTrue(response.data["narration_available"])

    def test_reader_404_for_unpublished_story(self):
        self.assertEqual(self.client.get("/api/read/not-yet/").status_code, 404)

    def test_author_page(self):
        response = self.client.get("/api/library/authors/Pub%20Lisher/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual([s["slug"] for s in response.data["stories"]], ["bright-lines"])
        self.assertEqual(response.data["author"]["name"], "Pub Lisher")
        self.assertTrue(response.data["author"]["bio"])

    def test_unknown_author_is_404(self):
        self.assertEqual(self.client.get("/api/library/authors/Nobody/").status_code, 404)
