from __future__ import annotations

from unittest.mock import MagicMock, patch

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from rest_framework.test import APITestCase

from apps.accounts.models import profile_for
from apps.assistants.models import AssistRun, RunMode, RunStatus
from apps.assistants.services.orchestration import AssistOrchestrator
from apps.assistants.tasks import execute_assist_run
from apps.stories.models import PLACEHOLDER_COVER, Chapter, Story


def _make_story(owner, title="Ember Road", **extra) -> Story:
    return Story.objects.create(
        owner=owner,
        author_name="Ash",
        slug=title.lower().replace(" ", "-"),
        title=title,
        description="A road of embers.",
        genre="Fantasy",
        **extra,
    )


class OrchestratorTests(TestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user(username="writer@example.com", password="pass12345")
        self.story = _make_story(self.user)
        self.service = MagicMock()

    def test_cover_run_stores_generated_cover_on_story(self):
        self.service.generate_cover_image.return_value = {
            "image_url": "data:image/png;base64,AAAA",
            "used_fallback": False,
            "fallback_stage": "",
        }
        run = AssistRun.objects.create(owner=self.user, story=self.story, mode=RunMode.COVER_IMAGE)
        output = AssistOrchestrator(service=self.service).execute(run)

        self.story.refresh_from_db()
        self.assertEqual(self.story.cover_image, "data:image/png;base64,AAAA")
        self.assertTrue(output["applied"])
        self.assertFalse(output["used_fallback"])
        self.assertEqual(output["fallback_stages"], [])
        self.assertIn("run_cover_image_ms", output["timings_ms"]["nodes"])
        self.assertEqual(output["progress"], {"node": "run_cover_image", "state": "completed"})
        self.service.generate_cover_image.assert_called_once_with(
            title="Ember Road", genre="Fantasy", summary="A road of embers."
        )

    def test_cover_fallback_is_reported_but_not_stored(self):
        self.service.generate_cover_image.return_value = {
            "image_url": "https://picsum.photos/seed/x/400/600",
            "used_fallback": True,
            "fallback_stage": "cover_image",
        }
        run = AssistRun.objects.create(owner=self.user, story=self.story, mode=RunMode.COVER_IMAGE)
        output = AssistOrchestrator(service=self.service).execute(run)

        self.story.refresh_from_db()
        self.assertEqual(self.story.cover_image, PLACEHOLDER_COVER)
        self.assertFalse(output["applied"])
        self.assertTrue(output["used_fallback"])
        self.assertEqual(output["fallback_stages"], ["cover_image"])

    def test_continue_story_uses_chapter_content_when_no_text_given(self):
        chapter = Chapter.objects.create(story=self.story, title="One", content="<p>The road burned.</p>", order=0)
        self.service.continue_story.return_value = {"continuation": "Smoke rose.", "used_fallback": False}
        run = AssistRun.objects.create(owner=self.user, story=self.story, chapter=chapter, mode=RunMode.CONTINUE_STORY)
        output = AssistOrchestrator(service=self.service).execute(run)

        self.service.continue_story.assert_called_once_with("<p>The road burned.</p>")
        self.assertEqual(output["continuation"], "Smoke rose.")

    def test_node_failure_is_recorded_in_progress(self):
        self.service.recommend_books.side_effect = ValueError("At least one preferred genre is required")
        run = AssistRun.objects.create(owner=self.user, mode=RunMode.RECOMMENDATIONS, input_payload={})

        with self.assertRaises(ValueError):
            AssistOrchestrator(service=self.service).execute(run)

        run.refresh_from_db()
        progress = run.output_payload["progress"]
        self.assertEqual(progress["node"], "run_recommendations")
        self.assertEqual(progress["state"], "failed")
        self.assertIn("preferred genre", progress["error"])
        self.assertIn("run_recommendations_ms", run.timings_json["nodes"])


@override_settings(OPENAI_API_KEY="")
class RunTaskTests(TestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user(username="runner@example.com", password="pass12345")

    @patch("apps.assistants.services.llm.GenerativeService._call_json")
    def test_execute_assist_run_marks_status_completed(self, mock_call_json):
        mock_call_json.return_value = {"continuation": "And then the lights went out."}
        run = AssistRun.objects.create(
            owner=self.user,
            mode=RunMode.CONTINUE_STORY,
            input_payload={"existing_text": "The party was loud."},
        )
        result = execute_assist_run(str(run.id))

        run.refresh_from_db()
        self.assertEqual(result.get("status"), "ok")
        self.assertEqual(run.status, RunStatus.COMPLETED)
        self.assertEqual(run.output_payload["continuation"], "And then the lights went out.")
        self.assertIsNotNone(run.started_at)
        self.assertIsNotNone(run.finished_at)
        self.assertIn("run_continue_story_ms", run.timings_json.get("nodes", {}))

    def test_execute_assist_run_records_failure(self):
        run = AssistRun.objects.create(owner=self.user, mode=RunMode.NARRATION, input_payload={})
        result = execute_assist_run(str(run.id))

        run.refresh_from_db()
        self.assertEqual(result.get("status"), "error")
        self.assertEqual(run.status, RunStatus.FAILED)
        self.assertIn("chapter", run.error_message)

    def test_execute_assist_run_unknown_id(self):
        result = execute_assist_run("00000000-0000-0000-0000-000000000000")
        self.assertEqual(result, {"status": "error", "error": "run_not_found"})


@override_settings(OPENAI_API_KEY="")
class AssistRunApiTests(APITestCase):
    def setUp(self):
        User = get_user_model()
        self.user = User.objects.create_user(username="owner@example.com", email="owner@example.com", password="pass12345")
        self.other = User.objects.create_user(username="other@example.com", email="other@example.com", password="pass12345")
        self.story = _make_story(self.user)
        self.chapter = Chapter.objects.create(story=self.story, title="One", content="<p>Embers.</p>", order=0)
        self.client.force_authenticate(self.user)

    def test_requires_authentication(self):
        self.client.force_authenticate(None)
        response = self.client.post("/api/assistants/runs/", {"mode": "recommendations"}, format="json")
        self.assertEqual(response.status_code, 401)

    @patch("apps.assistants.views.execute_assist_run.delay")
    def test_create_without_sync_queues_task(self, mock_delay):
        response = self.client.post(
            "/api/assistants/runs/",
            {"mode": "continue_story", "inputs": {"existing_text": "Hello."}},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["status"], RunStatus.QUEUED)
        mock_delay.assert_called_once_with(response.data["id"])

    @patch("apps.assistants.services.llm.GenerativeService._call_json")
    def test_sync_recommendations_default_to_profile_genres(self, mock_call_json):
        profile = profile_for(self.user)
        profile.favorite_genres = ["Mystery", "Horror"]
        profile.save()
        mock_call_json.return_value = {"recommendations": ["1. Rebecca", "2. The Shining"]}

        response = self.client.post("/api/assistants/runs/?sync=1", {"mode": "recommendations"}, format="json")

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["status"], RunStatus.COMPLETED)
        self.assertEqual(response.data["input_payload"]["preferred_genres"], ["Mystery", "Horror"])
        self.assertEqual(response.data["output_payload"]["recommendations"], ["Rebecca", "The Shining"])

    def test_recommendations_without_any_genre_is_rejected(self):
        response = self.client.post("/api/assistants/runs/", {"mode": "recommendations"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("inputs.preferred_genres", response.data)

    def test_cover_requires_owned_story(self):
        foreign = _make_story(self.other, title="Not Mine")
        response = self.client.post(
            "/api/assistants/runs/", {"mode": "cover_image", "story_id": str(foreign.id)}, format="json"
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("story_id", response.data)

    def test_sync_cover_without_api_key_fails_soft_with_placeholder(self):
        response = self.client.post(
            "/api/assistants/runs/?sync=1", {"mode": "cover_image", "story_id": str(self.story.id)}, format="json"
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["status"], RunStatus.COMPLETED)
        output = response.data["output_payload"]
        self.assertTrue(output["used_fallback"])
        self.assertTrue(output["image_url"].startswith("https://picsum.photos/seed/"))

    def test_continue_story_needs_text_or_chapter(self):
        response = self.client.post("/api/assistants/runs/", {"mode": "continue_story"}, format="json")
        self.assertEqual(response.status_code, 400)

    @patch("apps.assistants.views.execute_assist_run.delay")
    def test_narration_of_foreign_chapter_requires_published_and_enabled(self, mock_delay):
        foreign = _make_story(self.other, title="Their Story")
        chapter = Chapter.objects.create(story=foreign, title="Intro", content="<p>Hi.</p>", order=0)

        response = self.client.post(
            "/api/assistants/runs/", {"mode": "narration", "chapter_id": str(chapter.id)}, format="json"
        )
        self.assertEqual(response.status_code, 400)

        chapter.is_published = True
        chapter.save()
        foreign.audio_narration_enabled = True
        foreign.save()
        response = self.client.post(
            "/api/assistants/runs/", {"mode": "narration", "chapter_id": str(chapter.id)}, format="json"
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["chapter"], chapter.id)

    @patch("apps.assistants.views.execute_assist_run.delay")
    def test_runs_are_listed_per_owner(self, mock_delay):
        AssistRun.objects.create(owner=self.other, mode=RunMode.RECOMMENDATIONS)
        mine = AssistRun.objects.create(owner=self.user, mode=RunMode.RECOMMENDATIONS)

        response = self.client.get("/api/assistants/runs/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["id"] for row in response.data], [str(mine.id)])

        foreign = AssistRun.objects.filter(owner=self.other).first()
        response = self.client.get(f"/api/assistants/runs/{foreign.id}/")
        self.assertEqual(response.status_code, 404)
