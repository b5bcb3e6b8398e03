from __future__ import annotations

import uuid

from django.conf import settings
from django.db import models

from apps.stories.models import Chapter, Story


class RunStatus(models.TextChoices):
    QUEUED = "queued", "Queued"
    RUNNING = "running", "Running"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class RunMode(models.TextChoices):
    COVER_IMAGE = "cover_image", "Cover Image"
    CONTINUE_STORY = "continue_story", "Continue Story"
    RECOMMENDATIONS = "recommendations", "Recommendations"
    NARRATION = "narration", "Narration"


class AssistRun(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    trace_id = models.UUIDField(default=uuid.uuid4, editable=False, db_index=True)
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="assist_runs")
    story = models.ForeignKey(Story, on_delete=models.SET_NULL, null=True, blank=True, related_name="assist_runs")
    chapter = models.ForeignKey(Chapter, on_delete=models.SET_NULL, null=True, blank=True, related_name="assist_runs")

    mode = models.CharField(max_length=32, choices=RunMode.choices)
    status = models.CharField(max_length=16, choices=RunStatus.choices, default=RunStatus.QUEUED)

    input_payload = models.JSONField(default=dict, blank=True)
    output_payload = models.JSONField(default=dict, blank=True)
    timings_json = models.JSONField(default=dict, blank=True)
    error_message = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    started_at = models.DateTimeField(null=True, blank=True)
    finished_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="assistrun_status_created_idx"),
            models.Index(fields=["owner", "created_at"], name="assistrun_owner_created_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.mode} run for {self.owner} ({self.status})"
