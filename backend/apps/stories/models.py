from __future__ import annotations

import uuid

from django.conf import settings
from django.db import models

GENRES = [
    "Science Fiction",
    "Fantasy",
    "Mystery",
    "Thriller",
    "Romance",
    "Historical Fiction",
    "Horror",
    "Classic Literature",
    "Adventure",
]

PLACEHOLDER_COVER = "https://placehold.co/300x450.png"
NEW_CHAPTER_TITLE = "New Chapter"
NEW_CHAPTER_CONTENT = "<p></p>"


class StoryStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    PUBLISHED = "published", "Published"


class Story(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="stories",
    )
    author_name = models.CharField(max_length=120, blank=True, default="")
    slug = models.SlugField(max_length=200, unique=True)
    title = models.CharField(max_length=160)
    description = models.TextField(blank=True, default="")
    long_description = models.TextField(blank=True, default="")
    cover_image = models.TextField(blank=True, default=PLACEHOLDER_COVER)
    genre = models.CharField(max_length=80)
    keywords = models.JSONField(default=list, blank=True)
    is_mature = models.BooleanField(default=False)
    audio_narration_enabled = models.BooleanField(default=False)
    metadata_json = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at", "title"]
        verbose_name_plural = "stories"

    def __str__(self) -> str:
        return f"{self.title} ({self.slug})"

    @property
    def is_catalog_entry(self) -> bool:
        return self.owner_id is None

    @property
    def is_published(self) -> bool:
        flags = [c.is_published for c in self.chapters.all()]
        return bool(flags) and all(flags)

    @property
    def status(self) -> str:
        return StoryStatus.PUBLISHED if self.is_published else StoryStatus.DRAFT


class Chapter(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    story = models.ForeignKey(Story, on_delete=models.CASCADE, related_name="chapters")
    title = models.CharField(max_length=200, default=NEW_CHAPTER_TITLE)
    content = models.TextField(blank=True, default=NEW_CHAPTER_CONTENT)
    is_published = models.BooleanField(default=False)
    order = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["story", "order"]
        indexes = [
            models.Index(fields=["story", "order"], name="chapter_story_order_idx"),
            models.Index(fields=["story", "is_published"], name="chapter_story_published_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.story.title}: {self.title} (#{self.order})"
