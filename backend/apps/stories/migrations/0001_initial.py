import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Story",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("author_name", models.CharField(blank=True, default="", max_length=120)),
                ("slug", models.SlugField(max_length=200, unique=True)),
                ("title", models.CharField(max_length=160)),
                ("description", models.TextField(blank=True, default="")),
                ("long_description", models.TextField(blank=True, default="")),
                ("cover_image", models.TextField(blank=True, default="https://placehold.co/300x450.png")),
                ("genre", models.CharField(max_length=80)),
                ("keywords", models.JSONField(blank=True, default=list)),
                ("is_mature", models.BooleanField(default=False)),
                ("audio_narration_enabled", models.BooleanField(default=False)),
                ("metadata_json", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "owner",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="stories",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "stories",
                "ordering": ["created_at", "title"],
            },
        ),
        migrations.CreateModel(
            name="Chapter",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("title", models.CharField(default="New Chapter", max_length=200)),
                ("content", models.TextField(blank=True, default="<p></p>")),
                ("is_published", models.BooleanField(default=False)),
                ("order", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "story",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="chapters",
                        to="stories.story",
                    ),
                ),
            ],
            options={
                "ordering": ["story", "order"],
                "indexes": [
                    models.Index(fields=["story", "order"], name="chapter_story_order_idx"),
                    models.Index(fields=["story", "is_published"], name="chapter_story_published_idx"),
                ],
            },
        ),
    ]
