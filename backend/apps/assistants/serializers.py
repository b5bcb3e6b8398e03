from __future__ import annotations

from django.db.models import Q
from rest_framework import serializers

from apps.accounts.models import profile_for
from apps.stories.models import Chapter, Story

from .models import AssistRun, RunMode


class AssistRunSerializer(serializers.ModelSerializer):
    class Meta:
        model = AssistRun
        fields = [
            "id",
            "trace_id",
            "story",
            "chapter",
            "mode",
            "status",
            "input_payload",
            "output_payload",
            "timings_json",
            "error_message",
            "created_at",
            "started_at",
            "finished_at",
        ]
        read_only_fields = fields


class AssistRunCreateSerializer(serializers.Serializer):
    mode = serializers.ChoiceField(choices=RunMode.choices)
    story_id = serializers.UUIDField(required=False, allow_null=True)
    chapter_id = serializers.UUIDField(required=False, allow_null=True)
    inputs = serializers.JSONField(required=False, default=dict)

    def validate_inputs(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("inputs must be an object")
        return value

    def validate(self, attrs):
        user = self.context["request"].user
        mode = attrs["mode"]
        inputs = dict(attrs.get("inputs") or {})
        story = None
        chapter = None

        if mode == RunMode.COVER_IMAGE:
            story = Story.objects.filter(id=attrs.get("story_id"), owner=user).first()
            if story is None:
                raise serializers.ValidationError({"story_id": "Invalid story_id"})

        if mode == RunMode.CONTINUE_STORY:
            if attrs.get("chapter_id"):
                chapter = (
                    Chapter.objects.select_related("story")
                    .filter(id=attrs["chapter_id"], story__owner=user)
                    .first()
                )
                if chapter is None:
                    raise serializers.ValidationError({"chapter_id": "Invalid chapter_id"})
                story = chapter.story
            elif not str(inputs.get("existing_text", "")).strip():
                raise serializers.ValidationError(
                    {"inputs.existing_text": "existing_text or chapter_id is required for continue_story mode"}
                )

        if mode == RunMode.RECOMMENDATIONS:
            genres = inputs.get("preferred_genres")
            if genres in (None, "", []):
                genres = profile_for(user).favorite_genres
            if isinstance(genres, str):
                genres = genres.split(",")
            genres = [str(g).strip() for g in (genres or []) if str(g).strip()]
            if not genres:
                raise serializers.ValidationError(
                    {"inputs.preferred_genres": "preferred_genres is required for recommendations mode"}
                )
            inputs["preferred_genres"] = genres

        if mode == RunMode.NARRATION:
            if not attrs.get("chapter_id"):
                raise serializers.ValidationError({"chapter_id": "chapter_id is required for narration mode"})
            readable = Q(story__owner=user) | Q(is_published=True, story__audio_narration_enabled=True)
            chapter = (
                Chapter.objects.select_related("story")
                .filter(readable, id=attrs["chapter_id"])
                .first()
            )
            if chapter is None:
                raise serializers.ValidationError({"chapter_id": "Invalid chapter_id"})
            story = chapter.story

        attrs["inputs"] = inputs
        attrs["story"] = story
        attrs["chapter"] = chapter
        return attrs
