from __future__ import annotations

from rest_framework import serializers

from .models import GENRES, Chapter, Story
from .services.authoring import create_story, normalize_keywords, update_story_settings
from .services.catalog import RATING_FILTERS, STATUS_FILTERS


class KeywordsField(serializers.Field):
    """Keywords arrive as "space opera, found family" or as a list."""

    def to_internal_value(self, data):
        try:
            return normalize_keywords(data)
        except ValueError as exc:
            raise serializers.ValidationError(str(exc))

    def to_representation(self, value):
        return list(value or [])


class ChapterSerializer(serializers.ModelSerializer):
    class Meta:
        model = Chapter
        fields = [
            "id",
            "story",
            "title",
            "content",
            "is_published",
            "order",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "story", "order", "created_at", "updated_at"]


class StorySerializer(serializers.ModelSerializer):
    owner = serializers.PrimaryKeyRelatedField(read_only=True)
    genre = serializers.ChoiceField(choices=GENRES)
    keywords = KeywordsField(required=False)
    chapters = ChapterSerializer(many=True, read_only=True)
    is_published = serializers.BooleanField(read_only=True)
    status = serializers.CharField(read_only=True)

    class Meta:
        model = Story
        fields = [
            "id",
            "owner",
            "author_name",
            "slug",
            "title",
            "description",
            "long_description",
            "cover_image",
            "genre",
            "keywords",
            "is_mature",
            "audio_narration_enabled",
            "is_published",
            "status",
            "chapters",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "slug", "created_at", "updated_at"]
        extra_kwargs = {
            "description": {"required": True, "allow_blank": False},
            "author_name": {"required": False},
            "cover_image": {"required": False},
        }

    def create(self, validated_data):
        owner = validated_data.pop("owner", None)
        try:
            return create_story(owner, validated_data)
        except ValueError as exc:
            raise serializers.ValidationError({"detail": str(exc)})

    def update(self, instance, validated_data):
        author_name = validated_data.pop("author_name", None)
        try:
            update_story_settings(instance, validated_data)
        except ValueError as exc:
            raise serializers.ValidationError({"detail": str(exc)})
        if author_name is not None and author_name.strip() != instance.author_name:
            instance.author_name = author_name.strip()
            instance.save(update_fields=["author_name", "updated_at"])
        return instance


class LibraryStorySerializer(serializers.ModelSerializer):
    status = serializers.SerializerMethodField()

    class Meta:
        model = Story
        fields = [
            "id",
            "slug",
            "title",
            "author_name",
            "description",
            "long_description",
            "cover_image",
            "genre",
            "keywords",
            "is_mature",
            "audio_narration_enabled",
            "status",
        ]
        read_only_fields = fields

    def get_status(self, obj):
        # Public vocabulary matches the search filter.
        return "published" if obj.is_published else "ongoing"


class ReaderChapterSerializer(serializers.ModelSerializer):
    label = serializers.SerializerMethodField()

    class Meta:
        model = Chapter
        fields = ["id", "title", "content", "order", "label"]
        read_only_fields = fields

    def get_label(self, obj):
        positions = self.context.get("positions", {})
        number = positions.get(str(obj.id), obj.order + 1)
        return f"Chapter {number}: {obj.title}"


class SearchParamsSerializer(serializers.Serializer):
    q = serializers.CharField(required=False, allow_blank=True, default="")
    genres = serializers.CharField(required=False, allow_blank=True, default="")
    status = serializers.ChoiceField(choices=STATUS_FILTERS, required=False, default="all")
    rating = serializers.ChoiceField(choices=RATING_FILTERS, required=False, default="all")

    def validate_genres(self, value):
        return [g.strip() for g in str(value or "").split(",") if g.strip()]


class ChapterMoveSerializer(serializers.Serializer):
    source_index = serializers.IntegerField(min_value=0)
    destination_index = serializers.IntegerField(min_value=0, required=False, allow_null=True)


class ChapterReorderSerializer(serializers.Serializer):
    chapter_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)


class DraftStoryFieldsSerializer(serializers.Serializer):
    title = serializers.CharField(required=False, allow_blank=False, max_length=160)
    description = serializers.CharField(required=False, allow_blank=True)
    long_description = serializers.CharField(required=False, allow_blank=True)
    genre = serializers.ChoiceField(choices=GENRES, required=False)
    keywords = KeywordsField(required=False)
    is_mature = serializers.BooleanField(required=False)
    audio_narration_enabled = serializers.BooleanField(required=False)
    cover_image = serializers.CharField(required=False, allow_blank=True)


class DraftChapterSerializer(serializers.Serializer):
    id = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    title = serializers.CharField(required=False, allow_blank=True)
    content = serializers.CharField(required=False, allow_blank=True, allow_null=True, trim_whitespace=False)
    is_published = serializers.BooleanField(required=False)


class DraftSnapshotSerializer(serializers.Serializer):
    story = DraftStoryFieldsSerializer(required=False)
    chapters = DraftChapterSerializer(many=True, required=False)

    def validate(self, attrs):
        if self.context.get("creating"):
            story = attrs.get("story") or {}
            missing = [f for f in ("title", "description", "genre") if not str(story.get(f, "")).strip()]
            if missing:
                raise serializers.ValidationError(
                    {"story": f"Please fill out the title, summary, and select a genre (missing: {', '.join(missing)})."}
                )
        return attrs
