from __future__ import annotations

from typing import Any, Dict, List

from django.contrib.auth import get_user_model
from rest_framework import serializers

from apps.stories.models import GENRES, Story
from apps.stories.serializers import LibraryStorySerializer
from apps.stories.services.catalog import discoverable_stories

from .models import DEFAULT_PROFILE_PICTURE, ReadingListEntry, Shelf, UserProfile


class SignUpSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(min_length=6, write_only=True, trim_whitespace=False)

    def validate_email(self, value):
        email = value.strip().lower()
        if get_user_model().objects.filter(username__iexact=email).exists():
            raise serializers.ValidationError("An account with this email already exists.")
        return email

    def create(self, validated_data):
        return get_user_model().objects.create_user(
            username=validated_data["email"],
            email=validated_data["email"],
            password=validated_data["password"],
        )


class UserProfileSerializer(serializers.ModelSerializer):
    email = serializers.EmailField(source="user.email", read_only=True)
    favorite_genres = serializers.ListField(
        child=serializers.ChoiceField(choices=GENRES), required=False
    )

    class Meta:
        model = UserProfile
        fields = ["display_name", "email", "bio", "profile_picture", "favorite_genres", "updated_at"]
        read_only_fields = ["email", "updated_at"]

    def validate_display_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("display_name cannot be empty")
        return value

    def validate_favorite_genres(self, value):
        return list(dict.fromkeys(value))

    def validate_profile_picture(self, value):
        return value.strip() or DEFAULT_PROFILE_PICTURE


class ReadingListEntrySerializer(serializers.ModelSerializer):
    story = LibraryStorySerializer(read_only=True)
    story_id = serializers.PrimaryKeyRelatedField(
        source="story", queryset=Story.objects.all(), write_only=True
    )
    shelf = serializers.ChoiceField(choices=Shelf.choices)

    class Meta:
        model = ReadingListEntry
        fields = ["story", "story_id", "shelf", "updated_at"]
        read_only_fields = ["updated_at"]

    def validate_story_id(self, value):
        request = self.context.get("request")
        owned = request is not None and value.owner_id == request.user.id
        if not owned and not discoverable_stories().filter(pk=value.pk).exists():
            raise serializers.ValidationError("Invalid story")
        return value


def shelves_payload(entries: List[ReadingListEntry]) -> Dict[str, Any]:
    grouped: Dict[str, List[Any]] = {choice: [] for choice in Shelf.values}
    for entry in entries:
        grouped.setdefault(entry.shelf, []).append(ReadingListEntrySerializer(entry).data)
    return grouped


def author_profile_payload(author_name: str, stories: List[Story]) -> Dict[str, Any]:
    """Public author card; authored stories use the owner's profile when there is one."""
    owner = next((s.owner for s in stories if s.owner_id is not None), None)
    profile = UserProfile.objects.filter(user=owner).first() if owner is not None else None
    if profile is not None:
        bio = profile.bio
        picture = profile.profile_picture or DEFAULT_PROFILE_PICTURE
    else:
        bio = ""
        picture = DEFAULT_PROFILE_PICTURE
    if not bio:
        genre = stories[0].genre if stories else "fiction"
        bio = (
            f"An author known for captivating stories in the {genre} genre. "
            f"{author_name} creates immersive worlds and unforgettable characters."
        )
    return {
        "name": author_name,
        "bio": bio,
        "profile_picture": picture,
        "story_count": len(stories),
        "genres": sorted({s.genre for s in stories}),
    }
