from __future__ import annotations

from typing import Any, Dict, List

from django.db import transaction

from ..models import GENRES, PLACEHOLDER_COVER, Story
from .slugs import unique_slug

EDITABLE_STORY_FIELDS = (
    "title",
    "description",
    "long_description",
    "genre",
    "keywords",
    "is_mature",
    "audio_narration_enabled",
    "cover_image",
)


def normalize_keywords(value: Any) -> List[str]:
    """Accept "a, b" or ["a", "b"]; trim, drop blanks and case-insensitive repeats."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(v) for v in value]
    else:
        raise ValueError("keywords must be a comma-separated string or a list")
    out: List[str] = []
    seen = set()
    for item in items:
        text = item.strip()
        if text and text.lower() not in seen:
            seen.add(text.lower())
            out.append(text[:60])
    return out


def author_name_for(user) -> str:
    from apps.accounts.models import profile_for

    return profile_for(user).display_name


def create_story(owner, data: Dict[str, Any]) -> Story:
    title = str(data.get("title", "")).strip()
    description = str(data.get("description", "")).strip()
    genre = str(data.get("genre", "")).strip()
    if not title or not description or not genre:
        raise ValueError("Please fill out the title, summary, and select a genre.")
    if genre not in GENRES:
        raise ValueError(f"genre must be one of: {', '.join(GENRES)}")

    with transaction.atomic():
        story = Story(
            owner=owner,
            author_name=str(data.get("author_name") or "").strip() or (author_name_for(owner) if owner else ""),
            title=title,
            description=description,
            long_description=str(data.get("long_description", "")).strip(),
            genre=genre,
            keywords=normalize_keywords(data.get("keywords")),
            is_mature=bool(data.get("is_mature", False)),
            audio_narration_enabled=bool(data.get("audio_narration_enabled", False)),
            cover_image=str(data.get("cover_image") or "").strip() or PLACEHOLDER_COVER,
        )
        story.slug = unique_slug(title)
        story.save()
    return story


def update_story_settings(story: Story, data: Dict[str, Any]) -> List[str]:
    """Apply the editable fields present in data; returns the changed field names."""
    changed: List[str] = []
    for field in EDITABLE_STORY_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field == "keywords":
            value = normalize_keywords(value)
        elif field in {"is_mature", "audio_narration_enabled"}:
            value = bool(value)
        else:
            value = str(value if value is not None else "").strip()
        if field == "title" and not value:
            raise ValueError("title cannot be empty")
        if field == "genre" and value not in GENRES:
            raise ValueError(f"genre must be one of: {', '.join(GENRES)}")
        if field == "cover_image" and not value:
            value = PLACEHOLDER_COVER
        if getattr(story, field) != value:
            setattr(story, field, value)
            changed.append(field)

    if "title" in changed:
        new_slug = unique_slug(story.title, story)
        if new_slug != story.slug:
            story.slug = new_slug
            changed.append("slug")

    if changed:
        story.save(update_fields=changed + ["updated_at"])
    return changed
