from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Set

from django.db import transaction

from ..models import NEW_CHAPTER_CONTENT, NEW_CHAPTER_TITLE, Chapter, Story
from .authoring import EDITABLE_STORY_FIELDS, create_story, update_story_settings
from .chapters import ordered_chapters

logger = logging.getLogger(__name__)


def build_snapshot(story: Story) -> Dict[str, Any]:
    """Canonical draft shape the editor keeps in local storage."""
    story_fields = {field: getattr(story, field) for field in EDITABLE_STORY_FIELDS}
    story_fields.update({"id": str(story.id), "slug": story.slug, "author_name": story.author_name})
    return {
        "story": story_fields,
        "chapters": [
            {
                "id": str(c.id),
                "title": c.title,
                "content": c.content,
                "is_published": c.is_published,
                "order": c.order,
            }
            for c in ordered_chapters(story)
        ],
    }


def sync_story_draft(story: Story, snapshot: Dict[str, Any]) -> Dict[str, Any]:
    """
    Make the stored story equal to a pushed draft snapshot.

    Story fields present in the snapshot overwrite stored values. When the
    snapshot carries a chapter list it is authoritative: known ids are
    updated, unknown ids are created, stored chapters missing from the list
    are deleted and orders follow list position.
    """
    if not isinstance(snapshot, dict):
        raise ValueError("draft snapshot must be an object")
    story_fields = snapshot.get("story") or {}
    if not isinstance(story_fields, dict):
        raise ValueError("draft story must be an object")
    chapters_payload = snapshot.get("chapters")
    if chapters_payload is not None and not isinstance(chapters_payload, list):
        raise ValueError("draft chapters must be an array")

    counts = {"created": 0, "updated": 0, "deleted": 0, "unchanged": 0}
    previous_slug = story.slug
    with transaction.atomic():
        changed_fields = update_story_settings(story, story_fields)
        if chapters_payload is not None:
            counts = _sync_chapters(story, chapters_payload)

    logger.info(
        "Synced draft for story %s: fields=%s chapters=%s",
        story.pk,
        changed_fields,
        counts,
    )
    return {
        "previous_slug": previous_slug,
        "slug": story.slug,
        "slug_changed": previous_slug != story.slug,
        "changed_fields": changed_fields,
        "counts": counts,
        "snapshot": build_snapshot(story),
    }


def create_story_from_draft(owner, snapshot: Dict[str, Any]) -> Dict[str, Any]:
    """First save of a story that so far only existed as a local draft."""
    if not isinstance(snapshot, dict):
        raise ValueError("draft snapshot must be an object")
    story_fields = snapshot.get("story") or {}
    if not isinstance(story_fields, dict):
        raise ValueError("draft story must be an object")
    with transaction.atomic():
        story = create_story(owner, story_fields)
        result = sync_story_draft(story, {"chapters": snapshot.get("chapters") or []})
    result["previous_slug"] = ""
    result["slug_changed"] = True
    return {"story": story, **result}


def _sync_chapters(story: Story, items: List[Any]) -> Dict[str, int]:
    counts = {"created": 0, "updated": 0, "deleted": 0, "unchanged": 0}
    existing = {str(c.id): c for c in story.chapters.all()}
    kept: Set[str] = set()
    seen_keys: Set[str] = set()

    for position, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValueError(f"draft chapter {position + 1} must be an object")
        key = _normalize_id(item.get("id"))
        if key and key in seen_keys:
            raise ValueError(f"draft chapter id {key} appears more than once")
        if key:
            seen_keys.add(key)

        chapter = existing.get(key)
        if chapter is None:
            values = _chapter_values(item, NEW_CHAPTER_TITLE, NEW_CHAPTER_CONTENT, False)
            chapter = Chapter.objects.create(id=_adoptable_id(key), story=story, order=position, **values)
            kept.add(str(chapter.id))
            counts["created"] += 1
            continue

        kept.add(key)
        # Keys missing from a known chapter keep their stored values.
        values = _chapter_values(item, chapter.title, chapter.content, chapter.is_published)
        values["order"] = position
        changed = [field for field, value in values.items() if getattr(chapter, field) != value]
        if not changed:
            counts["unchanged"] += 1
            continue
        for field in changed:
            setattr(chapter, field, values[field])
        chapter.save(update_fields=changed + ["updated_at"])
        counts["updated"] += 1

    stale = [chapter_id for chapter_id in existing if chapter_id not in kept]
    if stale:
        Chapter.objects.filter(story=story, id__in=stale).delete()
        counts["deleted"] = len(stale)
    return counts


def _chapter_values(item: Dict[str, Any], title: str, content: str, is_published: bool) -> Dict[str, Any]:
    if "title" in item:
        title = str(item.get("title") or "").strip() or NEW_CHAPTER_TITLE
    if item.get("content") is not None:
        content = str(item["content"])
    if "is_published" in item:
        is_published = bool(item["is_published"])
    return {"title": title, "content": content, "is_published": is_published}


def _adoptable_id(raw: str) -> uuid.UUID:
    """Keep a client-generated UUID when it is well formed and unused."""
    if raw:
        try:
            candidate = uuid.UUID(raw)
        except ValueError:
            candidate = None
        if candidate is not None and not Chapter.objects.filter(id=candidate).exists():
            return candidate
    return uuid.uuid4()


def _normalize_id(raw: Any) -> str:
    text = str(raw or "").strip()
    try:
        return str(uuid.UUID(text))
    except ValueError:
        return text
