from __future__ import annotations

from typing import Any, Iterable, List

from django.db import transaction
from django.utils import timezone

from ..models import NEW_CHAPTER_CONTENT, NEW_CHAPTER_TITLE, Chapter, Story


def ordered_chapters(story: Story, published_only: bool = False) -> List[Chapter]:
    qs = story.chapters.all()
    if published_only:
        qs = qs.filter(is_published=True)
    return list(qs.order_by("order", "created_at"))


def add_chapter(story: Story, title: str = "", content: str = "", is_published: bool = False) -> Chapter:
    with transaction.atomic():
        position = story.chapters.count()
        chapter = Chapter.objects.create(
            story=story,
            title=str(title or "").strip() or NEW_CHAPTER_TITLE,
            content=content or NEW_CHAPTER_CONTENT,
            is_published=bool(is_published),
            order=position,
        )
        _touch(story)
    return chapter


def delete_chapter(chapter: Chapter) -> None:
    story = chapter.story
    with transaction.atomic():
        chapter.delete()
        _write_orders(ordered_chapters(story))
        _touch(story)


def toggle_publish(chapter: Chapter) -> Chapter:
    chapter.is_published = not chapter.is_published
    chapter.save(update_fields=["is_published", "updated_at"])
    _touch(chapter.story)
    return chapter


def publish_all(story: Story) -> int:
    with transaction.atomic():
        updated = story.chapters.filter(is_published=False).update(
            is_published=True, updated_at=timezone.now()
        )
        _touch(story)
    return updated


def move_chapter(story: Story, source_index: Any, destination_index: Any) -> List[Chapter]:
    """
    Apply a drag-and-drop result: take the chapter at source_index out of the
    list and insert it at destination_index. A missing destination is a no-op.
    """
    with transaction.atomic():
        chapters = ordered_chapters(story)
        if destination_index is None or str(destination_index).strip() == "":
            return chapters
        source = _to_index(source_index, "source_index", len(chapters))
        destination = _to_index(destination_index, "destination_index", len(chapters))
        moved = chapters.pop(source)
        chapters.insert(destination, moved)
        _write_orders(chapters)
        _touch(story)
    return chapters


def reorder_chapters(story: Story, chapter_ids: Iterable[Any]) -> List[Chapter]:
    """
    Listed chapters come first in the given order; unlisted ones keep their
    previous relative order after them.
    """
    with transaction.atomic():
        chapters = ordered_chapters(story)
        by_id = {str(c.id): c for c in chapters}
        wanted: List[str] = []
        for raw in chapter_ids:
            key = str(raw).strip()
            if key not in by_id:
                raise ValueError(f"chapter {key} does not belong to this story")
            if key not in wanted:
                wanted.append(key)
        reordered = [by_id[key] for key in wanted]
        reordered.extend(c for c in chapters if str(c.id) not in wanted)
        _write_orders(reordered)
        _touch(story)
    return reordered


def compact_orders(story: Story) -> List[Chapter]:
    chapters = ordered_chapters(story)
    _write_orders(chapters)
    return chapters


def _write_orders(chapters: List[Chapter]) -> None:
    for position, chapter in enumerate(chapters):
        if chapter.order != position:
            chapter.order = position
            chapter.save(update_fields=["order", "updated_at"])


def _to_index(value: Any, field: str, size: int) -> int:
    try:
        index = int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field} must be a valid integer") from exc
    if index < 0 or index >= size:
        raise ValueError(f"{field} is outside the chapter list")
    return index


def _touch(story: Story) -> None:
    Story.objects.filter(pk=story.pk).update(updated_at=timezone.now())
