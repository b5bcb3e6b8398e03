from __future__ import annotations

import re

from ..models import Story

DEFAULT_SLUG = "untitled-story"
_WHITESPACE = re.compile(r"\s+")
_NON_SLUG = re.compile(r"[^\w-]+")


def slug_for_title(title: str) -> str:
    """Lower-case, hyphenate whitespace runs and drop anything outside [\\w-]."""
    slug = _WHITESPACE.sub("-", str(title or "").strip().lower())
    slug = _NON_SLUG.sub("", slug)
    return slug[:180] or DEFAULT_SLUG


def unique_slug(title: str, story: Story | None = None) -> str:
    base = slug_for_title(title)
    qs = Story.objects.all()
    if story is not None and story.pk:
        qs = qs.exclude(pk=story.pk)

    if story is not None and story.slug:
        if base == story.slug:
            return story.slug
        # A numbered slug stays only while its base is held by another story.
        if _strip_suffix(story.slug) == base and qs.filter(slug=base).exists():
            return story.slug

    candidate = base
    counter = 2
    while qs.filter(slug=candidate).exists():
        candidate = f"{base}-{counter}"
        counter += 1
    return candidate


def _strip_suffix(slug: str) -> str:
    head, sep, tail = slug.rpartition("-")
    if sep and tail.isdigit() and head:
        return head
    return slug
