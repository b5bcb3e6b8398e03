from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Tuple

from django.db.models import Exists, OuterRef, Q, QuerySet

from ..models import GENRES, PLACEHOLDER_COVER, Chapter, Story
from .slugs import slug_for_title

logger = logging.getLogger(__name__)

STATUS_FILTERS = ("all", "published", "ongoing")
RATING_FILTERS = ("all", "mature")


def discoverable_stories() -> QuerySet[Story]:
    """
    Stories a reader may find: built-in catalog entries plus any authored
    story with at least one published chapter.
    """
    published = Chapter.objects.filter(story=OuterRef("pk"), is_published=True)
    unpublished = Chapter.objects.filter(story=OuterRef("pk"), is_published=False)
    return (
        Story.objects.annotate(
            has_published=Exists(published),
            has_unpublished=Exists(unpublished),
        )
        .filter(Q(owner__isnull=True) | Q(has_published=True))
        .order_by("created_at", "title")
    )


def search_stories(
    query: str = "",
    genres: Iterable[str] | None = None,
    status: str = "all",
    rating: str = "all",
) -> QuerySet[Story]:
    status = str(status or "all").strip().lower()
    rating = str(rating or "all").strip().lower()
    if status not in STATUS_FILTERS:
        raise ValueError("status must be one of: all | published | ongoing")
    if rating not in RATING_FILTERS:
        raise ValueError("rating must be one of: all | mature")

    qs = discoverable_stories()

    text = str(query or "").strip()
    if text:
        qs = qs.filter(
            Q(title__icontains=text)
            | Q(author_name__icontains=text)
            | Q(description__icontains=text)
            | Q(genre__icontains=text)
        )

    selected = [g for g in (str(v).strip() for v in (genres or [])) if g]
    if selected:
        qs = qs.filter(genre__in=selected)

    fully_published = Q(has_published=True, has_unpublished=False)
    if status == "published":
        qs = qs.filter(fully_published)
    elif status == "ongoing":
        qs = qs.exclude(fully_published)

    if rating == "mature":
        qs = qs.filter(is_mature=True)
    return qs


def author_stories(author_name: str) -> QuerySet[Story]:
    return discoverable_stories().filter(author_name=str(author_name or "").strip())


def titles_for_genres(genres: Iterable[str], limit: int = 5) -> List[str]:
    selected = [str(g).strip() for g in genres if str(g).strip()]
    if not selected:
        return []
    qs = discoverable_stories().filter(genre__in=selected)
    return [s.title for s in qs[: max(0, int(limit))]]


def seed_catalog(entries: List[Dict[str, Any]] | None = None) -> Tuple[int, int]:
    """Insert or refresh the built-in catalog; returns (created, updated)."""
    created = 0
    updated = 0
    for entry in entries if entries is not None else CATALOG_BOOKS:
        genre = str(entry.get("genre", "")).strip()
        if genre not in GENRES:
            raise ValueError(f"catalog entry '{entry.get('title')}' has unknown genre '{genre}'")
        slug = slug_for_title(entry["title"])
        defaults = {
            "title": entry["title"],
            "author_name": entry.get("author", ""),
            "description": entry.get("description", ""),
            "long_description": entry.get("long_description", ""),
            "cover_image": entry.get("cover_image") or PLACEHOLDER_COVER,
            "genre": genre,
        }
        existing = Story.objects.filter(slug=slug).first()
        if existing is None:
            Story.objects.create(slug=slug, **defaults)
            created += 1
            continue
        if existing.owner_id is not None:
            logger.warning("Catalog slug %s is taken by an authored story; skipping", slug)
            continue
        changed = [field for field, value in defaults.items() if getattr(existing, field) != value]
        if changed:
            for field in changed:
                setattr(existing, field, defaults[field])
            existing.save(update_fields=changed + ["updated_at"])
            updated += 1
    return created, updated


CATALOG_BOOKS: List[Dict[str, Any]] = [
    {
        "title": "Dune",
        "author": "Frank Herbert",
        "description": "A landmark of science fiction, set in the distant future amidst a feudal interstellar society.",
        "long_description": (
            "Dune tells the story of young Paul Atreides, whose family accepts the stewardship of the desert "
            "planet Arrakis. As the only source of the valuable substance 'spice', control of Arrakis is a "
            "coveted and dangerous undertaking. After a bitter betrayal, Paul must lead a rebellion to restore "
            "his family's rightful place."
        ),
        "genre": "Science Fiction",
    },
    {
        "title": "The Hobbit",
        "author": "J.R.R. Tolkien",
        "description": "A fantasy novel about the quest of home-loving Bilbo Baggins to win a share of the treasure.",
        "long_description": (
            "Whisked away from his comfortable, unambitious life in his hobbit-hole in Bag End by the wizard "
            "Gandalf and a company of dwarves, Bilbo Baggins finds himself caught up in a plot to raid the "
            "treasure hoard of Smaug the Magnificent, a large and very dangerous dragon."
        ),
        "genre": "Fantasy",
    },
    {
        "title": "Pride and Prejudice",
        "author": "Jane Austen",
        "description": (
            "A classic romance novel that charts the emotional development of the protagonist, Elizabeth Bennet."
        ),
        "long_description": (
            "This classic novel follows the turbulent relationship between Elizabeth Bennet, the daughter of a "
            "country gentleman, and Fitzwilliam Darcy, a rich and aristocratic landowner. They must overcome "
            "the titular sins of pride and prejudice in order to fall in love and marry."
        ),
        "genre": "Romance",
    },
    {
        "title": "To Kill a Mockingbird",
        "author": "Harper Lee",
        "description": "A novel about the seriousness of racism and the loss of innocence in the American South.",
        "long_description": (
            "The story, told by the six-year-old Jean Louise Finch, takes place during three years of the Great "
            "Depression in the fictional 'tired old town' of Maycomb, Alabama. She and her brother Jem are "
            "raised by their widowed father, Atticus Finch, a principled lawyer who defends a black man "
            "unjustly accused of a terrible crime."
        ),
        "genre": "Historical Fiction",
    },
    {
        "title": "1984",
        "author": "George Orwell",
        "description": (
            "A dystopian novel set in a world of perpetual war, omnipresent government surveillance, and propaganda."
        ),
        "long_description": (
            "The story follows the life of Winston Smith, a low-ranking member of 'the Party', who is frustrated "
            "by the omnipresent eyes of the party, and its ominous ruler Big Brother. Winston works in the "
            "Ministry of Truth and is driven to rebellion against the totalitarian state."
        ),
        "genre": "Science Fiction",
    },
    {
        "title": "The Great Gatsby",
        "author": "F. Scott Fitzgerald",
        "description": "A novel about the American dream, set in the Jazz Age on Long Island.",
        "long_description": (
            "The story primarily concerns the young and mysterious millionaire Jay Gatsby and his quixotic "
            "passion and obsession with the beautiful former debutante Daisy Buchanan. The Great Gatsby explores "
            "themes of decadence, idealism, resistance to change, social upheaval, and excess."
        ),
        "genre": "Classic Literature",
    },
    {
        "title": "Moby Dick",
        "author": "Herman Melville",
        "description": "The saga of Captain Ahab and his relentless pursuit of Moby Dick, the great white whale.",
        "long_description": (
            "The book is the sailor Ishmael's narrative of the obsessive quest of Ahab, captain of the whaling "
            "ship Pequod, for revenge on Moby Dick, the giant white sperm whale that on the ship's previous "
            "voyage bit off Ahab's leg at the knee."
        ),
        "genre": "Adventure",
    },
    {
        "title": "The Shining",
        "author": "Stephen King",
        "description": (
            "A horror novel about an aspiring writer and recovering alcoholic who accepts a position as the "
            "off-season caretaker."
        ),
        "long_description": (
            "Jack Torrance, his wife Wendy, and their young son Danny move into the isolated Overlook Hotel in "
            "the Colorado Rockies. As the winter weather cuts them off from the outside world, the hotel's "
            "supernatural forces start to influence Jack's sanity, putting his family in terrible danger."
        ),
        "genre": "Horror",
    },
    {
        "title": "The Silent Patient",
        "author": "Alex Michaelides",
        "description": "A shocking psychological thriller of a woman's act of violence against her husband.",
        "long_description": (
            "Alicia Berenson's life is seemingly perfect. A famous painter married to an in-demand fashion "
            "photographer, she lives in a grand house with big windows overlooking a park in one of London's "
            "most desirable areas. One evening her husband Gabriel returns home late from a fashion shoot, and "
            "Alicia shoots him five times in the face, and then never speaks another word."
        ),
        "genre": "Thriller",
    },
    {
        "title": "And Then There Were None",
        "author": "Agatha Christie",
        "description": "Ten strangers are lured to an isolated island mansion off the Devon coast by a mysterious host.",
        "long_description": (
            "Ten strangers, each with a secret to hide, are invited to an isolated island. As they settle in, a "
            "storm cuts them off from the mainland. One by one, they are picked off, in accordance with the "
            "lines of a sinister nursery rhyme. The suspense builds as they realize the killer is one of them."
        ),
        "genre": "Mystery",
    },
]
