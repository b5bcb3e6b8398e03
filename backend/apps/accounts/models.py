from __future__ import annotations

from django.conf import settings
from django.db import models

DEFAULT_PROFILE_PICTURE = "https://placehold.co/128x128.png"


class Shelf(models.TextChoices):
    READING = "reading", "Currently Reading"
    READ = "read", "Read History"
    WISHLIST = "wishlist", "Wishlist"


class UserProfile(models.Model):
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="profile")
    display_name = models.CharField(max_length=120, blank=True, default="")
    bio = models.TextField(blank=True, default="")
    profile_picture = models.TextField(blank=True, default=DEFAULT_PROFILE_PICTURE)
    favorite_genres = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.display_name or str(self.user)


class ReadingListEntry(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="shelf_entries")
    story = models.ForeignKey("stories.Story", on_delete=models.CASCADE, related_name="shelf_entries")
    shelf = models.CharField(max_length=16, choices=Shelf.choices, default=Shelf.WISHLIST)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ("user", "story")
        ordering = ["-updated_at"]

    def __str__(self) -> str:
        return f"{self.user}: {self.story.title} ({self.shelf})"


def default_display_name(user) -> str:
    email = str(getattr(user, "email", "") or "").strip()
    if email:
        return email.split("@", 1)[0]
    return str(getattr(user, "username", "") or "").split("@", 1)[0]


def profile_for(user) -> UserProfile:
    profile, _ = UserProfile.objects.get_or_create(
        user=user,
        defaults={"display_name": default_display_name(user)},
    )
    return profile
