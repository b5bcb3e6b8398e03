from django.contrib import admin

from .models import Chapter, Story


class ChapterInline(admin.TabularInline):
    model = Chapter
    fields = ("order", "title", "is_published")
    extra = 0
    ordering = ("order",)


@admin.register(Story)
class StoryAdmin(admin.ModelAdmin):
    list_display = ("title", "author_name", "genre", "owner", "is_mature", "updated_at")
    search_fields = ("title", "author_name", "description", "slug")
    list_filter = ("genre", "is_mature", "audio_narration_enabled")
    inlines = [ChapterInline]


@admin.register(Chapter)
class ChapterAdmin(admin.ModelAdmin):
    list_display = ("story", "order", "title", "is_published", "updated_at")
    search_fields = ("title", "story__title")
    list_filter = ("is_published",)
