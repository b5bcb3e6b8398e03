from django.contrib import admin

from .models import ReadingListEntry, UserProfile


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "display_name", "updated_at")
    search_fields = ("display_name", "user__email", "user__username")


@admin.register(ReadingListEntry)
class ReadingListEntryAdmin(admin.ModelAdmin):
    list_display = ("user", "story", "shelf", "updated_at")
    search_fields = ("user__email", "story__title")
    list_filter = ("shelf",)
