from django.contrib import admin

from .models import AssistRun


@admin.register(AssistRun)
class AssistRunAdmin(admin.ModelAdmin):
    list_display = ("id", "owner", "mode", "status", "created_at", "finished_at")
    list_filter = ("status", "mode")
    search_fields = ("story__title", "owner__email", "error_message")
