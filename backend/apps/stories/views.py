from __future__ import annotations

import uuid

from django.db.models import Q
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.accounts.serializers import author_profile_payload

from .models import GENRES, Chapter, Story
from .serializers import (
    ChapterMoveSerializer,
    ChapterReorderSerializer,
    ChapterSerializer,
    DraftSnapshotSerializer,
    LibraryStorySerializer,
    ReaderChapterSerializer,
    SearchParamsSerializer,
    StorySerializer,
)
from .services import chapters as chapter_ops
from .services.catalog import author_stories, discoverable_stories, search_stories
from .services.drafts import build_snapshot, create_story_from_draft, sync_story_draft

UUID_LOOKUP = r"[0-9a-fA-F-]{36}"


class StoryViewSet(viewsets.ModelViewSet):
    queryset = Story.objects.none()
    serializer_class = StorySerializer
    lookup_value_regex = UUID_LOOKUP

    def get_queryset(self):
        return (
            Story.objects.filter(owner=self.request.user)
            .prefetch_related("chapters")
            .order_by("-updated_at")
        )

    def perform_create(self, serializer):
        serializer.save(owner=self.request.user)

    @action(detail=True, methods=["get", "post"], url_path="chapters")
    def chapters(self, request, pk=None):
        story = self.get_object()
        if request.method == "GET":
            serializer = ChapterSerializer(chapter_ops.ordered_chapters(story), many=True)
            return Response(serializer.data)

        serializer = ChapterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        chapter = chapter_ops.add_chapter(
            story,
            title=serializer.validated_data.get("title", ""),
            content=serializer.validated_data.get("content", ""),
            is_published=serializer.validated_data.get("is_published", False),
        )
        return Response(ChapterSerializer(chapter).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="chapters/move")
    def move_chapter(self, request, pk=None):
        story = self.get_object()
        serializer = ChapterMoveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            chapters = chapter_ops.move_chapter(
                story,
                serializer.validated_data["source_index"],
                serializer.validated_data.get("destination_index"),
            )
        except ValueError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(ChapterSerializer(chapters, many=True).data)

    @action(detail=True, methods=["post"], url_path="chapters/reorder")
    def reorder_chapters(self, request, pk=None):
        story = self.get_object()
        serializer = ChapterReorderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            chapters = chapter_ops.reorder_chapters(story, serializer.validated_data["chapter_ids"])
        except ValueError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(ChapterSerializer(chapters, many=True).data)

    @action(detail=True, methods=["post"], url_path="publish")
    def publish(self, request, pk=None):
        story = self.get_object()
        published = chapter_ops.publish_all(story)
        story = self.get_queryset().get(pk=story.pk)
        data = StorySerializer(story).data
        data["chapters_published"] = published
        return Response(data)

    @action(detail=True, methods=["get", "put"], url_path="draft")
    def draft(self, request, pk=None):
        story = self.get_object()
        if request.method == "GET":
            return Response(build_snapshot(story))

        serializer = DraftSnapshotSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            result = sync_story_draft(story, serializer.validated_data)
        except ValueError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(result)

    @action(detail=False, methods=["post"], url_path="drafts")
    def create_from_draft(self, request):
        serializer = DraftSnapshotSerializer(data=request.data, context={"creating": True})
        serializer.is_valid(raise_exception=True)
        try:
            result = create_story_from_draft(request.user, serializer.validated_data)
        except ValueError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        story = result.pop("story")
        result["id"] = str(story.id)
        return Response(result, status=status.HTTP_201_CREATED)


class ChapterViewSet(
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    queryset = Chapter.objects.none()
    serializer_class = ChapterSerializer
    lookup_value_regex = UUID_LOOKUP

    def get_queryset(self):
        return Chapter.objects.select_related("story").filter(story__owner=self.request.user)

    def perform_destroy(self, instance):
        chapter_ops.delete_chapter(instance)

    @action(detail=True, methods=["post"], url_path="toggle-publish")
    def toggle_publish(self, request, pk=None):
        chapter = chapter_ops.toggle_publish(self.get_object())
        return Response(ChapterSerializer(chapter).data)


class LibraryStoryViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Story.objects.none()
    serializer_class = LibraryStorySerializer
    permission_classes = [AllowAny]
    lookup_field = "slug"

    def get_queryset(self):
        if self.action != "list":
            return discoverable_stories().prefetch_related("chapters")
        params = SearchParamsSerializer(data=self.request.query_params)
        params.is_valid(raise_exception=True)
        return search_stories(
            query=params.validated_data["q"],
            genres=params.validated_data["genres"],
            status=params.validated_data["status"],
            rating=params.validated_data["rating"],
        ).prefetch_related("chapters")

    def get_object(self):
        # Detail accepts either the slug or the story UUID.
        value = str(self.kwargs.get(self.lookup_field, "")).strip()
        lookup = Q(slug=value)
        try:
            lookup |= Q(pk=uuid.UUID(value))
        except ValueError:
            pass
        story = self.get_queryset().filter(lookup).first()
        if story is None:
            raise NotFound("Story not found")
        return story


class GenreListView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        return Response({"genres": GENRES})


class AuthorDetailView(APIView):
    permission_classes = [AllowAny]

    def get(self, request, name: str):
        stories = list(author_stories(name).prefetch_related("chapters"))
        if not stories:
            return Response({"detail": "Author not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response(
            {
                "author": author_profile_payload(name, stories),
                "stories": LibraryStorySerializer(stories, many=True).data,
            }
        )


class ReaderView(APIView):
    permission_classes = [AllowAny]

    def get(self, request, slug: str):
        story = discoverable_stories().filter(slug=slug).first()
        if story is None:
            return Response({"detail": "Story not found"}, status=status.HTTP_404_NOT_FOUND)
        chapters = chapter_ops.ordered_chapters(story, published_only=True)
        positions = {str(c.id): index + 1 for index, c in enumerate(chapters)}
        return Response(
            {
                "story": LibraryStorySerializer(story).data,
                "chapters": ReaderChapterSerializer(chapters, many=True, context={"positions": positions}).data,
                "narration_available": bool(story.audio_narration_enabled),
            }
        )
