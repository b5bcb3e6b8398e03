from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import AuthorDetailView, ChapterViewSet, GenreListView, LibraryStoryViewSet, ReaderView, StoryViewSet

router = DefaultRouter()
router.register("stories", StoryViewSet, basename="story")
router.register("chapters", ChapterViewSet, basename="chapter")
router.register("library/stories", LibraryStoryViewSet, basename="library-story")

urlpatterns = [
    path("library/genres/", GenreListView.as_view(), name="library-genres"),
    path("library/authors/<str:name>/", AuthorDetailView.as_view(), name="library-author"),
    path("read/<str:slug>/", ReaderView.as_view(), name="reader"),
    path("", include(router.urls)),
]
