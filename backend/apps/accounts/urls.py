from django.urls import path

from .views import MeView, ShelfEntryView, ShelfListView, SignUpView

urlpatterns = [
    path("signup/", SignUpView.as_view(), name="signup"),
    path("me/", MeView.as_view(), name="me"),
    path("shelves/", ShelfListView.as_view(), name="shelves"),
    path("shelves/<uuid:story_id>/", ShelfEntryView.as_view(), name="shelf-entry"),
]
