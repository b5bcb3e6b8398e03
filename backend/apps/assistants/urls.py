from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import AssistRunViewSet

router = DefaultRouter()
router.register("runs", AssistRunViewSet, basename="assist-run")

urlpatterns = [
    path("", include(router.urls)),
]
