from __future__ import annotations

import logging

from django.db import transaction
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import ReadingListEntry, profile_for
from .serializers import ReadingListEntrySerializer, SignUpSerializer, UserProfileSerializer, shelves_payload

logger = logging.getLogger(__name__)


class SignUpView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = SignUpSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            user = serializer.save()
            profile = profile_for(user)
            token, _ = Token.objects.get_or_create(user=user)
        logger.info("Account created user_id=%s", user.id)
        return Response(
            {
                "token": token.key,
                "user": {"id": user.id, "email": user.email},
                "profile": UserProfileSerializer(profile).data,
            },
            status=status.HTTP_201_CREATED,
        )


class MeView(APIView):
    def get(self, request):
        profile = profile_for(request.user)
        return Response(UserProfileSerializer(profile).data)

    def patch(self, request):
        profile = profile_for(request.user)
        serializer = UserProfileSerializer(profile, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)


class ShelfListView(APIView):
    def _entries(self, request):
        return list(
            ReadingListEntry.objects.filter(user=request.user)
            .select_related("story")
            .prefetch_related("story__chapters")
        )

    def get(self, request):
        return Response(shelves_payload(self._entries(request)))

    def post(self, request):
        serializer = ReadingListEntrySerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        story = serializer.validated_data["story"]
        shelf = serializer.validated_data["shelf"]
        # A story sits on at most one shelf; adding it again moves it.
        entry, created = ReadingListEntry.objects.update_or_create(
            user=request.user,
            story=story,
            defaults={"shelf": shelf},
        )
        return Response(
            ReadingListEntrySerializer(entry).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class ShelfEntryView(APIView):
    def delete(self, request, story_id):
        deleted, _ = ReadingListEntry.objects.filter(user=request.user, story_id=story_id).delete()
        if not deleted:
            return Response({"detail": "Not on a shelf"}, status=status.HTTP_404_NOT_FOUND)
        return Response(status=status.HTTP_204_NO_CONTENT)
