from __future__ import annotations

from rest_framework import mixins, status, viewsets
from rest_framework.response import Response

from .models import AssistRun, RunStatus
from .serializers import AssistRunCreateSerializer, AssistRunSerializer
from .tasks import execute_assist_run, run_assist


class AssistRunViewSet(mixins.CreateModelMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    queryset = AssistRun.objects.none()
    serializer_class = AssistRunSerializer

    def get_queryset(self):
        return AssistRun.objects.filter(owner=self.request.user).select_related("story", "chapter")

    def create(self, request, *args, **kwargs):
        create_serializer = AssistRunCreateSerializer(data=request.data, context={"request": request})
        create_serializer.is_valid(raise_exception=True)
        validated = create_serializer.validated_data

        run = AssistRun.objects.create(
            owner=request.user,
            story=validated["story"],
            chapter=validated["chapter"],
            mode=validated["mode"],
            status=RunStatus.QUEUED,
            input_payload=validated.get("inputs", {}),
        )

        sync = str(request.query_params.get("sync", "0")).lower() in {"1", "true", "yes"}
        if sync:
            run = run_assist(run)
        else:
            execute_assist_run.delay(str(run.id))

        serializer = AssistRunSerializer(run)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
