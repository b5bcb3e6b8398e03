from __future__ import annotations

import logging
from typing import Any, Dict

from celery import shared_task
from django.utils import timezone

from .models import AssistRun, RunStatus
from .services.orchestration import AssistOrchestrator

logger = logging.getLogger(__name__)


def run_assist(run: AssistRun, orchestrator: AssistOrchestrator | None = None) -> AssistRun:
    """Execute a run in-process and record its outcome on the row."""
    run.status = RunStatus.RUNNING
    run.started_at = timezone.now()
    run.error_message = ""
    run.save(update_fields=["status", "started_at", "error_message"])

    orchestrator = orchestrator or AssistOrchestrator()
    try:
        output = orchestrator.execute(run)
        run.output_payload = output or {}
        run.timings_json = output.get("timings_ms", {}) if isinstance(output, dict) else {}
        run.status = RunStatus.COMPLETED
        run.finished_at = timezone.now()
        run.save(update_fields=["output_payload", "timings_json", "status", "finished_at"])
    except Exception as exc:
        logger.error("Assist run failed run_id=%s mode=%s", run.id, run.mode, exc_info=True)
        run.status = RunStatus.FAILED
        run.error_message = str(exc)[:2000] or "Assistant execution failed"
        run.finished_at = timezone.now()
        run.save(update_fields=["status", "error_message", "finished_at"])
    return run


@shared_task(bind=True, autoretry_for=(Exception,), retry_backoff=True, retry_kwargs={"max_retries": 2})
def execute_assist_run(self, run_id: str) -> Dict[str, Any]:
    run = AssistRun.objects.select_related("story", "chapter").filter(id=run_id).first()
    if not run:
        return {"status": "error", "error": "run_not_found"}

    run = run_assist(run)
    if run.status == RunStatus.FAILED:
        return {"status": "error", "error": run.error_message}
    return {"status": "ok"}
