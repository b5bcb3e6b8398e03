from __future__ import annotations

import logging
import time
from typing import Any, Dict, TypedDict

from langgraph.graph import END, START, StateGraph

from ..models import AssistRun, RunMode
from .llm import GenerativeService

logger = logging.getLogger(__name__)



class AssistState(TypedDict, total=False):
    run: AssistRun
    mode: str
    inputs: Dict[str, Any]
    output: Dict[str, Any]
    node: str
    node_ms: int


class AssistOrchestrator:
    """
    LangGraph orchestration for assistant runs.

    The graph routes by mode to a single node per helper. The node records
    its state on the run when it starts and when it finishes, so a polling
    client sees progress before the run completes.
    """

    def __init__(self, service: GenerativeService | None = None) -> None:
        self.service = service or GenerativeService()
        self.graph = self._build_graph()

    def execute(self, run: AssistRun) -> Dict[str, Any]:
        t0 = time.perf_counter()
        final_state = self.graph.invoke(
            {"run": run, "mode": str(run.mode).strip(), "inputs": run.input_payload or {}}
        )
        result = final_state.get("output", {}) if isinstance(final_state, dict) else {}
        if not isinstance(result, dict) or not result:
            raise ValueError("LangGraph execution returned invalid output payload")

        node = final_state["node"]
        result = dict(result)
        stage = str(result.get("fallback_stage", "")).strip()
        result["used_fallback"] = bool(result.get("used_fallback"))
        result["fallback_stages"] = [stage] if result["used_fallback"] and stage else []
        result["progress"] = {"node": node, "state": "completed"}
        result["timings_ms"] = {
            "total_ms": int((time.perf_counter() - t0) * 1000),
            "nodes": {f"{node}_ms": int(final_state.get("node_ms", 0))},
        }
        return result

    def _build_graph(self):
        graph = StateGraph(AssistState)
        graph.add_node("run_cover_image", self._node_cover_image)
        graph.add_node("run_continue_story", self._node_continue_story)
        graph.add_node("run_recommendations", self._node_recommendations)
        graph.add_node("run_narration", self._node_narration)

        graph.add_conditional_edges(
            START,
            self._route_mode,
            {
                RunMode.COVER_IMAGE.value: "run_cover_image",
                RunMode.CONTINUE_STORY.value: "run_continue_story",
                RunMode.RECOMMENDATIONS.value: "run_recommendations",
                RunMode.NARRATION.value: "run_narration",
            },
        )
        graph.add_edge("run_cover_image", END)
        graph.add_edge("run_continue_story", END)
        graph.add_edge("run_recommendations", END)
        graph.add_edge("run_narration", END)
        return graph.compile()

    def _route_mode(self, state: AssistState) -> str:
        mode = str(state.get("mode", "")).strip().lower()
        if mode in RunMode.values:
            return mode
        raise ValueError("mode must be one of: " + " | ".join(RunMode.values))

    # ------------------------------------------------------------------
    # Mode nodes
    # ------------------------------------------------------------------

    def _node_cover_image(self, state: AssistState) -> AssistState:
        def work(run: AssistRun, inputs: Dict[str, Any]) -> Dict[str, Any]:
            story = run.story
            if story is None:
                raise ValueError("cover_image runs need a story")
            output = self.service.generate_cover_image(
                title=str(inputs.get("title") or story.title),
                genre=str(inputs.get("genre") or story.genre),
                summary=str(inputs.get("summary") or story.description),
            )
            output["applied"] = False
            if not output.get("used_fallback") and output.get("image_url"):
                story.cover_image = output["image_url"]
                story.save(update_fields=["cover_image", "updated_at"])
                output["applied"] = True
            return output

        return self._execute_node(state, "run_cover_image", work)

    def _node_continue_story(self, state: AssistState) -> AssistState:
        def work(run: AssistRun, inputs: Dict[str, Any]) -> Dict[str, Any]:
            text = str(inputs.get("existing_text") or "")
            if not text.strip() and run.chapter is not None:
                text = run.chapter.content
            return self.service.continue_story(text)

        return self._execute_node(state, "run_continue_story", work)

    def _node_recommendations(self, state: AssistState) -> AssistState:
        def work(run: AssistRun, inputs: Dict[str, Any]) -> Dict[str, Any]:
            return self.service.recommend_books(inputs.get("preferred_genres") or [])

        return self._execute_node(state, "run_recommendations", work)

    def _node_narration(self, state: AssistState) -> AssistState:
        def work(run: AssistRun, inputs: Dict[str, Any]) -> Dict[str, Any]:
            if run.chapter is None:
                raise ValueError("narration runs need a chapter")
            output = self.service.narrate(run.chapter.content)
            output["chapter_id"] = str(run.chapter_id)
            return output

        return self._execute_node(state, "run_narration", work)

    def _execute_node(self, state: AssistState, node_name: str, work) -> AssistState:
        run = state.get("run")
        if not isinstance(run, AssistRun):
            raise ValueError("run is required in workflow state")
        self._record_progress(run, {"node": node_name, "state": "running"})
        t0 = time.perf_counter()
        try:
            output = work(run, state.get("inputs", {}) or {})
        except Exception as exc:
            node_ms = int((time.perf_counter() - t0) * 1000)
            logger.warning("Assistant node failed: %s", node_name, exc_info=True)
            self._record_progress(
                run, {"node": node_name, "state": "failed", "error": str(exc)[:500]}, node_ms=node_ms
            )
            raise
        node_ms = int((time.perf_counter() - t0) * 1000)
        self._record_progress(run, {"node": node_name, "state": "completed"}, node_ms=node_ms)
        return {"output": output, "node": node_name, "node_ms": node_ms}

    def _record_progress(self, run: AssistRun, progress: Dict[str, Any], node_ms: int | None = None) -> None:
        """Write node state onto the stored run; telemetry failures never fail the run."""
        try:
            fields = {"output_payload": {"progress": progress}}
            if node_ms is not None:
                fields["timings_json"] = {"nodes": {f"{progress['node']}_ms": node_ms}}
            AssistRun.objects.filter(id=run.id).update(**fields)
        except Exception:
            logger.warning("Failed to persist run progress run_id=%s", run.id, exc_info=True)
