"""Page-load analysis: load a trace and report load expectations."""

from pathlib import Path

from pageload_agent.loading import (
    IGNORED_URLS,
    LONG_TASK_THRESHOLD_MS,
    InteractivityEvaluator,
    find_load_expectations
)
from pageload_agent.model import TraceModel
from pageload_agent.trace_json import load_json_trace
from pageload_agent.trace_processor import load_perfetto_trace

TRACE_FORMATS = ("auto", "json", "perfetto")
DEFAULT_SCHEMA_VERSION = "L1"


def _set_assumption(assumptions: dict, key: str, note: str) -> None:
    if key not in assumptions:
        assumptions[key] = note


def detect_trace_format(trace_path: str) -> str:
    """Guess the loader from the file name: .json/.json.gz go to the JSON loader."""
    suffixes = [suffix.lower() for suffix in Path(trace_path).suffixes]
    if suffixes[-1:] == [".json"] or suffixes[-2:] == [".json", ".gz"]:
        return "json"
    return "perfetto"


def load_model(trace_path: str, trace_format: str, assumptions: dict) -> tuple[TraceModel, str]:
    if trace_format not in TRACE_FORMATS:
        raise ValueError(f"Unknown trace format: {trace_format}")
    if trace_format == "auto":
        trace_format = detect_trace_format(trace_path)
    if trace_format == "json":
        return load_json_trace(trace_path), trace_format
    return load_perfetto_trace(trace_path, assumptions), trace_format


def _renderer_summary(model: TraceModel) -> list[dict]:
    renderers = []
    for process in model.renderer_processes():
        renderers.append(
            {
                "pid": process.pid,
                "name": process.name,
                "main_thread_tid": process.main_thread.tid,
                "tracing_ui": process.is_tracing_ui
            }
        )
    return renderers


def analyze_model(
    model: TraceModel,
    schema_version: str = DEFAULT_SCHEMA_VERSION,
    evaluator: InteractivityEvaluator | None = None,
    assumptions: dict | None = None
) -> dict:
    """
    Compute load expectations for an already-loaded model.

    Args:
        model: Finalized trace model
        schema_version: Schema version to emit
        evaluator: FCI/TTI evaluator; the default quiet-window one if None
        assumptions: Notes already gathered while loading, extended in place

    Returns:
        Dictionary with the report schema (without trace path fields)
    """
    if assumptions is None:
        assumptions = {}

    expectations = find_load_expectations(model, evaluator)
    renderers = _renderer_summary(model)

    if model.bounds_max is None:
        _set_assumption(assumptions, "trace_end", "Trace has no timed events")
    if not renderers:
        _set_assumption(assumptions, "renderers", "No CrRendererMain thread found in any process")
    if not model.has_frame_loader_snapshots:
        _set_assumption(
            assumptions,
            "frame_loader_snapshots",
            "No FrameLoader snapshots; navigations without inline URL args are dropped"
        )

    with_fmp = len([item for item in expectations if item.fmp_event is not None])
    with_dcl = len([item for item in expectations if item.dcl_event is not None])
    with_first_cpu_idle = len([item for item in expectations if item.first_cpu_idle_time is not None])
    with_interactive = len([item for item in expectations if item.interactive_time is not None])

    if expectations and with_interactive < len(expectations):
        _set_assumption(
            assumptions,
            "duration",
            "Loads without an interactive time use window end minus navigation start as duration"
        )
    _set_assumption(
        assumptions,
        "long_tasks",
        f"Long tasks are top-level main-thread scheduler tasks with dur >= {LONG_TASK_THRESHOLD_MS}ms"
    )
    _set_assumption(
        assumptions,
        "navigations",
        "Only main-frame navigations with a URL outside "
        f"{sorted(IGNORED_URLS)} open a window"
    )
    _set_assumption(
        assumptions,
        "dcl",
        "When a window has several domContentLoadedEventEnd events the last one is used"
    )

    return {
        "schema_version": schema_version,
        "trace_end_ms": model.bounds_max,
        "renderers": renderers,
        "load_expectations": [item.to_dict() for item in expectations],
        "summary": {
            "load_count": len(expectations),
            "with_fmp": with_fmp,
            "with_dcl": with_dcl,
            "with_first_cpu_idle": with_first_cpu_idle,
            "with_interactive": with_interactive
        },
        "assumptions": assumptions
    }


def analyze_trace(
    trace_path: str,
    trace_format: str = "auto",
    schema_version: str = DEFAULT_SCHEMA_VERSION
) -> dict:
    """
    Load a trace file and return structured load-expectation results.

    Args:
        trace_path: Path to the trace file
        trace_format: One of "auto", "json" or "perfetto"
        schema_version: Schema version to emit

    Returns:
        Dictionary with analysis results following the report schema
    """
    assumptions: dict = {}
    model, resolved_format = load_model(trace_path, trace_format, assumptions)
    report = analyze_model(model, schema_version, assumptions=assumptions)
    return {
        "schema_version": report["schema_version"],
        "trace_path": trace_path,
        "trace_format": resolved_format,
        **{key: value for key, value in report.items() if key != "schema_version"}
    }
