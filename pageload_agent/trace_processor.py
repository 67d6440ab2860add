"""Build a TraceModel from any trace Perfetto's TraceProcessor can open."""

import logging

from perfetto.trace_processor import TraceProcessor

from pageload_agent.model import TimedEvent, TraceModel

logger = logging.getLogger(__name__)

# Only these categories carry args the loading engine reads.
_ARG_CATEGORIES = ["blink.user_timing", "loading", "netlog", "blink.console"]


def _q(tp: TraceProcessor, sql: str) -> list[dict]:
    """Execute a SQL query and return results as a list of dictionaries."""
    result = tp.query(sql)
    rows = []
    for row in result:
        row_dict = {col: getattr(row, col) for col in result.column_names}
        rows.append(row_dict)
    return rows


def _safe_q(tp: TraceProcessor, sql: str, assumption_key: str, assumptions: dict | None) -> list[dict]:
    """Execute a SQL query, returning [] on failure and recording the reason."""
    try:
        return _q(tp, sql)
    except Exception as exc:
        logger.debug("Query for %s failed: %s", assumption_key, exc)
        if assumptions is not None and assumption_key not in assumptions:
            assumptions[assumption_key] = f"Query failed for {assumption_key}: {str(exc)}"
        return []


def _ns_to_ms(value: int | None) -> float:
    if value is None or value < 0:
        return 0.0
    return value / 1e6


def _arg_value(row: dict):
    value_type = row.get("value_type")
    if value_type == "bool":
        return bool(row.get("int_value"))
    if value_type in ("int", "uint", "pointer"):
        return row.get("int_value")
    if value_type == "real":
        return row.get("real_value")
    return row.get("string_value")


def _nest_arg(target: dict, key: str, value) -> None:
    """Insert a flat 'args.data.url' style key into a nested dict."""
    parts = key.split(".")
    if parts and parts[0] == "args":
        parts = parts[1:]
    if not parts:
        return
    node = target
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value


class PerfettoTraceSource:
    """Wrapper for Perfetto TraceProcessor that materializes a TraceModel."""

    def __init__(self, trace_path: str):
        """
        Open the trace with TraceProcessor.

        Args:
            trace_path: Path to a Perfetto or Chrome JSON trace file
        """
        self.trace_path = trace_path
        self.tp = TraceProcessor(trace=trace_path)

    def close(self):
        """Close the trace processor."""
        self.tp.close()

    def get_processes(self, assumptions: dict) -> list[dict]:
        return _safe_q(
            self.tp,
            """
            SELECT pid, name
            FROM process
            WHERE pid IS NOT NULL
            ORDER BY pid
            """,
            "processes",
            assumptions
        )

    def get_process_labels(self, assumptions: dict) -> list[dict]:
        """
        Process labels, used to spot the tracing UI's own renderer.
        """
        return _safe_q(
            self.tp,
            """
            SELECT p.pid AS pid, a.display_value AS label
            FROM process p
            JOIN args a ON a.arg_set_id = p.arg_set_id
            WHERE a.key GLOB '*label*'
            """,
            "process_labels",
            assumptions
        )

    def get_threads(self, assumptions: dict) -> list[dict]:
        return _safe_q(
            self.tp,
            """
            SELECT t.tid AS tid, t.name AS name, p.pid AS pid
            FROM thread t
            JOIN process p ON t.upid = p.upid
            WHERE t.tid IS NOT NULL AND p.pid IS NOT NULL
            """,
            "threads",
            assumptions
        )

    def get_thread_slices(self, assumptions: dict) -> list[dict]:
        return _safe_q(
            self.tp,
            """
            SELECT
                s.ts AS ts,
                s.dur AS dur,
                s.category AS category,
                s.name AS name,
                s.arg_set_id AS arg_set_id,
                t.tid AS tid,
                p.pid AS pid
            FROM slice s
            JOIN thread_track tt ON s.track_id = tt.id
            JOIN thread t ON t.utid = tt.utid
            JOIN process p ON p.upid = t.upid
            """,
            "thread_slices",
            assumptions
        )

    def get_async_slices(self, assumptions: dict) -> list[dict]:
        return _safe_q(
            self.tp,
            """
            SELECT
                s.ts AS ts,
                s.dur AS dur,
                s.category AS category,
                s.name AS name,
                s.arg_set_id AS arg_set_id,
                p.pid AS pid
            FROM slice s
            JOIN process_track pt ON s.track_id = pt.id
            JOIN process p ON p.upid = pt.upid
            """,
            "async_slices",
            assumptions
        )

    def get_args(self, assumptions: dict) -> dict[int, dict]:
        """
        Nested args per arg_set_id, limited to categories the engine reads.
        """
        category_filter = " OR ".join(
            f"s.category GLOB '*{category}*'" for category in _ARG_CATEGORIES
        )
        rows = _safe_q(
            self.tp,
            f"""
            SELECT DISTINCT
                a.arg_set_id AS arg_set_id,
                a.key AS key,
                a.int_value AS int_value,
                a.string_value AS string_value,
                a.real_value AS real_value,
                a.value_type AS value_type
            FROM args a
            JOIN slice s ON s.arg_set_id = a.arg_set_id
            WHERE {category_filter}
            """,
            "args",
            assumptions
        )
        args_by_set: dict[int, dict] = {}
        for row in rows:
            _nest_arg(args_by_set.setdefault(row["arg_set_id"], {}), row["key"], _arg_value(row))
        return args_by_set

    def build_model(self, assumptions: dict) -> TraceModel:
        model = TraceModel()
        for row in self.get_processes(assumptions):
            model.get_or_create_process(row["pid"]).name = row.get("name")
        for row in self.get_process_labels(assumptions):
            if row.get("label"):
                model.get_or_create_process(row["pid"]).labels.append(row["label"])
        for row in self.get_threads(assumptions):
            thread = model.get_or_create_process(row["pid"]).get_or_create_thread(row["tid"])
            thread.name = row.get("name")

        args_by_set = self.get_args(assumptions)

        def to_event(row: dict) -> TimedEvent:
            return TimedEvent(
                start=_ns_to_ms(row["ts"]),
                duration=_ns_to_ms(row.get("dur")),
                category=row.get("category") or "",
                name=row.get("name") or "",
                args=args_by_set.get(row.get("arg_set_id"), {})
            )

        for row in self.get_thread_slices(assumptions):
            process = model.get_or_create_process(row["pid"])
            process.get_or_create_thread(row["tid"]).events.append(to_event(row))

        # Process-scoped async slices hang off the thread whose tid equals the pid.
        for row in self.get_async_slices(assumptions):
            process = model.get_or_create_process(row["pid"])
            process.get_or_create_thread(row["pid"]).async_events.append(to_event(row))

        return model.finalize()


def load_perfetto_trace(trace_path: str, assumptions: dict) -> TraceModel:
    """
    Load a trace through TraceProcessor.

    FrameLoader object snapshots are not exposed by TraceProcessor, so
    navigations without inline URL args cannot be resolved on this path.
    """
    source = PerfettoTraceSource(trace_path)
    try:
        logger.debug("Loading trace via TraceProcessor: %s", trace_path)
        model = source.build_model(assumptions)
        if "frame_loader_snapshots" not in assumptions:
            assumptions["frame_loader_snapshots"] = (
                "TraceProcessor exposes no FrameLoader snapshots; "
                "navigations without inline URL args are dropped"
            )
        return model
    finally:
        source.close()
