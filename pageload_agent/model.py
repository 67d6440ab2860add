"""In-memory trace model: processes, threads and their timed events."""

import bisect
from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from typing import Any, Mapping

RENDERER_MAIN_THREAD_NAME = "CrRendererMain"
TRACING_UI_LABEL = "chrome://tracing"


class EventKind(Enum):
    NAVIGATION_START = "navigation_start"
    DOM_CONTENT_LOADED_END = "dom_content_loaded_end"
    FMP_CANDIDATE = "fmp_candidate"
    SCHEDULER_TASK = "scheduler_task"
    NETWORK = "network"
    TOOLING_MARKER = "tooling_marker"
    OTHER = "other"


_KINDS_BY_NAME = {
    ("blink.user_timing", "navigationStart"): EventKind.NAVIGATION_START,
    ("blink.user_timing", "domContentLoadedEventEnd"): EventKind.DOM_CONTENT_LOADED_END,
    ("loading", "firstMeaningfulPaintCandidate"): EventKind.FMP_CANDIDATE,
}


def _category_tokens(category: str | None) -> list[str]:
    if not category:
        return []
    return [token.strip() for token in category.split(",")]


def classify_event(category: str | None, name: str | None) -> EventKind:
    """
    Map a (category, name) pair onto an EventKind.

    Categories can be comma-joined lists ("ipc,toplevel"), so token membership
    is checked rather than equality.
    """
    tokens = _category_tokens(category)
    for token in tokens:
        kind = _KINDS_BY_NAME.get((token, name))
        if kind is not None:
            return kind
    if "toplevel" in tokens:
        return EventKind.SCHEDULER_TASK
    if any(token.find("netlog") >= 0 for token in tokens):
        return EventKind.NETWORK
    if "blink.console" in tokens and name and name.startswith("telemetry.internal."):
        return EventKind.TOOLING_MARKER
    return EventKind.OTHER


@dataclass(frozen=True, eq=False)
class TimedEvent:
    """A single trace event. Times are trace-relative milliseconds."""

    start: float
    duration: float
    category: str
    name: str
    args: Mapping[str, Any] = field(default_factory=dict)

    @property
    def end(self) -> float:
        return self.start + self.duration

    @cached_property
    def kind(self) -> EventKind:
        return classify_event(self.category, self.name)

    @property
    def frame(self) -> Any:
        """Frame reference carried in the event args, or None."""
        frame = self.args.get("frame")
        if frame is None:
            data = self.args.get("data")
            if isinstance(data, Mapping):
                frame = data.get("frame")
        return frame

    @property
    def data(self) -> Mapping[str, Any]:
        data = self.args.get("data")
        return data if isinstance(data, Mapping) else {}


@dataclass(frozen=True)
class FrameLoaderSnapshot:
    frame_id: Any
    ts: float
    url: str | None
    is_loading_main_frame: bool | None


@dataclass
class Thread:
    tid: int
    name: str | None = None
    events: list[TimedEvent] = field(default_factory=list)
    async_events: list[TimedEvent] = field(default_factory=list)

    @property
    def is_renderer_main(self) -> bool:
        return self.name == RENDERER_MAIN_THREAD_NAME

    def all_events(self) -> list[TimedEvent]:
        return self.events + self.async_events

    def sort(self) -> None:
        self.events.sort(key=lambda ev: (ev.start, -ev.duration))
        self.async_events.sort(key=lambda ev: ev.start)


@dataclass
class Process:
    pid: int
    name: str | None = None
    labels: list[str] = field(default_factory=list)
    threads: dict[int, Thread] = field(default_factory=dict)

    def get_or_create_thread(self, tid: int) -> Thread:
        thread = self.threads.get(tid)
        if thread is None:
            thread = Thread(tid=tid)
            self.threads[tid] = thread
        return thread

    @property
    def main_thread(self) -> Thread | None:
        for tid in sorted(self.threads):
            if self.threads[tid].is_renderer_main:
                return self.threads[tid]
        return None

    @property
    def is_renderer(self) -> bool:
        return self.main_thread is not None

    @property
    def is_tracing_ui(self) -> bool:
        """True when this renderer hosts the tracing tool's own UI."""
        return any(TRACING_UI_LABEL in label for label in self.labels)


class TraceModel:
    """
    Read-only view over a fully loaded trace.

    Loaders populate processes and snapshots and then call finalize(); after
    that nothing in the model changes.
    """

    def __init__(self):
        self.processes: dict[int, Process] = {}
        self._snapshots: dict[Any, list[FrameLoaderSnapshot]] = {}
        self._snapshot_ts: dict[Any, list[float]] = {}
        self.bounds_max: float | None = None

    def get_or_create_process(self, pid: int) -> Process:
        process = self.processes.get(pid)
        if process is None:
            process = Process(pid=pid)
            self.processes[pid] = process
        return process

    def add_frame_loader_snapshot(self, snapshot: FrameLoaderSnapshot) -> None:
        self._snapshots.setdefault(snapshot.frame_id, []).append(snapshot)

    @property
    def has_frame_loader_snapshots(self) -> bool:
        return bool(self._snapshots)

    def finalize(self) -> "TraceModel":
        """Sort all event lists and compute the global upper time bound."""
        bounds_max = None
        for process in self.processes.values():
            for thread in process.threads.values():
                thread.sort()
                for event in thread.all_events():
                    if bounds_max is None or event.end > bounds_max:
                        bounds_max = event.end
        for frame_id, snapshots in self._snapshots.items():
            snapshots.sort(key=lambda snap: snap.ts)
            self._snapshot_ts[frame_id] = [snap.ts for snap in snapshots]
            last_ts = snapshots[-1].ts
            if bounds_max is None or last_ts > bounds_max:
                bounds_max = last_ts
        self.bounds_max = bounds_max
        return self

    def renderer_processes(self) -> list[Process]:
        return [
            self.processes[pid]
            for pid in sorted(self.processes)
            if self.processes[pid].is_renderer
        ]

    def get_events_by_frame(self, process: Process, kind: EventKind) -> dict[Any, list[TimedEvent]]:
        """
        Group main-thread events of one kind by frame reference.

        Each list is sorted by start time. Events without a frame are skipped.
        """
        by_frame: dict[Any, list[TimedEvent]] = {}
        main_thread = process.main_thread
        if main_thread is None:
            return by_frame
        for event in main_thread.events:
            if event.kind is not kind:
                continue
            frame = event.frame
            if frame is None:
                continue
            by_frame.setdefault(frame, []).append(event)
        for events in by_frame.values():
            events.sort(key=lambda ev: ev.start)
        return by_frame

    def find_frame_loader_snapshot(self, frame_id: Any, ts: float) -> FrameLoaderSnapshot | None:
        """Latest FrameLoader snapshot for the frame taken at or before ts."""
        timestamps = self._snapshot_ts.get(frame_id)
        if not timestamps:
            return None
        index = bisect.bisect_right(timestamps, ts)
        if index == 0:
            return None
        return self._snapshots[frame_id][index - 1]
