"""Assemble per-navigation load expectations from a trace model."""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from pageload_agent.loading.evidence import collect_long_tasks, collect_network_events
from pageload_agent.loading.frames import collect_frame_events
from pageload_agent.loading.interactivity import InteractivityEvaluator, QuietWindowEvaluator
from pageload_agent.loading.windows import NavigationWindow, build_navigation_windows
from pageload_agent.model import Process, TimedEvent, TraceModel

logger = logging.getLogger(__name__)

SUCCESSFUL = "Successful"

DclSelector = Callable[[Sequence[TimedEvent]], TimedEvent | None]


@dataclass(frozen=True)
class LoadExpectation:
    subtype: str
    start: float
    duration: float
    navigation_start: TimedEvent
    fmp_event: TimedEvent | None
    dcl_event: TimedEvent | None
    first_cpu_idle_time: float | None
    interactive_time: float | None
    url: str
    frame_id: Any

    def to_dict(self) -> dict:
        def since_navigation(ts: float | None) -> float | None:
            if ts is None:
                return None
            return ts - self.start

        fmp_ms = self.fmp_event.start if self.fmp_event is not None else None
        dcl_ms = self.dcl_event.start if self.dcl_event is not None else None
        return {
            "subtype": self.subtype,
            "frame_id": self.frame_id,
            "url": self.url,
            "start_ms": self.start,
            "duration_ms": self.duration,
            "fmp_ms": fmp_ms,
            "dcl_ms": dcl_ms,
            "first_cpu_idle_ms": self.first_cpu_idle_time,
            "interactive_ms": self.interactive_time,
            "since_navigation_ms": {
                "fmp": since_navigation(fmp_ms),
                "dcl": since_navigation(dcl_ms),
                "first_cpu_idle": since_navigation(self.first_cpu_idle_time),
                "interactive": since_navigation(self.interactive_time)
            }
        }


def select_last_dcl(dcl_events: Sequence[TimedEvent]) -> TimedEvent | None:
    """
    Pick the latest DCL event of a window.

    Some traces carry several DCL events for one navigation. Taking the last
    one is a heuristic; pass another selector to build_load_expectations to
    change it.
    """
    if not dcl_events:
        return None
    return max(dcl_events, key=lambda ev: ev.start)


def resolve_fmp(
    candidates: Sequence[TimedEvent],
    navigation_start: TimedEvent,
    window_end: float
) -> TimedEvent | None:
    """
    Latest FMP candidate at or before window_end.

    A candidate from before the navigation belongs to the previous page
    load, so it is rejected rather than attached to this one.
    """
    fmp = None
    for candidate in candidates:
        if candidate.start > window_end:
            continue
        if fmp is None or candidate.start >= fmp.start:
            fmp = candidate
    if fmp is None or fmp.start < navigation_start.start:
        return None
    return fmp


def resolve_dcl(
    dcl_events: Sequence[TimedEvent],
    navigation_start: TimedEvent,
    window_end: float,
    selector: DclSelector = select_last_dcl
) -> TimedEvent | None:
    in_window = [
        event for event in dcl_events
        if navigation_start.start <= event.start <= window_end
    ]
    return selector(in_window)


def _assemble(
    renderer: Process,
    window: NavigationWindow,
    fmp_event: TimedEvent | None,
    dcl_event: TimedEvent | None,
    evaluator: InteractivityEvaluator
) -> LoadExpectation:
    first_cpu_idle_time = None
    interactive_time = None
    if fmp_event is not None and dcl_event is not None:
        main_thread = renderer.main_thread
        long_tasks = collect_long_tasks(main_thread, fmp_event.start, window.end)
        first_cpu_idle_time = evaluator.compute_first_cpu_idle(
            fmp_event.start, window.end, dcl_event.start, long_tasks
        )
        network_events = collect_network_events(renderer, window.start, window.end)
        interactive_time = evaluator.compute_interactive_time(
            fmp_event.start, window.end, dcl_event.start, long_tasks, network_events
        )
    else:
        logger.debug(
            "Navigation at %.3fms (%s) has fmp=%s dcl=%s; skipping interactivity",
            window.start,
            window.url,
            fmp_event is not None,
            dcl_event is not None
        )

    if interactive_time is not None:
        duration = interactive_time - window.start
    else:
        duration = window.end - window.start

    return LoadExpectation(
        subtype=SUCCESSFUL,
        start=window.start,
        duration=duration,
        navigation_start=window.navigation_start,
        fmp_event=fmp_event,
        dcl_event=dcl_event,
        first_cpu_idle_time=first_cpu_idle_time,
        interactive_time=interactive_time,
        url=window.url,
        frame_id=window.frame_id
    )


def build_load_expectations(
    model: TraceModel,
    renderer: Process,
    evaluator: InteractivityEvaluator | None = None,
    dcl_selector: DclSelector = select_last_dcl
) -> list[LoadExpectation]:
    """
    Build load expectations for every qualifying navigation in one renderer.

    Args:
        model: Finalized trace model
        renderer: Renderer process with a main thread
        evaluator: FCI/TTI evaluator, QuietWindowEvaluator when omitted
        dcl_selector: Picks one DCL event when a window holds several

    Returns:
        Load expectations, ascending by navigation start within each frame
    """
    if evaluator is None:
        evaluator = QuietWindowEvaluator()
    if model.bounds_max is None or renderer.main_thread is None:
        return []

    frame_events = collect_frame_events(model, renderer)
    windows = build_navigation_windows(model, frame_events.navigation_starts, model.bounds_max)

    expectations = []
    for window in windows:
        fmp_event = resolve_fmp(
            frame_events.fmp_candidates.get(window.frame_id, []),
            window.navigation_start,
            window.end
        )
        dcl_event = resolve_dcl(
            frame_events.dcl_ends.get(window.frame_id, []),
            window.navigation_start,
            window.end,
            dcl_selector
        )
        expectations.append(_assemble(renderer, window, fmp_event, dcl_event, evaluator))
    return expectations


def find_load_expectations(
    model: TraceModel,
    evaluator: InteractivityEvaluator | None = None,
    dcl_selector: DclSelector = select_last_dcl
) -> list[LoadExpectation]:
    """Load expectations across all renderers, skipping the tracing UI's own renderer."""
    expectations = []
    for renderer in model.renderer_processes():
        if renderer.is_tracing_ui:
            logger.debug("Skipping tracing UI renderer pid=%s", renderer.pid)
            continue
        expectations.extend(build_load_expectations(model, renderer, evaluator, dcl_selector))
    return expectations
