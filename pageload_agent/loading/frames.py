"""Partition a renderer's main-thread loading events by frame."""

from dataclasses import dataclass
from typing import Any

from pageload_agent.model import EventKind, Process, Thread, TimedEvent, TraceModel


@dataclass(frozen=True)
class FrameEvents:
    navigation_starts: dict[Any, list[TimedEvent]]
    dcl_ends: dict[Any, list[TimedEvent]]
    fmp_candidates: dict[Any, list[TimedEvent]]


def _tooling_markers(thread: Thread) -> list[TimedEvent]:
    return [event for event in thread.events if event.kind is EventKind.TOOLING_MARKER]


def is_tooling_event(event: TimedEvent, markers: list[TimedEvent]) -> bool:
    """True if the event starts inside one of the tracing tool's own marker slices."""
    return any(marker.start <= event.start <= marker.end for marker in markers)


def collect_fmp_candidates(thread: Thread) -> dict[Any, list[TimedEvent]]:
    markers = _tooling_markers(thread)
    by_frame: dict[Any, list[TimedEvent]] = {}
    for event in thread.events:
        if event.kind is not EventKind.FMP_CANDIDATE:
            continue
        if is_tooling_event(event, markers):
            continue
        frame = event.frame
        if frame is None:
            continue
        by_frame.setdefault(frame, []).append(event)
    return by_frame


def collect_frame_events(model: TraceModel, renderer: Process) -> FrameEvents:
    main_thread = renderer.main_thread
    return FrameEvents(
        navigation_starts=model.get_events_by_frame(renderer, EventKind.NAVIGATION_START),
        dcl_ends=model.get_events_by_frame(renderer, EventKind.DOM_CONTENT_LOADED_END),
        fmp_candidates=collect_fmp_candidates(main_thread) if main_thread is not None else {},
    )
