"""Turn each frame's navigation starts into consecutive analysis windows."""

import logging
from dataclasses import dataclass
from typing import Any

from pageload_agent.model import TimedEvent, TraceModel

logger = logging.getLogger(__name__)

IGNORED_URLS = frozenset({"", "about:blank"})


@dataclass(frozen=True)
class NavigationCandidate:
    event: TimedEvent
    url: str | None
    is_loading_main_frame: bool


@dataclass(frozen=True)
class NavigationWindow:
    frame_id: Any
    navigation_start: TimedEvent
    url: str
    end: float

    @property
    def start(self) -> float:
        return self.navigation_start.start


def resolve_navigation(model: TraceModel, event: TimedEvent) -> NavigationCandidate | None:
    """
    Resolve URL and main-frame flag for a navigation start.

    Inline args win. Older traces only carry the frame reference, in which
    case the FrameLoader snapshot valid at the event timestamp is used.
    Returns None when neither source has a URL.
    """
    data = event.data
    if "documentLoaderURL" in data:
        return NavigationCandidate(
            event=event,
            url=data.get("documentLoaderURL"),
            is_loading_main_frame=bool(data.get("isLoadingMainFrame")),
        )

    snapshot = model.find_frame_loader_snapshot(event.frame, event.start)
    if snapshot is None or snapshot.url is None:
        return None
    return NavigationCandidate(
        event=event,
        url=snapshot.url,
        is_loading_main_frame=bool(snapshot.is_loading_main_frame),
    )


def is_qualifying(candidate: NavigationCandidate | None) -> bool:
    if candidate is None or not candidate.is_loading_main_frame:
        return False
    return candidate.url is not None and candidate.url not in IGNORED_URLS


def _frame_windows(
    model: TraceModel,
    frame_id: Any,
    navigation_starts: list[TimedEvent],
    trace_end: float
) -> list[NavigationWindow]:
    windows = []
    pending: NavigationCandidate | None = None
    for event in navigation_starts:
        candidate = resolve_navigation(model, event)
        if not is_qualifying(candidate):
            logger.debug(
                "Skipping navigation at %.3fms in frame %s (url=%r)",
                event.start,
                frame_id,
                candidate.url if candidate else None
            )
            continue
        if pending is not None:
            windows.append(NavigationWindow(frame_id, pending.event, pending.url, event.start))
        pending = candidate
    if pending is not None:
        windows.append(NavigationWindow(frame_id, pending.event, pending.url, trace_end))
    return windows


def build_navigation_windows(
    model: TraceModel,
    navigation_starts_by_frame: dict[Any, list[TimedEvent]],
    trace_end: float
) -> list[NavigationWindow]:
    """
    Build one window per qualifying main-frame navigation.

    Within a frame, each window ends where the next qualifying navigation
    starts; the last one ends at trace_end. Windows come back frame by frame,
    ascending by start within a frame.
    """
    windows = []
    for frame_id, navigation_starts in navigation_starts_by_frame.items():
        windows.extend(_frame_windows(model, frame_id, navigation_starts, trace_end))
    return windows
