"""First CPU Idle and Time To Interactive from windowed evidence."""

import math
from typing import Protocol, Sequence

from pageload_agent.model import TimedEvent

TASK_CLUSTER_GAP_MS = 1000.0
HEAVY_CLUSTER_MS = 250.0
INTERACTIVE_QUIET_WINDOW_MS = 5000.0
MAX_IN_FLIGHT_REQUESTS = 2


class InteractivityEvaluator(Protocol):
    def compute_first_cpu_idle(
        self,
        fmp_time: float,
        window_end: float,
        dcl_time: float,
        long_tasks: Sequence[TimedEvent]
    ) -> float | None:
        ...

    def compute_interactive_time(
        self,
        fmp_time: float,
        window_end: float,
        dcl_time: float,
        long_tasks: Sequence[TimedEvent],
        network_events: Sequence[TimedEvent]
    ) -> float | None:
        ...


def required_quiet_window_ms(ms_since_fmp: float) -> float:
    """Quiet window needed for First CPU Idle; 5s at FMP, decaying towards 1s."""
    seconds = max(ms_since_fmp, 0.0) / 1000.0
    return (4.0 * math.exp(-math.log(2) / 15.0 * seconds) + 1.0) * 1000.0


def task_clusters(long_tasks: Sequence[TimedEvent], gap_ms: float = TASK_CLUSTER_GAP_MS) -> list[tuple[float, float]]:
    """Merge long tasks separated by less than gap_ms into (start, end) clusters."""
    clusters: list[tuple[float, float]] = []
    for task in sorted(long_tasks, key=lambda ev: ev.start):
        if clusters and task.start - clusters[-1][1] < gap_ms:
            start, end = clusters[-1]
            clusters[-1] = (start, max(end, task.end))
        else:
            clusters.append((task.start, task.end))
    return clusters


def network_busy_intervals(
    network_events: Sequence[TimedEvent],
    max_in_flight: int = MAX_IN_FLIGHT_REQUESTS
) -> list[tuple[float, float]]:
    """Periods during which more than max_in_flight requests are open."""
    points = []
    for event in network_events:
        points.append((event.start, 1))
        points.append((event.end, -1))
    # Ends sort before starts at the same instant.
    points.sort()

    intervals = []
    in_flight = 0
    busy_since = None
    for ts, delta in points:
        in_flight += delta
        if in_flight > max_in_flight and busy_since is None:
            busy_since = ts
        elif in_flight <= max_in_flight and busy_since is not None:
            intervals.append((busy_since, ts))
            busy_since = None
    return intervals


class QuietWindowEvaluator:
    """Default evaluator based on quiet windows of CPU and network activity."""

    def __init__(self, interactive_window_ms: float = INTERACTIVE_QUIET_WINDOW_MS):
        self.interactive_window_ms = interactive_window_ms

    def compute_first_cpu_idle(
        self,
        fmp_time: float,
        window_end: float,
        dcl_time: float,
        long_tasks: Sequence[TimedEvent]
    ) -> float | None:
        candidate = fmp_time
        for start, end in task_clusters(long_tasks):
            if end <= candidate:
                continue
            # Lonely light clusters do not block CPU idle.
            if end - start < HEAVY_CLUSTER_MS:
                continue
            if start >= candidate + required_quiet_window_ms(candidate - fmp_time):
                break
            candidate = end
        if candidate + required_quiet_window_ms(candidate - fmp_time) > window_end:
            return None
        return max(candidate, dcl_time)

    def compute_interactive_time(
        self,
        fmp_time: float,
        window_end: float,
        dcl_time: float,
        long_tasks: Sequence[TimedEvent],
        network_events: Sequence[TimedEvent]
    ) -> float | None:
        busy = [(task.start, task.end) for task in long_tasks]
        busy.extend(network_busy_intervals(network_events))
        busy.sort()

        candidate = fmp_time
        for start, end in busy:
            if end <= candidate:
                continue
            if start >= candidate + self.interactive_window_ms:
                break
            candidate = end
        if candidate + self.interactive_window_ms > window_end:
            return None
        return max(candidate, dcl_time)
