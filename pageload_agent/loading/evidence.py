"""Long-task and network evidence for a navigation window."""

from pageload_agent.model import EventKind, Process, Thread, TimedEvent

LONG_TASK_THRESHOLD_MS = 50


def intersects_inclusive(event: TimedEvent, range_start: float, range_end: float) -> bool:
    """Closed-interval overlap; touching endpoints count."""
    return event.start <= range_end and event.end >= range_start


def top_level_tasks(thread: Thread) -> list[TimedEvent]:
    """Scheduler tasks that are not nested inside another scheduler task."""
    tasks = []
    enclosing: TimedEvent | None = None
    # Thread events are sorted by (start, -duration), so parents come first.
    for event in thread.events:
        if event.kind is not EventKind.SCHEDULER_TASK:
            continue
        if enclosing is not None and enclosing.start <= event.start and event.end <= enclosing.end:
            continue
        tasks.append(event)
        enclosing = event
    return tasks


def collect_long_tasks(
    thread: Thread,
    range_start: float,
    range_end: float,
    threshold_ms: float = LONG_TASK_THRESHOLD_MS
) -> list[TimedEvent]:
    return [
        task
        for task in top_level_tasks(thread)
        if task.duration >= threshold_ms and intersects_inclusive(task, range_start, range_end)
    ]


def collect_network_events(process: Process, range_start: float, range_end: float) -> list[TimedEvent]:
    """
    Network request lifetimes from every thread of the process overlapping the range.

    Order across threads is not meaningful.
    """
    events = []
    for thread in process.threads.values():
        for event in thread.all_events():
            if event.kind is EventKind.NETWORK and intersects_inclusive(event, range_start, range_end):
                events.append(event)
    return events
