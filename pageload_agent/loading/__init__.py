"""Navigation windowing and load-expectation assembly."""

from pageload_agent.loading.evidence import (
    LONG_TASK_THRESHOLD_MS,
    collect_long_tasks,
    collect_network_events
)
from pageload_agent.loading.expectations import (
    LoadExpectation,
    build_load_expectations,
    find_load_expectations,
    select_last_dcl
)
from pageload_agent.loading.interactivity import InteractivityEvaluator, QuietWindowEvaluator
from pageload_agent.loading.windows import IGNORED_URLS

__all__ = [
    "IGNORED_URLS",
    "LONG_TASK_THRESHOLD_MS",
    "InteractivityEvaluator",
    "LoadExpectation",
    "QuietWindowEvaluator",
    "build_load_expectations",
    "collect_long_tasks",
    "collect_network_events",
    "find_load_expectations",
    "select_last_dcl"
]
