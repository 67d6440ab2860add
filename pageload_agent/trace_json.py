"""Build a TraceModel from Chrome JSON trace events."""

import gzip
import json
import logging
from pathlib import Path
from typing import Any, Iterable

from pageload_agent.model import FrameLoaderSnapshot, TimedEvent, TraceModel

logger = logging.getLogger(__name__)

FRAME_LOADER_OBJECT_NAME = "FrameLoader"

_INSTANT_PHASES = {"I", "i", "R", "n"}
_ASYNC_BEGIN_PHASES = {"b", "S"}
_ASYNC_END_PHASES = {"e", "F"}


class TraceLoadError(Exception):
    """Raised when a trace file cannot be read or decoded."""


def _us_to_ms(value: Any) -> float:
    return float(value) / 1000.0


def _merge_args(begin_args: dict | None, end_args: dict | None) -> dict:
    merged = dict(begin_args or {})
    merged.update(end_args or {})
    return merged


def _async_id(trace_event: dict) -> Any:
    """Async pairing id; newer traces put it under id2.local or id2.global."""
    if trace_event.get("id") is not None:
        return trace_event["id"]
    id2 = trace_event.get("id2")
    if isinstance(id2, dict):
        if id2.get("local") is not None:
            return ("local", id2["local"])
        if id2.get("global") is not None:
            return ("global", id2["global"])
    return None


def _snapshot_from_event(trace_event: dict) -> FrameLoaderSnapshot | None:
    snapshot = (trace_event.get("args") or {}).get("snapshot")
    if not isinstance(snapshot, dict):
        return None
    frame = snapshot.get("frame")
    if isinstance(frame, dict):
        frame = frame.get("id_ref")
    if frame is None:
        return None
    return FrameLoaderSnapshot(
        frame_id=frame,
        ts=_us_to_ms(trace_event["ts"]),
        url=snapshot.get("documentLoaderURL"),
        is_loading_main_frame=snapshot.get("isLoadingMainFrame"),
    )


def _apply_metadata(model: TraceModel, trace_event: dict) -> None:
    name = trace_event.get("name")
    args = trace_event.get("args") or {}
    pid = trace_event.get("pid")
    if pid is None:
        return
    process = model.get_or_create_process(pid)
    if name == "process_name":
        process.name = args.get("name")
    elif name == "process_labels":
        labels = args.get("labels") or ""
        process.labels.extend(label for label in labels.split(",") if label)
    elif name == "thread_name" and trace_event.get("tid") is not None:
        process.get_or_create_thread(trace_event["tid"]).name = args.get("name")


def load_trace_events(trace_events: Iterable[dict]) -> TraceModel:
    """
    Build a finalized TraceModel from an iterable of trace event dicts.

    Unknown phases and events without a timestamp are skipped. Unterminated
    B events and unmatched async begins are dropped.
    """
    model = TraceModel()
    open_slices: dict[tuple, list[dict]] = {}
    open_async: dict[tuple, dict] = {}
    skipped = 0

    for trace_event in trace_events:
        phase = trace_event.get("ph")
        if phase == "M":
            _apply_metadata(model, trace_event)
            continue
        if "ts" not in trace_event or trace_event.get("pid") is None:
            skipped += 1
            continue

        if phase == "O":
            if trace_event.get("name") == FRAME_LOADER_OBJECT_NAME:
                snapshot = _snapshot_from_event(trace_event)
                if snapshot is not None:
                    model.add_frame_loader_snapshot(snapshot)
            continue

        process = model.get_or_create_process(trace_event["pid"])
        thread = process.get_or_create_thread(trace_event.get("tid", trace_event["pid"]))
        category = trace_event.get("cat", "")
        name = trace_event.get("name", "")

        if phase == "X":
            thread.events.append(TimedEvent(
                start=_us_to_ms(trace_event["ts"]),
                duration=_us_to_ms(trace_event.get("dur", 0)),
                category=category,
                name=name,
                args=trace_event.get("args") or {},
            ))
        elif phase in _INSTANT_PHASES:
            thread.events.append(TimedEvent(
                start=_us_to_ms(trace_event["ts"]),
                duration=0.0,
                category=category,
                name=name,
                args=trace_event.get("args") or {},
            ))
        elif phase == "B":
            open_slices.setdefault((process.pid, thread.tid), []).append(trace_event)
        elif phase == "E":
            stack = open_slices.get((process.pid, thread.tid))
            if not stack:
                skipped += 1
                continue
            begin = stack.pop()
            thread.events.append(TimedEvent(
                start=_us_to_ms(begin["ts"]),
                duration=_us_to_ms(trace_event["ts"]) - _us_to_ms(begin["ts"]),
                category=begin.get("cat", category),
                name=begin.get("name", name),
                args=_merge_args(begin.get("args"), trace_event.get("args")),
            ))
        elif phase in _ASYNC_BEGIN_PHASES:
            key = (process.pid, category, _async_id(trace_event), name)
            open_async[key] = trace_event
        elif phase in _ASYNC_END_PHASES:
            key = (process.pid, category, _async_id(trace_event), name)
            begin = open_async.pop(key, None)
            if begin is None:
                skipped += 1
                continue
            begin_thread = process.get_or_create_thread(begin.get("tid", process.pid))
            begin_thread.async_events.append(TimedEvent(
                start=_us_to_ms(begin["ts"]),
                duration=_us_to_ms(trace_event["ts"]) - _us_to_ms(begin["ts"]),
                category=category,
                name=name,
                args=_merge_args(begin.get("args"), trace_event.get("args")),
            ))
        else:
            skipped += 1

    dangling = sum(len(stack) for stack in open_slices.values()) + len(open_async)
    if skipped or dangling:
        logger.debug("Skipped %d trace events, %d left unterminated", skipped, dangling)
    return model.finalize()


def load_json_trace(path: str | Path) -> TraceModel:
    """
    Load a Chrome JSON trace (.json or .json.gz).

    Accepts both the object form {"traceEvents": [...]} and a bare array.
    """
    path = Path(path)
    logger.debug("Loading JSON trace: %s", path)
    try:
        if path.suffix.lower() == ".gz":
            with gzip.open(path, "rt", encoding="utf-8") as f:
                raw = json.load(f)
        else:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
    except (OSError, ValueError) as exc:
        raise TraceLoadError(f"Could not read trace {path}: {exc}") from exc

    if isinstance(raw, dict):
        trace_events = raw.get("traceEvents")
    else:
        trace_events = raw
    if not isinstance(trace_events, list):
        raise TraceLoadError(f"No traceEvents array found in {path}")
    return load_trace_events(event for event in trace_events if isinstance(event, dict))
