import unittest

from pageload_agent.loading.frames import collect_frame_events
from pageload_agent.loading.windows import (
    IGNORED_URLS,
    build_navigation_windows,
    is_qualifying,
    resolve_navigation
)
from pageload_agent.trace_json import load_trace_events

from trace_fixtures import (
    FRAME,
    RENDERER_PID,
    frame_loader_snapshot,
    navigation_start,
    renderer_metadata,
    trace_end_marker
)


def _windows(events, trace_end=None):
    model = load_trace_events(renderer_metadata() + events)
    frame_events = collect_frame_events(model, model.processes[RENDERER_PID])
    end = trace_end if trace_end is not None else model.bounds_max
    return build_navigation_windows(model, frame_events.navigation_starts, end)


class TestBuildNavigationWindows(unittest.TestCase):
    def test_consecutive_windows_partition_timeline(self):
        windows = _windows([
            navigation_start(0, url="https://a.com/"),
            navigation_start(3000, url="https://b.com/"),
            navigation_start(4500, url="https://c.com/"),
            trace_end_marker(9000),
        ])
        self.assertEqual([(w.start, w.end) for w in windows], [(0.0, 3000.0), (3000.0, 4500.0), (4500.0, 9000.0)])
        self.assertEqual([w.url for w in windows], ["https://a.com/", "https://b.com/", "https://c.com/"])
        for current, following in zip(windows, windows[1:]):
            self.assertEqual(current.end, following.start)
        for window in windows:
            self.assertGreaterEqual(window.end, window.start)

    def test_non_qualifying_navigation_neither_opens_nor_closes(self):
        windows = _windows([
            navigation_start(0, url="https://a.com/"),
            navigation_start(1000, url="about:blank"),
            navigation_start(1500, url="https://sub.a.com/", main_frame=False),
            navigation_start(2000, url="https://b.com/"),
            trace_end_marker(5000),
        ])
        self.assertEqual([(w.start, w.end) for w in windows], [(0.0, 2000.0), (2000.0, 5000.0)])

    def test_about_blank_never_emitted(self):
        windows = _windows([navigation_start(0, url="about:blank"), trace_end_marker(5000)])
        self.assertEqual(windows, [])

    def test_empty_url_ignored(self):
        self.assertIn("", IGNORED_URLS)
        self.assertEqual(_windows([navigation_start(0, url="")]), [])

    def test_frames_are_independent(self):
        windows = _windows([
            navigation_start(0, url="https://a.com/"),
            navigation_start(100, url="https://other.com/", frame="0xf2"),
            navigation_start(500, url="https://b.com/"),
            trace_end_marker(1000),
        ])
        by_frame = {}
        for window in windows:
            by_frame.setdefault(window.frame_id, []).append((window.start, window.end))
        self.assertEqual(by_frame[FRAME], [(0.0, 500.0), (500.0, 1000.0)])
        self.assertEqual(by_frame["0xf2"], [(100.0, 1000.0)])

    def test_snapshot_fallback_for_legacy_navigation(self):
        windows = _windows([
            frame_loader_snapshot(0, "https://legacy.example/"),
            navigation_start(10, url=None),
            trace_end_marker(800),
        ])
        self.assertEqual(len(windows), 1)
        self.assertEqual(windows[0].url, "https://legacy.example/")
        self.assertEqual(windows[0].end, 800.0)

    def test_unresolved_legacy_navigation_dropped(self):
        windows = _windows([navigation_start(10, url=None), trace_end_marker(800)])
        self.assertEqual(windows, [])


class TestResolveNavigation(unittest.TestCase):
    def test_inline_args_win_over_snapshot(self):
        model = load_trace_events(renderer_metadata() + [
            frame_loader_snapshot(0, "https://snapshot/"),
            navigation_start(10, url="https://inline/"),
        ])
        event = model.processes[RENDERER_PID].main_thread.events[0]
        candidate = resolve_navigation(model, event)
        self.assertEqual(candidate.url, "https://inline/")
        self.assertTrue(is_qualifying(candidate))

    def test_snapshot_after_navigation_not_used(self):
        model = load_trace_events(renderer_metadata() + [
            navigation_start(10, url=None),
            frame_loader_snapshot(20, "https://later/"),
        ])
        event = model.processes[RENDERER_PID].main_thread.events[0]
        self.assertIsNone(resolve_navigation(model, event))
        self.assertFalse(is_qualifying(None))


if __name__ == "__main__":
    unittest.main()
