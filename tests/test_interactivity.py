import unittest

from pageload_agent.loading.interactivity import (
    QuietWindowEvaluator,
    network_busy_intervals,
    required_quiet_window_ms,
    task_clusters
)
from pageload_agent.model import TimedEvent


def _task(start, end):
    return TimedEvent(float(start), float(end - start), "toplevel", "RunTask")


def _request(start, end):
    return TimedEvent(float(start), float(end - start), "netlog", "URL_REQUEST")


class TestHelpers(unittest.TestCase):
    def test_required_window_decays(self):
        self.assertAlmostEqual(required_quiet_window_ms(0), 5000.0)
        self.assertAlmostEqual(required_quiet_window_ms(15000), 3000.0)
        self.assertGreater(required_quiet_window_ms(60000), 1000.0)
        self.assertAlmostEqual(required_quiet_window_ms(-50), 5000.0)

    def test_task_clusters(self):
        clusters = task_clusters([_task(2000, 2100), _task(600, 700), _task(0, 100)])
        self.assertEqual(clusters, [(0.0, 700.0), (2000.0, 2100.0)])

    def test_network_busy_needs_three_in_flight(self):
        requests = [_request(0, 100), _request(10, 100), _request(20, 200)]
        self.assertEqual(network_busy_intervals(requests), [(20.0, 100.0)])
        self.assertEqual(network_busy_intervals(requests[:2]), [])

    def test_touching_requests_are_not_concurrent(self):
        requests = [_request(0, 100), _request(0, 100), _request(100, 200)]
        self.assertEqual(network_busy_intervals(requests), [])


class TestFirstCpuIdle(unittest.TestCase):
    def setUp(self):
        self.evaluator = QuietWindowEvaluator()

    def test_no_tasks_returns_dcl_when_later(self):
        self.assertEqual(self.evaluator.compute_first_cpu_idle(1000, 10000, 1200, []), 1200)
        self.assertEqual(self.evaluator.compute_first_cpu_idle(1000, 10000, 400, []), 1000)

    def test_heavy_cluster_moves_candidate(self):
        result = self.evaluator.compute_first_cpu_idle(1000, 20000, 1200, [_task(2000, 2300)])
        self.assertEqual(result, 2300)

    def test_lonely_light_cluster_ignored(self):
        result = self.evaluator.compute_first_cpu_idle(1000, 20000, 1200, [_task(2000, 2100)])
        self.assertEqual(result, 1200)

    def test_heavy_cluster_after_quiet_window_ignored(self):
        result = self.evaluator.compute_first_cpu_idle(1000, 20000, 0, [_task(6500, 7000)])
        self.assertEqual(result, 1000)

    def test_window_too_short(self):
        self.assertIsNone(self.evaluator.compute_first_cpu_idle(1000, 5999, 1200, []))


class TestInteractiveTime(unittest.TestCase):
    def setUp(self):
        self.evaluator = QuietWindowEvaluator()

    def test_any_long_task_blocks(self):
        result = self.evaluator.compute_interactive_time(1000, 20000, 500, [_task(1500, 1600)], [])
        self.assertEqual(result, 1600)

    def test_busy_network_blocks(self):
        requests = [_request(1000, 3000), _request(1000, 3000), _request(1000, 4000)]
        result = self.evaluator.compute_interactive_time(1000, 20000, 500, [_task(1500, 1600)], requests)
        self.assertEqual(result, 3000)

    def test_quiet_network_does_not_block(self):
        requests = [_request(1000, 9000), _request(1000, 9000)]
        result = self.evaluator.compute_interactive_time(1000, 20000, 500, [], requests)
        self.assertEqual(result, 1000)

    def test_window_end_is_inclusive(self):
        self.assertEqual(self.evaluator.compute_interactive_time(1000, 6000, 500, [], []), 1000)
        self.assertIsNone(self.evaluator.compute_interactive_time(1000, 5999, 500, [], []))

    def test_custom_window(self):
        evaluator = QuietWindowEvaluator(interactive_window_ms=1000)
        self.assertEqual(evaluator.compute_interactive_time(1000, 2500, 1100, [], []), 1100)


if __name__ == "__main__":
    unittest.main()
