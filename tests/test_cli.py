import json
import tempfile
import unittest
from pathlib import Path

from typer.testing import CliRunner

from pageload_agent.cli import app

from trace_fixtures import dcl_end, fmp_candidate, navigation_start, renderer_metadata, trace_end_marker


class TestAnalyzeCommand(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def test_writes_report(self):
        trace = self.dir / "trace.json"
        trace.write_text(json.dumps({"traceEvents": renderer_metadata() + [
            navigation_start(0, url="https://example.com/"),
            fmp_candidate(750),
            dcl_end(800),
            trace_end_marker(5000),
        ]}))
        out = self.dir / "report.json"

        result = self.runner.invoke(app, ["analyze", "--trace", str(trace), "--out", str(out)])

        self.assertEqual(result.exit_code, 0, result.output)
        report = json.loads(out.read_text())
        self.assertEqual(report["summary"]["load_count"], 1)
        self.assertEqual(report["load_expectations"][0]["url"], "https://example.com/")

    def test_url_with_brackets_does_not_break_table(self):
        trace = self.dir / "trace.json"
        trace.write_text(json.dumps({"traceEvents": renderer_metadata() + [
            navigation_start(0, url="https://a.com/[/]"),
            trace_end_marker(5000),
        ]}))
        out = self.dir / "report.json"

        result = self.runner.invoke(app, ["analyze", "--trace", str(trace), "--out", str(out)])

        self.assertEqual(result.exit_code, 0, result.output)
        report = json.loads(out.read_text())
        self.assertEqual(report["load_expectations"][0]["url"], "https://a.com/[/]")

    def test_missing_trace(self):
        result = self.runner.invoke(app, ["analyze", "--trace", str(self.dir / "missing.json")])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Trace file not found", result.output)

    def test_unknown_format(self):
        trace = self.dir / "trace.json"
        trace.write_text("[]")
        result = self.runner.invoke(app, ["analyze", "--trace", str(trace), "--format", "xml"])
        self.assertEqual(result.exit_code, 1)

    def test_broken_trace_reports_error(self):
        trace = self.dir / "trace.json"
        trace.write_text("{broken")
        out = self.dir / "report.json"
        result = self.runner.invoke(app, ["analyze", "--trace", str(trace), "--out", str(out)])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Error during analysis", result.output)
        self.assertFalse(out.exists())


if __name__ == "__main__":
    unittest.main()
