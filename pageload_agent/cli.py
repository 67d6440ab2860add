"""CLI entry point for the page-load interactivity analyzer."""

import json
import logging

import typer
from pathlib import Path
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from pageload_agent.analyzer import DEFAULT_SCHEMA_VERSION, TRACE_FORMATS, analyze_trace

app = typer.Typer(
    help="Page Load Analyzer - FMP, First CPU Idle and Time To Interactive per navigation",
    no_args_is_help=True
)
console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True
    )


def _format_ms(value: float | None) -> str:
    if value is None:
        return "-"
    return f"{value:.1f}"


def _print_table(result: dict) -> None:
    table = Table(title="Load expectations")
    table.add_column("URL", overflow="fold")
    table.add_column("Frame")
    table.add_column("Start ms", justify="right")
    table.add_column("FMP", justify="right")
    table.add_column("DCL", justify="right")
    table.add_column("FCI", justify="right")
    table.add_column("TTI", justify="right")
    table.add_column("Duration", justify="right")
    for item in result["load_expectations"]:
        relative = item["since_navigation_ms"]
        table.add_row(
            escape(item["url"]),
            escape(str(item["frame_id"])),
            _format_ms(item["start_ms"]),
            _format_ms(relative["fmp"]),
            _format_ms(relative["dcl"]),
            _format_ms(relative["first_cpu_idle"]),
            _format_ms(relative["interactive"]),
            _format_ms(item["duration_ms"])
        )
    console.print(table)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """Page Load Analyzer - derive interactivity metrics from browser traces."""
    if ctx.invoked_subcommand is None:
        # Show help if no subcommand is provided
        pass


@app.command()
def analyze(
    trace: Path = typer.Option(..., "--trace", help="Path to a Chrome JSON or Perfetto trace file"),
    out: Path = typer.Option("load_expectations.json", "--out", help="Output JSON file path"),
    trace_format: str = typer.Option("auto", "--format", help="Trace format: auto, json or perfetto"),
    schema_version: str = typer.Option(DEFAULT_SCHEMA_VERSION, "--schema-version", help="Schema version to emit in JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log loader and engine decisions"),
):
    """Analyze a trace and write one load expectation per navigation."""
    _configure_logging(verbose)

    # Validate trace file exists
    if not trace.exists():
        console.print(f"[red]Error:[/red] Trace file not found: {escape(str(trace))}")
        raise typer.Exit(code=1)

    if not trace.is_file():
        console.print(f"[red]Error:[/red] Path is not a file: {escape(str(trace))}")
        raise typer.Exit(code=1)

    if trace_format not in TRACE_FORMATS:
        console.print(f"[red]Error:[/red] Unknown format {trace_format!r}; use one of {', '.join(TRACE_FORMATS)}")
        raise typer.Exit(code=1)

    console.print(f"[blue]Analyzing trace:[/blue] {trace}")
    console.print(f"[blue]Output file:[/blue] {out}")
    console.print(f"[blue]Trace format:[/blue] {trace_format}")
    console.print(f"[blue]Schema version:[/blue] {schema_version}")

    try:
        result = analyze_trace(
            trace_path=str(trace),
            trace_format=trace_format,
            schema_version=schema_version
        )

        with open(out, 'w') as f:
            json.dump(result, f, indent=2)

    except Exception as e:
        console.print(f"[red]Error during analysis:[/red] {escape(str(e))}")
        raise typer.Exit(code=1)

    _print_table(result)
    console.print(f"[green]✓[/green] Analysis complete: {out}")


if __name__ == "__main__":
    app()
