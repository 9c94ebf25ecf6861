"""Command-line interface for the Ticketlog tool."""
from __future__ import annotations

import logging
import os
import subprocess
import sys
import time
from datetime import date, datetime
from pathlib import Path
from typing import Callable, List, Optional
from urllib import request as urllib_request

import typer
from rich import print as rprint
from rich.live import Live
from rich.markdown import Markdown
from rich.table import Table
from rich.text import Text

from . import reports, state
from .config import Settings, load_settings
from .controller import Controller, recent_entries
from .models import TimeEntry, ValidationError, build_manual_entry
from .storage import store_from_settings
from .summarizer import GeminiSummarizer
from .timer import Ticker, TimerError, TimerSession, format_clock

app = typer.Typer(help="Log time against tickets and build reports")
timer_app = typer.Typer(help="Start, stop and inspect the running timer")
report_app = typer.Typer(help="Project distribution, CSV export and AI summaries")
service_app = typer.Typer(help="Background API service utilities")

SERVER_MODULE_PATH = "ticketlog.server"
BAR_WIDTH = 30

logger = logging.getLogger(__name__)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Ticketlog: time tracking for ticket-based work."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _settings() -> Settings:
    try:
        return load_settings()
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _controller(settings: Settings) -> Controller:
    controller = Controller(store_from_settings(settings))
    controller.load()
    return controller


def _parse_work_date(value: Optional[str]) -> date:
    if not value:
        return date.today()
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid date '{value}'. Use YYYY-MM-DD.") from exc


def _check_range(date_range: str) -> str:
    if date_range not in reports.DATE_RANGES:
        raise typer.BadParameter(f"Unknown range '{date_range}'. Use one of: {', '.join(reports.DATE_RANGES)}")
    return date_range


def _format_when(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp / 1000).strftime("%Y-%m-%d")


def _entries_table(entries: List[TimeEntry], title: str, show_ids: bool = True) -> Table:
    table = Table(title=title)
    if show_ids:
        table.add_column("ID", style="dim")
    table.add_column("Date", style="cyan")
    table.add_column("Ticket", style="magenta")
    table.add_column("Description")
    table.add_column("Duration", justify="right")
    for entry in entries:
        cells = [
            _format_when(entry.timestamp),
            entry.ticket_id,
            entry.description,
            reports.format_duration(entry.duration_minutes),
        ]
        if show_ids:
            cells.insert(0, entry.id)
        table.add_row(*cells)
    return table


def _timer_text(session: TimerSession, elapsed: int) -> Text:
    active = session.active
    if active is None:
        return Text("Timer  00:00:00", style="bold")
    label = f"Running  {format_clock(elapsed)}  {active.ticket_id}"
    if active.description:
        label += f" · {active.description}"
    return Text(label, style="bold green")


# ---------------------------------------------------------------------------
# Logging time
# ---------------------------------------------------------------------------

@app.command("log")
def log_time(
    ticket_id: str = typer.Argument(..., help="Ticket ID, e.g. PROJ-123"),
    description: str = typer.Argument(..., help="What you worked on"),
    hours: int = typer.Option(0, "--hours", "-H", help="Hours spent"),
    minutes: int = typer.Option(0, "--minutes", "-m", help="Minutes spent (0-59)"),
    work_date: Optional[str] = typer.Option(None, "--date", "-d", help="Work date (YYYY-MM-DD), defaults to today"),
) -> None:
    """Record a manual time entry."""

    try:
        entry = build_manual_entry(ticket_id, description, hours, minutes, _parse_work_date(work_date))
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc

    controller = Controller(store_from_settings(_settings()))
    if not controller.add(entry):
        typer.echo("Failed to save entry; nothing was recorded.", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Logged {reports.format_duration(entry.duration_minutes)} on {entry.ticket_id} ({entry.id}).")


@app.command("history")
def history(
    project: str = typer.Option(reports.ALL_PROJECTS, "--project", "-p", help="Only show one project"),
) -> None:
    """Show every entry, newest first."""

    controller = _controller(_settings())
    controller.show("history")
    entries = reports.filter_entries(controller.state.entries, "all", project)
    if not entries:
        typer.echo("No time entries yet.")
        return
    rprint(_entries_table(entries, "Work History"))


@app.command("delete")
def delete_entry(
    entry_id: str = typer.Argument(..., help="ID of the entry to delete"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
) -> None:
    """Delete an entry."""

    if not yes and not typer.confirm("Are you sure you want to delete this entry?"):
        typer.echo("Aborted.")
        raise typer.Exit(code=0)
    controller = _controller(_settings())
    if not controller.delete(entry_id):
        typer.echo(f"Failed to delete entry '{entry_id}'.", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Deleted entry '{entry_id}'.")


@app.command("dashboard")
def dashboard() -> None:
    """Show the timer and the most recent activity."""

    settings = _settings()
    session = TimerSession(settings.home)
    elapsed = session.resume() or 0
    rprint(_timer_text(session, elapsed))

    controller = _controller(settings)
    controller.show("log")
    recent = recent_entries(controller.state)
    if not recent:
        typer.echo("No recent activity.")
        return
    rprint(_entries_table(recent, "Recent Activity"))
    remaining = len(controller.state.entries) - len(recent)
    if remaining > 0:
        typer.echo(f"{remaining} more in `ticketlog history`.")


# ---------------------------------------------------------------------------
# Timer
# ---------------------------------------------------------------------------

@timer_app.command("start")
def timer_start(
    ticket_id: str = typer.Argument(..., help="Ticket ID, e.g. PROJ-123"),
    description: str = typer.Argument("", help="What you are working on"),
) -> None:
    """Start the timer for a ticket."""

    session = TimerSession(_settings().home)
    session.resume()
    try:
        active = session.start(ticket_id, description)
    except (ValidationError, TimerError) as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(f"Timer started for {active.ticket_id}.")


@timer_app.command("stop")
def timer_stop() -> None:
    """Stop the timer and record the elapsed time."""

    settings = _settings()
    session = TimerSession(settings.home)
    session.resume()
    active = session.active
    try:
        entry = session.stop()
    except TimerError as exc:
        raise typer.BadParameter(str(exc)) from exc

    controller = Controller(store_from_settings(settings))
    if not controller.add(entry):
        # Put the timer back so the elapsed time is not lost
        state.save_active_timer(settings.home, active)
        typer.echo("Failed to save entry; the timer is still running.", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Logged {reports.format_duration(entry.duration_minutes)} on {entry.ticket_id}.")


@timer_app.command("cancel")
def timer_cancel() -> None:
    """Discard the running timer without logging time."""

    session = TimerSession(_settings().home)
    session.resume()
    try:
        active = session.cancel()
    except TimerError as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(f"Discarded timer for {active.ticket_id}.")


@timer_app.command("status")
def timer_status() -> None:
    """Print the running timer, if any."""

    session = TimerSession(_settings().home)
    elapsed = session.resume()
    if elapsed is None:
        typer.echo("No timer is running.")
        return
    rprint(_timer_text(session, elapsed))


@timer_app.command("watch")
def timer_watch() -> None:
    """Display a live clock for the running timer (Ctrl+C to exit)."""

    session = TimerSession(_settings().home)
    elapsed = session.resume()
    if elapsed is None:
        typer.echo("No timer is running.")
        return

    with Live(_timer_text(session, elapsed), refresh_per_second=4) as live:
        ticker = Ticker(session, lambda seconds: live.update(_timer_text(session, seconds)))
        ticker.start()
        try:
            while ticker.running:
                time.sleep(0.25)
        except KeyboardInterrupt:
            pass
        finally:
            ticker.cancel()
    if not session.is_running:
        typer.echo("Timer is no longer running.")


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

def _report_entries(date_range: str, project: str) -> List[TimeEntry]:
    controller = _controller(_settings())
    controller.show("report")
    try:
        controller.filter(_check_range(date_range), project)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    return controller.report_entries()


@report_app.command("show")
def report_show(
    date_range: str = typer.Option("7days", "--range", "-r", help="all, 7days or 30days"),
    project: str = typer.Option(reports.ALL_PROJECTS, "--project", "-p", help="Project key or 'all'"),
) -> None:
    """Project distribution and detailed logs for the selected filters."""

    entries = _report_entries(date_range, project)
    totals = reports.group_by_project(entries)
    if not totals:
        typer.echo("No data for selected filters.")
        return

    grand_total = reports.total_minutes(entries)
    chart = Table(title="Project Distribution")
    chart.add_column("Project", style="magenta")
    chart.add_column("Time Spent", justify="right")
    chart.add_column("Share")
    for item in sorted(totals, key=lambda total: total.total, reverse=True):
        share = item.total / grand_total
        bar = "█" * max(1, round(share * BAR_WIDTH))
        chart.add_row(item.project, reports.format_duration(item.total), f"{bar} {share:.0%}")
    rprint(chart)
    rprint(_entries_table(entries, "Detailed Logs", show_ids=False))
    typer.echo(f"Total: {reports.format_duration(grand_total)} across {len(entries)} entries.")


@report_app.command("csv")
def report_csv(
    date_range: str = typer.Option("7days", "--range", "-r", help="all, 7days or 30days"),
    project: str = typer.Option(reports.ALL_PROJECTS, "--project", "-p", help="Project key or 'all'"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Target file (defaults to CWD/jira_time_report_<date>.csv)"),
) -> None:
    """Export the filtered entries as CSV."""

    entries = _report_entries(date_range, project)
    output_path = (output if output is not None else Path.cwd() / reports.csv_filename()).resolve()
    output_path.write_text(reports.entries_to_csv(entries), encoding="utf-8")
    typer.echo(f"Wrote {len(entries)} entries to {output_path}")


@report_app.command("summary")
def report_summary(
    date_range: str = typer.Option("7days", "--range", "-r", help="all, 7days or 30days"),
    project: str = typer.Option(reports.ALL_PROJECTS, "--project", "-p", help="Project key or 'all'"),
    tone: str = typer.Option("professional", "--tone", "-t", help="professional, casual or bullet-points"),
) -> None:
    """Generate an AI status report from the filtered entries."""

    if tone not in reports.TONES:
        raise typer.BadParameter(f"Unknown tone '{tone}'. Use one of: {', '.join(reports.TONES)}")
    settings = _settings()
    entries = _report_entries(date_range, project)
    summarizer = GeminiSummarizer(settings.api_key, settings.gemini_model)
    rprint(Markdown(reports.generate_summary(entries, tone, summarizer)))


@report_app.command("projects")
def report_projects() -> None:
    """List the projects present in the log."""

    controller = _controller(_settings())
    projects = reports.available_projects(controller.state.entries)
    if not projects:
        typer.echo("No projects found.")
        return
    for project in projects:
        typer.echo(project)


# ---------------------------------------------------------------------------
# Background service
# ---------------------------------------------------------------------------

def _local_url(settings: Settings, path: str) -> str:
    return f"http://127.0.0.1:{settings.port}{path}"


def _server_up(settings: Settings) -> bool:
    try:
        with urllib_request.urlopen(_local_url(settings, "/__health"), timeout=0.5) as resp:
            return resp.status == 200
    except OSError:
        return False


def _wait_for(condition: Callable[[], bool], seconds: float = 5.0) -> bool:
    deadline = time.monotonic() + seconds
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.2)
    return False


def _launch_server(settings: Settings) -> subprocess.Popen:
    """Run ``ticketlog.server`` detached, appending its output to server.log."""
    cmd = [sys.executable, "-m", SERVER_MODULE_PATH, "--port", str(settings.port), "--db", str(settings.db_path)]
    with open(state.server_log_path(settings.home), "a", encoding="utf-8") as log_handle:
        # The child inherits its own copy of the descriptor
        return subprocess.Popen(
            cmd,
            stdout=log_handle,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            start_new_session=os.name != "nt",
        )


@service_app.command("start")
def service_start() -> None:
    """Serve the entries API locally so TICKETLOG_STORAGE=remote clients can use it."""

    settings = _settings()
    if _server_up(settings):
        typer.echo(f"API already listening at {_local_url(settings, '/api/entries')}.")
        return

    process = _launch_server(settings)
    _wait_for(lambda: process.poll() is not None or _server_up(settings))
    if process.poll() is not None or not _server_up(settings):
        process.terminate()
        raise typer.BadParameter(f"API server did not come up; see {state.server_log_path(settings.home)}")

    state.write_server_info(settings.home, {"pid": process.pid, "port": settings.port})
    typer.echo(f"API listening at {_local_url(settings, '/api/entries')} (pid {process.pid}).")


@service_app.command("stop")
def service_stop() -> None:
    """Shut down the local API server."""

    settings = _settings()
    if not _server_up(settings):
        state.clear_server_info(settings.home)
        typer.echo("API server is not running.")
        return

    request_obj = urllib_request.Request(_local_url(settings, "/__stop"), data=b"{}", method="POST")
    try:
        with urllib_request.urlopen(request_obj, timeout=1):
            pass
    except OSError as exc:
        logger.debug("Stop request failed: %s", exc)

    if not _wait_for(lambda: not _server_up(settings)):
        typer.echo(f"API server on port {settings.port} did not stop.", err=True)
        raise typer.Exit(code=1)
    state.clear_server_info(settings.home)
    typer.echo("API server stopped.")


@service_app.command("status")
def service_status() -> None:
    """Report whether the local API server is up and where it logs."""

    settings = _settings()
    if _server_up(settings):
        info = state.read_server_info(settings.home) or {}
        pid = f" (pid {info['pid']})" if info.get("pid") else ""
        typer.echo(f"API listening at {_local_url(settings, '/api/entries')}{pid}.")
    else:
        typer.echo("API server is not running.")
    typer.echo(f"Server log: {state.server_log_path(settings.home)}")


app.add_typer(timer_app, name="timer")
app.add_typer(report_app, name="report")
app.add_typer(service_app, name="service")


if __name__ == "__main__":
    app()
