"""Report pipeline: filtering, per-project totals, CSV export and AI summaries."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence

from .models import TimeEntry, project_of
from .summarizer import MissingCredential, RequestFailed, Summarizer
from .timer import current_ms

MS_PER_DAY = 86_400_000
DATE_RANGES: Dict[str, Optional[int]] = {"all": None, "7days": 7, "30days": 30}
ALL_PROJECTS = "all"
TONES = ("professional", "casual", "bullet-points")
CSV_BOM = "\ufeff"
CSV_HEADERS = ["Date", "Ticket ID", "Project", "Duration (Minutes)", "Duration (Formatted)", "Description"]
CSV_DATE_FORMAT = "%Y-%m-%d"

NO_ENTRIES_MESSAGE = "No entries found to report on."
MISSING_CREDENTIAL_MESSAGE = "Error: API Key is missing. Please ensure GEMINI_API_KEY is set."

SUMMARY_TEMPLATE = """You are a helpful assistant generating a work status report.

Here are my work logs:
{entries}

Please generate a {tone} summary report suitable for sending to a manager or posting in a standup channel.
Group the work logically by Ticket ID if possible.
Calculate total time spent.
Highlight key accomplishments based on the descriptions.
Format the output in clean Markdown.
"""

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectTotal:
    project: str
    total: int


def filter_entries(
    entries: Iterable[TimeEntry],
    date_range: str = "all",
    project: str = ALL_PROJECTS,
    now_ms: Optional[int] = None,
) -> List[TimeEntry]:
    """Apply date-range and project filters; newest entries first."""
    if date_range not in DATE_RANGES:
        raise ValueError(f"Unknown date range '{date_range}'. Use one of: {', '.join(DATE_RANGES)}")
    result = list(entries)
    days = DATE_RANGES[date_range]
    if days is not None:
        now_ms = current_ms() if now_ms is None else now_ms
        cutoff = now_ms - days * MS_PER_DAY
        result = [entry for entry in result if entry.timestamp >= cutoff]
    if project and project != ALL_PROJECTS:
        result = [entry for entry in result if project_of(entry.ticket_id) == project]
    result.sort(key=lambda entry: entry.timestamp, reverse=True)
    return result


def available_projects(entries: Iterable[TimeEntry]) -> List[str]:
    return sorted({project_of(entry.ticket_id) for entry in entries})


def group_by_project(entries: Iterable[TimeEntry]) -> List[ProjectTotal]:
    totals: Dict[str, int] = {}
    for entry in entries:
        key = project_of(entry.ticket_id)
        totals[key] = totals.get(key, 0) + entry.duration_minutes
    return [ProjectTotal(project=key, total=value) for key, value in totals.items()]


def total_minutes(entries: Iterable[TimeEntry]) -> int:
    return sum(entry.duration_minutes for entry in entries)


def format_duration(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    parts: List[str] = []
    if hours:
        parts.append(f"{hours}h")
    if mins or not hours:
        parts.append(f"{mins}m")
    return " ".join(parts)


def format_entry_date(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp / 1000).strftime(CSV_DATE_FORMAT)


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def entries_to_csv(entries: Sequence[TimeEntry]) -> str:
    rows = [",".join(CSV_HEADERS)]
    for entry in entries:
        rows.append(
            ",".join(
                [
                    format_entry_date(entry.timestamp),
                    entry.ticket_id,
                    project_of(entry.ticket_id),
                    str(entry.duration_minutes),
                    format_duration(entry.duration_minutes),
                    _quote(entry.description),
                ]
            )
        )
    return CSV_BOM + "\n".join(rows)


def csv_filename(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"jira_time_report_{today.isoformat()}.csv"


def build_summary_prompt(entries: Sequence[TimeEntry], tone: str = "professional") -> str:
    lines = [
        f"- Ticket: {entry.ticket_id}, Time: {entry.duration_minutes} mins, "
        f"Date: {format_entry_date(entry.timestamp)}, Description: {entry.description}"
        for entry in entries
    ]
    return SUMMARY_TEMPLATE.format(entries="\n".join(lines), tone=tone)


def generate_summary(entries: Sequence[TimeEntry], tone: str, summarizer: Summarizer) -> str:
    """Ask the summarizer for a status report; failures come back as display text."""
    if not entries:
        return NO_ENTRIES_MESSAGE
    prompt = build_summary_prompt(entries, tone)
    try:
        return summarizer.summarize(prompt)
    except MissingCredential:
        return MISSING_CREDENTIAL_MESSAGE
    except RequestFailed as exc:
        logger.error("Summary generation failed: %s", exc)
        return f"Error generating report: {exc}"
