"""Application state and the controller that keeps it in step with the store."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

from . import reports
from .models import TimeEntry
from .storage import EntryStore

VIEWS = ("log", "history", "report")
RECENT_LIMIT = 5

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppState:
    view: str = "log"
    entries: Tuple[TimeEntry, ...] = field(default_factory=tuple)
    date_range: str = "7days"
    project: str = reports.ALL_PROJECTS


def with_entries(state: AppState, entries: List[TimeEntry]) -> AppState:
    return replace(state, entries=tuple(entries))


def add_entry(state: AppState, entry: TimeEntry) -> AppState:
    return replace(state, entries=(entry,) + state.entries)


def remove_entry(state: AppState, entry_id: str) -> AppState:
    return replace(state, entries=tuple(entry for entry in state.entries if entry.id != entry_id))


def set_view(state: AppState, view: str) -> AppState:
    if view not in VIEWS:
        raise ValueError(f"Unknown view '{view}'")
    return replace(state, view=view)


def set_filter(state: AppState, date_range: Optional[str] = None, project: Optional[str] = None) -> AppState:
    if date_range is not None and date_range not in reports.DATE_RANGES:
        raise ValueError(f"Unknown date range '{date_range}'")
    return replace(
        state,
        date_range=date_range if date_range is not None else state.date_range,
        project=project if project is not None else state.project,
    )


def recent_entries(state: AppState, limit: int = RECENT_LIMIT) -> List[TimeEntry]:
    return list(state.entries[:limit])


class Controller:
    """Owns the current AppState and dispatches mutations to an EntryStore.

    Mutations are applied to local state first. When the store reports a
    failure the local change is rolled back, so local and stored entries
    do not drift apart.
    """

    def __init__(self, store: EntryStore, state: Optional[AppState] = None) -> None:
        self.store = store
        self.state = state or AppState()

    def load(self) -> AppState:
        self.state = with_entries(self.state, self.store.list())
        return self.state

    def add(self, entry: TimeEntry) -> bool:
        previous = self.state
        self.state = add_entry(previous, entry)
        if self.store.create(entry) is None:
            logger.warning("Rolling back entry %s after store failure", entry.id)
            self.state = previous
            return False
        return True

    def delete(self, entry_id: str) -> bool:
        previous = self.state
        self.state = remove_entry(previous, entry_id)
        if not self.store.delete(entry_id):
            logger.warning("Restoring entry %s after store failure", entry_id)
            self.state = previous
            return False
        return True

    def show(self, view: str) -> AppState:
        self.state = set_view(self.state, view)
        return self.state

    def filter(self, date_range: Optional[str] = None, project: Optional[str] = None) -> AppState:
        self.state = set_filter(self.state, date_range, project)
        return self.state

    def report_entries(self, now_ms: Optional[int] = None) -> List[TimeEntry]:
        return reports.filter_entries(self.state.entries, self.state.date_range, self.state.project, now_ms)

    def history(self) -> List[TimeEntry]:
        return reports.filter_entries(self.state.entries)
