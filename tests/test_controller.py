"""
Tests for ticketlog.controller: pure state transitions and the rollback
policy when the store fails.
"""
import pytest

from conftest import BASE_MS, make_entry
from ticketlog.controller import (
    AppState,
    Controller,
    add_entry,
    recent_entries,
    remove_entry,
    set_filter,
    set_view,
)
from ticketlog.storage import EntryStore


class FailingStore(EntryStore):
    """Store whose writes always fail."""

    def __init__(self, entries=None):
        self.entries = list(entries or [])

    def list(self):
        return list(self.entries)

    def create(self, entry):
        return None

    def delete(self, entry_id):
        return False


class TestTransitions:
    def test_add_prepends_without_mutating(self):
        first = make_entry("A-1", 5, 1)
        second = make_entry("B-1", 5, 2)
        state = AppState(entries=(first,))
        new_state = add_entry(state, second)
        assert new_state.entries == (second, first)
        assert state.entries == (first,)

    def test_remove_by_id(self):
        first = make_entry("A-1", 5, 1)
        second = make_entry("B-1", 5, 2)
        state = remove_entry(AppState(entries=(first, second)), first.id)
        assert state.entries == (second,)

    def test_views_and_filters(self):
        state = set_view(AppState(), "report")
        state = set_filter(state, date_range="30days", project="PROJ")
        assert (state.view, state.date_range, state.project) == ("report", "30days", "PROJ")
        with pytest.raises(ValueError):
            set_view(state, "settings")
        with pytest.raises(ValueError):
            set_filter(state, date_range="yesterday")

    def test_recent_entries_limited_to_five(self):
        entries = tuple(make_entry(f"A-{i}", 5, i) for i in range(8))
        assert len(recent_entries(AppState(entries=entries))) == 5


class TestController:
    def test_load_add_delete_against_local_store(self, local_store):
        controller = Controller(local_store)
        assert controller.load().entries == ()
        entry = make_entry("PROJ-1", 30)
        assert controller.add(entry) is True
        assert controller.state.entries == (entry,)
        assert Controller(local_store).load().entries == (entry,)
        assert controller.delete(entry.id) is True
        assert controller.state.entries == ()
        assert local_store.list() == []

    def test_failed_create_rolls_back(self):
        controller = Controller(FailingStore())
        controller.load()
        assert controller.add(make_entry("PROJ-1", 30)) is False
        assert controller.state.entries == ()

    def test_failed_delete_restores_entry(self):
        entry = make_entry("PROJ-1", 30)
        controller = Controller(FailingStore([entry]))
        controller.load()
        assert controller.delete(entry.id) is False
        assert controller.state.entries == (entry,)

    def test_report_entries_use_current_filters(self, local_store):
        day = 86_400_000
        keep = make_entry("PROJ-1", 30, BASE_MS - day)
        other_project = make_entry("OPS-1", 30, BASE_MS - day)
        too_old = make_entry("PROJ-2", 30, BASE_MS - 10 * day)
        for entry in (keep, other_project, too_old):
            local_store.create(entry)
        controller = Controller(local_store)
        controller.load()
        controller.filter(date_range="7days", project="PROJ")
        assert controller.report_entries(now_ms=BASE_MS) == [keep]
        assert len(controller.history()) == 3
