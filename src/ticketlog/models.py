"""Time entry and active timer records."""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Dict, Optional

DEFAULT_TIMER_DESCRIPTION = "Worked on ticket"
PROJECT_SEPARATOR = "-"
MAX_MINUTES = 59


class ValidationError(ValueError):
    """Raised when user input cannot become a time entry."""


def normalize_ticket_id(value: Optional[str]) -> str:
    return (value or "").strip().upper()


def project_of(ticket_id: str) -> str:
    """Project key for a ticket: the part before the first '-', or the whole id."""
    if PROJECT_SEPARATOR in ticket_id:
        return ticket_id.split(PROJECT_SEPARATOR, 1)[0]
    return ticket_id


def new_entry_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class TimeEntry:
    id: str
    ticket_id: str
    description: str
    duration_minutes: int
    timestamp: int

    @property
    def project(self) -> str:
        return project_of(self.ticket_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "ticketId": self.ticket_id,
            "description": self.description,
            "durationMinutes": self.duration_minutes,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, payload: Any) -> "TimeEntry":
        if not isinstance(payload, dict):
            raise ValidationError("Entry payload must be a JSON object")
        missing = [key for key in ("id", "ticketId", "durationMinutes", "timestamp") if payload.get(key) in (None, "")]
        if missing:
            raise ValidationError(f"Missing fields: {', '.join(missing)}")
        duration = _whole_number(payload["durationMinutes"], "durationMinutes")
        timestamp = _whole_number(payload["timestamp"], "timestamp")
        if duration < 1:
            raise ValidationError("durationMinutes must be at least 1")
        if not isinstance(payload["ticketId"], str):
            raise ValidationError("ticketId must be a string")
        ticket_id = normalize_ticket_id(payload["ticketId"])
        if not ticket_id:
            raise ValidationError("ticketId must not be blank")
        description = payload.get("description")
        if description is not None and not isinstance(description, str):
            raise ValidationError("description must be a string")
        return cls(
            id=str(payload["id"]),
            ticket_id=ticket_id,
            description=description or "",
            duration_minutes=duration,
            timestamp=timestamp,
        )


def _whole_number(value: Any, field: str) -> int:
    # bool is an int subclass; JSON true must not become 1
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as exc:
            raise ValidationError(f"{field} must be an integer") from exc
    raise ValidationError(f"{field} must be an integer")


@dataclass(frozen=True)
class ActiveTimer:
    start_time: int
    ticket_id: str
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "startTime": self.start_time,
            "ticketId": self.ticket_id,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ActiveTimer":
        return cls(
            start_time=int(payload["startTime"]),
            ticket_id=str(payload["ticketId"]),
            description=payload.get("description") or "",
        )


def noon_timestamp(work_date: date) -> int:
    """Epoch milliseconds for local noon on ``work_date``."""
    # Noon keeps the calendar date stable when the value is read back in a nearby timezone
    return int(datetime.combine(work_date, time(12, 0)).timestamp() * 1000)


def build_manual_entry(
    ticket_id: str,
    description: str,
    hours: int,
    minutes: int,
    work_date: date,
) -> TimeEntry:
    ticket_id = normalize_ticket_id(ticket_id)
    description = (description or "").strip()
    if hours < 0 or minutes < 0:
        raise ValidationError("Hours and minutes cannot be negative.")
    if minutes > MAX_MINUTES:
        raise ValidationError(f"Minutes must be between 0 and {MAX_MINUTES}; use --hours for longer work.")
    if not ticket_id or not description or (hours == 0 and minutes == 0):
        raise ValidationError("Please fill in Ticket ID, Description and at least some time.")
    return TimeEntry(
        id=new_entry_id(),
        ticket_id=ticket_id,
        description=description,
        duration_minutes=hours * 60 + minutes,
        timestamp=noon_timestamp(work_date),
    )
