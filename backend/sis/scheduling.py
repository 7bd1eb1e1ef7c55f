"""Terms, weekly time slots and overlap detection for course offerings."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

SEMESTERS = ("Fall", "Spring", "Summer")
DAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday")

# Offerings are scheduled in whole hours on an H:00 grid.
OFFERING_LENGTH_HOURS = 1
LAST_HOUR = 23

_HOUR_PATTERN = re.compile(r"^([0-9]|1[0-9]|2[0-3]):00$")


@dataclass(frozen=True)
class Term:
    """An academic scheduling period."""

    semester: str
    year: int

    def as_filter(self) -> dict:
        return {"semester": self.semester, "year": self.year}

    def __str__(self) -> str:
        return f"{self.semester} {self.year}"


def parse_hour(value: Any) -> int:
    """Return the hour of an ``H:00`` string, raising ValueError otherwise."""

    text = str(value).strip() if value is not None else ""
    if not _HOUR_PATTERN.match(text):
        raise ValueError(f"{text!r} is not a valid time. Use HH:00")
    return int(text.split(":", 1)[0])


def format_hour(hour: int) -> str:
    return f"{hour}:00"


@dataclass(frozen=True)
class TimeSlot:
    """A half-open ``[start_hour, end_hour)`` interval on a weekday."""

    day: str
    start_hour: int
    end_hour: int

    def __post_init__(self) -> None:
        if self.end_hour <= self.start_hour:
            raise ValueError("A time slot must end after it starts.")

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "TimeSlot":
        return cls(
            day=document["day"],
            start_hour=parse_hour(document["startTime"]),
            end_hour=parse_hour(document["endTime"]),
        )

    def overlaps(self, other: "TimeSlot") -> bool:
        if self.day != other.day:
            return False
        return self.start_hour < other.end_hour and other.start_hour < self.end_hour


def weekly_order(document: Mapping[str, Any]) -> tuple:
    """Sort key placing offerings in day-of-week, then start-hour order."""

    day = document.get("day")
    day_index = DAYS.index(day) if day in DAYS else len(DAYS)
    try:
        hour = parse_hour(document.get("startTime"))
    except ValueError:
        hour = LAST_HOUR + 1
    return (day_index, hour)


def has_conflict(candidate: TimeSlot, existing: Iterable[TimeSlot]) -> bool:
    return any(candidate.overlaps(slot) for slot in existing)


def find_conflict(
    candidate: TimeSlot, documents: Iterable[Mapping[str, Any]]
) -> Optional[Mapping[str, Any]]:
    """Return the first offering document whose slot overlaps ``candidate``."""

    for document in documents:
        if candidate.overlaps(TimeSlot.from_document(document)):
            return document
    return None


__all__ = [
    "SEMESTERS",
    "DAYS",
    "OFFERING_LENGTH_HOURS",
    "LAST_HOUR",
    "Term",
    "TimeSlot",
    "parse_hour",
    "format_hour",
    "weekly_order",
    "has_conflict",
    "find_conflict",
]
