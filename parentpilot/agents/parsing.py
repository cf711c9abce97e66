"""Line-oriented parsers for free-text completion output.

Every parser here is lossy by contract: lines that do not fit the expected
shape are dropped, never raised. Only ``normalize_category`` can report a
failure (by returning ``None``) because its output must belong to a closed
vocabulary.
"""

from __future__ import annotations

import re
from typing import Iterable

from ..schemas.tasks import Priority, Reminder, TimelineEntry

_LIST_PREFIX = re.compile(r"^(?:[-•*]+|\(?\d+[.)]|[a-zA-Z][.)](?=\s))\s*")
_NUMBER_ONLY = re.compile(r"^\(?\d+[.)]?$")
_BULLET = re.compile(r"^(?:[-•]\s*|\*\s+)")
DATE_PATTERN = re.compile(
    r"\d{1,2}/\d{1,2}|\d{1,2}-\d{1,2}|today|tomorrow|next week|this week",
    re.IGNORECASE,
)
_REMINDER = re.compile(r"(.+?):\s*(.+?)\s*-\s*(.+)", re.IGNORECASE)
_LABEL_NOISE = re.compile(r"[\"'`*.]")


def _lines(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def parse_list(text: str, limit: int) -> list[str]:
    """Return up to ``limit`` items, one per line, with bullets and numbering removed.

    Blank lines and lines that are only a number are skipped.
    """
    items: list[str] = []
    for line in _lines(text):
        if _NUMBER_ONLY.match(line):
            continue
        item = _LIST_PREFIX.sub("", line, count=1).strip()
        if not item:
            continue
        items.append(item)
        if len(items) >= limit:
            break
    return items


def _normalize_label(text: str) -> str:
    cleaned = _LABEL_NOISE.sub("", text.strip().lower())
    return re.sub(r"[\s\-]+", "_", cleaned.strip())


def normalize_category(text: str, vocabulary: Iterable[str]) -> str | None:
    """Map a completion onto one of ``vocabulary``, or ``None`` when nothing matches."""
    known = list(vocabulary)
    label = _normalize_label(text)
    if label in known:
        return label
    lowered = text.lower()
    for name in known:
        if name in lowered or name.replace("_", " ") in lowered:
            return name
    return None


def parse_priority(text: str) -> Priority:
    """Closed-set priority lookup; anything unrecognised is ``medium``."""
    label = _normalize_label(text)
    try:
        return Priority(label)
    except ValueError:
        return Priority.MEDIUM


def parse_timeline(text: str) -> list[TimelineEntry]:
    """Group bullet lines under the most recent line that mentions a date.

    Bullets seen before any date line, non-bullet lines without a date, and
    date lines that collect no activities are dropped.
    """
    entries: list[TimelineEntry] = []
    current: TimelineEntry | None = None
    for line in _lines(text):
        if _BULLET.match(line):
            activity = _BULLET.sub("", line, count=1).strip()
            if current is not None and activity:
                current.activities.append(activity)
            continue
        if DATE_PATTERN.search(line):
            current = TimelineEntry(date=line.strip("*# ").rstrip(":").strip())
            entries.append(current)
    return [entry for entry in entries if entry.activities]


def parse_reminders(text: str, limit: int) -> list[Reminder]:
    """Read ``type: message - due date`` lines; anything else is skipped."""
    reminders: list[Reminder] = []
    for line in _lines(text):
        match = _REMINDER.match(_BULLET.sub("", line, count=1))
        if match is None:
            continue
        reminder_type, message, due_date = (part.strip() for part in match.groups())
        reminders.append(Reminder(type=reminder_type, message=message, due_date=due_date))
        if len(reminders) >= limit:
            break
    return reminders


__all__ = [
    "DATE_PATTERN",
    "normalize_category",
    "parse_list",
    "parse_priority",
    "parse_reminders",
    "parse_timeline",
]
