"""System instruction for the tutor: persona, clock, visible board and course context."""
from __future__ import annotations

import datetime
import re
from typing import Iterable

from portal.models.activity import Activity, ActivityType
from portal.models.ai_config import AiConfig

NOTHING_SCHEDULED = "Nothing scheduled: there are no upcoming exams, assignments, tasks or announcements on the board."

TYPE_LABELS = {
    ActivityType.EXAM: "Exam",
    ActivityType.ASSIGNMENT: "Assignment",
    ActivityType.TASK: "Task",
    ActivityType.ANNOUNCEMENT: "Announcement",
}

# Fixed names so the output does not depend on the process locale.
_WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
_MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]
_WHITESPACE_RE = re.compile(r"\s+")


def format_day(day: datetime.date) -> str:
    return f"{_WEEKDAYS[day.weekday()]}, {day.day} {_MONTHS[day.month - 1]} {day.year}"


def format_now(now: datetime.datetime) -> str:
    return f"{format_day(now.date())}, {now.hour:02d}:{now.minute:02d}"


def _one_line(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def format_activity_line(activity: Activity) -> str:
    notes = _one_line(activity.description) or "none"
    attachment = f"yes ({activity.attachment.name})" if activity.attachment else "no"
    return (
        f"- {activity.date.isoformat()} ({_WEEKDAYS[activity.date.weekday()]})"
        f" | {TYPE_LABELS[activity.type]}"
        f" | {_one_line(activity.title)}"
        f" | Subject: {_one_line(activity.subject)}"
        f" | Notes: {notes}"
        f" | Attachment: {attachment}"
    )


def format_board(activities: Iterable[Activity]) -> str:
    lines = [format_activity_line(a) for a in activities]
    if not lines:
        return NOTHING_SCHEDULED
    return "\n".join(lines)


def build_system_instruction(
    ai_config: AiConfig,
    activities: list[Activity],
    now: datetime.datetime,
    persona: str,
) -> str:
    """Render the standing instruction given once when a chat session is created.

    Depends only on its arguments: the same inputs always give the same text.
    `activities` is expected to be the visible list, already ordered by due date.
    """
    sections = [
        persona.strip(),
        f"Current date and time: {format_now(now)}.",
        "Activity board (due date | type | title | subject | notes | attachment):\n" + format_board(activities),
    ]
    if ai_config.context:
        sections.append("Course context from the administrator:\n" + ai_config.context)
    return "\n\n".join(sections)


def build_message_preamble(ai_config: AiConfig, activities: list[Activity], now: datetime.datetime, text: str) -> str:
    """Per-message placement: wrap the student's text with the same context."""
    return "\n\n".join(
        [
            f"[COURSE CONTEXT]\n{ai_config.context}",
            f"[TODAY]\n{format_now(now)}",
            f"[BOARD]\n{format_board(activities)}",
            f"[STUDENT]\n{text}",
            "Be direct and polite, and cite theoretical concepts when useful.",
        ]
    )
