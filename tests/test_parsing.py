from __future__ import annotations

import pytest

from parentpilot.agents.parsing import (
    normalize_category,
    parse_list,
    parse_priority,
    parse_reminders,
    parse_timeline,
)
from parentpilot.schemas.tasks import Priority, TaskCategory

VOCABULARY = [category.value for category in TaskCategory]


def test_parse_list_strips_bullets_and_numbering() -> None:
    text = "1. Read together\n- Play outside\n* Build a fort\n2) Bake cookies"
    assert parse_list(text, 10) == ["Read together", "Play outside", "Build a fort", "Bake cookies"]


def test_parse_list_skips_blank_and_number_only_lines() -> None:
    text = "\n1.\n\n  Tidy the room  \n3\n"
    assert parse_list(text, 5) == ["Tidy the room"]


def test_parse_list_honours_limit() -> None:
    text = "\n".join(f"- item {index}" for index in range(10))
    assert parse_list(text, 3) == ["item 0", "item 1", "item 2"]


@pytest.mark.parametrize(
    "reply, expected",
    [
        ("behavior_analysis", "behavior_analysis"),
        ("  Behavior Analysis.\n", "behavior_analysis"),
        ('"social-skills"', "social_skills"),
        ("The category is academic_planning because of homework", "academic_planning"),
        ("This sounds like emotional support to me", "emotional_support"),
    ],
)
def test_normalize_category_accepts_known_labels(reply: str, expected: str) -> None:
    assert normalize_category(reply, VOCABULARY) == expected


def test_normalize_category_rejects_unknown_label() -> None:
    assert normalize_category("sports_coaching", VOCABULARY) is None


@pytest.mark.parametrize(
    "reply, expected",
    [
        ("high", Priority.HIGH),
        (" LOW ", Priority.LOW),
        ("Medium.", Priority.MEDIUM),
        ("urgent", Priority.MEDIUM),
        ("high priority because of safety", Priority.MEDIUM),
        ("", Priority.MEDIUM),
    ],
)
def test_parse_priority_falls_back_to_medium(reply: str, expected: Priority) -> None:
    assert parse_priority(reply) is expected


def test_parse_timeline_groups_bullets_under_dates() -> None:
    text = (
        "**Today:**\n"
        "- Morning reading\n"
        "- Evening walk\n"
        "Tomorrow:\n"
        "• Visit the library\n"
    )
    timeline = parse_timeline(text)
    assert [entry.date for entry in timeline] == ["Today", "Tomorrow"]
    assert timeline[0].activities == ["Morning reading", "Evening walk"]
    assert timeline[1].activities == ["Visit the library"]


def test_parse_timeline_drops_orphan_bullets_and_empty_dates() -> None:
    text = (
        "- bullet before any date\n"
        "Here is your plan\n"
        "10/14:\n"
        "Next week:\n"
        "- Practice letters\n"
    )
    timeline = parse_timeline(text)
    assert len(timeline) == 1
    assert timeline[0].date == "Next week"
    assert timeline[0].activities == ["Practice letters"]


def test_parse_timeline_bullet_with_date_is_an_activity() -> None:
    timeline = parse_timeline("Today:\n- Call the teacher tomorrow")
    assert timeline[0].activities == ["Call the teacher tomorrow"]


def test_parse_reminders_reads_type_message_due_date() -> None:
    text = (
        "- daily: Review the sticker chart - tonight\n"
        "weekly: Check in with the teacher - Friday\n"
        "nonsense line without structure\n"
    )
    reminders = parse_reminders(text, 5)
    assert [(item.type, item.message, item.due_date) for item in reminders] == [
        ("daily", "Review the sticker chart", "tonight"),
        ("weekly", "Check in with the teacher", "Friday"),
    ]


def test_parse_reminders_is_capped() -> None:
    text = "\n".join(f"type{index}: message {index} - day {index}" for index in range(6))
    assert len(parse_reminders(text, 3)) == 3
