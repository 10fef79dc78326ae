"""Birthday events derived from family members."""

import datetime as dt
import logging
from collections.abc import Sequence
from typing import Literal

from pydantic import BaseModel

from models import PersonRecord

logger = logging.getLogger("familytree.events")

EventType = Literal["birthday", "anniversary", "memorial", "reunion", "custom"]

BIRTHDAY_COLOR = "#ff6b6b"
BIRTHDAY_REMINDER_DAYS = 7


class FamilyEvent(BaseModel):
    """A dated family event shown on the calendar."""
    id: str
    title: str
    date: dt.date
    type: EventType
    description: str | None = None
    member_id: str | None = None
    member_name: str | None = None
    recurring: bool = False
    color: str | None = None
    reminder: bool = False
    reminder_days: int | None = None


def parse_event_date(value: str | None) -> dt.date | None:
    """Parse an ISO date (YYYY-MM-DD, optionally with a time part); None if unusable."""
    if not value:
        return None
    try:
        return dt.date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def generate_birthday_events(members: Sequence[PersonRecord]) -> list[FamilyEvent]:
    """One recurring birthday event per member with a readable date of birth."""
    events = []
    for member in members:
        birth_date = parse_event_date(member.date_of_birth)
        if birth_date is None:
            if member.date_of_birth:
                logger.debug(f"Skipping unreadable birth date {member.date_of_birth!r} of {member.id}")
            continue
        events.append(FamilyEvent(
            id=f"birthday-{member.id}",
            title=f"🎂 {member.name}'s Birthday",
            date=birth_date,
            type="birthday",
            description=f"Birthday celebration for {member.name}",
            member_id=member.id,
            member_name=member.name,
            recurring=True,
            color=BIRTHDAY_COLOR,
            reminder=True,
            reminder_days=BIRTHDAY_REMINDER_DAYS,
        ))
    return events


def _anniversary_in(year: int, original: dt.date) -> dt.date:
    # February 29 falls back to February 28 in common years
    try:
        return original.replace(year=year)
    except ValueError:
        return dt.date(year, 2, 28)


def next_occurrence(event_date: dt.date, today: dt.date, recurring: bool = True) -> dt.date:
    """
    The next date on or after `today` a recurring event happens.

    Non-recurring events simply happen on their own date.
    """
    if not recurring:
        return event_date
    this_year = _anniversary_in(today.year, event_date)
    if this_year >= today:
        return this_year
    return _anniversary_in(today.year + 1, event_date)


def get_upcoming_events(
    events: Sequence[FamilyEvent], days: int = 30, today: dt.date | None = None
) -> list[FamilyEvent]:
    """Events happening within `days` days from today (inclusive), soonest first."""
    today = today or dt.date.today()
    horizon = today + dt.timedelta(days=days)

    upcoming = []
    for event in events:
        occurs = next_occurrence(event.date, today, event.recurring)
        if today <= occurs <= horizon:
            upcoming.append((occurs, event))

    upcoming.sort(key=lambda item: item[0])
    return [event for _, event in upcoming]
