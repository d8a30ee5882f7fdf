from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from typing import TypeVar

from organizations.models import TeamMember, TeamMemberHistory
from attendance.services.time_window import local_date

T = TypeVar("T")


@dataclass(frozen=True)
class MembershipPeriod:
    joined_at: date
    left_at: date | None = None


def _as_date(value: date | datetime | None) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return local_date(value)
    return value


def is_active_during(event_date: date, periods: Iterable[MembershipPeriod]) -> bool:
    """True if ``event_date`` falls inside any period; both ends inclusive."""
    return any(
        period.joined_at <= event_date and (period.left_at is None or event_date <= period.left_at)
        for period in periods
    )


def filter_events_by_membership(events: Iterable[T], periods: Iterable[MembershipPeriod]) -> list[T]:
    periods = list(periods)
    return [event for event in events if is_active_during(event.date, periods)]


def periods_from_history(rows: Iterable[TeamMemberHistory]) -> list[MembershipPeriod]:
    return [MembershipPeriod(joined_at=_as_date(row.joined_at), left_at=_as_date(row.left_at)) for row in rows]


def membership_periods_for(team_members: Iterable[TeamMember]) -> dict[tuple[int, int], list[MembershipPeriod]]:
    """Periods for each member of one or more teams, keyed by ``(user_id, team_id)``.

    Members with no recorded history fall back to a single open period that
    starts on their current join date.
    """
    members = list(team_members)
    if not members:
        return {}

    history = defaultdict(list)
    rows = TeamMemberHistory.objects.filter(
        user_id__in={member.user_id for member in members},
        team_id__in={member.team_id for member in members},
    ).order_by("joined_at")
    for row in rows:
        history[(row.user_id, row.team_id)].append(row)

    periods = {}
    for member in members:
        key = (member.user_id, member.team_id)
        if history[key]:
            periods[key] = periods_from_history(history[key])
        else:
            periods[key] = [MembershipPeriod(joined_at=_as_date(member.joined_at))]
    return periods


def membership_periods(member: TeamMember) -> list[MembershipPeriod]:
    return membership_periods_for([member])[(member.user_id, member.team_id)]
