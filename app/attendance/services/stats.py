from __future__ import annotations

import calendar
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from django.db.models import Q
from django.utils import timezone

from attendance.exceptions import InvalidEventTime
from attendance.models import CheckIn
from attendance.services.membership import is_active_during, membership_periods_for
from attendance.services.time_window import event_duration_hours, local_date, round_hours
from events.models import Event
from organizations.models import Organization, Team, TeamMember

logger = logging.getLogger(__name__)

RANGE_WEEK = "WEEK"
RANGE_MONTH = "MONTH"
RANGE_ALL = "ALL"
TIME_RANGES = (RANGE_WEEK, RANGE_MONTH, RANGE_ALL)
DEFAULT_LEADERBOARD_LIMIT = 10


@dataclass
class AttendanceStats:
    hours_required: float = 0.0
    hours_logged: float = 0.0
    events_count: int = 0

    @property
    def attendance_percent(self) -> float:
        return attendance_percent(self.hours_logged, self.hours_required)

    def as_dict(self) -> dict:
        return {
            "hours_required": round_hours(self.hours_required),
            "hours_logged": round_hours(self.hours_logged),
            "events_count": self.events_count,
            "attendance_percent": round(self.attendance_percent, 2),
        }


@dataclass
class LeaderboardEntry:
    user: object
    hours_required: float = 0.0
    hours_logged: float = 0.0
    attendance_percent: float = 0.0
    rank: int = 0
    team_percents: list[float] = field(default_factory=list, repr=False)


def attendance_percent(hours_logged: float, hours_required: float) -> float:
    if hours_required <= 0:
        return 0.0
    return min(100.0, hours_logged / hours_required * 100)


def week_start(day: date) -> date:
    """Monday of the ISO week containing ``day``."""
    return day - timedelta(days=day.weekday())


def _month_before(day: date) -> date:
    year, month = (day.year, day.month - 1) if day.month > 1 else (day.year - 1, 12)
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def date_range(time_range: str | None, now: datetime) -> tuple[date | None, date]:
    """Inclusive ``(start, end)`` event dates for a time range; events never extend past today."""
    today = local_date(now)
    if time_range == RANGE_WEEK:
        return today - timedelta(days=7), today
    if time_range == RANGE_MONTH:
        return _month_before(today), today
    return None, today


def non_athlete_team_map(organization: Organization) -> dict[int, set[int]]:
    """user id -> ids of teams in the organization where the user is staff."""
    rows = TeamMember.objects.filter(team__organization=organization).exclude(
        role__in=TeamMember.ATHLETE_ROLES
    ).values_list("user_id", "team_id")
    team_map = defaultdict(set)
    for user_id, team_id in rows:
        team_map[user_id].add(team_id)
    return dict(team_map)


def is_athlete_check_in(check_in: CheckIn, team_map: dict[int, set[int]]) -> bool:
    # Org-wide events always count.
    team_id = check_in.event.team_id
    if team_id is None:
        return True
    return team_id not in team_map.get(check_in.user_id, ())


def _duration(event: Event) -> float:
    try:
        return event_duration_hours(event.start_time, event.end_time)
    except InvalidEventTime:
        logger.warning("Ignoring event with invalid time window", extra={"event_id": event.pk})
        return 0.0


def _team_events(team_ids, start: date | None, end: date) -> list[Event]:
    queryset = Event.objects.filter(
        Q(team_id__in=team_ids) | Q(participating_teams__id__in=team_ids),
        is_ad_hoc=False,
        date__lte=end,
    )
    if start is not None:
        queryset = queryset.filter(date__gte=start)
    return list(queryset.distinct().prefetch_related("participating_teams").order_by("date", "id"))


def _event_team_ids(event: Event) -> set[int]:
    team_ids = {team.pk for team in event.participating_teams.all()}
    if event.team_id:
        team_ids.add(event.team_id)
    return team_ids


def _logged_hours(check_ins, team_map) -> dict[tuple[int, int], float]:
    logged = defaultdict(float)
    for check_in in check_ins:
        if is_athlete_check_in(check_in, team_map):
            logged[(check_in.user_id, check_in.event_id)] += check_in.hours_logged or 0.0
    return logged


def _approved_check_ins(event_ids, user_ids=None):
    queryset = CheckIn.objects.select_related("event").filter(event_id__in=event_ids, approved=True)
    if user_ids is not None:
        queryset = queryset.filter(user_id__in=user_ids)
    return queryset


def _team_totals(team: Team, members, start, end, team_map) -> dict[int, tuple[float, float]]:
    """``{user_id: (hours_required, hours_logged)}`` for the given members of one team."""
    members = [member for member in members if member.team_id == team.pk]
    if not members:
        return {}

    events = _team_events([team.pk], start, end)
    periods = membership_periods_for(members)
    logged = _logged_hours(
        _approved_check_ins([event.pk for event in events], {member.user_id for member in members}),
        team_map,
    )

    totals = {}
    for member in members:
        member_periods = periods[(member.user_id, member.team_id)]
        required = 0.0
        hours = 0.0
        for event in events:
            if is_active_during(event.date, member_periods):
                required += _duration(event)
                hours += logged.get((member.user_id, event.pk), 0.0)
        totals[member.user_id] = (required, hours)
    return totals


def _ranked(entries: list[LeaderboardEntry], limit: int | None) -> list[LeaderboardEntry]:
    entries.sort(key=lambda entry: entry.attendance_percent, reverse=True)
    entries = entries[: limit or DEFAULT_LEADERBOARD_LIMIT]
    for index, entry in enumerate(entries, start=1):
        entry.rank = index
    return entries


def user_stats(
    user,
    organization: Organization,
    team: Team | None = None,
    time_range: str | None = RANGE_ALL,
    now: datetime | None = None,
) -> AttendanceStats:
    now = now or timezone.now()
    start, end = date_range(time_range, now)
    memberships = TeamMember.objects.filter(user=user, team__organization=organization)
    if team is not None:
        memberships = memberships.filter(team=team)
    memberships = list(memberships)
    if not memberships:
        return AttendanceStats()

    periods = membership_periods_for(memberships)
    stats = AttendanceStats()
    counted = set()
    for member in memberships:
        for event in _team_events([member.team_id], start, end):
            if event.pk in counted or not is_active_during(event.date, periods[(member.user_id, member.team_id)]):
                continue
            counted.add(event.pk)
            stats.hours_required += _duration(event)
            stats.events_count += 1

    logged = _logged_hours(_approved_check_ins(counted, [user.pk]), non_athlete_team_map(organization))
    stats.hours_logged = sum(logged.values())
    return stats


def team_leaderboard(
    team: Team,
    time_range: str | None = RANGE_ALL,
    limit: int | None = DEFAULT_LEADERBOARD_LIMIT,
    now: datetime | None = None,
) -> list[LeaderboardEntry]:
    now = now or timezone.now()
    start, end = date_range(time_range, now)
    members = list(TeamMember.objects.select_related("user").filter(team=team, role__in=TeamMember.ATHLETE_ROLES))
    totals = _team_totals(team, members, start, end, non_athlete_team_map(team.organization))

    entries = []
    for member in members:
        required, logged = totals[member.user_id]
        entries.append(
            LeaderboardEntry(
                user=member.user,
                hours_required=required,
                hours_logged=logged,
                attendance_percent=attendance_percent(logged, required),
            )
        )
    return _ranked(entries, limit)


def organization_leaderboard(
    organization: Organization,
    time_range: str | None = RANGE_ALL,
    limit: int | None = DEFAULT_LEADERBOARD_LIMIT,
    now: datetime | None = None,
) -> list[LeaderboardEntry]:
    """Athletes across all active teams.

    A user on several teams is ranked by the average of their per-team
    percents; teams with nothing required yet are left out of the average.
    """
    now = now or timezone.now()
    start, end = date_range(time_range, now)
    team_map = non_athlete_team_map(organization)
    members = list(
        TeamMember.objects.select_related("user", "team").filter(
            team__organization=organization,
            team__archived_at__isnull=True,
            role__in=TeamMember.ATHLETE_ROLES,
        )
    )

    entries: dict[int, LeaderboardEntry] = {}
    for team in {member.team for member in members}:
        for user_id, (required, logged) in _team_totals(team, members, start, end, team_map).items():
            entry = entries.get(user_id)
            if entry is None:
                user = next(member.user for member in members if member.user_id == user_id)
                entry = entries[user_id] = LeaderboardEntry(user=user)
            entry.hours_required += required
            entry.hours_logged += logged
            if required > 0:
                entry.team_percents.append(attendance_percent(logged, required))

    for entry in entries.values():
        if entry.team_percents:
            entry.attendance_percent = sum(entry.team_percents) / len(entry.team_percents)
    return _ranked(sorted(entries.values(), key=lambda entry: entry.user.pk), limit)


def _user_periods_by_team(user, organization: Organization, team: Team | None):
    memberships = TeamMember.objects.filter(user=user, team__organization=organization)
    if team is not None:
        memberships = memberships.filter(team=team)
    return {team_id: periods for (_user_id, team_id), periods in membership_periods_for(memberships).items()}


def _applies_to_user(event: Event, periods_by_team) -> bool:
    team_ids = _event_team_ids(event)
    if not team_ids:
        team_ids = set(periods_by_team)
    return any(is_active_during(event.date, periods_by_team.get(team_id, ())) for team_id in team_ids)


def attendance_trends(
    organization: Organization,
    team: Team | None = None,
    user=None,
    time_range: str | None = RANGE_ALL,
    now: datetime | None = None,
) -> list[dict]:
    """Weekly hours required/logged, one point per Monday-start week, oldest first."""
    now = now or timezone.now()
    start, end = date_range(time_range, now)

    events = Event.objects.filter(organization=organization, is_ad_hoc=False, date__lte=end)
    if start is not None:
        events = events.filter(date__gte=start)
    if team is not None:
        events = events.filter(Q(team=team) | Q(participating_teams=team)).distinct()
    events = list(events.prefetch_related("participating_teams").order_by("date", "id"))

    if user is not None:
        periods_by_team = _user_periods_by_team(user, organization, team)
        events = [event for event in events if _applies_to_user(event, periods_by_team)]
    if not events:
        return []

    check_ins = _approved_check_ins([event.pk for event in events], None if user is None else [user.pk])
    logged_by_event = defaultdict(float)
    for (_user_id, event_id), hours in _logged_hours(check_ins, non_athlete_team_map(organization)).items():
        logged_by_event[event_id] += hours

    weeks: dict[date, AttendanceStats] = defaultdict(AttendanceStats)
    for event in events:
        week = weeks[week_start(event.date)]
        week.hours_required += _duration(event)
        week.hours_logged += logged_by_event[event.pk]
        week.events_count += 1

    return [{"week_start": week.isoformat(), **weeks[week].as_dict()} for week in sorted(weeks)]
