from __future__ import annotations

import logging
from datetime import datetime

from django.utils import timezone

from attendance.models import CheckIn
from attendance.services.ended_events import default_lookback_minutes, ended_events, recent_events
from attendance.services.membership import is_active_during, membership_periods_for
from events.models import Event
from organizations.models import Organization, TeamMember

logger = logging.getLogger(__name__)


def _team_ids(event: Event) -> set[int]:
    team_ids = {team.pk for team in event.participating_teams.all()}
    if event.team_id:
        team_ids.add(event.team_id)
    return team_ids


def eligible_user_ids(event: Event) -> set[int]:
    """Athletes of the owning and participating teams whose tenure covers the event date."""
    team_ids = _team_ids(event)
    if not team_ids:
        return set()

    members = list(TeamMember.objects.filter(team_id__in=team_ids, role__in=TeamMember.ATHLETE_ROLES))
    periods = membership_periods_for(members)
    return {
        member.user_id
        for member in members
        if is_active_during(event.date, periods[(member.user_id, member.team_id)])
    }


def mark_absent_for_event(event: Event) -> int:
    user_ids = eligible_user_ids(event)
    if not user_ids:
        return 0

    recorded = set(CheckIn.objects.filter(event=event, user_id__in=user_ids).values_list("user_id", flat=True))
    missing = sorted(user_ids - recorded)
    if not missing:
        return 0

    CheckIn.objects.bulk_create(
        [
            CheckIn(user_id=user_id, event=event, status=CheckIn.STATUS_ABSENT, hours_logged=0)
            for user_id in missing
        ],
        ignore_conflicts=True,
    )
    return len(missing)


def mark_absent_for_ended_events(
    organization: Organization | None = None,
    lookback_minutes: int | None = None,
    now: datetime | None = None,
) -> int:
    """Backfill ABSENT rows for athletes with no check-in on recently ended events.

    Safe to re-run: rows that already exist are skipped by the (user, event)
    unique constraint.
    """
    now = now or timezone.now()
    if lookback_minutes is None:
        lookback_minutes = default_lookback_minutes()

    events = recent_events(now, lookback_minutes, organization).prefetch_related("participating_teams")
    created = 0
    for event, _window in ended_events(events, now):
        try:
            created += mark_absent_for_event(event)
        except Exception:  # noqa: BLE001
            logger.exception("Absence sweep failed for event", extra={"event_id": event.pk})

    if created:
        logger.info(
            "Created %s ABSENT record(s)",
            created,
            extra={"organization_id": getattr(organization, "pk", None), "lookback_minutes": lookback_minutes},
        )
    return created
