from __future__ import annotations

import logging
from datetime import datetime

from django.contrib.auth import get_user_model
from django.utils import timezone

from attendance.exceptions import CheckInNotFound, EventNotFound, InvalidCheckInTimes, NotAMember
from attendance.models import CheckIn
from attendance.services.absence_sweep import eligible_user_ids
from attendance.services.permissions import get_org_membership, require_org_member, require_reviewer, resolve_target_user
from attendance.services.time_window import ALL_DAY, hours_between, local_date, resolve_window
from events.models import Event
from organizations.models import Organization

logger = logging.getLogger(__name__)

UNSET = object()


def _get_event(event_id: int) -> Event:
    event = Event.objects.select_related("organization", "team").filter(pk=event_id).first()
    if event is None:
        raise EventNotFound()
    return event


def _get_member(user_id: int, organization: Organization):
    user = get_user_model().objects.filter(pk=user_id).first()
    if user is None or get_org_membership(user, organization) is None:
        raise NotAMember("User is not a member of this organization")
    return user


def _validate_times(check_in_time: datetime | None, check_out_time: datetime | None) -> None:
    if check_out_time is None:
        return
    if check_in_time is None or check_out_time < check_in_time:
        raise InvalidCheckInTimes()


def hours_for(event: Event, check_in_time: datetime | None, check_out_time: datetime | None) -> float | None:
    """Hours for a closed row, counted from the later of arrival and event start.

    "All Day" events have no start to clamp to, so the raw span is used.
    """
    if check_in_time is None or check_out_time is None:
        return None
    if ALL_DAY in (event.start_time, event.end_time):
        return hours_between(check_in_time, check_out_time)
    return resolve_window(event).hours_logged(check_in_time, check_out_time)


def admin_check_in(
    caller,
    user_id: int,
    event_id: int,
    status: str,
    note: str = "",
    check_in_time=UNSET,
    check_out_time: datetime | None = None,
    now: datetime | None = None,
) -> CheckIn:
    """Create or overwrite the (user, event) row on behalf of a member.

    ABSENT clears both times and logs zero hours. For other statuses an omitted
    check-in time defaults to ``now`` when the member attended and to None
    when excused; passing None clears it.
    """
    event = _get_event(event_id)
    require_reviewer(caller, event.organization, event.team)
    user = _get_member(user_id, event.organization)

    if status == CheckIn.STATUS_ABSENT:
        values = {"check_in_time": None, "check_out_time": None, "hours_logged": 0}
    else:
        if check_in_time is UNSET:
            check_in_time = (now or timezone.now()) if status in CheckIn.ATTENDED_STATUSES else None
        _validate_times(check_in_time, check_out_time)
        values = {
            "check_in_time": check_in_time,
            "check_out_time": check_out_time,
            "hours_logged": hours_for(event, check_in_time, check_out_time),
        }

    check_in, created = CheckIn.objects.update_or_create(
        user=user,
        event=event,
        defaults={"status": status, "note": note or "", **values},
    )
    logger.info(
        "Check-in recorded by staff",
        extra={"user_id": user.pk, "event_id": event.pk, "status": status, "created": created, "staff_id": caller.pk},
    )
    return check_in


def mark_user_absent(caller, user_id: int, event_id: int) -> CheckIn:
    return admin_check_in(caller, user_id, event_id, CheckIn.STATUS_ABSENT)


def update_check_in_times(caller, check_in_id: int, check_in_time=UNSET, check_out_time=UNSET) -> CheckIn:
    check_in = CheckIn.objects.select_related("event__organization", "event__team").filter(pk=check_in_id).first()
    if check_in is None:
        raise CheckInNotFound()
    event = check_in.event
    require_reviewer(caller, event.organization, event.team)

    if check_in_time is not UNSET:
        check_in.check_in_time = check_in_time
    if check_out_time is not UNSET:
        check_in.check_out_time = check_out_time
    _validate_times(check_in.check_in_time, check_in.check_out_time)

    if check_in.status != CheckIn.STATUS_ABSENT:
        check_in.hours_logged = hours_for(event, check_in.check_in_time, check_in.check_out_time)
    check_in.save(update_fields=["check_in_time", "check_out_time", "hours_logged", "updated_at"])
    logger.info("Check-in times edited", extra={"check_in_id": check_in.pk, "staff_id": caller.pk})
    return check_in


def delete_check_in(caller, user_id: int, event_id: int) -> bool:
    event = _get_event(event_id)
    require_reviewer(caller, event.organization, event.team)
    deleted, _ = CheckIn.objects.filter(user_id=user_id, event=event).delete()
    if deleted:
        logger.info("Check-in deleted", extra={"user_id": user_id, "event_id": event.pk, "staff_id": caller.pk})
    return bool(deleted)


def active_check_in(caller, organization: Organization, for_user_id: int | None = None, now: datetime | None = None):
    """Today's open, approved check-in of the caller or an athlete they guard."""
    now = now or timezone.now()
    require_org_member(caller, organization)
    user = resolve_target_user(caller, for_user_id, organization)
    return (
        CheckIn.objects.select_related("event")
        .filter(
            user=user,
            event__organization=organization,
            event__date=local_date(now),
            check_in_time__isnull=False,
            check_out_time__isnull=True,
            approved=True,
        )
        .order_by("-check_in_time")
        .first()
    )


def unchecked_athletes(caller, event_id: int):
    """Athletes expected at the event who have no row for it yet."""
    event = _get_event(event_id)
    require_reviewer(caller, event.organization, event.team)
    recorded = CheckIn.objects.filter(event=event).values_list("user_id", flat=True)
    return get_user_model().objects.filter(pk__in=eligible_user_ids(event)).exclude(pk__in=recorded).order_by("username")
