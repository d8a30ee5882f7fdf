from __future__ import annotations

import logging
from datetime import datetime

from django.utils import timezone

from attendance.models import CheckIn
from attendance.services.ended_events import default_lookback_minutes, ended_events, recent_events
from attendance.services.time_window import EventWindow
from organizations.models import Organization

logger = logging.getLogger(__name__)


def close_at_event_end(check_in: CheckIn, window: EventWindow) -> bool:
    """Close an open check-in as if checked out exactly at the event's end.

    Returns False when the row was closed in the meantime.
    """
    hours_logged = window.hours_logged(check_in.check_in_time, window.ends_at)
    updated = CheckIn.objects.filter(pk=check_in.pk, check_out_time__isnull=True).update(
        check_out_time=window.ends_at,
        hours_logged=hours_logged,
        updated_at=timezone.now(),
    )
    return bool(updated)


def open_check_ins(event_id: int):
    return CheckIn.objects.filter(
        event_id=event_id,
        check_in_time__isnull=False,
        check_out_time__isnull=True,
        status__in=CheckIn.ATTENDED_STATUSES,
    ).order_by("id")


def close_event_check_ins(event, window: EventWindow) -> int:
    closed = 0
    for check_in in open_check_ins(event.pk):
        try:
            if close_at_event_end(check_in, window):
                closed += 1
        except Exception:  # noqa: BLE001
            logger.exception(
                "Auto-checkout failed for check-in",
                extra={"check_in_id": check_in.pk, "event_id": event.pk},
            )
    return closed


def auto_checkout_ended_events(
    organization: Organization | None = None,
    lookback_minutes: int | None = None,
    now: datetime | None = None,
) -> int:
    now = now or timezone.now()
    if lookback_minutes is None:
        lookback_minutes = default_lookback_minutes()

    closed = 0
    for event, window in ended_events(recent_events(now, lookback_minutes, organization), now):
        try:
            closed += close_event_check_ins(event, window)
        except Exception:  # noqa: BLE001
            logger.exception("Auto-checkout failed for event", extra={"event_id": event.pk})

    if closed:
        logger.info(
            "Checked out %s open check-in(s)",
            closed,
            extra={"organization_id": getattr(organization, "pk", None), "lookback_minutes": lookback_minutes},
        )
    return closed
