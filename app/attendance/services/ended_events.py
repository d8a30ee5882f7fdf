from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import datetime, timedelta

from django.conf import settings

from attendance.exceptions import InvalidEventTime
from attendance.services.time_window import EventWindow, local_date, reference_zone, resolve_window
from events.models import Event
from organizations.models import Organization

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK_MINUTES = 30


def default_lookback_minutes() -> int:
    return int(getattr(settings, "ATTENDANCE_SWEEP_LOOKBACK_MINUTES", DEFAULT_LOOKBACK_MINUTES))


def recent_events(now: datetime, lookback_minutes: int, organization: Organization | None = None):
    zone = reference_zone()
    queryset = Event.objects.filter(
        is_ad_hoc=False,
        date__gte=local_date(now - timedelta(minutes=lookback_minutes), zone),
        date__lte=local_date(now, zone),
    )
    if organization is not None:
        queryset = queryset.filter(organization=organization)
    return queryset.order_by("date", "id")


def ended_events(events, now: datetime) -> Iterator[tuple[Event, EventWindow]]:
    """Yield ``(event, window)`` for events whose end instant has passed.

    Events with unparseable times are logged and skipped.
    """
    for event in events:
        try:
            window = resolve_window(event)
        except InvalidEventTime:
            logger.warning(
                "Skipping event with invalid time window",
                extra={"event_id": event.pk, "start_time": event.start_time, "end_time": event.end_time},
            )
            continue
        if window.has_ended(now):
            yield event, window
