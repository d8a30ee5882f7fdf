from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from attendance.exceptions import NoEventsToday, TooEarly
from attendance.services.time_window import EventWindow


def _chronological(windows: Iterable[EventWindow]) -> list[EventWindow]:
    return sorted(windows, key=lambda window: (window.starts_at, window.ends_at, window.event_id))


def select_event(
    now: datetime,
    windows: Iterable[EventWindow],
    closed_event_ids: Iterable[int] = (),
    confirm_early: bool = False,
    window_minutes: int | None = None,
) -> EventWindow:
    """Pick the one event a tap at ``now`` belongs to.

    The first event (by start) whose window ``[start - 30 min, end]`` contains
    ``now`` wins. Otherwise the next upcoming event is offered, but only when
    the caller confirmed an early check-in; without confirmation TooEarly is
    raised so the client can re-prompt. Events the user already checked out of
    never match.
    """
    closed = set(closed_event_ids)
    candidates = [window for window in _chronological(windows) if window.event_id not in closed]

    for window in candidates:
        if window.accepts(now, window_minutes):
            return window

    for window in candidates:
        if window.starts_at > now:
            if not confirm_early:
                raise TooEarly(window.title, window.start_time)
            return window

    raise NoEventsToday()
