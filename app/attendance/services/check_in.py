from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from attendance.exceptions import (
    AlreadyCheckedOut,
    CheckInConflict,
    CheckInNotFound,
    NotAMember,
    NotAuthorizedForProxy,
    TagDeactivated,
    TeamNotInOrganization,
    UnrecognizedTag,
)
from attendance.models import CheckIn
from attendance.services.event_matcher import select_event
from attendance.services.permissions import (
    coached_team_ids,
    is_guardian_of,
    require_org_member,
    require_reviewer,
    resolve_target_user,
)
from attendance.services.time_window import ALL_DAY, EventWindow, local_date, parse_time_string, resolve_window
from events.models import Event
from organizations.models import Organization, OrganizationMember, Team, TeamMember
from tags.models import NfcTag

logger = logging.getLogger(__name__)

ACTION_CHECKED_IN = "CHECKED_IN"
ACTION_CHECKED_OUT = "CHECKED_OUT"
AD_HOC_EVENT_TITLE = "Ad-Hoc Check-In"


@dataclass(frozen=True)
class CheckInResult:
    check_in: CheckIn
    action: str
    event: Event


def _get_active_tag(token: str) -> NfcTag:
    tag = NfcTag.objects.select_related("organization").filter(token=token).first()
    if tag is None:
        raise UnrecognizedTag()
    if not tag.is_active:
        raise TagDeactivated()
    return tag


def _get_team(team_id: int, organization: Organization) -> Team:
    team = Team.objects.filter(pk=team_id).first()
    if team is None or team.organization_id != organization.pk:
        raise TeamNotInOrganization()
    return team


def _team_ids_for(target_user, organization: Organization, team_id: int | None, caller_membership) -> list[int]:
    if team_id:
        team = _get_team(team_id, organization)
        is_member = TeamMember.objects.filter(user=target_user, team=team).exists()
        if not is_member and not caller_membership.is_elevated:
            raise NotAMember("You are not a member of this team")
        return [team.pk]

    return list(
        TeamMember.objects.filter(user=target_user, team__organization=organization).values_list("team_id", flat=True)
    )


def todays_events(organization: Organization, team_ids: list[int], user, today) -> list[Event]:
    """Events on ``today`` for the given teams, including org-wide events.

    Ad-hoc events only ever belong to the user who created them.
    """
    team_filter = Q(team_id__in=team_ids) | Q(participating_teams__id__in=team_ids) | Q(team__isnull=True)
    ad_hoc_filter = Q(is_ad_hoc=False) | Q(check_ins__user=user)
    return list(
        Event.objects.filter(organization=organization, date=today)
        .filter(team_filter)
        .filter(ad_hoc_filter)
        .distinct()
        .order_by("id")
    )


def _status_for(window: EventWindow, now: datetime) -> str:
    return CheckIn.STATUS_ON_TIME if now <= window.starts_at else CheckIn.STATUS_LATE


def record_check_in(user, window: EventWindow, now: datetime, status: str | None = None, **fields) -> CheckIn:
    """NONE -> OPEN. The (user, event) unique constraint settles concurrent taps."""
    try:
        with transaction.atomic():
            check_in = CheckIn.objects.create(
                user=user,
                event_id=window.event_id,
                status=status or _status_for(window, now),
                check_in_time=now,
                **fields,
            )
    except IntegrityError as exc:
        logger.info(
            "Concurrent check-in rejected",
            extra={"user_id": user.pk, "event_id": window.event_id},
        )
        raise CheckInConflict() from exc

    logger.info(
        "Checked in",
        extra={"user_id": user.pk, "event_id": window.event_id, "status": check_in.status},
    )
    return check_in


def record_check_out(check_in: CheckIn, window: EventWindow, now: datetime) -> CheckIn:
    """OPEN -> CLOSED. Only a row that is still open is updated."""
    hours_logged = window.hours_logged(check_in.check_in_time, now)
    updated = CheckIn.objects.filter(pk=check_in.pk, check_out_time__isnull=True).update(
        check_out_time=now,
        hours_logged=hours_logged,
        updated_at=timezone.now(),
    )
    if not updated:
        raise AlreadyCheckedOut()

    check_in.refresh_from_db()
    logger.info(
        "Checked out",
        extra={"user_id": check_in.user_id, "event_id": check_in.event_id, "hours_logged": hours_logged},
    )
    return check_in


def apply_tap(user, window: EventWindow, now: datetime) -> tuple[CheckIn, str]:
    existing = CheckIn.objects.filter(user=user, event_id=window.event_id).first()
    if existing is None:
        return record_check_in(user, window, now), ACTION_CHECKED_IN

    if existing.check_out_time is not None:
        raise AlreadyCheckedOut()
    if existing.check_in_time is None:
        raise CheckInConflict("Attendance for this event has already been recorded")
    return record_check_out(existing, window, now), ACTION_CHECKED_OUT


def _resolvable_windows(events) -> dict[int, EventWindow]:
    """Windows for timed events. "All Day" events never match a tap; any other
    unparseable time raises InvalidEventTime and aborts the tap.
    """
    windows = {}
    for event in events:
        if ALL_DAY in (event.start_time, event.end_time):
            continue
        windows[event.pk] = resolve_window(event)
    return windows


def nfc_check_in(
    caller,
    token: str,
    for_user_id: int | None = None,
    team_id: int | None = None,
    confirm_early: bool = False,
    now: datetime | None = None,
) -> CheckInResult:
    now = now or timezone.now()
    tag = _get_active_tag(token)
    organization = tag.organization
    caller_membership = require_org_member(caller, organization)
    target_user = resolve_target_user(caller, for_user_id, organization)
    team_ids = _team_ids_for(target_user, organization, team_id, caller_membership)

    events = todays_events(organization, team_ids, target_user, local_date(now))
    windows = _resolvable_windows(events)
    closed_event_ids = CheckIn.objects.filter(
        user=target_user,
        event_id__in=list(windows),
        check_out_time__isnull=False,
    ).values_list("event_id", flat=True)

    selected = select_event(now, windows.values(), closed_event_ids, confirm_early=confirm_early)
    check_in, action = apply_tap(target_user, selected, now)
    event = next(event for event in events if event.pk == selected.event_id)
    return CheckInResult(check_in=check_in, action=action, event=event)


def ad_hoc_check_in(
    caller,
    token: str,
    team_id: int,
    start_time: str,
    end_time: str,
    note: str = "",
    now: datetime | None = None,
) -> CheckInResult:
    now = now or timezone.now()
    tag = _get_active_tag(token)
    organization = tag.organization
    require_org_member(caller, organization)
    team = _get_team(team_id, organization)
    if not TeamMember.objects.filter(user=caller, team=team).exists():
        raise NotAMember("You are not a member of this team")

    parse_time_string(start_time)
    parse_time_string(end_time)

    with transaction.atomic():
        event = Event.objects.create(
            organization=organization,
            team=team,
            title=AD_HOC_EVENT_TITLE,
            event_type=Event.TYPE_PRACTICE,
            date=local_date(now),
            start_time=start_time,
            end_time=end_time,
            is_ad_hoc=True,
        )
        window = resolve_window(event)
        check_in = record_check_in(
            caller,
            window,
            now,
            status=CheckIn.STATUS_ON_TIME,
            note=note or "",
            is_ad_hoc=True,
            approved=False,
        )
    return CheckInResult(check_in=check_in, action=ACTION_CHECKED_IN, event=event)


def _get_ad_hoc_check_in(check_in_id: int) -> CheckIn:
    check_in = CheckIn.objects.select_related("event__organization", "event__team").filter(pk=check_in_id).first()
    if check_in is None or not check_in.is_ad_hoc:
        raise CheckInNotFound("Ad-hoc check-in not found")
    return check_in


def approve_ad_hoc(caller, check_in_id: int) -> CheckIn:
    check_in = _get_ad_hoc_check_in(check_in_id)
    require_reviewer(caller, check_in.event.organization, check_in.event.team)
    CheckIn.objects.filter(pk=check_in.pk).update(approved=True, updated_at=timezone.now())
    check_in.refresh_from_db()
    logger.info("Ad-hoc check-in approved", extra={"check_in_id": check_in.pk, "reviewer_id": caller.pk})
    return check_in


def deny_ad_hoc(caller, check_in_id: int) -> None:
    check_in = _get_ad_hoc_check_in(check_in_id)
    event = check_in.event
    require_reviewer(caller, event.organization, event.team)
    with transaction.atomic():
        check_in.delete()
        if event.is_ad_hoc:
            event.delete()
    logger.info("Ad-hoc check-in denied", extra={"check_in_id": check_in_id, "reviewer_id": caller.pk})


def pending_ad_hoc_check_ins(caller, organization: Organization):
    membership = require_reviewer(caller, organization, None)
    queryset = (
        CheckIn.objects.select_related("event", "user")
        .filter(is_ad_hoc=True, approved=False, event__organization=organization)
        .order_by("-created_at")
    )
    if membership.role == OrganizationMember.ROLE_COACH:
        queryset = queryset.filter(event__team_id__in=coached_team_ids(caller, organization))
    return queryset


def check_out(caller, check_in_id: int, now: datetime | None = None) -> CheckIn:
    now = now or timezone.now()
    check_in = CheckIn.objects.select_related("event__organization").filter(pk=check_in_id).first()
    if check_in is None:
        raise CheckInNotFound()
    if check_in.user_id != caller.pk and not is_guardian_of(caller, check_in.user_id, check_in.event.organization):
        raise NotAuthorizedForProxy("Not authorized to check out this user")
    if check_in.check_out_time is not None:
        raise AlreadyCheckedOut()
    if check_in.check_in_time is None:
        raise CheckInConflict("No check-in time recorded")
    return record_check_out(check_in, resolve_window(check_in.event), now)
