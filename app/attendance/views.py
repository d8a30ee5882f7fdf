from __future__ import annotations

import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.request import Request
from rest_framework.response import Response

from attendance.exceptions import AttendanceError, NotAuthorizedForProxy, RateLimited, TeamNotInOrganization
from attendance.serializers import (
    AdHocCheckInSerializer,
    AdminCheckInSerializer,
    AthleteSerializer,
    CheckInSerializer,
    CheckInTimesSerializer,
    EventSummarySerializer,
    LeaderboardEntrySerializer,
    NfcCheckInSerializer,
    StatsQuerySerializer,
)
from attendance.services import check_in as check_in_service
from attendance.services import manual as manual_service
from attendance.services import stats as stats_service
from attendance.services.absence_sweep import mark_absent_for_ended_events
from attendance.services.permissions import (
    get_org_membership,
    is_guardian_of,
    require_elevated,
    require_org_member,
)
from attendance.services.rate_limit import check_in_rate_limiter
from organizations.models import Organization, Team

logger = logging.getLogger(__name__)

DEFAULT_MANUAL_LOOKBACK_MINUTES = 7 * 24 * 60


def _error_response(exc: AttendanceError) -> Response:
    return Response(exc.as_dict(), status=exc.status_code)


def _enforce_rate_limit(request: Request) -> None:
    retry_after = check_in_rate_limiter.check(request.user.pk)
    if retry_after is not None:
        logger.warning("Check-in rate limit exceeded", extra={"user_id": request.user.pk})
        raise RateLimited(retry_after)


def _result_payload(result: check_in_service.CheckInResult) -> dict:
    return {
        "check_in": CheckInSerializer(result.check_in).data,
        "action": result.action,
        "event": EventSummarySerializer(result.event).data,
    }


def _get_organization(organization_id) -> Organization | None:
    try:
        organization_id = int(organization_id)
    except (TypeError, ValueError):
        return None
    return Organization.objects.filter(pk=organization_id).first()


def _get_team(team_id, organization: Organization) -> Team | None:
    if not team_id:
        return None
    team = Team.objects.filter(pk=team_id, organization=organization).first()
    if team is None:
        raise TeamNotInOrganization()
    return team


def _get_stats_user(request: Request, user_id, organization: Organization):
    """The caller, or another user the caller may view: elevated staff or a linked guardian."""
    if not user_id or user_id == request.user.pk:
        return request.user
    membership = get_org_membership(request.user, organization)
    if not (membership and membership.is_elevated) and not is_guardian_of(request.user, user_id, organization):
        raise NotAuthorizedForProxy("Not authorized to view this user's attendance")
    return get_user_model().objects.filter(pk=user_id).first()


@api_view(["POST"])
def nfc_check_in(request: Request) -> Response:
    serializer = NfcCheckInSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        _enforce_rate_limit(request)
        result = check_in_service.nfc_check_in(
            request.user,
            data["token"],
            for_user_id=data.get("for_user_id"),
            team_id=data.get("team_id"),
            confirm_early=data.get("confirm_early", False),
        )
    except AttendanceError as exc:
        return _error_response(exc)

    response_status = status.HTTP_201_CREATED if result.action == check_in_service.ACTION_CHECKED_IN else status.HTTP_200_OK
    return Response(_result_payload(result), status=response_status)


@api_view(["POST"])
def ad_hoc_check_in(request: Request) -> Response:
    serializer = AdHocCheckInSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        _enforce_rate_limit(request)
        result = check_in_service.ad_hoc_check_in(
            request.user,
            data["token"],
            team_id=data["team_id"],
            start_time=data["start_time"],
            end_time=data["end_time"],
            note=data.get("note", ""),
        )
    except AttendanceError as exc:
        return _error_response(exc)

    return Response(_result_payload(result), status=status.HTTP_201_CREATED)


@api_view(["POST"])
def approve_ad_hoc(request: Request, check_in_id: int) -> Response:
    try:
        check_in = check_in_service.approve_ad_hoc(request.user, check_in_id)
    except AttendanceError as exc:
        return _error_response(exc)
    return Response(CheckInSerializer(check_in).data)


@api_view(["POST"])
def deny_ad_hoc(request: Request, check_in_id: int) -> Response:
    try:
        check_in_service.deny_ad_hoc(request.user, check_in_id)
    except AttendanceError as exc:
        return _error_response(exc)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(["POST"])
def check_out(request: Request, check_in_id: int) -> Response:
    try:
        check_in = check_in_service.check_out(request.user, check_in_id)
    except AttendanceError as exc:
        return _error_response(exc)
    return Response(CheckInSerializer(check_in).data)


@api_view(["POST"])
def mark_absent(request: Request) -> Response:
    organization = _get_organization(request.data.get("organization"))
    if organization is None:
        return Response({"detail": "Organization not found"}, status=status.HTTP_404_NOT_FOUND)

    try:
        require_elevated(request.user, organization)
    except AttendanceError as exc:
        return _error_response(exc)

    lookback_minutes = int(getattr(settings, "ATTENDANCE_CATCHUP_LOOKBACK_MINUTES", DEFAULT_MANUAL_LOOKBACK_MINUTES))
    created = mark_absent_for_ended_events(organization=organization, lookback_minutes=lookback_minutes)
    return Response({"created": created})


@api_view(["GET"])
def pending_ad_hoc(request: Request) -> Response:
    organization = _get_organization(request.query_params.get("organization"))
    if organization is None:
        return Response({"detail": "Organization not found"}, status=status.HTTP_404_NOT_FOUND)

    try:
        check_ins = check_in_service.pending_ad_hoc_check_ins(request.user, organization)
    except AttendanceError as exc:
        return _error_response(exc)

    data = CheckInSerializer(check_ins, many=True).data
    return Response({"count": len(data), "results": data})


def _stats_query(request: Request):
    serializer = StatsQuerySerializer(data=request.query_params)
    serializer.is_valid(raise_exception=True)
    query = serializer.validated_data
    organization = _get_organization(query["organization"])
    return query, organization


@api_view(["GET"])
def stats(request: Request) -> Response:
    query, organization = _stats_query(request)
    if organization is None:
        return Response({"detail": "Organization not found"}, status=status.HTTP_404_NOT_FOUND)

    try:
        require_org_member(request.user, organization)
        team = _get_team(query.get("team"), organization)
        user = _get_stats_user(request, query.get("user"), organization)
    except AttendanceError as exc:
        return _error_response(exc)
    if user is None:
        return Response({"detail": "User not found"}, status=status.HTTP_404_NOT_FOUND)

    result = stats_service.user_stats(user, organization, team=team, time_range=query["time_range"])
    return Response({"user_id": user.pk, **result.as_dict()})


@api_view(["GET"])
def leaderboard(request: Request) -> Response:
    query, organization = _stats_query(request)
    if organization is None:
        return Response({"detail": "Organization not found"}, status=status.HTTP_404_NOT_FOUND)

    try:
        require_org_member(request.user, organization)
        team = _get_team(query.get("team"), organization)
    except AttendanceError as exc:
        return _error_response(exc)

    if team is not None:
        entries = stats_service.team_leaderboard(team, query["time_range"], limit=query["limit"])
    else:
        entries = stats_service.organization_leaderboard(organization, query["time_range"], limit=query["limit"])
    return Response({"count": len(entries), "results": LeaderboardEntrySerializer(entries, many=True).data})


@api_view(["GET"])
def trends(request: Request) -> Response:
    query, organization = _stats_query(request)
    if organization is None:
        return Response({"detail": "Organization not found"}, status=status.HTTP_404_NOT_FOUND)

    try:
        require_org_member(request.user, organization)
        team = _get_team(query.get("team"), organization)
        user = _get_stats_user(request, query.get("user"), organization) if query.get("user") else None
    except AttendanceError as exc:
        return _error_response(exc)

    points = stats_service.attendance_trends(organization, team=team, user=user, time_range=query["time_range"])
    return Response({"count": len(points), "results": points})


@api_view(["POST"])
def admin_check_in(request: Request) -> Response:
    serializer = AdminCheckInSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        check_in = manual_service.admin_check_in(
            request.user,
            data["user_id"],
            data["event_id"],
            data["status"],
            note=data.get("note", ""),
            check_in_time=data.get("check_in_time", manual_service.UNSET),
            check_out_time=data.get("check_out_time"),
        )
    except AttendanceError as exc:
        return _error_response(exc)
    return Response(CheckInSerializer(check_in).data)


@api_view(["PATCH"])
def check_in_times(request: Request, check_in_id: int) -> Response:
    serializer = CheckInTimesSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        check_in = manual_service.update_check_in_times(
            request.user,
            check_in_id,
            check_in_time=data.get("check_in_time", manual_service.UNSET),
            check_out_time=data.get("check_out_time", manual_service.UNSET),
        )
    except AttendanceError as exc:
        return _error_response(exc)
    return Response(CheckInSerializer(check_in).data)


@api_view(["DELETE"])
def delete_check_in(request: Request, event_id: int, user_id: int) -> Response:
    try:
        deleted = manual_service.delete_check_in(request.user, user_id, event_id)
    except AttendanceError as exc:
        return _error_response(exc)
    if not deleted:
        return Response({"detail": "Check-in not found"}, status=status.HTTP_404_NOT_FOUND)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(["POST"])
def mark_user_absent(request: Request, event_id: int, user_id: int) -> Response:
    try:
        check_in = manual_service.mark_user_absent(request.user, user_id, event_id)
    except AttendanceError as exc:
        return _error_response(exc)
    return Response(CheckInSerializer(check_in).data)


@api_view(["GET"])
def active_check_in(request: Request) -> Response:
    organization = _get_organization(request.query_params.get("organization"))
    if organization is None:
        return Response({"detail": "Organization not found"}, status=status.HTTP_404_NOT_FOUND)

    try:
        for_user_id = int(request.query_params.get("user") or 0) or None
    except ValueError:
        return Response({"user": ["A valid integer is required."]}, status=status.HTTP_400_BAD_REQUEST)

    try:
        check_in = manual_service.active_check_in(request.user, organization, for_user_id=for_user_id)
    except AttendanceError as exc:
        return _error_response(exc)
    return Response({"check_in": CheckInSerializer(check_in).data if check_in else None})


@api_view(["GET"])
def unchecked_athletes(request: Request, event_id: int) -> Response:
    try:
        users = list(manual_service.unchecked_athletes(request.user, event_id))
    except AttendanceError as exc:
        return _error_response(exc)
    return Response({"count": len(users), "results": AthleteSerializer(users, many=True).data})
