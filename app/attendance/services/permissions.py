from __future__ import annotations

from django.contrib.auth import get_user_model

from attendance.exceptions import NotAMember, NotAuthorizedForProxy, NotAuthorizedToReview
from organizations.models import GuardianLink, Organization, OrganizationMember, Team, TeamMember


def get_org_membership(user, organization: Organization) -> OrganizationMember | None:
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    return OrganizationMember.objects.filter(user=user, organization=organization).first()


def require_org_member(user, organization: Organization) -> OrganizationMember:
    membership = get_org_membership(user, organization)
    if membership is None:
        raise NotAMember()
    return membership


def require_elevated(user, organization: Organization, roles=OrganizationMember.ELEVATED_ROLES) -> OrganizationMember:
    membership = get_org_membership(user, organization)
    if membership is None or membership.role not in roles:
        raise NotAuthorizedToReview("You do not have permission to manage this organization")
    return membership


def is_guardian_of(guardian, athlete_id: int, organization: Organization) -> bool:
    return GuardianLink.objects.filter(
        guardian=guardian,
        athlete_id=athlete_id,
        organization=organization,
    ).exists()


def resolve_target_user(caller, for_user_id: int | None, organization: Organization):
    """The caller, or the athlete they are acting for through a guardian link."""
    if not for_user_id or for_user_id == caller.pk:
        return caller
    if not is_guardian_of(caller, for_user_id, organization):
        raise NotAuthorizedForProxy()
    return get_user_model().objects.get(pk=for_user_id)


def coached_team_ids(user, organization: Organization) -> list[int]:
    return list(
        TeamMember.objects.filter(
            user=user,
            role__in=TeamMember.STAFF_ROLES,
            team__organization=organization,
        ).values_list("team_id", flat=True)
    )


def require_reviewer(user, organization: Organization, team: Team | None) -> OrganizationMember:
    """Owners, admins and managers review any team; coaches only teams they coach."""
    membership = get_org_membership(user, organization)
    if membership is None or not membership.is_elevated:
        raise NotAuthorizedToReview()
    if membership.role == OrganizationMember.ROLE_COACH and team is not None:
        if team.pk not in coached_team_ids(user, organization):
            raise NotAuthorizedToReview("You can only review check-ins for teams you coach")
    return membership
