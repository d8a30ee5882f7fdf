from django.conf import settings
from django.db import models
from django.utils import timezone


class Organization(models.Model):
    name = models.CharField(max_length=255)
    code = models.SlugField(max_length=64, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name


class OrganizationMember(models.Model):
    ROLE_OWNER = "OWNER"
    ROLE_ADMIN = "ADMIN"
    ROLE_MANAGER = "MANAGER"
    ROLE_COACH = "COACH"
    ROLE_ATHLETE = "ATHLETE"
    ROLE_GUARDIAN = "GUARDIAN"
    ROLE_CHOICES = [
        (ROLE_OWNER, "Owner"),
        (ROLE_ADMIN, "Admin"),
        (ROLE_MANAGER, "Manager"),
        (ROLE_COACH, "Coach"),
        (ROLE_ATHLETE, "Athlete"),
        (ROLE_GUARDIAN, "Guardian"),
    ]
    ELEVATED_ROLES = (ROLE_OWNER, ROLE_ADMIN, ROLE_MANAGER, ROLE_COACH)
    TAG_MANAGER_ROLES = (ROLE_OWNER, ROLE_ADMIN, ROLE_MANAGER)

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="organization_memberships")
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name="members")
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_ATHLETE)
    joined_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["user", "organization"], name="uq_org_member_user_org"),
        ]

    @property
    def is_elevated(self) -> bool:
        return self.role in self.ELEVATED_ROLES

    def __str__(self):
        return f"{self.user_id}@{self.organization_id} ({self.role})"


class Team(models.Model):
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name="teams")
    name = models.CharField(max_length=255)
    archived_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=["organization"], name="org_team_org_idx")]

    def __str__(self):
        return self.name


class TeamMember(models.Model):
    ROLE_MEMBER = "MEMBER"
    ROLE_CAPTAIN = "CAPTAIN"
    ROLE_COACH = "COACH"
    ROLE_ADMIN = "ADMIN"
    ROLE_CHOICES = [
        (ROLE_MEMBER, "Member"),
        (ROLE_CAPTAIN, "Captain"),
        (ROLE_COACH, "Coach"),
        (ROLE_ADMIN, "Admin"),
    ]
    ATHLETE_ROLES = (ROLE_MEMBER, ROLE_CAPTAIN)
    STAFF_ROLES = (ROLE_COACH, ROLE_ADMIN)

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="team_memberships")
    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name="members")
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_MEMBER)
    joined_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["user", "team"], name="uq_team_member_user_team"),
        ]
        indexes = [models.Index(fields=["team", "role"], name="org_member_team_role_idx")]

    def __str__(self):
        return f"{self.user_id}@{self.team_id} ({self.role})"


class TeamMemberHistory(models.Model):
    """One contiguous period of tenure on a team; rejoining appends a row."""

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="team_history")
    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name="member_history")
    joined_at = models.DateTimeField()
    left_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(left_at__isnull=True) | models.Q(left_at__gte=models.F("joined_at")),
                name="ck_team_history_left_after_join",
            )
        ]
        indexes = [models.Index(fields=["user", "team"], name="org_history_user_team_idx")]


class GuardianLink(models.Model):
    guardian = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="guarded_links")
    athlete = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="guardian_links")
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name="guardian_links")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["guardian", "athlete", "organization"], name="uq_guardian_link"),
        ]
