from django.conf import settings
from django.db import models

from events.models import Event


class CheckIn(models.Model):
    STATUS_ON_TIME = "ON_TIME"
    STATUS_LATE = "LATE"
    STATUS_ABSENT = "ABSENT"
    STATUS_EXCUSED = "EXCUSED"
    STATUS_CHOICES = [
        (STATUS_ON_TIME, "On time"),
        (STATUS_LATE, "Late"),
        (STATUS_ABSENT, "Absent"),
        (STATUS_EXCUSED, "Excused"),
    ]
    ATTENDED_STATUSES = (STATUS_ON_TIME, STATUS_LATE)

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="check_ins")
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="check_ins")
    status = models.CharField(max_length=16, choices=STATUS_CHOICES)
    check_in_time = models.DateTimeField(null=True, blank=True)
    check_out_time = models.DateTimeField(null=True, blank=True)
    hours_logged = models.FloatField(null=True, blank=True)
    note = models.TextField(blank=True, default="")
    is_ad_hoc = models.BooleanField(default=False)
    approved = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["user", "event"], name="uq_checkin_user_event"),
        ]
        indexes = [
            models.Index(fields=["event", "check_out_time"], name="checkin_event_open_idx"),
            models.Index(fields=["is_ad_hoc", "approved"], name="checkin_adhoc_pending_idx"),
        ]

    @property
    def is_open(self) -> bool:
        return self.check_in_time is not None and self.check_out_time is None

    def __str__(self):
        return f"CheckIn<{self.user_id}:{self.event_id} {self.status}>"
