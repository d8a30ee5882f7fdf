from django.db import models
from organizations.models import Organization, Team

class Event(models.Model):
    TYPE_PRACTICE = 'PRACTICE'
    TYPE_EVENT = 'EVENT'
    TYPE_MEETING = 'MEETING'
    TYPE_REST = 'REST'
    TYPE_CHOICES = [
        (TYPE_PRACTICE, 'Practice'),
        (TYPE_EVENT, 'Event'),
        (TYPE_MEETING, 'Meeting'),
        (TYPE_REST, 'Rest'),
    ]

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='events')
    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name='events', null=True, blank=True)
    participating_teams = models.ManyToManyField(Team, related_name='participating_events', blank=True)
    title = models.CharField(max_length=255)
    event_type = models.CharField(max_length=16, choices=TYPE_CHOICES, default=TYPE_PRACTICE)
    date = models.DateField()
    start_time = models.CharField(max_length=16)
    end_time = models.CharField(max_length=16)
    location = models.CharField(max_length=255, blank=True, default='')
    is_ad_hoc = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['organization', 'date'], name='event_org_date_idx'),
            models.Index(fields=['is_ad_hoc', 'date'], name='event_adhoc_date_idx'),
        ]

    def __str__(self):
        return f'{self.title} {self.date} {self.start_time}-{self.end_time}'
