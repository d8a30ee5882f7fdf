from django.conf import settings
from django.db import models
from organizations.models import Organization


class NfcTag(models.Model):
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='nfc_tags')
    token = models.CharField(max_length=255, unique=True)
    name = models.CharField(max_length=255, blank=True, default='')
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='registered_nfc_tags',
        null=True,
        blank=True,
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=['organization', 'is_active'], name='nfctag_org_active_idx')]

    def __str__(self):
        return self.name or self.token
