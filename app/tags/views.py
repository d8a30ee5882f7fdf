import logging

from rest_framework import viewsets, mixins
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response

from attendance.exceptions import NotAuthorizedToReview
from attendance.services.permissions import require_elevated
from organizations.models import OrganizationMember
from .models import NfcTag
from .serializers import NfcTagSerializer

logger = logging.getLogger(__name__)


class NfcTagViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, mixins.CreateModelMixin, viewsets.GenericViewSet):
    queryset = NfcTag.objects.none()
    serializer_class = NfcTagSerializer

    def get_queryset(self):
        queryset = NfcTag.objects.filter(organization__members__user=self.request.user).order_by('-id')
        organization = self.request.query_params.get('organization')
        if organization:
            queryset = queryset.filter(organization_id=organization)
        if self.action == 'list':
            queryset = queryset.filter(is_active=True)
        return queryset

    def _require_tag_manager(self, organization):
        try:
            require_elevated(self.request.user, organization, roles=OrganizationMember.TAG_MANAGER_ROLES)
        except NotAuthorizedToReview as exc:
            raise PermissionDenied('Only owners, admins, or managers can manage NFC tags') from exc

    def perform_create(self, serializer):
        self._require_tag_manager(serializer.validated_data['organization'])
        tag = serializer.save()
        logger.info('NFC tag registered', extra={'tag_id': tag.id, 'organization_id': tag.organization_id})

    @action(detail=True, methods=['post'])
    def deactivate(self, request, pk=None):
        tag = self.get_object()
        self._require_tag_manager(tag.organization)
        if tag.is_active:
            tag.is_active = False
            tag.save(update_fields=['is_active', 'updated_at'])
            logger.info('NFC tag deactivated', extra={'tag_id': tag.id, 'organization_id': tag.organization_id})
        return Response(self.get_serializer(tag).data)
