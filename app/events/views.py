from rest_framework import viewsets
from rest_framework.exceptions import PermissionDenied

from attendance.exceptions import NotAuthorizedToReview
from attendance.services.permissions import require_elevated
from .models import Event
from .serializers import EventSerializer


class EventViewSet(viewsets.ModelViewSet):
    queryset = Event.objects.none()
    serializer_class = EventSerializer

    def get_queryset(self):
        queryset = (
            Event.objects.filter(organization__members__user=self.request.user, is_ad_hoc=False)
            .prefetch_related('participating_teams')
            .order_by('-date', '-id')
        )
        organization = self.request.query_params.get('organization')
        if organization:
            queryset = queryset.filter(organization_id=organization)
        date = self.request.query_params.get('date')
        if date:
            queryset = queryset.filter(date=date)
        return queryset

    def _require_manager(self, organization):
        try:
            require_elevated(self.request.user, organization)
        except NotAuthorizedToReview as exc:
            raise PermissionDenied('Only staff can manage events') from exc

    def perform_create(self, serializer):
        self._require_manager(serializer.validated_data['organization'])
        serializer.save()

    def perform_update(self, serializer):
        self._require_manager(serializer.instance.organization)
        if 'organization' in serializer.validated_data:
            self._require_manager(serializer.validated_data['organization'])
        serializer.save()

    def perform_destroy(self, instance):
        self._require_manager(instance.organization)
        instance.delete()
