from rest_framework import viewsets
from .models import Organization
from .serializers import OrganizationSerializer

class OrganizationViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Organization.objects.none()
    serializer_class = OrganizationSerializer

    def get_queryset(self):
        return (
            Organization.objects.filter(members__user=self.request.user)
            .prefetch_related('teams')
            .order_by('-id')
        )
