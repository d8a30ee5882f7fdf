from django.urls import path, include
from rest_framework.routers import DefaultRouter
from organizations.views import OrganizationViewSet
from tags.views import NfcTagViewSet
from events.views import EventViewSet

from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

router = DefaultRouter()
router.register(r'organizations', OrganizationViewSet)
router.register(r'tags', NfcTagViewSet)
router.register(r'events', EventViewSet)

urlpatterns = [
    path('auth/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('', include(router.urls)),
]
