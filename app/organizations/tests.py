from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.test import APITestCase

from organizations.models import Organization, OrganizationMember, Team


User = get_user_model()


class OrganizationVisibilityTests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='alice', password='pwd12345')
        self.org = Organization.objects.create(name='Harbor Rowing', code='harbor')
        Organization.objects.create(name='Lake Rowing', code='lake')
        Team.objects.create(organization=self.org, name='Varsity')
        OrganizationMember.objects.create(user=self.user, organization=self.org, role=OrganizationMember.ROLE_ATHLETE)

    def test_user_only_sees_own_organizations(self):
        self.client.force_authenticate(self.user)
        response = self.client.get('/api/organizations/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['code'], 'harbor')
        self.assertEqual([team['name'] for team in response.data[0]['teams']], ['Varsity'])

    def test_anonymous_is_rejected(self):
        response = self.client.get('/api/organizations/')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
