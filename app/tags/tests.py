from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.test import APITestCase

from organizations.models import Organization, OrganizationMember
from tags.models import NfcTag


User = get_user_model()


class NfcTagManagementTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username='admin', password='pwd12345')
        self.athlete = User.objects.create_user(username='athlete', password='pwd12345')
        self.outsider = User.objects.create_user(username='outsider', password='pwd12345')
        self.org = Organization.objects.create(name='Harbor Rowing', code='harbor')
        self.other_org = Organization.objects.create(name='Lake Rowing', code='lake')
        OrganizationMember.objects.create(user=self.admin, organization=self.org, role=OrganizationMember.ROLE_ADMIN)
        OrganizationMember.objects.create(user=self.athlete, organization=self.org, role=OrganizationMember.ROLE_ATHLETE)
        OrganizationMember.objects.create(user=self.outsider, organization=self.other_org, role=OrganizationMember.ROLE_OWNER)

    def test_members_only_see_active_tags_of_their_organizations(self):
        NfcTag.objects.create(organization=self.org, token='tag-boathouse', name='Boathouse')
        NfcTag.objects.create(organization=self.org, token='tag-old', is_active=False)
        NfcTag.objects.create(organization=self.other_org, token='tag-lake')

        self.client.force_authenticate(self.athlete)
        response = self.client.get('/api/tags/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item['token'] for item in response.data], ['tag-boathouse'])

    def test_admin_registers_tag(self):
        self.client.force_authenticate(self.admin)
        payload = {'organization': self.org.id, 'token': ' tag-new ', 'name': 'Gym door'}

        response = self.client.post('/api/tags/', payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        tag = NfcTag.objects.get(token='tag-new')
        self.assertEqual(tag.created_by, self.admin)
        self.assertTrue(tag.is_active)

    def test_duplicate_token_is_rejected(self):
        NfcTag.objects.create(organization=self.other_org, token='tag-taken')
        self.client.force_authenticate(self.admin)

        response = self.client.post('/api/tags/', {'organization': self.org.id, 'token': 'tag-taken'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('token', response.data)

    def test_athlete_cannot_register_tag(self):
        self.client.force_authenticate(self.athlete)

        response = self.client.post('/api/tags/', {'organization': self.org.id, 'token': 'tag-x'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(NfcTag.objects.filter(token='tag-x').exists())

    def test_owner_of_another_organization_cannot_register_tag(self):
        self.client.force_authenticate(self.outsider)

        response = self.client.post('/api/tags/', {'organization': self.org.id, 'token': 'tag-y'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_deactivates_tag(self):
        tag = NfcTag.objects.create(organization=self.org, token='tag-door')
        self.client.force_authenticate(self.admin)

        response = self.client.post(f'/api/tags/{tag.id}/deactivate/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        tag.refresh_from_db()
        self.assertFalse(tag.is_active)

    def test_athlete_cannot_deactivate_tag(self):
        tag = NfcTag.objects.create(organization=self.org, token='tag-door')
        self.client.force_authenticate(self.athlete)

        response = self.client.post(f'/api/tags/{tag.id}/deactivate/')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        tag.refresh_from_db()
        self.assertTrue(tag.is_active)
