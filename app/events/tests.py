from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.test import APITestCase

from events.models import Event
from organizations.models import Organization, OrganizationMember, Team


User = get_user_model()


class EventManagementTests(APITestCase):
    def setUp(self):
        self.coach = User.objects.create_user(username='coach', password='pwd12345')
        self.athlete = User.objects.create_user(username='athlete', password='pwd12345')
        self.org = Organization.objects.create(name='Harbor Rowing', code='harbor')
        self.other_org = Organization.objects.create(name='Lake Rowing', code='lake')
        self.team = Team.objects.create(organization=self.org, name='Varsity')
        self.other_team = Team.objects.create(organization=self.other_org, name='Novice')
        OrganizationMember.objects.create(user=self.coach, organization=self.org, role=OrganizationMember.ROLE_COACH)
        OrganizationMember.objects.create(user=self.athlete, organization=self.org, role=OrganizationMember.ROLE_ATHLETE)

    def _payload(self, **overrides):
        payload = {
            'organization': self.org.id,
            'team': self.team.id,
            'title': 'Practice',
            'date': '2025-09-10',
            'start_time': '4:00 PM',
            'end_time': '6:00 PM',
        }
        payload.update(overrides)
        return payload

    def test_user_only_sees_events_of_own_organizations(self):
        Event.objects.create(organization=self.org, team=self.team, title='Mine', date='2025-09-10', start_time='4:00 PM', end_time='6:00 PM')
        Event.objects.create(organization=self.other_org, title='Theirs', date='2025-09-10', start_time='4:00 PM', end_time='6:00 PM')
        Event.objects.create(organization=self.org, title='Ad-hoc', date='2025-09-10', start_time='7:00 PM', end_time='8:00 PM', is_ad_hoc=True)

        self.client.force_authenticate(self.athlete)
        response = self.client.get('/api/events/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item['title'] for item in response.data], ['Mine'])

    def test_coach_creates_event(self):
        self.client.force_authenticate(self.coach)

        response = self.client.post('/api/events/', self._payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        event = Event.objects.get()
        self.assertEqual(event.team, self.team)
        self.assertFalse(event.is_ad_hoc)

    def test_athlete_cannot_create_event(self):
        self.client.force_authenticate(self.athlete)

        response = self.client.post('/api/events/', self._payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Event.objects.exists())

    def test_end_time_must_follow_start_time(self):
        self.client.force_authenticate(self.coach)

        response = self.client.post('/api/events/', self._payload(start_time='18:00', end_time='5:00 PM'), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('end_time', response.data)

    def test_invalid_time_string_is_rejected(self):
        self.client.force_authenticate(self.coach)

        response = self.client.post('/api/events/', self._payload(start_time='soon'), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('start_time', response.data)

    def test_team_must_belong_to_organization(self):
        self.client.force_authenticate(self.coach)

        response = self.client.post('/api/events/', self._payload(team=self.other_team.id), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('team', response.data)

    def test_athlete_cannot_delete_event(self):
        event = Event.objects.create(organization=self.org, title='Keep', date='2025-09-10', start_time='4:00 PM', end_time='6:00 PM')
        self.client.force_authenticate(self.athlete)

        response = self.client.delete(f'/api/events/{event.id}/')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(Event.objects.filter(pk=event.pk).exists())
