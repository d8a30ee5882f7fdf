from datetime import date, datetime
from types import SimpleNamespace
from unittest.mock import Mock, patch
from zoneinfo import ZoneInfo

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from attendance.exceptions import (
    AlreadyCheckedOut,
    CheckInConflict,
    CheckInNotFound,
    EventNotFound,
    InvalidCheckInTimes,
    InvalidEventTime,
    NoEventsToday,
    NotAMember,
    NotAuthorizedForProxy,
    NotAuthorizedToReview,
    TagDeactivated,
    TeamNotInOrganization,
    TooEarly,
    UnrecognizedTag,
)
from attendance.models import CheckIn
from attendance.scheduler import SweepGuard, SweepScheduler, run_guarded
from attendance.services import check_in as check_in_service
from attendance.services.absence_sweep import mark_absent_for_ended_events, mark_absent_for_event
from attendance.services import manual as manual_service
from attendance.services.auto_checkout import auto_checkout_ended_events, open_check_ins
from attendance.services.event_matcher import select_event
from attendance.services.membership import MembershipPeriod, filter_events_by_membership, is_active_during
from attendance.services.rate_limit import UserRateLimiter, check_in_rate_limiter
from attendance.services.stats import (
    _month_before,
    attendance_trends,
    date_range,
    organization_leaderboard,
    team_leaderboard,
    user_stats,
    week_start,
)
from attendance.services.time_window import (
    event_duration_hours,
    parse_time_string,
    resolve_instant,
    resolve_window,
    round_hours,
)
from events.models import Event
from organizations.models import GuardianLink, Organization, OrganizationMember, Team, TeamMember, TeamMemberHistory
from tags.models import NfcTag


User = get_user_model()
NY = ZoneInfo("America/New_York")
EVENT_DAY = date(2025, 9, 10)


def at(hour, minute=0, day=EVENT_DAY):
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=NY)


def window_for(event_id, start_time, end_time, title="Practice", day=EVENT_DAY):
    event = SimpleNamespace(id=event_id, title=title, date=day, start_time=start_time, end_time=end_time, team_id=None)
    return resolve_window(event, NY)


@override_settings(ATTENDANCE_TIME_ZONE="America/New_York", ATTENDANCE_CHECK_IN_WINDOW_MINUTES=30)
class TimeStringTests(SimpleTestCase):
    def test_twelve_hour_boundaries(self):
        self.assertEqual(parse_time_string("12:00 AM"), (0, 0))
        self.assertEqual(parse_time_string("12:00 PM"), (12, 0))
        self.assertEqual(parse_time_string("6:00 PM"), (18, 0))
        self.assertEqual(parse_time_string("6:30 pm"), (18, 30))
        self.assertEqual(parse_time_string(" 9:05am "), (9, 5))

    def test_bare_twenty_four_hour(self):
        self.assertEqual(parse_time_string("0:00"), (0, 0))
        self.assertEqual(parse_time_string("23:59"), (23, 59))
        self.assertEqual(parse_time_string("14:00"), (14, 0))

    def test_malformed_values_raise(self):
        for value in ["", "noon", "6 PM", "1:2:3", "ab:cd", None]:
            with self.subTest(value=value):
                with self.assertRaises(InvalidEventTime):
                    parse_time_string(value)

    def test_out_of_range_time_raises(self):
        with self.assertRaises(InvalidEventTime):
            resolve_instant(EVENT_DAY, "25:00", NY)

    def test_event_duration(self):
        self.assertEqual(event_duration_hours("6:00 PM", "8:30 PM"), 2.5)
        self.assertEqual(event_duration_hours("All Day", "All Day"), 0.0)
        self.assertEqual(event_duration_hours("", "5:00 PM"), 0.0)
        self.assertEqual(event_duration_hours("8:00 PM", "6:00 PM"), 0.0)

    def test_round_hours_half_up(self):
        self.assertEqual(round_hours(2.125), 2.13)
        self.assertEqual(round_hours(124 / 60), 2.07)

    def test_window_bounds_are_inclusive(self):
        window = window_for(1, "6:00 PM", "8:00 PM")

        self.assertFalse(window.accepts(at(17, 29)))
        self.assertTrue(window.accepts(at(17, 30)))
        self.assertTrue(window.accepts(at(20, 0)))
        self.assertFalse(window.accepts(at(20, 1)))
        self.assertFalse(window.has_ended(at(20, 0)))
        self.assertTrue(window.has_ended(at(20, 1)))

    def test_window_is_zone_aware(self):
        window = window_for(1, "6:00 PM", "8:00 PM")

        self.assertEqual(window.starts_at, datetime(2025, 9, 10, 22, 0, tzinfo=ZoneInfo("UTC")))

    def test_hours_logged_discounts_early_arrival(self):
        window = window_for(1, "6:00 PM", "8:00 PM")

        self.assertEqual(window.hours_logged(at(17, 45), at(20, 0)), 2.0)
        self.assertEqual(window.hours_logged(at(18, 18), at(20, 22)), 2.07)
        self.assertEqual(window.hours_logged(at(18, 30), at(18, 0)), 0.0)


@override_settings(ATTENDANCE_TIME_ZONE="America/New_York", ATTENDANCE_CHECK_IN_WINDOW_MINUTES=30)
class EventMatcherTests(SimpleTestCase):
    def setUp(self):
        self.practice = window_for(1, "6:00 PM", "8:00 PM", title="Practice")
        self.lift = window_for(2, "7:30 PM", "9:00 PM", title="Lift")

    def test_selects_event_whose_window_contains_now(self):
        self.assertEqual(select_event(at(17, 30), [self.lift, self.practice]).event_id, 1)
        self.assertEqual(select_event(at(20, 30), [self.practice, self.lift]).event_id, 2)

    def test_earliest_event_wins_when_windows_overlap(self):
        self.assertEqual(select_event(at(19, 45), [self.lift, self.practice]).event_id, 1)

    def test_closed_events_are_skipped(self):
        self.assertEqual(select_event(at(19, 45), [self.practice, self.lift], closed_event_ids=[1]).event_id, 2)

    def test_early_tap_requires_confirmation(self):
        with self.assertRaises(TooEarly) as ctx:
            select_event(at(15, 0), [self.lift, self.practice])

        self.assertEqual(ctx.exception.title, "Practice")
        self.assertEqual(ctx.exception.start_time, "6:00 PM")
        self.assertEqual(select_event(at(15, 0), [self.lift, self.practice], confirm_early=True).event_id, 1)

    def test_nothing_left_today(self):
        with self.assertRaises(NoEventsToday):
            select_event(at(21, 30), [self.practice, self.lift])
        with self.assertRaises(NoEventsToday):
            select_event(at(12, 0), [])


class MembershipPeriodTests(SimpleTestCase):
    def test_open_period(self):
        periods = [MembershipPeriod(joined_at=date(2025, 9, 1))]

        self.assertTrue(is_active_during(date(2026, 1, 15), periods))
        self.assertFalse(is_active_during(date(2025, 8, 15), periods))

    def test_gap_between_periods(self):
        periods = [
            MembershipPeriod(joined_at=date(2025, 9, 1), left_at=date(2025, 12, 1)),
            MembershipPeriod(joined_at=date(2026, 2, 1)),
        ]

        self.assertFalse(is_active_during(date(2026, 1, 15), periods))
        self.assertTrue(is_active_during(date(2025, 10, 1), periods))
        self.assertTrue(is_active_during(date(2026, 2, 20), periods))
        self.assertTrue(is_active_during(date(2025, 12, 1), periods))

    def test_filter_events(self):
        periods = [MembershipPeriod(joined_at=date(2025, 9, 5), left_at=date(2025, 9, 20))]
        events = [SimpleNamespace(date=date(2025, 9, day)) for day in (1, 5, 20, 21)]

        self.assertEqual([event.date.day for event in filter_events_by_membership(events, periods)], [5, 20])

    def test_no_periods(self):
        self.assertFalse(is_active_during(date(2025, 9, 5), []))


class RateLimiterTests(SimpleTestCase):
    def setUp(self):
        self.now = [1000.0]
        self.limiter = UserRateLimiter(max_requests=2, window_seconds=60, clock=lambda: self.now[0])

    def test_blocks_after_max_requests_until_window_resets(self):
        self.assertIsNone(self.limiter.check(7))
        self.assertIsNone(self.limiter.check(7))
        self.assertEqual(self.limiter.check(7), 60.0)

        self.now[0] += 45
        self.assertEqual(self.limiter.check(7), 15.0)

        self.now[0] += 15
        self.assertIsNone(self.limiter.check(7))

    def test_users_are_counted_separately(self):
        self.limiter.check(1)
        self.limiter.check(1)

        self.assertIsNone(self.limiter.check(2))

    def test_prune_drops_stale_windows(self):
        self.limiter.check(1)
        self.now[0] += 30
        self.limiter.check(2)
        self.now[0] += 30

        self.assertEqual(self.limiter.prune(), 1)
        self.assertEqual(self.limiter.prune(), 0)

    def test_check_drops_stale_windows_once_per_period(self):
        self.limiter.check(1)
        self.now[0] += 30
        self.limiter.check(2)
        self.assertEqual(set(self.limiter._windows), {1, 2})

        self.now[0] += 30
        self.limiter.check(3)

        self.assertEqual(set(self.limiter._windows), {2, 3})

        self.now[0] += 30
        self.limiter.check(3)
        self.assertEqual(set(self.limiter._windows), {2, 3})

        self.now[0] += 30
        self.limiter.check(4)
        self.assertEqual(set(self.limiter._windows), {4})


@override_settings(
    ATTENDANCE_SWEEP_INTERVAL_MINUTES=5,
    ATTENDANCE_SWEEP_LOOKBACK_MINUTES=30,
    ATTENDANCE_CATCHUP_LOOKBACK_MINUTES=10080,
)
@patch("attendance.scheduler.close_old_connections")
class SweepSchedulerTests(SimpleTestCase):
    def test_busy_guard_makes_tick_a_no_op(self, _close):
        guard = SweepGuard("absence")
        sweep = Mock(return_value=3)
        self.assertTrue(guard.acquire())

        self.assertIsNone(run_guarded(guard, sweep, lookback_minutes=30))
        sweep.assert_not_called()
        self.assertTrue(guard.running)

    def test_guard_is_released_after_run(self, _close):
        guard = SweepGuard("absence")
        sweep = Mock(return_value=3)

        self.assertEqual(run_guarded(guard, sweep, lookback_minutes=30), 3)
        sweep.assert_called_once_with(lookback_minutes=30)
        self.assertFalse(guard.running)

    def test_failing_sweep_is_logged_and_releases_guard(self, _close):
        guard = SweepGuard("auto_checkout")

        with self.assertLogs("attendance.scheduler", level="ERROR"):
            self.assertIsNone(run_guarded(guard, Mock(side_effect=RuntimeError("db down"))))
        self.assertFalse(guard.running)

    def test_start_registers_catchup_and_interval_jobs(self, _close):
        backend = Mock()
        sweeps = SweepScheduler(scheduler=backend)

        sweeps.start()

        jobs = {call.kwargs["id"]: call for call in backend.add_job.call_args_list}
        self.assertEqual(jobs["absence_catchup"].kwargs["kwargs"], {"lookback_minutes": 10080})
        self.assertEqual(jobs["auto_checkout_catchup"].args[1], "date")
        self.assertEqual(jobs["absence_sweep"].kwargs["minutes"], 5)
        self.assertEqual(jobs["auto_checkout_sweep"].kwargs["minutes"], 5)
        self.assertIn("rate_limit_prune", jobs)
        backend.start.assert_called_once_with()

    def test_each_scheduler_owns_its_guards(self, _close):
        first = SweepScheduler(scheduler=Mock())
        second = SweepScheduler(scheduler=Mock())
        first.absence_guard.acquire()

        with patch("attendance.scheduler.mark_absent_for_ended_events", return_value=2) as sweep:
            self.assertIsNone(first.run_absence_sweep())
            self.assertEqual(second.run_absence_sweep(), 2)

        sweep.assert_called_once_with(lookback_minutes=30)

    def test_stop_shuts_down_running_scheduler(self, _close):
        backend = Mock(running=True)

        SweepScheduler(scheduler=backend).stop()

        backend.shutdown.assert_called_once_with(wait=False)


class AttendanceFixtureMixin:
    def setUp(self):
        super().setUp()
        self.org = Organization.objects.create(name="Harbor Rowing", code="harbor")
        self.team = Team.objects.create(organization=self.org, name="Varsity")
        self.athlete = User.objects.create_user(username="athlete", password="pwd12345")
        self.coach = User.objects.create_user(username="coach", password="pwd12345")
        self.add_member(self.athlete, self.team)
        self.add_member(self.coach, self.team, org_role=OrganizationMember.ROLE_COACH, team_role=TeamMember.ROLE_COACH)
        self.tag = NfcTag.objects.create(organization=self.org, token="tag-boathouse")
        self.practice = self.create_event("Practice", "6:00 PM", "8:00 PM")

    def add_member(self, user, team, org_role=OrganizationMember.ROLE_ATHLETE, team_role=TeamMember.ROLE_MEMBER, joined=None):
        OrganizationMember.objects.get_or_create(user=user, organization=team.organization, defaults={"role": org_role})
        return TeamMember.objects.create(user=user, team=team, role=team_role, joined_at=joined or at(9, 0, date(2025, 9, 1)))

    def create_event(self, title, start_time, end_time, day=EVENT_DAY, team=None, **fields):
        fields.setdefault("organization", self.org)
        return Event.objects.create(
            team=team or self.team,
            title=title,
            date=day,
            start_time=start_time,
            end_time=end_time,
            **fields,
        )


@override_settings(ATTENDANCE_TIME_ZONE="America/New_York", ATTENDANCE_CHECK_IN_WINDOW_MINUTES=30)
class CheckInFlowTests(AttendanceFixtureMixin, TestCase):
    def tap(self, now, user=None, **kwargs):
        return check_in_service.nfc_check_in(user or self.athlete, "tag-boathouse", now=now, **kwargs)

    def test_tap_before_start_is_on_time(self):
        result = self.tap(at(17, 58))

        self.assertEqual(result.action, check_in_service.ACTION_CHECKED_IN)
        self.assertEqual(result.event, self.practice)
        self.assertEqual(result.check_in.status, CheckIn.STATUS_ON_TIME)
        self.assertEqual(result.check_in.check_in_time, at(17, 58))
        self.assertIsNone(result.check_in.check_out_time)

    def test_tap_after_start_is_late(self):
        result = self.tap(at(18, 18))

        self.assertEqual(result.check_in.status, CheckIn.STATUS_LATE)

    def test_second_tap_checks_out(self):
        self.tap(at(17, 58))

        result = self.tap(at(19, 55))

        self.assertEqual(result.action, check_in_service.ACTION_CHECKED_OUT)
        self.assertEqual(result.check_in.check_out_time, at(19, 55))
        self.assertEqual(result.check_in.hours_logged, 1.92)

    def test_manual_check_out_after_event_end(self):
        check_in = self.tap(at(18, 18)).check_in

        closed = check_in_service.check_out(self.athlete, check_in.id, now=at(20, 22))

        self.assertEqual(closed.hours_logged, 2.07)
        self.assertEqual(closed.check_out_time, at(20, 22))

    def test_manual_check_out_discounts_early_arrival(self):
        check_in = self.tap(at(17, 58)).check_in

        closed = check_in_service.check_out(self.athlete, check_in.id, now=at(20, 2))

        self.assertEqual(closed.hours_logged, 2.03)

    def test_check_out_twice_is_rejected(self):
        check_in = self.tap(at(18, 0)).check_in
        check_in_service.check_out(self.athlete, check_in.id, now=at(19, 0))

        with self.assertRaises(AlreadyCheckedOut):
            check_in_service.check_out(self.athlete, check_in.id, now=at(19, 30))

    def test_closed_event_no_longer_matches(self):
        lift = self.create_event("Lift", "7:30 PM", "9:00 PM")
        self.tap(at(17, 58))
        self.tap(at(19, 40))

        result = self.tap(at(19, 45))

        self.assertEqual(result.event, lift)
        self.assertEqual(result.action, check_in_service.ACTION_CHECKED_IN)
        self.assertEqual(result.check_in.status, CheckIn.STATUS_LATE)

    def test_tap_after_check_out_with_nothing_left(self):
        self.tap(at(17, 58))
        self.tap(at(19, 0))

        with self.assertRaises(NoEventsToday):
            self.tap(at(19, 5))

    def test_early_tap_needs_confirmation(self):
        with self.assertRaises(TooEarly) as ctx:
            self.tap(at(15, 0))
        self.assertEqual(ctx.exception.as_dict()["title"], "Practice")

        result = self.tap(at(15, 0), confirm_early=True)

        self.assertEqual(result.event, self.practice)
        self.assertEqual(result.check_in.status, CheckIn.STATUS_ON_TIME)

    def test_no_events_after_last_event_ended(self):
        with self.assertRaises(NoEventsToday):
            self.tap(at(21, 0))

    def test_all_day_events_are_ignored(self):
        self.create_event("Regatta", "All Day", "All Day")

        result = self.tap(at(18, 0))

        self.assertEqual(result.event, self.practice)

    def test_malformed_event_time_aborts_tap(self):
        self.create_event("Lift", "6 PM", "8 PM")

        with self.assertRaises(InvalidEventTime):
            self.tap(at(18, 0))

        self.assertFalse(CheckIn.objects.exists())

    def test_unknown_and_deactivated_tags(self):
        with self.assertRaises(UnrecognizedTag):
            check_in_service.nfc_check_in(self.athlete, "nope", now=at(18, 0))

        NfcTag.objects.filter(pk=self.tag.pk).update(is_active=False)
        with self.assertRaises(TagDeactivated):
            self.tap(at(18, 0))

    def test_non_member_cannot_tap(self):
        outsider = User.objects.create_user(username="outsider", password="pwd12345")

        with self.assertRaises(NotAMember):
            self.tap(at(18, 0), user=outsider)

    def test_team_from_other_organization(self):
        other_team = Team.objects.create(organization=Organization.objects.create(name="Lake", code="lake"), name="Novice")

        with self.assertRaises(TeamNotInOrganization):
            self.tap(at(18, 0), team_id=other_team.id)

    def test_guardian_checks_in_linked_athlete(self):
        guardian = User.objects.create_user(username="guardian", password="pwd12345")
        OrganizationMember.objects.create(user=guardian, organization=self.org, role=OrganizationMember.ROLE_GUARDIAN)
        GuardianLink.objects.create(guardian=guardian, athlete=self.athlete, organization=self.org)

        result = self.tap(at(18, 0), user=guardian, for_user_id=self.athlete.id)

        self.assertEqual(result.check_in.user, self.athlete)
        closed = check_in_service.check_out(guardian, result.check_in.id, now=at(19, 0))
        self.assertEqual(closed.hours_logged, 1.0)

    def test_proxy_without_guardian_link(self):
        with self.assertRaises(NotAuthorizedForProxy):
            self.tap(at(18, 0), user=self.coach, for_user_id=self.athlete.id)

    def test_concurrent_check_in_conflicts(self):
        window = resolve_window(self.practice)
        check_in_service.record_check_in(self.athlete, window, at(18, 0))

        with self.assertRaises(CheckInConflict):
            check_in_service.record_check_in(self.athlete, window, at(18, 0))

        self.assertEqual(CheckIn.objects.filter(user=self.athlete, event=self.practice).count(), 1)

    def test_tap_on_recorded_absence_conflicts(self):
        CheckIn.objects.create(user=self.athlete, event=self.practice, status=CheckIn.STATUS_EXCUSED)

        with self.assertRaises(CheckInConflict):
            self.tap(at(18, 0))


@override_settings(ATTENDANCE_TIME_ZONE="America/New_York", ATTENDANCE_CHECK_IN_WINDOW_MINUTES=30)
class AdHocCheckInTests(AttendanceFixtureMixin, TestCase):
    def ad_hoc(self, user=None, team=None, now=None):
        return check_in_service.ad_hoc_check_in(
            user or self.athlete,
            "tag-boathouse",
            team_id=(team or self.team).id,
            start_time="3:00 PM",
            end_time="5:00 PM",
            note="Extra erg",
            now=now or at(15, 5),
        )

    def test_creates_pending_event_and_check_in(self):
        result = self.ad_hoc()

        self.assertTrue(result.event.is_ad_hoc)
        self.assertEqual(result.event.date, EVENT_DAY)
        self.assertEqual(result.check_in.status, CheckIn.STATUS_ON_TIME)
        self.assertFalse(result.check_in.approved)
        self.assertEqual(list(check_in_service.pending_ad_hoc_check_ins(self.coach, self.org)), [result.check_in])

    def test_tap_closes_own_ad_hoc_check_in(self):
        self.ad_hoc()

        result = check_in_service.nfc_check_in(self.athlete, "tag-boathouse", now=at(16, 5))

        self.assertEqual(result.action, check_in_service.ACTION_CHECKED_OUT)
        self.assertEqual(result.check_in.hours_logged, 1.0)

    def test_other_users_do_not_see_ad_hoc_event(self):
        self.ad_hoc()
        teammate = User.objects.create_user(username="teammate", password="pwd12345")
        self.add_member(teammate, self.team)

        with self.assertRaises(TooEarly):
            check_in_service.nfc_check_in(teammate, "tag-boathouse", now=at(16, 5))

    def test_must_belong_to_team(self):
        other_team = Team.objects.create(organization=self.org, name="Novice")

        with self.assertRaises(NotAMember):
            self.ad_hoc(team=other_team)

    def test_coach_approves(self):
        check_in = self.ad_hoc().check_in

        approved = check_in_service.approve_ad_hoc(self.coach, check_in.id)

        self.assertTrue(approved.approved)
        self.assertEqual(list(check_in_service.pending_ad_hoc_check_ins(self.coach, self.org)), [])

    def test_athlete_cannot_review(self):
        check_in = self.ad_hoc().check_in

        with self.assertRaises(NotAuthorizedToReview):
            check_in_service.approve_ad_hoc(self.athlete, check_in.id)
        with self.assertRaises(NotAuthorizedToReview):
            check_in_service.pending_ad_hoc_check_ins(self.athlete, self.org)

    def test_coach_only_reviews_coached_teams(self):
        novice = Team.objects.create(organization=self.org, name="Novice")
        rookie = User.objects.create_user(username="rookie", password="pwd12345")
        self.add_member(rookie, novice)
        check_in = self.ad_hoc(user=rookie, team=novice).check_in

        with self.assertRaises(NotAuthorizedToReview):
            check_in_service.approve_ad_hoc(self.coach, check_in.id)
        self.assertEqual(list(check_in_service.pending_ad_hoc_check_ins(self.coach, self.org)), [])

        manager = User.objects.create_user(username="manager", password="pwd12345")
        OrganizationMember.objects.create(user=manager, organization=self.org, role=OrganizationMember.ROLE_MANAGER)
        self.assertTrue(check_in_service.approve_ad_hoc(manager, check_in.id).approved)

    def test_deny_removes_check_in_and_event(self):
        result = self.ad_hoc()

        check_in_service.deny_ad_hoc(self.coach, result.check_in.id)

        self.assertFalse(CheckIn.objects.filter(pk=result.check_in.pk).exists())
        self.assertFalse(Event.objects.filter(pk=result.event.pk).exists())
        self.assertTrue(Event.objects.filter(pk=self.practice.pk).exists())

    def test_invalid_time_rejected(self):
        with self.assertRaises(InvalidEventTime):
            check_in_service.ad_hoc_check_in(
                self.athlete, "tag-boathouse", team_id=self.team.id, start_time="later", end_time="5:00 PM", now=at(15, 5)
            )
        self.assertFalse(Event.objects.filter(is_ad_hoc=True).exists())


@override_settings(ATTENDANCE_TIME_ZONE="America/New_York")
class AbsenceSweepTests(AttendanceFixtureMixin, TestCase):
    def sweep(self, now, **kwargs):
        kwargs.setdefault("lookback_minutes", 30)
        return mark_absent_for_ended_events(now=now, **kwargs)

    def absent_user_ids(self, event=None):
        return set(
            CheckIn.objects.filter(event=event or self.practice, status=CheckIn.STATUS_ABSENT).values_list("user_id", flat=True)
        )

    def test_marks_missing_athletes_absent(self):
        present = User.objects.create_user(username="present", password="pwd12345")
        self.add_member(present, self.team)
        CheckIn.objects.create(user=present, event=self.practice, status=CheckIn.STATUS_ON_TIME, check_in_time=at(18, 0))

        self.assertEqual(self.sweep(at(20, 10)), 1)

        self.assertEqual(self.absent_user_ids(), {self.athlete.id})
        absence = CheckIn.objects.get(user=self.athlete, event=self.practice)
        self.assertIsNone(absence.check_in_time)
        self.assertEqual(absence.hours_logged, 0)

    def test_sweep_is_idempotent(self):
        self.assertEqual(self.sweep(at(20, 10)), 1)
        self.assertEqual(self.sweep(at(20, 15)), 0)

        self.assertEqual(CheckIn.objects.filter(user=self.athlete, event=self.practice).count(), 1)

    def test_event_not_ended_is_left_alone(self):
        self.assertEqual(self.sweep(at(20, 0)), 0)
        self.assertFalse(CheckIn.objects.exists())

    def test_events_outside_lookback_are_skipped(self):
        self.assertEqual(self.sweep(at(9, 0, date(2025, 9, 12))), 0)
        self.assertEqual(self.sweep(at(9, 0, date(2025, 9, 12)), lookback_minutes=7 * 24 * 60), 1)

    def test_members_who_joined_later_are_not_marked(self):
        newcomer = User.objects.create_user(username="newcomer", password="pwd12345")
        self.add_member(newcomer, self.team, joined=at(9, 0, date(2025, 9, 11)))

        self.sweep(at(20, 10))

        self.assertEqual(self.absent_user_ids(), {self.athlete.id})

    def test_membership_gap_is_respected(self):
        returning = User.objects.create_user(username="returning", password="pwd12345")
        self.add_member(returning, self.team, joined=at(9, 0, date(2025, 9, 12)))
        TeamMemberHistory.objects.create(user=returning, team=self.team, joined_at=at(9, 0, date(2025, 9, 1)), left_at=at(9, 0, date(2025, 9, 5)))
        TeamMemberHistory.objects.create(user=returning, team=self.team, joined_at=at(9, 0, date(2025, 9, 12)))

        self.sweep(at(20, 10))

        self.assertNotIn(returning.id, self.absent_user_ids())

    def test_staff_are_not_marked(self):
        self.sweep(at(20, 10))

        self.assertNotIn(self.coach.id, self.absent_user_ids())

    def test_participating_team_athletes_are_included(self):
        novice = Team.objects.create(organization=self.org, name="Novice")
        rookie = User.objects.create_user(username="rookie", password="pwd12345")
        self.add_member(rookie, novice)
        self.practice.participating_teams.add(novice)

        self.sweep(at(20, 10))

        self.assertEqual(self.absent_user_ids(), {self.athlete.id, rookie.id})

    def test_ad_hoc_events_are_skipped(self):
        ad_hoc = self.create_event("Ad-Hoc Check-In", "3:00 PM", "5:00 PM", is_ad_hoc=True)

        self.sweep(at(20, 10))

        self.assertFalse(CheckIn.objects.filter(event=ad_hoc).exists())

    def test_scoped_to_organization(self):
        other_org = Organization.objects.create(name="Lake Rowing", code="lake")

        self.assertEqual(self.sweep(at(20, 10), organization=other_org), 0)
        self.assertEqual(self.sweep(at(20, 10), organization=self.org), 1)

    def test_failing_event_does_not_stop_sweep(self):
        second = self.create_event("Lift", "6:30 PM", "7:30 PM")
        def flaky(event):
            if event.pk == self.practice.pk:
                raise RuntimeError("boom")
            return mark_absent_for_event(event)

        with patch("attendance.services.absence_sweep.mark_absent_for_event", side_effect=flaky):
            with self.assertLogs("attendance.services.absence_sweep", level="ERROR"):
                self.assertEqual(self.sweep(at(20, 10)), 1)

        self.assertEqual(self.absent_user_ids(second), {self.athlete.id})


@override_settings(ATTENDANCE_TIME_ZONE="America/New_York")
class AutoCheckoutTests(AttendanceFixtureMixin, TestCase):
    def open_check_in(self, check_in_time, status=CheckIn.STATUS_ON_TIME, user=None):
        return CheckIn.objects.create(user=user or self.athlete, event=self.practice, status=status, check_in_time=check_in_time)

    def test_closes_at_event_end(self):
        check_in = self.open_check_in(at(17, 45))

        self.assertEqual(auto_checkout_ended_events(lookback_minutes=30, now=at(20, 10)), 1)

        check_in.refresh_from_db()
        self.assertEqual(check_in.check_out_time, at(20, 0))
        self.assertEqual(check_in.hours_logged, 2.0)

    def test_late_arrival_hours(self):
        check_in = self.open_check_in(at(18, 30), status=CheckIn.STATUS_LATE)

        auto_checkout_ended_events(lookback_minutes=30, now=at(20, 10))

        check_in.refresh_from_db()
        self.assertEqual(check_in.hours_logged, 1.5)

    def test_second_run_changes_nothing(self):
        check_in = self.open_check_in(at(17, 45))
        auto_checkout_ended_events(lookback_minutes=30, now=at(20, 10))
        check_in.refresh_from_db()
        updated_at = check_in.updated_at

        self.assertEqual(auto_checkout_ended_events(lookback_minutes=30, now=at(20, 15)), 0)

        check_in.refresh_from_db()
        self.assertEqual(check_in.check_out_time, at(20, 0))
        self.assertEqual(check_in.hours_logged, 2.0)
        self.assertEqual(check_in.updated_at, updated_at)

    def test_running_event_is_left_open(self):
        check_in = self.open_check_in(at(17, 45))

        self.assertEqual(auto_checkout_ended_events(lookback_minutes=30, now=at(19, 59)), 0)

        check_in.refresh_from_db()
        self.assertIsNone(check_in.check_out_time)

    def test_absences_and_closed_rows_are_untouched(self):
        other = User.objects.create_user(username="other", password="pwd12345")
        CheckIn.objects.create(user=other, event=self.practice, status=CheckIn.STATUS_ABSENT, hours_logged=0)
        closed = CheckIn.objects.create(
            user=self.athlete,
            event=self.practice,
            status=CheckIn.STATUS_ON_TIME,
            check_in_time=at(18, 0),
            check_out_time=at(19, 0),
            hours_logged=1.0,
        )

        self.assertEqual(auto_checkout_ended_events(lookback_minutes=30, now=at(20, 10)), 0)

        closed.refresh_from_db()
        self.assertEqual(closed.check_out_time, at(19, 0))
        self.assertIsNone(CheckIn.objects.get(user=other).check_out_time)

    def test_manual_and_sweep_close_agree(self):
        teammate = User.objects.create_user(username="teammate", password="pwd12345")
        self.add_member(teammate, self.team)
        swept = self.open_check_in(at(18, 10), status=CheckIn.STATUS_LATE)
        manual = self.open_check_in(at(18, 10), status=CheckIn.STATUS_LATE, user=teammate)

        check_in_service.check_out(teammate, manual.id, now=at(20, 0))
        self.assertEqual(auto_checkout_ended_events(lookback_minutes=30, now=at(20, 10)), 1)

        swept.refresh_from_db()
        manual.refresh_from_db()
        self.assertEqual(swept.check_out_time, manual.check_out_time)
        self.assertEqual(swept.hours_logged, manual.hours_logged)
        self.assertEqual(swept.hours_logged, 1.83)

    def test_failing_event_does_not_stop_sweep(self):
        lift = self.create_event("Lift", "6:30 PM", "7:30 PM")
        self.open_check_in(at(17, 45))
        lift_check_in = CheckIn.objects.create(user=self.athlete, event=lift, status=CheckIn.STATUS_ON_TIME, check_in_time=at(18, 30))

        def flaky(event_id):
            if event_id == self.practice.pk:
                raise RuntimeError("boom")
            return open_check_ins(event_id)

        with patch("attendance.services.auto_checkout.open_check_ins", side_effect=flaky):
            with self.assertLogs("attendance.services.auto_checkout", level="ERROR"):
                self.assertEqual(auto_checkout_ended_events(lookback_minutes=30, now=at(20, 10)), 1)

        lift_check_in.refresh_from_db()
        self.assertEqual(lift_check_in.check_out_time, at(19, 30))
        self.assertEqual(lift_check_in.hours_logged, 1.0)


@override_settings(ATTENDANCE_TIME_ZONE="America/New_York")
class ManualCheckInTests(AttendanceFixtureMixin, TestCase):
    def record(self, status=CheckIn.STATUS_ON_TIME, caller=None, **kwargs):
        return manual_service.admin_check_in(caller or self.coach, self.athlete.id, self.practice.id, status, **kwargs)

    def test_admin_check_in_discounts_early_arrival(self):
        check_in = self.record(check_in_time=at(17, 45), check_out_time=at(20, 0), note="forgot tag")

        self.assertEqual(check_in.hours_logged, 2.0)
        self.assertEqual(check_in.status, CheckIn.STATUS_ON_TIME)
        self.assertEqual(check_in.note, "forgot tag")

    def test_attended_status_defaults_check_in_to_now(self):
        check_in = self.record(CheckIn.STATUS_LATE, now=at(18, 20))

        self.assertEqual(check_in.check_in_time, at(18, 20))
        self.assertIsNone(check_in.check_out_time)
        self.assertIsNone(check_in.hours_logged)

    def test_excused_has_no_check_in_time(self):
        check_in = self.record(CheckIn.STATUS_EXCUSED, now=at(18, 20))

        self.assertIsNone(check_in.check_in_time)

    def test_absent_overwrites_existing_row(self):
        CheckIn.objects.create(
            user=self.athlete,
            event=self.practice,
            status=CheckIn.STATUS_ON_TIME,
            check_in_time=at(18, 0),
            check_out_time=at(19, 0),
            hours_logged=1.0,
        )

        check_in = manual_service.mark_user_absent(self.coach, self.athlete.id, self.practice.id)

        self.assertEqual(CheckIn.objects.filter(user=self.athlete, event=self.practice).count(), 1)
        self.assertEqual(check_in.status, CheckIn.STATUS_ABSENT)
        self.assertIsNone(check_in.check_in_time)
        self.assertIsNone(check_in.check_out_time)
        self.assertEqual(check_in.hours_logged, 0)

    def test_check_out_before_check_in_is_rejected(self):
        with self.assertRaises(InvalidCheckInTimes):
            self.record(check_in_time=at(19, 0), check_out_time=at(18, 0))

        with self.assertRaises(InvalidCheckInTimes):
            self.record(check_in_time=None, check_out_time=at(18, 0))

    def test_only_staff_can_record(self):
        with self.assertRaises(NotAuthorizedToReview):
            self.record(caller=self.athlete, check_in_time=at(18, 0))

    def test_target_must_belong_to_organization(self):
        outsider = User.objects.create_user(username="outsider", password="pwd12345")

        with self.assertRaises(NotAMember):
            manual_service.admin_check_in(self.coach, outsider.id, self.practice.id, CheckIn.STATUS_ON_TIME)

    def test_unknown_event(self):
        with self.assertRaises(EventNotFound):
            manual_service.admin_check_in(self.coach, self.athlete.id, 999999, CheckIn.STATUS_ON_TIME)

    def test_editing_times_recomputes_hours(self):
        check_in = self.record(check_in_time=at(18, 0), check_out_time=at(19, 0))

        check_in = manual_service.update_check_in_times(self.coach, check_in.id, check_out_time=at(20, 30))
        self.assertEqual(check_in.hours_logged, 2.5)

        check_in = manual_service.update_check_in_times(self.coach, check_in.id, check_in_time=at(17, 30))
        self.assertEqual(check_in.check_in_time, at(17, 30))
        self.assertEqual(check_in.hours_logged, 2.5)

        check_in = manual_service.update_check_in_times(self.coach, check_in.id, check_out_time=None)
        self.assertIsNone(check_in.hours_logged)

    def test_editing_times_requires_staff(self):
        check_in = self.record(check_in_time=at(18, 0), check_out_time=at(19, 0))

        with self.assertRaises(NotAuthorizedToReview):
            manual_service.update_check_in_times(self.athlete, check_in.id, check_out_time=at(20, 0))
        with self.assertRaises(CheckInNotFound):
            manual_service.update_check_in_times(self.coach, 999999, check_out_time=at(20, 0))

    def test_delete_check_in(self):
        self.record(check_in_time=at(18, 0))

        self.assertTrue(manual_service.delete_check_in(self.coach, self.athlete.id, self.practice.id))
        self.assertFalse(manual_service.delete_check_in(self.coach, self.athlete.id, self.practice.id))
        self.assertFalse(CheckIn.objects.exists())

    def test_active_check_in_is_todays_open_approved_row(self):
        open_row = CheckIn.objects.create(user=self.athlete, event=self.practice, status=CheckIn.STATUS_ON_TIME, check_in_time=at(18, 0))
        ad_hoc = self.create_event("Ad-Hoc Check-In", "3:00 PM", "5:00 PM", is_ad_hoc=True)
        CheckIn.objects.create(
            user=self.athlete, event=ad_hoc, status=CheckIn.STATUS_ON_TIME, check_in_time=at(18, 30), is_ad_hoc=True, approved=False
        )

        self.assertEqual(manual_service.active_check_in(self.athlete, self.org, now=at(19, 0)), open_row)
        self.assertIsNone(manual_service.active_check_in(self.athlete, self.org, now=at(19, 0, date(2025, 9, 11))))

    def test_active_check_in_for_guarded_athlete(self):
        open_row = CheckIn.objects.create(user=self.athlete, event=self.practice, status=CheckIn.STATUS_ON_TIME, check_in_time=at(18, 0))
        guardian = User.objects.create_user(username="guardian", password="pwd12345")
        OrganizationMember.objects.create(user=guardian, organization=self.org, role=OrganizationMember.ROLE_GUARDIAN)

        with self.assertRaises(NotAuthorizedForProxy):
            manual_service.active_check_in(guardian, self.org, for_user_id=self.athlete.id, now=at(19, 0))

        GuardianLink.objects.create(guardian=guardian, athlete=self.athlete, organization=self.org)
        self.assertEqual(
            manual_service.active_check_in(guardian, self.org, for_user_id=self.athlete.id, now=at(19, 0)),
            open_row,
        )

    def test_unchecked_athletes(self):
        teammate = User.objects.create_user(username="teammate", password="pwd12345")
        self.add_member(teammate, self.team)
        CheckIn.objects.create(user=self.athlete, event=self.practice, status=CheckIn.STATUS_ON_TIME, check_in_time=at(18, 0))

        users = list(manual_service.unchecked_athletes(self.coach, self.practice.id))

        self.assertEqual(users, [teammate])
        with self.assertRaises(NotAuthorizedToReview):
            manual_service.unchecked_athletes(self.athlete, self.practice.id)


@override_settings(ATTENDANCE_TIME_ZONE="America/New_York")
class AttendanceStatsTests(AttendanceFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.monday = self.create_event("Monday practice", "6:00 PM", "8:00 PM", day=date(2025, 9, 8))
        self.next_week = self.create_event("Next week", "6:00 PM", "8:00 PM", day=date(2025, 9, 15))
        self.create_event("Future", "6:00 PM", "8:00 PM", day=date(2025, 9, 20))
        self.now = at(12, 0, date(2025, 9, 16))

    def log(self, user, event, hours, approved=True):
        return CheckIn.objects.create(
            user=user,
            event=event,
            status=CheckIn.STATUS_ON_TIME,
            check_in_time=at(18, 0, event.date),
            check_out_time=at(20, 0, event.date),
            hours_logged=hours,
            approved=approved,
        )

    def test_week_start(self):
        self.assertEqual(week_start(date(2025, 9, 8)), date(2025, 9, 8))
        self.assertEqual(week_start(date(2025, 9, 14)), date(2025, 9, 8))
        self.assertEqual(week_start(date(2025, 9, 15)), date(2025, 9, 15))

    def test_date_ranges(self):
        self.assertEqual(date_range("WEEK", self.now), (date(2025, 9, 9), date(2025, 9, 16)))
        self.assertEqual(date_range("MONTH", self.now), (date(2025, 8, 16), date(2025, 9, 16)))
        self.assertEqual(date_range("ALL", self.now), (None, date(2025, 9, 16)))
        self.assertEqual(_month_before(date(2025, 3, 31)), date(2025, 2, 28))

    def test_weekly_trends(self):
        self.log(self.athlete, self.monday, 2.0)
        self.log(self.athlete, self.practice, 1.0)
        self.log(self.coach, self.monday, 2.0)

        points = attendance_trends(self.org, now=self.now)

        self.assertEqual(
            points,
            [
                {
                    "week_start": "2025-09-08",
                    "events_count": 2,
                    "hours_required": 4.0,
                    "hours_logged": 3.0,
                    "attendance_percent": 75.0,
                },
                {
                    "week_start": "2025-09-15",
                    "events_count": 1,
                    "hours_required": 2.0,
                    "hours_logged": 0.0,
                    "attendance_percent": 0.0,
                },
            ],
        )

    def test_trends_for_user_follow_membership(self):
        newcomer = User.objects.create_user(username="newcomer", password="pwd12345")
        self.add_member(newcomer, self.team, joined=at(9, 0, date(2025, 9, 9)))
        self.log(newcomer, self.practice, 2.0)

        points = attendance_trends(self.org, user=newcomer, now=self.now)

        self.assertEqual([(p["week_start"], p["events_count"], p["hours_logged"]) for p in points], [("2025-09-08", 1, 2.0), ("2025-09-15", 1, 0.0)])

    def test_user_stats_respect_membership_and_approval(self):
        newcomer = User.objects.create_user(username="newcomer", password="pwd12345")
        self.add_member(newcomer, self.team, joined=at(9, 0, date(2025, 9, 9)))
        self.log(newcomer, self.monday, 2.0)
        self.log(newcomer, self.practice, 1.0)
        ad_hoc = self.create_event("Ad-Hoc Check-In", "1:00 PM", "2:00 PM", day=date(2025, 9, 11), is_ad_hoc=True)
        self.log(newcomer, ad_hoc, 1.0, approved=False)

        stats = user_stats(newcomer, self.org, now=self.now)

        self.assertEqual(stats.events_count, 2)
        self.assertEqual(stats.hours_required, 4.0)
        self.assertEqual(stats.hours_logged, 1.0)
        self.assertEqual(stats.attendance_percent, 25.0)

    def test_percent_is_capped(self):
        self.log(self.athlete, self.practice, 5.0)

        stats = user_stats(self.athlete, self.org, time_range="WEEK", now=at(21, 0))

        self.assertEqual(stats.hours_required, 4.0)
        self.assertEqual(stats.attendance_percent, 100.0)

    def test_no_memberships_means_zero(self):
        stranger = User.objects.create_user(username="stranger", password="pwd12345")

        self.assertEqual(user_stats(stranger, self.org, now=self.now).attendance_percent, 0.0)

    def test_team_leaderboard(self):
        teammate = User.objects.create_user(username="teammate", password="pwd12345")
        self.add_member(teammate, self.team)
        for event in (self.monday, self.practice, self.next_week):
            self.log(teammate, event, 2.0)
        self.log(self.athlete, self.monday, 2.0)

        entries = team_leaderboard(self.team, "ALL", now=self.now)

        self.assertEqual([(entry.rank, entry.user) for entry in entries], [(1, teammate), (2, self.athlete)])
        self.assertEqual(entries[0].attendance_percent, 100.0)
        self.assertAlmostEqual(entries[1].attendance_percent, 100 / 3)
        self.assertEqual(len(team_leaderboard(self.team, "ALL", limit=1, now=self.now)), 1)

    def test_organization_leaderboard_averages_teams(self):
        novice = Team.objects.create(organization=self.org, name="Novice")
        self.add_member(self.athlete, novice)
        novice_event = self.create_event("Novice practice", "6:00 PM", "8:00 PM", day=date(2025, 9, 9), team=novice)
        for event in (self.monday, self.practice, self.next_week):
            self.log(self.athlete, event, 2.0)
        self.log(self.athlete, novice_event, 1.0)

        entries = organization_leaderboard(self.org, "ALL", now=self.now)

        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].user, self.athlete)
        self.assertEqual(entries[0].attendance_percent, 75.0)
        self.assertEqual(entries[0].hours_required, 8.0)
        self.assertEqual(entries[0].hours_logged, 7.0)


@override_settings(ATTENDANCE_TIME_ZONE="America/New_York", ATTENDANCE_CHECK_IN_WINDOW_MINUTES=30)
class AttendanceApiTests(AttendanceFixtureMixin, APITestCase):
    def setUp(self):
        super().setUp()
        check_in_rate_limiter.reset()

    def test_requires_authentication(self):
        response = self.client.post("/api/attendance/nfc-check-in", {"token": "tag-boathouse"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    @patch("attendance.services.check_in.timezone.now")
    def test_tap_in_and_out(self, now):
        self.client.force_authenticate(self.athlete)

        now.return_value = at(17, 58)
        response = self.client.post("/api/attendance/nfc-check-in", {"token": "tag-boathouse"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["action"], "CHECKED_IN")
        self.assertEqual(response.data["event"]["title"], "Practice")
        self.assertEqual(response.data["check_in"]["status"], "ON_TIME")

        now.return_value = at(19, 0)
        response = self.client.post("/api/attendance/nfc-check-in", {"token": "tag-boathouse"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["action"], "CHECKED_OUT")
        self.assertEqual(response.data["check_in"]["hours_logged"], 1.0)

    @patch("attendance.services.check_in.timezone.now", return_value=at(15, 0))
    def test_too_early_error_body(self, _now):
        self.client.force_authenticate(self.athlete)

        response = self.client.post("/api/attendance/nfc-check-in", {"token": "tag-boathouse"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["code"], "TOO_EARLY")
        self.assertEqual(response.data["title"], "Practice")
        self.assertEqual(response.data["start_time"], "6:00 PM")

    def test_unknown_tag(self):
        self.client.force_authenticate(self.athlete)

        response = self.client.post("/api/attendance/nfc-check-in", {"token": "missing"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["code"], "UNRECOGNIZED_TAG")

    def test_rate_limited(self):
        self.client.force_authenticate(self.athlete)

        with patch.object(check_in_rate_limiter, "check", return_value=12.5):
            response = self.client.post("/api/attendance/nfc-check-in", {"token": "tag-boathouse"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertEqual(response.data["code"], "RATE_LIMITED")
        self.assertEqual(response.data["retry_after_seconds"], 12.5)

    @patch("attendance.services.check_in.timezone.now", return_value=at(15, 5))
    def test_ad_hoc_review_flow(self, _now):
        self.client.force_authenticate(self.athlete)
        payload = {"token": "tag-boathouse", "team_id": self.team.id, "start_time": "3:00 PM", "end_time": "5:00 PM"}
        response = self.client.post("/api/attendance/ad-hoc-check-in", payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        check_in_id = response.data["check_in"]["id"]

        response = self.client.post(f"/api/attendance/check-ins/{check_in_id}/approve")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.coach)
        response = self.client.get("/api/attendance/pending-ad-hoc", {"organization": self.org.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item["id"] for item in response.data["results"]], [check_in_id])

        response = self.client.post(f"/api/attendance/check-ins/{check_in_id}/approve")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["approved"])

    def test_ad_hoc_rejects_bad_time(self):
        self.client.force_authenticate(self.athlete)
        payload = {"token": "tag-boathouse", "team_id": self.team.id, "start_time": "whenever", "end_time": "5:00 PM"}

        response = self.client.post("/api/attendance/ad-hoc-check-in", payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("start_time", response.data)

    def test_deny_endpoint(self):
        event = self.create_event("Ad-Hoc Check-In", "3:00 PM", "5:00 PM", is_ad_hoc=True)
        check_in = CheckIn.objects.create(
            user=self.athlete, event=event, status=CheckIn.STATUS_ON_TIME, check_in_time=at(15, 0), is_ad_hoc=True, approved=False
        )
        self.client.force_authenticate(self.coach)

        response = self.client.post(f"/api/attendance/check-ins/{check_in.id}/deny")

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Event.objects.filter(pk=event.pk).exists())

    @patch("attendance.services.check_in.timezone.now", return_value=at(19, 0))
    def test_check_out_endpoint(self, _now):
        check_in = CheckIn.objects.create(user=self.athlete, event=self.practice, status=CheckIn.STATUS_ON_TIME, check_in_time=at(18, 0))
        self.client.force_authenticate(self.coach)
        response = self.client.post(f"/api/attendance/check-ins/{check_in.id}/check-out")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.athlete)
        response = self.client.post(f"/api/attendance/check-ins/{check_in.id}/check-out")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["hours_logged"], 1.0)

        response = self.client.post(f"/api/attendance/check-ins/{check_in.id}/check-out")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["code"], "ALREADY_CHECKED_OUT")

    @patch("attendance.services.absence_sweep.timezone.now", return_value=at(9, 0, date(2025, 9, 12)))
    def test_mark_absent_endpoint(self, _now):
        self.client.force_authenticate(self.athlete)
        response = self.client.post("/api/attendance/mark-absent", {"organization": self.org.id}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.coach)
        response = self.client.post("/api/attendance/mark-absent", {"organization": self.org.id}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {"created": 1})

    def test_mark_absent_unknown_organization(self):
        self.client.force_authenticate(self.coach)

        response = self.client.post("/api/attendance/mark-absent", {"organization": "abc"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    @patch("attendance.services.stats.timezone.now", return_value=at(21, 0))
    def test_stats_leaderboard_and_trends(self, _now):
        CheckIn.objects.create(
            user=self.athlete,
            event=self.practice,
            status=CheckIn.STATUS_ON_TIME,
            check_in_time=at(18, 0),
            check_out_time=at(19, 0),
            hours_logged=1.0,
        )
        self.client.force_authenticate(self.athlete)

        response = self.client.get("/api/attendance/stats", {"organization": self.org.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["attendance_percent"], 50.0)

        response = self.client.get("/api/attendance/leaderboard", {"organization": self.org.id, "team": self.team.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["results"][0]["username"], "athlete")
        self.assertEqual(response.data["results"][0]["rank"], 1)

        response = self.client.get("/api/attendance/trends", {"organization": self.org.id, "time_range": "WEEK"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["results"][0]["week_start"], "2025-09-08")

    def test_stats_for_other_user_requires_staff_or_guardian(self):
        teammate = User.objects.create_user(username="teammate", password="pwd12345")
        self.add_member(teammate, self.team)
        self.client.force_authenticate(teammate)

        response = self.client.get("/api/attendance/stats", {"organization": self.org.id, "user": self.athlete.id})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.coach)
        response = self.client.get("/api/attendance/stats", {"organization": self.org.id, "user": self.athlete.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["user_id"], self.athlete.id)

    def test_admin_check_in_and_delete_endpoints(self):
        payload = {
            "user_id": self.athlete.id,
            "event_id": self.practice.id,
            "status": "ON_TIME",
            "check_in_time": "2025-09-10T17:45:00-04:00",
            "check_out_time": "2025-09-10T20:00:00-04:00",
        }
        self.client.force_authenticate(self.athlete)
        response = self.client.post("/api/attendance/admin-check-in", payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.coach)
        response = self.client.post("/api/attendance/admin-check-in", payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["hours_logged"], 2.0)

        url = f"/api/attendance/events/{self.practice.id}/users/{self.athlete.id}/check-in"
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_404_NOT_FOUND)

    def test_edit_times_endpoint(self):
        check_in = CheckIn.objects.create(
            user=self.athlete,
            event=self.practice,
            status=CheckIn.STATUS_ON_TIME,
            check_in_time=at(18, 0),
            check_out_time=at(19, 0),
            hours_logged=1.0,
        )
        self.client.force_authenticate(self.coach)
        url = f"/api/attendance/check-ins/{check_in.id}/times"

        response = self.client.patch(url, {"check_out_time": "2025-09-10T19:30:00-04:00"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["hours_logged"], 1.5)

        response = self.client.patch(url, {"check_out_time": "2025-09-10T17:00:00-04:00"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "INVALID_CHECK_IN_TIMES")

        response = self.client.patch(url, {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_mark_user_absent_and_unchecked_endpoints(self):
        self.client.force_authenticate(self.coach)

        response = self.client.get(f"/api/attendance/events/{self.practice.id}/unchecked-athletes")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["results"], [{"id": self.athlete.id, "username": "athlete"}])

        response = self.client.post(f"/api/attendance/events/{self.practice.id}/users/{self.athlete.id}/absent")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "ABSENT")

        response = self.client.get(f"/api/attendance/events/{self.practice.id}/unchecked-athletes")
        self.assertEqual(response.data["count"], 0)

    @patch("attendance.services.manual.timezone.now", return_value=at(19, 0))
    def test_active_check_in_endpoint(self, _now):
        self.client.force_authenticate(self.athlete)
        response = self.client.get("/api/attendance/active-check-in", {"organization": self.org.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data["check_in"])

        check_in = CheckIn.objects.create(user=self.athlete, event=self.practice, status=CheckIn.STATUS_ON_TIME, check_in_time=at(18, 0))
        response = self.client.get("/api/attendance/active-check-in", {"organization": self.org.id})
        self.assertEqual(response.data["check_in"]["id"], check_in.id)
