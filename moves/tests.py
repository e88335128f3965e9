"""
Unit tests for the opening trainer.

Test organization:
- Fuzz*Tests: Pure function tests for interval fuzzing
- Scheduler*Tests: Pure function tests for the Learning/Review state machine
- Model tests for Move, StudyHistory, LearnerProfile
- Service, view and management command tests
"""

import json
from datetime import datetime, timedelta, timezone as dt_timezone
from io import StringIO
from types import SimpleNamespace

from django.contrib.auth.models import User
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import Client, TestCase
from django.urls import reverse
from django.utils import timezone

from . import scheduler
from .models import LearnerProfile, Move, StudyHistory
from .services import StudyError, record_attempt


NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=dt_timezone.utc)
SEEDS = [0, 0.1, 0.25, 0.5, 0.75, 0.9, 0.999]


def make_move(**fields):
    """Plain object with scheduling attributes, for the pure scheduler tests."""
    values = {
        'learning_due_time': None,
        'learning_step': None,
        'review_due_date': None,
        'review_interval': None,
        'review_ease': None,
    }
    values.update(fields)
    return SimpleNamespace(**values)


def learning_move(step, ease=None):
    return make_move(learning_due_time=NOW, learning_step=step, review_ease=ease)


def review_move(interval, ease, due_date):
    return make_move(review_due_date=due_date, review_interval=interval, review_ease=ease)


# =============================================================================
# Fuzz Tests
# =============================================================================

class FuzzMinutesTests(TestCase):
    """Tests for learning delay fuzzing."""

    def test_zero_seed_leaves_delay_unchanged(self):
        self.assertEqual(scheduler.fuzz_minutes(10, 0), 10)

    def test_adds_at_most_five_minutes(self):
        """Large delays gain seed * 5 minutes."""
        self.assertAlmostEqual(scheduler.fuzz_minutes(480, 0.5), 482.5)

    def test_never_more_than_doubles_short_delay(self):
        """A 1 minute delay gains at most 1 minute."""
        self.assertAlmostEqual(scheduler.fuzz_minutes(1, 0.5), 1.5)

    def test_zero_delay_stays_zero(self):
        for seed in SEEDS:
            self.assertEqual(scheduler.fuzz_minutes(0, seed), 0)

    def test_bounds(self):
        """Fuzzed delay is within [base, base + min(5, base)]."""
        for base in [0, 1, 3, 10, 480, 960]:
            for seed in SEEDS:
                fuzzed = scheduler.fuzz_minutes(base, seed)
                self.assertGreaterEqual(fuzzed, base)
                self.assertLessEqual(fuzzed, base + min(5, base))

    def test_invalid_seed_raises_error(self):
        for seed in [-0.1, 1, 1.5]:
            with self.assertRaises(scheduler.InvalidArgumentError):
                scheduler.fuzz_minutes(10, seed)


class FuzzDaysTests(TestCase):
    """Tests for review interval fuzzing."""

    def test_short_intervals_not_fuzzed(self):
        """Intervals below 2.5 days come back unchanged for every seed."""
        for base in [0, 1, 2, 2.49]:
            for seed in SEEDS:
                self.assertEqual(scheduler.fuzz_days(base, seed), base)

    def test_spread_is_one_day_plus_ten_percent(self):
        # spread for 10 days = 1 + 1 = 2
        self.assertAlmostEqual(scheduler.fuzz_days(10, 0), 8)
        self.assertAlmostEqual(scheduler.fuzz_days(10, 0.5), 10)
        self.assertAlmostEqual(scheduler.fuzz_days(10, 0.75), 11)

    def test_bounds(self):
        for base in [2.5, 5, 20, 100]:
            spread = 1 + 0.1 * base
            for seed in SEEDS:
                fuzzed = scheduler.fuzz_days(base, seed)
                self.assertGreaterEqual(fuzzed, base - spread)
                self.assertLessEqual(fuzzed, base + spread)

    def test_monotonic_in_seed(self):
        values = [scheduler.fuzz_days(20, seed) for seed in SEEDS]
        self.assertEqual(values, sorted(values))
        self.assertEqual(len(set(values)), len(values))

    def test_invalid_seed_raises_error(self):
        """Seed is checked even when the interval is too short to fuzz."""
        with self.assertRaises(scheduler.InvalidArgumentError):
            scheduler.fuzz_days(1, 1)
        with self.assertRaises(scheduler.InvalidArgumentError):
            scheduler.fuzz_days(10, -0.5)

    def test_invalid_argument_is_value_error(self):
        with self.assertRaises(ValueError):
            scheduler.fuzz_days(10, 2)


class StartOfDayTests(TestCase):

    def test_truncates_to_utc_midnight(self):
        result = scheduler.start_of_day(datetime(2025, 3, 4, 17, 45, 12, tzinfo=dt_timezone.utc))
        self.assertEqual(result, datetime(2025, 3, 4, tzinfo=dt_timezone.utc))

    def test_uses_utc_date(self):
        """01:30 at UTC+2 is 23:30 UTC on the previous day."""
        plus_two = dt_timezone(timedelta(hours=2))
        result = scheduler.start_of_day(datetime(2025, 3, 4, 1, 30, tzinfo=plus_two))
        self.assertEqual(result, datetime(2025, 3, 3, tzinfo=dt_timezone.utc))


# =============================================================================
# Scheduler Tests
# =============================================================================

class SchedulerIncorrectTests(TestCase):
    """Wrong answers reset the move to the first learning step."""

    def test_review_move_reset(self):
        move = review_move(interval=10, ease=2.5, due_date=NOW)
        result = scheduler.apply(move, False, NOW, 0.5)

        self.assertIsInstance(result.state, scheduler.LearningState)
        self.assertEqual(result.state.step, 0)
        self.assertEqual(result.state.due_time, NOW)
        self.assertAlmostEqual(result.state.ease, 2.3)
        updates = result.field_updates()
        self.assertEqual(updates['learning_step'], 0)
        self.assertEqual(updates['learning_due_time'], NOW)
        self.assertIsNone(updates['review_due_date'])
        self.assertIsNone(updates['review_interval'])

    def test_ease_floor(self):
        result = scheduler.apply(review_move(10, 1.4, NOW), False, NOW, 0.5)
        self.assertAlmostEqual(result.state.ease, scheduler.MIN_EASE)

        result = scheduler.apply(review_move(10, 1.3, NOW), False, NOW, 0.5)
        self.assertAlmostEqual(result.state.ease, scheduler.MIN_EASE)

    def test_missing_ease_stays_unset(self):
        result = scheduler.apply(learning_move(3), False, NOW, 0.5)
        self.assertIsNone(result.state.ease)
        self.assertIsNone(result.field_updates()['review_ease'])

    def test_report(self):
        result = scheduler.apply(learning_move(2), False, NOW, 0.5)
        self.assertEqual(
            result.report.as_dict(),
            {'value': 0, 'unit': 'minute', 'increased': False, 'maxed': False}
        )

    def test_corrupted_step_is_reset(self):
        """A wrong answer repairs a move whose learning step is out of range."""
        result = scheduler.apply(learning_move(7), False, NOW, 0.5)
        self.assertEqual(result.state.step, 0)


class SchedulerLearningTests(TestCase):
    """Correct answers climb the learning ladder."""

    def test_first_step(self):
        """Step 0 -> 1: 1 minute + 0.5 fuzz, rounded up to 2."""
        result = scheduler.apply(learning_move(0), True, NOW, 0.5)

        self.assertEqual(result.state.step, 1)
        self.assertEqual(result.state.due_time, NOW + timedelta(minutes=2))
        self.assertEqual(
            result.report.as_dict(),
            {'value': 2, 'unit': 'minute', 'increased': True, 'maxed': False}
        )

    def test_delay_rounded_up(self):
        """Step 1 -> 2: 10 minutes + 2.5 fuzz = 13 minutes."""
        result = scheduler.apply(learning_move(1), True, NOW, 0.5)
        self.assertEqual(result.state.step, 2)
        self.assertEqual(result.report.value, 13)

    def test_zero_seed_uses_nominal_delay(self):
        result = scheduler.apply(learning_move(2), True, NOW, 0)
        self.assertEqual(result.state.step, 3)
        self.assertEqual(result.state.due_time, NOW + timedelta(minutes=480))

    def test_last_step_delay(self):
        result = scheduler.apply(learning_move(3), True, NOW, 0.999)
        self.assertEqual(result.state.step, 4)
        self.assertEqual(result.report.value, 965)

    def test_ease_kept_while_learning(self):
        result = scheduler.apply(learning_move(1, ease=1.7), True, NOW, 0.5)
        self.assertEqual(result.field_updates()['review_ease'], 1.7)

    def test_graduation(self):
        """Step 4 answered correctly moves to Review with a 1 day interval."""
        result = scheduler.apply(learning_move(4), True, NOW, 0.5)

        self.assertIsInstance(result.state, scheduler.ReviewState)
        self.assertEqual(result.state.interval, 1)
        self.assertEqual(result.state.ease, scheduler.DEFAULT_EASE)
        self.assertEqual(result.state.due_date, datetime(2025, 1, 2, tzinfo=dt_timezone.utc))
        self.assertEqual(
            result.report.as_dict(),
            {'value': 1, 'unit': 'day', 'increased': True, 'maxed': False}
        )
        updates = result.field_updates()
        self.assertIsNone(updates['learning_due_time'])
        self.assertIsNone(updates['learning_step'])

    def test_graduation_keeps_existing_ease(self):
        result = scheduler.apply(learning_move(4, ease=1.9), True, NOW, 0.5)
        self.assertEqual(result.state.ease, 1.9)

    def test_invalid_step_raises_error(self):
        for step in [7, 5, -1, None]:
            with self.assertRaises(scheduler.InvalidStateError, msg=f"step {step}"):
                scheduler.apply(learning_move(step), True, NOW, 0.5)


class SchedulerReviewTests(TestCase):
    """Correct answers in the Review phase."""

    def test_due_interval_grows_by_ease(self):
        """Interval 10, ease 2: grows to 20, fuzzed by up to 3 days."""
        move = review_move(interval=10, ease=2, due_date=NOW - timedelta(hours=12))
        for seed in SEEDS:
            result = scheduler.apply(move, True, NOW, seed)

            self.assertEqual(result.state.interval, 20)
            self.assertEqual(result.state.ease, 2)
            self.assertGreaterEqual(result.report.value, 17)
            self.assertLessEqual(result.report.value, 23)
            self.assertTrue(result.report.increased)
            self.assertFalse(result.report.maxed)
            self.assertEqual(
                result.state.due_date,
                scheduler.start_of_day(NOW + timedelta(days=result.report.value))
            )

    def test_due_lowest_seed(self):
        move = review_move(interval=10, ease=2, due_date=NOW)
        result = scheduler.apply(move, True, NOW, 0)
        self.assertEqual(result.report.value, 17)
        self.assertEqual(result.state.due_date, datetime(2025, 1, 18, tzinfo=dt_timezone.utc))

    def test_interval_clamped_to_maximum(self):
        move = review_move(interval=60, ease=2.5, due_date=NOW)
        result = scheduler.apply(move, True, NOW, 0.5)

        self.assertEqual(result.state.interval, scheduler.MAX_REVIEW_INTERVAL)
        self.assertEqual(result.report.value, 100)
        self.assertTrue(result.report.maxed)
        self.assertTrue(result.report.increased)

    def test_short_interval_not_fuzzed(self):
        """Interval 1 * ease 2 = 2 days, below the fuzz threshold."""
        move = review_move(interval=1, ease=2, due_date=NOW)
        result = scheduler.apply(move, True, NOW, 0.999)
        self.assertEqual(result.report.value, 2)
        self.assertEqual(result.state.due_date, datetime(2025, 1, 3, tzinfo=dt_timezone.utc))

    def test_not_due_keeps_interval(self):
        """Answering early re-fuzzes the due date from the current interval."""
        move = review_move(interval=10, ease=2, due_date=NOW + timedelta(days=3))
        result = scheduler.apply(move, True, NOW, 0.75)

        self.assertEqual(result.state.interval, 10)
        self.assertEqual(result.state.ease, 2)
        self.assertEqual(result.report.value, 11)
        self.assertFalse(result.report.increased)
        self.assertFalse(result.report.maxed)
        self.assertEqual(result.state.due_date, datetime(2025, 1, 12, tzinfo=dt_timezone.utc))

    def test_due_predicate_is_injectable(self):
        move = review_move(interval=10, ease=2, due_date=NOW + timedelta(days=3))
        result = scheduler.apply(move, True, NOW, 0.5, is_due=lambda m, now: True)
        self.assertEqual(result.state.interval, 20)
        self.assertTrue(result.report.increased)

    def test_missing_ease_raises_error(self):
        move = review_move(interval=10, ease=None, due_date=NOW)
        with self.assertRaises(scheduler.InvalidStateError):
            scheduler.apply(move, True, NOW, 0.5)

    def test_non_positive_interval_raises_error(self):
        """A zero interval would leave the move due forever."""
        for interval in [0, 0.0, -3]:
            move = review_move(interval=interval, ease=2.5, due_date=NOW)
            with self.assertRaises(scheduler.InvalidStateError, msg=f"interval {interval}"):
                scheduler.apply(move, True, NOW, 0.5)

    def test_non_positive_interval_reset_on_wrong_answer(self):
        move = review_move(interval=0, ease=2.5, due_date=NOW)
        result = scheduler.apply(move, False, NOW, 0.5)
        self.assertEqual(result.state.step, 0)


class SchedulerApplyTests(TestCase):
    """Tests for argument and phase validation in apply()."""

    def test_invalid_seed_raises_error(self):
        for correct in [True, False]:
            with self.assertRaises(scheduler.InvalidArgumentError):
                scheduler.apply(learning_move(0), correct, NOW, 1.0)

    def test_both_phases_raises_error(self):
        move = make_move(
            learning_due_time=NOW, learning_step=1,
            review_due_date=NOW, review_interval=3, review_ease=2.5,
        )
        with self.assertRaises(scheduler.InvalidStateError):
            scheduler.apply(move, True, NOW, 0.5)

    def test_no_phase_raises_error(self):
        with self.assertRaises(scheduler.InvalidStateError):
            scheduler.apply(make_move(), True, NOW, 0.5)

    def test_deterministic(self):
        move = review_move(interval=10, ease=2.5, due_date=NOW)
        first = scheduler.apply(move, True, NOW, 0.37)
        second = scheduler.apply(move, True, NOW, 0.37)
        self.assertEqual(first, second)

    def test_full_progression(self):
        """Walk a move up the ladder into Review."""
        move = learning_move(0)
        now = NOW
        for expected_step in [1, 2, 3, 4]:
            result = scheduler.apply(move, True, now, 0.5)
            self.assertEqual(result.state.step, expected_step)
            move = make_move(**result.field_updates())
            now = result.next_due

        result = scheduler.apply(move, True, now, 0.5)
        self.assertIsInstance(result.state, scheduler.ReviewState)

        # First review: 1 * 2.5 = 2.5 days, seed 0.5 is the middle of the spread
        move = make_move(**result.field_updates())
        result = scheduler.apply(move, True, result.next_due, 0.5)
        self.assertEqual(result.state.interval, 2.5)
        self.assertEqual(result.report.value, 3)


# =============================================================================
# Model Tests
# =============================================================================

class MoveModelTests(TestCase):
    """Tests for the Move model."""

    def setUp(self):
        self.user = User.objects.create_user(
            username='testuser', password='testpass123'
        )
        self.move = Move.objects.create(owner=self.user, move_san='e4')

    def test_move_creation_defaults(self):
        """New moves start in Learning at step 0, due immediately."""
        self.assertEqual(self.move.learning_step, 0)
        self.assertIsNotNone(self.move.learning_due_time)
        self.assertIsNone(self.move.review_due_date)
        self.assertEqual(self.move.phase, Move.Phase.LEARNING)
        self.assertTrue(self.move.is_due())

    def test_review_move_is_due(self):
        self.move.learning_due_time = None
        self.move.learning_step = None
        self.move.review_due_date = NOW
        self.move.review_interval = 1
        self.move.review_ease = 2.5
        self.assertEqual(self.move.phase, Move.Phase.REVIEW)
        self.assertTrue(self.move.is_due(NOW))
        self.assertFalse(self.move.is_due(NOW - timedelta(minutes=1)))

    def test_study_saves_fields(self):
        self.move.study(True, 0.5, now=NOW)

        self.move.refresh_from_db()
        self.assertEqual(self.move.learning_step, 1)
        self.assertEqual(self.move.learning_due_time, NOW + timedelta(minutes=2))

    def test_study_creates_history(self):
        self.move.study(True, 0.5, guess='e4', now=NOW)

        history = StudyHistory.objects.get(move=self.move)
        self.assertEqual(history.owner, self.user)
        self.assertIsNone(history.incorrect_guess_san)
        self.assertTrue(history.correct)

    def test_wrong_study_records_guess(self):
        self.move.study(False, 0.5, guess='d4', now=NOW)

        history = StudyHistory.objects.get(move=self.move)
        self.assertEqual(history.incorrect_guess_san, 'd4')
        self.assertFalse(history.correct)

    def test_graduation_persists_review_fields(self):
        self.move.learning_step = 4
        self.move.save()
        self.move.study(True, 0.5, now=NOW)

        self.move.refresh_from_db()
        self.assertIsNone(self.move.learning_due_time)
        self.assertIsNone(self.move.learning_step)
        self.assertEqual(self.move.review_interval, 1)
        self.assertEqual(self.move.review_ease, 2.5)
        self.assertEqual(self.move.review_due_date, datetime(2025, 1, 2, tzinfo=dt_timezone.utc))

    def make_review(self, due_date):
        self.move.learning_due_time = None
        self.move.learning_step = None
        self.move.review_due_date = due_date
        self.move.review_interval = 10
        self.move.review_ease = 2
        self.move.save()

    def test_study_due_review_grows_interval(self):
        self.make_review(NOW - timedelta(days=1))
        result = self.move.study(True, 0.5, now=NOW)

        self.assertTrue(result.report.increased)
        self.move.refresh_from_db()
        self.assertEqual(self.move.review_interval, 20)

    def test_study_review_not_due_keeps_interval(self):
        self.make_review(NOW + timedelta(days=2))
        result = self.move.study(True, 0.5, now=NOW)

        self.assertFalse(result.report.increased)
        self.move.refresh_from_db()
        self.assertEqual(self.move.review_interval, 10)
        self.assertEqual(self.move.review_due_date, datetime(2025, 1, 11, tzinfo=dt_timezone.utc))

    def test_corrupted_move_not_modified(self):
        self.move.learning_step = 7
        self.move.save()
        due_time = self.move.learning_due_time

        with self.assertRaises(scheduler.InvalidStateError):
            self.move.study(True, 0.5, now=NOW)

        self.move.refresh_from_db()
        self.assertEqual(self.move.learning_step, 7)
        self.assertEqual(self.move.learning_due_time, due_time)
        self.assertFalse(StudyHistory.objects.exists())


class MoveQuerySetTests(TestCase):
    """Tests for selecting due moves."""

    def setUp(self):
        self.user = User.objects.create_user(username='testuser', password='testpass123')
        now = timezone.now()
        self.learning_due = Move.objects.create(
            owner=self.user, move_san='e4', learning_due_time=now - timedelta(minutes=5)
        )
        Move.objects.create(
            owner=self.user, move_san='Nf3', learning_due_time=now + timedelta(minutes=5)
        )
        self.review_due = Move.objects.create(
            owner=self.user, move_san='Bb5', learning_due_time=None, learning_step=None,
            review_due_date=now - timedelta(days=1), review_interval=3, review_ease=2.5,
        )
        Move.objects.create(
            owner=self.user, move_san='O-O', learning_due_time=None, learning_step=None,
            review_due_date=now + timedelta(days=1), review_interval=3, review_ease=2.5,
        )
        Move.objects.create(owner=self.user, move_san='e5', is_own_move=False)

    def test_due_moves(self):
        due = set(Move.objects.due())
        self.assertEqual(due, {self.learning_due, self.review_due})

    def test_due_excludes_other_users(self):
        other = User.objects.create_user(username='other', password='testpass123')
        Move.objects.create(owner=other, move_san='d4')
        self.assertEqual(Move.objects.filter(owner=self.user).due().count(), 2)


class LearnerProfileModelTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='new_user')
        self.profile = LearnerProfile.objects.create(
            user=self.user,
            lichess_username='new_user',
            lichess_access_token='access_token',
            lichess_access_token_fetched_at=NOW,
            lichess_access_token_expires_in=3600,
        )

    def test_str(self):
        self.assertEqual(str(self.profile), 'Profile for new_user')



# =============================================================================
# Service Tests
# =============================================================================

class RecordAttemptTests(TestCase):
    """Tests for the study service."""

    def setUp(self):
        self.user = User.objects.create_user(username='testuser', password='testpass123')
        self.other_user = User.objects.create_user(username='other', password='testpass123')
        self.move = Move.objects.create(owner=self.user, move_san='e4')

    def test_success(self):
        outcome = record_attempt(self.user, self.move.pk, True, seed=0.5, now=NOW)

        self.assertTrue(outcome.success)
        self.assertIsNone(outcome.error)
        self.assertEqual(outcome.report.value, 2)
        self.assertEqual(StudyHistory.objects.filter(move=self.move).count(), 1)

    def test_random_seed_when_not_given(self):
        outcome = record_attempt(self.user, self.move.pk, True, now=NOW)
        # Step 1 is 1 minute, fuzzed up to 2
        self.assertIn(outcome.report.value, [1, 2])

    def test_missing_move(self):
        outcome = record_attempt(self.user, 99999, True, seed=0.5)
        self.assertFalse(outcome.success)
        self.assertEqual(outcome.error, StudyError.MOVE_NOT_FOUND)

    def test_other_users_move(self):
        outcome = record_attempt(self.other_user, self.move.pk, True, seed=0.5)

        self.assertEqual(outcome.error, StudyError.NOT_OWNER)
        self.assertEqual(outcome.message, "can't practice move belonging to another user")
        self.assertFalse(StudyHistory.objects.exists())
        self.move.refresh_from_db()
        self.assertEqual(self.move.learning_step, 0)

    def test_opponent_move(self):
        reply = Move.objects.create(owner=self.user, move_san='e5', is_own_move=False)
        outcome = record_attempt(self.user, reply.pk, True, seed=0.5)
        self.assertEqual(outcome.error, StudyError.OPPONENT_MOVE)
        self.assertFalse(StudyHistory.objects.exists())

    def test_invalid_seed(self):
        outcome = record_attempt(self.user, self.move.pk, True, seed=1.5)
        self.assertEqual(outcome.error, StudyError.INVALID_ARGUMENT)
        self.assertFalse(StudyHistory.objects.exists())

    def test_invalid_state(self):
        self.move.learning_step = 7
        self.move.save()
        with self.assertLogs('moves.services', level='ERROR'):
            outcome = record_attempt(self.user, self.move.pk, True, seed=0.5)

        self.assertEqual(outcome.error, StudyError.INVALID_STATE)
        self.move.refresh_from_db()
        self.assertEqual(self.move.learning_step, 7)

    def test_wrong_answer_logged(self):
        with self.assertLogs('moves.services', level='INFO') as logs:
            record_attempt(self.user, self.move.pk, False, guess='d4', seed=0.5)
        self.assertIn('move e4 wrong', logs.output[0])
        self.assertEqual(StudyHistory.objects.get().incorrect_guess_san, 'd4')


# =============================================================================
# View Tests
# =============================================================================

class StudyMoveViewTests(TestCase):
    """Tests for the study API."""

    def setUp(self):
        self.client = Client()
        self.user = User.objects.create_user(username='testuser', password='testpass123')
        self.move = Move.objects.create(owner=self.user, move_san='e4')
        self.client.login(username='testuser', password='testpass123')

    def post(self, payload):
        return self.client.post(
            reverse('study_move'),
            data=json.dumps(payload),
            content_type='application/json'
        )

    def test_correct_attempt(self):
        response = self.post({
            'move_id': self.move.pk, 'correct': True, 'guess': 'e4', 'line_study_id': 0.5
        })
        self.assertEqual(response.status_code, 200)
        data = json.loads(response.content)
        self.assertTrue(data['success'])
        self.assertEqual(
            data['interval'],
            {'value': 2, 'unit': 'minute', 'increased': True, 'maxed': False}
        )

    def test_wrong_attempt(self):
        response = self.post({
            'move_id': self.move.pk, 'correct': False, 'guess': 'd4', 'line_study_id': 0.5
        })
        data = json.loads(response.content)
        self.assertEqual(data['interval']['value'], 0)
        self.assertFalse(data['interval']['increased'])
        self.assertEqual(StudyHistory.objects.get().incorrect_guess_san, 'd4')

    def test_not_logged_in(self):
        self.client.logout()
        response = self.post({'move_id': self.move.pk, 'correct': True})
        data = json.loads(response.content)
        self.assertEqual(data, {'success': False, 'message': 'not logged in'})

    def test_other_users_move(self):
        other = User.objects.create_user(username='other', password='testpass123')
        other_move = Move.objects.create(owner=other, move_san='d4')
        response = self.post({'move_id': other_move.pk, 'correct': True, 'line_study_id': 0.5})

        data = json.loads(response.content)
        self.assertFalse(data['success'])
        self.assertEqual(data['code'], 'not_owner')

    def test_invalid_seed(self):
        response = self.post({'move_id': self.move.pk, 'correct': True, 'line_study_id': 3})
        data = json.loads(response.content)
        self.assertFalse(data['success'])
        self.assertEqual(data['code'], 'invalid_argument')

    def test_invalid_json(self):
        response = self.client.post(
            reverse('study_move'),
            data='not json',
            content_type='application/json'
        )
        self.assertEqual(response.status_code, 400)

    def test_missing_fields(self):
        response = self.post({'correct': True})
        self.assertEqual(response.status_code, 400)

    def test_non_boolean_correct(self):
        response = self.post({'move_id': self.move.pk, 'correct': 'yes'})
        self.assertEqual(response.status_code, 400)

    def test_boolean_move_id_rejected(self):
        """JSON true is not move 1."""
        response = self.post({'move_id': True, 'correct': True, 'line_study_id': 0.5})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(json.loads(response.content), {'error': 'Invalid request'})
        self.assertFalse(StudyHistory.objects.exists())

    def test_fractional_move_id_rejected(self):
        response = self.post({'move_id': self.move.pk + 0.9, 'correct': True, 'line_study_id': 0.5})
        self.assertEqual(response.status_code, 400)
        self.move.refresh_from_db()
        self.assertEqual(self.move.learning_step, 0)
        self.assertFalse(StudyHistory.objects.exists())

    def test_string_move_id_rejected(self):
        response = self.post({'move_id': str(self.move.pk), 'correct': True})
        self.assertEqual(response.status_code, 400)

    def test_non_string_guess_rejected(self):
        response = self.post({
            'move_id': self.move.pk, 'correct': False, 'guess': {'x': [1]}, 'line_study_id': 0.5
        })
        self.assertEqual(response.status_code, 400)
        self.assertFalse(StudyHistory.objects.exists())

    def test_overlong_guess_rejected(self):
        response = self.post({
            'move_id': self.move.pk, 'correct': False, 'guess': 'N' * 17, 'line_study_id': 0.5
        })
        self.assertEqual(response.status_code, 400)
        self.assertFalse(StudyHistory.objects.exists())

    def test_missing_guess_allowed(self):
        response = self.post({'move_id': self.move.pk, 'correct': False, 'line_study_id': 0.5})
        self.assertTrue(json.loads(response.content)['success'])
        self.assertIsNone(StudyHistory.objects.get().incorrect_guess_san)

    def test_get_not_allowed(self):
        response = self.client.get(reverse('study_move'))
        self.assertEqual(response.status_code, 405)


class DueMovesViewTests(TestCase):
    """Tests for the due moves listing."""

    def setUp(self):
        self.client = Client()
        self.user = User.objects.create_user(username='testuser', password='testpass123')
        self.client.login(username='testuser', password='testpass123')

    def test_lists_own_due_moves(self):
        move = Move.objects.create(owner=self.user, move_san='e4')
        Move.objects.create(
            owner=self.user, move_san='Nf3',
            learning_due_time=timezone.now() + timedelta(hours=1)
        )
        other = User.objects.create_user(username='other', password='testpass123')
        Move.objects.create(owner=other, move_san='d4')

        response = self.client.get(reverse('due_moves'))
        data = json.loads(response.content)
        self.assertTrue(data['success'])
        self.assertEqual(data['moves'], [{'id': move.pk, 'move_san': 'e4', 'phase': 'learning'}])

    def test_not_logged_in(self):
        self.client.logout()
        response = self.client.get(reverse('due_moves'))
        self.assertFalse(json.loads(response.content)['success'])


# =============================================================================
# Management Command Tests
# =============================================================================

class AddLearnerCommandTests(TestCase):

    def test_creates_user_and_profile(self):
        out = StringIO()
        call_command('add_learner', 'new_user', '--access-token', 'access_token', stdout=out)

        user = User.objects.get(username='new_user')
        profile = user.learner_profile
        self.assertEqual(profile.lichess_username, 'new_user')
        self.assertEqual(profile.lichess_access_token, 'access_token')
        self.assertEqual(profile.lichess_access_token_expires_in, 3600)
        self.assertIsNotNone(profile.lichess_access_token_fetched_at)
        self.assertIsNotNone(profile.last_repertoire_update_check)
        self.assertFalse(profile.study_display_line_source)
        self.assertIn('User created: new_user', out.getvalue())

    def test_display_line_source_flag(self):
        call_command('add_learner', 'new_user', '--display-line-source', stdout=StringIO())
        profile = LearnerProfile.objects.get(lichess_username='new_user')
        self.assertTrue(profile.study_display_line_source)
        self.assertIsNone(profile.lichess_access_token_fetched_at)

    def test_existing_user_raises_error(self):
        User.objects.create_user(username='new_user')
        with self.assertRaises(CommandError):
            call_command('add_learner', 'new_user', stdout=StringIO())
        self.assertFalse(LearnerProfile.objects.exists())
