"""
Review scheduling for opening moves.

A move is either in the Learning phase, climbing a short ladder of delays
measured in minutes, or in the Review phase, where its interval in days is
multiplied by an ease factor each time it is answered correctly on time.
A wrong answer sends it back to the bottom of the ladder.

Intervals are fuzzed with a caller-supplied seed in [0, 1) so that moves
learned together do not all fall due on the same day.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Union


# Learning ladder: minutes of delay for each step (0 = new, show immediately)
LEARNING_STEP_MINUTES = (0, 1, 10, 8 * 60, 16 * 60)
LAST_LEARNING_STEP = len(LEARNING_STEP_MINUTES) - 1

# Ease constants
MIN_EASE = 1.3              # Floor for the ease factor
DEFAULT_EASE = 2.5          # Ease given to a move graduating for the first time
EASE_PENALTY = 0.2          # Subtracted from ease on a wrong answer

# Review constants
GRADUATION_INTERVAL = 1     # Days until the first review after graduating
MAX_REVIEW_INTERVAL = 100   # Days

# Fuzz constants
MAX_MINUTES_FUZZ = 5        # Learning delays grow by at most this many minutes
MIN_FUZZED_DAYS = 2.5       # Review intervals below this are not fuzzed
DAYS_FUZZ_BASE = 1          # Day fuzz spread is BASE + RATIO * interval
DAYS_FUZZ_RATIO = 0.1


class SchedulingError(ValueError):
    """Base class for errors raised while scheduling a move."""


class InvalidArgumentError(SchedulingError):
    """A fuzz seed outside [0, 1) was supplied."""


class InvalidStateError(SchedulingError):
    """The move's scheduling fields do not describe a valid phase."""


class IntervalUnit(str, Enum):
    MINUTE = 'minute'
    DAY = 'day'


@dataclass(frozen=True)
class LearningState:
    step: int
    due_time: datetime
    ease: float | None = None  # Kept from a previous Review phase, if any


@dataclass(frozen=True)
class ReviewState:
    interval: float  # days
    ease: float
    due_date: datetime  # UTC midnight


MoveState = Union[LearningState, ReviewState]


@dataclass(frozen=True)
class IntervalReport:
    """How far away the next presentation is, as shown to the learner."""
    value: int
    unit: IntervalUnit
    increased: bool
    maxed: bool = False

    def as_dict(self):
        return {
            'value': self.value,
            'unit': self.unit.value,
            'increased': self.increased,
            'maxed': self.maxed,
        }


@dataclass(frozen=True)
class SchedulingResult:
    """New scheduling state for a move plus the summary reported upward."""
    state: MoveState
    report: IntervalReport

    @property
    def next_due(self) -> datetime:
        if isinstance(self.state, LearningState):
            return self.state.due_time
        return self.state.due_date

    def field_updates(self) -> dict:
        """
        Map the new state onto the persisted Move fields.

        Every scheduling field is included: the active phase's fields are
        set and the other phase's fields are cleared. Ease survives in both
        phases.
        """
        if isinstance(self.state, LearningState):
            return {
                'learning_due_time': self.state.due_time,
                'learning_step': self.state.step,
                'review_due_date': None,
                'review_interval': None,
                'review_ease': self.state.ease,
            }
        return {
            'learning_due_time': None,
            'learning_step': None,
            'review_due_date': self.state.due_date,
            'review_interval': self.state.interval,
            'review_ease': self.state.ease,
        }


def check_seed(seed: float) -> None:
    """Raise InvalidArgumentError unless 0 <= seed < 1."""
    if not 0 <= seed < 1:
        raise InvalidArgumentError(f"Fuzz seed must be in [0, 1), got {seed}")


def fuzz_minutes(base: float, seed: float) -> float:
    """
    Lengthen a learning delay by up to 5 minutes.

    The fuzz never shortens the delay and never more than doubles it:
    result = base + seed * min(5, base)
    """
    check_seed(seed)
    return base + seed * min(MAX_MINUTES_FUZZ, base)


def fuzz_days(base: float, seed: float) -> float:
    """
    Spread a review interval by up to 1 day + 10% in either direction.

    Intervals shorter than 2.5 days are returned unchanged. Otherwise the
    result is uniform over [base - spread, base + spread] as seed runs over
    [0, 1), with spread = 1 + 0.1 * base.
    """
    check_seed(seed)
    if base < MIN_FUZZED_DAYS:
        return base
    spread = DAYS_FUZZ_BASE + DAYS_FUZZ_RATIO * base
    return base + (seed * 2 - 1) * spread


def start_of_day(moment: datetime) -> datetime:
    """Return UTC midnight of the moment's UTC date."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).replace(
        hour=0, minute=0, second=0, microsecond=0
    )


def date_in_days(now: datetime, days: float) -> datetime:
    return start_of_day(now + timedelta(days=days))


def review_is_due(move, now: datetime) -> bool:
    """Default due predicate: the review date has arrived."""
    return move.review_due_date is not None and move.review_due_date <= now


def read_state(move) -> MoveState:
    """
    Build the tagged phase state from a move's scheduling attributes.

    Raises InvalidStateError if neither or both phases are set, or if the
    Review fields are incomplete or the interval is not positive.
    """
    in_learning = move.learning_due_time is not None
    in_review = move.review_due_date is not None

    if in_learning and in_review:
        raise InvalidStateError(
            f"Move {getattr(move, 'pk', None)} is in both Learning and Review"
        )
    if in_learning:
        return LearningState(
            step=move.learning_step,
            due_time=move.learning_due_time,
            ease=move.review_ease,
        )
    if in_review:
        if move.review_interval is None or move.review_ease is None:
            raise InvalidStateError(
                f"Move {getattr(move, 'pk', None)} is in Review without interval or ease"
            )
        if move.review_interval <= 0:
            raise InvalidStateError(
                f"Move {getattr(move, 'pk', None)} has non-positive review interval "
                f"{move.review_interval}"
            )
        return ReviewState(
            interval=move.review_interval,
            ease=move.review_ease,
            due_date=move.review_due_date,
        )
    raise InvalidStateError(
        f"Move {getattr(move, 'pk', None)} is in neither Learning nor Review"
    )


def reset(ease: float | None, now: datetime) -> SchedulingResult:
    """Send a move back to the first learning step, due immediately."""
    new_ease = max(MIN_EASE, ease - EASE_PENALTY) if ease else None
    return SchedulingResult(
        state=LearningState(step=0, due_time=now, ease=new_ease),
        report=IntervalReport(value=0, unit=IntervalUnit.MINUTE, increased=False),
    )


def promote_learning(state: LearningState, now: datetime, seed: float) -> SchedulingResult:
    """Advance a correctly answered Learning move one step, or graduate it."""
    step = state.step
    if isinstance(step, int) and 0 <= step < LAST_LEARNING_STEP:
        new_step = step + 1
        delay = math.ceil(fuzz_minutes(LEARNING_STEP_MINUTES[new_step], seed))
        return SchedulingResult(
            state=LearningState(
                step=new_step,
                due_time=now + timedelta(minutes=delay),
                ease=state.ease,
            ),
            report=IntervalReport(value=delay, unit=IntervalUnit.MINUTE, increased=True),
        )

    if step == LAST_LEARNING_STEP:
        return SchedulingResult(
            state=ReviewState(
                interval=GRADUATION_INTERVAL,
                ease=state.ease or DEFAULT_EASE,
                due_date=date_in_days(now, GRADUATION_INTERVAL),
            ),
            report=IntervalReport(
                value=GRADUATION_INTERVAL, unit=IntervalUnit.DAY, increased=True
            ),
        )

    raise InvalidStateError(f"Invalid learning step: {step}")


def advance_review(state: ReviewState, due: bool, now: datetime, seed: float) -> SchedulingResult:
    """
    Reschedule a correctly answered Review move.

    A due move has its interval multiplied by its ease, capped at
    MAX_REVIEW_INTERVAL. A move answered before it was due keeps its
    interval and only gets a freshly fuzzed due date.
    """
    interval = state.interval
    maxed = False
    if due:
        interval = interval * state.ease
        if interval > MAX_REVIEW_INTERVAL:
            interval = MAX_REVIEW_INTERVAL
            maxed = True

    fuzzed = math.ceil(fuzz_days(interval, seed))
    return SchedulingResult(
        state=ReviewState(
            interval=interval,
            ease=state.ease,
            due_date=date_in_days(now, fuzzed),
        ),
        report=IntervalReport(
            value=fuzzed, unit=IntervalUnit.DAY, increased=due, maxed=maxed
        ),
    )


def apply(
    move,
    correct: bool,
    now: datetime,
    seed: float,
    is_due: Callable[[object, datetime], bool] = review_is_due,
) -> SchedulingResult:
    """
    Compute a move's next scheduling state after one attempt.

    This is the main entry point. It reads nothing but its arguments and
    changes nothing: the caller persists the result.

    Args:
        move: Object with learning_due_time, learning_step, review_due_date,
            review_interval and review_ease attributes
        correct: Whether the learner played the right move
        now: Time of the attempt
        seed: Fuzz seed in [0, 1)
        is_due: Predicate telling whether a Review move is due at now

    Returns:
        SchedulingResult with the new state and the interval report

    Raises:
        InvalidArgumentError: seed outside [0, 1)
        InvalidStateError: corrupted learning step or phase fields
    """
    check_seed(seed)

    if not correct:
        # Wrong answers reset regardless of phase, which also repairs
        # moves with corrupted scheduling fields.
        return reset(move.review_ease, now)

    state = read_state(move)
    if isinstance(state, LearningState):
        # Learning moves are promoted whether or not they were due
        return promote_learning(state, now, seed)
    return advance_review(state, is_due(move, now), now, seed)
