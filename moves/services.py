"""
Study attempts: the layer between the HTTP views and the scheduler.

Loads the move, checks that the learner may study it, applies the
scheduler and persists the result together with one history entry.
Failures come back as StudyOutcome values instead of exceptions so that
views can report them to the learner.
"""

import logging
import random
from dataclasses import dataclass
from enum import Enum

from django.db import transaction
from django.utils import timezone

from . import scheduler
from .models import Move

logger = logging.getLogger(__name__)


class StudyError(str, Enum):
    # Data layer
    MOVE_NOT_FOUND = 'move_not_found'
    # Access checks made before scheduling
    NOT_OWNER = 'not_owner'
    OPPONENT_MOVE = 'opponent_move'
    # Scheduler domain errors
    INVALID_STATE = 'invalid_state'
    INVALID_ARGUMENT = 'invalid_argument'


ERROR_MESSAGES = {
    StudyError.MOVE_NOT_FOUND: "move not found",
    StudyError.NOT_OWNER: "can't practice move belonging to another user",
    StudyError.OPPONENT_MOVE: "can't practice opponent's move",
    StudyError.INVALID_STATE: "move has invalid scheduling state",
    StudyError.INVALID_ARGUMENT: "invalid study request",
}


@dataclass(frozen=True)
class StudyOutcome:
    report: scheduler.IntervalReport | None = None
    error: StudyError | None = None
    detail: str = ''

    @property
    def success(self):
        return self.error is None

    @property
    def message(self):
        return ERROR_MESSAGES[self.error] if self.error else ''

    @classmethod
    def failed(cls, error, detail=''):
        return cls(error=error, detail=detail)


def record_attempt(user, move_id, correct, guess=None, seed=None, now=None):
    """
    Apply one study attempt by user to the move with id move_id.

    Args:
        user: The learner making the attempt
        move_id: Primary key of the Move
        correct: Whether the learner played the right move
        guess: SAN of the move actually played, kept when it was wrong
        seed: Fuzz seed in [0, 1), random if not given
        now: Time of the attempt (defaults to now)

    Returns:
        StudyOutcome with the interval report, or the reason for refusing
    """
    if seed is None:
        seed = random.random()
    if now is None:
        now = timezone.now()

    with transaction.atomic():
        # Row lock: concurrent attempts on one move are applied in turn
        try:
            move = Move.objects.select_for_update().get(pk=move_id)
        except Move.DoesNotExist:
            logger.warning(f"Study attempt on missing move {move_id}", extra={'user_id': user.pk})
            return StudyOutcome.failed(StudyError.MOVE_NOT_FOUND)

        if move.owner_id != user.pk:
            logger.warning(
                f"User {user.pk} tried to study move {move.pk} owned by {move.owner_id}"
            )
            return StudyOutcome.failed(StudyError.NOT_OWNER)
        if not move.is_own_move:
            logger.warning(f"User {user.pk} tried to study opponent move {move.pk}")
            return StudyOutcome.failed(StudyError.OPPONENT_MOVE)

        try:
            result = move.study(correct, seed, guess=guess, now=now)
        except scheduler.InvalidArgumentError as e:
            logger.warning(f"Rejected study attempt on move {move.pk}: {e}")
            return StudyOutcome.failed(StudyError.INVALID_ARGUMENT, str(e))
        except scheduler.InvalidStateError as e:
            logger.error(
                f"Move {move.pk} has corrupted scheduling state: {e}",
                extra={
                    'learning_step': move.learning_step,
                    'learning_due_time': move.learning_due_time,
                    'review_due_date': move.review_due_date,
                },
            )
            return StudyOutcome.failed(StudyError.INVALID_STATE, str(e))

    if correct:
        logger.info(f"move {move.move_san} correct, next due {result.next_due.isoformat()}")
    else:
        logger.info(f"move {move.move_san} wrong", extra={'guess': guess})

    return StudyOutcome(report=result.report)
