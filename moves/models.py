from django.db import models
from django.contrib.auth.models import User
from django.db.models import Q
from django.utils import timezone

from . import scheduler


class MoveQuerySet(models.QuerySet):

    def schedulable(self):
        return self.filter(is_own_move=True)

    def due(self, now=None):
        """Moves in either phase that should be presented now."""
        if now is None:
            now = timezone.now()
        return self.schedulable().filter(
            Q(learning_due_time__isnull=False, learning_due_time__lte=now)
            | Q(review_due_date__isnull=False, review_due_date__lte=now)
        )


class Move(models.Model):
    """One move of an opening line, tracked for spaced repetition."""

    class Phase(models.TextChoices):
        LEARNING = 'learning', 'Learning'
        REVIEW = 'review', 'Review'

    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name='moves')
    move_san = models.CharField(max_length=16, help_text="Move in SAN, e.g. Nf3")
    is_own_move = models.BooleanField(
        default=True,
        help_text="Played by the learner (opponent replies are not studied)"
    )

    # Learning phase: set together, cleared on graduation
    learning_due_time = models.DateTimeField(null=True, blank=True, default=timezone.now)
    learning_step = models.IntegerField(null=True, blank=True, default=0)

    # Review phase: set on graduation, cleared on a wrong answer
    review_due_date = models.DateTimeField(null=True, blank=True)  # UTC midnight
    review_interval = models.FloatField(null=True, blank=True)  # Days
    review_ease = models.FloatField(null=True, blank=True)  # Survives a reset

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = MoveQuerySet.as_manager()

    class Meta:
        ordering = ['learning_due_time', 'review_due_date']
        indexes = [
            models.Index(fields=['owner', 'learning_due_time'], name='moves_owner_learning_idx'),
            models.Index(fields=['owner', 'review_due_date'], name='moves_owner_review_idx'),
        ]

    def __str__(self):
        return self.move_san

    @property
    def phase(self):
        if self.learning_due_time is not None:
            return self.Phase.LEARNING
        if self.review_due_date is not None:
            return self.Phase.REVIEW
        return None

    def is_due(self, now=None):
        """Check if the move should be presented at now (either phase)."""
        if now is None:
            now = timezone.now()
        if self.learning_due_time is not None:
            return self.learning_due_time <= now
        return scheduler.review_is_due(self, now)

    def study(self, correct, seed, guess=None, now=None):
        """
        Record one attempt at this move and reschedule it.

        The caller is responsible for ownership checks and for locking the
        row. Raises scheduler.SchedulingError (without saving anything) if
        the seed is out of range or the scheduling fields are corrupted.

        Returns the scheduler.SchedulingResult.
        """
        if now is None:
            now = timezone.now()

        result = scheduler.apply(self, correct, now, seed, is_due=Move.is_due)

        updates = result.field_updates()
        for field, value in updates.items():
            setattr(self, field, value)
        self.save(update_fields=[*updates, 'updated_at'])

        StudyHistory.objects.create(
            owner=self.owner,
            move=self,
            incorrect_guess_san=None if correct else guess,
        )
        return result


class StudyHistory(models.Model):
    """Append-only log of study attempts."""
    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name='study_history')
    move = models.ForeignKey(Move, on_delete=models.CASCADE, related_name='study_history')
    incorrect_guess_san = models.CharField(max_length=16, null=True, blank=True)
    studied_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-studied_at']
        verbose_name_plural = 'Study history'

    def __str__(self):
        outcome = 'correct' if self.incorrect_guess_san is None else f"wrong ({self.incorrect_guess_san})"
        return f"{self.move} {outcome} at {self.studied_at}"

    @property
    def correct(self):
        return self.incorrect_guess_san is None


class LearnerProfile(models.Model):
    """Lichess account details and study settings for a learner."""

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='learner_profile')
    lichess_username = models.CharField(max_length=64, unique=True)
    lichess_access_token = models.CharField(max_length=255, blank=True)
    lichess_access_token_fetched_at = models.DateTimeField(null=True, blank=True)
    lichess_access_token_expires_in = models.IntegerField(default=0)  # Seconds
    last_repertoire_update_check = models.DateTimeField(null=True, blank=True)
    study_display_line_source = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Profile for {self.lichess_username}"
