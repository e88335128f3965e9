"""
Management command to create a learner account.

Creates a Django user and its LearnerProfile with the given Lichess details:
    python manage.py add_learner new_user --access-token access_token
"""

import logging

from django.contrib.auth.models import User
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone

from moves.models import LearnerProfile

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_LIFETIME = 3600  # Seconds


class Command(BaseCommand):
    help = 'Create a learner with a Lichess profile'

    def add_arguments(self, parser):
        parser.add_argument('lichess_username', help='Lichess username, also used as login')
        parser.add_argument(
            '--access-token',
            default='',
            help='Lichess OAuth access token',
        )
        parser.add_argument(
            '--expires-in',
            type=int,
            default=DEFAULT_TOKEN_LIFETIME,
            help=f'Access token lifetime in seconds (default: {DEFAULT_TOKEN_LIFETIME})',
        )
        parser.add_argument(
            '--display-line-source',
            action='store_true',
            help='Show the source of each line while studying',
        )

    def handle(self, *args, **options):
        username = options['lichess_username']
        if options['expires_in'] < 0:
            raise CommandError('--expires-in must not be negative')
        if User.objects.filter(username=username).exists():
            raise CommandError(f'User "{username}" already exists')

        now = timezone.now()
        with transaction.atomic():
            user = User.objects.create_user(username=username)
            profile = LearnerProfile.objects.create(
                user=user,
                lichess_username=username,
                lichess_access_token=options['access_token'],
                lichess_access_token_fetched_at=now if options['access_token'] else None,
                lichess_access_token_expires_in=options['expires_in'],
                last_repertoire_update_check=now,
                study_display_line_source=options['display_line_source'],
            )

        logger.info(f"Created learner {username}", extra={'user_id': user.pk})
        self.stdout.write(self.style.SUCCESS(
            f'User created: {username} (id={user.pk}, profile id={profile.pk})'
        ))
