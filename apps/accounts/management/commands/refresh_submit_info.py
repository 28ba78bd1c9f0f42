"""
Management command to recompute cached submission counters.

ac_num and submit_num on each account are denormalized from the
submission log and only refreshed on demand. Run this after bulk rejudges
or imports to bring them back in line.

Usage:
    python manage.py refresh_submit_info
    python manage.py refresh_submit_info --user 7 --user 12
"""

from django.core.management.base import BaseCommand
from apps.accounts.models import User
from apps.accounts.services import refresh_submit_info, UserNotFoundError


class Command(BaseCommand):
    help = 'Recompute ac_num and submit_num from the submission log'

    def add_arguments(self, parser):
        parser.add_argument(
            '--user',
            action='append',
            type=int,
            dest='user_ids',
            help='Only refresh this user id (repeatable)',
        )

    def handle(self, *args, **options):
        user_ids = options['user_ids']
        if not user_ids:
            user_ids = list(User.objects.order_by('id').values_list('id', flat=True))

        if not user_ids:
            self.stdout.write(
                self.style.SUCCESS('No users to refresh.')
            )
            return

        refreshed = 0
        for user_id in user_ids:
            try:
                user = refresh_submit_info(user_id=user_id)
            except UserNotFoundError as e:
                self.stdout.write(self.style.WARNING(f'  - {e}'))
                continue

            refreshed += 1
            self.stdout.write(
                f'  - {user.username}: ac_num={user.ac_num} submit_num={user.submit_num}'
            )

        self.stdout.write(
            self.style.SUCCESS(f'\nRefreshed {refreshed} user(s).')
        )
