"""
Management command to run one webhook delivery cycle.
Use it from cron when Celery beat is not running.
"""
from django.core.management.base import BaseCommand

from deliveries.tasks import run_delivery_cycle


class Command(BaseCommand):
    help = 'Claim due webhook deliveries and attempt each one'

    def add_arguments(self, parser):
        parser.add_argument(
            '--limit',
            type=int,
            default=None,
            help='Maximum number of deliveries to claim (default: WEBHOOK_BATCH_SIZE)'
        )

    def handle(self, *args, **options):
        self.stdout.write('Starting webhook delivery cycle...')

        summary = run_delivery_cycle(limit=options['limit'])

        self.stdout.write(
            self.style.SUCCESS(
                f'Delivery cycle completed. Processed: {summary["processed"]}, '
                f'Succeeded: {summary["succeeded"]}, Failed: {summary["failed"]}, '
                f'Exhausted: {summary["exhausted"]}'
            )
        )
