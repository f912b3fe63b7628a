# billing/management/commands/generate_billing_schedule.py

from datetime import date

from django.core.management.base import BaseCommand, CommandError

from billing.exceptions import BillingError
from billing.models import Enrollment
from billing.schedule_generators import generate_billing_schedule
from core.utils import format_money


class Command(BaseCommand):
    help = 'Generate the installment bills for an approved enrollment'

    def add_arguments(self, parser):
        parser.add_argument('enrollment_id', help='Enrollment UUID')
        parser.add_argument(
            '--start-date',
            type=date.fromisoformat,
            help='Schedule reference date (YYYY-MM-DD); defaults to the approval date'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show the schedule without saving it'
        )

    def handle(self, *args, **options):
        enrollment = Enrollment.objects.select_related('student').filter(pk=options['enrollment_id']).first()
        if enrollment is None:
            raise CommandError(f"Enrollment {options['enrollment_id']} not found")

        dry_run = options['dry_run']
        if dry_run:
            self.stdout.write(self.style.WARNING('Dry run - no bills will be saved'))

        try:
            bills = generate_billing_schedule(
                enrollment,
                start_date=options['start_date'],
                dry_run=dry_run,
            )
        except BillingError as e:
            raise CommandError(e.message)

        for bill in bills:
            self.stdout.write(f"  {bill.due_date:%Y-%m-%d}  {format_money(bill.amount):>14}  {bill.notes}")

        total = sum(bill.amount for bill in bills)
        verb = 'Would create' if dry_run else 'Created'
        self.stdout.write(self.style.SUCCESS(
            f"{verb} {len(bills)} bill(s) totalling {format_money(total)} for {enrollment.student.get_username()}"
        ))
