# billing/management/commands/send_payment_reminders.py

from datetime import date

from django.core.management.base import BaseCommand

from billing import notifications
from billing.services import BillingQueries
from billing.utils import calculate_late_fee
from core.utils import format_money, get_school_today


class Command(BaseCommand):
    help = 'Remind students about overdue bills'

    def add_arguments(self, parser):
        parser.add_argument(
            '--as-of',
            type=date.fromisoformat,
            help='Treat this date (YYYY-MM-DD) as today'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List reminders without sending them'
        )

    def handle(self, *args, **options):
        as_of = options['as_of'] or get_school_today()
        dry_run = options['dry_run']

        bills = BillingQueries.overdue_bills(as_of=as_of)
        sent = 0
        failed = 0

        for bill in bills:
            days_overdue = (as_of - bill.due_date).days
            payload = {
                'amount': format_money(bill.amount),
                'due_date': bill.due_date.strftime('%B %d, %Y'),
                'days_overdue': days_overdue,
                'late_fee': format_money(calculate_late_fee(bill.amount, days_overdue)),
            }

            if dry_run:
                self.stdout.write(
                    f"  {bill.student.get_username()}: {payload['amount']} due {bill.due_date:%Y-%m-%d} "
                    f"({days_overdue} days overdue)"
                )
                continue

            if notifications.notify(notifications.PAYMENT_REMINDER, bill.student, payload):
                sent += 1
            else:
                failed += 1

        if dry_run:
            self.stdout.write(self.style.WARNING(f"Dry run - {bills.count()} reminder(s) not sent"))
        else:
            self.stdout.write(self.style.SUCCESS(f"Sent {sent} reminder(s), {failed} not delivered"))
