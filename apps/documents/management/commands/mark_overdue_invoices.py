"""
Management command to flag invoices whose due date has passed.

Moves every ``sent`` invoice with a due date before today (or --as-of) to
``overdue``. Intended to run daily from cron.

Usage:
    python manage.py mark_overdue_invoices [--company <uuid>] [--as-of 2025-01-31] [--dry-run]
"""

from datetime import date

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from apps.companies.models import Company
from apps.documents.models import Document, DocumentKind, DocumentStatus
from apps.documents.services import mark_overdue_invoices


class Command(BaseCommand):
    help = 'Mark sent invoices past their due date as overdue'

    def add_arguments(self, parser):
        parser.add_argument(
            '--company',
            help='Only invoices of this company (UUID)',
        )
        parser.add_argument(
            '--as-of',
            type=date.fromisoformat,
            help='Reference date (default: today)',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be updated without making changes',
        )

    def handle(self, *args, **options):
        as_of = options['as_of'] or timezone.localdate()
        company = None
        if options['company']:
            try:
                company = Company.objects.get(id=options['company'])
            except (Company.DoesNotExist, ValueError, ValidationError):
                raise CommandError(f"Company {options['company']} not found")

        if options['dry_run']:
            candidates = Document.objects.filter(
                kind=DocumentKind.INVOICE,
                status=DocumentStatus.SENT,
                due_date__lt=as_of,
            )
            if company is not None:
                candidates = candidates.filter(company=company)

            for invoice in candidates:
                self.stdout.write(
                    f'  - {invoice.document_number} | due {invoice.due_date} | balance {invoice.balance_due}'
                )
            self.stdout.write(
                self.style.WARNING(f'--dry-run mode: {candidates.count()} invoice(s) would be marked overdue.')
            )
            return

        updated = mark_overdue_invoices(company=company, as_of=as_of)
        self.stdout.write(
            self.style.SUCCESS(f'Marked {updated} invoice(s) overdue as of {as_of}.')
        )
