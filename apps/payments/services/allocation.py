"""
Allocation engine.

Applies a payment or credit note amount to an invoice. One attempt is one
transaction:

1. lock the source row, then the invoice row (always in this order);
2. validate: not found -> invalid amount -> insufficient source balance ->
   exceeds invoice balance;
3. move the money with conditional UPDATEs (``WHERE balance >= amount``)
   whose row count must be 1;
4. upsert the (source, invoice) allocation row;
5. recompute invoice status (and credit note status).

Lock contention surfaces as ConcurrentUpdateConflictError, the only error
that is retried, a bounded number of times with jittered backoff.
"""

import logging
import random
import time
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Mapping, NamedTuple, Optional, Union
from uuid import UUID

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import connection, transaction, OperationalError
from django.utils import timezone

from apps.documents.models import Document, DocumentKind, DocumentStatus
from apps.documents.services.tax_calculation import MAX_AMOUNT, round_currency
from apps.payments.models import Allocation, AllocationSourceKind, Payment

from .exceptions import (
    AllocationSourceNotFoundError,
    ConcurrentUpdateConflictError,
    ExceedsInvoiceBalanceError,
    InsufficientSourceBalanceError,
    InvalidAmountError,
    InvoiceNotFoundError,
)

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


class AllocationResult(NamedTuple):
    """Outcome of one successful application."""
    allocation: Allocation
    invoice: Document
    source: Union[Payment, Document]
    amount: Decimal


def invoice_status_after_allocation(status: str, paid_amount: Decimal, balance_due: Decimal) -> str:
    """
    Status of an invoice once its balances changed.

    Paid and cancelled invoices never move back.
    """
    if status in (DocumentStatus.PAID, DocumentStatus.CANCELLED):
        return status
    if balance_due <= 0:
        return DocumentStatus.PAID
    if paid_amount > 0:
        return DocumentStatus.PARTIAL
    return status


def parse_amount(amount) -> Decimal:
    """
    Validate an allocation amount.

    Raises:
        InvalidAmountError: If not a finite positive number of whole cents
    """
    if isinstance(amount, bool):
        raise InvalidAmountError()
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmountError()

    if not value.is_finite() or value <= 0:
        raise InvalidAmountError()
    if value > MAX_AMOUNT:
        raise InvalidAmountError(f'Amount cannot exceed {MAX_AMOUNT}.')
    if value != round_currency(value):
        raise InvalidAmountError('Amount cannot have more than two decimal places.')
    return value


def _set_lock_timeout(lock_timeout_ms: int):
    if lock_timeout_ms and connection.vendor == 'postgresql':
        with connection.cursor() as cursor:
            cursor.execute(f'SET LOCAL lock_timeout = {int(lock_timeout_ms)}')


def _lock_source(*, company, source_kind: str, source_id):
    try:
        if source_kind == AllocationSourceKind.PAYMENT:
            return Payment.objects.select_for_update().get(id=source_id, company=company)
        if source_kind == AllocationSourceKind.CREDIT_NOTE:
            return Document.objects.select_for_update().get(
                id=source_id, company=company, kind=DocumentKind.CREDIT_NOTE
            )
    except (Payment.DoesNotExist, Document.DoesNotExist, ValueError, ValidationError):
        raise AllocationSourceNotFoundError()
    raise AllocationSourceNotFoundError(f'Unknown allocation source kind {source_kind!r}.')


def _lock_invoice(*, company, invoice_id) -> Document:
    try:
        return Document.objects.select_for_update().get(
            id=invoice_id, company=company, kind=DocumentKind.INVOICE
        )
    except (Document.DoesNotExist, ValueError, ValidationError):
        raise InvoiceNotFoundError()


def available_source_balance(source_kind: str, source) -> Decimal:
    """Amount of the source that can still be applied."""
    if source_kind == AllocationSourceKind.PAYMENT:
        return max(source.amount - source.applied_amount, ZERO)
    if source.status in (DocumentStatus.DRAFT, DocumentStatus.CANCELLED):
        return ZERO
    return source.balance


def _debit_source(source_kind: str, source, amount: Decimal, now):
    # Compare-and-set on the values read under lock; new values are
    # computed in Decimal so no float drift reaches the database.
    if source_kind == AllocationSourceKind.PAYMENT:
        updated = Payment.objects.filter(
            pk=source.pk,
            applied_amount=source.applied_amount,
            applied_amount__lte=source.amount - amount,
        ).update(applied_amount=source.applied_amount + amount, updated_at=now)
    else:
        updated = Document.objects.filter(
            pk=source.pk,
            balance=source.balance,
            balance__gte=amount,
        ).update(
            applied_amount=source.applied_amount + amount,
            balance=source.balance - amount,
            updated_at=now,
        )
    if updated != 1:
        raise ConcurrentUpdateConflictError()


def _credit_invoice(invoice: Document, amount: Decimal, now):
    updated = Document.objects.filter(
        pk=invoice.pk,
        balance_due=invoice.balance_due,
        balance_due__gte=amount,
    ).exclude(
        status=DocumentStatus.CANCELLED,
    ).update(
        paid_amount=invoice.paid_amount + amount,
        balance_due=invoice.balance_due - amount,
        updated_at=now,
    )
    if updated != 1:
        raise ConcurrentUpdateConflictError()


def _upsert_allocation(*, company, source_kind, source, invoice, amount, allocated_by) -> Allocation:
    source_field = 'payment' if source_kind == AllocationSourceKind.PAYMENT else 'credit_note'
    allocation = Allocation.objects.filter(invoice=invoice, **{source_field: source}).first()

    if allocation is not None:
        allocation.allocated_amount += amount
        allocation.save(update_fields=['allocated_amount', 'updated_at'])
        return allocation

    return Allocation.objects.create(
        company=company,
        source_kind=source_kind,
        invoice=invoice,
        allocated_amount=amount,
        allocated_by=allocated_by,
        **{source_field: source},
    )


def _apply_once(*, company, source_kind, source_id, invoice_id, amount, allocated_by, lock_timeout_ms) -> AllocationResult:
    try:
        with transaction.atomic():
            _set_lock_timeout(lock_timeout_ms)

            source = _lock_source(company=company, source_kind=source_kind, source_id=source_id)
            invoice = _lock_invoice(company=company, invoice_id=invoice_id)
            amount = parse_amount(amount)

            if amount > available_source_balance(source_kind, source):
                raise InsufficientSourceBalanceError()
            if invoice.status == DocumentStatus.CANCELLED or amount > invoice.balance_due:
                raise ExceedsInvoiceBalanceError()

            now = timezone.now()
            _debit_source(source_kind, source, amount, now)
            _credit_invoice(invoice, amount, now)
            allocation = _upsert_allocation(
                company=company,
                source_kind=source_kind,
                source=source,
                invoice=invoice,
                amount=amount,
                allocated_by=allocated_by,
            )

            invoice.refresh_from_db()
            new_status = invoice_status_after_allocation(
                invoice.status, invoice.paid_amount, invoice.balance_due
            )
            if new_status != invoice.status:
                invoice.status = new_status
                invoice.save(update_fields=['status', 'updated_at'])

            source.refresh_from_db()
            if (
                source_kind == AllocationSourceKind.CREDIT_NOTE
                and source.balance <= 0
                and source.status != DocumentStatus.APPLIED
            ):
                source.status = DocumentStatus.APPLIED
                source.save(update_fields=['status', 'updated_at'])
    except OperationalError as exc:
        # Lock timeout, deadlock or SQLite busy
        raise ConcurrentUpdateConflictError() from exc

    logger.info(
        'Applied %s of %s %s to invoice %s (balance due %s, status %s)',
        amount, source_kind, source.pk, invoice.document_number,
        invoice.balance_due, invoice.status,
    )
    return AllocationResult(allocation=allocation, invoice=invoice, source=source, amount=amount)


def run_with_retries(operation, *, max_attempts: int, backoff: float, label: str):
    """
    Run ``operation``, retrying ConcurrentUpdateConflictError with
    exponential jittered backoff. Any other error propagates at once.
    """
    attempt = 1
    while True:
        try:
            return operation()
        except ConcurrentUpdateConflictError:
            if attempt >= max_attempts:
                logger.warning('%s: conflict persisted after %d attempt(s)', label, attempt)
                raise
            delay = backoff * (2 ** (attempt - 1)) * (1 + random.random())
            logger.warning(
                '%s: concurrent update conflict (attempt %d/%d), retrying in %.3fs',
                label, attempt, max_attempts, delay,
            )
            time.sleep(delay)
            attempt += 1


def _retry_budget(max_attempts: Optional[int]) -> int:
    # Inside a caller's transaction a retry cannot undo the failed work;
    # the conflict goes to the caller, who must roll back.
    if connection.in_atomic_block:
        return 1
    if max_attempts is None:
        max_attempts = getattr(settings, 'ALLOCATION_MAX_ATTEMPTS', 3)
    return max(1, max_attempts)


def apply_allocation(
    *,
    company,
    source_kind: str,
    source_id: UUID,
    invoice_id: UUID,
    amount,
    allocated_by=None,
    lock_timeout_ms: Optional[int] = None,
    max_attempts: Optional[int] = None,
) -> AllocationResult:
    """
    Apply a payment or credit note amount to an invoice.

    Args:
        company: Company both source and invoice must belong to
        source_kind: 'payment' or 'credit_note'
        source_id: UUID of the payment or credit note
        invoice_id: UUID of the invoice
        amount: Positive amount in the document currency
        allocated_by: Acting user
        lock_timeout_ms: Max wait for row locks on PostgreSQL
            (default: settings.ALLOCATION_LOCK_TIMEOUT_MS)
        max_attempts: Attempts on concurrent update conflicts
            (default: settings.ALLOCATION_MAX_ATTEMPTS)

    Returns:
        AllocationResult with the allocation and refreshed invoice/source

    Raises:
        AllocationSourceNotFoundError: Source missing or in another company
        InvoiceNotFoundError: Invoice missing or in another company
        InvalidAmountError: Amount not positive
        InsufficientSourceBalanceError: Source has less left than amount
        ExceedsInvoiceBalanceError: Amount larger than balance due
        ConcurrentUpdateConflictError: Contention outlasted the retries
    """
    if lock_timeout_ms is None:
        lock_timeout_ms = getattr(settings, 'ALLOCATION_LOCK_TIMEOUT_MS', 0)

    return run_with_retries(
        lambda: _apply_once(
            company=company,
            source_kind=source_kind,
            source_id=source_id,
            invoice_id=invoice_id,
            amount=amount,
            allocated_by=allocated_by,
            lock_timeout_ms=lock_timeout_ms,
        ),
        max_attempts=_retry_budget(max_attempts),
        backoff=getattr(settings, 'ALLOCATION_RETRY_BACKOFF', 0.05),
        label=f'Allocation of {source_kind} {source_id} to invoice {invoice_id}',
    )


def allocate_across_invoices(
    *,
    company,
    source_kind: str,
    source_id: UUID,
    allocations: Iterable[Mapping],
    allocated_by=None,
    max_attempts: Optional[int] = None,
) -> List[AllocationResult]:
    """
    Apply one source to several invoices atomically.

    Args:
        allocations: Items with ``invoice_id`` and ``amount``

    Returns:
        One AllocationResult per item, in order

    Raises:
        Any apply_allocation error; nothing is applied if one item fails
    """
    items = list(allocations)
    lock_timeout_ms = getattr(settings, 'ALLOCATION_LOCK_TIMEOUT_MS', 0)

    def apply_all():
        with transaction.atomic():
            return [
                _apply_once(
                    company=company,
                    source_kind=source_kind,
                    source_id=source_id,
                    invoice_id=item['invoice_id'],
                    amount=item['amount'],
                    allocated_by=allocated_by,
                    lock_timeout_ms=lock_timeout_ms,
                )
                for item in items
            ]

    return run_with_retries(
        apply_all,
        max_attempts=_retry_budget(max_attempts),
        backoff=getattr(settings, 'ALLOCATION_RETRY_BACKOFF', 0.05),
        label=f'Allocation of {source_kind} {source_id} to {len(items)} invoices',
    )


def list_invoice_allocations(*, company, invoice_id: UUID):
    """
    Allocations against one invoice, oldest first.

    Raises:
        InvoiceNotFoundError: If the invoice isn't in this company
    """
    if not Document.objects.filter(id=invoice_id, company=company, kind=DocumentKind.INVOICE).exists():
        raise InvoiceNotFoundError()
    return (
        Allocation.objects
        .filter(company=company, invoice_id=invoice_id)
        .select_related('payment', 'credit_note', 'invoice')
        .order_by('created_at')
    )
