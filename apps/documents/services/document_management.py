"""
Document workflow service.

Creation runs lines -> tax calculation -> totals -> numbering -> persist in a
single transaction; every line is validated before anything is written.
"""

import logging
from datetime import date
from typing import Iterable, List, Mapping, Optional, Tuple
from uuid import UUID

from django.core.exceptions import ValidationError
from django.db import transaction, IntegrityError
from django.utils import timezone

from apps.documents.models import (
    Document,
    DocumentKind,
    DocumentLine,
    DocumentStatus,
)

from .exceptions import (
    DocumentLockedError,
    DocumentNotFoundError,
    InvalidCounterpartyError,
    InvalidStatusTransitionError,
)
from .numbering import is_provisional_number, next_document_number
from .tax_calculation import LineAmounts, compute_lines, to_decimal
from .totals import DocumentTotals, aggregate_totals

logger = logging.getLogger(__name__)

S = DocumentStatus

# Manual status changes. PARTIAL, PAID and APPLIED are set by the
# allocation engine, CONVERTED by convert_document().
ALLOWED_TRANSITIONS = {
    DocumentKind.INVOICE: {
        S.DRAFT: {S.SENT, S.CANCELLED},
        S.SENT: {S.OVERDUE, S.CANCELLED},
        S.OVERDUE: {S.CANCELLED},
        S.PARTIAL: {S.CANCELLED},
        S.PAID: {S.CANCELLED},
    },
    DocumentKind.QUOTATION: {
        S.DRAFT: {S.SENT, S.CANCELLED},
        S.SENT: {S.ACCEPTED, S.EXPIRED, S.CANCELLED},
        S.ACCEPTED: {S.CANCELLED},
        S.EXPIRED: {S.CANCELLED},
    },
    DocumentKind.PROFORMA: {
        S.DRAFT: {S.SENT, S.CANCELLED},
        S.SENT: {S.ACCEPTED, S.CANCELLED},
        S.ACCEPTED: {S.CANCELLED},
    },
    DocumentKind.CREDIT_NOTE: {
        S.DRAFT: {S.SENT, S.CANCELLED},
        S.SENT: {S.CANCELLED},
    },
    DocumentKind.PURCHASE_ORDER: {
        S.DRAFT: {S.SENT, S.CANCELLED},
        S.SENT: {S.APPROVED, S.CANCELLED},
        S.APPROVED: {S.RECEIVED, S.CANCELLED},
    },
}

CONVERSIONS = {
    DocumentKind.QUOTATION: {DocumentKind.PROFORMA, DocumentKind.INVOICE},
    DocumentKind.PROFORMA: {DocumentKind.INVOICE},
}

LOCKED_STATUSES = {S.PARTIAL, S.PAID, S.APPLIED, S.CONVERTED, S.CANCELLED}


def preview_document(lines: Iterable[Mapping]) -> Tuple[List[LineAmounts], DocumentTotals]:
    """
    Compute lines and totals without touching the database.

    Raises:
        InvalidLineInputError: If any line is invalid
        RoundingOverflowError: If totals do not reconcile
    """
    computed = compute_lines(lines)
    return computed, aggregate_totals(computed)


def _resolve_counterparties(*, company, kind, customer, supplier):
    if kind == DocumentKind.PURCHASE_ORDER:
        if customer is not None:
            raise InvalidCounterpartyError('Purchase orders are addressed to a supplier, not a customer.')
        if supplier is not None and supplier.company_id != company.id:
            raise InvalidCounterpartyError('Supplier belongs to another company.')
        return None, supplier

    if supplier is not None:
        raise InvalidCounterpartyError('Only purchase orders are addressed to a supplier.')
    if customer is not None and customer.company_id != company.id:
        raise InvalidCounterpartyError('Customer belongs to another company.')
    return customer, None


def _build_lines(document: Document, raw_lines, computed: List[LineAmounts]) -> List[DocumentLine]:
    lines = []
    for position, (raw, amounts) in enumerate(zip(raw_lines, computed), start=1):
        lines.append(DocumentLine(
            document=document,
            position=position,
            description=raw.get('description', '') or '',
            quantity=to_decimal(raw.get('quantity'), 'quantity'),
            unit_price=to_decimal(raw.get('unit_price'), 'unit_price'),
            discount_percentage=to_decimal(raw.get('discount_percentage'), 'discount_percentage', default=0),
            discount_amount=to_decimal(raw.get('discount_amount'), 'discount_amount', default=0),
            tax_percentage=to_decimal(raw.get('tax_percentage'), 'tax_percentage', default=0),
            tax_inclusive=bool(raw.get('tax_inclusive', False)),
            net_amount=amounts.net_amount,
            taxable_amount=amounts.taxable_amount,
            tax_amount=amounts.tax_amount,
            line_total=amounts.line_total,
        ))
    return lines


def _apply_totals(document: Document, totals: DocumentTotals):
    document.subtotal = totals.subtotal
    document.tax_amount = totals.tax_total
    document.total_amount = totals.total_amount
    if document.kind == DocumentKind.INVOICE:
        document.balance_due = totals.total_amount - document.paid_amount
    elif document.kind == DocumentKind.CREDIT_NOTE:
        document.balance = totals.total_amount - document.applied_amount


def create_document(
    *,
    company,
    kind: str,
    lines: Iterable[Mapping],
    created_by=None,
    customer=None,
    supplier=None,
    issue_date: Optional[date] = None,
    due_date: Optional[date] = None,
    valid_until: Optional[date] = None,
    reference: str = '',
    notes: str = '',
    related_invoice: Optional[Document] = None,
    source_document: Optional[Document] = None,
    idempotency_key: Optional[str] = None,
) -> Document:
    """
    Create a document with its lines, totals and number in one transaction.

    Args:
        company: Owning company
        kind: DocumentKind value
        lines: Raw line inputs (quantity, unit_price, discount_percentage,
            discount_amount, tax_percentage, tax_inclusive, description)
        created_by: Acting user
        customer: Customer (every kind except purchase orders)
        supplier: Supplier (purchase orders only)
        issue_date: Defaults to today; also decides the numbering year
        due_date: Invoice due date
        valid_until: Quotation/proforma validity
        reference: Free-text external reference
        notes: Free-text notes
        related_invoice: Invoice a credit note is raised against
        source_document: Quotation/proforma this document was converted from
        idempotency_key: Client key; a repeated key returns the first document

    Returns:
        Created (or previously created) Document

    Raises:
        InvalidLineInputError: If any line is invalid (nothing is written)
        RoundingOverflowError: If totals do not reconcile
        InvalidCounterpartyError: If customer/supplier don't fit the document
        SequenceGenerationFailedError: If no number could be issued
    """
    if kind not in DocumentKind.values:
        raise ValueError(f"Unknown document kind {kind!r}")

    if idempotency_key:
        existing = Document.objects.filter(company=company, idempotency_key=idempotency_key).first()
        if existing is not None:
            return existing

    raw_lines = list(lines)
    computed, totals = preview_document(raw_lines)
    customer, supplier = _resolve_counterparties(
        company=company, kind=kind, customer=customer, supplier=supplier
    )
    if related_invoice is not None and (
        kind != DocumentKind.CREDIT_NOTE
        or related_invoice.company_id != company.id
        or related_invoice.kind != DocumentKind.INVOICE
    ):
        raise InvalidCounterpartyError('Only credit notes reference an invoice of the same company.')

    issue_date = issue_date or timezone.localdate()

    try:
        with transaction.atomic():
            number = next_document_number(company=company, kind=kind, on_date=issue_date)
            document = Document(
                company=company,
                kind=kind,
                document_number=number,
                is_provisional_number=is_provisional_number(number),
                customer=customer,
                supplier=supplier,
                issue_date=issue_date,
                due_date=due_date,
                valid_until=valid_until,
                reference=reference,
                notes=notes,
                related_invoice=related_invoice,
                source_document=source_document,
                idempotency_key=idempotency_key or None,
                created_by=created_by,
            )
            _apply_totals(document, totals)
            document.save()
            DocumentLine.objects.bulk_create(_build_lines(document, raw_lines, computed))
    except IntegrityError:
        if idempotency_key:
            # Same key committed concurrently
            existing = Document.objects.filter(company=company, idempotency_key=idempotency_key).first()
            if existing is not None:
                return existing
        raise

    logger.info(
        'Created %s %s for company %s: total %s over %d lines',
        kind, document.document_number, company.pk, document.total_amount, len(computed),
    )
    return document


def get_document(*, company, document_id: UUID) -> Document:
    """
    Fetch a document of this company.

    Raises:
        DocumentNotFoundError: If it doesn't exist or belongs to another company
    """
    try:
        return (
            Document.objects
            .select_related('customer', 'supplier', 'company')
            .prefetch_related('lines')
            .get(id=document_id, company=company)
        )
    except (Document.DoesNotExist, ValueError, ValidationError):
        raise DocumentNotFoundError()


def _lock_document(*, company, document_id) -> Document:
    try:
        return Document.objects.select_for_update().get(id=document_id, company=company)
    except (Document.DoesNotExist, ValueError, ValidationError):
        raise DocumentNotFoundError()


def _has_allocations(document: Document) -> bool:
    return document.allocations.exists() or document.credit_allocations.exists()


@transaction.atomic
def replace_document_lines(*, company, document_id: UUID, lines: Iterable[Mapping]) -> Document:
    """
    Replace every line of a document and recompute its totals.

    Raises:
        DocumentNotFoundError: If the document isn't in this company
        DocumentLockedError: If payments/credits were applied or the status is final
        InvalidLineInputError: If any new line is invalid
    """
    document = _lock_document(company=company, document_id=document_id)

    if document.status in LOCKED_STATUSES or _has_allocations(document):
        raise DocumentLockedError()

    raw_lines = list(lines)
    computed, totals = preview_document(raw_lines)

    document.lines.all().delete()
    DocumentLine.objects.bulk_create(_build_lines(document, raw_lines, computed))
    _apply_totals(document, totals)
    document.save(update_fields=[
        'subtotal', 'tax_amount', 'total_amount', 'balance_due', 'balance', 'updated_at'
    ])

    logger.info('Replaced lines of %s: total %s', document.document_number, document.total_amount)
    return document


@transaction.atomic
def transition_document(*, company, document_id: UUID, new_status: str) -> Document:
    """
    Move a document along its kind's status machine.

    Raises:
        DocumentNotFoundError: If the document isn't in this company
        InvalidStatusTransitionError: If the move isn't allowed
    """
    document = _lock_document(company=company, document_id=document_id)

    allowed = ALLOWED_TRANSITIONS[document.kind].get(document.status, set())
    if new_status not in allowed:
        raise InvalidStatusTransitionError(
            f'Cannot move {document.get_kind_display().lower()} from '
            f'{document.status} to {new_status}.'
        )

    old_status = document.status
    document.status = new_status
    document.save(update_fields=['status', 'updated_at'])

    logger.info('%s %s: %s -> %s', document.kind, document.document_number, old_status, new_status)
    return document


@transaction.atomic
def convert_document(*, company, document_id: UUID, target_kind: str, created_by=None) -> Document:
    """
    Convert a quotation or proforma into a new document.

    The new document goes through the full creation workflow with the
    source's line inputs; the source is marked converted.

    Raises:
        DocumentNotFoundError: If the source isn't in this company
        InvalidStatusTransitionError: If the conversion isn't allowed
    """
    source = _lock_document(company=company, document_id=document_id)

    if target_kind not in CONVERSIONS.get(source.kind, set()):
        raise InvalidStatusTransitionError(
            f'A {source.get_kind_display().lower()} cannot be converted to {target_kind}.'
        )
    if source.status in {S.CONVERTED, S.CANCELLED, S.EXPIRED}:
        raise InvalidStatusTransitionError(
            f'A {source.status} document cannot be converted.'
        )

    converted = create_document(
        company=company,
        kind=target_kind,
        lines=[line.as_input() for line in source.lines.all()],
        created_by=created_by,
        customer=source.customer,
        reference=source.reference or source.document_number,
        notes=source.notes,
        source_document=source,
    )

    source.status = S.CONVERTED
    source.save(update_fields=['status', 'updated_at'])

    logger.info('Converted %s into %s', source.document_number, converted.document_number)
    return converted


def mark_overdue_invoices(*, company=None, as_of: Optional[date] = None) -> int:
    """
    Flag sent invoices whose due date has passed.

    Returns:
        Number of invoices moved to overdue
    """
    as_of = as_of or timezone.localdate()
    queryset = Document.objects.filter(
        kind=DocumentKind.INVOICE,
        status=S.SENT,
        due_date__lt=as_of,
    )
    if company is not None:
        queryset = queryset.filter(company=company)

    count = queryset.update(status=S.OVERDUE, updated_at=timezone.now())
    if count:
        logger.info('Marked %d invoices overdue as of %s', count, as_of)
    return count


@transaction.atomic
def delete_document(*, company, document_id: UUID) -> None:
    """
    Delete a draft document and its lines.

    Raises:
        DocumentNotFoundError: If the document isn't in this company
        DocumentLockedError: If it isn't a draft or has allocations
    """
    document = _lock_document(company=company, document_id=document_id)

    if document.status != S.DRAFT or _has_allocations(document):
        raise DocumentLockedError('Only draft documents without allocations can be deleted.')

    number = document.document_number
    document.delete()
    logger.info('Deleted draft %s of company %s', number, company.pk)
