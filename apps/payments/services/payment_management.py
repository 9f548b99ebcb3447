"""
Payment recording service.

A payment can be recorded on its own (to be allocated later) or directly
against one invoice, in which case the payment and its allocation commit
together or not at all.
"""

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple
from uuid import UUID

from django.core.exceptions import ValidationError
from django.db import transaction, IntegrityError
from django.utils import timezone

from apps.documents.models import Document, DocumentKind
from apps.documents.services import (
    InvalidCounterpartyError,
    claim_manual_number,
    is_provisional_number,
    next_document_number,
)
from apps.documents.services.numbering import PAYMENT
from apps.documents.services.tax_calculation import MAX_AMOUNT, round_currency
from apps.payments.models import AllocationSourceKind, Payment, PaymentMethod

from .allocation import AllocationResult, apply_allocation
from .exceptions import (
    DuplicatePaymentNumberError,
    InvalidAmountError,
    InvoiceNotFoundError,
    PaymentNotFoundError,
)

logger = logging.getLogger(__name__)


def _payment_amount(amount) -> Decimal:
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmountError()
    if not value.is_finite() or value == 0:
        raise InvalidAmountError('Payment amount must be a nonzero number.')
    if abs(value) > MAX_AMOUNT:
        raise InvalidAmountError(f'Payment amount cannot exceed {MAX_AMOUNT}.')
    if value != round_currency(value):
        raise InvalidAmountError('Amount cannot have more than two decimal places.')
    return value


@transaction.atomic
def record_payment(
    *,
    company,
    amount,
    method: str = PaymentMethod.BANK_TRANSFER,
    payment_date: Optional[date] = None,
    customer=None,
    reference: str = '',
    notes: str = '',
    payment_number: Optional[str] = None,
    invoice_id: Optional[UUID] = None,
    recorded_by=None,
) -> Tuple[Payment, Optional[AllocationResult]]:
    """
    Record a payment, optionally allocating all of it to one invoice.

    Args:
        company: Receiving company
        amount: Nonzero amount
        method: PaymentMethod value
        payment_date: Defaults to today
        customer: Paying customer (defaults to the invoice's customer)
        reference: Bank/cheque reference
        notes: Free-text notes
        payment_number: Client-supplied number; generated when omitted.
            A number in the PAY-{year}-NNNN range moves the counter past it
        invoice_id: Invoice to allocate the whole amount to
        recorded_by: Acting user

    Returns:
        (Payment, AllocationResult or None)

    Raises:
        InvalidAmountError: If amount is zero or not a number
        InvoiceNotFoundError: If invoice_id isn't an invoice of this company
        InvalidCounterpartyError: If customer belongs to another company
        DuplicatePaymentNumberError: If payment_number is already used
        Any apply_allocation error when invoice_id is given (nothing is saved)
    """
    amount = _payment_amount(amount)
    payment_date = payment_date or timezone.localdate()

    invoice = None
    if invoice_id is not None:
        invoice = Document.objects.filter(
            id=invoice_id, company=company, kind=DocumentKind.INVOICE
        ).select_related('customer').first()
        if invoice is None:
            raise InvoiceNotFoundError()
        customer = customer or invoice.customer

    if customer is not None and customer.company_id != company.id:
        raise InvalidCounterpartyError('Customer belongs to another company.')

    if payment_number:
        number = payment_number
        claim_manual_number(company=company, kind=PAYMENT, number=number)
    else:
        number = next_document_number(company=company, kind=PAYMENT, on_date=payment_date)

    try:
        with transaction.atomic():
            payment = Payment.objects.create(
                company=company,
                customer=customer,
                payment_number=number,
                is_provisional_number=is_provisional_number(number),
                payment_date=payment_date,
                amount=amount,
                method=method,
                reference=reference,
                notes=notes,
                recorded_by=recorded_by,
            )
    except IntegrityError:
        raise DuplicatePaymentNumberError(f'Payment number {number} is already used.')

    logger.info('Recorded payment %s of %s for company %s', payment.payment_number, amount, company.pk)

    result = None
    if invoice is not None:
        result = apply_allocation(
            company=company,
            source_kind=AllocationSourceKind.PAYMENT,
            source_id=payment.id,
            invoice_id=invoice.id,
            amount=amount,
            allocated_by=recorded_by,
        )
        payment = result.source

    return payment, result


def get_payment(*, company, payment_id: UUID) -> Payment:
    """
    Fetch a payment of this company.

    Raises:
        PaymentNotFoundError: If it doesn't exist or belongs to another company
    """
    try:
        return Payment.objects.select_related('customer').get(id=payment_id, company=company)
    except (Payment.DoesNotExist, ValueError, ValidationError):
        raise PaymentNotFoundError()
