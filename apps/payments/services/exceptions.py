"""
Domain exceptions for payments app.

Allocation failures are user-actionable and never retried, except
ConcurrentUpdateConflictError which signals transient lock contention.
"""
from rest_framework.exceptions import APIException


class AllocationSourceNotFoundError(APIException):
    """Payment or credit note not found for this company."""
    status_code = 404
    default_detail = 'Payment or credit note not found.'
    default_code = 'allocation_source_not_found'


class InvoiceNotFoundError(APIException):
    """Invoice not found for this company."""
    status_code = 404
    default_detail = 'Invoice not found.'
    default_code = 'invoice_not_found'


class PaymentNotFoundError(APIException):
    """Payment not found for this company."""
    status_code = 404
    default_detail = 'Payment not found.'
    default_code = 'payment_not_found'


class InvalidAmountError(APIException):
    """Amount is zero, negative or not a valid currency amount."""
    status_code = 400
    default_detail = 'Amount must be a positive number with at most two decimal places.'
    default_code = 'invalid_amount'


class InsufficientSourceBalanceError(APIException):
    """Payment or credit note has less unapplied balance than requested."""
    status_code = 400
    default_detail = 'The payment or credit note does not have enough unapplied balance.'
    default_code = 'insufficient_source_balance'


class ExceedsInvoiceBalanceError(APIException):
    """Amount is larger than what is still due on the invoice."""
    status_code = 400
    default_detail = 'Amount exceeds the balance due on the invoice.'
    default_code = 'exceeds_invoice_balance'


class ConcurrentUpdateConflictError(APIException):
    """Balances changed concurrently; safe to retry."""
    status_code = 409
    default_detail = 'The invoice or source was updated concurrently, please retry.'
    default_code = 'concurrent_update_conflict'


class DuplicatePaymentNumberError(APIException):
    """Payment number already used in this company."""
    status_code = 409
    default_detail = 'A payment with this number already exists.'
    default_code = 'duplicate_payment_number'
