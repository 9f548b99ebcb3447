"""
Payments app services layer.

The allocation engine is the only code that changes invoice and credit
note balances.
"""

from .exceptions import (
    AllocationSourceNotFoundError,
    InvoiceNotFoundError,
    PaymentNotFoundError,
    InvalidAmountError,
    InsufficientSourceBalanceError,
    ExceedsInvoiceBalanceError,
    ConcurrentUpdateConflictError,
    DuplicatePaymentNumberError,
)

from .allocation import (
    AllocationResult,
    apply_allocation,
    allocate_across_invoices,
    list_invoice_allocations,
    invoice_status_after_allocation,
)

from .payment_management import (
    record_payment,
    get_payment,
)


__all__ = [
    # Exceptions
    'AllocationSourceNotFoundError',
    'InvoiceNotFoundError',
    'PaymentNotFoundError',
    'InvalidAmountError',
    'InsufficientSourceBalanceError',
    'ExceedsInvoiceBalanceError',
    'ConcurrentUpdateConflictError',
    'DuplicatePaymentNumberError',

    # Allocation engine
    'AllocationResult',
    'apply_allocation',
    'allocate_across_invoices',
    'list_invoice_allocations',
    'invoice_status_after_allocation',

    # Payment management
    'record_payment',
    'get_payment',
]
