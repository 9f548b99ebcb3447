"""
Documents app services layer.

Tax calculation and totals are pure functions; numbering and the document
workflow run inside database transactions.
"""

from .exceptions import (
    InvalidLineInputError,
    RoundingOverflowError,
    SequenceGenerationFailedError,
    DocumentNotFoundError,
    InvalidStatusTransitionError,
    DocumentLockedError,
    InvalidCounterpartyError,
)

from .tax_calculation import (
    LineAmounts,
    round_currency,
    compute_line,
    compute_lines,
)

from .totals import (
    DocumentTotals,
    aggregate_totals,
)

from .numbering import (
    next_document_number,
    is_provisional_number,
    claim_manual_number,
    configure_backend,
    get_sequence_backend,
)

from .document_management import (
    create_document,
    preview_document,
    get_document,
    replace_document_lines,
    transition_document,
    convert_document,
    mark_overdue_invoices,
    delete_document,
)


__all__ = [
    # Exceptions
    'InvalidLineInputError',
    'RoundingOverflowError',
    'SequenceGenerationFailedError',
    'DocumentNotFoundError',
    'InvalidStatusTransitionError',
    'DocumentLockedError',
    'InvalidCounterpartyError',

    # Tax calculation
    'LineAmounts',
    'round_currency',
    'compute_line',
    'compute_lines',

    # Totals
    'DocumentTotals',
    'aggregate_totals',

    # Numbering
    'next_document_number',
    'is_provisional_number',
    'claim_manual_number',
    'configure_backend',
    'get_sequence_backend',

    # Document workflow
    'create_document',
    'preview_document',
    'get_document',
    'replace_document_lines',
    'transition_document',
    'convert_document',
    'mark_overdue_invoices',
    'delete_document',
]
