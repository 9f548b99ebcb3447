"""
Document totals aggregation.

Folds computed lines into subtotal, tax total and grand total. Totals are
never nudged to make them add up: a mismatch beyond accumulated rounding
means a calculator bug and is raised.
"""

import logging
from decimal import Decimal
from typing import Iterable, NamedTuple

from .exceptions import InvalidLineInputError, RoundingOverflowError
from .tax_calculation import CURRENCY_QUANTUM, MAX_AMOUNT

logger = logging.getLogger(__name__)


class DocumentTotals(NamedTuple):
    subtotal: Decimal
    tax_total: Decimal
    total_amount: Decimal


def aggregate_totals(lines: Iterable) -> DocumentTotals:
    """
    Sum line amounts into document totals.

    Args:
        lines: LineAmounts or DocumentLine rows; anything exposing
            ``taxable_amount``, ``tax_amount`` and ``line_total``

    Returns:
        DocumentTotals (all zero for an empty document)

    Raises:
        InvalidLineInputError: If the document total is larger than a money
            column can store
        RoundingOverflowError: If total differs from subtotal + tax by more
            than one cent per line
    """
    subtotal = tax_total = total_amount = Decimal('0.00')
    count = 0
    for line in lines:
        subtotal += line.taxable_amount
        tax_total += line.tax_amount
        total_amount += line.line_total
        count += 1

    drift = abs(total_amount - (subtotal + tax_total))
    tolerance = CURRENCY_QUANTUM * count
    if drift > tolerance:
        logger.error(
            'Rounding overflow: total %s vs subtotal %s + tax %s over %d lines',
            total_amount, subtotal, tax_total, count,
        )
        raise RoundingOverflowError(
            f'Total {total_amount} differs from subtotal {subtotal} + tax {tax_total} '
            f'by {drift}, more than the {tolerance} rounding tolerance.'
        )

    if total_amount > MAX_AMOUNT:
        raise InvalidLineInputError(f'Document total cannot exceed {MAX_AMOUNT}.')

    return DocumentTotals(subtotal=subtotal, tax_total=tax_total, total_amount=total_amount)
