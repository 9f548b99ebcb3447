"""
Line tax and discount calculation.

Pure functions, no database access. All money is Decimal; rounding
(half-up to cents) happens once, on the final values.
"""

from decimal import Decimal, DecimalException, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, List, Mapping, NamedTuple, Optional

from .exceptions import InvalidLineInputError

CURRENCY_QUANTUM = Decimal('0.01')
HUNDRED = Decimal('100')
ZERO = Decimal('0')
# Largest amount a money column (14 digits, 2 decimal places) can hold
MAX_AMOUNT = Decimal('999999999999.99')


class LineAmounts(NamedTuple):
    """Computed amounts for one document line."""
    gross_amount: Decimal
    discount_amount: Decimal
    net_amount: Decimal        # after discount, as entered (still contains tax when inclusive)
    taxable_amount: Decimal    # pre-tax amount
    tax_amount: Decimal
    line_total: Decimal


def round_currency(value: Decimal) -> Decimal:
    """Round a monetary value half-up to two decimal places."""
    return Decimal(value).quantize(CURRENCY_QUANTUM, rounding=ROUND_HALF_UP)


def to_decimal(value: Any, field: str, default: Optional[Decimal] = None) -> Decimal:
    """
    Coerce user input to a non-negative Decimal.

    Floats go through str() so 0.1 stays 0.1. None and '' fall back to
    ``default`` when one is given.

    Raises:
        InvalidLineInputError: If the value is missing, not a finite number,
            or negative
    """
    if value is None or value == '':
        if default is not None:
            return default
        raise InvalidLineInputError(f'{field} is required.', field=field)

    if isinstance(value, bool):
        raise InvalidLineInputError(f'{field} must be a number.', field=field)

    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidLineInputError(f'{field} must be a number.', field=field)

    if not result.is_finite():
        raise InvalidLineInputError(f'{field} must be a finite number.', field=field)
    if result < 0:
        raise InvalidLineInputError(f'{field} cannot be negative.', field=field)
    return result


def _percentage(value: Any, field: str) -> Decimal:
    result = to_decimal(value, field, default=ZERO)
    if result > HUNDRED:
        raise InvalidLineInputError(f'{field} must be between 0 and 100.', field=field)
    return result


def _check_capacity(value: Decimal, label: str):
    if value > MAX_AMOUNT:
        raise InvalidLineInputError(f'{label.capitalize()} cannot exceed {MAX_AMOUNT}.')


def compute_line(
    quantity,
    unit_price,
    discount_percentage=None,
    discount_amount=None,
    tax_percentage=0,
    tax_inclusive: bool = False,
) -> LineAmounts:
    """
    Compute discount, tax and total for one line.

    Discount is taken before tax. An explicit discount amount wins over a
    percentage. For tax-inclusive lines the tax is extracted from the net
    amount and the line total equals the net amount; otherwise tax is added.

    Args:
        quantity: Units sold (>= 0)
        unit_price: Price per unit (>= 0)
        discount_percentage: Optional percentage discount, 0-100
        discount_amount: Optional absolute discount, takes precedence
        tax_percentage: Tax rate, 0-100
        tax_inclusive: Whether unit_price already contains tax

    Returns:
        LineAmounts with every value rounded to cents

    Raises:
        InvalidLineInputError: On negative, non-numeric or out-of-range input,
            or when an amount is larger than a money column can store
    """
    quantity = to_decimal(quantity, 'quantity')
    unit_price = to_decimal(unit_price, 'unit_price')
    discount_percentage = _percentage(discount_percentage, 'discount_percentage')
    explicit_discount = to_decimal(discount_amount, 'discount_amount', default=ZERO)
    tax_percentage = _percentage(tax_percentage, 'tax_percentage')

    try:
        gross = quantity * unit_price
        _check_capacity(gross, 'gross amount')

        if explicit_discount > 0:
            discount = explicit_discount
        else:
            discount = gross * discount_percentage / HUNDRED
        discount = min(discount, gross)
        net = max(gross - discount, ZERO)

        if tax_percentage == 0:
            tax = ZERO
            total = net
        elif tax_inclusive:
            tax = net * tax_percentage / (HUNDRED + tax_percentage)
            total = net
        else:
            tax = net * tax_percentage / HUNDRED
            total = net + tax
        _check_capacity(tax, 'tax amount')
        _check_capacity(total, 'line total')

        tax_amount = round_currency(tax)
        line_total = round_currency(total)
        net_amount = round_currency(net)
        gross_amount = round_currency(gross)
        discount_amount = round_currency(discount)
    except DecimalException:
        raise InvalidLineInputError('Line amounts are too large to calculate.')

    if tax_inclusive:
        taxable_amount = line_total - tax_amount
    else:
        taxable_amount = net_amount

    return LineAmounts(
        gross_amount=gross_amount,
        discount_amount=discount_amount,
        net_amount=net_amount,
        taxable_amount=taxable_amount,
        tax_amount=tax_amount,
        line_total=line_total,
    )


def compute_lines(raw_lines: Iterable[Mapping[str, Any]]) -> List[LineAmounts]:
    """
    Validate and compute a list of raw line dicts.

    Each dict uses the DocumentLine field names (quantity, unit_price,
    discount_percentage, discount_amount, tax_percentage, tax_inclusive).

    Raises:
        InvalidLineInputError: Naming the 1-based line that failed
    """
    computed = []
    for index, raw in enumerate(raw_lines, start=1):
        try:
            computed.append(compute_line(
                raw.get('quantity'),
                raw.get('unit_price'),
                discount_percentage=raw.get('discount_percentage'),
                discount_amount=raw.get('discount_amount'),
                tax_percentage=raw.get('tax_percentage', 0),
                tax_inclusive=bool(raw.get('tax_inclusive', False)),
            ))
        except InvalidLineInputError as exc:
            raise exc.for_line(index) from exc
    return computed
