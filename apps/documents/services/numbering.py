"""
Document number generation.

Numbers are human readable and unique per company, e.g. ``ACM-INV-2025-0042``,
``PF-2025-0007`` or ``CN000123``. Every scheme is backed by a counter row in
``document_number_sequences`` that the database serializes, so two concurrent
requests can never observe the same "last number":

* ``NativeSequenceBackend`` - one ``INSERT ... ON CONFLICT DO UPDATE ...
  RETURNING`` statement on PostgreSQL, an atomic increment in the database.
* ``LockedCounterBackend`` - ``SELECT ... FOR UPDATE`` on the counter row;
  works on any backend (SQLite serializes writers itself).

The backend is picked once at startup (see ``DocumentsConfig.ready``). When a
counter row is first created it is seeded from the highest number already in
use, so numbers entered before the counter existed are never reissued.
Numbers entered by hand later go through ``claim_manual_number``, which moves
the counter past them.

If the database cannot hand out a number, ``next_document_number`` falls back
to a provisional number such as ``PF-2025-TMP1735689600000123``. The TMP
marker keeps it out of the authoritative range and the event is logged.
"""

import logging
import random
import re
import time
import uuid
from datetime import date
from typing import NamedTuple, Optional

from django.apps import apps
from django.conf import settings
from django.db import connection, transaction, DatabaseError, IntegrityError
from django.utils import timezone

from apps.documents.models import DocumentKind, NumberSequence

from .exceptions import SequenceGenerationFailedError

logger = logging.getLogger(__name__)

PAYMENT = 'payment'
PROVISIONAL_MARKER = 'TMP'
_PROVISIONAL_RE = re.compile(PROVISIONAL_MARKER + r'\d{16}$')


class NumberingScheme(NamedTuple):
    """How numbers for one kind look and where existing ones live."""
    key: str
    template: str        # prefix template, formatted with code= and year=
    width: int           # zero padding of the running number
    yearly: bool         # counter restarts every calendar year
    model_label: str
    number_field: str

    def prefix(self, company, year: int) -> str:
        return self.template.format(code=company.document_code, year=year)

    def counter_year(self, year: int) -> int:
        return year if self.yearly else 0

    def format(self, company, year: int, value: int) -> str:
        return f"{self.prefix(company, year)}{str(value).zfill(self.width)}"


SCHEMES = {
    DocumentKind.QUOTATION: NumberingScheme(
        DocumentKind.QUOTATION, '{code}-QUO-{year}-', 4, True, 'documents.Document', 'document_number'),
    DocumentKind.INVOICE: NumberingScheme(
        DocumentKind.INVOICE, '{code}-INV-{year}-', 4, True, 'documents.Document', 'document_number'),
    DocumentKind.PURCHASE_ORDER: NumberingScheme(
        DocumentKind.PURCHASE_ORDER, '{code}-LPO-{year}-', 4, True, 'documents.Document', 'document_number'),
    DocumentKind.PROFORMA: NumberingScheme(
        DocumentKind.PROFORMA, 'PF-{year}-', 4, True, 'documents.Document', 'document_number'),
    DocumentKind.CREDIT_NOTE: NumberingScheme(
        DocumentKind.CREDIT_NOTE, 'CN', 6, False, 'documents.Document', 'document_number'),
    PAYMENT: NumberingScheme(
        PAYMENT, 'PAY-{year}-', 4, True, 'payments.Payment', 'payment_number'),
}


def get_scheme(kind: str) -> NumberingScheme:
    try:
        return SCHEMES[kind]
    except KeyError:
        raise ValueError(f"No numbering scheme for {kind!r}")


def highest_existing_number(*, company, scheme: NumberingScheme, year: int) -> int:
    """
    Highest running number already used for this company/scheme/year.

    Only numbers that match ``<prefix><digits>`` exactly count; provisional
    numbers and hand-typed oddities are ignored.
    """
    prefix = scheme.prefix(company, year)
    pattern = re.compile(re.escape(prefix) + r'(\d+)$')
    model = apps.get_model(scheme.model_label)
    numbers = model.objects.filter(
        company=company,
        **{f'{scheme.number_field}__startswith': prefix}
    ).values_list(scheme.number_field, flat=True)

    highest = 0
    for number in numbers:
        match = pattern.match(number)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


def _locked_sequence(*, company, scheme: NumberingScheme, year: int) -> NumberSequence:
    """
    Fetch the counter row with a row lock, creating and seeding it if needed.

    Must run inside a transaction.
    """
    lookup = {'company': company, 'kind': scheme.key, 'year': scheme.counter_year(year)}
    try:
        return NumberSequence.objects.select_for_update().get(**lookup)
    except NumberSequence.DoesNotExist:
        seed = highest_existing_number(company=company, scheme=scheme, year=year)
        try:
            with transaction.atomic():
                return NumberSequence.objects.create(last_value=seed, **lookup)
        except IntegrityError:
            # Another request created the row first
            return NumberSequence.objects.select_for_update().get(**lookup)


class LockedCounterBackend:
    """Counter row guarded by SELECT ... FOR UPDATE. Portable."""

    name = 'locked'

    def next_value(self, *, company, scheme: NumberingScheme, year: int) -> int:
        with transaction.atomic():
            sequence = _locked_sequence(company=company, scheme=scheme, year=year)
            sequence.last_value += 1
            sequence.save(update_fields=['last_value', 'updated_at'])
            return sequence.last_value


class NativeSequenceBackend:
    """Atomic upsert-and-increment on PostgreSQL."""

    name = 'native'

    INCREMENT_SQL = (
        'UPDATE document_number_sequences '
        'SET last_value = last_value + 1, updated_at = NOW() '
        'WHERE company_id = %s AND kind = %s AND year = %s '
        'RETURNING last_value'
    )
    UPSERT_SQL = (
        'INSERT INTO document_number_sequences (id, company_id, kind, year, last_value, updated_at) '
        'VALUES (%s, %s, %s, %s, %s, NOW()) '
        'ON CONFLICT (company_id, kind, year) DO UPDATE '
        'SET last_value = document_number_sequences.last_value + 1, updated_at = NOW() '
        'RETURNING last_value'
    )

    def next_value(self, *, company, scheme: NumberingScheme, year: int) -> int:
        if connection.vendor != 'postgresql':
            raise SequenceGenerationFailedError(
                f'Native numbering needs PostgreSQL, connected to {connection.vendor}.'
            )
        counter_year = scheme.counter_year(year)

        with connection.cursor() as cursor:
            cursor.execute(self.INCREMENT_SQL, [company.pk, str(scheme.key), counter_year])
            row = cursor.fetchone()
            if row is None:
                seed = highest_existing_number(company=company, scheme=scheme, year=year)
                cursor.execute(
                    self.UPSERT_SQL,
                    [uuid.uuid4(), company.pk, str(scheme.key), counter_year, seed + 1],
                )
                row = cursor.fetchone()

        if row is None:
            raise SequenceGenerationFailedError()
        return row[0]


BACKENDS = {
    LockedCounterBackend.name: LockedCounterBackend,
    NativeSequenceBackend.name: NativeSequenceBackend,
}

_backend = None


def configure_backend(name: Optional[str] = None):
    """
    Select the numbering backend.

    ``auto`` picks the native backend on PostgreSQL and the locked counter
    everywhere else. Called once from ``DocumentsConfig.ready``.
    """
    global _backend

    name = name or getattr(settings, 'DOCUMENT_NUMBERING_BACKEND', 'auto')
    if name == 'auto':
        name = NativeSequenceBackend.name if connection.vendor == 'postgresql' else LockedCounterBackend.name
    try:
        _backend = BACKENDS[name]()
    except KeyError:
        raise ValueError(
            f"Unknown DOCUMENT_NUMBERING_BACKEND {name!r}, expected one of: auto, {', '.join(BACKENDS)}"
        )

    logger.info('Document numbering backend: %s (database %s)', _backend.name, connection.vendor)
    return _backend


def get_sequence_backend():
    if _backend is None:
        return configure_backend()
    return _backend


def provisional_number(*, company, scheme: NumberingScheme, year: int) -> str:
    """Client-side surrogate: prefix + TMP + epoch millis + 3 random digits."""
    millis = int(time.time() * 1000)
    return f"{scheme.prefix(company, year)}{PROVISIONAL_MARKER}{millis:013d}{random.randint(0, 999):03d}"


def is_provisional_number(number: str) -> bool:
    return bool(_PROVISIONAL_RE.search(number or ''))


def next_document_number(
    *,
    company,
    kind: str,
    on_date: Optional[date] = None,
    allow_provisional: Optional[bool] = None,
) -> str:
    """
    Issue the next number for a company and document kind.

    The authoritative counter is always tried first, inside a savepoint so
    a failure leaves the caller's transaction usable.

    Args:
        company: Company the number belongs to
        kind: DocumentKind value, or ``'payment'``
        on_date: Date that decides the year (default: today)
        allow_provisional: Fall back to a provisional number on failure
            (default: settings.DOCUMENT_NUMBER_ALLOW_PROVISIONAL)

    Returns:
        Document number string

    Raises:
        SequenceGenerationFailedError: If numbering failed and provisional
            numbers are not allowed
    """
    scheme = get_scheme(kind)
    year = (on_date or timezone.localdate()).year
    if allow_provisional is None:
        allow_provisional = getattr(settings, 'DOCUMENT_NUMBER_ALLOW_PROVISIONAL', True)

    try:
        with transaction.atomic():
            value = get_sequence_backend().next_value(company=company, scheme=scheme, year=year)
    except (DatabaseError, SequenceGenerationFailedError) as exc:
        if not allow_provisional:
            if isinstance(exc, SequenceGenerationFailedError):
                raise
            raise SequenceGenerationFailedError() from exc

        number = provisional_number(company=company, scheme=scheme, year=year)
        logger.warning(
            'Numbering failed for company %s kind %s (%s: %s); issued provisional number %s',
            company.pk, scheme.key, exc.__class__.__name__, exc, number,
        )
        return number

    return scheme.format(company, year, value)


def _authoritative_pattern(company, scheme: NumberingScheme):
    parts = []
    for part in re.split(r'(\{code\}|\{year\})', scheme.template):
        if part == '{code}':
            parts.append(re.escape(company.document_code))
        elif part == '{year}':
            parts.append(r'(?P<year>\d{4})')
        else:
            parts.append(re.escape(part))
    return re.compile(''.join(parts) + r'(?P<value>\d+)$')


def claim_manual_number(*, company, kind: str, number: str) -> bool:
    """
    Keep the counter ahead of a hand-entered number.

    A number typed by the client that looks like one the counter would issue
    (``PAY-2025-0007``) moves the counter for that year up to its running
    value, so the counter never hands the same number out later. Other
    numbers (``BANK-001``) are left alone. Call it in the same transaction
    that stores the number.

    Returns:
        True if the number is in the authoritative range
    """
    scheme = get_scheme(kind)
    match = _authoritative_pattern(company, scheme).match(number or '')
    if match is None:
        return False

    if 'year' in match.re.groupindex:
        year = int(match.group('year'))
    else:
        year = timezone.localdate().year
    value = int(match.group('value'))

    with transaction.atomic():
        sequence = _locked_sequence(company=company, scheme=scheme, year=year)
        if sequence.last_value < value:
            logger.info(
                'Manual number %s moves the %s counter of company %s from %s to %s',
                number, scheme.key, company.pk, sequence.last_value, value,
            )
            sequence.last_value = value
            sequence.save(update_fields=['last_value', 'updated_at'])
    return True
