"""
Tests for document number generation.

Tests cover:
- Number formats per document kind
- Gap-free sequences per company, kind and year
- Seeding from numbers that already exist
- Uniqueness under concurrent callers
- Provisional fallback when the counter is unavailable
"""

import logging
import threading
import pytest
from datetime import date
from django.db import connection, OperationalError

from apps.companies.services import create_company
from apps.documents.models import Document, DocumentKind, NumberSequence
from apps.documents.services import (
    SequenceGenerationFailedError,
    configure_backend,
    claim_manual_number,
    is_provisional_number,
    next_document_number,
)
from apps.documents.services import numbering
from apps.documents.services.numbering import PAYMENT, LockedCounterBackend, NativeSequenceBackend


ON = date(2025, 3, 14)


@pytest.mark.django_db
class TestNumberFormats:
    """Each kind has its own readable format."""

    @pytest.mark.parametrize('kind, expected', [
        (DocumentKind.INVOICE, 'ACM-INV-2025-0001'),
        (DocumentKind.QUOTATION, 'ACM-QUO-2025-0001'),
        (DocumentKind.PURCHASE_ORDER, 'ACM-LPO-2025-0001'),
        (DocumentKind.PROFORMA, 'PF-2025-0001'),
        (DocumentKind.CREDIT_NOTE, 'CN000001'),
        (PAYMENT, 'PAY-2025-0001'),
    ])
    def test_first_number(self, company, kind, expected):
        assert next_document_number(company=company, kind=kind, on_date=ON) == expected

    def test_unknown_kind(self, company):
        with pytest.raises(ValueError):
            next_document_number(company=company, kind='receipt', on_date=ON)


@pytest.mark.django_db
class TestSequences:
    """Counters are gap free and scoped."""

    def test_sequence_is_gap_free(self, company):
        numbers = [
            next_document_number(company=company, kind=DocumentKind.INVOICE, on_date=ON)
            for _ in range(3)
        ]

        assert numbers == ['ACM-INV-2025-0001', 'ACM-INV-2025-0002', 'ACM-INV-2025-0003']

    def test_kinds_have_separate_counters(self, company):
        next_document_number(company=company, kind=DocumentKind.INVOICE, on_date=ON)

        assert next_document_number(company=company, kind=DocumentKind.QUOTATION, on_date=ON) == 'ACM-QUO-2025-0001'

    def test_companies_have_separate_counters(self, company, other_company):
        next_document_number(company=company, kind=DocumentKind.PROFORMA, on_date=ON)

        assert next_document_number(company=other_company, kind=DocumentKind.PROFORMA, on_date=ON) == 'PF-2025-0001'

    def test_yearly_kinds_restart_each_year(self, company):
        next_document_number(company=company, kind=DocumentKind.INVOICE, on_date=ON)

        assert next_document_number(
            company=company, kind=DocumentKind.INVOICE, on_date=date(2026, 1, 2)
        ) == 'ACM-INV-2026-0001'

    def test_credit_notes_never_restart(self, company):
        next_document_number(company=company, kind=DocumentKind.CREDIT_NOTE, on_date=ON)

        assert next_document_number(
            company=company, kind=DocumentKind.CREDIT_NOTE, on_date=date(2026, 1, 2)
        ) == 'CN000002'
        assert NumberSequence.objects.get(company=company, kind=DocumentKind.CREDIT_NOTE).year == 0

    def test_counter_seeded_from_existing_numbers(self, company):
        """Numbers typed in before the counter existed are never reissued."""
        for number in ['ACM-INV-2025-0007', 'ACM-INV-2025-0012', 'ACM-INV-2025-TMP1735689600000123', 'ACM-INV-2024-0099']:
            Document.objects.create(
                company=company, kind=DocumentKind.INVOICE, document_number=number, issue_date=ON
            )

        assert next_document_number(company=company, kind=DocumentKind.INVOICE, on_date=ON) == 'ACM-INV-2025-0013'


@pytest.mark.django_db
class TestManualNumbers:
    """Hand-entered numbers in the counter's range are never reissued."""

    def test_number_ahead_of_counter_moves_it(self, company):
        next_document_number(company=company, kind=PAYMENT, on_date=ON)

        assert claim_manual_number(company=company, kind=PAYMENT, number='PAY-2025-0005') is True
        assert next_document_number(company=company, kind=PAYMENT, on_date=ON) == 'PAY-2025-0006'

    def test_number_behind_counter_leaves_it(self, company):
        for _ in range(3):
            next_document_number(company=company, kind=PAYMENT, on_date=ON)

        claim_manual_number(company=company, kind=PAYMENT, number='PAY-2025-0002')

        assert next_document_number(company=company, kind=PAYMENT, on_date=ON) == 'PAY-2025-0004'

    def test_year_is_taken_from_the_number(self, company):
        claim_manual_number(company=company, kind=PAYMENT, number='PAY-2024-0040')

        assert next_document_number(company=company, kind=PAYMENT, on_date=date(2024, 6, 1)) == 'PAY-2024-0041'
        assert next_document_number(company=company, kind=PAYMENT, on_date=ON) == 'PAY-2025-0001'

    def test_credit_note_range(self, company):
        claim_manual_number(company=company, kind=DocumentKind.CREDIT_NOTE, number='CN000010')

        assert next_document_number(company=company, kind=DocumentKind.CREDIT_NOTE, on_date=ON) == 'CN000011'

    def test_company_code_is_part_of_the_range(self, company):
        assert claim_manual_number(company=company, kind=DocumentKind.INVOICE, number='GLX-INV-2025-0009') is False
        assert next_document_number(company=company, kind=DocumentKind.INVOICE, on_date=ON) == 'ACM-INV-2025-0001'

    @pytest.mark.parametrize('number', ['BANK-001', 'PAY-2025-TMP1735689600000123', 'PAY-25-0003', ''])
    def test_other_numbers_are_ignored(self, company, number):
        assert claim_manual_number(company=company, kind=PAYMENT, number=number) is False
        assert not NumberSequence.objects.filter(company=company, kind=PAYMENT).exists()


@pytest.mark.django_db(transaction=True)
class TestConcurrentNumbering:
    """Concurrent callers never receive the same number."""

    def test_parallel_requests_get_distinct_numbers(self):
        from django.contrib.auth import get_user_model

        owner = get_user_model().objects.create_user(username='numbers', password='TestPass123!')
        company = create_company(name='Parallel', owner=owner, code='PAR')
        results, errors = [], []
        lock = threading.Lock()
        barrier = threading.Barrier(4)

        def worker():
            try:
                barrier.wait()
                for _ in range(5):
                    number = next_document_number(
                        company=company, kind=DocumentKind.INVOICE, on_date=ON, allow_provisional=False
                    )
                    with lock:
                        results.append(number)
            except Exception as exc:
                with lock:
                    errors.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(results) == 20
        assert sorted(results) == [f'PAR-INV-2025-{n:04d}' for n in range(1, 21)]


class FailingBackend:
    name = 'failing'

    def next_value(self, **kwargs):
        raise OperationalError('database is locked')


@pytest.mark.django_db
class TestProvisionalFallback:
    """A failing counter yields a marked provisional number."""

    def test_fallback_issues_provisional_number(self, company, monkeypatch, caplog):
        monkeypatch.setattr(numbering, '_backend', FailingBackend())

        with caplog.at_level(logging.WARNING, logger='apps.documents.services.numbering'):
            number = next_document_number(company=company, kind=DocumentKind.PROFORMA, on_date=ON)

        assert number.startswith('PF-2025-TMP')
        assert is_provisional_number(number)
        assert 'provisional number' in caplog.text

    def test_fallback_disabled(self, company, monkeypatch):
        monkeypatch.setattr(numbering, '_backend', FailingBackend())

        with pytest.raises(SequenceGenerationFailedError):
            next_document_number(
                company=company, kind=DocumentKind.INVOICE, on_date=ON, allow_provisional=False
            )

    def test_fallback_disabled_by_setting(self, company, monkeypatch, settings):
        settings.DOCUMENT_NUMBER_ALLOW_PROVISIONAL = False
        monkeypatch.setattr(numbering, '_backend', FailingBackend())

        with pytest.raises(SequenceGenerationFailedError):
            next_document_number(company=company, kind=DocumentKind.INVOICE, on_date=ON)

    def test_regular_numbers_are_not_provisional(self):
        assert not is_provisional_number('ACM-INV-2025-0001')
        assert not is_provisional_number('')


@pytest.mark.django_db
class TestBackendSelection:

    def test_auto_picks_backend_for_database(self, monkeypatch):
        monkeypatch.setattr(numbering, '_backend', None)
        backend = configure_backend('auto')

        expected = NativeSequenceBackend if connection.vendor == 'postgresql' else LockedCounterBackend
        assert isinstance(backend, expected)

    def test_unknown_backend_name(self, monkeypatch):
        monkeypatch.setattr(numbering, '_backend', None)

        with pytest.raises(ValueError):
            configure_backend('redis')

    def test_native_backend_elsewhere_falls_back(self, company, monkeypatch):
        if connection.vendor == 'postgresql':
            pytest.skip('native backend works on PostgreSQL')
        monkeypatch.setattr(numbering, '_backend', NativeSequenceBackend())

        number = next_document_number(company=company, kind=DocumentKind.INVOICE, on_date=ON)

        assert is_provisional_number(number)
