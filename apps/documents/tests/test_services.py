"""
Service layer tests for documents app.

Tests cover:
- Creation workflow (lines, totals, number in one transaction)
- Idempotent creation
- Status machine and conversions
- Line replacement and locking
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal
from io import StringIO
from django.core.management import call_command

from apps.companies.models import Customer, Supplier
from apps.documents.models import Document, DocumentKind, DocumentLine, DocumentStatus
from apps.documents.services import (
    create_document,
    get_document,
    replace_document_lines,
    transition_document,
    convert_document,
    mark_overdue_invoices,
    delete_document,
)
from apps.documents.services.exceptions import (
    DocumentLockedError,
    DocumentNotFoundError,
    InvalidCounterpartyError,
    InvalidLineInputError,
    InvalidStatusTransitionError,
)
from apps.payments.models import AllocationSourceKind
from apps.payments.services import apply_allocation, record_payment


LINES = [
    {'description': 'Consulting', 'quantity': 2, 'unit_price': 100, 'tax_percentage': 18},
    {'description': 'Licence', 'quantity': 1, 'unit_price': 236, 'tax_percentage': 18, 'tax_inclusive': True},
]


@pytest.mark.django_db
class TestCreateDocument:
    """Tests for create_document()."""

    def test_create_invoice(self, company, customer, user):
        invoice = create_document(
            company=company,
            kind=DocumentKind.INVOICE,
            customer=customer,
            lines=LINES,
            created_by=user,
            issue_date=date(2025, 5, 1),
            due_date=date(2025, 5, 31),
        )

        assert invoice.document_number == 'ACM-INV-2025-0001'
        assert invoice.status == DocumentStatus.DRAFT
        assert invoice.subtotal == Decimal('400.00')
        assert invoice.tax_amount == Decimal('72.00')
        assert invoice.total_amount == Decimal('472.00')
        assert invoice.balance_due == Decimal('472.00')
        assert invoice.paid_amount == Decimal('0.00')
        assert not invoice.is_provisional_number

        lines = list(invoice.lines.all())
        assert [line.position for line in lines] == [1, 2]
        assert lines[1].tax_inclusive is True
        assert lines[1].taxable_amount == Decimal('200.00')

    def test_create_credit_note_sets_balance(self, company, customer):
        credit_note = create_document(
            company=company,
            kind=DocumentKind.CREDIT_NOTE,
            customer=customer,
            lines=[{'quantity': 1, 'unit_price': 50}],
        )

        assert credit_note.document_number == 'CN000001'
        assert credit_note.balance == Decimal('50.00')
        assert credit_note.balance_due == Decimal('0.00')

    def test_invalid_line_writes_nothing(self, company, customer):
        lines = LINES + [{'quantity': 1, 'unit_price': -5}]

        with pytest.raises(InvalidLineInputError) as exc_info:
            create_document(company=company, kind=DocumentKind.INVOICE, customer=customer, lines=lines)

        assert exc_info.value.line == 3
        assert Document.objects.count() == 0
        assert DocumentLine.objects.count() == 0

    def test_oversized_line_writes_nothing(self, company, customer):
        lines = [{'quantity': '9999999999', 'unit_price': '9999999999'}]

        with pytest.raises(InvalidLineInputError) as exc_info:
            create_document(company=company, kind=DocumentKind.INVOICE, customer=customer, lines=lines)

        assert exc_info.value.line == 1
        assert Document.objects.count() == 0

    def test_failed_document_does_not_consume_a_number(self, company, customer):
        with pytest.raises(InvalidLineInputError):
            create_document(
                company=company, kind=DocumentKind.INVOICE, customer=customer,
                lines=[{'quantity': 'many', 'unit_price': 1}],
            )

        invoice = create_document(
            company=company, kind=DocumentKind.INVOICE, customer=customer,
            lines=LINES, issue_date=date(2025, 1, 1),
        )
        assert invoice.document_number == 'ACM-INV-2025-0001'

    def test_idempotency_key_returns_first_document(self, company, customer):
        first = create_document(
            company=company, kind=DocumentKind.INVOICE, customer=customer,
            lines=LINES, idempotency_key='order-42',
        )
        second = create_document(
            company=company, kind=DocumentKind.INVOICE, customer=customer,
            lines=LINES, idempotency_key='order-42',
        )

        assert second.pk == first.pk
        assert Document.objects.filter(company=company).count() == 1

    def test_customer_from_other_company(self, company, other_company):
        stranger = Customer.objects.create(company=other_company, name='Stranger')

        with pytest.raises(InvalidCounterpartyError):
            create_document(company=company, kind=DocumentKind.INVOICE, customer=stranger, lines=LINES)

    def test_purchase_order_needs_supplier_not_customer(self, company, customer, supplier):
        with pytest.raises(InvalidCounterpartyError):
            create_document(company=company, kind=DocumentKind.PURCHASE_ORDER, customer=customer, lines=LINES)

        order = create_document(company=company, kind=DocumentKind.PURCHASE_ORDER, supplier=supplier, lines=LINES)
        assert order.counterparty == supplier
        assert order.document_number.startswith('ACM-LPO-')

    def test_invoice_cannot_have_supplier(self, company, supplier):
        with pytest.raises(InvalidCounterpartyError):
            create_document(company=company, kind=DocumentKind.INVOICE, supplier=supplier, lines=LINES)

    def test_related_invoice_only_for_credit_notes(self, company, customer, make_invoice):
        invoice = make_invoice()

        with pytest.raises(InvalidCounterpartyError):
            create_document(
                company=company, kind=DocumentKind.INVOICE, customer=customer,
                lines=LINES, related_invoice=invoice,
            )

        credit_note = create_document(
            company=company, kind=DocumentKind.CREDIT_NOTE, customer=customer,
            lines=[{'quantity': 1, 'unit_price': 10}], related_invoice=invoice,
        )
        assert list(invoice.credit_notes.all()) == [credit_note]

    def test_unknown_kind(self, company):
        with pytest.raises(ValueError):
            create_document(company=company, kind='receipt', lines=LINES)


@pytest.mark.django_db
class TestGetDocument:

    def test_other_company_document_not_found(self, other_company, make_invoice):
        invoice = make_invoice()

        with pytest.raises(DocumentNotFoundError):
            get_document(company=other_company, document_id=invoice.id)

    def test_malformed_id(self, company):
        with pytest.raises(DocumentNotFoundError):
            get_document(company=company, document_id='not-a-uuid')


@pytest.mark.django_db
class TestTransitions:
    """Tests for transition_document()."""

    def test_quotation_lifecycle(self, company, customer):
        quotation = create_document(company=company, kind=DocumentKind.QUOTATION, customer=customer, lines=LINES)

        quotation = transition_document(company=company, document_id=quotation.id, new_status=DocumentStatus.SENT)
        quotation = transition_document(company=company, document_id=quotation.id, new_status=DocumentStatus.ACCEPTED)

        assert quotation.status == DocumentStatus.ACCEPTED

    def test_invoice_cannot_be_marked_paid_by_hand(self, make_invoice, company):
        invoice = make_invoice()

        with pytest.raises(InvalidStatusTransitionError):
            transition_document(company=company, document_id=invoice.id, new_status=DocumentStatus.PAID)

    def test_cancelled_is_final(self, make_invoice, company):
        invoice = make_invoice()
        transition_document(company=company, document_id=invoice.id, new_status=DocumentStatus.CANCELLED)

        with pytest.raises(InvalidStatusTransitionError):
            transition_document(company=company, document_id=invoice.id, new_status=DocumentStatus.SENT)

    def test_purchase_order_lifecycle(self, company, supplier):
        order = create_document(company=company, kind=DocumentKind.PURCHASE_ORDER, supplier=supplier, lines=LINES)

        for new_status in [DocumentStatus.SENT, DocumentStatus.APPROVED, DocumentStatus.RECEIVED]:
            order = transition_document(company=company, document_id=order.id, new_status=new_status)

        assert order.status == DocumentStatus.RECEIVED


@pytest.mark.django_db
class TestConversion:
    """Tests for convert_document()."""

    def test_quotation_to_invoice(self, company, customer, user):
        quotation = create_document(
            company=company, kind=DocumentKind.QUOTATION, customer=customer, lines=LINES,
            issue_date=date.today(),
        )

        invoice = convert_document(
            company=company, document_id=quotation.id, target_kind=DocumentKind.INVOICE, created_by=user
        )

        quotation.refresh_from_db()
        assert quotation.status == DocumentStatus.CONVERTED
        assert invoice.kind == DocumentKind.INVOICE
        assert invoice.source_document == quotation
        assert invoice.customer == customer
        assert invoice.total_amount == quotation.total_amount
        assert invoice.lines.count() == 2
        assert invoice.reference == quotation.document_number

    def test_converted_quotation_cannot_convert_again(self, company, customer):
        quotation = create_document(company=company, kind=DocumentKind.QUOTATION, customer=customer, lines=LINES)
        convert_document(company=company, document_id=quotation.id, target_kind=DocumentKind.PROFORMA)

        with pytest.raises(InvalidStatusTransitionError):
            convert_document(company=company, document_id=quotation.id, target_kind=DocumentKind.INVOICE)

    def test_invoice_cannot_be_converted(self, company, make_invoice):
        invoice = make_invoice()

        with pytest.raises(InvalidStatusTransitionError):
            convert_document(company=company, document_id=invoice.id, target_kind=DocumentKind.PROFORMA)


@pytest.mark.django_db
class TestReplaceLines:
    """Tests for replace_document_lines()."""

    def test_replace_recomputes_totals(self, company, make_invoice):
        invoice = make_invoice(Decimal('100.00'))

        invoice = replace_document_lines(
            company=company,
            document_id=invoice.id,
            lines=[{'quantity': 3, 'unit_price': 50, 'tax_percentage': 10}],
        )

        assert invoice.total_amount == Decimal('165.00')
        assert invoice.balance_due == Decimal('165.00')
        assert invoice.lines.count() == 1

    def test_invoice_with_payment_is_locked(self, company, make_invoice):
        invoice = make_invoice(Decimal('100.00'))
        record_payment(company=company, amount=Decimal('40.00'), invoice_id=invoice.id)

        with pytest.raises(DocumentLockedError):
            replace_document_lines(company=company, document_id=invoice.id, lines=LINES)

    def test_invalid_replacement_keeps_old_lines(self, company, make_invoice):
        invoice = make_invoice(Decimal('100.00'))

        with pytest.raises(InvalidLineInputError):
            replace_document_lines(
                company=company, document_id=invoice.id,
                lines=[{'quantity': 1, 'unit_price': 10, 'tax_percentage': 120}],
            )

        invoice.refresh_from_db()
        assert invoice.total_amount == Decimal('100.00')
        assert invoice.lines.count() == 1


@pytest.mark.django_db
class TestOverdueAndDelete:

    def test_mark_overdue(self, company, customer):
        invoice = create_document(
            company=company, kind=DocumentKind.INVOICE, customer=customer, lines=LINES,
            issue_date=date(2025, 1, 1), due_date=date(2025, 1, 31),
        )
        transition_document(company=company, document_id=invoice.id, new_status=DocumentStatus.SENT)

        assert mark_overdue_invoices(company=company, as_of=date(2025, 1, 31)) == 0
        assert mark_overdue_invoices(company=company, as_of=date(2025, 2, 1)) == 1

        invoice.refresh_from_db()
        assert invoice.status == DocumentStatus.OVERDUE

    def test_management_command_dry_run(self, company, customer):
        invoice = create_document(
            company=company, kind=DocumentKind.INVOICE, customer=customer, lines=LINES,
            issue_date=date.today() - timedelta(days=60), due_date=date.today() - timedelta(days=30),
        )
        transition_document(company=company, document_id=invoice.id, new_status=DocumentStatus.SENT)

        out = StringIO()
        call_command('mark_overdue_invoices', '--dry-run', stdout=out)
        invoice.refresh_from_db()
        assert invoice.status == DocumentStatus.SENT

        call_command('mark_overdue_invoices', stdout=out)
        invoice.refresh_from_db()
        assert invoice.status == DocumentStatus.OVERDUE

    def test_delete_draft(self, company, customer):
        draft = create_document(company=company, kind=DocumentKind.QUOTATION, customer=customer, lines=LINES)

        delete_document(company=company, document_id=draft.id)

        assert not Document.objects.filter(pk=draft.pk).exists()
        assert DocumentLine.objects.count() == 0

    def test_sent_document_cannot_be_deleted(self, company, make_invoice):
        invoice = make_invoice()

        with pytest.raises(DocumentLockedError):
            delete_document(company=company, document_id=invoice.id)
