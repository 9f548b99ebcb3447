import pytest
from decimal import Decimal
from django.urls import reverse
from rest_framework import status

from apps.documents.models import Document, DocumentKind, DocumentStatus
from apps.payments.services import record_payment


def invoice_payload(company, customer, **overrides):
    payload = {
        'company': str(company.id),
        'kind': DocumentKind.INVOICE,
        'customer': str(customer.id),
        'issue_date': '2025-06-01',
        'due_date': '2025-06-30',
        'lines': [
            {'description': 'Consulting', 'quantity': '2', 'unit_price': '100', 'tax_percentage': '18'},
        ],
    }
    payload.update(overrides)
    return payload


# =============================================================================
# Document CRUD Tests
# =============================================================================

@pytest.mark.django_db
class TestDocumentCreate:
    """Tests for POST /api/documents/"""

    def test_create_invoice(self, authenticated_client, company, customer):
        url = reverse('documents:document-list')
        response = authenticated_client.post(url, invoice_payload(company, customer), format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['document_number'] == 'ACM-INV-2025-0001'
        assert response.data['total_amount'] == '236.00'
        assert response.data['tax_amount'] == '36.00'
        assert response.data['balance_due'] == '236.00'
        assert len(response.data['lines']) == 1
        assert response.data['customer']['name'] == customer.name

    def test_negative_quantity_is_invalid_line_input(self, authenticated_client, company, customer):
        url = reverse('documents:document-list')
        payload = invoice_payload(company, customer, lines=[{'quantity': '-1', 'unit_price': '10'}])
        response = authenticated_client.post(url, payload, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'invalid_line_input'

    def test_amount_too_large_is_invalid_line_input(self, authenticated_client, company, customer):
        url = reverse('documents:document-list')
        payload = invoice_payload(company, customer, lines=[{'quantity': '9999999999', 'unit_price': '9999999999'}])
        response = authenticated_client.post(url, payload, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'invalid_line_input'
        assert Document.objects.count() == 0

        listing = authenticated_client.get(url, {'company': str(company.id)})
        assert listing.status_code == status.HTTP_200_OK
        assert response.data['detail'].startswith('Line 1:')
        assert Document.objects.count() == 0

    def test_due_date_before_issue_date(self, authenticated_client, company, customer):
        url = reverse('documents:document-list')
        payload = invoice_payload(company, customer, due_date='2025-05-01')
        response = authenticated_client.post(url, payload, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'due_date' in response.data['errors']

    def test_create_in_foreign_company(self, other_client, company, customer):
        """Non-members cannot create documents in a company."""
        url = reverse('documents:document-list')
        response = other_client.post(url, invoice_payload(company, customer), format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_foreign_customer(self, authenticated_client, company, other_company):
        from apps.companies.models import Customer

        stranger = Customer.objects.create(company=other_company, name='Stranger')
        url = reverse('documents:document-list')
        response = authenticated_client.post(url, invoice_payload(company, stranger), format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'invalid_counterparty'

    def test_idempotency_key(self, authenticated_client, company, customer):
        url = reverse('documents:document-list')
        payload = invoice_payload(company, customer, idempotency_key='checkout-7')

        first = authenticated_client.post(url, payload, format='json')
        second = authenticated_client.post(url, payload, format='json')

        assert first.data['id'] == second.data['id']
        assert Document.objects.count() == 1


@pytest.mark.django_db
class TestDocumentList:
    """Tests for GET /api/documents/"""

    def test_list_only_own_company_documents(self, authenticated_client, other_client, make_invoice):
        make_invoice()
        url = reverse('documents:document-list')

        response = authenticated_client.get(url)
        assert response.status_code == status.HTTP_200_OK
        assert len(response.data['results']) == 1
        assert response.data['results'][0]['counterparty_name'] == 'Wayne Enterprises'

        response = other_client.get(url)
        assert len(response.data['results']) == 0

    def test_filter_by_kind(self, authenticated_client, make_invoice, make_credit_note):
        make_invoice()
        make_credit_note()
        url = reverse('documents:document-list')

        response = authenticated_client.get(url, {'kind': DocumentKind.CREDIT_NOTE})

        assert [d['kind'] for d in response.data['results']] == [DocumentKind.CREDIT_NOTE]

    def test_invalid_date_range(self, authenticated_client):
        url = reverse('documents:document-list')
        response = authenticated_client.get(url, {'date_from': '2025-02-01', 'date_to': '2025-01-01'})

        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestDocumentDetail:
    """Tests for GET/DELETE /api/documents/{id}/"""

    def test_other_tenant_gets_404(self, other_client, make_invoice):
        invoice = make_invoice()
        url = reverse('documents:document-detail', kwargs={'pk': invoice.id})

        response = other_client.get(url)

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert set(response.data) == {'detail', 'code'}

    def test_delete_sent_invoice_is_locked(self, authenticated_client, make_invoice):
        invoice = make_invoice()
        url = reverse('documents:document-detail', kwargs={'pk': invoice.id})

        response = authenticated_client.delete(url)

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['code'] == 'document_locked'


# =============================================================================
# Document Action Tests
# =============================================================================

@pytest.mark.django_db
class TestPreview:
    """Tests for POST /api/documents/preview/"""

    def test_preview_inclusive_line(self, authenticated_client):
        url = reverse('documents:document-preview')
        data = {'lines': [{'quantity': '1', 'unit_price': '236', 'tax_percentage': '18', 'tax_inclusive': True}]}

        response = authenticated_client.post(url, data, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['lines'][0]['tax_amount'] == '36.00'
        assert response.data['lines'][0]['line_total'] == '236.00'
        assert response.data['subtotal'] == '200.00'
        assert response.data['total_amount'] == '236.00'
        assert Document.objects.count() == 0

    def test_preview_percentage_over_hundred(self, authenticated_client):
        url = reverse('documents:document-preview')
        data = {'lines': [{'quantity': '1', 'unit_price': '10', 'discount_percentage': '101'}]}

        response = authenticated_client.post(url, data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'invalid_line_input'


@pytest.mark.django_db
class TestDocumentActions:

    def test_replace_lines(self, authenticated_client, make_invoice):
        invoice = make_invoice(Decimal('100.00'))
        url = reverse('documents:document-lines', kwargs={'pk': invoice.id})

        response = authenticated_client.put(
            url, {'lines': [{'quantity': '1', 'unit_price': '50'}]}, format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['total_amount'] == '50.00'

    def test_transition(self, authenticated_client, make_invoice):
        invoice = make_invoice()
        url = reverse('documents:document-transition', kwargs={'pk': invoice.id})

        response = authenticated_client.post(url, {'status': DocumentStatus.CANCELLED}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == DocumentStatus.CANCELLED

    def test_invalid_transition(self, authenticated_client, make_invoice):
        invoice = make_invoice()
        url = reverse('documents:document-transition', kwargs={'pk': invoice.id})

        response = authenticated_client.post(url, {'status': DocumentStatus.PAID}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'invalid_status_transition'

    def test_convert_quotation(self, authenticated_client, company, customer):
        from apps.documents.services import create_document

        quotation = create_document(
            company=company, kind=DocumentKind.QUOTATION, customer=customer,
            lines=[{'quantity': 1, 'unit_price': 80}],
        )
        url = reverse('documents:document-convert', kwargs={'pk': quotation.id})

        response = authenticated_client.post(url, {'target_kind': DocumentKind.INVOICE}, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['kind'] == DocumentKind.INVOICE
        assert response.data['source_document'] == quotation.id

    def test_invoice_allocations(self, authenticated_client, company, make_invoice):
        invoice = make_invoice(Decimal('300.00'))
        record_payment(company=company, amount=Decimal('120.00'), invoice_id=invoice.id)
        url = reverse('documents:document-allocations', kwargs={'pk': invoice.id})

        response = authenticated_client.get(url)

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data) == 1
        assert response.data[0]['allocated_amount'] == '120.00'
        assert response.data[0]['source_kind'] == 'payment'
