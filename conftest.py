"""
Fixtures shared by every app's tests.
"""
import pytest
from decimal import Decimal
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from apps.companies.models import Customer, Supplier
from apps.companies.services import create_company
from apps.documents.models import DocumentKind, DocumentStatus
from apps.documents.services import create_document, transition_document


User = get_user_model()


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def user(db):
    """Create and return the main test user (company owner)."""
    return User.objects.create_user(
        username='owner',
        email='owner@example.com',
        password='TestPass123!',
    )


@pytest.fixture
def other_user(db):
    """Create and return a user who belongs to another company."""
    return User.objects.create_user(
        username='outsider',
        email='outsider@example.com',
        password='TestPass123!',
    )


@pytest.fixture
def company(user):
    """Create and return a company owned by ``user``."""
    return create_company(name='Acme Trading', owner=user, code='ACM')


@pytest.fixture
def other_company(other_user):
    """Create and return a company owned by ``other_user``."""
    return create_company(name='Globex Supplies', owner=other_user)


@pytest.fixture
def customer(company):
    """Create and return a customer of ``company``."""
    return Customer.objects.create(company=company, name='Wayne Enterprises', email='ap@wayne.example')


@pytest.fixture
def supplier(company):
    """Create and return a supplier of ``company``."""
    return Supplier.objects.create(company=company, name='Stark Components')


@pytest.fixture
def authenticated_client(api_client, user):
    """Return API client authenticated as the company owner."""
    refresh = RefreshToken.for_user(user)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client


@pytest.fixture
def other_client(other_user):
    """Return API client authenticated as the outsider."""
    client = APIClient()
    refresh = RefreshToken.for_user(other_user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


@pytest.fixture
def make_invoice(company, customer, user):
    """
    Factory for sent invoices with a single untaxed line.

    Usage: make_invoice(Decimal('1000.00'))
    """
    def _make(total=Decimal('1000.00'), *, owner_company=None, invoice_customer=None):
        owner_company = owner_company or company
        invoice = create_document(
            company=owner_company,
            kind=DocumentKind.INVOICE,
            customer=invoice_customer if invoice_customer is not None else (
                customer if owner_company == company else None
            ),
            lines=[{'description': 'Services', 'quantity': 1, 'unit_price': total}],
            created_by=user,
        )
        return transition_document(
            company=owner_company, document_id=invoice.id, new_status=DocumentStatus.SENT
        )
    return _make


@pytest.fixture
def make_credit_note(company, customer, user):
    """Factory for sent credit notes with a single untaxed line."""
    def _make(total=Decimal('100.00'), *, related_invoice=None):
        credit_note = create_document(
            company=company,
            kind=DocumentKind.CREDIT_NOTE,
            customer=customer,
            related_invoice=related_invoice,
            lines=[{'description': 'Return', 'quantity': 1, 'unit_price': total}],
            created_by=user,
        )
        return transition_document(
            company=company, document_id=credit_note.id, new_status=DocumentStatus.SENT
        )
    return _make
