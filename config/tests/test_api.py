import pytest
from django.db import IntegrityError, OperationalError
from django.urls import reverse
from rest_framework import status
from rest_framework.exceptions import ValidationError

from config.exceptions import api_exception_handler


@pytest.mark.django_db
class TestHealthAndAuth:

    def test_health_check(self, api_client):
        response = api_client.get(reverse('health-check'))

        assert response.status_code == status.HTTP_200_OK
        assert response.json()['status'] == 'ok'

    def test_obtain_token_and_use_it(self, api_client, user):
        response = api_client.post(
            reverse('token_obtain_pair'),
            {'username': 'owner', 'password': 'TestPass123!'},
            format='json',
        )
        assert response.status_code == status.HTTP_200_OK

        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")
        assert api_client.get(reverse('companies:company-list')).status_code == status.HTTP_200_OK

    def test_schema_renders(self, authenticated_client):
        response = authenticated_client.get(reverse('api-schema'))

        assert response.status_code == status.HTTP_200_OK


class TestExceptionHandler:
    """Every error becomes a {detail, code} body."""

    def test_field_errors_keep_details(self):
        response = api_exception_handler(ValidationError({'amount': ['A valid number is required.']}), {})

        assert response.status_code == 400
        assert response.data['detail'] == 'amount: A valid number is required.'
        assert response.data['errors'] == {'amount': ['A valid number is required.']}

    def test_integrity_error(self):
        response = api_exception_handler(IntegrityError('UNIQUE constraint failed'), {})

        assert response.status_code == 409
        assert response.data == {'detail': 'The request conflicts with existing data.', 'code': 'conflict'}

    def test_operational_error(self):
        response = api_exception_handler(OperationalError('database is locked'), {})

        assert response.status_code == 503
        assert response.data['code'] == 'database_unavailable'

    def test_unexpected_error_is_hidden(self, caplog):
        response = api_exception_handler(KeyError('secret internals'), {})

        assert response.status_code == 500
        assert response.data == {'detail': 'An unexpected error occurred.', 'code': 'server_error'}
        assert 'secret internals' not in str(response.data)
        assert 'Unhandled error' in caplog.text
