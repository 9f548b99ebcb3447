"""
API error boundary.

Every error leaving the API has the body ``{"detail": <message>, "code": <code>}``.
Domain errors are APIException subclasses and pass through DRF's own handler;
database and Django errors are mapped to a fixed message here so that raw
backend error objects never reach the client.
"""
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, OperationalError
from rest_framework import status
from rest_framework.exceptions import ErrorDetail
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


def _first_message(data):
    """Dig the first human-readable message out of a DRF error payload."""
    if isinstance(data, dict):
        if 'detail' in data:
            return _first_message(data['detail'])
        for field, value in data.items():
            message = _first_message(value)
            if message is not None:
                return message if field == 'non_field_errors' else f'{field}: {message}'
        return None
    if isinstance(data, (list, tuple)):
        return _first_message(data[0]) if data else None
    return str(data)


def _first_code(data, fallback):
    if isinstance(data, ErrorDetail):
        return data.code
    if isinstance(data, dict):
        for value in data.values():
            return _first_code(value, fallback)
    if isinstance(data, (list, tuple)) and data:
        return _first_code(data[0], fallback)
    return fallback


def api_exception_handler(exc, context):
    """Map every exception to the ``{detail, code}`` error body."""
    response = exception_handler(exc, context)

    if response is not None:
        payload = response.data
        body = {
            'detail': _first_message(payload) or 'Request failed.',
            'code': _first_code(payload, getattr(exc, 'default_code', 'error')),
        }
        if isinstance(payload, dict) and 'detail' not in payload:
            # Keep per-field errors for serializer validation failures
            body['errors'] = payload
        response.data = body
        return response

    if isinstance(exc, DjangoValidationError):
        return Response(
            {'detail': ' '.join(exc.messages), 'code': 'invalid'},
            status=status.HTTP_400_BAD_REQUEST,
        )

    if isinstance(exc, IntegrityError):
        logger.warning('Integrity error at API boundary: %s', exc)
        return Response(
            {'detail': 'The request conflicts with existing data.', 'code': 'conflict'},
            status=status.HTTP_409_CONFLICT,
        )

    if isinstance(exc, OperationalError):
        logger.warning('Database unavailable at API boundary: %s', exc)
        return Response(
            {'detail': 'The database is busy, please retry.', 'code': 'database_unavailable'},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    view = context.get('view')
    logger.exception('Unhandled error in %s', view.__class__.__name__ if view else 'unknown view')
    return Response(
        {'detail': 'An unexpected error occurred.', 'code': 'server_error'},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
