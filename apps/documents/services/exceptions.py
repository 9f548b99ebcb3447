"""
Domain exceptions for documents app.

Each error kind has its own status code, message and stable code so the
API never answers with a generic failure.
"""
from rest_framework.exceptions import APIException


class InvalidLineInputError(APIException):
    """Line input is negative, non-numeric or out of range."""
    status_code = 400
    default_detail = 'Line input is invalid.'
    default_code = 'invalid_line_input'

    def __init__(self, detail=None, *, field=None, line=None):
        self.field = field
        self.line = line
        super().__init__(detail)

    def for_line(self, line):
        """Return a copy of this error that names the 1-based line number."""
        return InvalidLineInputError(
            f'Line {line}: {self.detail}', field=self.field, line=line
        )


class RoundingOverflowError(APIException):
    """Document totals drifted further than rounding can explain."""
    status_code = 500
    default_detail = 'Document totals are inconsistent with their lines.'
    default_code = 'rounding_overflow'


class SequenceGenerationFailedError(APIException):
    """No document number could be issued."""
    status_code = 503
    default_detail = 'Document numbering is temporarily unavailable, please retry.'
    default_code = 'sequence_generation_failed'


class DocumentNotFoundError(APIException):
    """Document not found for this company."""
    status_code = 404
    default_detail = 'Document not found.'
    default_code = 'document_not_found'


class InvalidStatusTransitionError(APIException):
    """Requested status change is not allowed for this document."""
    status_code = 400
    default_detail = 'This status change is not allowed.'
    default_code = 'invalid_status_transition'


class DocumentLockedError(APIException):
    """Document can no longer be edited or deleted."""
    status_code = 409
    default_detail = 'Document has allocations or a final status and can no longer be changed.'
    default_code = 'document_locked'


class InvalidCounterpartyError(APIException):
    """Customer/supplier is missing, of the wrong type or from another company."""
    status_code = 400
    default_detail = 'Customer or supplier is not valid for this document.'
    default_code = 'invalid_counterparty'
