"""
Companies app services layer.

A company is the tenant boundary: documents, payments and counterparties
all hang off one, and users reach them only through a membership.
"""

from .exceptions import (
    CompaniesServiceError,
    CompanyNotFoundError,
    AlreadyMemberError,
    InsufficientPermissionsError,
    UserNotFoundError,
)

from .company_management import (
    create_company,
    get_company_for_user,
    get_user_companies,
    add_member,
    get_company_members,
    create_customer,
    create_supplier,
)


__all__ = [
    # Exceptions
    'CompaniesServiceError',
    'CompanyNotFoundError',
    'AlreadyMemberError',
    'InsufficientPermissionsError',
    'UserNotFoundError',

    # Company management
    'create_company',
    'get_company_for_user',
    'get_user_companies',
    'add_member',
    'get_company_members',
    'create_customer',
    'create_supplier',
]
