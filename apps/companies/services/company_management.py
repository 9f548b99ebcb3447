"""
Company management service.

Handles tenants, memberships and counterparties. Every other app resolves
the acting company through get_company_for_user(), so a user can never
reach another tenant's data.
"""

import logging
from uuid import UUID

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import transaction, IntegrityError

from apps.companies.models import (
    Company,
    CompanyMembership,
    CompanyRole,
    Customer,
    Supplier,
)

from .exceptions import (
    AlreadyMemberError,
    CompanyNotFoundError,
    InsufficientPermissionsError,
    UserNotFoundError,
)

logger = logging.getLogger(__name__)


@transaction.atomic
def create_company(
    *,
    name: str,
    owner,
    code: str = '',
    tax_number: str = '',
    email: str = '',
    address: str = '',
) -> Company:
    """
    Create a company and make the creator its owner.

    Args:
        name: Company name
        owner: User who will own the company
        code: Optional document number prefix
        tax_number: Optional tax registration number
        email: Optional contact email
        address: Optional postal address

    Returns:
        Created Company instance
    """
    company = Company.objects.create(
        name=name,
        owner=owner,
        code=code.strip().upper(),
        tax_number=tax_number,
        email=email,
        address=address,
    )
    CompanyMembership.objects.create(user=owner, company=company, role=CompanyRole.OWNER)

    logger.info('Company %s created by user %s', company.id, owner.pk)
    return company


def get_company_for_user(*, company_id: UUID, user) -> Company:
    """
    Resolve a company the user belongs to.

    Args:
        company_id: UUID of the company
        user: Acting user

    Returns:
        Company instance

    Raises:
        CompanyNotFoundError: If the company doesn't exist or the user
            is not a member (both look the same to the caller)
    """
    try:
        return Company.objects.get(id=company_id, memberships__user=user)
    except (Company.DoesNotExist, ValueError, ValidationError):
        raise CompanyNotFoundError(f"Company with ID {company_id} not found")


def get_user_companies(*, user):
    """Return the companies the user is a member of."""
    return Company.objects.filter(memberships__user=user).distinct()


@transaction.atomic
def add_member(
    *,
    company_id: UUID,
    user_id: int,
    added_by,
    role: str = CompanyRole.MEMBER,
) -> CompanyMembership:
    """
    Add an existing user to a company.

    Args:
        company_id: UUID of the company
        user_id: Primary key of the user to add
        added_by: User performing the action (must be owner or admin)
        role: Role to grant (owner role cannot be granted)

    Returns:
        Created CompanyMembership

    Raises:
        CompanyNotFoundError: If company doesn't exist or added_by is not a member
        InsufficientPermissionsError: If added_by is not owner/admin, or role is owner
        UserNotFoundError: If the user doesn't exist
        AlreadyMemberError: If the user is already a member
    """
    try:
        company = Company.objects.select_for_update().get(
            id=company_id, memberships__user=added_by
        )
    except Company.DoesNotExist:
        raise CompanyNotFoundError(f"Company with ID {company_id} not found")

    if not company.is_admin(added_by):
        raise InsufficientPermissionsError("Only owners and admins can add members")

    if role == CompanyRole.OWNER:
        raise InsufficientPermissionsError("The owner role cannot be granted")

    User = get_user_model()
    try:
        user = User.objects.get(pk=user_id)
    except (User.DoesNotExist, ValueError):
        raise UserNotFoundError(f"User with ID {user_id} not found")

    try:
        with transaction.atomic():
            membership = CompanyMembership.objects.create(
                user=user, company=company, role=role
            )
    except IntegrityError:
        raise AlreadyMemberError("User is already a member of this company")

    logger.info('User %s added to company %s as %s', user.pk, company.id, membership.role)
    return membership


def get_company_members(*, company: Company):
    """Return memberships of a company with users loaded."""
    return company.memberships.select_related('user')


def create_customer(*, company: Company, name: str, **fields) -> Customer:
    """Create a customer owned by the company."""
    return Customer.objects.create(company=company, name=name, **fields)


def create_supplier(*, company: Company, name: str, **fields) -> Supplier:
    """Create a supplier owned by the company."""
    return Supplier.objects.create(company=company, name=name, **fields)
