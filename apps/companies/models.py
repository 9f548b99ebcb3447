# ==========================================
# apps/companies/models.py
# ==========================================

import re
import uuid

from django.conf import settings
from django.db import models


class CompanyRole(models.TextChoices):
    OWNER = 'owner', 'Owner'
    ADMIN = 'admin', 'Admin'
    MEMBER = 'member', 'Member'


class Company(models.Model):
    """Tenant that owns documents, payments and counterparties."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)
    code = models.CharField(
        max_length=10,
        blank=True,
        help_text='Document number prefix. Defaults to the first letters of the name.',
    )
    tax_number = models.CharField(max_length=50, blank=True)
    email = models.EmailField(blank=True)
    address = models.TextField(blank=True)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='owned_companies',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'companies'
        verbose_name_plural = 'companies'
        indexes = [
            models.Index(fields=['owner', 'created_at'], name='companies_owner_i_5c1f0e_idx'),
        ]
        ordering = ['name']

    def __str__(self):
        return self.name

    @property
    def document_code(self):
        """Prefix used by company-scoped document numbers (e.g. ACM-INV-2025-0001)."""
        if self.code:
            return self.code.upper()
        letters = re.sub(r'[^A-Za-z0-9]', '', self.name)[:3].upper()
        return letters or 'DOC'

    def has_member(self, user):
        return self.memberships.filter(user=user).exists()

    def get_user_role(self, user):
        try:
            return self.memberships.get(user=user).role
        except CompanyMembership.DoesNotExist:
            return None

    def is_admin(self, user):
        role = self.get_user_role(user)
        return role in [CompanyRole.OWNER, CompanyRole.ADMIN]


class CompanyMembership(models.Model):
    """User membership in a company with role."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='company_memberships',
    )
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='memberships')
    role = models.CharField(max_length=20, choices=CompanyRole.choices, default=CompanyRole.MEMBER)
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'company_memberships'
        unique_together = [['user', 'company']]
        indexes = [
            models.Index(fields=['company', 'role'], name='company_mem_company_8a2d41_idx'),
        ]
        ordering = ['joined_at']

    def __str__(self):
        return f"{self.user} in {self.company.name} ({self.role})"

    def save(self, *args, **kwargs):
        if self.company.owner_id == self.user_id:
            self.role = CompanyRole.OWNER
        super().save(*args, **kwargs)


class Counterparty(models.Model):
    """Fields shared by customers and suppliers."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=50, blank=True)
    tax_number = models.CharField(max_length=50, blank=True)
    address = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ['name']

    def __str__(self):
        return self.name


class Customer(Counterparty):
    """Party that receives quotations, invoices and credit notes."""

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='customers')

    class Meta(Counterparty.Meta):
        db_table = 'customers'
        indexes = [
            models.Index(fields=['company', 'name'], name='customers_company_3e9b7a_idx'),
        ]


class Supplier(Counterparty):
    """Party that receives purchase orders."""

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='suppliers')

    class Meta(Counterparty.Meta):
        db_table = 'suppliers'
        indexes = [
            models.Index(fields=['company', 'name'], name='suppliers_company_7d4c2f_idx'),
        ]
