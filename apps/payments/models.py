# ==========================================
# apps/payments/models.py
# ==========================================

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q


class PaymentMethod(models.TextChoices):
    CASH = 'cash', 'Cash'
    CHEQUE = 'cheque', 'Cheque'
    BANK_TRANSFER = 'bank_transfer', 'Bank Transfer'
    MOBILE_MONEY = 'mobile_money', 'Mobile Money'
    CREDIT_CARD = 'credit_card', 'Credit Card'
    OTHER = 'other', 'Other'


class AllocationSourceKind(models.TextChoices):
    PAYMENT = 'payment', 'Payment'
    CREDIT_NOTE = 'credit_note', 'Credit Note'


class Payment(models.Model):
    """Money received from a customer, applied to invoices through allocations."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(
        'companies.Company',
        on_delete=models.CASCADE,
        related_name='payments'
    )
    customer = models.ForeignKey(
        'companies.Customer',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='payments'
    )
    payment_number = models.CharField(max_length=50)
    is_provisional_number = models.BooleanField(
        default=False,
        help_text='Number was issued by the fallback path and needs review'
    )
    payment_date = models.DateField()
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    applied_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    method = models.CharField(max_length=20, choices=PaymentMethod.choices, default=PaymentMethod.BANK_TRANSFER)
    reference = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='recorded_payments'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'payments'
        ordering = ['-payment_date', '-created_at']
        indexes = [
            models.Index(fields=['company', 'payment_date'], name='payments_company_date_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['company', 'payment_number'],
                name='uniq_payment_number_per_company'
            ),
            models.CheckConstraint(condition=~Q(amount=0), name='payment_amount_nonzero'),
            models.CheckConstraint(condition=Q(applied_amount__gte=0), name='payment_applied_non_negative'),
        ]

    def __str__(self):
        return f"{self.payment_number} ({self.amount})"

    @property
    def unapplied_amount(self):
        return self.amount - self.applied_amount


class Allocation(models.Model):
    """
    Amount of a payment or credit note applied to one invoice.

    One row per (source, invoice) pair; applying the same source to the
    same invoice again increases ``allocated_amount``.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(
        'companies.Company',
        on_delete=models.CASCADE,
        related_name='allocations'
    )
    source_kind = models.CharField(max_length=20, choices=AllocationSourceKind.choices)
    payment = models.ForeignKey(
        Payment,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='allocations'
    )
    credit_note = models.ForeignKey(
        'documents.Document',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='credit_allocations'
    )
    invoice = models.ForeignKey(
        'documents.Document',
        on_delete=models.PROTECT,
        related_name='allocations'
    )
    allocated_amount = models.DecimalField(max_digits=14, decimal_places=2)
    allocated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='allocations'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'allocations'
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['company', 'invoice'], name='allocations_invoice_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['payment', 'invoice'],
                condition=Q(payment__isnull=False),
                name='uniq_payment_allocation'
            ),
            models.UniqueConstraint(
                fields=['credit_note', 'invoice'],
                condition=Q(credit_note__isnull=False),
                name='uniq_credit_note_allocation'
            ),
            models.CheckConstraint(
                condition=(
                    Q(source_kind='payment', payment__isnull=False, credit_note__isnull=True)
                    | Q(source_kind='credit_note', credit_note__isnull=False, payment__isnull=True)
                ),
                name='allocation_single_source'
            ),
            models.CheckConstraint(condition=Q(allocated_amount__gt=0), name='allocation_amount_positive'),
        ]

    def __str__(self):
        return f"{self.source} -> {self.invoice.document_number}: {self.allocated_amount}"

    @property
    def source(self):
        return self.payment if self.source_kind == AllocationSourceKind.PAYMENT else self.credit_note

    @property
    def source_number(self):
        source = self.source
        if source is None:
            return None
        return source.payment_number if self.source_kind == AllocationSourceKind.PAYMENT else source.document_number
