# ==========================================
# apps/documents/models.py
# ==========================================

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q


class DocumentKind(models.TextChoices):
    QUOTATION = 'quotation', 'Quotation'
    INVOICE = 'invoice', 'Invoice'
    PROFORMA = 'proforma', 'Proforma Invoice'
    CREDIT_NOTE = 'credit_note', 'Credit Note'
    PURCHASE_ORDER = 'purchase_order', 'Purchase Order (LPO)'


class DocumentStatus(models.TextChoices):
    DRAFT = 'draft', 'Draft'
    SENT = 'sent', 'Sent'
    ACCEPTED = 'accepted', 'Accepted'
    EXPIRED = 'expired', 'Expired'
    CONVERTED = 'converted', 'Converted'
    PARTIAL = 'partial', 'Partially Paid'
    PAID = 'paid', 'Paid'
    OVERDUE = 'overdue', 'Overdue'
    APPLIED = 'applied', 'Applied'
    APPROVED = 'approved', 'Approved'
    RECEIVED = 'received', 'Received'
    CANCELLED = 'cancelled', 'Cancelled'


MONEY = {'max_digits': 14, 'decimal_places': 2, 'default': Decimal('0.00')}


class Document(models.Model):
    """
    Quotation, invoice, proforma, credit note or purchase order.

    Money fields are derived from the lines and only change through a
    full line replacement or through the allocation engine.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(
        'companies.Company',
        on_delete=models.CASCADE,
        related_name='documents'
    )
    kind = models.CharField(max_length=20, choices=DocumentKind.choices, db_index=True)
    document_number = models.CharField(max_length=50)
    is_provisional_number = models.BooleanField(
        default=False,
        help_text='Number was issued by the fallback path and needs review'
    )
    status = models.CharField(
        max_length=20,
        choices=DocumentStatus.choices,
        default=DocumentStatus.DRAFT,
        db_index=True
    )

    # Counterparties
    customer = models.ForeignKey(
        'companies.Customer',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='documents'
    )
    supplier = models.ForeignKey(
        'companies.Supplier',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='documents'
    )

    # Dates
    issue_date = models.DateField()
    due_date = models.DateField(null=True, blank=True)
    valid_until = models.DateField(null=True, blank=True)

    reference = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)

    # Totals (derived from lines)
    subtotal = models.DecimalField(**MONEY)
    tax_amount = models.DecimalField(**MONEY)
    total_amount = models.DecimalField(**MONEY)

    # Invoice balances
    paid_amount = models.DecimalField(**MONEY)
    balance_due = models.DecimalField(**MONEY)

    # Credit note balances
    applied_amount = models.DecimalField(**MONEY)
    balance = models.DecimalField(**MONEY)

    related_invoice = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='credit_notes',
        help_text='Invoice a credit note was raised against'
    )
    source_document = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='conversions',
        help_text='Quotation or proforma this document was converted from'
    )

    idempotency_key = models.CharField(max_length=100, null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_documents'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'documents'
        ordering = ['-issue_date', '-created_at']
        indexes = [
            models.Index(fields=['company', 'kind', 'status'], name='documents_company_kind_idx'),
            models.Index(fields=['company', 'issue_date'], name='documents_company_date_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['company', 'document_number'],
                name='uniq_document_number_per_company'
            ),
            models.UniqueConstraint(
                fields=['company', 'idempotency_key'],
                condition=Q(idempotency_key__isnull=False),
                name='uniq_document_idempotency_key'
            ),
            models.CheckConstraint(
                condition=Q(paid_amount__gte=0) & Q(balance_due__gte=0),
                name='document_invoice_balance_non_negative'
            ),
            models.CheckConstraint(
                condition=Q(applied_amount__gte=0) & Q(balance__gte=0),
                name='document_credit_balance_non_negative'
            ),
        ]

    def __str__(self):
        return f"{self.get_kind_display()} {self.document_number}"

    @property
    def is_invoice(self):
        return self.kind == DocumentKind.INVOICE

    @property
    def is_credit_note(self):
        return self.kind == DocumentKind.CREDIT_NOTE

    @property
    def counterparty(self):
        return self.supplier if self.kind == DocumentKind.PURCHASE_ORDER else self.customer


class DocumentLine(models.Model):
    """One priced, taxed, discounted item on a document."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    document = models.ForeignKey(
        Document,
        on_delete=models.CASCADE,
        related_name='lines'
    )
    position = models.PositiveIntegerField()
    description = models.CharField(max_length=500, blank=True)

    # Inputs
    quantity = models.DecimalField(max_digits=14, decimal_places=4)
    unit_price = models.DecimalField(max_digits=14, decimal_places=4)
    discount_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0.00'))
    discount_amount = models.DecimalField(**MONEY)
    tax_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0.00'))
    tax_inclusive = models.BooleanField(default=False)

    # Derived
    net_amount = models.DecimalField(**MONEY)
    taxable_amount = models.DecimalField(**MONEY)
    tax_amount = models.DecimalField(**MONEY)
    line_total = models.DecimalField(**MONEY)

    class Meta:
        db_table = 'document_lines'
        ordering = ['position']
        constraints = [
            models.UniqueConstraint(
                fields=['document', 'position'],
                name='uniq_document_line_position'
            ),
        ]

    def __str__(self):
        return f"{self.document.document_number} #{self.position}"

    def as_input(self):
        """Raw line input, as accepted by the document services."""
        return {
            'description': self.description,
            'quantity': self.quantity,
            'unit_price': self.unit_price,
            'discount_percentage': self.discount_percentage,
            'discount_amount': self.discount_amount,
            'tax_percentage': self.tax_percentage,
            'tax_inclusive': self.tax_inclusive,
        }


class NumberSequence(models.Model):
    """
    Counter row behind document numbering.

    One row per (company, numbering key, year); ``year`` is 0 for schemes
    that never reset. ``last_value`` is the last number handed out.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(
        'companies.Company',
        on_delete=models.CASCADE,
        related_name='number_sequences'
    )
    kind = models.CharField(max_length=20)
    year = models.PositiveIntegerField()
    last_value = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'document_number_sequences'
        constraints = [
            models.UniqueConstraint(
                fields=['company', 'kind', 'year'],
                name='uniq_number_sequence'
            ),
        ]

    def __str__(self):
        return f"{self.company} {self.kind}/{self.year}: {self.last_value}"
