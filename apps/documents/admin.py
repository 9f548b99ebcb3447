# ==========================================
# apps/documents/admin.py
# ==========================================

from django.contrib import admin
from django.utils.html import format_html

from .models import Document, DocumentLine, DocumentStatus, NumberSequence
from .services import mark_overdue_invoices


class DocumentLineInline(admin.TabularInline):
    """Inline admin for document lines."""
    model = DocumentLine
    extra = 0
    fields = [
        'position',
        'description',
        'quantity',
        'unit_price',
        'discount_percentage',
        'discount_amount',
        'tax_percentage',
        'tax_inclusive',
        'tax_amount',
        'line_total',
    ]
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        """Lines are written by the document service so totals stay derived."""
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Document)
class DocumentAdmin(admin.ModelAdmin):
    """
    Admin interface for Documents.

    Totals and balances are read-only; they only change through the
    document services and the allocation engine.
    """

    list_display = [
        'document_number',
        'kind',
        'company',
        'status_badge',
        'total_amount',
        'balance_due',
        'issue_date',
        'is_provisional_number',
    ]
    list_filter = ['kind', 'status', 'is_provisional_number', 'issue_date']
    search_fields = ['document_number', 'reference', 'customer__name', 'supplier__name']
    readonly_fields = [
        'document_number',
        'is_provisional_number',
        'subtotal',
        'tax_amount',
        'total_amount',
        'paid_amount',
        'balance_due',
        'applied_amount',
        'balance',
        'created_at',
        'updated_at',
    ]
    inlines = [DocumentLineInline]
    date_hierarchy = 'issue_date'
    ordering = ['-issue_date']

    fieldsets = (
        ('Document', {
            'fields': ('company', 'kind', 'document_number', 'is_provisional_number', 'status')
        }),
        ('Counterparty', {
            'fields': ('customer', 'supplier', 'related_invoice', 'source_document')
        }),
        ('Dates', {
            'fields': ('issue_date', 'due_date', 'valid_until')
        }),
        ('Totals', {
            'fields': ('subtotal', 'tax_amount', 'total_amount')
        }),
        ('Balances', {
            'fields': ('paid_amount', 'balance_due', 'applied_amount', 'balance')
        }),
        ('Metadata', {
            'fields': ('reference', 'notes', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def status_badge(self, obj):
        """Display status as colored badge."""
        colors = {
            DocumentStatus.PAID: '#6B8E5E',
            DocumentStatus.PARTIAL: '#E5C49A',
            DocumentStatus.OVERDUE: '#B85C5C',
            DocumentStatus.CANCELLED: '#999999',
        }
        return format_html(
            '<span style="background: {}; padding: 3px 8px; border-radius: 10px; '
            'font-size: 11px;">{}</span>',
            colors.get(obj.status, '#dddddd'), obj.get_status_display()
        )
    status_badge.short_description = 'Status'

    actions = ['flag_overdue']

    def flag_overdue(self, request, queryset):
        """Mark sent invoices past their due date as overdue."""
        companies = {document.company for document in queryset.select_related('company')}
        count = sum(mark_overdue_invoices(company=company) for company in companies)
        self.message_user(request, f"Marked {count} invoices overdue")
    flag_overdue.short_description = "Mark overdue invoices"

    def get_queryset(self, request):
        """Optimize query."""
        return super().get_queryset(request).select_related('company', 'customer', 'supplier')


@admin.register(NumberSequence)
class NumberSequenceAdmin(admin.ModelAdmin):
    """Admin interface for numbering counters."""

    list_display = ['company', 'kind', 'year', 'last_value', 'updated_at']
    list_filter = ['kind', 'year']
    search_fields = ['company__name']
    readonly_fields = ['updated_at']
