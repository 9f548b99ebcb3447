# ==========================================
# apps/payments/admin.py
# ==========================================

from django.contrib import admin

from .models import Allocation, Payment


class AllocationInline(admin.TabularInline):
    """Inline admin for allocations of a payment."""
    model = Allocation
    fk_name = 'payment'
    extra = 0
    fields = ['invoice', 'allocated_amount', 'allocated_by', 'created_at']
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        """Allocations are created by the allocation engine only."""
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """Admin interface for Payments."""

    list_display = [
        'payment_number',
        'is_provisional_number',
        'company',
        'customer',
        'amount',
        'applied_amount',
        'method',
        'payment_date',
    ]
    list_filter = ['method', 'is_provisional_number', 'payment_date']
    search_fields = ['payment_number', 'reference', 'customer__name']
    readonly_fields = ['applied_amount', 'created_at', 'updated_at']
    inlines = [AllocationInline]
    date_hierarchy = 'payment_date'
    ordering = ['-payment_date']

    def get_queryset(self, request):
        """Optimize query."""
        return super().get_queryset(request).select_related('company', 'customer')


@admin.register(Allocation)
class AllocationAdmin(admin.ModelAdmin):
    """Read-only admin for allocations (append-only records)."""

    list_display = ['invoice', 'source_kind', 'source_number', 'allocated_amount', 'created_at']
    list_filter = ['source_kind', 'created_at']
    search_fields = ['invoice__document_number', 'payment__payment_number', 'credit_note__document_number']
    date_hierarchy = 'created_at'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def get_queryset(self, request):
        """Optimize query."""
        return super().get_queryset(request).select_related('invoice', 'payment', 'credit_note')
