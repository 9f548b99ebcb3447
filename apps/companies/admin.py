# ==========================================
# apps/companies/admin.py
# ==========================================

from django.contrib import admin
from apps.companies.models import Company, CompanyMembership, Customer, Supplier


class CompanyMembershipInline(admin.TabularInline):
    """Inline admin for company memberships."""
    model = CompanyMembership
    extra = 0
    fields = ['user', 'role', 'joined_at']
    readonly_fields = ['joined_at']


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    """Admin interface for Companies."""

    list_display = ['name', 'document_code', 'owner', 'member_count', 'created_at']
    search_fields = ['name', 'code', 'tax_number', 'owner__email']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [CompanyMembershipInline]
    ordering = ['name']

    fieldsets = (
        ('Basic Information', {
            'fields': ('name', 'code', 'owner')
        }),
        ('Contact', {
            'fields': ('tax_number', 'email', 'address')
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def member_count(self, obj):
        """Show number of members."""
        return obj.memberships.count()
    member_count.short_description = 'Members'


@admin.register(Customer, Supplier)
class CounterpartyAdmin(admin.ModelAdmin):
    """Admin interface for customers and suppliers."""

    list_display = ['name', 'company', 'email', 'phone', 'created_at']
    list_filter = ['company']
    search_fields = ['name', 'email', 'tax_number']
    readonly_fields = ['created_at', 'updated_at']

    def get_queryset(self, request):
        """Optimize query."""
        return super().get_queryset(request).select_related('company')
