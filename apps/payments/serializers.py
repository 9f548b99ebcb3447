from rest_framework import serializers

from apps.documents.models import Document
from .models import Allocation, AllocationSourceKind, Payment, PaymentMethod


# =============================================================================
# Input Serializers
# =============================================================================

class PaymentFilterSerializer(serializers.Serializer):
    """
    Validate query parameters for payment filtering.

    Query Parameters:
        company (UUID): Only payments of this company
        customer (UUID): Only payments of this customer
        method (str): Payment method
    """

    company = serializers.UUIDField(required=False)
    customer = serializers.UUIDField(required=False)
    method = serializers.ChoiceField(choices=PaymentMethod.choices, required=False)


class PaymentCreateSerializer(serializers.Serializer):
    """
    Input for recording a payment.

    Amount sign and precision are checked by the service so they surface
    as invalid_amount errors.
    """

    company = serializers.UUIDField()
    amount = serializers.DecimalField(max_digits=16, decimal_places=4)
    method = serializers.ChoiceField(choices=PaymentMethod.choices, default=PaymentMethod.BANK_TRANSFER)
    payment_date = serializers.DateField(required=False)
    customer = serializers.UUIDField(required=False, allow_null=True)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    payment_number = serializers.CharField(max_length=50, required=False, allow_blank=True)
    invoice = serializers.UUIDField(required=False, allow_null=True)


class AllocationFilterSerializer(serializers.Serializer):
    company = serializers.UUIDField(required=False)
    invoice = serializers.UUIDField(required=False)
    source_kind = serializers.ChoiceField(choices=AllocationSourceKind.choices, required=False)


class AllocationCreateSerializer(serializers.Serializer):
    """Input for applying a payment or credit note to an invoice."""

    company = serializers.UUIDField()
    source_kind = serializers.ChoiceField(choices=AllocationSourceKind.choices)
    source = serializers.UUIDField()
    invoice = serializers.UUIDField()
    amount = serializers.DecimalField(max_digits=16, decimal_places=4)


# =============================================================================
# Output Serializers
# =============================================================================

class PaymentSerializer(serializers.ModelSerializer):
    """Main serializer for payments."""

    customer_name = serializers.CharField(source='customer.name', read_only=True, default=None)
    unapplied_amount = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = Payment
        fields = [
            'id',
            'company',
            'payment_number',
            'is_provisional_number',
            'payment_date',
            'customer',
            'customer_name',
            'amount',
            'applied_amount',
            'unapplied_amount',
            'method',
            'reference',
            'notes',
            'created_at',
        ]
        read_only_fields = fields


class AllocationSerializer(serializers.ModelSerializer):
    """Allocation row with readable source and invoice numbers."""

    source_id = serializers.SerializerMethodField()
    source_number = serializers.CharField(read_only=True)
    invoice_number = serializers.CharField(source='invoice.document_number', read_only=True)

    class Meta:
        model = Allocation
        fields = [
            'id',
            'company',
            'source_kind',
            'source_id',
            'source_number',
            'invoice',
            'invoice_number',
            'allocated_amount',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_source_id(self, obj):
        return str(obj.payment_id or obj.credit_note_id)


class InvoiceBalanceSerializer(serializers.ModelSerializer):
    """Invoice balances after an allocation."""

    class Meta:
        model = Document
        fields = ['id', 'document_number', 'status', 'total_amount', 'paid_amount', 'balance_due']
        read_only_fields = fields


class AllocationResultSerializer(serializers.Serializer):
    """Updated invoice and source balances returned by the allocation boundary."""

    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    allocation = AllocationSerializer()
    invoice = InvoiceBalanceSerializer()
    source = serializers.SerializerMethodField()

    def get_source(self, obj):
        source = obj.source
        if isinstance(source, Payment):
            return {
                'id': str(source.id),
                'kind': AllocationSourceKind.PAYMENT.value,
                'number': source.payment_number,
                'total_amount': str(source.amount),
                'applied_amount': str(source.applied_amount),
                'available_amount': str(source.unapplied_amount),
                'status': None,
            }
        return {
            'id': str(source.id),
            'kind': AllocationSourceKind.CREDIT_NOTE.value,
            'number': source.document_number,
            'total_amount': str(source.total_amount),
            'applied_amount': str(source.applied_amount),
            'available_amount': str(source.balance),
            'status': source.status,
        }
