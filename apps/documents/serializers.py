from rest_framework import serializers

from apps.companies.serializers import CustomerSerializer, SupplierSerializer
from .models import Document, DocumentKind, DocumentLine, DocumentStatus


# =============================================================================
# Input Serializers
# =============================================================================

class DocumentFilterSerializer(serializers.Serializer):
    """
    Validate query parameters for document filtering.

    Query Parameters:
        company (UUID): Only documents of this company
        kind (str): Document kind
        status (str): Document status
        customer (UUID): Documents addressed to this customer
        date_from (date): Issued on or after
        date_to (date): Issued on or before
    """

    company = serializers.UUIDField(required=False)
    kind = serializers.ChoiceField(choices=DocumentKind.choices, required=False)
    status = serializers.ChoiceField(choices=DocumentStatus.choices, required=False)
    customer = serializers.UUIDField(required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)

    def validate(self, attrs):
        """Validate date range."""
        date_from = attrs.get('date_from')
        date_to = attrs.get('date_to')

        if date_from and date_to and date_from > date_to:
            raise serializers.ValidationError({
                'date_to': 'End date must be after start date'
            })

        return attrs


class DocumentLineInputSerializer(serializers.Serializer):
    """
    One raw line. Range checks (negatives, percentages over 100) are left
    to the tax calculator so they surface as invalid_line_input errors.
    """

    description = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
    quantity = serializers.DecimalField(max_digits=14, decimal_places=4)
    unit_price = serializers.DecimalField(max_digits=14, decimal_places=4)
    discount_percentage = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, allow_null=True)
    discount_amount = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, allow_null=True)
    tax_percentage = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, default=0)
    tax_inclusive = serializers.BooleanField(required=False, default=False)


class DocumentLinesInputSerializer(serializers.Serializer):
    """Input for preview and full line replacement."""

    lines = DocumentLineInputSerializer(many=True)


class DocumentCreateSerializer(serializers.Serializer):
    """Input for creating a document."""

    company = serializers.UUIDField()
    kind = serializers.ChoiceField(choices=DocumentKind.choices)
    customer = serializers.UUIDField(required=False, allow_null=True)
    supplier = serializers.UUIDField(required=False, allow_null=True)
    issue_date = serializers.DateField(required=False)
    due_date = serializers.DateField(required=False, allow_null=True)
    valid_until = serializers.DateField(required=False, allow_null=True)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    related_invoice = serializers.UUIDField(required=False, allow_null=True)
    idempotency_key = serializers.CharField(max_length=100, required=False, allow_blank=True)
    lines = DocumentLineInputSerializer(many=True, required=False)

    def validate(self, attrs):
        issue_date = attrs.get('issue_date')
        due_date = attrs.get('due_date')
        if issue_date and due_date and due_date < issue_date:
            raise serializers.ValidationError({
                'due_date': 'Due date cannot be before the issue date'
            })
        return attrs


class TransitionInputSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=DocumentStatus.choices)


class ConvertInputSerializer(serializers.Serializer):
    target_kind = serializers.ChoiceField(
        choices=[DocumentKind.PROFORMA, DocumentKind.INVOICE]
    )


# =============================================================================
# Output Serializers
# =============================================================================

class DocumentLineSerializer(serializers.ModelSerializer):
    """Persisted line with its computed amounts."""

    class Meta:
        model = DocumentLine
        fields = [
            'id',
            'position',
            'description',
            'quantity',
            'unit_price',
            'discount_percentage',
            'discount_amount',
            'tax_percentage',
            'tax_inclusive',
            'net_amount',
            'taxable_amount',
            'tax_amount',
            'line_total',
        ]
        read_only_fields = fields


class DocumentSerializer(serializers.ModelSerializer):
    """Main serializer for documents."""

    customer = CustomerSerializer(read_only=True)
    supplier = SupplierSerializer(read_only=True)
    lines = DocumentLineSerializer(many=True, read_only=True)

    class Meta:
        model = Document
        fields = [
            'id',
            'company',
            'kind',
            'document_number',
            'is_provisional_number',
            'status',
            'customer',
            'supplier',
            'issue_date',
            'due_date',
            'valid_until',
            'reference',
            'notes',
            'subtotal',
            'tax_amount',
            'total_amount',
            'paid_amount',
            'balance_due',
            'applied_amount',
            'balance',
            'related_invoice',
            'source_document',
            'lines',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class DocumentListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for list views."""

    counterparty_name = serializers.SerializerMethodField()

    class Meta:
        model = Document
        fields = [
            'id',
            'company',
            'kind',
            'document_number',
            'status',
            'counterparty_name',
            'issue_date',
            'due_date',
            'total_amount',
            'balance_due',
            'balance',
        ]
        read_only_fields = fields

    def get_counterparty_name(self, obj):
        counterparty = obj.counterparty
        return counterparty.name if counterparty else None


class LineAmountsSerializer(serializers.Serializer):
    gross_amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    discount_amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    net_amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    taxable_amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    tax_amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    line_total = serializers.DecimalField(max_digits=14, decimal_places=2)


class DocumentPreviewSerializer(serializers.Serializer):
    """Computed lines and totals of an unsaved document."""

    lines = LineAmountsSerializer(many=True)
    subtotal = serializers.DecimalField(max_digits=14, decimal_places=2)
    tax_total = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_amount = serializers.DecimalField(max_digits=14, decimal_places=2)
