from rest_framework import viewsets, status, mixins
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.pagination import PageNumberPagination
from drf_spectacular.utils import extend_schema

from apps.companies.mixins import CompanyScopedMixin
from apps.companies.models import Customer, Supplier
from apps.payments.serializers import AllocationSerializer
from apps.payments.services import list_invoice_allocations

from .models import Document
from .serializers import (
    DocumentSerializer,
    DocumentListSerializer,
    DocumentPreviewSerializer,
    # Input serializers
    DocumentFilterSerializer,
    DocumentCreateSerializer,
    DocumentLinesInputSerializer,
    TransitionInputSerializer,
    ConvertInputSerializer,
)
from .services import (
    create_document,
    preview_document,
    replace_document_lines,
    transition_document,
    convert_document,
    delete_document,
    # Exceptions
    DocumentNotFoundError,
    InvalidCounterpartyError,
)


class DocumentPagination(PageNumberPagination):
    """Custom pagination for documents."""
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


class DocumentViewSet(
    CompanyScopedMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """
    ViewSet for business documents.

    All business logic is handled by services.
    Views are thin HTTP handlers only.

    list: Documents of the user's companies (filterable)
    create: Create a document with lines; totals and number are computed
    retrieve: Document with lines
    destroy: Delete a draft document
    """

    serializer_class = DocumentSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = DocumentPagination

    def get_queryset(self):
        """Documents of companies the user is a member of."""
        queryset = Document.objects.filter(
            company__memberships__user=self.request.user
        ).select_related('customer', 'supplier')

        if self.action != 'list':
            return queryset.prefetch_related('lines')

        filter_serializer = DocumentFilterSerializer(data=self.request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        params = filter_serializer.validated_data

        if 'company' in params:
            queryset = queryset.filter(company_id=params['company'])
        if 'kind' in params:
            queryset = queryset.filter(kind=params['kind'])
        if 'status' in params:
            queryset = queryset.filter(status=params['status'])
        if 'customer' in params:
            queryset = queryset.filter(customer_id=params['customer'])
        if 'date_from' in params:
            queryset = queryset.filter(issue_date__gte=params['date_from'])
        if 'date_to' in params:
            queryset = queryset.filter(issue_date__lte=params['date_to'])
        return queryset

    def get_serializer_class(self):
        """Use different serializers for different actions."""
        if self.action == 'list':
            return DocumentListSerializer
        elif self.action == 'create':
            return DocumentCreateSerializer
        return DocumentSerializer

    def _related(self, model, pk, company, error):
        if pk is None:
            return None
        obj = model.objects.filter(pk=pk, company=company).first()
        if obj is None:
            raise error
        return obj

    @extend_schema(request=DocumentCreateSerializer, responses={201: DocumentSerializer})
    def create(self, request, *args, **kwargs):
        """Create a document."""
        serializer = DocumentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        company = self.get_company(data['company'])

        document = create_document(
            company=company,
            kind=data['kind'],
            lines=data.get('lines', []),
            created_by=request.user,
            customer=self._related(
                Customer, data.get('customer'), company,
                InvalidCounterpartyError('Customer not found in this company.')
            ),
            supplier=self._related(
                Supplier, data.get('supplier'), company,
                InvalidCounterpartyError('Supplier not found in this company.')
            ),
            issue_date=data.get('issue_date'),
            due_date=data.get('due_date'),
            valid_until=data.get('valid_until'),
            reference=data['reference'],
            notes=data['notes'],
            related_invoice=self._related(
                Document, data.get('related_invoice'), company,
                DocumentNotFoundError('Related invoice not found.')
            ),
            idempotency_key=data.get('idempotency_key') or None,
        )

        output_serializer = DocumentSerializer(document, context={'request': request})
        return Response(output_serializer.data, status=status.HTTP_201_CREATED)

    def destroy(self, request, *args, **kwargs):
        """Delete a draft document."""
        document = self.get_object()
        delete_document(company=document.company, document_id=document.id)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(request=DocumentLinesInputSerializer, responses={200: DocumentPreviewSerializer})
    @action(detail=False, methods=['post'])
    def preview(self, request):
        """Compute lines and totals without saving anything."""
        serializer = DocumentLinesInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        computed, totals = preview_document(serializer.validated_data['lines'])

        output = DocumentPreviewSerializer({
            'lines': computed,
            'subtotal': totals.subtotal,
            'tax_total': totals.tax_total,
            'total_amount': totals.total_amount,
        })
        return Response(output.data)

    @extend_schema(request=DocumentLinesInputSerializer, responses={200: DocumentSerializer})
    @action(detail=True, methods=['put'])
    def lines(self, request, pk=None):
        """Replace all lines and recompute totals."""
        document = self.get_object()
        serializer = DocumentLinesInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        document = replace_document_lines(
            company=document.company,
            document_id=document.id,
            lines=serializer.validated_data['lines'],
        )
        document = self.get_queryset().get(pk=document.pk)
        return Response(DocumentSerializer(document).data)

    @extend_schema(request=TransitionInputSerializer, responses={200: DocumentSerializer})
    @action(detail=True, methods=['post'])
    def transition(self, request, pk=None):
        """Change the document status."""
        document = self.get_object()
        serializer = TransitionInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        document = transition_document(
            company=document.company,
            document_id=document.id,
            new_status=serializer.validated_data['status'],
        )
        document = self.get_queryset().get(pk=document.pk)
        return Response(DocumentSerializer(document).data)

    @extend_schema(request=ConvertInputSerializer, responses={201: DocumentSerializer})
    @action(detail=True, methods=['post'])
    def convert(self, request, pk=None):
        """Convert a quotation/proforma into a proforma or invoice."""
        document = self.get_object()
        serializer = ConvertInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        converted = convert_document(
            company=document.company,
            document_id=document.id,
            target_kind=serializer.validated_data['target_kind'],
            created_by=request.user,
        )
        converted = self.get_queryset().get(pk=converted.pk)
        return Response(DocumentSerializer(converted).data, status=status.HTTP_201_CREATED)

    @extend_schema(responses={200: AllocationSerializer(many=True)})
    @action(detail=True, methods=['get'])
    def allocations(self, request, pk=None):
        """Payments and credit notes applied to this invoice."""
        document = self.get_object()
        allocations = list_invoice_allocations(company=document.company, invoice_id=document.id)
        return Response(AllocationSerializer(allocations, many=True).data)
