from rest_framework import viewsets, status, mixins
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.pagination import PageNumberPagination
from drf_spectacular.utils import extend_schema

from apps.companies.mixins import CompanyScopedMixin
from apps.companies.models import Customer
from apps.documents.services import InvalidCounterpartyError

from .models import Allocation, Payment
from .serializers import (
    PaymentSerializer,
    AllocationSerializer,
    AllocationResultSerializer,
    # Input serializers
    PaymentFilterSerializer,
    PaymentCreateSerializer,
    AllocationFilterSerializer,
    AllocationCreateSerializer,
)
from .services import apply_allocation, record_payment


class PaymentPagination(PageNumberPagination):
    """Custom pagination for payments and allocations."""
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


class PaymentViewSet(
    CompanyScopedMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    """
    ViewSet for payments.

    Payments are append-only: there is no update or delete.

    list: Payments of the user's companies (filterable)
    create: Record a payment, optionally allocating it to an invoice
    retrieve: Payment details
    """

    serializer_class = PaymentSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = PaymentPagination

    def get_queryset(self):
        """Payments of companies the user is a member of."""
        queryset = Payment.objects.filter(
            company__memberships__user=self.request.user
        ).select_related('customer')

        if self.action != 'list':
            return queryset

        filter_serializer = PaymentFilterSerializer(data=self.request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        params = filter_serializer.validated_data

        if 'company' in params:
            queryset = queryset.filter(company_id=params['company'])
        if 'customer' in params:
            queryset = queryset.filter(customer_id=params['customer'])
        if 'method' in params:
            queryset = queryset.filter(method=params['method'])
        return queryset

    def get_serializer_class(self):
        if self.action == 'create':
            return PaymentCreateSerializer
        return PaymentSerializer

    @extend_schema(request=PaymentCreateSerializer, responses={201: PaymentSerializer})
    def create(self, request, *args, **kwargs):
        """Record a payment."""
        serializer = PaymentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        company = self.get_company(data['company'])

        customer = None
        if data.get('customer'):
            customer = Customer.objects.filter(pk=data['customer'], company=company).first()
            if customer is None:
                raise InvalidCounterpartyError('Customer not found in this company.')

        payment, result = record_payment(
            company=company,
            amount=data['amount'],
            method=data['method'],
            payment_date=data.get('payment_date'),
            customer=customer,
            reference=data['reference'],
            notes=data['notes'],
            payment_number=data.get('payment_number') or None,
            invoice_id=data.get('invoice'),
            recorded_by=request.user,
        )

        body = PaymentSerializer(payment).data
        if result is not None:
            body['allocation'] = AllocationResultSerializer(result).data
        return Response(body, status=status.HTTP_201_CREATED)


class AllocationViewSet(
    CompanyScopedMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    """
    Allocation boundary: apply payments and credit notes to invoices.

    list: Allocations of the user's companies (?company=&invoice=&source_kind=)
    create: Apply an amount of a payment or credit note to an invoice
    retrieve: Allocation details
    """

    serializer_class = AllocationSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = PaymentPagination

    def get_queryset(self):
        queryset = Allocation.objects.filter(
            company__memberships__user=self.request.user
        ).select_related('payment', 'credit_note', 'invoice')

        if self.action != 'list':
            return queryset

        filter_serializer = AllocationFilterSerializer(data=self.request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        params = filter_serializer.validated_data

        if 'company' in params:
            queryset = queryset.filter(company_id=params['company'])
        if 'invoice' in params:
            queryset = queryset.filter(invoice_id=params['invoice'])
        if 'source_kind' in params:
            queryset = queryset.filter(source_kind=params['source_kind'])
        return queryset

    def get_serializer_class(self):
        if self.action == 'create':
            return AllocationCreateSerializer
        return AllocationSerializer

    @extend_schema(request=AllocationCreateSerializer, responses={201: AllocationResultSerializer})
    def create(self, request, *args, **kwargs):
        """Apply a payment or credit note to an invoice."""
        serializer = AllocationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        company = self.get_company(data['company'])

        result = apply_allocation(
            company=company,
            source_kind=data['source_kind'],
            source_id=data['source'],
            invoice_id=data['invoice'],
            amount=data['amount'],
            allocated_by=request.user,
        )
        return Response(AllocationResultSerializer(result).data, status=status.HTTP_201_CREATED)
