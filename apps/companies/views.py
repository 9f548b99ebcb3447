from rest_framework import viewsets, status, mixins
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.pagination import PageNumberPagination
from drf_spectacular.utils import extend_schema

from .models import Company
from .serializers import (
    CompanySerializer,
    CompanyCreateSerializer,
    CompanyMembershipSerializer,
    AddMemberSerializer,
    CustomerSerializer,
    SupplierSerializer,
)
from .permissions import IsCompanyAdmin

from apps.companies.services import (
    create_company,
    add_member,
    get_company_members,
    create_customer,
    create_supplier,
    # Exceptions
    AlreadyMemberError,
    InsufficientPermissionsError,
    UserNotFoundError,
)


class CompanyPagination(PageNumberPagination):
    """Custom pagination for companies."""
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


class CompanyViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    """
    ViewSet for companies (tenants).

    All business logic is handled by services.
    Views are thin HTTP handlers only.

    list: Companies the user belongs to
    create: Create a company (caller becomes owner)
    retrieve: Company details
    update/partial_update: Edit company details (admin only)
    """

    serializer_class = CompanySerializer
    permission_classes = [IsAuthenticated]
    pagination_class = CompanyPagination

    def get_queryset(self):
        """Return only companies where user is a member."""
        return Company.objects.filter(
            memberships__user=self.request.user
        ).select_related('owner').distinct()

    def get_serializer_class(self):
        if self.action == 'create':
            return CompanyCreateSerializer
        return CompanySerializer

    def get_permissions(self):
        if self.action in ['update', 'partial_update', 'add_member']:
            return [IsAuthenticated(), IsCompanyAdmin()]
        return [IsAuthenticated()]

    def create(self, request, *args, **kwargs):
        """Create a new company."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        company = create_company(owner=request.user, **serializer.validated_data)

        output_serializer = CompanySerializer(company, context={'request': request})
        return Response(output_serializer.data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'])
    def members(self, request, pk=None):
        """List company members."""
        company = self.get_object()
        serializer = CompanyMembershipSerializer(get_company_members(company=company), many=True)
        return Response(serializer.data)

    @extend_schema(request=AddMemberSerializer, responses={201: CompanyMembershipSerializer})
    @action(detail=True, methods=['post'])
    def add_member(self, request, pk=None):
        """Add an existing user to the company (admin only)."""
        company = self.get_object()
        serializer = AddMemberSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            membership = add_member(
                company_id=company.id,
                user_id=serializer.validated_data['user_id'],
                role=serializer.validated_data['role'],
                added_by=request.user,
            )
        except InsufficientPermissionsError as e:
            return Response({'detail': str(e), 'code': 'insufficient_permissions'},
                            status=status.HTTP_403_FORBIDDEN)
        except UserNotFoundError as e:
            return Response({'detail': str(e), 'code': 'user_not_found'},
                            status=status.HTTP_404_NOT_FOUND)
        except AlreadyMemberError as e:
            return Response({'detail': str(e), 'code': 'already_member'},
                            status=status.HTTP_400_BAD_REQUEST)

        return Response(CompanyMembershipSerializer(membership).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=CustomerSerializer, responses={200: CustomerSerializer(many=True)})
    @action(detail=True, methods=['get', 'post'])
    def customers(self, request, pk=None):
        """List or create customers of the company."""
        company = self.get_object()
        if request.method == 'GET':
            return Response(CustomerSerializer(company.customers.all(), many=True).data)

        serializer = CustomerSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        customer = create_customer(company=company, **serializer.validated_data)
        return Response(CustomerSerializer(customer).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=SupplierSerializer, responses={200: SupplierSerializer(many=True)})
    @action(detail=True, methods=['get', 'post'])
    def suppliers(self, request, pk=None):
        """List or create suppliers of the company."""
        company = self.get_object()
        if request.method == 'GET':
            return Response(SupplierSerializer(company.suppliers.all(), many=True).data)

        serializer = SupplierSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        supplier = create_supplier(company=company, **serializer.validated_data)
        return Response(SupplierSerializer(supplier).data, status=status.HTTP_201_CREATED)
