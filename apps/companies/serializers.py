from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import Company, CompanyMembership, CompanyRole, Customer, Supplier


class UserMinimalSerializer(serializers.ModelSerializer):
    """Minimal user info for nested serialization."""

    class Meta:
        model = get_user_model()
        fields = ['id', 'username', 'email']
        read_only_fields = fields


class CompanyMembershipSerializer(serializers.ModelSerializer):
    """Serializer for company memberships."""

    user = UserMinimalSerializer(read_only=True)

    class Meta:
        model = CompanyMembership
        fields = ['id', 'user', 'role', 'joined_at']
        read_only_fields = fields


class CompanySerializer(serializers.ModelSerializer):
    """Main serializer for companies."""

    owner = UserMinimalSerializer(read_only=True)
    document_code = serializers.CharField(read_only=True)
    user_role = serializers.SerializerMethodField()

    class Meta:
        model = Company
        fields = [
            'id',
            'name',
            'code',
            'document_code',
            'tax_number',
            'email',
            'address',
            'owner',
            'user_role',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'owner', 'created_at', 'updated_at']

    def get_user_role(self, obj):
        """Get current user's role in the company."""
        request = self.context.get('request')
        if request and request.user.is_authenticated:
            return obj.get_user_role(request.user)
        return None


class CompanyCreateSerializer(serializers.ModelSerializer):
    """Serializer for creating companies."""

    class Meta:
        model = Company
        fields = ['name', 'code', 'tax_number', 'email', 'address']


class AddMemberSerializer(serializers.Serializer):
    """Input for adding a user to a company."""

    user_id = serializers.IntegerField()
    role = serializers.ChoiceField(
        choices=[CompanyRole.ADMIN, CompanyRole.MEMBER],
        default=CompanyRole.MEMBER,
    )


class CustomerSerializer(serializers.ModelSerializer):

    class Meta:
        model = Customer
        fields = ['id', 'name', 'email', 'phone', 'tax_number', 'address', 'created_at']
        read_only_fields = ['id', 'created_at']


class SupplierSerializer(serializers.ModelSerializer):

    class Meta:
        model = Supplier
        fields = ['id', 'name', 'email', 'phone', 'tax_number', 'address', 'created_at']
        read_only_fields = ['id', 'created_at']
