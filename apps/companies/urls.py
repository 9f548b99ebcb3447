from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'companies'

# Router for ViewSets
router = DefaultRouter()
router.register(r'', views.CompanyViewSet, basename='company')

urlpatterns = [
    # Company ViewSet routes
    # GET    /api/companies/                    - List user's companies
    # POST   /api/companies/                    - Create company
    # GET    /api/companies/{id}/               - Company details
    # PUT    /api/companies/{id}/               - Update company (admin)
    # PATCH  /api/companies/{id}/               - Partial update (admin)

    # Custom company actions
    # GET    /api/companies/{id}/members/       - List members
    # POST   /api/companies/{id}/add_member/    - Add member (admin)
    # GET    /api/companies/{id}/customers/     - List customers
    # POST   /api/companies/{id}/customers/     - Create customer
    # GET    /api/companies/{id}/suppliers/     - List suppliers
    # POST   /api/companies/{id}/suppliers/     - Create supplier

    # Include router URLs
    path('', include(router.urls)),
]
