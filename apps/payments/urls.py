from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'payments'

# Router for ViewSets (allocations first so '' doesn't swallow it)
router = DefaultRouter()
router.register(r'allocations', views.AllocationViewSet, basename='allocation')
router.register(r'', views.PaymentViewSet, basename='payment')

urlpatterns = [
    # Payment ViewSet routes
    # GET    /api/payments/                       - List payments (?company=&customer=&method=)
    # POST   /api/payments/                       - Record payment (optionally against an invoice)
    # GET    /api/payments/{id}/                  - Payment details

    # Allocation ViewSet routes
    # GET    /api/payments/allocations/           - List allocations (?company=&invoice=&source_kind=)
    # POST   /api/payments/allocations/           - Apply payment/credit note to invoice
    # GET    /api/payments/allocations/{id}/      - Allocation details

    # Include router URLs
    path('', include(router.urls)),
]
