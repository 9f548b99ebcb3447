from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'documents'

# Router for ViewSets
router = DefaultRouter()
router.register(r'', views.DocumentViewSet, basename='document')

urlpatterns = [
    # Document ViewSet routes
    # GET    /api/documents/                      - List documents (?company=&kind=&status=)
    # POST   /api/documents/                      - Create document with lines
    # GET    /api/documents/{id}/                 - Document with lines
    # DELETE /api/documents/{id}/                 - Delete draft

    # Custom document actions
    # POST   /api/documents/preview/              - Compute totals without saving
    # PUT    /api/documents/{id}/lines/           - Replace lines, recompute totals
    # POST   /api/documents/{id}/transition/      - Change status
    # POST   /api/documents/{id}/convert/         - Quotation/proforma -> proforma/invoice
    # GET    /api/documents/{id}/allocations/     - Payments/credits applied to invoice

    # Include router URLs
    path('', include(router.urls)),
]
