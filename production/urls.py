from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import ProductionOrderViewSet, ProductionStageViewSet, dashboard_stats

# Create router and register viewsets
router = DefaultRouter()
router.register(r'production-orders', ProductionOrderViewSet, basename='productionorder')
router.register(r'stages', ProductionStageViewSet, basename='productionstage')

app_name = 'production'

urlpatterns = [
    path('', include(router.urls)),
    path('dashboard-stats/', dashboard_stats, name='dashboard_stats'),
]

# Available API endpoints:
"""
Production Orders:
- GET    /api/production/production-orders/                   - List orders
- POST   /api/production/production-orders/                   - Create order with its stage pipeline
- GET    /api/production/production-orders/{id}/              - Order detail with stages
- GET    /api/production/production-orders/{id}/progress/     - Percent, current stage, roll-up
- GET    /api/production/production-orders/{id}/stages/       - Stages in pipeline order

Stages:
- GET    /api/production/stages/                              - List stages
- GET    /api/production/stages/{id}/                         - Stage detail
- POST   /api/production/stages/{id}/start/                   - pending -> in_progress
- POST   /api/production/stages/{id}/hold/                    - pending -> on_hold
- POST   /api/production/stages/{id}/pause/                   - in_progress / with vendor -> on_hold
- POST   /api/production/stages/{id}/resume/                  - on_hold -> in_progress
- POST   /api/production/stages/{id}/skip/                    - pending / on_hold -> skipped
- POST   /api/production/stages/{id}/complete/                - record quantities and complete
- POST   /api/production/stages/{id}/outsourcing/             - flag a pending stage for a vendor
- POST   /api/production/stages/{id}/plan/                    - planned window and assignee
- POST   /api/production/stages/{id}/dispatch/                - send to vendor (outward challan)
- POST   /api/production/stages/{id}/receive/                 - vendor receipt (inward challan)
- GET    /api/production/stages/{id}/rejections/              - rejection lines
- POST   /api/production/stages/{id}/rejections/              - add line(s)
- GET    /api/production/stages/{id}/activity/                - transition history

- GET    /api/production/dashboard-stats/                     - counts per status

Errors are returned as {"error": "...", "code": "..."}:
404 stage/order not found, 409 illegal or duplicate transition,
400 quantity and rejection errors, 502 challan issuance failure.
"""
