# api/urls.py
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    BuilderViewSet,
    EstimateViewSet,
    InvoiceViewSet,
    JobViewSet,
    PayrollEntryViewSet,
    WorkerViewSet,
    auth_login,
    auth_logout,
    prequal_status,
)

router = DefaultRouter()
router.register(r'workers', WorkerViewSet, basename='worker')
router.register(r'payroll', PayrollEntryViewSet, basename='payroll')
router.register(r'invoices', InvoiceViewSet, basename='invoice')
router.register(r'builders', BuilderViewSet, basename='builder')
router.register(r'jobs', JobViewSet, basename='job')
router.register(r'estimates', EstimateViewSet, basename='estimate')

urlpatterns = [
    path('auth/login/', auth_login, name='api-auth-login'),
    path('auth/logout/', auth_logout, name='api-auth-logout'),
    path('prequal/', prequal_status, name='api-prequal'),
    path('', include(router.urls)),
]
