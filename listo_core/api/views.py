# api/views.py
import logging

from django.contrib.auth import authenticate
from rest_framework import viewsets
from rest_framework.authentication import TokenAuthentication
from rest_framework.authtoken.models import Token
from rest_framework.decorators import action, api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from portal.errors import ListoError, friendly_error
from portal.estimate_utils import copy_estimate
from portal.invoice_utils import copy_invoice, email_invoice
from portal.models import Builder, Estimate, Invoice, Job, PayrollEntry, Worker
from portal.prequal import get_prequal
from portal.worker_utils import delete_worker, save_worker

from .serializers import (
    BuilderSerializer,
    EstimateSerializer,
    InvoiceSerializer,
    JobSerializer,
    PayrollEntrySerializer,
    PrequalStatusSerializer,
    WorkerSerializer,
)

logger = logging.getLogger(__name__)


class WorkerViewSet(viewsets.ModelViewSet):
    serializer_class = WorkerSerializer

    def get_queryset(self):
        queryset = Worker.objects.filter(user=self.request.user)
        if self.request.query_params.get('archived') != '1':
            queryset = queryset.filter(archived=False)
        return queryset

    def perform_update(self, serializer):
        save_worker(serializer.save())

    def perform_destroy(self, instance):
        delete_worker(instance)


class PayrollEntryViewSet(viewsets.ModelViewSet):
    serializer_class = PayrollEntrySerializer
    http_method_names = ['get', 'post', 'delete', 'head', 'options']

    def get_queryset(self):
        return PayrollEntry.objects.filter(user=self.request.user).select_related('worker')


class InvoiceViewSet(viewsets.ModelViewSet):
    serializer_class = InvoiceSerializer

    def get_queryset(self):
        return Invoice.objects.filter(user=self.request.user).prefetch_related('items')

    @action(detail=True, methods=['post'])
    def copy(self, request, pk=None):
        duplicate = copy_invoice(self.get_object())
        return Response(self.get_serializer(duplicate).data, status=201)

    @action(detail=True, methods=['post'])
    def send(self, request, pk=None):
        invoice = self.get_object()
        try:
            email_invoice(invoice)
        except ListoError as exc:
            logger.warning("Invoice %s email failed: %s", invoice.pk, exc)
            return Response({'success': False, 'message': friendly_error(exc)}, status=400)
        return Response({'success': True, 'email_status': invoice.email_status})


class BuilderViewSet(viewsets.ModelViewSet):
    serializer_class = BuilderSerializer

    def get_queryset(self):
        return Builder.objects.filter(user=self.request.user)


class JobViewSet(viewsets.ModelViewSet):
    serializer_class = JobSerializer

    def get_queryset(self):
        queryset = Job.objects.filter(builder__user=self.request.user)
        builder = self.request.query_params.get('builder')
        if builder and builder.isascii() and builder.isdigit():
            queryset = queryset.filter(builder_id=int(builder))
        return queryset


class EstimateViewSet(viewsets.ModelViewSet):
    serializer_class = EstimateSerializer

    def get_queryset(self):
        queryset = Estimate.objects.filter(job__builder__user=self.request.user)
        job = self.request.query_params.get('job')
        if job and job.isascii() and job.isdigit():
            queryset = queryset.filter(job_id=int(job))
        return queryset

    @action(detail=True, methods=['post'])
    def copy(self, request, pk=None):
        duplicate = copy_estimate(self.get_object(), request.data.get('estimate_name') or None)
        return Response(self.get_serializer(duplicate).data, status=201)


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def prequal_status(request):
    return Response(PrequalStatusSerializer(get_prequal(request.user)).data)


@api_view(["POST"])
@permission_classes([AllowAny])
def auth_login(request):
    """Issue a token. Accepts email or username + password.

    Request JSON: { "email": "..." or "username": "...", "password": "..." }
    Response JSON: { "token": "..." }
    """
    body = request.data or {}
    identifier = body.get("email") or body.get("username")
    password = body.get("password")
    if not identifier or not password:
        return Response({"error": "username/email and password required"}, status=400)

    user = authenticate(request, username=identifier, password=password)
    if user is None or not user.is_active:
        return Response({"error": "invalid_credentials", "message": friendly_error("invalid-credential")},
                        status=400)
    token, _ = Token.objects.get_or_create(user=user)
    return Response({"token": token.key})


@api_view(["POST"])
@authentication_classes([TokenAuthentication])
@permission_classes([IsAuthenticated])
def auth_logout(request):
    """Invalidate the current token."""
    token_key = getattr(request.auth, "key", None)
    if token_key:
        Token.objects.filter(key=token_key).delete()
    return Response(status=204)
