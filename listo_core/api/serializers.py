# api/serializers.py
from rest_framework import serializers
from rest_framework.fields import CurrentUserDefault, HiddenField

from portal.errors import ListoError
from portal.estimate_utils import categories_shape_ok, save_estimate
from portal.invoice_utils import INVOICE_FIELDS, save_invoice
from portal.models import (
    Builder,
    Estimate,
    Invoice,
    InvoiceLineItem,
    Job,
    PayrollEntry,
    PrequalStatus,
    Worker,
)
from portal.payroll_utils import add_payroll_entry
from portal.prequal import coi_reminder_state
from portal.validators import validate_phone


class WorkerSerializer(serializers.ModelSerializer):
    user = HiddenField(default=CurrentUserDefault())

    class Meta:
        model = Worker
        fields = (
            'id', 'user', 'name', 'worker_type', 'email', 'phone', 'address', 'notes', 'archived',
            'w9_path', 'coi_path', 'workers_comp_path', 'w9_info', 'w9_ocr_status',
            'created_at', 'updated_at',
        )
        read_only_fields = (
            'w9_path', 'coi_path', 'workers_comp_path', 'w9_info', 'w9_ocr_status', 'created_at', 'updated_at',
        )

    def validate_phone(self, value):
        if value and not validate_phone(value):
            raise serializers.ValidationError("Enter a phone number with at least 10 digits.")
        return value


class PayrollEntrySerializer(serializers.ModelSerializer):
    user = HiddenField(default=CurrentUserDefault())

    class Meta:
        model = PayrollEntry
        fields = ('id', 'user', 'worker', 'employee_name', 'pay_date', 'amount', 'method', 'memo', 'created_at')
        read_only_fields = ('worker', 'created_at')

    def validate_employee_name(self, value):
        value = " ".join((value or "").split())
        if not value:
            raise serializers.ValidationError("Employee name is required.")
        return value

    def validate_amount(self, value):
        if value is None or not value.is_finite() or value <= 0:
            raise serializers.ValidationError("Amount must be greater than zero.")
        return value

    def create(self, validated_data):
        return add_payroll_entry(
            validated_data['user'],
            employee_name=validated_data['employee_name'],
            pay_date=validated_data['pay_date'],
            amount=validated_data['amount'],
            method=validated_data['method'],
            memo=validated_data.get('memo', ''),
        )


class InvoiceLineItemSerializer(serializers.ModelSerializer):
    line_total = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = InvoiceLineItem
        fields = ('description', 'qty', 'unit_price', 'line_total')


class InvoiceSerializer(serializers.ModelSerializer):
    user = HiddenField(default=CurrentUserDefault())
    items = InvoiceLineItemSerializer(many=True, required=False)

    class Meta:
        model = Invoice
        fields = ('id', 'user', *INVOICE_FIELDS, 'items', 'subtotal', 'tax_amount', 'total',
                  'email_status', 'last_emailed_at', 'created_at', 'updated_at')
        read_only_fields = ('subtotal', 'tax_amount', 'total', 'email_status', 'last_emailed_at',
                            'created_at', 'updated_at')
        extra_kwargs = {'invoice_number': {'required': False, 'allow_blank': True}}

    def _save(self, validated_data, instance=None):
        user = validated_data.pop('user')
        items = validated_data.pop('items', None)
        if items is None and instance is not None:
            items = [
                {'description': i.description, 'qty': i.qty, 'unit_price': i.unit_price}
                for i in instance.items.all()
            ]
        try:
            return save_invoice(user, validated_data, items or [], instance)
        except ListoError as exc:
            raise serializers.ValidationError(exc.message)

    def create(self, validated_data):
        return self._save(validated_data)

    def update(self, instance, validated_data):
        return self._save(validated_data, instance)


class BuilderSerializer(serializers.ModelSerializer):
    user = HiddenField(default=CurrentUserDefault())

    class Meta:
        model = Builder
        fields = ('id', 'user', 'builder_name', 'is_active', 'builder_coi_path', 'sub_agreement_path',
                  'created_at', 'updated_at')
        read_only_fields = ('builder_coi_path', 'sub_agreement_path', 'created_at', 'updated_at')


class JobSerializer(serializers.ModelSerializer):
    class Meta:
        model = Job
        fields = ('id', 'builder', 'job_name', 'address', 'description', 'project_coi_path',
                  'created_at', 'updated_at')
        read_only_fields = ('project_coi_path', 'created_at', 'updated_at')

    def validate_builder(self, builder):
        request = self.context.get('request')
        if builder.user_id != request.user.pk:
            raise serializers.ValidationError("You cannot add a job to a builder that does not belong to you.")
        return builder


class EstimateSerializer(serializers.ModelSerializer):
    tax_enabled = serializers.BooleanField(required=False, default=False)

    class Meta:
        model = Estimate
        fields = (
            'id', 'job', 'estimate_name', 'notes', 'categories', 'overhead_pct', 'profit_pct', 'tax_pct',
            'tax_enabled', 'labor_total', 'materials_total', 'subcontractors_total', 'other_total', 'subtotal',
            'overhead_amount', 'profit_amount', 'tax_amount', 'grand_total', 'created_at', 'updated_at',
        )
        read_only_fields = (
            'labor_total', 'materials_total', 'subcontractors_total', 'other_total', 'subtotal',
            'overhead_amount', 'profit_amount', 'tax_amount', 'grand_total', 'created_at', 'updated_at',
        )

    def validate_job(self, job):
        request = self.context.get('request')
        if job.builder.user_id != request.user.pk:
            raise serializers.ValidationError("You cannot add an estimate to a job that does not belong to you.")
        return job

    def validate_categories(self, value):
        if value in (None, {}):
            return {}
        if not categories_shape_ok(value):
            raise serializers.ValidationError("Line items could not be read.")
        return value

    def _save(self, validated_data, instance=None):
        job = validated_data.pop('job', None) or instance.job
        try:
            return save_estimate(job, validated_data, instance)
        except ListoError as exc:
            raise serializers.ValidationError({'estimate_name': exc.message})

    def create(self, validated_data):
        return self._save(validated_data)

    def update(self, instance, validated_data):
        data = {
            'estimate_name': instance.estimate_name,
            'notes': instance.notes,
            'categories': instance.categories,
            'overhead_pct': instance.overhead_pct,
            'profit_pct': instance.profit_pct,
            'tax_pct': instance.tax_pct,
            'tax_enabled': instance.tax_enabled,
        }
        data.update(validated_data)
        return self._save(data, instance)


class PrequalStatusSerializer(serializers.ModelSerializer):
    coi_state = serializers.SerializerMethodField()
    coi_expires_on = serializers.DateField(read_only=True)
    is_prequalified = serializers.BooleanField(read_only=True)

    class Meta:
        model = PrequalStatus
        fields = ('w9_completed', 'coi_completed', 'agreement_completed', 'is_prequalified',
                  'coi_expires_on', 'coi_state', 'w9', 'coi', 'agreement', 'updated_at')
        read_only_fields = fields

    def get_coi_state(self, obj):
        return coi_reminder_state(obj)
