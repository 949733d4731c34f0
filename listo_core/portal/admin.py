from django.contrib import admin

from .formatting import money
from .models import (
    Agreement,
    AuditPacket,
    Builder,
    ContractScan,
    Estimate,
    Form1099,
    Invoice,
    InvoiceLineItem,
    Job,
    PayrollEntry,
    PrequalStatus,
    Profile,
    W9Form,
    Worker,
)


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'company_name', 'display_name', 'email', 'language', 'updated_at')
    search_fields = ('company_name', 'display_name', 'email', 'user__username')
    list_filter = ('language',)


@admin.register(PrequalStatus)
class PrequalStatusAdmin(admin.ModelAdmin):
    list_display = ('user', 'w9_completed', 'coi_completed', 'agreement_completed', 'coi_expires_on', 'updated_at')
    list_filter = ('w9_completed', 'coi_completed', 'agreement_completed')
    search_fields = ('user__username', 'user__email')


@admin.register(Worker)
class WorkerAdmin(admin.ModelAdmin):
    list_display = ('name', 'user', 'worker_type', 'w9_ocr_status', 'archived')
    list_filter = ('worker_type', 'w9_ocr_status', 'archived')
    search_fields = ('name', 'email', 'user__username')
    readonly_fields = ('name_key', 'created_at', 'updated_at')


@admin.register(PayrollEntry)
class PayrollEntryAdmin(admin.ModelAdmin):
    list_display = ('employee_name', 'user', 'pay_date', 'amount_display', 'method')
    list_filter = ('method', 'pay_date')
    search_fields = ('employee_name', 'memo', 'user__username')
    date_hierarchy = 'pay_date'

    def amount_display(self, obj):
        return money(obj.amount)
    amount_display.admin_order_field = 'amount'
    amount_display.short_description = 'Amount'


class InvoiceLineItemInline(admin.TabularInline):
    model = InvoiceLineItem
    extra = 0


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ('invoice_number', 'user', 'to_name', 'invoice_date', 'total_display', 'email_status')
    list_filter = ('email_status',)
    search_fields = ('invoice_number', 'to_name', 'to_email', 'project_name')
    inlines = [InvoiceLineItemInline]

    def total_display(self, obj):
        return money(obj.total)
    total_display.admin_order_field = 'total'
    total_display.short_description = 'Total'


class JobInline(admin.TabularInline):
    model = Job
    extra = 0
    fields = ('job_name', 'address')


@admin.register(Builder)
class BuilderAdmin(admin.ModelAdmin):
    list_display = ('builder_name', 'user', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('builder_name',)
    inlines = [JobInline]


@admin.register(Estimate)
class EstimateAdmin(admin.ModelAdmin):
    list_display = ('estimate_name', 'job', 'grand_total', 'updated_at')
    search_fields = ('estimate_name', 'job__job_name')


admin.site.register(Agreement)
admin.site.register(W9Form)
admin.site.register(AuditPacket)


@admin.register(Form1099)
class Form1099Admin(admin.ModelAdmin):
    list_display = ('payee_name', 'tax_year', 'user', 'total_amount', 'created_at')
    list_filter = ('tax_year',)


@admin.register(ContractScan)
class ContractScanAdmin(admin.ModelAdmin):
    list_display = ('file_name', 'user', 'created_at')
    search_fields = ('file_name',)
