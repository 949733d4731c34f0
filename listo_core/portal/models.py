from decimal import Decimal

from django.contrib.auth.models import User
from django.db import models
from django.utils.dateparse import parse_date

from .formatting import format_address, initials, normalize_name


LANGUAGE_ENGLISH = "en"
LANGUAGE_SPANISH = "es"
LANGUAGE_CHOICES = (
    (LANGUAGE_ENGLISH, "English"),
    (LANGUAGE_SPANISH, "Español"),
)

DOCUMENT_STATUS_DRAFT = "draft"
DOCUMENT_STATUS_COMPLETED = "completed"
DOCUMENT_STATUS_CHOICES = (
    (DOCUMENT_STATUS_DRAFT, "Draft"),
    (DOCUMENT_STATUS_COMPLETED, "Completed"),
)


class Profile(models.Model):
    """Per-user business profile. Created lazily on the first write."""

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name="profile")
    display_name = models.CharField(max_length=150, blank=True)
    company_name = models.CharField(max_length=200, blank=True)
    email = models.EmailField(blank=True)
    phone_number = models.CharField(max_length=30, blank=True)
    street = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=2, blank=True)
    zip_code = models.CharField(max_length=10, blank=True)
    taxpayer_id = models.CharField(max_length=11, blank=True)
    logo_url = models.CharField(max_length=500, blank=True)
    logo_path = models.CharField(max_length=500, blank=True)
    language = models.CharField(max_length=2, choices=LANGUAGE_CHOICES, default=LANGUAGE_ENGLISH)
    password_updated_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.company_name or self.display_name or self.user.get_username()

    @property
    def initials(self):
        name = self.display_name or self.user.get_full_name()
        return initials(name, self.email or self.user.email)

    @property
    def address_display(self):
        return format_address(self.street, self.city, self.state, self.zip_code)

    @property
    def has_logo(self):
        return bool(self.logo_url)


class PrequalStatus(models.Model):
    """Pre-qualification checklist: W-9, certificate of insurance and agreement."""

    DOC_W9 = "w9"
    DOC_COI = "coi"
    DOC_AGREEMENT = "agreement"
    DOC_CHOICES = (
        (DOC_W9, "W-9"),
        (DOC_COI, "Certificate of Insurance"),
        (DOC_AGREEMENT, "Subcontractor Agreement"),
    )

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name="prequal")
    w9_completed = models.BooleanField(default=False)
    coi_completed = models.BooleanField(default=False)
    agreement_completed = models.BooleanField(default=False)
    w9 = models.JSONField(default=dict, blank=True)
    coi = models.JSONField(default=dict, blank=True)
    agreement = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "prequal statuses"

    def __str__(self):
        return f"Prequal for {self.user.get_username()}"

    @property
    def is_prequalified(self):
        return self.w9_completed and self.coi_completed and self.agreement_completed

    @property
    def completed_count(self):
        return sum(1 for flag in (self.w9_completed, self.coi_completed, self.agreement_completed) if flag)

    @property
    def coi_expires_on(self):
        value = (self.coi or {}).get("expiresOn")
        if not value:
            return None
        try:
            return parse_date(str(value)[:10])
        except ValueError:
            return None


class Worker(models.Model):
    """A person the subcontractor pays: W-2 style employee or 1099 subcontractor."""

    TYPE_EMPLOYEE = "employee"
    TYPE_SUBCONTRACTOR = "subcontractor"
    TYPE_CHOICES = (
        (TYPE_EMPLOYEE, "Employee"),
        (TYPE_SUBCONTRACTOR, "Subcontractor"),
    )

    OCR_PENDING = "pending"
    OCR_COMPLETE = "complete"
    OCR_NEEDS_REVIEW = "needs_review"
    OCR_FAILED = "failed"
    OCR_STATUS_CHOICES = (
        (OCR_PENDING, "Pending"),
        (OCR_COMPLETE, "Complete"),
        (OCR_NEEDS_REVIEW, "Needs review"),
        (OCR_FAILED, "Failed"),
    )

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="workers")
    name = models.CharField(max_length=200)
    name_key = models.CharField(max_length=200, db_index=True, editable=False)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=30, blank=True)
    address = models.TextField(blank=True)
    worker_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_EMPLOYEE)
    notes = models.TextField(blank=True)
    w9_path = models.CharField(max_length=500, blank=True)
    coi_path = models.CharField(max_length=500, blank=True)
    workers_comp_path = models.CharField(max_length=500, blank=True)
    w9_info = models.JSONField(default=dict, blank=True)
    w9_ocr_status = models.CharField(max_length=20, choices=OCR_STATUS_CHOICES, blank=True)
    w9_ocr_error = models.CharField(max_length=255, blank=True)
    archived = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        self.name_key = normalize_name(self.name)
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "name" in update_fields:
            kwargs["update_fields"] = set(update_fields) | {"name_key"}
        super().save(*args, **kwargs)

    @property
    def is_subcontractor(self):
        return self.worker_type == self.TYPE_SUBCONTRACTOR

    def document_paths(self):
        return [p for p in (self.w9_path, self.coi_path, self.workers_comp_path) if p]


class PayrollEntry(models.Model):
    METHOD_CASH = "Cash"
    METHOD_CHECK = "Check"
    METHOD_ZELLE = "Zelle"
    METHOD_CHOICES = (
        (METHOD_CASH, "Cash"),
        (METHOD_CHECK, "Check"),
        (METHOD_ZELLE, "Zelle"),
    )

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="payroll_entries")
    worker = models.ForeignKey(
        Worker,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payroll_entries",
    )
    employee_name = models.CharField(max_length=200)
    pay_date = models.DateField()
    amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    method = models.CharField(max_length=10, choices=METHOD_CHOICES)
    memo = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-pay_date", "-created_at"]
        verbose_name_plural = "payroll entries"

    def __str__(self):
        return f"{self.employee_name} {self.pay_date} {self.amount}"


class Invoice(models.Model):
    EMAIL_DRAFT = "draft"
    EMAIL_SENT = "sent"
    EMAIL_FAILED = "failed"
    EMAIL_STATUS_CHOICES = (
        (EMAIL_DRAFT, "Not sent"),
        (EMAIL_SENT, "Sent"),
        (EMAIL_FAILED, "Send failed"),
    )

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="invoices")
    invoice_number = models.CharField(max_length=40)
    invoice_date = models.DateField(blank=True, null=True)
    due_date = models.DateField(blank=True, null=True)
    project_name = models.CharField(max_length=200, blank=True)
    from_name = models.CharField(max_length=200, blank=True)
    from_email = models.EmailField(blank=True)
    from_phone = models.CharField(max_length=30, blank=True)
    from_address = models.TextField(blank=True)
    to_name = models.CharField(max_length=200, blank=True)
    to_email = models.EmailField(blank=True)
    to_phone = models.CharField(max_length=30, blank=True)
    to_address = models.TextField(blank=True)
    tax_rate_pct = models.DecimalField(max_digits=6, decimal_places=3, default=Decimal("0.000"))
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    deposit = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    notes = models.TextField(blank=True)
    payment_instructions = models.TextField(blank=True)
    email_status = models.CharField(max_length=10, choices=EMAIL_STATUS_CHOICES, default=EMAIL_DRAFT)
    last_emailed_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return self.invoice_number or f"Invoice {self.pk}"


class InvoiceLineItem(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="items")
    position = models.PositiveIntegerField(default=0)
    description = models.CharField(max_length=500)
    qty = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal("0.000"))
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    class Meta:
        ordering = ["position", "id"]

    def __str__(self):
        return self.description

    @property
    def line_total(self):
        return (self.qty or Decimal("0")) * (self.unit_price or Decimal("0"))


class Builder(models.Model):
    """General contractor the subcontractor works for."""

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="builders")
    builder_name = models.CharField(max_length=200)
    is_active = models.BooleanField(default=True)
    builder_coi_path = models.CharField(max_length=500, blank=True)
    sub_agreement_path = models.CharField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["builder_name"]

    def __str__(self):
        return self.builder_name


class Job(models.Model):
    builder = models.ForeignKey(Builder, on_delete=models.CASCADE, related_name="jobs")
    job_name = models.CharField(max_length=200)
    address = models.CharField(max_length=255, blank=True)
    description = models.TextField(blank=True)
    project_coi_path = models.CharField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["job_name"]

    def __str__(self):
        return self.job_name


class Estimate(models.Model):
    DEFAULT_NAME = "Untitled Estimate"

    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name="estimates")
    estimate_name = models.CharField(max_length=200, default=DEFAULT_NAME)
    notes = models.TextField(blank=True)
    categories = models.JSONField(default=dict, blank=True)
    overhead_pct = models.DecimalField(max_digits=6, decimal_places=2, default=Decimal("10.00"))
    profit_pct = models.DecimalField(max_digits=6, decimal_places=2, default=Decimal("15.00"))
    tax_pct = models.DecimalField(max_digits=6, decimal_places=3, default=Decimal("0.000"))
    labor_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    materials_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    subcontractors_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    other_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    overhead_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    profit_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    grand_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-updated_at"]

    def __str__(self):
        return self.estimate_name

    @property
    def tax_enabled(self):
        return (self.tax_pct or Decimal("0")) > 0


class Agreement(models.Model):
    """Signed subcontractor agreement, one per user."""

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name="agreement")
    signer_name = models.CharField(max_length=200, blank=True)
    signer_title = models.CharField(max_length=120, blank=True)
    company_name = models.CharField(max_length=200, blank=True)
    signature_data_url = models.TextField(blank=True)
    accepted = models.BooleanField(default=False)
    pdf_path = models.CharField(max_length=500, blank=True)
    pdf_file_name = models.CharField(max_length=255, blank=True)
    status = models.CharField(max_length=20, choices=DOCUMENT_STATUS_CHOICES, default=DOCUMENT_STATUS_DRAFT)
    signed_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Agreement for {self.user.get_username()}"


class W9Form(models.Model):
    """Values typed into the W-9 filler and the generated PDF reference."""

    CLASS_INDIVIDUAL = "individual"
    CLASS_C_CORP = "c_corporation"
    CLASS_S_CORP = "s_corporation"
    CLASS_PARTNERSHIP = "partnership"
    CLASS_TRUST = "trust_estate"
    CLASS_LLC = "llc"
    CLASS_OTHER = "other"
    CLASSIFICATION_CHOICES = (
        (CLASS_INDIVIDUAL, "Individual/sole proprietor or single-member LLC"),
        (CLASS_C_CORP, "C Corporation"),
        (CLASS_S_CORP, "S Corporation"),
        (CLASS_PARTNERSHIP, "Partnership"),
        (CLASS_TRUST, "Trust/estate"),
        (CLASS_LLC, "Limited liability company"),
        (CLASS_OTHER, "Other"),
    )

    TIN_SSN = "SSN"
    TIN_EIN = "EIN"
    TIN_TYPE_CHOICES = (
        (TIN_SSN, "Social Security Number"),
        (TIN_EIN, "Employer Identification Number"),
    )

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name="w9_form")
    name = models.CharField(max_length=200, blank=True)
    business_name = models.CharField(max_length=200, blank=True)
    tax_classification = models.CharField(max_length=30, choices=CLASSIFICATION_CHOICES, blank=True)
    llc_tax_code = models.CharField(max_length=1, blank=True)
    other_classification = models.CharField(max_length=100, blank=True)
    exempt_payee_code = models.CharField(max_length=10, blank=True)
    fatca_code = models.CharField(max_length=10, blank=True)
    address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=2, blank=True)
    zip_code = models.CharField(max_length=10, blank=True)
    requester = models.CharField(max_length=255, blank=True)
    account_numbers = models.CharField(max_length=255, blank=True)
    tin_type = models.CharField(max_length=3, choices=TIN_TYPE_CHOICES, default=TIN_SSN)
    tin = models.CharField(max_length=11, blank=True)
    signature_data_url = models.TextField(blank=True)
    signed_on = models.DateField(blank=True, null=True)
    pdf_path = models.CharField(max_length=500, blank=True)
    pdf_file_name = models.CharField(max_length=255, blank=True)
    status = models.CharField(max_length=20, choices=DOCUMENT_STATUS_CHOICES, default=DOCUMENT_STATUS_DRAFT)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"W-9 for {self.user.get_username()}"


class AuditPacket(models.Model):
    """Workers-comp insurance audit preparation, one per user."""

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name="audit_packet")
    policy_start = models.DateField(blank=True, null=True)
    policy_end = models.DateField(blank=True, null=True)
    business_name = models.CharField(max_length=200, blank=True)
    copy_email = models.EmailField(blank=True)
    auditor_email = models.EmailField(blank=True)
    phone = models.CharField(max_length=30, blank=True)
    questionnaire = models.JSONField(default=dict, blank=True)
    uploaded_files = models.JSONField(default=list, blank=True)
    payroll_summary = models.JSONField(default=list, blank=True)
    last_sent_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Audit packet for {self.user.get_username()}"


class Form1099(models.Model):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="forms_1099")
    worker = models.ForeignKey(
        Worker,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="forms_1099",
    )
    tax_year = models.PositiveIntegerField()
    payee_name = models.CharField(max_length=200)
    payer_name = models.CharField(max_length=200)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    pdf_path = models.CharField(max_length=500)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"1099-NEC {self.tax_year} {self.payee_name}"


class ContractScan(models.Model):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="contract_scans")
    file_path = models.CharField(max_length=500)
    file_name = models.CharField(max_length=255)
    english_text = models.TextField(blank=True)
    spanish_text = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return self.file_name
