from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


LANGUAGE_CHOICES = [("en", "English"), ("es", "Español")]
DOCUMENT_STATUS_CHOICES = [("draft", "Draft"), ("completed", "Completed")]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Profile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("display_name", models.CharField(blank=True, max_length=150)),
                ("company_name", models.CharField(blank=True, max_length=200)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("phone_number", models.CharField(blank=True, max_length=30)),
                ("street", models.CharField(blank=True, max_length=255)),
                ("city", models.CharField(blank=True, max_length=100)),
                ("state", models.CharField(blank=True, max_length=2)),
                ("zip_code", models.CharField(blank=True, max_length=10)),
                ("taxpayer_id", models.CharField(blank=True, max_length=11)),
                ("logo_url", models.CharField(blank=True, max_length=500)),
                ("logo_path", models.CharField(blank=True, max_length=500)),
                ("language", models.CharField(choices=LANGUAGE_CHOICES, default="en", max_length=2)),
                ("password_updated_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="PrequalStatus",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("w9_completed", models.BooleanField(default=False)),
                ("coi_completed", models.BooleanField(default=False)),
                ("agreement_completed", models.BooleanField(default=False)),
                ("w9", models.JSONField(blank=True, default=dict)),
                ("coi", models.JSONField(blank=True, default=dict)),
                ("agreement", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="prequal",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={"verbose_name_plural": "prequal statuses"},
        ),
        migrations.CreateModel(
            name="Worker",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("name_key", models.CharField(db_index=True, editable=False, max_length=200)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("phone", models.CharField(blank=True, max_length=30)),
                ("address", models.TextField(blank=True)),
                (
                    "worker_type",
                    models.CharField(
                        choices=[("employee", "Employee"), ("subcontractor", "Subcontractor")],
                        default="employee",
                        max_length=20,
                    ),
                ),
                ("notes", models.TextField(blank=True)),
                ("w9_path", models.CharField(blank=True, max_length=500)),
                ("coi_path", models.CharField(blank=True, max_length=500)),
                ("workers_comp_path", models.CharField(blank=True, max_length=500)),
                ("w9_info", models.JSONField(blank=True, default=dict)),
                (
                    "w9_ocr_status",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("pending", "Pending"),
                            ("complete", "Complete"),
                            ("needs_review", "Needs review"),
                            ("failed", "Failed"),
                        ],
                        max_length=20,
                    ),
                ),
                ("w9_ocr_error", models.CharField(blank=True, max_length=255)),
                ("archived", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="workers",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="PayrollEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("employee_name", models.CharField(max_length=200)),
                ("pay_date", models.DateField()),
                ("amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                (
                    "method",
                    models.CharField(
                        choices=[("Cash", "Cash"), ("Check", "Check"), ("Zelle", "Zelle")],
                        max_length=10,
                    ),
                ),
                ("memo", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payroll_entries",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "worker",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="payroll_entries",
                        to="portal.worker",
                    ),
                ),
            ],
            options={"ordering": ["-pay_date", "-created_at"], "verbose_name_plural": "payroll entries"},
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("invoice_number", models.CharField(max_length=40)),
                ("invoice_date", models.DateField(blank=True, null=True)),
                ("due_date", models.DateField(blank=True, null=True)),
                ("project_name", models.CharField(blank=True, max_length=200)),
                ("from_name", models.CharField(blank=True, max_length=200)),
                ("from_email", models.EmailField(blank=True, max_length=254)),
                ("from_phone", models.CharField(blank=True, max_length=30)),
                ("from_address", models.TextField(blank=True)),
                ("to_name", models.CharField(blank=True, max_length=200)),
                ("to_email", models.EmailField(blank=True, max_length=254)),
                ("to_phone", models.CharField(blank=True, max_length=30)),
                ("to_address", models.TextField(blank=True)),
                ("tax_rate_pct", models.DecimalField(decimal_places=3, default=Decimal("0.000"), max_digits=6)),
                ("discount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("deposit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("subtotal", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("tax_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("total", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("notes", models.TextField(blank=True)),
                ("payment_instructions", models.TextField(blank=True)),
                (
                    "email_status",
                    models.CharField(
                        choices=[("draft", "Not sent"), ("sent", "Sent"), ("failed", "Send failed")],
                        default="draft",
                        max_length=10,
                    ),
                ),
                ("last_emailed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="invoices",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={"ordering": ["-created_at"]},
        ),
        migrations.CreateModel(
            name="InvoiceLineItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("position", models.PositiveIntegerField(default=0)),
                ("description", models.CharField(max_length=500)),
                ("qty", models.DecimalField(decimal_places=3, default=Decimal("0.000"), max_digits=12)),
                ("unit_price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                (
                    "invoice",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="portal.invoice",
                    ),
                ),
            ],
            options={"ordering": ["position", "id"]},
        ),
        migrations.CreateModel(
            name="Builder",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("builder_name", models.CharField(max_length=200)),
                ("is_active", models.BooleanField(default=True)),
                ("builder_coi_path", models.CharField(blank=True, max_length=500)),
                ("sub_agreement_path", models.CharField(blank=True, max_length=500)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="builders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={"ordering": ["builder_name"]},
        ),
        migrations.CreateModel(
            name="Job",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("job_name", models.CharField(max_length=200)),
                ("address", models.CharField(blank=True, max_length=255)),
                ("description", models.TextField(blank=True)),
                ("project_coi_path", models.CharField(blank=True, max_length=500)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "builder",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="jobs",
                        to="portal.builder",
                    ),
                ),
            ],
            options={"ordering": ["job_name"]},
        ),
        migrations.CreateModel(
            name="Estimate",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("estimate_name", models.CharField(default="Untitled Estimate", max_length=200)),
                ("notes", models.TextField(blank=True)),
                ("categories", models.JSONField(blank=True, default=dict)),
                ("overhead_pct", models.DecimalField(decimal_places=2, default=Decimal("10.00"), max_digits=6)),
                ("profit_pct", models.DecimalField(decimal_places=2, default=Decimal("15.00"), max_digits=6)),
                ("tax_pct", models.DecimalField(decimal_places=3, default=Decimal("0.000"), max_digits=6)),
                ("labor_total", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("materials_total", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                (
                    "subcontractors_total",
                    models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12),
                ),
                ("other_total", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("subtotal", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("overhead_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("profit_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("tax_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("grand_total", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "job",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="estimates",
                        to="portal.job",
                    ),
                ),
            ],
            options={"ordering": ["-updated_at"]},
        ),
        migrations.CreateModel(
            name="Agreement",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("signer_name", models.CharField(blank=True, max_length=200)),
                ("signer_title", models.CharField(blank=True, max_length=120)),
                ("company_name", models.CharField(blank=True, max_length=200)),
                ("signature_data_url", models.TextField(blank=True)),
                ("accepted", models.BooleanField(default=False)),
                ("pdf_path", models.CharField(blank=True, max_length=500)),
                ("pdf_file_name", models.CharField(blank=True, max_length=255)),
                ("status", models.CharField(choices=DOCUMENT_STATUS_CHOICES, default="draft", max_length=20)),
                ("signed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="agreement",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="W9Form",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(blank=True, max_length=200)),
                ("business_name", models.CharField(blank=True, max_length=200)),
                (
                    "tax_classification",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("individual", "Individual/sole proprietor or single-member LLC"),
                            ("c_corporation", "C Corporation"),
                            ("s_corporation", "S Corporation"),
                            ("partnership", "Partnership"),
                            ("trust_estate", "Trust/estate"),
                            ("llc", "Limited liability company"),
                            ("other", "Other"),
                        ],
                        max_length=30,
                    ),
                ),
                ("llc_tax_code", models.CharField(blank=True, max_length=1)),
                ("other_classification", models.CharField(blank=True, max_length=100)),
                ("exempt_payee_code", models.CharField(blank=True, max_length=10)),
                ("fatca_code", models.CharField(blank=True, max_length=10)),
                ("address", models.CharField(blank=True, max_length=255)),
                ("city", models.CharField(blank=True, max_length=100)),
                ("state", models.CharField(blank=True, max_length=2)),
                ("zip_code", models.CharField(blank=True, max_length=10)),
                ("requester", models.CharField(blank=True, max_length=255)),
                ("account_numbers", models.CharField(blank=True, max_length=255)),
                (
                    "tin_type",
                    models.CharField(
                        choices=[("SSN", "Social Security Number"), ("EIN", "Employer Identification Number")],
                        default="SSN",
                        max_length=3,
                    ),
                ),
                ("tin", models.CharField(blank=True, max_length=11)),
                ("signature_data_url", models.TextField(blank=True)),
                ("signed_on", models.DateField(blank=True, null=True)),
                ("pdf_path", models.CharField(blank=True, max_length=500)),
                ("pdf_file_name", models.CharField(blank=True, max_length=255)),
                ("status", models.CharField(choices=DOCUMENT_STATUS_CHOICES, default="draft", max_length=20)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="w9_form",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="AuditPacket",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("policy_start", models.DateField(blank=True, null=True)),
                ("policy_end", models.DateField(blank=True, null=True)),
                ("business_name", models.CharField(blank=True, max_length=200)),
                ("copy_email", models.EmailField(blank=True, max_length=254)),
                ("auditor_email", models.EmailField(blank=True, max_length=254)),
                ("phone", models.CharField(blank=True, max_length=30)),
                ("questionnaire", models.JSONField(blank=True, default=dict)),
                ("uploaded_files", models.JSONField(blank=True, default=list)),
                ("payroll_summary", models.JSONField(blank=True, default=list)),
                ("last_sent_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="audit_packet",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="Form1099",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("tax_year", models.PositiveIntegerField()),
                ("payee_name", models.CharField(max_length=200)),
                ("payer_name", models.CharField(max_length=200)),
                ("total_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("pdf_path", models.CharField(max_length=500)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="forms_1099",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "worker",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="forms_1099",
                        to="portal.worker",
                    ),
                ),
            ],
            options={"ordering": ["-created_at"]},
        ),
        migrations.CreateModel(
            name="ContractScan",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("file_path", models.CharField(max_length=500)),
                ("file_name", models.CharField(max_length=255)),
                ("english_text", models.TextField(blank=True)),
                ("spanish_text", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="contract_scans",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={"ordering": ["-created_at"]},
        ),
    ]
