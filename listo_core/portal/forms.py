import datetime
import json
from decimal import Decimal

from crispy_forms.helper import FormHelper
from crispy_forms.layout import Column, Layout, Row, Submit
from django import forms
from django.contrib.auth.forms import AuthenticationForm
from django.contrib.auth.models import User
from django.contrib.auth.password_validation import validate_password
from django.forms.widgets import DateInput

from .audit_utils import DOCUMENT_TYPES, QUESTIONS
from .estimate_utils import (
    CATEGORY_LABOR,
    CATEGORY_MATERIALS,
    CATEGORY_OTHER,
    CATEGORY_SUBCONTRACTORS,
    DEFAULT_OVERHEAD_PCT,
    DEFAULT_PROFIT_PCT,
    DEFAULT_TAX_PCT,
    categories_shape_ok,
)
from .formatting import to_decimal
from .models import (
    LANGUAGE_CHOICES,
    Agreement,
    AuditPacket,
    Builder,
    Invoice,
    Job,
    PayrollEntry,
    Profile,
    W9Form,
    Worker,
)
from .pdf_utils import is_image_data_url
from .signature import render_strokes
from .validators import (
    US_STATES,
    phone_validator,
    state_validator,
    tin_validator,
    zip_validator,
)
from .worker_utils import DOC_COI, DOC_W9, DOC_WORKERS_COMP

STATE_CHOICES = [("", "Select state")] + list(US_STATES)


def _date_widget():
    return DateInput(attrs={"type": "date", "class": "form-control"})


def _style_fields(form):
    for field in form.fields.values():
        widget = field.widget
        if isinstance(widget, (forms.CheckboxInput, forms.RadioSelect)):
            widget.attrs.setdefault("class", "form-check-input")
        elif isinstance(widget, forms.Select):
            widget.attrs.setdefault("class", "custom-select")
        else:
            widget.attrs.setdefault("class", "form-control")


class LoginForm(AuthenticationForm):
    username = forms.CharField(
        label="Email or username",
        widget=forms.TextInput(attrs={"autofocus": True, "class": "form-control", "placeholder": "you@company.com"}),
    )
    password = forms.CharField(
        label="Password",
        strip=False,
        widget=forms.PasswordInput(attrs={"class": "form-control", "autocomplete": "current-password"}),
    )


class SignupForm(forms.Form):
    display_name = forms.CharField(label="Company / Display name", max_length=150)
    email = forms.EmailField(label="Email")
    password1 = forms.CharField(label="Password", widget=forms.PasswordInput)
    password2 = forms.CharField(label="Confirm Password", widget=forms.PasswordInput)
    accept_terms = forms.BooleanField(label="I agree to the Terms and Conditions and Privacy Policy")

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        _style_fields(self)

    def clean_email(self):
        email = self.cleaned_data["email"].strip().lower()
        if User.objects.filter(email__iexact=email).exists():
            raise forms.ValidationError("This email address is already in use.")
        return email

    def clean(self):
        cleaned_data = super().clean()
        password1 = cleaned_data.get("password1")
        password2 = cleaned_data.get("password2")
        if password1 and password2 and password1 != password2:
            raise forms.ValidationError("Passwords do not match.")
        if password1:
            try:
                validate_password(password1)
            except forms.ValidationError as exc:
                self.add_error("password1", exc)
        return cleaned_data

    def save(self):
        email = self.cleaned_data["email"]
        user = User.objects.create_user(
            username=email,
            email=email,
            password=self.cleaned_data["password1"],
            first_name=self.cleaned_data["display_name"][:150],
        )
        Profile.objects.create(user=user, display_name=self.cleaned_data["display_name"], email=email)
        return user


class ProfileForm(forms.ModelForm):
    state = forms.ChoiceField(choices=STATE_CHOICES, required=False, validators=[state_validator])

    class Meta:
        model = Profile
        fields = [
            "display_name",
            "company_name",
            "email",
            "phone_number",
            "street",
            "city",
            "state",
            "zip_code",
            "taxpayer_id",
        ]
        labels = {
            "display_name": "Contact name",
            "company_name": "Business name",
            "phone_number": "Phone",
            "zip_code": "ZIP",
            "taxpayer_id": "Taxpayer ID (EIN or SSN)",
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["phone_number"].validators.append(phone_validator)
        self.fields["zip_code"].validators.append(zip_validator)
        self.fields["taxpayer_id"].validators.append(tin_validator)
        _style_fields(self)
        self.helper = FormHelper()
        self.helper.form_method = "post"
        self.helper.layout = Layout(
            Row(Column("display_name", css_class="col-md-6"), Column("company_name", css_class="col-md-6")),
            Row(Column("email", css_class="col-md-6"), Column("phone_number", css_class="col-md-6")),
            "street",
            Row(
                Column("city", css_class="col-md-5"),
                Column("state", css_class="col-md-3"),
                Column("zip_code", css_class="col-md-4"),
            ),
            "taxpayer_id",
        )
        self.helper.add_input(Submit("submit", "Save Profile"))

    def clean_state(self):
        return (self.cleaned_data.get("state") or "").upper()


class NameForm(forms.Form):
    display_name = forms.CharField(label="Display name", max_length=150)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        _style_fields(self)


class EmailChangeForm(forms.Form):
    new_email = forms.EmailField(label="New email")
    current_password = forms.CharField(label="Current password", widget=forms.PasswordInput)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        _style_fields(self)


class PasswordUpdateForm(forms.Form):
    current_password = forms.CharField(label="Current password", widget=forms.PasswordInput)
    new_password1 = forms.CharField(label="New password", widget=forms.PasswordInput)
    new_password2 = forms.CharField(label="Confirm new password", widget=forms.PasswordInput)

    def __init__(self, *args, user=None, **kwargs):
        self.user = user
        super().__init__(*args, **kwargs)
        _style_fields(self)

    def clean(self):
        cleaned_data = super().clean()
        new1 = cleaned_data.get("new_password1")
        new2 = cleaned_data.get("new_password2")
        if new1 and new2 and new1 != new2:
            raise forms.ValidationError("Passwords do not match.")
        if new1:
            try:
                validate_password(new1, self.user)
            except forms.ValidationError as exc:
                self.add_error("new_password1", exc)
        return cleaned_data


class LogoForm(forms.Form):
    logo = forms.FileField(label="Logo image")


class LanguageForm(forms.Form):
    language = forms.ChoiceField(choices=LANGUAGE_CHOICES)


class WorkerForm(forms.ModelForm):
    class Meta:
        model = Worker
        fields = ["name", "worker_type", "email", "phone", "address", "notes"]
        widgets = {
            "address": forms.Textarea(attrs={"rows": 2}),
            "notes": forms.Textarea(attrs={"rows": 3}),
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["phone"].validators.append(phone_validator)
        _style_fields(self)

    def clean_name(self):
        name = " ".join((self.cleaned_data.get("name") or "").split())
        if not name:
            raise forms.ValidationError("Name is required.")
        return name


class WorkerDocumentForm(forms.Form):
    doc_type = forms.ChoiceField(
        choices=((DOC_W9, "W-9"), (DOC_COI, "Certificate of Insurance"), (DOC_WORKERS_COMP, "Workers comp proof"))
    )
    file = forms.FileField()


class PayrollEntryForm(forms.ModelForm):
    employee_name = forms.CharField(label="Employee", max_length=200)
    amount = forms.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        model = PayrollEntry
        fields = ["employee_name", "pay_date", "amount", "method", "memo"]
        widgets = {"pay_date": _date_widget()}

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        _style_fields(self)

    def clean_employee_name(self):
        name = " ".join((self.cleaned_data.get("employee_name") or "").split())
        if not name:
            raise forms.ValidationError("Employee name is required.")
        return name

    def clean_amount(self):
        amount = self.cleaned_data.get("amount")
        if amount is None or not amount.is_finite() or amount <= 0:
            raise forms.ValidationError("Amount must be greater than zero.")
        return amount


class PayrollFilterForm(forms.Form):
    name = forms.CharField(required=False)
    method = forms.ChoiceField(choices=[("", "All methods")] + list(PayrollEntry.METHOD_CHOICES), required=False)
    start = forms.DateField(required=False, widget=_date_widget())
    end = forms.DateField(required=False, widget=_date_widget())


class InvoiceForm(forms.ModelForm):
    class Meta:
        model = Invoice
        fields = [
            "invoice_number",
            "invoice_date",
            "due_date",
            "project_name",
            "from_name",
            "from_email",
            "from_phone",
            "from_address",
            "to_name",
            "to_email",
            "to_phone",
            "to_address",
            "tax_rate_pct",
            "discount",
            "deposit",
            "notes",
            "payment_instructions",
        ]
        widgets = {
            "invoice_date": _date_widget(),
            "due_date": _date_widget(),
            "from_address": forms.Textarea(attrs={"rows": 2}),
            "to_address": forms.Textarea(attrs={"rows": 2}),
            "notes": forms.Textarea(attrs={"rows": 2}),
            "payment_instructions": forms.Textarea(attrs={"rows": 2}),
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["invoice_number"].required = False
        self.fields["invoice_number"].help_text = "Leave blank to generate one."
        for name in ("tax_rate_pct", "discount", "deposit"):
            self.fields[name].required = False
        _style_fields(self)

    def _non_negative(self, name):
        value = self.cleaned_data.get(name)
        value = Decimal("0") if value is None else value
        if value < 0:
            raise forms.ValidationError("Must be zero or more.")
        return value

    def clean_tax_rate_pct(self):
        return self._non_negative("tax_rate_pct")

    def clean_discount(self):
        return self._non_negative("discount")

    def clean_deposit(self):
        return self._non_negative("deposit")


def line_items_from_post(data) -> list:
    """Read parallel ``item_description`` / ``item_qty`` / ``item_unit_price`` lists."""
    descriptions = data.getlist("item_description")
    quantities = data.getlist("item_qty")
    prices = data.getlist("item_unit_price")
    items = []
    for index, description in enumerate(descriptions):
        items.append(
            {
                "description": description,
                "qty": quantities[index] if index < len(quantities) else "",
                "unit_price": prices[index] if index < len(prices) else "",
            }
        )
    return items


ESTIMATE_ROW_FIELDS = {
    CATEGORY_LABOR: ("description", "hours", "rate"),
    CATEGORY_MATERIALS: ("description", "qty", "unit_cost"),
    CATEGORY_SUBCONTRACTORS: ("description", "amount"),
    CATEGORY_OTHER: ("description", "amount"),
}


def categories_from_post(data) -> dict:
    """Rebuild estimate rows from ``<category>_<field>`` lists."""
    categories = {}
    for category, fields in ESTIMATE_ROW_FIELDS.items():
        columns = {field: data.getlist(f"{category}_{field}") for field in fields}
        rows = []
        for index in range(len(columns["description"])):
            rows.append(
                {field: values[index] if index < len(values) else "" for field, values in columns.items()}
            )
        categories[category] = rows
    return categories


class BuilderForm(forms.ModelForm):
    builder_coi = forms.FileField(label="Builder COI", required=False)
    sub_agreement = forms.FileField(label="Sub agreement", required=False)

    class Meta:
        model = Builder
        fields = ["builder_name", "is_active"]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        _style_fields(self)


class JobForm(forms.ModelForm):
    project_coi = forms.FileField(label="Project COI", required=False)

    class Meta:
        model = Job
        fields = ["job_name", "address", "description"]
        widgets = {"description": forms.Textarea(attrs={"rows": 3})}

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        _style_fields(self)


class EstimateForm(forms.Form):
    estimate_name = forms.CharField(max_length=200, required=False)
    notes = forms.CharField(widget=forms.Textarea(attrs={"rows": 3}), required=False)
    overhead_pct = forms.DecimalField(max_digits=6, decimal_places=2, required=False, initial=DEFAULT_OVERHEAD_PCT)
    profit_pct = forms.DecimalField(max_digits=6, decimal_places=2, required=False, initial=DEFAULT_PROFIT_PCT)
    tax_enabled = forms.BooleanField(required=False)
    tax_pct = forms.DecimalField(max_digits=6, decimal_places=3, required=False, initial=DEFAULT_TAX_PCT)
    categories = forms.CharField(widget=forms.HiddenInput, required=False)

    def __init__(self, *args, require_name=True, **kwargs):
        self.require_name = require_name
        super().__init__(*args, **kwargs)
        _style_fields(self)

    def clean_estimate_name(self):
        name = (self.cleaned_data.get("estimate_name") or "").strip()
        if not name:
            if self.require_name:
                raise forms.ValidationError("Estimate name is required.")
            return "Untitled Estimate"
        return name

    def clean_categories(self):
        raw = self.cleaned_data.get("categories") or ""
        if not raw:
            return categories_from_post(self.data) if hasattr(self.data, "getlist") else {}
        try:
            value = json.loads(raw)
        except ValueError:
            raise forms.ValidationError("Line items could not be read.")
        if not categories_shape_ok(value):
            raise forms.ValidationError("Line items could not be read.")
        return value

    def clean(self):
        cleaned_data = super().clean()
        for name, default in (
            ("overhead_pct", DEFAULT_OVERHEAD_PCT),
            ("profit_pct", DEFAULT_PROFIT_PCT),
            ("tax_pct", DEFAULT_TAX_PCT),
        ):
            cleaned_data[name] = to_decimal(cleaned_data.get(name), default)
        return cleaned_data


class SignatureMixin:
    """Resolve the captured signature from posted strokes or a PNG data URL."""

    signature_required = True

    def clean_signature(self):
        strokes_raw = self.cleaned_data.get("signature_strokes") or ""
        data_url = self.cleaned_data.get("signature_data_url") or ""
        signature = ""
        if strokes_raw:
            try:
                signature = render_strokes(json.loads(strokes_raw))
            except (TypeError, ValueError):
                signature = ""
        if not signature and data_url and is_image_data_url(data_url):
            signature = data_url
        if self.signature_required and not signature:
            self.add_error(None, "Please sign in the signature box.")
        self.cleaned_data["signature"] = signature
        return signature


class AgreementForm(SignatureMixin, forms.ModelForm):
    signature_strokes = forms.CharField(widget=forms.HiddenInput, required=False)
    signature_data_url = forms.CharField(widget=forms.HiddenInput, required=False)

    class Meta:
        model = Agreement
        fields = ["signer_name", "signer_title", "company_name", "accepted"]
        labels = {"accepted": "I have read and agree to the subcontractor agreement"}

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["signer_name"].required = True
        self.fields["accepted"].required = True
        _style_fields(self)

    def clean(self):
        cleaned_data = super().clean()
        self.clean_signature()
        return cleaned_data


class W9FilingForm(SignatureMixin, forms.ModelForm):
    state = forms.ChoiceField(choices=STATE_CHOICES, required=False, validators=[state_validator])
    signature_strokes = forms.CharField(widget=forms.HiddenInput, required=False)
    signature_data_url = forms.CharField(widget=forms.HiddenInput, required=False)

    class Meta:
        model = W9Form
        fields = [
            "name",
            "business_name",
            "tax_classification",
            "llc_tax_code",
            "other_classification",
            "exempt_payee_code",
            "fatca_code",
            "address",
            "city",
            "state",
            "zip_code",
            "requester",
            "account_numbers",
            "tin_type",
            "tin",
            "signed_on",
        ]
        widgets = {"signed_on": _date_widget(), "tax_classification": forms.RadioSelect}

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for name in ("name", "tax_classification", "address", "city", "state", "zip_code", "tin"):
            self.fields[name].required = True
        self.fields["zip_code"].validators.append(zip_validator)
        self.fields["tin"].validators.append(tin_validator)
        if not self.initial.get("signed_on"):
            self.initial["signed_on"] = datetime.date.today()
        _style_fields(self)

    def clean_llc_tax_code(self):
        return (self.cleaned_data.get("llc_tax_code") or "").upper()

    def clean(self):
        cleaned_data = super().clean()
        if cleaned_data.get("tax_classification") == W9Form.CLASS_LLC and not cleaned_data.get("llc_tax_code"):
            self.add_error("llc_tax_code", "Enter the LLC tax classification (C, S or P).")
        self.clean_signature()
        return cleaned_data


class CoiUploadForm(forms.Form):
    file = forms.FileField(label="Certificate of insurance")
    expires_on = forms.DateField(required=False, widget=_date_widget())


class CoiExpiryForm(forms.Form):
    expires_on = forms.DateField(widget=_date_widget())


class AuditPeriodForm(forms.Form):
    policy_start = forms.DateField(widget=_date_widget())
    policy_end = forms.DateField(widget=_date_widget())

    def clean(self):
        cleaned_data = super().clean()
        start, end = cleaned_data.get("policy_start"), cleaned_data.get("policy_end")
        if start and end and start > end:
            raise forms.ValidationError("Policy start date must be on or before the end date.")
        return cleaned_data


class AuditContactForm(forms.ModelForm):
    class Meta:
        model = AuditPacket
        fields = ["business_name", "copy_email", "auditor_email", "phone"]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["phone"].validators.append(phone_validator)
        _style_fields(self)


class AuditDocumentForm(forms.Form):
    doc_type = forms.ChoiceField(choices=DOCUMENT_TYPES)
    file = forms.FileField()


class QuestionnaireForm(forms.Form):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for key, label in QUESTIONS:
            self.fields[key] = forms.CharField(
                label=label,
                required=False,
                widget=forms.Textarea(attrs={"rows": 2, "class": "form-control"}),
            )


class Form1099Form(forms.Form):
    worker = forms.ModelChoiceField(queryset=Worker.objects.none())
    tax_year = forms.IntegerField(min_value=2000, max_value=2100)

    def __init__(self, *args, user=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["worker"].queryset = Worker.objects.filter(user=user, worker_type=Worker.TYPE_SUBCONTRACTOR)
        if not self.initial.get("tax_year"):
            self.initial["tax_year"] = datetime.date.today().year - 1
        _style_fields(self)


class ContractScanForm(forms.Form):
    file = forms.FileField(label="Contract (PDF, HEIC, JPG or PNG)")
