import datetime
import random
from decimal import Decimal
from unittest import mock

from django.contrib.auth.models import User
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase, TestCase
from django.test.utils import override_settings
from django.urls import reverse

from .errors import CallableFunctionError, ListoError
from .estimate_utils import (
    categories_shape_ok,
    clean_categories,
    compute_estimate_totals,
    copy_estimate,
    save_estimate,
    store_builder_document,
    store_project_coi,
)
from .invoice_utils import compute_invoice_totals, copy_invoice, email_invoice, make_invoice_number, save_invoice
from .models import Builder, Estimate, Invoice, Job
from .tests import TEST_MEDIA_ROOT, MediaRootMixin

SAMPLE_CATEGORIES = {
    "labor": [{"description": "Framing crew", "hours": "10", "rate": "50"}],
    "materials": [{"description": "Studs", "qty": "20", "unit_cost": "12.5"}],
    "subcontractors": [{"description": "Electrician", "amount": "1000"}],
    "other": [{"description": "Dumpster", "amount": "50"}, {"description": "  ", "amount": "999"}],
}


class InvoiceMathTests(SimpleTestCase):
    def test_totals(self):
        items = [{"qty": "2", "unit_price": "150"}, {"qty": "1", "unit_price": "25.5"}]
        totals = compute_invoice_totals(items, "8.25", "10", "0")
        self.assertEqual(totals.subtotal, Decimal("325.50"))
        self.assertEqual(totals.tax, Decimal("26.85"))
        self.assertEqual(totals.total, Decimal("342.35"))

    def test_total_never_negative(self):
        totals = compute_invoice_totals([{"qty": 1, "unit_price": 20}], 0, 15, 10)
        self.assertEqual(totals.total, Decimal("0.00"))

    def test_invoice_number_format(self):
        number = make_invoice_number(datetime.date(2025, 3, 9), random.Random(4))
        self.assertRegex(number, r"^INV-20250309-\d{4}$")


class EstimateMathTests(SimpleTestCase):
    def test_layered_markups(self):
        totals = compute_estimate_totals(SAMPLE_CATEGORIES, 10, 15, 8, tax_enabled=True)
        self.assertEqual(totals.labor, Decimal("500.00"))
        self.assertEqual(totals.materials, Decimal("250.00"))
        self.assertEqual(totals.other, Decimal("50.00"))
        self.assertEqual(totals.subtotal, Decimal("1800.00"))
        self.assertEqual(totals.overhead, Decimal("180.00"))
        self.assertEqual(totals.profit, Decimal("297.00"))
        self.assertEqual(totals.tax, Decimal("182.16"))
        self.assertEqual(totals.grand_total, Decimal("2459.16"))

    def test_tax_ignored_unless_enabled(self):
        totals = compute_estimate_totals(SAMPLE_CATEGORIES, 10, 15, 8, tax_enabled=False)
        self.assertEqual(totals.tax, Decimal("0.00"))
        self.assertEqual(totals.grand_total, Decimal("2277.00"))

    def test_clean_categories_drops_blank_rows(self):
        cleaned = clean_categories(SAMPLE_CATEGORIES)
        self.assertEqual(len(cleaned["other"]), 1)
        self.assertEqual(cleaned["labor"][0]["subtotal"], "500.00")
        self.assertEqual(cleaned["materials"][0]["unit_cost"], "12.5")

    def test_malformed_rows_are_skipped(self):
        categories = {"labor": ["x", 5, {"description": "Framing", "hours": "2", "rate": "40"}], "other": "junk"}
        cleaned = clean_categories(categories)
        self.assertEqual([row["description"] for row in cleaned["labor"]], ["Framing"])
        self.assertEqual(cleaned["other"], [])
        totals = compute_estimate_totals(categories)
        self.assertEqual(totals.labor, Decimal("80.00"))
        self.assertEqual(compute_estimate_totals(["x"]).subtotal, Decimal("0.00"))
        self.assertEqual(clean_categories("junk")["labor"], [])

    def test_categories_shape(self):
        self.assertTrue(categories_shape_ok({"labor": [{"description": "Framing"}], "other": None}))
        self.assertFalse(categories_shape_ok({"labor": ["x"]}))
        self.assertFalse(categories_shape_ok({"labor": {"description": "Framing"}}))
        self.assertFalse(categories_shape_ok([1, 2]))


class InvoiceTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="inv@example.com", email="inv@example.com",
                                             password="pw-123456")
        self.client.force_login(self.user)

    def _post_data(self, **overrides):
        data = {
            "invoice_number": "",
            "invoice_date": "2025-03-09",
            "to_name": "Acme Builders",
            "to_email": "ap@acme.example.com",
            "tax_rate_pct": "8.25",
            "discount": "10",
            "deposit": "0",
            "item_description": ["Tile install", "Grout", ""],
            "item_qty": ["2", "1", "5"],
            "item_unit_price": ["150", "25.5", "99"],
        }
        data.update(overrides)
        return data

    def test_create_generates_number_and_totals(self):
        response = self.client.post(reverse("portal:invoice_new"), self._post_data())
        invoice = Invoice.objects.get(user=self.user)
        self.assertRedirects(response, reverse("portal:invoice_edit", args=[invoice.pk]))
        self.assertRegex(invoice.invoice_number, r"^INV-\d{8}-\d{4}$")
        self.assertEqual(invoice.items.count(), 2)
        self.assertEqual(invoice.total, Decimal("342.35"))
        self.assertEqual(invoice.email_status, Invoice.EMAIL_DRAFT)

    def test_save_updates_in_place(self):
        self.client.post(reverse("portal:invoice_new"), self._post_data(invoice_number="INV-1"))
        invoice = Invoice.objects.get(user=self.user)
        self.client.post(
            reverse("portal:invoice_edit", args=[invoice.pk]),
            self._post_data(invoice_number="INV-1", discount="0", item_description=["Only line"],
                            item_qty=["1"], item_unit_price=["100"]),
        )
        self.assertEqual(Invoice.objects.filter(user=self.user).count(), 1)
        invoice.refresh_from_db()
        self.assertEqual([i.description for i in invoice.items.all()], ["Only line"])
        self.assertEqual(invoice.total, Decimal("108.25"))

    def test_save_as_copy_leaves_original(self):
        self.client.post(reverse("portal:invoice_new"), self._post_data(invoice_number="INV-1"))
        original = Invoice.objects.get(user=self.user)
        self.client.post(
            reverse("portal:invoice_edit", args=[original.pk]),
            self._post_data(invoice_number="", action="copy"),
        )
        self.assertEqual(Invoice.objects.filter(user=self.user).count(), 2)
        original.refresh_from_db()
        self.assertEqual(original.invoice_number, "INV-1")

    def test_negative_amounts_rejected(self):
        response = self.client.post(reverse("portal:invoice_new"), self._post_data(discount="-5"))
        self.assertEqual(response.status_code, 200)
        self.assertIn("discount", response.context["form"].errors)
        self.assertFalse(Invoice.objects.exists())

    def test_copy_gets_new_number(self):
        invoice = save_invoice(self.user, {"invoice_number": "INV-7", "to_name": "A"},
                               [{"description": "Work", "qty": "1", "unit_price": "10"}])
        duplicate = copy_invoice(invoice)
        self.assertNotEqual(duplicate.pk, invoice.pk)
        self.assertNotEqual(duplicate.invoice_number, "INV-7")
        self.assertEqual(duplicate.items.get().description, "Work")

    def test_other_users_invoices_are_hidden(self):
        other = User.objects.create_user(username="x@example.com", password="pw-123456")
        invoice = save_invoice(other, {"invoice_number": "INV-9"}, [])
        self.assertEqual(self.client.get(reverse("portal:invoice_edit", args=[invoice.pk])).status_code, 404)
        with self.assertRaises(ListoError):
            save_invoice(self.user, {}, [], invoice)

    def test_pdf_renders_invoice_template(self):
        invoice = save_invoice(self.user, {"invoice_number": "INV-42", "to_name": "Acme"},
                               [{"description": "Tile install", "qty": "2", "unit_price": "150"}])
        with mock.patch("portal.pdf_utils.render_html_to_pdf", return_value=b"%PDF-1.4") as render:
            response = self.client.get(reverse("portal:invoice_pdf", args=[invoice.pk]), {"inline": "1"})
        self.assertEqual(response["Content-Type"], "application/pdf")
        self.assertTrue(response["Content-Disposition"].startswith("inline;"))
        html = render.call_args[0][0]
        self.assertIn("INV-42", html)
        self.assertIn("Tile install", html)
        self.assertIn("$300.00", html)

    def test_send_requires_customer_email(self):
        invoice = save_invoice(self.user, {"invoice_number": "INV-1"}, [])
        with mock.patch("portal.invoice_utils.send_invoice_email") as send:
            response = self.client.post(reverse("portal:invoice_send", args=[invoice.pk]), follow=True)
        send.assert_not_called()
        self.assertContains(response, "Add a customer email before sending.")

    def test_send_marks_status(self):
        invoice = save_invoice(self.user, {"invoice_number": "INV-1", "to_email": "ap@acme.example.com"}, [])
        with mock.patch("portal.invoice_utils.send_invoice_email", return_value={}) as send:
            email_invoice(invoice)
        send.assert_called_once_with(invoice.pk)
        invoice.refresh_from_db()
        self.assertEqual(invoice.email_status, Invoice.EMAIL_SENT)
        self.assertIsNotNone(invoice.last_emailed_at)

    def test_send_failure_marks_failed(self):
        invoice = save_invoice(self.user, {"invoice_number": "INV-1", "to_email": "ap@acme.example.com"}, [])
        error = CallableFunctionError("mail down", code="unavailable", function="sendInvoiceEmail")
        with mock.patch("portal.invoice_utils.send_invoice_email", side_effect=error):
            with self.assertRaises(CallableFunctionError):
                email_invoice(invoice)
        invoice.refresh_from_db()
        self.assertEqual(invoice.email_status, Invoice.EMAIL_FAILED)


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT)
class EstimateTests(MediaRootMixin, TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="est@example.com", password="pw-123456")
        self.client.force_login(self.user)
        self.builder = Builder.objects.create(user=self.user, builder_name="Summit Homes")
        self.job = Job.objects.create(builder=self.builder, job_name="Lot 12")

    def _row_post(self, **overrides):
        data = {
            "estimate_name": "Base bid",
            "overhead_pct": "10",
            "profit_pct": "15",
            "tax_enabled": "on",
            "tax_pct": "8",
            "labor_description": ["Framing crew", ""],
            "labor_hours": ["10", ""],
            "labor_rate": ["50", ""],
            "materials_description": ["Studs"],
            "materials_qty": ["20"],
            "materials_unit_cost": ["12.5"],
            "subcontractors_description": ["Electrician"],
            "subcontractors_amount": ["1000"],
            "other_description": ["Dumpster"],
            "other_amount": ["50"],
        }
        data.update(overrides)
        return data

    def test_quick_estimate_returns_totals(self):
        response = self.client.post(reverse("portal:quick_estimate"), self._row_post(estimate_name=""))
        payload = response.json()
        self.assertTrue(payload["success"])
        self.assertEqual(payload["estimate_name"], "Untitled Estimate")
        self.assertEqual(payload["totals"]["grand_total"], "2459.16")

    def test_quick_estimate_rejects_malformed_line_items(self):
        response = self.client.post(reverse("portal:quick_estimate"),
                                    self._row_post(categories='{"labor": ["x"]}'))
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()["success"])

    def test_save_and_copy(self):
        response = self.client.post(reverse("portal:estimate_new", args=[self.job.pk]), self._row_post())
        estimate = Estimate.objects.get(job=self.job)
        self.assertRedirects(response, reverse("portal:estimate_edit", args=[self.job.pk, estimate.pk]))
        self.assertEqual(estimate.grand_total, Decimal("2459.16"))
        self.assertEqual(len(estimate.categories["labor"]), 1)
        self.assertTrue(estimate.tax_enabled)

        self.client.post(reverse("portal:estimate_copy", args=[estimate.pk]))
        copy = Estimate.objects.exclude(pk=estimate.pk).get(job=self.job)
        self.assertEqual(copy.estimate_name, "Base bid (copy)")
        self.assertEqual(copy.grand_total, estimate.grand_total)

    def test_edit_page_renders_saved_rows(self):
        estimate = save_estimate(self.job, {"estimate_name": "Bid", "categories": SAMPLE_CATEGORIES})
        response = self.client.get(reverse("portal:estimate_edit", args=[self.job.pk, estimate.pk]))
        self.assertContains(response, 'value="Framing crew"')
        self.assertContains(response, 'name="materials_unit_cost"')

    def test_name_is_required(self):
        response = self.client.post(reverse("portal:estimate_new", args=[self.job.pk]),
                                    self._row_post(estimate_name=" "))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Estimate.objects.exists())
        with self.assertRaises(ListoError):
            save_estimate(self.job, {"estimate_name": ""})

    def test_copy_with_explicit_name(self):
        estimate = save_estimate(self.job, {"estimate_name": "Bid", "categories": SAMPLE_CATEGORIES})
        self.assertEqual(copy_estimate(estimate, "Alt bid").estimate_name, "Alt bid")

    def test_jobs_of_other_users_are_hidden(self):
        other = User.objects.create_user(username="o@example.com", password="pw-123456")
        foreign_job = Job.objects.create(builder=Builder.objects.create(user=other, builder_name="B"), job_name="J")
        self.assertEqual(self.client.get(reverse("portal:job_detail", args=[foreign_job.pk])).status_code, 404)
        response = self.client.post(reverse("portal:estimate_new", args=[foreign_job.pk]), self._row_post())
        self.assertEqual(response.status_code, 404)

    def test_builder_and_job_creation(self):
        response = self.client.post(reverse("portal:builders"), {"builder_name": "Ridge Co", "is_active": "on"})
        builder = Builder.objects.get(builder_name="Ridge Co")
        self.assertRedirects(response, reverse("portal:builder_detail", args=[builder.pk]))
        response = self.client.post(
            reverse("portal:builder_detail", args=[builder.pk]), {"form": "job", "job_name": "Lot 3"}
        )
        job = Job.objects.get(builder=builder)
        self.assertRedirects(response, reverse("portal:job_detail", args=[job.pk]))

    def test_builder_documents_are_removed_with_builder(self):
        coi = SimpleUploadedFile("coi.pdf", b"%PDF-1.4", content_type="application/pdf")
        builder_path = store_builder_document(self.builder, "builder_coi", coi)
        project = SimpleUploadedFile("proj.pdf", b"%PDF-1.4", content_type="application/pdf")
        job_path = store_project_coi(self.job, project)
        self.assertTrue(job_path.startswith(
            f"users/{self.user.pk}/builders/{self.builder.pk}/jobs/{self.job.pk}/coi/"
        ))

        self.client.post(reverse("portal:builder_delete", args=[self.builder.pk]))
        self.assertFalse(Job.objects.filter(pk=self.job.pk).exists())
        self.assertFalse(default_storage.exists(builder_path))
        self.assertFalse(default_storage.exists(job_path))
