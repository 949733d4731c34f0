import datetime
from unittest import mock

from django.contrib.auth.models import User
from django.test import TestCase
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient

from portal.errors import CallableFunctionError
from portal.models import Builder, Estimate, Invoice, Job, PayrollEntry, PrequalStatus, Worker

CATEGORIES = {
    "labor": [{"description": "Framing crew", "hours": "10", "rate": "50"}],
    "materials": [{"description": "Studs", "qty": "20", "unit_cost": "12.5"}],
    "subcontractors": [{"description": "Electrician", "amount": "1000"}],
    "other": [{"description": "Dumpster", "amount": "50"}],
}


class AuthTokenTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(
            username="crew@example.com", email="crew@example.com", password="pw-123456"
        )

    def test_login_and_logout(self):
        response = self.client.post(
            "/api/auth/login/", {"email": "crew@example.com", "password": "pw-123456"}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        token = response.data["token"]
        self.assertTrue(Token.objects.filter(key=token, user=self.user).exists())

        self.client.credentials(HTTP_AUTHORIZATION=f"Token {token}")
        self.assertEqual(self.client.get("/api/workers/").status_code, 200)
        self.assertEqual(self.client.post("/api/auth/logout/").status_code, 204)
        self.assertFalse(Token.objects.filter(key=token).exists())

    def test_login_rejects_bad_password(self):
        response = self.client.post(
            "/api/auth/login/", {"email": "crew@example.com", "password": "nope"}, format="json"
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"], "invalid_credentials")

    def test_login_requires_fields(self):
        response = self.client.post("/api/auth/login/", {"email": "crew@example.com"}, format="json")
        self.assertEqual(response.status_code, 400)

    def test_endpoints_require_auth(self):
        self.assertIn(self.client.get("/api/invoices/").status_code, (401, 403))


class ApiTestCase(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="owner@example.com", password="pw-123456")
        self.other = User.objects.create_user(username="other@example.com", password="pw-123456")
        self.client = APIClient()
        self.client.force_authenticate(self.user)


class WorkerApiTests(ApiTestCase):
    def test_create_list_and_archive_filter(self):
        response = self.client.post(
            "/api/workers/", {"name": "Ana Ruiz", "worker_type": "subcontractor", "phone": "(512) 555-0100"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        Worker.objects.create(user=self.user, name="Old Hand", archived=True)
        Worker.objects.create(user=self.other, name="Not Mine")

        names = [w["name"] for w in self.client.get("/api/workers/").data]
        self.assertEqual(names, ["Ana Ruiz"])
        archived = [w["name"] for w in self.client.get("/api/workers/?archived=1").data]
        self.assertIn("Old Hand", archived)

    def test_phone_is_validated(self):
        response = self.client.post("/api/workers/", {"name": "Ana Ruiz", "phone": "555"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("phone", response.data)

    def test_other_users_worker_is_hidden(self):
        worker = Worker.objects.create(user=self.other, name="Not Mine")
        self.assertEqual(self.client.get(f"/api/workers/{worker.pk}/").status_code, 404)
        self.assertEqual(self.client.delete(f"/api/workers/{worker.pk}/").status_code, 404)


class PayrollApiTests(ApiTestCase):
    def test_create_links_worker(self):
        response = self.client.post(
            "/api/payroll/",
            {"employee_name": "  Jane   Doe ", "pay_date": "2024-05-01", "amount": "250.5", "method": "Cash"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        entry = PayrollEntry.objects.get(user=self.user)
        self.assertEqual(entry.employee_name, "Jane Doe")
        self.assertEqual(entry.worker.name, "Jane Doe")
        self.assertEqual(response.data["amount"], "250.50")

    def test_amount_must_be_positive(self):
        response = self.client.post(
            "/api/payroll/",
            {"employee_name": "Jane Doe", "pay_date": "2024-05-01", "amount": "0", "method": "Cash"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertFalse(PayrollEntry.objects.exists())

    def test_entries_cannot_be_edited(self):
        entry = PayrollEntry.objects.create(
            user=self.user, employee_name="Jane Doe", pay_date=datetime.date(2024, 5, 1), amount="10.00",
            method="Cash",
        )
        response = self.client.patch(f"/api/payroll/{entry.pk}/", {"amount": "99"}, format="json")
        self.assertEqual(response.status_code, 405)


class InvoiceApiTests(ApiTestCase):
    def _create(self, **extra):
        payload = {
            "invoice_number": "INV-7",
            "to_name": "Acme Homes",
            "tax_rate_pct": "8.25",
            "discount": "10",
            "items": [
                {"description": "Tile install", "qty": "2", "unit_price": "150"},
                {"description": "Grout", "qty": "1", "unit_price": "25.5"},
            ],
        }
        payload.update(extra)
        return self.client.post("/api/invoices/", payload, format="json")

    def test_create_computes_totals(self):
        response = self._create()
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["subtotal"], "325.50")
        self.assertEqual(response.data["total"], "342.35")
        self.assertEqual(len(response.data["items"]), 2)

    def test_partial_update_keeps_items(self):
        invoice_id = self._create().data["id"]
        response = self.client.patch(f"/api/invoices/{invoice_id}/", {"discount": "0"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["total"], "352.35")
        self.assertEqual(Invoice.objects.get(pk=invoice_id).items.count(), 2)

    def test_copy_and_send(self):
        invoice_id = self._create(to_email="billing@acme.example.com").data["id"]
        copy = self.client.post(f"/api/invoices/{invoice_id}/copy/")
        self.assertEqual(copy.status_code, 201)
        self.assertNotEqual(copy.data["id"], invoice_id)

        with mock.patch("portal.invoice_utils.send_invoice_email") as send:
            response = self.client.post(f"/api/invoices/{invoice_id}/send/")
        send.assert_called_once_with(invoice_id)
        self.assertEqual(response.data, {"success": True, "email_status": "sent"})

    def test_send_failure_is_reported(self):
        invoice_id = self._create(to_email="billing@acme.example.com").data["id"]
        error = CallableFunctionError("boom", code="unavailable")
        with mock.patch("portal.invoice_utils.send_invoice_email", side_effect=error):
            response = self.client.post(f"/api/invoices/{invoice_id}/send/")
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.data["success"])
        self.assertEqual(Invoice.objects.get(pk=invoice_id).email_status, Invoice.EMAIL_FAILED)

    def test_other_users_invoice_is_hidden(self):
        invoice = Invoice.objects.create(user=self.other, invoice_number="INV-X")
        self.assertEqual(self.client.get(f"/api/invoices/{invoice.pk}/").status_code, 404)


class EstimateApiTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.builder = Builder.objects.create(user=self.user, builder_name="Summit Homes")
        self.job = Job.objects.create(builder=self.builder, job_name="Lot 12")
        foreign_builder = Builder.objects.create(user=self.other, builder_name="Elsewhere")
        self.foreign_job = Job.objects.create(builder=foreign_builder, job_name="Not mine")

    def test_create_estimate_with_totals(self):
        response = self.client.post(
            "/api/estimates/",
            {"job": self.job.pk, "estimate_name": "Base bid", "categories": CATEGORIES,
             "overhead_pct": "10", "profit_pct": "15", "tax_pct": "8", "tax_enabled": True},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["grand_total"], "2459.16")

        copy = self.client.post(f"/api/estimates/{response.data['id']}/copy/", {}, format="json")
        self.assertEqual(copy.data["estimate_name"], "Base bid (copy)")
        self.assertEqual(copy.data["grand_total"], "2459.16")

    def test_rename_keeps_totals(self):
        created = self.client.post(
            "/api/estimates/",
            {"job": self.job.pk, "estimate_name": "Base bid", "categories": CATEGORIES},
            format="json",
        )
        response = self.client.patch(
            f"/api/estimates/{created.data['id']}/", {"estimate_name": "Final bid"}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["estimate_name"], "Final bid")
        self.assertEqual(response.data["grand_total"], created.data["grand_total"])

    def test_malformed_categories_are_rejected(self):
        response = self.client.post(
            "/api/estimates/",
            {"job": self.job.pk, "estimate_name": "Base bid", "categories": [1, 2]},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("categories", response.data)
        self.assertFalse(Estimate.objects.exists())

    def test_foreign_job_is_rejected(self):
        response = self.client.post(
            "/api/estimates/", {"job": self.foreign_job.pk, "estimate_name": "Sneaky"}, format="json"
        )
        self.assertEqual(response.status_code, 400)
        self.assertFalse(Estimate.objects.exists())

    def test_job_builder_must_be_owned(self):
        response = self.client.post(
            "/api/jobs/", {"builder": self.foreign_job.builder_id, "job_name": "Sneaky"}, format="json"
        )
        self.assertEqual(response.status_code, 400)
        jobs = self.client.get("/api/jobs/").data
        self.assertEqual([j["job_name"] for j in jobs], ["Lot 12"])


class PrequalApiTests(ApiTestCase):
    def test_status_reports_coi_state(self):
        PrequalStatus.objects.create(
            user=self.user, w9_completed=True, coi_completed=True, coi={"expiresOn": "2001-01-01"}
        )
        response = self.client.get("/api/prequal/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["coi_state"], "expired")
        self.assertFalse(response.data["is_prequalified"])

    def test_status_is_created_on_first_read(self):
        response = self.client.get("/api/prequal/")
        self.assertEqual(response.data["coi_state"], "missing")
        self.assertTrue(PrequalStatus.objects.filter(user=self.user).exists())
