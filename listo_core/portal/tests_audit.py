import datetime
from decimal import Decimal
from io import StringIO
from unittest import mock

import requests
from django.contrib.auth.models import User
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.test import SimpleTestCase, TestCase
from django.test.utils import override_settings
from django.urls import reverse

from .audit_utils import (
    add_document,
    build_package,
    get_packet,
    load_payroll_summary,
    questionnaire_rows,
    remove_document,
    save_questionnaire,
)
from .cloud_functions import CallableClient, call_ok, scan_contract
from .errors import CallableFunctionError, ListoError
from .models import ContractScan, Form1099, PayrollEntry, PrequalStatus, Profile, Worker
from .payroll_utils import add_payroll_entry
from .tax_forms import generate_1099, payee_file_stem, payee_for
from .tests import TEST_MEDIA_ROOT, MediaRootMixin


def pdf_upload(name="doc.pdf"):
    return SimpleUploadedFile(name, b"%PDF-1.4 test", content_type="application/pdf")


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT)
class AuditPacketTests(MediaRootMixin, TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="audit@example.com", password="pw-123456")
        self.client.force_login(self.user)
        for day, amount, method in ((5, "100", "Cash"), (6, "50", "Cash"), (7, "80", "Check")):
            add_payroll_entry(self.user, employee_name="Rita Vega", pay_date=datetime.date(2024, 3, day),
                              amount=amount, method=method)

    def test_period_loads_grouped_summary(self):
        response = self.client.post(
            reverse("portal:audit_period"), {"policy_start": "2024-01-01", "policy_end": "2024-12-31"}, follow=True
        )
        self.assertContains(response, "Loaded 3 payments for the policy period.")
        packet = get_packet(self.user)
        self.assertEqual(
            packet.payroll_summary,
            [
                {"worker": "Rita Vega", "method": "Cash", "total": "150.00", "count": 2},
                {"worker": "Rita Vega", "method": "Check", "total": "80.00", "count": 1},
            ],
        )

    def test_period_must_be_ordered(self):
        response = self.client.post(
            reverse("portal:audit_period"), {"policy_start": "2024-12-31", "policy_end": "2024-01-01"}, follow=True
        )
        self.assertContains(response, "Policy start date must be on or before the end date.")
        with self.assertRaises(ListoError):
            load_payroll_summary(self.user, None, datetime.date(2024, 1, 1))

    def test_documents_add_and_remove(self):
        first = add_document(self.user, "scheduleC", pdf_upload("c.pdf"))
        add_document(self.user, "form1096", pdf_upload("1096.pdf"))
        self.assertTrue(default_storage.exists(first["filePath"]))
        with self.assertRaises(ListoError):
            add_document(self.user, "passport", pdf_upload())

        self.client.post(reverse("portal:audit_document_remove", args=[0]))
        files = get_packet(self.user).uploaded_files
        self.assertEqual([f["type"] for f in files], ["form1096"])
        self.assertFalse(default_storage.exists(first["filePath"]))
        self.assertIsNone(remove_document(self.user, 5))

    def test_questionnaire_defaults_to_na(self):
        packet = save_questionnaire(self.user, {"qCash": " Yes ", "unknown": "x"})
        rows = dict(questionnaire_rows(packet))
        self.assertEqual(rows["Did you pay any workers in cash?"], "Yes")
        self.assertEqual(rows["Additional notes:"], "N/A")
        self.assertNotIn("unknown", packet.questionnaire)

    def test_contact_phone_is_validated(self):
        self.client.post(reverse("portal:audit_contact"), {"auditor_email": "a@ins.example.com", "phone": "123"})
        self.assertEqual(get_packet(self.user).auditor_email, "")

    def test_send_requires_auditor_email(self):
        with mock.patch("portal.audit_utils.send_audit_package") as send:
            response = self.client.post(reverse("portal:audit_send"), follow=True)
        send.assert_not_called()
        self.assertContains(response, "Add the auditor email before sending.")

    def test_send_posts_package(self):
        packet = get_packet(self.user)
        packet.auditor_email = "auditor@ins.example.com"
        packet.save()
        add_document(self.user, "bankStatements", pdf_upload("bank.pdf"))
        with mock.patch("portal.audit_utils.send_audit_package", return_value={}) as send:
            response = self.client.post(reverse("portal:audit_send"), follow=True)
        self.assertContains(response, "Audit package sent to auditor@ins.example.com.")
        package = send.call_args[0][0]
        self.assertEqual(package["auditorEmail"], "auditor@ins.example.com")
        self.assertTrue(package["uploadedFiles"][0]["downloadURL"].startswith("/files/users/"))
        self.assertIsNotNone(get_packet(self.user).last_sent_at)

    def test_send_failure_keeps_packet(self):
        packet = get_packet(self.user)
        packet.auditor_email = "auditor@ins.example.com"
        packet.save()
        error = CallableFunctionError("smtp down", code="unavailable", function="sendAuditPackage")
        with mock.patch("portal.audit_utils.send_audit_package", side_effect=error):
            response = self.client.post(reverse("portal:audit_send"), follow=True)
        self.assertContains(response, "temporarily unavailable")
        self.assertIsNone(get_packet(self.user).last_sent_at)

    def test_pdf_lists_answers(self):
        save_questionnaire(self.user, {"qSubs": "Two framers"})
        with mock.patch("portal.pdf_utils.render_html_to_pdf", return_value=b"%PDF-1.4") as render:
            response = self.client.get(reverse("portal:audit_pdf"))
        self.assertEqual(response["Content-Type"], "application/pdf")
        self.assertIn("Two framers", render.call_args[0][0])

    def test_build_package_shape(self):
        package = build_package(get_packet(self.user))
        self.assertEqual(
            set(package),
            {"policyStart", "policyEnd", "businessName", "copyEmail", "auditorEmail", "phone",
             "payrollSummary", "questionnaire", "uploadedFiles"},
        )


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT)
class Form1099Tests(MediaRootMixin, TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="payer@example.com", password="pw-123456")
        self.client.force_login(self.user)
        self.profile = Profile.objects.create(user=self.user, company_name="Vega Roofing", taxpayer_id="12-3456789")
        self.worker = Worker.objects.create(
            user=self.user,
            name="Tom O'Neil",
            worker_type=Worker.TYPE_SUBCONTRACTOR,
            w9_info={"legalName": "Thomas O'Neil", "addressLine1": "9 Elm St", "city": "Tulsa", "state": "OK",
                     "zip": "74103", "tinLast4": "4321"},
        )
        PayrollEntry.objects.create(user=self.user, worker=self.worker, employee_name="Tom O'Neil",
                                    pay_date=datetime.date(2024, 4, 1), amount=Decimal("700.00"), method="Check")

    def test_payee_prefers_w9_details(self):
        payee = payee_for(self.worker)
        self.assertEqual(payee.name, "Thomas O'Neil")
        self.assertEqual(payee.address, "9 Elm St\nTulsa, OK 74103")
        self.assertEqual(payee.tin_display, "*****4321")
        self.assertEqual(payee_file_stem("Tom O'Neil"), "Tom_ONeil")

    def test_generate_stores_pdf(self):
        with mock.patch("portal.pdf_utils.render_html_to_pdf", return_value=b"%PDF-1.4 1099") as render:
            response = self.client.post(reverse("portal:form_1099"), {"worker": self.worker.pk, "tax_year": 2024})
        self.assertRedirects(response, reverse("portal:form_1099"))
        record = Form1099.objects.get(user=self.user)
        self.assertEqual(record.total_amount, Decimal("700.00"))
        self.assertTrue(record.pdf_path.startswith(f"users/{self.user.pk}/taxForms/1099nec/2024/Tom_ONeil_"))
        self.assertTrue(default_storage.exists(record.pdf_path))
        html = render.call_args[0][0]
        self.assertIn("$700.00", html)
        self.assertNotIn("12-3456789", html)

        self.client.post(reverse("portal:form_1099_delete", args=[record.pk]))
        self.assertFalse(default_storage.exists(record.pdf_path))

    def test_requires_payer_details(self):
        self.profile.taxpayer_id = ""
        self.profile.save()
        with self.assertRaisesMessage(ListoError, "payer business name and taxpayer ID"):
            generate_1099(self.user, self.worker, 2024)

    def test_requires_payments_in_year(self):
        with self.assertRaisesMessage(ListoError, "No payments found"):
            generate_1099(self.user, self.worker, 2023)

    def test_requires_payee_address(self):
        self.worker.w9_info = {}
        self.worker.address = ""
        self.worker.save()
        with self.assertRaisesMessage(ListoError, "W-9 information is incomplete"):
            generate_1099(self.user, self.worker, 2024)

    def test_only_subcontractors_are_offered(self):
        Worker.objects.create(user=self.user, name="Office Staff", worker_type=Worker.TYPE_EMPLOYEE)
        response = self.client.get(reverse("portal:form_1099"))
        self.assertContains(response, "Tom O&#x27;Neil")
        self.assertNotContains(response, "Office Staff")


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT)
class ContractScannerTests(MediaRootMixin, TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="scan@example.com", password="pw-123456")
        self.client.force_login(self.user)

    def test_scan_saves_both_texts(self):
        result = {"english": "Payment due in 30 days.", "spanish": "Pago en 30 días."}
        with mock.patch("portal.contract_utils.scan_contract", return_value=result) as scan:
            response = self.client.post(reverse("portal:contract_scanner"), {"file": pdf_upload("deal.pdf")})
        self.assertContains(response, "Pago en 30 días.")
        record = ContractScan.objects.get(user=self.user)
        self.assertTrue(record.file_path.startswith(f"users/{self.user.pk}/contracts/"))
        self.assertEqual(scan.call_args.kwargs["file_type"], "application/pdf")

    def test_empty_result_is_reported(self):
        with mock.patch("portal.contract_utils.scan_contract", return_value={"english": "", "spanish": ""}):
            response = self.client.post(reverse("portal:contract_scanner"), {"file": pdf_upload()})
        self.assertContains(response, "No text was extracted from the document.")
        self.assertFalse(ContractScan.objects.exists())

    def test_rejects_unsupported_files(self):
        upload = SimpleUploadedFile("deal.docx", b"x", content_type="application/msword")
        with mock.patch("portal.contract_utils.scan_contract") as scan:
            response = self.client.post(reverse("portal:contract_scanner"), {"file": upload})
        scan.assert_not_called()
        self.assertContains(response, "Upload a PDF, HEIC, JPG or PNG file.")


class CoiStatusCommandTests(TestCase):
    def test_reports_expired_and_expiring(self):
        for name, expires in (("late@example.com", "2025-01-01"), ("soon@example.com", "2025-02-10"),
                              ("fine@example.com", "2026-01-01")):
            user = User.objects.create_user(username=name, password="pw-123456")
            PrequalStatus.objects.create(user=user, coi_completed=True, coi={"expiresOn": expires})
        out = StringIO()
        call_command("coi_status", "--date", "2025-02-01", stdout=out)
        output = out.getvalue()
        self.assertIn("late@example.com", output)
        self.assertIn("soon@example.com", output)
        self.assertNotIn("fine@example.com", output)
        self.assertIn("active: 1, expired: 1, expiring: 1", output)


def _response(status=200, body=None):
    response = mock.Mock()
    response.status_code = status
    response.ok = status < 400
    response.content = b"{}" if body is not None else b""
    response.json.return_value = body
    return response


@override_settings(LISTO_FUNCTIONS_BASE_URL="https://functions.example.com", LISTO_FUNCTIONS_TOKEN="secret")
class CallableClientTests(SimpleTestCase):
    def _client(self, response=None, side_effect=None):
        session = mock.Mock()
        session.headers = {}
        session.post.return_value = response
        session.post.side_effect = side_effect
        return CallableClient(session=session), session

    def test_posts_data_envelope_with_token(self):
        client, session = self._client(_response(body={"result": {"ok": True}}))
        self.assertEqual(client.call("sendInvoiceEmail", {"invoiceId": 3}), {"ok": True})
        args, kwargs = session.post.call_args
        self.assertEqual(args[0], "https://functions.example.com/sendInvoiceEmail")
        self.assertEqual(kwargs["json"], {"data": {"invoiceId": 3}})
        self.assertEqual(session.headers["Authorization"], "Bearer secret")

    def test_error_status_becomes_code(self):
        client, _ = self._client(
            _response(400, {"error": {"status": "FAILED_PRECONDITION", "message": "Missing email"}})
        )
        with self.assertRaises(CallableFunctionError) as ctx:
            client.call("sendInvoiceEmail", {})
        self.assertEqual(ctx.exception.code, "failed-precondition")
        self.assertEqual(ctx.exception.message, "Missing email")

    def test_timeouts(self):
        client, _ = self._client(side_effect=requests.Timeout("slow"))
        with self.assertRaises(CallableFunctionError) as ctx:
            client.call("scanContract", {})
        self.assertEqual(ctx.exception.code, "deadline-exceeded")

    @override_settings(LISTO_FUNCTIONS_BASE_URL="")
    def test_unconfigured(self):
        with self.assertRaises(CallableFunctionError) as ctx:
            CallableClient(session=mock.Mock(headers={})).call("scanContract", {})
        self.assertEqual(ctx.exception.code, "unavailable")

    def test_call_ok_unwraps_data(self):
        with mock.patch("portal.cloud_functions.call_function", return_value={"ok": True, "data": {"n": 1}}):
            self.assertEqual(call_ok("processCoiUpload", {}), {"n": 1})
        with mock.patch("portal.cloud_functions.call_function",
                        return_value={"ok": False, "error": {"code": "not-found", "message": "No file"}}):
            with self.assertRaises(CallableFunctionError) as ctx:
                call_ok("processCoiUpload", {})
        self.assertEqual(ctx.exception.code, "not-found")

    def test_plain_string_error_is_reported(self):
        client, _ = self._client(_response(500, {"error": "boom"}))
        with self.assertRaises(CallableFunctionError) as ctx:
            client.call("scanContract", {})
        self.assertEqual(ctx.exception.message, "boom")
        self.assertEqual(ctx.exception.code, "internal")

    def test_scan_contract_rejects_unexpected_result(self):
        with mock.patch("portal.cloud_functions.call_function", return_value=["english"]):
            with self.assertRaises(CallableFunctionError) as ctx:
                scan_contract(file_url="u", file_name="a.pdf", file_type="application/pdf", file_path="p")
        self.assertEqual(ctx.exception.code, "internal")
        with mock.patch("portal.cloud_functions.call_function", return_value={"english": "Hi", "spanish": "Hola"}):
            self.assertEqual(
                scan_contract(file_url="u", file_name="a.pdf", file_type="application/pdf", file_path="p"),
                {"english": "Hi", "spanish": "Hola"},
            )
