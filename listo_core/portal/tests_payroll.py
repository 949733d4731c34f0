import datetime
from decimal import Decimal
from io import BytesIO
from unittest import mock

from django.contrib.auth.models import User
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from django.test.utils import override_settings
from django.urls import reverse
from openpyxl import load_workbook

from .errors import CallableFunctionError, ListoError
from .models import PayrollEntry, Worker
from .payroll_utils import (
    PayrollFilter,
    add_payroll_entry,
    build_payroll_csv,
    build_payroll_workbook,
    ensure_worker,
    filter_entries,
    load_entries,
    payroll_totals,
    period_summary,
    year_payments,
)
from .tests import TEST_MEDIA_ROOT, MediaRootMixin
from .worker_utils import (
    DOC_COI,
    DOC_W9,
    apply_w9_fields,
    save_worker,
    store_worker_document,
)


def pdf_upload(name="doc.pdf"):
    return SimpleUploadedFile(name, b"%PDF-1.4 test", content_type="application/pdf")


class PayrollUtilsTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="pay@example.com", password="pw-123456")

    def test_ensure_worker_matches_normalized_names(self):
        first = ensure_worker(self.user, "  Jane   Doe ")
        second = ensure_worker(self.user, "jane doe")
        self.assertEqual(first.pk, second.pk)
        self.assertEqual(first.name, "Jane Doe")
        self.assertEqual(first.worker_type, Worker.TYPE_EMPLOYEE)

    def test_totals_split_month_and_all_time(self):
        today = datetime.date(2024, 5, 20)
        add_payroll_entry(self.user, employee_name="A", pay_date=datetime.date(2024, 5, 1),
                          amount="100.10", method=PayrollEntry.METHOD_CASH)
        add_payroll_entry(self.user, employee_name="B", pay_date=datetime.date(2024, 4, 30),
                          amount="50", method=PayrollEntry.METHOD_ZELLE)
        totals = payroll_totals(load_entries(self.user), today=today)
        self.assertEqual(totals.month, Decimal("100.10"))
        self.assertEqual(totals.all_time, Decimal("150.10"))
        self.assertEqual(totals.count, 2)

    def test_filter_by_name_method_and_range(self):
        add_payroll_entry(self.user, employee_name="Carlos Ruiz", pay_date=datetime.date(2024, 3, 1),
                          amount="80", method=PayrollEntry.METHOD_CHECK)
        add_payroll_entry(self.user, employee_name="Carla Stone", pay_date=datetime.date(2024, 3, 15),
                          amount="90", method=PayrollEntry.METHOD_CASH)
        entries = load_entries(self.user)

        self.assertEqual(len(filter_entries(entries, PayrollFilter(name="carl"))), 2)
        self.assertEqual(
            [e.employee_name for e in filter_entries(entries, PayrollFilter(method="Cash"))], ["Carla Stone"]
        )
        ranged = filter_entries(
            entries, PayrollFilter(start=datetime.date(2024, 3, 2), end=datetime.date(2024, 3, 31))
        )
        self.assertEqual([e.employee_name for e in ranged], ["Carla Stone"])

    @override_settings(LISTO_PAYROLL_ROW_LIMIT=2)
    def test_load_entries_respects_row_limit(self):
        for day in range(1, 4):
            add_payroll_entry(self.user, employee_name="A", pay_date=datetime.date(2024, 1, day),
                              amount="1", method=PayrollEntry.METHOD_CASH)
        entries = load_entries(self.user)
        self.assertEqual([e.pay_date.day for e in entries], [3, 2])

    def test_csv_quotes_names(self):
        add_payroll_entry(self.user, employee_name='O\'Brien, Co"', pay_date=datetime.date(2024, 2, 2),
                          amount="12.5", method=PayrollEntry.METHOD_CASH)
        csv_text = build_payroll_csv(load_entries(self.user))
        self.assertEqual(csv_text, 'Date,Employee,Method,Amount\n2024-02-02,"O\'Brien, Co""",Cash,12.50\n')

    def test_workbook_has_header_and_amounts(self):
        add_payroll_entry(self.user, employee_name="Ana", pay_date=datetime.date(2024, 2, 2),
                          amount="12.5", method=PayrollEntry.METHOD_CHECK)
        sheet = load_workbook(BytesIO(build_payroll_workbook(load_entries(self.user)))).active
        self.assertEqual([c.value for c in sheet[1]], ["Date", "Employee", "Method", "Amount"])
        self.assertEqual([c.value for c in sheet[2]], ["2024-02-02", "Ana", "Check", 12.5])

    def test_period_summary_groups_by_worker_and_method(self):
        for amount, method in (("10", "Cash"), ("15", "Cash"), ("7", "Zelle")):
            add_payroll_entry(self.user, employee_name="Luis", pay_date=datetime.date(2024, 6, 5),
                              amount=amount, method=method)
        add_payroll_entry(self.user, employee_name="Luis", pay_date=datetime.date(2024, 8, 1),
                          amount="99", method="Cash")
        summary = period_summary(self.user, datetime.date(2024, 6, 1), datetime.date(2024, 6, 30))
        self.assertEqual(
            [(r["worker"], r["method"], r["total"], r["count"]) for r in summary["rows"]],
            [("Luis", "Cash", Decimal("25.00"), 2), ("Luis", "Zelle", Decimal("7.00"), 1)],
        )
        self.assertEqual(summary["grand_total"], Decimal("32.00"))
        self.assertEqual(summary["grand_count"], 3)

    def test_year_payments(self):
        worker = ensure_worker(self.user, "Mia Park")
        add_payroll_entry(self.user, employee_name="Mia Park", pay_date=datetime.date(2023, 12, 31),
                          amount="100", method="Cash")
        add_payroll_entry(self.user, employee_name="mia  park", pay_date=datetime.date(2024, 1, 2),
                          amount="40", method="Check")
        self.assertEqual(year_payments(self.user, worker, 2024), Decimal("40.00"))


class PayrollViewTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="crew@example.com", password="pw-123456")
        self.client.force_login(self.user)

    def test_adding_payment_creates_worker_and_entry(self):
        response = self.client.post(
            reverse("portal:payroll"),
            {"employee_name": "Jane Doe", "pay_date": "2024-05-03", "amount": "250.5", "method": "Cash"},
            follow=True,
        )
        self.assertEqual(Worker.objects.filter(user=self.user).count(), 1)
        entry = PayrollEntry.objects.get(user=self.user)
        self.assertEqual(entry.amount, Decimal("250.50"))
        self.assertEqual(entry.worker.name, "Jane Doe")
        self.assertContains(response, "$250.50")

        self.client.post(
            reverse("portal:payroll"),
            {"employee_name": "jane doe", "pay_date": "2024-05-10", "amount": "10", "method": "Zelle"},
        )
        self.assertEqual(Worker.objects.filter(user=self.user).count(), 1)
        self.assertEqual(PayrollEntry.objects.filter(user=self.user).count(), 2)

    def test_rejects_non_positive_amounts_and_blank_names(self):
        response = self.client.post(
            reverse("portal:payroll"),
            {"employee_name": "   ", "pay_date": "2024-05-03", "amount": "0", "method": "Cash"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "Amount must be greater than zero.")
        self.assertFalse(PayrollEntry.objects.exists())

    def test_delete_only_own_entries(self):
        other = User.objects.create_user(username="other@example.com", password="pw-123456")
        mine = add_payroll_entry(self.user, employee_name="A", pay_date=datetime.date(2024, 1, 1),
                                 amount="5", method="Cash")
        theirs = add_payroll_entry(other, employee_name="B", pay_date=datetime.date(2024, 1, 1),
                                   amount="5", method="Cash")
        self.assertEqual(self.client.post(reverse("portal:payroll_delete", args=[theirs.pk])).status_code, 404)
        self.client.post(reverse("portal:payroll_delete", args=[mine.pk]))
        self.assertFalse(PayrollEntry.objects.filter(pk=mine.pk).exists())
        self.assertTrue(PayrollEntry.objects.filter(pk=theirs.pk).exists())

    def test_csv_export_honours_filter(self):
        add_payroll_entry(self.user, employee_name="Keep Me", pay_date=datetime.date(2024, 1, 1),
                          amount="5", method="Cash")
        add_payroll_entry(self.user, employee_name="Skip Me", pay_date=datetime.date(2024, 1, 1),
                          amount="5", method="Check")
        response = self.client.get(reverse("portal:payroll_export_csv"), {"method": "Cash"})
        self.assertEqual(response["Content-Type"], "text/csv; charset=utf-8")
        self.assertIn("attachment;", response["Content-Disposition"])
        body = response.content.decode()
        self.assertIn("Keep Me", body)
        self.assertNotIn("Skip Me", body)

    def test_xlsx_export(self):
        add_payroll_entry(self.user, employee_name="Ana", pay_date=datetime.date(2024, 1, 1),
                          amount="5", method="Cash")
        response = self.client.get(reverse("portal:payroll_export_xlsx"))
        sheet = load_workbook(BytesIO(response.content)).active
        self.assertEqual(sheet.max_row, 2)


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT)
class WorkerTests(MediaRootMixin, TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="boss@example.com", password="pw-123456")
        self.client.force_login(self.user)
        self.worker = Worker.objects.create(user=self.user, name="Sam Lee", worker_type=Worker.TYPE_SUBCONTRACTOR)

    def test_create_worker_from_list(self):
        response = self.client.post(
            reverse("portal:workers"),
            {"name": "  Dana  Cole ", "worker_type": "employee", "phone": "(555) 987-6543"},
        )
        worker = Worker.objects.get(name="Dana Cole")
        self.assertRedirects(response, reverse("portal:worker_detail", args=[worker.pk]))

    def test_worker_phone_is_validated(self):
        response = self.client.post(reverse("portal:workers"), {"name": "Dana", "worker_type": "employee",
                                                                "phone": "12345"})
        self.assertContains(response, "Enter a phone number with at least 10 digits.")

    def test_insurance_documents_are_subcontractor_only(self):
        employee = Worker.objects.create(user=self.user, name="Emp", worker_type=Worker.TYPE_EMPLOYEE)
        with self.assertRaises(ListoError):
            store_worker_document(employee, DOC_COI, pdf_upload())

    def test_switching_to_employee_drops_insurance_documents(self):
        path = store_worker_document(self.worker, DOC_COI, pdf_upload("coi.pdf"))
        self.assertTrue(default_storage.exists(path))
        self.worker.worker_type = Worker.TYPE_EMPLOYEE
        save_worker(self.worker)
        self.worker.refresh_from_db()
        self.assertEqual(self.worker.coi_path, "")
        self.assertFalse(default_storage.exists(path))

    def test_upload_replaces_and_delete_cleans_up(self):
        first = store_worker_document(self.worker, DOC_W9, pdf_upload("a.pdf"))
        second = store_worker_document(self.worker, DOC_W9, pdf_upload("b.pdf"))
        self.assertFalse(default_storage.exists(first))
        self.assertTrue(second.startswith(f"users/{self.user.pk}/workers/{self.worker.pk}/documents/w9/"))
        self.worker.refresh_from_db()
        self.assertEqual(self.worker.w9_ocr_status, Worker.OCR_PENDING)

        self.client.post(reverse("portal:worker_delete", args=[self.worker.pk]))
        self.assertFalse(Worker.objects.filter(pk=self.worker.pk).exists())
        self.assertFalse(default_storage.exists(second))

    def test_document_upload_rejects_other_types(self):
        upload = SimpleUploadedFile("notes.txt", b"hi", content_type="text/plain")
        response = self.client.post(
            reverse("portal:worker_document_upload", args=[self.worker.pk]),
            {"doc_type": DOC_W9, "file": upload},
            follow=True,
        )
        self.assertContains(response, "Upload a PDF, JPG or PNG file.")

    def test_w9_scan_applies_fields(self):
        store_worker_document(self.worker, DOC_W9, pdf_upload())
        fields = {"legalName": "Sam Lee", "ein": "12-3456789", "city": "Reno", "confidence": "high"}
        with mock.patch("portal.worker_utils.process_w9_upload", return_value={"fields": fields}) as call:
            self.client.post(reverse("portal:worker_w9_scan", args=[self.worker.pk]))
        call.assert_called_once()
        self.worker.refresh_from_db()
        self.assertEqual(self.worker.w9_ocr_status, Worker.OCR_COMPLETE)
        self.assertEqual(self.worker.w9_info["tinType"], "EIN")
        self.assertEqual(self.worker.w9_info["tinLast4"], "6789")
        page = self.client.get(reverse("portal:worker_detail", args=[self.worker.pk]))
        self.assertContains(page, "*****6789")

    def test_w9_scan_failure_is_recorded(self):
        store_worker_document(self.worker, DOC_W9, pdf_upload())
        error = CallableFunctionError("OCR backend down", code="unavailable", function="processW9Upload")
        with mock.patch("portal.worker_utils.process_w9_upload", side_effect=error):
            response = self.client.post(reverse("portal:worker_w9_scan", args=[self.worker.pk]), follow=True)
        self.assertContains(response, "temporarily unavailable")
        self.worker.refresh_from_db()
        self.assertEqual(self.worker.w9_ocr_status, Worker.OCR_FAILED)
        self.assertEqual(self.worker.w9_ocr_error, "OCR backend down")

    def test_low_confidence_only_flags_review(self):
        self.worker.w9_info = {"legalName": "Sam Lee", "tinLast4": "1111"}
        self.worker.save()
        apply_w9_fields(self.worker, {"legalName": "S4m L33", "confidence": "low"})
        self.worker.refresh_from_db()
        self.assertEqual(self.worker.w9_ocr_status, Worker.OCR_NEEDS_REVIEW)
        self.assertTrue(self.worker.w9_info["needsReview"])
        self.assertEqual(self.worker.w9_info["legalName"], "Sam Lee")

    def test_archive_toggles(self):
        response = self.client.post(reverse("portal:worker_archive", args=[self.worker.pk]), follow=True)
        self.assertContains(response, "Sam Lee archived.")
        self.worker.refresh_from_db()
        self.assertTrue(self.worker.archived)
        self.assertNotContains(self.client.get(reverse("portal:workers")), "Sam Lee")
        self.assertContains(self.client.get(reverse("portal:workers"), {"archived": "1"}), "Sam Lee")
