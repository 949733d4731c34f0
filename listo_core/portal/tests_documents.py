import datetime
import json
from unittest import mock

from django.contrib.auth.models import User
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase, TestCase
from django.test.utils import override_settings
from django.urls import reverse
from PIL import Image

from .agreement_pdf import SIGNATURE_MAX_HEIGHT, SIGNATURE_MAX_WIDTH, fit_signature, layout_agreement
from .document_parsing import CONFIDENCE_HIGH, CONFIDENCE_LOW, earliest_policy_date, parse_coi_text, parse_w9_text
from .errors import ListoError
from .models import Agreement, PrequalStatus, W9Form
from .pdf_utils import data_url_to_image
from .prequal import (
    REMINDER_ACTIVE,
    REMINDER_EXPIRED,
    REMINDER_EXPIRING,
    REMINDER_MISSING,
    apply_coi_ocr_result,
    coi_reminder_state,
    get_prequal,
    merge_coi_policies,
    store_coi_upload,
)
from .signature import INPUT_MOUSE, INPUT_POINTER, INPUT_TOUCH, SignaturePad, render_strokes, select_input_mode
from .tests import TEST_MEDIA_ROOT, MediaRootMixin
from .w9_layout import build_pdf_html, format_tin

SAMPLE_STROKES = [[[10, 10], [120, 80], [200, 40]], [[300, 150], [420, 60]]]

W9_TEXT = """Name (as shown on your income tax return)
Maria Lopez
Business name/disregarded entity name, if different from above
Lopez Tile LLC
Address (number, street, and apt. or suite no.)
12 Main Street
City, state, and ZIP code
Austin, TX 78701
Social security number 123-45-6789
"""


def draw(pad, strokes=SAMPLE_STROKES, source=INPUT_POINTER):
    for stroke in strokes:
        pad.pointer_start(*stroke[0], source=source)
        for x, y in stroke[1:]:
            pad.pointer_move(x, y, source=source)
        pad.pointer_end(source=source)


class SignaturePadTests(SimpleTestCase):
    def test_input_mode_selection(self):
        self.assertEqual(select_input_mode(True, True), INPUT_POINTER)
        self.assertEqual(select_input_mode(False, True), INPUT_TOUCH)
        self.assertEqual(select_input_mode(False, False), INPUT_MOUSE)

    def test_only_the_selected_input_family_draws(self):
        pad = SignaturePad(debounce=0, input_mode=INPUT_TOUCH)
        draw(pad, source=INPUT_MOUSE)
        self.assertTrue(pad.is_empty)
        draw(pad, source=INPUT_TOUCH)
        self.assertFalse(pad.is_empty)

    def test_size_is_capped_and_keeps_aspect(self):
        self.assertEqual(SignaturePad(900, debounce=0).size, (600, 200))
        self.assertEqual(SignaturePad(300, debounce=0).size, (300, 100))

    def test_stroke_serializes_to_png(self):
        pad = SignaturePad(debounce=0)
        draw(pad)
        image = data_url_to_image(pad.data_url)
        self.assertEqual(image.size, (600, 200))
        self.assertIsNotNone(image.getbbox())

    def test_debounced_serialization_flushes(self):
        pad = SignaturePad(debounce=60)
        draw(pad)
        self.assertEqual(pad.data_url, "")
        self.assertTrue(pad.flush().startswith("data:image/png;base64,"))

    def test_resize_keeps_the_drawing(self):
        pad = SignaturePad(debounce=0)
        draw(pad)
        old_url = pad.data_url
        self.assertTrue(pad.resize(300))
        self.assertEqual(pad.size, (300, 100))
        expected = data_url_to_image(old_url).convert("RGBA").resize((300, 100), Image.LANCZOS)
        self.assertEqual(pad.image.tobytes(), expected.tobytes())
        self.assertEqual(data_url_to_image(pad.data_url).size, (300, 100))
        self.assertEqual(pad.strokes[0][1], (60.0, 40.0))

    def test_resize_is_skipped_mid_stroke(self):
        pad = SignaturePad(debounce=0)
        pad.pointer_start(5, 5)
        pad.pointer_move(50, 50)
        before = pad.image.tobytes()
        self.assertFalse(pad.resize(300))
        self.assertEqual(pad.size, (600, 200))
        self.assertEqual(pad.image.tobytes(), before)
        pad.pointer_end()
        self.assertTrue(pad.resize(300))

    def test_resize_is_skipped_while_another_runs(self):
        pad = SignaturePad(debounce=0)
        pad.is_resizing = True
        self.assertFalse(pad.resize(300))

    def test_clear(self):
        pad = SignaturePad(debounce=0)
        draw(pad)
        pad.clear()
        self.assertTrue(pad.is_empty)
        self.assertEqual(pad.data_url, "")
        self.assertIsNone(pad.image.getbbox())

    def test_render_strokes(self):
        self.assertEqual(render_strokes([]), "")
        self.assertEqual(render_strokes([[["x", None]]]), "")
        self.assertEqual(render_strokes([5]), "")
        self.assertEqual(render_strokes(5), "")
        self.assertTrue(render_strokes([5, [[10, 10], [80, 40]]]).startswith("data:image/png;base64,"))
        self.assertTrue(render_strokes(SAMPLE_STROKES).startswith("data:image/png;base64,"))


class DocumentParsingTests(SimpleTestCase):
    def test_w9_fields(self):
        fields = parse_w9_text(W9_TEXT)
        self.assertEqual(fields["legalName"], "Maria Lopez")
        self.assertEqual(fields["businessName"], "Lopez Tile LLC")
        self.assertEqual(fields["addressLine1"], "12 Main Street")
        self.assertIsNone(fields["addressLine2"])
        self.assertEqual((fields["city"], fields["state"], fields["zip"]), ("Austin", "TX", "78701"))
        self.assertEqual(fields["ssnLast4"], "6789")
        self.assertIsNone(fields["ein"])
        self.assertEqual(fields["confidence"], CONFIDENCE_HIGH)
        self.assertNotIn("123-45-6789", json.dumps(fields))

    def test_w9_ein_and_low_confidence(self):
        fields = parse_w9_text("Some blurry scan\nEIN 12-3456789")
        self.assertEqual(fields["ein"], "12-3456789")
        self.assertEqual(fields["taxClassification"], "C-Corporation")
        self.assertEqual(fields["confidence"], CONFIDENCE_LOW)

    def test_coi_prefers_latest_future_date(self):
        policies = parse_coi_text(
            "GENERAL LIABILITY\nPolicy period 01/01/2024 to 01/15/2026",
            today=datetime.date(2025, 6, 1),
        )
        self.assertEqual(policies["commercialGeneralLiability"], "2026-01-15")
        self.assertIsNone(policies["workersCompensation"])
        self.assertIsNone(policies["automobileLiability"])

    def test_coi_past_dates_and_month_names(self):
        today = datetime.date(2025, 6, 1)
        self.assertEqual(
            parse_coi_text("Workers Compensation exp date 05/01/2023", today=today)["workersCompensation"],
            "2023-05-01",
        )
        self.assertEqual(
            parse_coi_text("Business Auto  Expiration Date: March 3, 2026", today=today)["automobileLiability"],
            "2026-03-03",
        )

    def test_coi_skips_impossible_dates(self):
        today = datetime.date(2025, 6, 1)
        policies = parse_coi_text("Workers Compensation exp date 02/31/2099 or 03/01/2098", today=today)
        self.assertEqual(policies["workersCompensation"], "2098-03-01")
        self.assertIsNone(
            parse_coi_text("Business Auto  Expiration Date: February 30, 2026", today=today)["automobileLiability"]
        )

    def test_earliest_policy_date(self):
        self.assertEqual(
            earliest_policy_date({"a": "2026-02-01", "b": None, "c": "2025-12-31"}), "2025-12-31"
        )
        self.assertIsNone(earliest_policy_date({}))


class AgreementLayoutTests(SimpleTestCase):
    def test_signature_fits_box(self):
        width, height = fit_signature(600, 200)
        self.assertLessEqual(width, SIGNATURE_MAX_WIDTH)
        self.assertLessEqual(height, SIGNATURE_MAX_HEIGHT)
        self.assertAlmostEqual(width / height, 3.0)
        self.assertEqual(fit_signature(0, 10), (0.0, 0.0))

    def test_layout_includes_signature_and_signer(self):
        pages = layout_agreement(
            company_name="Lopez Tile LLC",
            signer_name="Maria Lopez",
            signed_on="June 01, 2025",
            signature_data_url=render_strokes(SAMPLE_STROKES),
        )
        items = [item for page in pages for item in page.items]
        texts = [getattr(item, "text", "") for item in items]
        self.assertEqual(texts[0], "Subcontractor Agreement")
        self.assertIn("Name: Maria Lopez", texts)
        self.assertTrue(any(hasattr(item, "src") for item in items))


class W9LayoutTests(TestCase):
    def test_tin_formatting_by_type(self):
        self.assertEqual(format_tin("123456789", W9Form.TIN_SSN), "123-45-6789")
        self.assertEqual(format_tin("123456789", W9Form.TIN_EIN), "12-3456789")
        self.assertEqual(format_tin("1234", W9Form.TIN_EIN), "1234")

    def test_pdf_html_marks_classification(self):
        user = User.objects.create_user(username="w9@example.com", password="pw-123456")
        form = W9Form(user=user, name="Maria Lopez", tax_classification=W9Form.CLASS_LLC, llc_tax_code="S",
                      tin="123456789", tin_type=W9Form.TIN_EIN)
        html = build_pdf_html(form)
        self.assertIn("Maria Lopez", html)
        self.assertIn("12-3456789", html)
        self.assertIn(">X<", html)


class CoiReminderTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="coi@example.com", password="pw-123456")
        self.today = datetime.date(2025, 6, 1)

    def _status(self, **coi):
        status = get_prequal(self.user)
        status.coi_completed = True
        status.coi = coi
        status.save()
        return status

    def test_states(self):
        self.assertEqual(coi_reminder_state(None), REMINDER_MISSING)
        self.assertEqual(coi_reminder_state(get_prequal(self.user), self.today), REMINDER_MISSING)
        self.assertEqual(coi_reminder_state(self._status(), self.today), REMINDER_ACTIVE)
        self.assertEqual(coi_reminder_state(self._status(expiresOn="2025-05-31"), self.today), REMINDER_EXPIRED)
        self.assertEqual(coi_reminder_state(self._status(expiresOn="2025-07-01"), self.today), REMINDER_EXPIRING)
        self.assertEqual(coi_reminder_state(self._status(expiresOn="2025-07-02"), self.today), REMINDER_ACTIVE)

    @override_settings(LISTO_COI_WARNING_DAYS=7)
    def test_warning_window_is_configurable(self):
        self.assertEqual(coi_reminder_state(self._status(expiresOn="2025-06-20"), self.today), REMINDER_ACTIVE)

    def test_merge_keeps_known_dates(self):
        self._status(policies={"workersCompensation": "2026-01-01"}, expiresOn="2026-01-01")
        status = merge_coi_policies(self.user, {"automobileLiability": "2025-09-30"})
        self.assertEqual(status.coi["policies"]["workersCompensation"], "2026-01-01")
        self.assertEqual(status.coi["expiresOn"], "2025-09-30")
        self.assertTrue(status.coi["ocrProcessed"])

    def test_foreign_paths_are_not_recorded(self):
        self._status(filePath=f"users/{self.user.pk}/prequal/coi/own.pdf")
        status = apply_coi_ocr_result(self.user, {"policies": {}}, "users/999/prequal/coi/other.pdf")
        self.assertEqual(status.coi["filePath"], f"users/{self.user.pk}/prequal/coi/own.pdf")

    def test_raw_text_results_are_parsed(self):
        status = apply_coi_ocr_result(
            self.user, {"text": "Commercial General Liability expires 12/31/2099"}, ""
        )
        self.assertEqual(status.coi["policies"]["commercialGeneralLiability"], "2099-12-31")


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT)
class PrequalViewTests(MediaRootMixin, TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="sub@example.com", password="pw-123456")
        self.client.force_login(self.user)

    def test_overview_renders_empty_checklist(self):
        response = self.client.get(reverse("portal:prequal"))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.context["status"].is_prequalified)

    def test_coi_upload_replaces_previous_file(self):
        pdf = SimpleUploadedFile("coi.pdf", b"%PDF-1.4", content_type="application/pdf")
        self.client.post(reverse("portal:prequal_coi_upload"), {"file": pdf, "expires_on": "2099-01-01"})
        first = get_prequal(self.user).coi["filePath"]
        self.assertTrue(default_storage.exists(first))

        pdf = SimpleUploadedFile("coi2.pdf", b"%PDF-1.4", content_type="application/pdf")
        store_coi_upload(self.user, pdf)
        status = get_prequal(self.user)
        self.assertTrue(status.coi_completed)
        self.assertFalse(default_storage.exists(first))
        self.assertEqual(status.coi["expiresOn"], "2099-01-01")

    def test_coi_upload_rejects_other_files(self):
        with self.assertRaises(ListoError):
            store_coi_upload(self.user, SimpleUploadedFile("a.docx", b"x", content_type="application/msword"))

    def test_expired_coi_shows_banner(self):
        status = get_prequal(self.user)
        status.coi_completed = True
        status.coi = {"expiresOn": "2000-01-01"}
        status.save()
        self.assertContains(self.client.get(reverse("portal:dashboard")), "certificate of insurance has expired")

    def test_coi_scan_uses_ocr_result(self):
        pdf = SimpleUploadedFile("coi.pdf", b"%PDF-1.4", content_type="application/pdf")
        store_coi_upload(self.user, pdf)
        result = {"policies": {"workersCompensation": "2099-03-01", "commercialGeneralLiability": "2099-02-01"}}
        with mock.patch("portal.prequal.process_coi_upload", return_value=result):
            response = self.client.post(reverse("portal:prequal_coi_scan"), follow=True)
        self.assertContains(response, "Earliest expiration: Feb 01, 2099.")
        self.assertEqual(get_prequal(self.user).coi_expires_on, datetime.date(2099, 2, 1))

    def test_coi_scan_without_upload(self):
        response = self.client.post(reverse("portal:prequal_coi_scan"), follow=True)
        self.assertContains(response, "Upload a certificate of insurance first.")

    def _w9_post(self, **overrides):
        data = {
            "name": "Maria Lopez",
            "tax_classification": W9Form.CLASS_INDIVIDUAL,
            "address": "12 Main Street",
            "city": "Austin",
            "state": "TX",
            "zip_code": "78701",
            "tin_type": W9Form.TIN_SSN,
            "tin": "123-45-6789",
            "signed_on": "2025-06-01",
            "signature_strokes": json.dumps(SAMPLE_STROKES),
        }
        data.update(overrides)
        return data

    def test_w9_submission_stores_pdf_and_flags_checklist(self):
        with mock.patch("portal.prequal_views.render_w9_pdf", return_value=b"%PDF-1.4 w9") as render:
            response = self.client.post(reverse("portal:prequal_w9"), self._w9_post())
        self.assertRedirects(response, reverse("portal:prequal"))
        record = W9Form.objects.get(user=self.user)
        self.assertTrue(record.signature_data_url.startswith("data:image/png;base64,"))
        render.assert_called_once()
        status = get_prequal(self.user)
        self.assertTrue(status.w9_completed)
        self.assertEqual(status.w9["filePath"], record.pdf_path)
        self.assertTrue(record.pdf_path.startswith(f"users/{self.user.pk}/prequal/w9/"))
        with default_storage.open(record.pdf_path, "rb") as handle:
            self.assertEqual(handle.read(), b"%PDF-1.4 w9")

    def test_w9_requires_signature_and_valid_fields(self):
        response = self.client.post(
            reverse("portal:prequal_w9"), self._w9_post(signature_strokes="", zip_code="123", tin="12")
        )
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "Please sign in the signature box.")
        form = response.context["form"]
        self.assertIn("zip_code", form.errors)
        self.assertIn("tin", form.errors)
        self.assertFalse(get_prequal(self.user).w9_completed)

    def test_llc_needs_tax_code(self):
        response = self.client.post(
            reverse("portal:prequal_w9"), self._w9_post(tax_classification=W9Form.CLASS_LLC)
        )
        self.assertIn("llc_tax_code", response.context["form"].errors)

    def test_pdf_failure_keeps_user_on_form(self):
        from .errors import PdfUnavailableError

        with mock.patch("portal.prequal_views.render_w9_pdf", side_effect=PdfUnavailableError("no weasyprint")):
            response = self.client.post(reverse("portal:prequal_w9"), self._w9_post())
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "PDF generation is not available on this server.")
        self.assertFalse(get_prequal(self.user).w9_completed)

    def test_agreement_signing(self):
        with mock.patch("portal.prequal_views.render_agreement_pdf", return_value=b"%PDF-1.4 agr"):
            response = self.client.post(
                reverse("portal:prequal_agreement"),
                {
                    "signer_name": "Maria Lopez",
                    "company_name": "Lopez Tile LLC",
                    "accepted": "on",
                    "signature_strokes": json.dumps(SAMPLE_STROKES),
                },
            )
        self.assertRedirects(response, reverse("portal:prequal"))
        record = Agreement.objects.get(user=self.user)
        self.assertIsNotNone(record.signed_at)
        self.assertTrue(get_prequal(self.user).agreement_completed)

    def test_agreement_with_unreadable_strokes_asks_for_signature(self):
        response = self.client.post(
            reverse("portal:prequal_agreement"),
            {
                "signer_name": "Maria Lopez",
                "company_name": "Lopez Tile LLC",
                "accepted": "on",
                "signature_strokes": "[5]",
            },
        )
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "Please sign in the signature box.")
        self.assertFalse(Agreement.objects.filter(user=self.user, signed_at__isnull=False).exists())
        self.assertFalse(get_prequal(self.user).agreement_completed)

    def test_checklist_complete(self):
        status = get_prequal(self.user)
        status.w9_completed = status.coi_completed = status.agreement_completed = True
        status.save()
        self.assertTrue(PrequalStatus.objects.get(user=self.user).is_prequalified)
