import os
import runpy
import shutil
import tempfile
from decimal import Decimal
from io import BytesIO
from unittest import mock

from django.contrib.auth.models import User
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase, TestCase
from django.test.utils import override_settings
from django.urls import reverse
from PIL import Image

import listo_site.settings as site_settings

from .auth_state import STATE_SIGNED_IN, STATE_SIGNED_OUT, STATE_UNKNOWN, AuthStateMachine
from .errors import CallableFunctionError, ListoError, friendly_error
from .formatting import csv_cell, format_address, initials, mask_tin, money, quantize_money, to_decimal
from .forms import ProfileForm, SignupForm
from .i18n import translate
from .models import Profile
from .validators import validate_phone, validate_state, validate_tin, validate_zip

TEST_MEDIA_ROOT = tempfile.mkdtemp(prefix="listo-tests-")


def png_upload(name="logo.png", size=None, color=(30, 120, 200)):
    """A real PNG, padded with trailing bytes when ``size`` asks for a bigger file."""
    buffer = BytesIO()
    Image.new("RGB", (40, 40), color).save(buffer, format="PNG")
    data = buffer.getvalue()
    if size and size > len(data):
        data += b"\0" * (size - len(data))
    return SimpleUploadedFile(name, data, content_type="image/png")


class MediaRootMixin:
    @classmethod
    def tearDownClass(cls):
        super().tearDownClass()
        shutil.rmtree(TEST_MEDIA_ROOT, ignore_errors=True)


class FormattingTests(SimpleTestCase):
    def test_money_formats_two_decimals(self):
        self.assertEqual(money(250.5), "$250.50")
        self.assertEqual(money("1234.5"), "$1,234.50")
        self.assertEqual(money(Decimal("-3")), "-$3.00")

    def test_money_handles_missing_and_nan(self):
        self.assertEqual(money(None), "$0.00")
        self.assertEqual(money(float("nan")), "$0.00")
        self.assertEqual(money("not a number"), "$0.00")
        self.assertEqual(money(float("inf")), "$0.00")

    def test_csv_cell_quotes_special_characters(self):
        self.assertEqual(csv_cell('O\'Brien, Co"'), '"O\'Brien, Co"""')
        self.assertEqual(csv_cell("line\nbreak"), '"line\nbreak"')
        self.assertEqual(csv_cell("O'Brien"), "O'Brien")
        self.assertEqual(csv_cell(None), "")

    def test_to_decimal_strips_currency_symbols(self):
        self.assertEqual(to_decimal("$1,200.25"), Decimal("1200.25"))
        self.assertEqual(to_decimal("", Decimal("7")), Decimal("7"))
        self.assertEqual(to_decimal(True), Decimal("0"))

    def test_initials(self):
        self.assertEqual(initials("Maria Lopez"), "ML")
        self.assertEqual(initials("Cher"), "CH")
        self.assertEqual(initials("", "zed@example.com"), "ZE")
        self.assertEqual(initials(None), "??")

    def test_address_lines(self):
        text = format_address("12 Main St", "Austin", "TX", "78701")
        self.assertEqual(text, "12 Main St\nAustin, TX 78701")
        self.assertEqual(format_address("", "Austin", "", ""), "Austin")

    def test_mask_tin_keeps_last_four(self):
        self.assertEqual(mask_tin("123-45-6789"), "*****6789")
        self.assertEqual(mask_tin("12"), "")
        self.assertEqual(mask_tin(None), "")

    def test_money_handles_very_large_amounts(self):
        self.assertEqual(money(1e30), "$1" + ",000" * 10 + ".00")
        self.assertEqual(money(Decimal("1E+40")), "$10" + ",000" * 13 + ".00")
        self.assertEqual(money("-12345678901234567890123456789012.346"),
                         "-$12,345,678,901,234,567,890,123,456,789,012.35")
        self.assertEqual(quantize_money(Decimal("1E+40")), Decimal("1E+40"))


class ValidatorTests(SimpleTestCase):
    def test_phone(self):
        self.assertTrue(validate_phone("(555) 123-4567"))
        self.assertFalse(validate_phone("555-1234"))
        self.assertFalse(validate_phone(""))

    def test_zip(self):
        self.assertTrue(validate_zip("12345"))
        self.assertTrue(validate_zip("12345-6789"))
        self.assertFalse(validate_zip("1234"))
        self.assertFalse(validate_zip("12345-67"))
        self.assertFalse(validate_zip("abcde"))

    def test_tin(self):
        self.assertTrue(validate_tin("12-3456789"))
        self.assertTrue(validate_tin("123456789"))
        self.assertTrue(validate_tin(""))
        self.assertFalse(validate_tin("12345678"))
        self.assertFalse(validate_tin("12345678a"))

    def test_only_ascii_digits_count(self):
        self.assertFalse(validate_zip("\uff11\uff12\uff13\uff14\uff15"))
        self.assertFalse(validate_tin("\u0661\u0662\u0663\u0664\u0665\u0666\u0667\u0668\u0669"))
        self.assertFalse(validate_tin("12345678\u00b2"))
        self.assertFalse(validate_phone("\u0665\u0665\u0665 \u0661\u0662\u0663 \u0664\u0665\u0666\u0667"))
        self.assertEqual(mask_tin("\u0661\u0662\u0663\u0664\u0665\u0666\u0667\u0668\u0669"), "")

    def test_state(self):
        self.assertTrue(validate_state("tx"))
        self.assertFalse(validate_state("XX"))


class FriendlyErrorTests(SimpleTestCase):
    def test_known_codes(self):
        self.assertEqual(friendly_error("auth/wrong-password"), "Incorrect password. Please try again.")
        self.assertEqual(friendly_error("permission_denied"), "Permission denied.")

    def test_listo_error_message_wins(self):
        self.assertEqual(friendly_error(ListoError("Add a customer email.", code="failed-precondition")),
                         "Add a customer email.")

    def test_function_errors_map_by_code(self):
        error = CallableFunctionError("HTTP 503 upstream", code="unavailable", function="scanContract")
        self.assertEqual(friendly_error(error), "The service is temporarily unavailable. Please try again.")

    def test_fallbacks(self):
        self.assertEqual(friendly_error(None), "An error occurred.")
        self.assertEqual(friendly_error(ValueError("")), "An error occurred.")
        self.assertEqual(friendly_error(ValueError("boom")), "boom")


class AuthStateMachineTests(TestCase):
    def test_resolves_once_per_transition(self):
        user = User.objects.create_user(username="a@example.com", password="pw-123456")
        machine = AuthStateMachine()
        seen = []
        machine.on_signed_in(lambda u: seen.append(("in", u.pk)))
        machine.on_signed_out(lambda: seen.append(("out", None)))

        self.assertEqual(machine.state, STATE_UNKNOWN)
        self.assertEqual(machine.resolve(user), STATE_SIGNED_IN)
        machine.resolve(user)
        self.assertEqual(machine.resolve(None), STATE_SIGNED_OUT)
        machine.resolve(None)
        self.assertEqual(seen, [("in", user.pk), ("out", None)])

    def test_signing_out_clears_session_caches(self):
        user = User.objects.create_user(username="b@example.com", password="pw-123456")
        machine = AuthStateMachine()
        machine.resolve(user)
        machine.session.cache("coi", lambda: "expired")
        machine.resolve(None)
        self.assertEqual(machine.session.caches, {})
        self.assertIsNone(machine.session.user_id)


class TranslationTests(SimpleTestCase):
    def test_spanish_and_fallbacks(self):
        self.assertEqual(translate("nav.payroll", "es"), "Nómina")
        self.assertEqual(translate("nav.payroll", "fr"), "Payroll")
        self.assertEqual(translate("missing.key", "es"), "missing.key")


class AuthFlowTests(TestCase):
    def test_protected_page_redirects_to_login(self):
        response = self.client.get(reverse("portal:payroll"))
        self.assertEqual(response.status_code, 302)
        self.assertIn(reverse("portal:login"), response["Location"])
        self.assertIn("next=", response["Location"])

    def test_signup_creates_user_and_profile(self):
        response = self.client.post(
            reverse("portal:signup"),
            {
                "display_name": "Rosa Diaz",
                "email": "rosa@example.com",
                "password1": "Sturdy-pass-2024",
                "password2": "Sturdy-pass-2024",
                "accept_terms": "on",
            },
        )
        self.assertRedirects(response, reverse("portal:dashboard"))
        user = User.objects.get(email="rosa@example.com")
        self.assertEqual(user.profile.display_name, "Rosa Diaz")

    def test_signup_rejects_duplicate_email(self):
        User.objects.create_user(username="taken@example.com", email="taken@example.com", password="x")
        form = SignupForm(
            data={
                "display_name": "Someone",
                "email": "Taken@example.com",
                "password1": "Sturdy-pass-2024",
                "password2": "Sturdy-pass-2024",
                "accept_terms": "on",
            }
        )
        self.assertFalse(form.is_valid())
        self.assertIn("email", form.errors)

    def test_login_with_email(self):
        User.objects.create_user(username="crew", email="crew@example.com", password="pw-123456")
        response = self.client.post(
            reverse("portal:login"), {"username": "crew@example.com", "password": "pw-123456"}
        )
        self.assertRedirects(response, reverse("portal:dashboard"))

    def test_logout_requires_post(self):
        user = User.objects.create_user(username="c@example.com", password="pw-123456")
        self.client.force_login(user)
        response = self.client.post(reverse("portal:logout"))
        self.assertRedirects(response, reverse("portal:home"))
        self.assertEqual(self.client.get(reverse("portal:dashboard")).status_code, 302)

    def test_home_redirects_signed_in_users(self):
        user = User.objects.create_user(username="d@example.com", password="pw-123456")
        self.client.force_login(user)
        self.assertRedirects(self.client.get(reverse("portal:home")), reverse("portal:dashboard"))


class LanguageTests(TestCase):
    def test_set_language_persists_cookie_session_and_profile(self):
        user = User.objects.create_user(username="e@example.com", password="pw-123456")
        Profile.objects.create(user=user)
        self.client.force_login(user)

        response = self.client.post(reverse("portal:set_language"), {"language": "es", "next": "/tools/"})
        self.assertRedirects(response, "/tools/", fetch_redirect_response=False)
        self.assertEqual(response.cookies["listo_lang"].value, "es")
        user.profile.refresh_from_db()
        self.assertEqual(user.profile.language, "es")

        page = self.client.get(reverse("portal:tools"))
        self.assertContains(page, "Herramientas")

    def test_ajax_rejects_unknown_language(self):
        response = self.client.post(
            reverse("portal:set_language"), {"language": "fr"}, HTTP_X_REQUESTED_WITH="XMLHttpRequest"
        )
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()["success"])

    def test_external_next_is_ignored(self):
        response = self.client.post(
            reverse("portal:set_language"), {"language": "en", "next": "https://evil.example.com/"}
        )
        self.assertRedirects(response, reverse("portal:home"), fetch_redirect_response=False)


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT)
class AccountTests(MediaRootMixin, TestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            username="owner@example.com", email="owner@example.com", password="pw-123456"
        )
        self.profile = Profile.objects.create(user=self.user, display_name="Ana Ruiz", email=self.user.email)
        self.client.force_login(self.user)

    def test_profile_form_validates_contact_fields(self):
        form = ProfileForm(
            data={"display_name": "Ana", "phone_number": "555-1234", "zip_code": "1234", "taxpayer_id": "12"},
            instance=self.profile,
        )
        self.assertFalse(form.is_valid())
        self.assertEqual(set(form.errors), {"phone_number", "zip_code", "taxpayer_id"})

    def test_selects_use_bootstrap4_class(self):
        form = ProfileForm(instance=self.profile)
        self.assertEqual(form.fields["state"].widget.attrs["class"], "custom-select")
        self.assertEqual(form.fields["display_name"].widget.attrs["class"], "form-control")

    def test_profile_save(self):
        response = self.client.post(
            reverse("portal:account"),
            {
                "display_name": "Ana Ruiz",
                "company_name": "Ruiz Framing LLC",
                "email": "owner@example.com",
                "phone_number": "(555) 123-4567",
                "street": "1 Oak Ave",
                "city": "Dallas",
                "state": "TX",
                "zip_code": "75201",
                "taxpayer_id": "12-3456789",
            },
        )
        self.assertRedirects(response, reverse("portal:account"))
        self.profile.refresh_from_db()
        self.assertEqual(self.profile.company_name, "Ruiz Framing LLC")
        self.assertEqual(self.profile.state, "TX")

    def test_logo_upload_replaces_previous(self):
        self.client.post(reverse("portal:account_logo"), {"logo": png_upload("first.png")})
        self.profile.refresh_from_db()
        first_path = self.profile.logo_path
        self.assertTrue(default_storage.exists(first_path))

        response = self.client.post(
            reverse("portal:account_logo"), {"logo": png_upload("second.png", size=2 * 1024 * 1024)}
        )
        self.assertRedirects(response, reverse("portal:account"))
        self.profile.refresh_from_db()
        self.assertNotEqual(self.profile.logo_path, first_path)
        self.assertTrue(self.profile.logo_path.startswith(f"users/{self.user.pk}/profile/logo_"))
        self.assertTrue(self.profile.logo_url)
        self.assertTrue(default_storage.exists(self.profile.logo_path))
        self.assertFalse(default_storage.exists(first_path))

        page = self.client.get(reverse("portal:dashboard"))
        self.assertContains(page, self.profile.logo_url)

    def test_logo_upload_rejects_large_and_non_image_files(self):
        response = self.client.post(
            reverse("portal:account_logo"), {"logo": png_upload("huge.png", size=6 * 1024 * 1024)}, follow=True
        )
        self.assertContains(response, "Logo must be 5 MB or smaller.")
        text = SimpleUploadedFile("notes.txt", b"hello", content_type="text/plain")
        response = self.client.post(reverse("portal:account_logo"), {"logo": text}, follow=True)
        self.assertContains(response, "Please choose an image file.")
        self.profile.refresh_from_db()
        self.assertEqual(self.profile.logo_path, "")

    def test_logo_remove_falls_back_to_initials(self):
        self.client.post(reverse("portal:account_logo"), {"logo": png_upload()})
        self.client.post(reverse("portal:account_logo_remove"))
        self.profile.refresh_from_db()
        self.assertEqual(self.profile.logo_path, "")
        page = self.client.get(reverse("portal:dashboard"))
        self.assertContains(page, "<span>AR</span>", html=True)

    def test_email_change_requires_current_password(self):
        response = self.client.post(
            reverse("portal:account_email"),
            {"new_email": "new@example.com", "current_password": "wrong"},
            follow=True,
        )
        self.assertContains(response, "Incorrect password. Please try again.")
        self.client.post(
            reverse("portal:account_email"), {"new_email": "New@Example.com", "current_password": "pw-123456"}
        )
        self.user.refresh_from_db()
        self.assertEqual(self.user.email, "new@example.com")

    def test_password_change_keeps_session(self):
        response = self.client.post(
            reverse("portal:account_password"),
            {
                "current_password": "pw-123456",
                "new_password1": "Another-pass-2024",
                "new_password2": "Another-pass-2024",
            },
        )
        self.assertRedirects(response, reverse("portal:account"))
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password("Another-pass-2024"))
        self.assertEqual(self.client.get(reverse("portal:dashboard")).status_code, 200)
        self.profile.refresh_from_db()
        self.assertIsNotNone(self.profile.password_updated_at)


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT)
class StoredFileTests(MediaRootMixin, TestCase):
    def setUp(self):
        self.owner = User.objects.create_user(username="f@example.com", password="pw-123456")
        self.other = User.objects.create_user(username="g@example.com", password="pw-123456")
        self.path = default_storage.save(f"users/{self.owner.pk}/prequal/coi/cert.pdf", BytesIO(b"%PDF-1.4"))

    def test_owner_can_download(self):
        self.client.force_login(self.owner)
        response = self.client.get(reverse("portal:stored_file", kwargs={"path": self.path}) + "?download=1")
        self.assertEqual(response.status_code, 200)
        self.assertIn("attachment", response["Content-Disposition"])
        self.assertEqual(b"".join(response.streaming_content), b"%PDF-1.4")

    def test_other_users_get_404(self):
        self.client.force_login(self.other)
        response = self.client.get(reverse("portal:stored_file", kwargs={"path": self.path}))
        self.assertEqual(response.status_code, 404)

    def test_path_traversal_is_rejected(self):
        self.client.force_login(self.owner)
        path = f"users/{self.owner.pk}/../{self.other.pk}/x.pdf"
        response = self.client.get(reverse("portal:stored_file", kwargs={"path": path}))
        self.assertEqual(response.status_code, 404)


class TemplateTagTests(SimpleTestCase):
    def test_stored_url_and_t_tag(self):
        from django.template import Context, Template

        rendered = Template(
            "{% load listo_tags %}{{ path|stored_url }}|{{ amount|currency }}|{% t 'nav.tools' %}"
        ).render(Context({"path": "users/1/a.pdf", "amount": "5", "listo_language": "es"}))
        self.assertEqual(rendered, "/files/users/1/a.pdf|$5.00|Herramientas")


class LoggingSettingsTests(SimpleTestCase):
    def _load(self, **env):
        with mock.patch.dict(os.environ, env):
            return runpy.run_path(site_settings.__file__)

    def test_file_logging_creates_its_directory(self):
        log_dir = os.path.join(tempfile.mkdtemp(prefix="listo-logs-"), "nested", "logs")
        self.addCleanup(shutil.rmtree, os.path.dirname(os.path.dirname(log_dir)), True)
        loaded = self._load(LOG_TO_FILE="1", LOG_DIR=log_dir)
        self.assertTrue(os.path.isdir(log_dir))
        self.assertEqual(loaded["LOGGING"]["handlers"]["file"]["filename"], os.path.join(log_dir, "listo.log"))
        self.assertEqual(loaded["LOGGING"]["loggers"]["portal"]["handlers"], ["file"])

    def test_file_logging_is_off_by_default(self):
        loaded = self._load(LOG_TO_FILE="")
        self.assertNotIn("file", loaded["LOGGING"]["handlers"])
