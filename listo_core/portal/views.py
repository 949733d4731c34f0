import mimetypes

from django.conf import settings
from django.contrib import messages
from django.contrib.auth import login, update_session_auth_hash
from django.core.files.storage import default_storage
from django.http import FileResponse, Http404, JsonResponse
from django.shortcuts import redirect, render
from django.urls import reverse
from django.utils.http import url_has_allowed_host_and_scheme
from django.views.decorators.http import require_POST

from .account_utils import change_email, change_password, get_profile, remove_logo, upload_logo
from .decorators import signed_in_required
from .errors import ListoError, friendly_error
from .forms import (
    EmailChangeForm,
    LanguageForm,
    LogoForm,
    NameForm,
    PasswordUpdateForm,
    ProfileForm,
    SignupForm,
)
from .i18n import language_cookie_name, normalize_language
from .middleware import SESSION_LANGUAGE_KEY
from .models import Builder, Invoice, Worker
from .payroll_utils import load_entries, payroll_totals
from .prequal import coi_reminder_state, get_prequal

LANGUAGE_COOKIE_MAX_AGE = 365 * 24 * 60 * 60


def home(request):
    if request.listo.is_signed_in:
        return redirect("portal:dashboard")
    return render(request, "portal/home.html")


def signup(request):
    if request.listo.is_signed_in:
        return redirect("portal:dashboard")
    if request.method == "POST":
        form = SignupForm(request.POST)
        if form.is_valid():
            user = form.save()
            login(request, user, backend="portal.backends.EmailOrUsernameBackend")
            messages.success(request, "Account created. Welcome to Listo!")
            return redirect("portal:dashboard")
    else:
        form = SignupForm()
    return render(request, "registration/signup.html", {"form": form})


@signed_in_required
def dashboard(request):
    user = request.user
    prequal = get_prequal(user)
    entries = load_entries(user)
    context = {
        "prequal": prequal,
        "coi_state": coi_reminder_state(prequal),
        "payroll_totals": payroll_totals(entries),
        "recent_entries": entries[:5],
        "worker_count": Worker.objects.filter(user=user, archived=False).count(),
        "invoice_count": Invoice.objects.filter(user=user).count(),
        "builder_count": Builder.objects.filter(user=user, is_active=True).count(),
    }
    return render(request, "portal/dashboard.html", context)


@signed_in_required
def tools(request):
    return render(request, "portal/tools.html")


@signed_in_required
def account(request):
    profile = get_profile(request.user)
    if request.method == "POST":
        form = ProfileForm(request.POST, instance=profile)
        if form.is_valid():
            form.save()
            messages.success(request, "Profile saved.")
            return redirect("portal:account")
        messages.error(request, "Please correct the errors below.")
    else:
        form = ProfileForm(instance=profile)
    context = {
        "profile": profile,
        "form": form,
        "name_form": NameForm(initial={"display_name": profile.display_name}),
        "email_form": EmailChangeForm(initial={"new_email": request.user.email}),
        "password_form": PasswordUpdateForm(user=request.user),
        "logo_form": LogoForm(),
        "language_form": LanguageForm(initial={"language": request.listo_language}),
    }
    return render(request, "portal/account.html", context)


@signed_in_required
@require_POST
def update_name(request):
    form = NameForm(request.POST)
    if form.is_valid():
        name = form.cleaned_data["display_name"].strip()
        profile = get_profile(request.user)
        profile.display_name = name
        profile.save(update_fields=["display_name", "updated_at"])
        request.user.first_name = name[:150]
        request.user.save(update_fields=["first_name"])
        messages.success(request, "Name updated.")
    else:
        messages.error(request, "Enter a display name.")
    return redirect("portal:account")


@signed_in_required
@require_POST
def update_email(request):
    form = EmailChangeForm(request.POST)
    if not form.is_valid():
        messages.error(request, "Enter a valid email address and your current password.")
        return redirect("portal:account")
    try:
        change_email(request.user, form.cleaned_data["new_email"], form.cleaned_data["current_password"])
    except ListoError as exc:
        messages.error(request, friendly_error(exc))
    else:
        messages.success(request, "Email updated.")
    return redirect("portal:account")


@signed_in_required
@require_POST
def update_password(request):
    form = PasswordUpdateForm(request.POST, user=request.user)
    if not form.is_valid():
        for errors in form.errors.values():
            for error in errors:
                messages.error(request, error)
        return redirect("portal:account")
    try:
        change_password(request.user, form.cleaned_data["new_password1"], form.cleaned_data["current_password"])
    except ListoError as exc:
        messages.error(request, friendly_error(exc))
    else:
        update_session_auth_hash(request, request.user)
        messages.success(request, "Password updated.")
    return redirect("portal:account")


@signed_in_required
@require_POST
def logo_upload(request):
    form = LogoForm(request.POST, request.FILES)
    if not form.is_valid():
        messages.error(request, "Please choose an image file.")
        return redirect("portal:account")
    try:
        upload_logo(request.user, form.cleaned_data["logo"])
    except ListoError as exc:
        messages.error(request, friendly_error(exc))
    else:
        messages.success(request, "Logo updated.")
    return redirect("portal:account")


@signed_in_required
@require_POST
def logo_remove(request):
    remove_logo(request.user)
    messages.success(request, "Logo removed.")
    return redirect("portal:account")


@require_POST
def set_language(request):
    """Store the UI language in the cookie and session, and on the profile when signed in."""
    lang = normalize_language(request.POST.get("language"))
    next_url = request.POST.get("next") or reverse("portal:home")
    if not url_has_allowed_host_and_scheme(next_url, allowed_hosts={request.get_host()}):
        next_url = reverse("portal:home")
    if lang is None:
        if request.headers.get("x-requested-with") == "XMLHttpRequest":
            return JsonResponse({"success": False, "message": "Unsupported language."}, status=400)
        return redirect(next_url)

    request.session[SESSION_LANGUAGE_KEY] = lang
    if request.listo.is_signed_in:
        profile = get_profile(request.user)
        if profile.language != lang:
            profile.language = lang
            profile.save(update_fields=["language", "updated_at"])

    if request.headers.get("x-requested-with") == "XMLHttpRequest":
        response = JsonResponse({"success": True, "language": lang})
    else:
        response = redirect(next_url)
    response.set_cookie(
        language_cookie_name(),
        lang,
        max_age=LANGUAGE_COOKIE_MAX_AGE,
        samesite="Lax",
        secure=not settings.DEBUG,
    )
    return response


@signed_in_required
def stored_file(request, path):
    """Stream a stored object that belongs to the signed-in user."""
    prefix = f"users/{request.user.pk}/"
    if not path.startswith(prefix) or ".." in path.split("/"):
        raise Http404("File not found.")
    if not default_storage.exists(path):
        raise Http404("File not found.")
    content_type, _ = mimetypes.guess_type(path)
    handle = default_storage.open(path, "rb")
    return FileResponse(
        handle,
        content_type=content_type or "application/octet-stream",
        as_attachment=request.GET.get("download") == "1",
        filename=path.rsplit("/", 1)[-1],
    )
