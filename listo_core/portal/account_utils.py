from __future__ import annotations

import logging

from django.conf import settings
from django.utils import timezone

from .errors import ListoError
from .models import Profile
from .storage_utils import (
    delete_quietly,
    save_upload,
    storage_url,
    timestamped_name,
    upload_content_type,
    user_path,
)

logger = logging.getLogger(__name__)


def get_profile(user) -> Profile:
    profile, _ = Profile.objects.get_or_create(
        user=user,
        defaults={"display_name": user.get_full_name(), "email": user.email},
    )
    return profile


def max_logo_bytes() -> int:
    return getattr(settings, "LISTO_MAX_LOGO_BYTES", 5 * 1024 * 1024)


def validate_logo(upload):
    content_type = upload_content_type(upload)
    if not content_type.startswith("image/"):
        raise ListoError("Please choose an image file.", code="invalid-argument")
    if upload.size > max_logo_bytes():
        raise ListoError(f"Logo must be {max_logo_bytes() // (1024 * 1024)} MB or smaller.",
                         code="invalid-argument")


def upload_logo(user, upload) -> Profile:
    """Store a new logo and best-effort delete the one it replaces."""
    validate_logo(upload)
    profile = get_profile(user)
    previous = profile.logo_path
    path = save_upload(user_path(user, "profile", timestamped_name(upload.name, prefix="logo_")), upload)
    profile.logo_path = path
    profile.logo_url = storage_url(path)
    profile.save(update_fields=["logo_path", "logo_url", "updated_at"])
    if previous and previous != path:
        delete_quietly(previous)
    logger.info("Updated logo for user %s", user.pk)
    return profile


def remove_logo(user) -> Profile:
    profile = get_profile(user)
    delete_quietly(profile.logo_path)
    profile.logo_path = ""
    profile.logo_url = ""
    profile.save(update_fields=["logo_path", "logo_url", "updated_at"])
    return profile


def reauthenticate(user, current_password: str):
    if not current_password or not user.check_password(current_password):
        raise ListoError("Incorrect password. Please try again.", code="wrong-password")


def change_email(user, new_email: str, current_password: str):
    reauthenticate(user, current_password)
    new_email = (new_email or "").strip().lower()
    if not new_email:
        raise ListoError("Invalid email address.", code="invalid-email")
    model = type(user)
    if model.objects.filter(email__iexact=new_email).exclude(pk=user.pk).exists():
        raise ListoError("This email address is already in use.", code="email-already-in-use")
    user.email = new_email
    user.save(update_fields=["email"])
    profile = get_profile(user)
    profile.email = new_email
    profile.save(update_fields=["email", "updated_at"])


def change_password(user, new_password: str, current_password: str):
    reauthenticate(user, current_password)
    user.set_password(new_password)
    user.save(update_fields=["password"])
    profile = get_profile(user)
    profile.password_updated_at = timezone.now()
    profile.save(update_fields=["password_updated_at", "updated_at"])

