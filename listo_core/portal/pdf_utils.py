"""Utility helpers for PDF rendering."""
from __future__ import annotations

import base64
import binascii
from io import BytesIO
from typing import Iterable, Optional

from django.conf import settings
from django.core.files.storage import default_storage
from django.template.loader import render_to_string
from PIL import Image, UnidentifiedImageError

from .errors import PdfUnavailableError

try:
    from weasyprint import HTML
    WEASYPRINT_AVAILABLE = True
except (ImportError, OSError):
    WEASYPRINT_AVAILABLE = False
    HTML = None

PNG_DATA_URL_PREFIX = "data:image/png;base64,"


def apply_branding_defaults(context: dict) -> dict:
    """Ensure branding keys exist when templates render outside a RequestContext."""
    if context is None:
        return {}

    default_business_name = getattr(settings, "DEFAULT_BUSINESS_NAME", "Listo") or "Listo"
    context.setdefault("default_business_name", default_business_name)

    profile = context.get("profile")
    user = context.get("user")
    if profile is None and user is not None:
        profile = getattr(user, "profile", None)

    business_name = getattr(profile, "company_name", None) if profile is not None else None
    if not business_name:
        business_name = context.get("business_name")
    if not business_name and user is not None:
        business_name = user.get_full_name() or user.get_username()

    context["business_name"] = business_name or default_business_name
    if "logo_data_url" not in context:
        context["logo_data_url"] = stored_image_data_url(getattr(profile, "logo_path", "") if profile is not None else "")
    return context


def stored_image_data_url(path: Optional[str]) -> str:
    """Inline a stored image so WeasyPrint does not need an authenticated fetch."""
    if not path or not default_storage.exists(path):
        return ""
    try:
        with default_storage.open(path, "rb") as handle:
            image = Image.open(handle)
            image.load()
    except (OSError, UnidentifiedImageError):
        return ""
    return image_to_data_url(image)


def render_html_to_pdf(html: str, *, stylesheets: Iterable = (), base_url: Optional[str] = None) -> bytes:
    """Render an HTML string to PDF bytes."""
    if not WEASYPRINT_AVAILABLE:
        raise PdfUnavailableError("WeasyPrint is not available. PDF generation is disabled.")
    buffer = BytesIO()
    HTML(string=html, base_url=base_url).write_pdf(target=buffer, stylesheets=list(stylesheets))
    return buffer.getvalue()


def render_template_to_pdf(
    template: str,
    context: dict,
    *,
    stylesheets: Iterable = (),
    base_url: Optional[str] = None,
) -> bytes:
    context = apply_branding_defaults(context)
    html = render_to_string(template, context)
    return render_html_to_pdf(html, stylesheets=stylesheets, base_url=base_url)


def image_to_data_url(image: Image.Image) -> str:
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return PNG_DATA_URL_PREFIX + base64.b64encode(buffer.getvalue()).decode("ascii")


def data_url_to_image(data_url: str) -> Image.Image:
    """Decode a ``data:image/...;base64,`` URL into a loaded Pillow image.

    Raises ``ValueError`` for anything that is not a decodable image.
    """
    if not data_url or not data_url.startswith("data:image/") or "," not in data_url:
        raise ValueError("Not an image data URL")
    header, encoded = data_url.split(",", 1)
    if ";base64" not in header:
        raise ValueError("Image data URL must be base64 encoded")
    try:
        raw = base64.b64decode(encoded, validate=True)
        image = Image.open(BytesIO(raw))
        image.load()
    except (binascii.Error, UnidentifiedImageError, OSError) as exc:
        raise ValueError(f"Invalid image data: {exc}") from exc
    return image


def is_image_data_url(value: Optional[str]) -> bool:
    if not value:
        return False
    try:
        data_url_to_image(value)
    except ValueError:
        return False
    return True
