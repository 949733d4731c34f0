# portal/templatetags/listo_tags.py

from django import template
from django.urls import reverse

from ..formatting import mask_tin, money
from ..i18n import translate

register = template.Library()


@register.filter
def currency(value):
    """Formats a number as US currency, e.g. ``$1,250.50``."""
    return money(value)


@register.filter
def masked_tin(value):
    return mask_tin(value)


@register.filter
def get_item(value, key):
    """Dictionary lookup for templates. Returns ``None`` when missing."""
    if value is None:
        return None
    try:
        return value[key]
    except (TypeError, KeyError, IndexError):
        return None


@register.filter
def stored_url(path, download=False):
    """Link to a stored file through the owner-checked file view."""
    if not path:
        return ""
    url = reverse("portal:stored_file", kwargs={"path": path})
    return f"{url}?download=1" if download else url


@register.filter
def file_name(path):
    return (path or "").rsplit("/", 1)[-1]


@register.simple_tag(takes_context=True)
def t(context, key):
    """Translate a catalog key into the request's language."""
    lang = context.get("listo_language") or "en"
    return translate(key, lang)
