"""Coordinate-mapped rendering of the W-9 form.

One table drives both the on-screen preview and the generated PDF. Positions
are in a 816x1056 base (US letter at 96 DPI); the PDF scales them by 0.75.
"""
from __future__ import annotations

from collections import namedtuple
from typing import Optional

from django.utils.html import format_html, format_html_join
from django.utils.safestring import mark_safe

from .models import W9Form
from .pdf_utils import render_html_to_pdf

BASE_WIDTH = 816
BASE_HEIGHT = 1056
PX_TO_PT = 0.75
PAGE_WIDTH_PT = 612
PAGE_HEIGHT_PT = 792
DEFAULT_FONT_SIZE = 13
CHECKBOX_SIZE = 12

Field = namedtuple("Field", "x y width font_size")

FIELDS = {
    "name": Field(62, 132, 690, 13),
    "business_name": Field(62, 168, 690, 13),
    "llc_tax_code": Field(560, 236, 40, 13),
    "other_classification": Field(120, 282, 300, 12),
    "exempt_payee_code": Field(720, 228, 60, 12),
    "fatca_code": Field(720, 274, 60, 12),
    "address": Field(62, 330, 440, 13),
    "city_state_zip": Field(62, 366, 440, 13),
    "requester": Field(520, 330, 230, 12),
    "account_numbers": Field(62, 402, 690, 12),
    "signature": Field(150, 760, 300, None),
    "signed_on": Field(560, 770, 150, 13),
}

TIN_FIELDS = {
    W9Form.TIN_SSN: Field(548, 452, 200, 14),
    W9Form.TIN_EIN: Field(548, 512, 200, 14),
}

CHECKBOXES = {
    W9Form.CLASS_INDIVIDUAL: (62, 214),
    W9Form.CLASS_C_CORP: (186, 214),
    W9Form.CLASS_S_CORP: (268, 214),
    W9Form.CLASS_PARTNERSHIP: (350, 214),
    W9Form.CLASS_TRUST: (440, 214),
    W9Form.CLASS_LLC: (62, 236),
    W9Form.CLASS_OTHER: (62, 282),
}

SIGNATURE_HEIGHT = 40


def format_tin(tin: str, tin_type: str) -> str:
    digits = "".join(ch for ch in tin or "" if ch in "0123456789")
    if len(digits) != 9:
        return tin or ""
    if tin_type == W9Form.TIN_EIN:
        return f"{digits[:2]}-{digits[2:]}"
    return f"{digits[:3]}-{digits[3:5]}-{digits[5:]}"


def field_values(form: W9Form) -> dict:
    """Text for every mapped field, keyed like ``FIELDS``."""
    city_line = ", ".join(p for p in (form.city, " ".join(x for x in (form.state, form.zip_code) if x)) if p)
    return {
        "name": form.name,
        "business_name": form.business_name,
        "llc_tax_code": form.llc_tax_code if form.tax_classification == W9Form.CLASS_LLC else "",
        "other_classification": form.other_classification if form.tax_classification == W9Form.CLASS_OTHER else "",
        "exempt_payee_code": form.exempt_payee_code,
        "fatca_code": form.fatca_code,
        "address": form.address,
        "city_state_zip": city_line,
        "requester": form.requester,
        "account_numbers": form.account_numbers,
        "signed_on": form.signed_on.strftime("%m/%d/%Y") if form.signed_on else "",
        "tin": format_tin(form.tin, form.tin_type),
    }


def tin_position(tin_type: str) -> Field:
    return TIN_FIELDS.get(tin_type, TIN_FIELDS[W9Form.TIN_SSN])


def _style(field: Field, scale: float = 1.0, unit: str = "px") -> str:
    font_size = field.font_size or DEFAULT_FONT_SIZE
    return (
        f"--x:{field.x * scale:g}{unit};--y:{field.y * scale:g}{unit};"
        f"--w:{field.width * scale:g}{unit};--fs:{font_size * scale:g}{unit}"
    )


def preview_elements(form: W9Form):
    """Overlay elements for the live preview, as safe HTML."""
    values = field_values(form)
    parts = []
    for key, field in FIELDS.items():
        if key == "signature":
            if form.signature_data_url:
                parts.append(
                    format_html(
                        '<div class="w9-field" data-bind="signature" style="{}">'
                        '<img src="{}" alt="Signature" height="{}"></div>',
                        _style(field),
                        form.signature_data_url,
                        SIGNATURE_HEIGHT,
                    )
                )
            else:
                parts.append(format_html('<div class="w9-field" data-bind="signature" style="{}"></div>', _style(field)))
            continue
        parts.append(
            format_html(
                '<div class="w9-field" data-bind="{}" style="{}">{}</div>',
                key,
                _style(field),
                values.get(key, ""),
            )
        )
    parts.append(
        format_html(
            '<div class="w9-field w9-tin" data-bind="tin" data-tin-type="{}" style="{}">{}</div>',
            form.tin_type,
            _style(tin_position(form.tin_type)),
            values["tin"],
        )
    )
    parts.append(
        format_html_join(
            "",
            '<div class="w9-check{}" data-bind="tax_classification" data-value="{}" '
            'style="--x:{}px;--y:{}px">X</div>',
            (
                (" on" if value == form.tax_classification else "", value, x, y)
                for value, (x, y) in CHECKBOXES.items()
            ),
        )
    )
    return mark_safe("".join(parts))


def _pdf_item(left, top, width, font_size, content) -> str:
    return format_html(
        '<div style="position:absolute;left:{}pt;top:{}pt;width:{}pt;font-size:{}pt;white-space:nowrap;overflow:hidden">{}</div>',
        f"{left:g}",
        f"{top:g}",
        f"{width:g}",
        f"{font_size:g}",
        content,
    )


def build_pdf_html(form: W9Form, background_url: Optional[str] = None) -> str:
    """Absolutely positioned HTML for a single 612x792 pt page."""
    values = field_values(form)
    items = []
    for key, field in FIELDS.items():
        left, top, width = field.x * PX_TO_PT, field.y * PX_TO_PT, field.width * PX_TO_PT
        if key == "signature":
            if form.signature_data_url:
                items.append(
                    format_html(
                        '<img src="{}" style="position:absolute;left:{}pt;top:{}pt;max-width:{}pt;height:{}pt">',
                        form.signature_data_url,
                        f"{left:g}",
                        f"{top - SIGNATURE_HEIGHT * PX_TO_PT:g}",
                        f"{width:g}",
                        f"{SIGNATURE_HEIGHT * PX_TO_PT:g}",
                    )
                )
            continue
        text = values.get(key, "")
        if text:
            font_size = (field.font_size or DEFAULT_FONT_SIZE) * PX_TO_PT
            items.append(_pdf_item(left, top - font_size, width, font_size, text))

    tin = tin_position(form.tin_type)
    if values["tin"]:
        items.append(_pdf_item(tin.x * PX_TO_PT, (tin.y - tin.font_size) * PX_TO_PT, tin.width * PX_TO_PT,
                               tin.font_size * PX_TO_PT, values["tin"]))
    if form.tax_classification in CHECKBOXES:
        x, y = CHECKBOXES[form.tax_classification]
        items.append(_pdf_item(x * PX_TO_PT, (y - CHECKBOX_SIZE) * PX_TO_PT, CHECKBOX_SIZE * PX_TO_PT,
                               CHECKBOX_SIZE * PX_TO_PT, "X"))

    background = ""
    if background_url:
        background = format_html(
            '<img src="{}" style="position:absolute;left:0;top:0;width:{}pt;height:{}pt">',
            background_url,
            PAGE_WIDTH_PT,
            PAGE_HEIGHT_PT,
        )
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\"><style>"
        f"@page {{ size: {PAGE_WIDTH_PT}pt {PAGE_HEIGHT_PT}pt; margin: 0; }}"
        "body { margin: 0; font-family: Helvetica, Arial, sans-serif; color: #000; }"
        f".page {{ position: relative; width: {PAGE_WIDTH_PT}pt; height: {PAGE_HEIGHT_PT}pt; }}"
        "</style></head><body><div class=\"page\">"
        + background
        + "".join(items)
        + "</div></body></html>"
    )


def render_w9_pdf(form: W9Form, background_url: Optional[str] = None) -> bytes:
    return render_html_to_pdf(build_pdf_html(form, background_url))
