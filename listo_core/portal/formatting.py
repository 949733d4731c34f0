"""Pure formatting helpers shared by views, PDFs and exports."""
from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any, Iterable, Optional

_SAFE_NAME_RE = re.compile(r"[^\w.\-]+", re.ASCII)
_CSV_SPECIAL = (",", '"', "\n", "\r")
_CENT = Decimal("0.01")


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    """Coerce ``value`` to a finite Decimal, falling back to ``default``."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        result = value
    else:
        text = str(value).strip().replace(",", "").replace("$", "")
        if not text:
            return default
        try:
            result = Decimal(text)
        except (InvalidOperation, ValueError):
            return default
    if not result.is_finite():
        return default
    return result


def quantize_money(value: Any) -> Decimal:
    amount = to_decimal(value)
    with localcontext() as ctx:
        # Room for every integer digit plus the two cents digits.
        ctx.prec = max(ctx.prec, amount.adjusted() + 3)
        return amount.quantize(_CENT)


def money(value: Any) -> str:
    """Render ``value`` as US dollars, e.g. ``$1,234.50``.

    ``None``, NaN, infinities and non-numeric input render as ``$0.00``.
    """
    amount = quantize_money(value)
    sign = "-" if amount < 0 else ""
    return f"{sign}${amount.copy_abs():,.2f}"


def normalize_name(name: Optional[str]) -> str:
    """Lower-case a person name and collapse internal whitespace."""
    return " ".join((name or "").split()).lower()


def initials(name: Optional[str], email: Optional[str] = None) -> str:
    parts = (name or "").split()
    if len(parts) >= 2:
        return (parts[0][0] + parts[-1][0]).upper()
    if parts:
        return parts[0][:2].upper()
    if email:
        return email.strip()[:2].upper() or "??"
    return "??"


def csv_cell(value: Any) -> str:
    """Quote a CSV cell the RFC 4180 way when it needs quoting."""
    text = "" if value is None else str(value)
    if any(ch in text for ch in _CSV_SPECIAL):
        return '"' + text.replace('"', '""') + '"'
    return text


def csv_row(values: Iterable[Any]) -> str:
    return ",".join(csv_cell(v) for v in values)


def safe_storage_name(name: Optional[str], fallback: str = "file") -> str:
    cleaned = _SAFE_NAME_RE.sub("_", (name or "").strip())
    return cleaned or fallback


def format_address(street: str = "", city: str = "", state: str = "", zip_code: str = "") -> str:
    """Join address parts into ``"Street\\nCity, ST ZIP"``."""
    lines = []
    if street and street.strip():
        lines.append(street.strip())
    if city and city.strip():
        tail = " ".join(p.strip() for p in (state, zip_code) if p and p.strip())
        lines.append(f"{city.strip()}, {tail}" if tail else city.strip())
    return "\n".join(lines)


def mask_tin(tin: Optional[str]) -> str:
    digits = re.sub(r"[^0-9]", "", tin or "")
    if len(digits) < 4:
        return ""
    return f"*****{digits[-4:]}"
