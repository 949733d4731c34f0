"""Field extraction from OCR text of W-9 forms and certificates of insurance."""
from __future__ import annotations

import re
from datetime import date
from typing import Optional

CONFIDENCE_LOW = "low"
CONFIDENCE_MEDIUM = "medium"
CONFIDENCE_HIGH = "high"

POLICY_KEYS = ("workersCompensation", "automobileLiability", "commercialGeneralLiability")

_NAME_LABELS = (
    re.compile(r"name\s*\(as\s*shown\s*on\s*your\s*income\s*tax\s*return\)", re.I),
    re.compile(r"name\s*\(as\s*shown\s*on\s*return\)", re.I),
    re.compile(r"legal\s*name", re.I),
)
_BUSINESS_LABELS = (
    re.compile(r"business\s*name", re.I),
    re.compile(r"disregarded\s*entity\s*name", re.I),
    re.compile(r"name\s*of\s*disregarded\s*entity", re.I),
)
_ADDRESS_LABELS = (
    re.compile(r"address\s*\(number", re.I),
    re.compile(r"mailing\s*address", re.I),
)
_CITY_LABELS = (
    re.compile(r"city,\s*state,\s*and\s*zip\s*code", re.I),
    re.compile(r"city,\s*state\s*and\s*zip", re.I),
    re.compile(r"city\s*state\s*zip", re.I),
)
_AFTER_COLON = re.compile(r":\s*(.+)")
_DIGITS_ONLY_LINE = re.compile(r"^[0-9\s\-()]+$")
_CITY_STATE_ZIP = re.compile(r"^([A-Za-z\s]+?)\s*,?\s*([A-Z]{2})\s+([0-9]{5}(?:-[0-9]{4})?)$")
_CITY_STATE_ZIP_LOOSE = re.compile(r"^(.+?),\s*([A-Z]{2})\s+([0-9]{5})")
_LOOKS_LIKE_CITY_LINE = re.compile(r"^[A-Za-z\s]+,\s*[A-Z]{2}\s+[0-9]{5}")
_EIN = re.compile(r"\b([0-9]{2})-([0-9]{7})\b")
_SSN = re.compile(r"\b([0-9]{3})-([0-9]{2})-([0-9]{4})\b")

_POLICY_LABELS = {
    "workersCompensation": (
        re.compile(r"workers['\s]*comp(?:ensation)?", re.I),
        re.compile(r"workmen['\s]*comp(?:ensation)?", re.I),
        re.compile(r"\bwc\b", re.I),
    ),
    "automobileLiability": (
        re.compile(r"automobile\s*liability", re.I),
        re.compile(r"auto\s*liability", re.I),
        re.compile(r"vehicle\s*liability", re.I),
        re.compile(r"commercial\s*auto", re.I),
        re.compile(r"business\s*auto", re.I),
    ),
    "commercialGeneralLiability": (
        re.compile(r"commercial\s*general\s*liability", re.I),
        re.compile(r"general\s*liability", re.I),
        re.compile(r"\bcgl\b", re.I),
        re.compile(r"commercial\s*liability", re.I),
    ),
}
_EXPIRY_KEYWORDS = (
    re.compile(r"expires?\s*(?:on|date)?", re.I),
    re.compile(r"expiration\s*(?:date)?", re.I),
    re.compile(r"exp\s*date", re.I),
    re.compile(r"valid\s*(?:until|through)", re.I),
    re.compile(r"coverage\s*until", re.I),
)
_MONTHS = (
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
)
_NUMERIC_DATES = (
    re.compile(r"\b([0-9]{1,2})/([0-9]{1,2})/([0-9]{4})\b"),
    re.compile(r"\b([0-9]{1,2})-([0-9]{1,2})-([0-9]{4})\b"),
    re.compile(r"\b([0-9]{4})-([0-9]{1,2})-([0-9]{1,2})\b"),
)
_MONTH_NAME_DATE = re.compile(r"\b(" + "|".join(_MONTHS) + r")\s+([0-9]{1,2}),?\s+([0-9]{4})\b", re.I)


def _lines(text: str) -> list:
    return [line.strip() for line in (text or "").split("\n") if line.strip()]


def _value_after_label(lines, labels, accept) -> Optional[str]:
    for i, line in enumerate(lines):
        for label in labels:
            if not label.search(line):
                continue
            same_line = _AFTER_COLON.search(line)
            if same_line and same_line.group(1).strip():
                return same_line.group(1).strip()
            if i + 1 < len(lines) and accept(lines[i + 1]):
                return lines[i + 1]
    return None


def parse_w9_text(text: str) -> dict:
    """Pull W-9 fields out of raw OCR text.

    Only the last four digits of an SSN are kept. Confidence is ``low`` when
    fewer than three of name/address/city/state/zip were found, ``medium``
    below five, else ``high``.
    """
    lines = _lines(text)
    fields = {
        "legalName": None,
        "businessName": None,
        "taxClassification": None,
        "ein": None,
        "ssnLast4": None,
        "addressLine1": None,
        "addressLine2": None,
        "city": None,
        "state": None,
        "zip": None,
        "confidence": CONFIDENCE_MEDIUM,
    }

    fields["legalName"] = _value_after_label(
        lines, _NAME_LABELS, lambda nxt: len(nxt) > 2 and not _DIGITS_ONLY_LINE.match(nxt)
    )
    fields["businessName"] = _value_after_label(lines, _BUSINESS_LABELS, lambda nxt: len(nxt) > 2)

    for i, line in enumerate(lines):
        if not any(label.search(line) for label in _ADDRESS_LABELS):
            continue
        if i + 1 < len(lines) and len(lines[i + 1]) > 5:
            fields["addressLine1"] = lines[i + 1]
            if i + 2 < len(lines):
                candidate = lines[i + 2]
                if not _LOOKS_LIKE_CITY_LINE.match(candidate) and not any(
                    label.search(candidate) for label in _CITY_LABELS
                ):
                    fields["addressLine2"] = candidate
            break

    for i, line in enumerate(lines):
        if not any(label.search(line) for label in _CITY_LABELS) or i + 1 >= len(lines):
            continue
        candidate = lines[i + 1]
        match = _CITY_STATE_ZIP.match(candidate) or _CITY_STATE_ZIP_LOOSE.match(candidate)
        if match:
            fields["city"] = match.group(1).replace(",", "").strip()
            fields["state"] = match.group(2).upper()
            fields["zip"] = match.group(3)
        break

    ein = _EIN.search(text or "")
    if ein:
        fields["ein"] = f"{ein.group(1)}-{ein.group(2)}"
    ssn = _SSN.search(text or "")
    if ssn:
        fields["ssnLast4"] = ssn.group(3)
    if fields["ein"] and not fields["taxClassification"]:
        fields["taxClassification"] = "C-Corporation"

    found = sum(
        1
        for key in ("legalName", "addressLine1", "city", "state", "zip")
        if fields[key]
    )
    if found < 3:
        fields["confidence"] = CONFIDENCE_LOW
    elif found < 5:
        fields["confidence"] = CONFIDENCE_MEDIUM
    else:
        fields["confidence"] = CONFIDENCE_HIGH
    return fields


def _iso(year: int, month: int, day: int) -> Optional[str]:
    if year <= 1900:
        return None
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _dates_in(window: str) -> list:
    found = []
    for pattern in _NUMERIC_DATES:
        for a, b, c in pattern.findall(window):
            if len(a) == 4:
                value = _iso(int(a), int(b), int(c))
            else:
                value = _iso(int(c), int(a), int(b))
            if value:
                found.append(value)
    for month_name, day, year in _MONTH_NAME_DATE.findall(window):
        value = _iso(int(year), _MONTHS.index(month_name.lower()) + 1, int(day))
        if value:
            found.append(value)
    return found


def parse_coi_text(text: str, *, today: Optional[date] = None) -> dict:
    """Find the expiry date of each policy type on a certificate of insurance.

    For each policy label the search looks 100 characters back and 500
    forward, then 200 characters from the first expiry keyword (or the
    window start). The latest future date wins, else the latest date seen.
    """
    text = text or ""
    today_iso = (today or date.today()).isoformat()
    policies = {key: None for key in POLICY_KEYS}

    for key, labels in _POLICY_LABELS.items():
        for label in labels:
            match = label.search(text)
            if not match:
                continue
            start = max(0, match.start() - 100)
            window = text[start:match.start() + 500]
            offset = 0
            for keyword in _EXPIRY_KEYWORDS:
                hit = keyword.search(window)
                if hit:
                    offset = hit.start()
                    break
            dates = sorted(_dates_in(window[offset:offset + 200]))
            if dates:
                future = [d for d in dates if d > today_iso]
                policies[key] = future[-1] if future else dates[-1]
            break
    return policies


def earliest_policy_date(policies: dict) -> Optional[str]:
    dates = sorted(v for v in (policies or {}).values() if v)
    return dates[0] if dates else None
