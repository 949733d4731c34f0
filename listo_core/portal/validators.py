"""Client-side style field checks, shared by forms and the API serializers."""
from __future__ import annotations

import re
from typing import Optional

from django.core.exceptions import ValidationError

US_STATES = (
    ("AL", "Alabama"),
    ("AK", "Alaska"),
    ("AZ", "Arizona"),
    ("AR", "Arkansas"),
    ("CA", "California"),
    ("CO", "Colorado"),
    ("CT", "Connecticut"),
    ("DE", "Delaware"),
    ("FL", "Florida"),
    ("GA", "Georgia"),
    ("HI", "Hawaii"),
    ("ID", "Idaho"),
    ("IL", "Illinois"),
    ("IN", "Indiana"),
    ("IA", "Iowa"),
    ("KS", "Kansas"),
    ("KY", "Kentucky"),
    ("LA", "Louisiana"),
    ("ME", "Maine"),
    ("MD", "Maryland"),
    ("MA", "Massachusetts"),
    ("MI", "Michigan"),
    ("MN", "Minnesota"),
    ("MS", "Mississippi"),
    ("MO", "Missouri"),
    ("MT", "Montana"),
    ("NE", "Nebraska"),
    ("NV", "Nevada"),
    ("NH", "New Hampshire"),
    ("NJ", "New Jersey"),
    ("NM", "New Mexico"),
    ("NY", "New York"),
    ("NC", "North Carolina"),
    ("ND", "North Dakota"),
    ("OH", "Ohio"),
    ("OK", "Oklahoma"),
    ("OR", "Oregon"),
    ("PA", "Pennsylvania"),
    ("RI", "Rhode Island"),
    ("SC", "South Carolina"),
    ("SD", "South Dakota"),
    ("TN", "Tennessee"),
    ("TX", "Texas"),
    ("UT", "Utah"),
    ("VT", "Vermont"),
    ("VA", "Virginia"),
    ("WA", "Washington"),
    ("WV", "West Virginia"),
    ("WI", "Wisconsin"),
    ("WY", "Wyoming"),
    ("DC", "District of Columbia"),
)
STATE_CODES = frozenset(code for code, _ in US_STATES)

_ZIP_RE = re.compile(r"^[0-9]{5}(?:-[0-9]{4})?$")


def digits_only(value: Optional[str]) -> str:
    return re.sub(r"[^0-9]", "", value or "")


def validate_phone(value: Optional[str]) -> bool:
    return len(digits_only(value)) >= 10


def validate_zip(value: Optional[str]) -> bool:
    return bool(_ZIP_RE.match((value or "").strip()))


def validate_tin(value: Optional[str]) -> bool:
    """TIN is optional; when present it must be 9 digits once separators go."""
    text = (value or "").strip()
    if not text:
        return True
    stripped = text.replace("-", "").replace(" ", "")
    return len(stripped) == 9 and all(ch in "0123456789" for ch in stripped)


def validate_state(value: Optional[str]) -> bool:
    return (value or "").strip().upper() in STATE_CODES


# Django field validators built on the predicates above.

def phone_validator(value):
    if value and not validate_phone(value):
        raise ValidationError("Enter a phone number with at least 10 digits.", code="invalid_phone")


def zip_validator(value):
    if value and not validate_zip(value):
        raise ValidationError("Enter a ZIP code like 12345 or 12345-6789.", code="invalid_zip")


def tin_validator(value):
    if not validate_tin(value):
        raise ValidationError("Taxpayer ID must be 9 digits.", code="invalid_tin")


def state_validator(value):
    if value and not validate_state(value):
        raise ValidationError("Enter a valid two-letter US state code.", code="invalid_state")
