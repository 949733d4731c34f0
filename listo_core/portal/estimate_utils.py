from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Optional

from django.db import transaction

from .errors import ListoError
from .formatting import quantize_money, to_decimal
from .models import Builder, Estimate, Job
from .storage_utils import delete_quietly, save_upload, timestamped_name, user_path, validate_document

CATEGORY_LABOR = "labor"
CATEGORY_MATERIALS = "materials"
CATEGORY_SUBCONTRACTORS = "subcontractors"
CATEGORY_OTHER = "other"
CATEGORIES = (CATEGORY_LABOR, CATEGORY_MATERIALS, CATEGORY_SUBCONTRACTORS, CATEGORY_OTHER)

DEFAULT_OVERHEAD_PCT = Decimal("10")
DEFAULT_PROFIT_PCT = Decimal("15")
DEFAULT_TAX_PCT = Decimal("0")

_HUNDRED = Decimal("100")

BUILDER_DOCUMENT_FIELDS = {
    "builder_coi": "builder_coi_path",
    "sub_agreement": "sub_agreement_path",
}


def line_subtotal(category: str, row: dict) -> Decimal:
    if category == CATEGORY_LABOR:
        return to_decimal(row.get("hours")) * to_decimal(row.get("rate"))
    if category == CATEGORY_MATERIALS:
        return to_decimal(row.get("qty")) * to_decimal(row.get("unit_cost"))
    return to_decimal(row.get("amount"))


def _plain(value: Decimal) -> str:
    return format(value.normalize(), "f") if value else "0"


def categories_shape_ok(value) -> bool:
    """True when ``value`` maps categories to lists of row objects."""
    if not isinstance(value, dict):
        return False
    for rows in value.values():
        if rows is None:
            continue
        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            return False
    return True


def _rows(categories, category: str) -> list:
    rows = categories.get(category) if isinstance(categories, dict) else None
    if not isinstance(rows, list):
        return []
    return [row for row in rows if isinstance(row, dict)]


def _description(row: dict) -> str:
    return str(row.get("description") or "").strip()


def clean_categories(categories: Optional[dict]) -> dict:
    """Keep described rows only, each with numeric fields and its subtotal."""
    cleaned = {}
    for category in CATEGORIES:
        rows = []
        for row in _rows(categories, category):
            description = _description(row)
            if not description:
                continue
            if category == CATEGORY_LABOR:
                item = {"description": description, "hours": _plain(to_decimal(row.get("hours"))),
                        "rate": _plain(to_decimal(row.get("rate")))}
            elif category == CATEGORY_MATERIALS:
                item = {"description": description, "qty": _plain(to_decimal(row.get("qty"))),
                        "unit_cost": _plain(to_decimal(row.get("unit_cost")))}
            else:
                item = {"description": description, "amount": _plain(to_decimal(row.get("amount")))}
            item["subtotal"] = str(quantize_money(line_subtotal(category, row)))
            rows.append(item)
        cleaned[category] = rows
    return cleaned


@dataclass
class EstimateTotals:
    labor: Decimal
    materials: Decimal
    subcontractors: Decimal
    other: Decimal
    subtotal: Decimal
    overhead: Decimal
    profit: Decimal
    tax: Decimal
    grand_total: Decimal

    def as_dict(self):
        return {key: str(value) for key, value in asdict(self).items()}


def compute_estimate_totals(
    categories: dict,
    overhead_pct=DEFAULT_OVERHEAD_PCT,
    profit_pct=DEFAULT_PROFIT_PCT,
    tax_pct=DEFAULT_TAX_PCT,
    tax_enabled: bool = False,
) -> EstimateTotals:
    """Overhead on the subtotal, profit on subtotal plus overhead, tax on all three."""
    sums = {
        category: sum(
            (line_subtotal(category, row) for row in _rows(categories, category) if _description(row)),
            Decimal("0"),
        )
        for category in CATEGORIES
    }
    subtotal = sum(sums.values(), Decimal("0"))
    overhead = subtotal * to_decimal(overhead_pct) / _HUNDRED
    profit = (subtotal + overhead) * to_decimal(profit_pct) / _HUNDRED
    tax = Decimal("0")
    if tax_enabled:
        tax = (subtotal + overhead + profit) * to_decimal(tax_pct) / _HUNDRED
    return EstimateTotals(
        labor=quantize_money(sums[CATEGORY_LABOR]),
        materials=quantize_money(sums[CATEGORY_MATERIALS]),
        subcontractors=quantize_money(sums[CATEGORY_SUBCONTRACTORS]),
        other=quantize_money(sums[CATEGORY_OTHER]),
        subtotal=quantize_money(subtotal),
        overhead=quantize_money(overhead),
        profit=quantize_money(profit),
        tax=quantize_money(tax),
        grand_total=quantize_money(subtotal + overhead + profit + tax),
    )


@transaction.atomic
def save_estimate(job: Job, data: dict, estimate: Optional[Estimate] = None) -> Estimate:
    """Create or update an estimate under ``job`` with freshly computed totals."""
    name = (data.get("estimate_name") or "").strip()
    if not name:
        raise ListoError("Estimate name is required.", code="invalid-argument")
    if estimate is not None and estimate.job.builder.user_id != job.builder.user_id:
        raise ListoError("Estimate not found.", code="not-found")

    tax_enabled = bool(data.get("tax_enabled"))
    overhead_pct = to_decimal(data.get("overhead_pct"), DEFAULT_OVERHEAD_PCT)
    profit_pct = to_decimal(data.get("profit_pct"), DEFAULT_PROFIT_PCT)
    tax_pct = to_decimal(data.get("tax_pct"), DEFAULT_TAX_PCT) if tax_enabled else Decimal("0")
    categories = clean_categories(data.get("categories"))
    totals = compute_estimate_totals(categories, overhead_pct, profit_pct, tax_pct, tax_enabled)

    estimate = estimate or Estimate()
    estimate.job = job
    estimate.estimate_name = name
    estimate.notes = data.get("notes") or ""
    estimate.categories = categories
    estimate.overhead_pct = overhead_pct
    estimate.profit_pct = profit_pct
    estimate.tax_pct = tax_pct
    estimate.labor_total = totals.labor
    estimate.materials_total = totals.materials
    estimate.subcontractors_total = totals.subcontractors
    estimate.other_total = totals.other
    estimate.subtotal = totals.subtotal
    estimate.overhead_amount = totals.overhead
    estimate.profit_amount = totals.profit
    estimate.tax_amount = totals.tax
    estimate.grand_total = totals.grand_total
    estimate.save()
    return estimate


def copy_estimate(estimate: Estimate, name: Optional[str] = None) -> Estimate:
    data = {
        "estimate_name": name or f"{estimate.estimate_name} (copy)",
        "notes": estimate.notes,
        "categories": estimate.categories,
        "overhead_pct": estimate.overhead_pct,
        "profit_pct": estimate.profit_pct,
        "tax_pct": estimate.tax_pct,
        "tax_enabled": estimate.tax_enabled,
    }
    return save_estimate(estimate.job, data)


def _replace_file(instance, field: str, upload, path: str) -> str:
    validate_document(upload)
    saved = save_upload(path, upload)
    previous = getattr(instance, field)
    setattr(instance, field, saved)
    instance.save(update_fields=[field, "updated_at"])
    if previous and previous != saved:
        delete_quietly(previous)
    return saved


def store_builder_document(builder: Builder, kind: str, upload) -> str:
    """Store a builder COI or sub agreement, replacing the older file."""
    field = BUILDER_DOCUMENT_FIELDS.get(kind)
    if field is None:
        raise ListoError("Unknown document type.", code="invalid-argument")
    path = user_path(builder.user, "builders", builder.pk, kind, timestamped_name(upload.name))
    return _replace_file(builder, field, upload, path)


def store_project_coi(job: Job, upload) -> str:
    path = user_path(job.builder.user, "builders", job.builder_id, "jobs", job.pk, "coi",
                     timestamped_name(upload.name))
    return _replace_file(job, "project_coi_path", upload, path)
