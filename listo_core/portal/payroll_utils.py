from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
import datetime
from io import BytesIO
from typing import Iterable, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill

from .formatting import csv_row, normalize_name, quantize_money
from .models import PayrollEntry, Worker


DECIMAL_ZERO = Decimal("0.00")
CSV_HEADER = ("Date", "Employee", "Method", "Amount")

_HEADER_FILL = PatternFill(start_color="1F4E78", end_color="1F4E78", fill_type="solid")
_HEADER_FONT = Font(color="FFFFFF", bold=True)
_HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center")


def row_limit() -> int:
    return getattr(settings, "LISTO_PAYROLL_ROW_LIMIT", 500) or 500


def load_entries(user) -> list:
    """Most recent payroll entries for ``user``, newest pay date first."""
    return list(
        PayrollEntry.objects.filter(user=user)
        .select_related("worker")
        .order_by("-pay_date", "-created_at")[: row_limit()]
    )


@dataclass
class PayrollFilter:
    name: str = ""
    method: str = ""
    start: Optional[datetime.date] = None
    end: Optional[datetime.date] = None

    def matches(self, entry) -> bool:
        needle = (self.name or "").strip().lower()
        if needle and needle not in (entry.employee_name or "").lower():
            return False
        if self.method and entry.method != self.method:
            return False
        if self.start and entry.pay_date < self.start:
            return False
        if self.end and entry.pay_date > self.end:
            return False
        return True


def filter_entries(entries: Iterable, payroll_filter: PayrollFilter) -> list:
    return [entry for entry in entries if payroll_filter.matches(entry)]


@dataclass
class PayrollTotals:
    month: Decimal
    all_time: Decimal
    count: int


def payroll_totals(entries: Iterable, today: Optional[datetime.date] = None) -> PayrollTotals:
    """The month total counts pay dates on or after the first of the current month."""
    today = today or timezone.localdate()
    month_start = today.replace(day=1)
    month = DECIMAL_ZERO
    all_time = DECIMAL_ZERO
    count = 0
    for entry in entries:
        amount = entry.amount or DECIMAL_ZERO
        all_time += amount
        count += 1
        if entry.pay_date >= month_start:
            month += amount
    return PayrollTotals(month=quantize_money(month), all_time=quantize_money(all_time), count=count)


def ensure_worker(user, name: str) -> Worker:
    """Return the worker whose normalized name matches ``name``, creating one if needed."""
    key = normalize_name(name)
    worker = Worker.objects.filter(user=user, name_key=key).order_by("pk").first()
    if worker is None:
        worker = Worker.objects.create(
            user=user,
            name=" ".join(name.split()),
            worker_type=Worker.TYPE_EMPLOYEE,
        )
    return worker


@transaction.atomic
def add_payroll_entry(user, *, employee_name, pay_date, amount, method, memo="") -> PayrollEntry:
    worker = ensure_worker(user, employee_name)
    return PayrollEntry.objects.create(
        user=user,
        worker=worker,
        employee_name=worker.name,
        pay_date=pay_date,
        amount=quantize_money(amount),
        method=method,
        memo=memo or "",
    )


def export_rows(entries: Iterable) -> list:
    return [
        [entry.pay_date.isoformat(), entry.employee_name, entry.method, f"{quantize_money(entry.amount)}"]
        for entry in entries
    ]


def build_payroll_csv(entries: Iterable) -> str:
    lines = [csv_row(CSV_HEADER)]
    lines.extend(csv_row(row) for row in export_rows(entries))
    return "\n".join(lines) + "\n"


def build_payroll_workbook(entries: Iterable) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Payroll"
    sheet.append(list(CSV_HEADER))
    for cell in sheet[1]:
        cell.fill = _HEADER_FILL
        cell.font = _HEADER_FONT
        cell.alignment = _HEADER_ALIGNMENT
    for date_text, name, method, amount in export_rows(entries):
        sheet.append([date_text, name, method, float(amount)])
        sheet.cell(row=sheet.max_row, column=4).number_format = '"$"#,##0.00'
    for letter, width in zip("ABCD", (14, 32, 12, 14)):
        sheet.column_dimensions[letter].width = width
    output = BytesIO()
    workbook.save(output)
    return output.getvalue()


def period_summary(user, start: datetime.date, end: datetime.date) -> dict:
    """Payments between ``start`` and ``end`` grouped by worker and method."""
    groups = {}
    grand_total = DECIMAL_ZERO
    grand_count = 0
    entries = PayrollEntry.objects.filter(user=user, pay_date__gte=start, pay_date__lte=end)
    for entry in entries.order_by("employee_name", "method"):
        key = f"{entry.employee_name}|{entry.method}"
        group = groups.setdefault(
            key,
            {"worker": entry.employee_name, "method": entry.method, "total": DECIMAL_ZERO, "count": 0},
        )
        group["total"] += entry.amount or DECIMAL_ZERO
        group["count"] += 1
        grand_total += entry.amount or DECIMAL_ZERO
        grand_count += 1
    rows = sorted(groups.values(), key=lambda g: (g["worker"].lower(), g["method"]))
    for row in rows:
        row["total"] = quantize_money(row["total"])
    return {"rows": rows, "grand_total": quantize_money(grand_total), "grand_count": grand_count}


def year_payments(user, worker: Worker, year: int) -> Decimal:
    total = DECIMAL_ZERO
    for entry in PayrollEntry.objects.filter(user=user, pay_date__year=year):
        if entry.worker_id == worker.pk or normalize_name(entry.employee_name) == worker.name_key:
            total += entry.amount or DECIMAL_ZERO
    return quantize_money(total)
