"""Paginated layout of the subcontractor agreement.

The layout is computed in points on a US letter page and then emitted as
absolutely positioned HTML for WeasyPrint, so page breaks are decided here
rather than by the CSS engine.
"""
from __future__ import annotations

import textwrap
from dataclasses import dataclass, field
from typing import List, Optional

from django.utils.html import format_html

from .pdf_utils import data_url_to_image, render_html_to_pdf

PAGE_WIDTH = 612.0
PAGE_HEIGHT = 792.0
MARGIN = 72.0
CONTENT_WIDTH = PAGE_WIDTH - 2 * MARGIN
FONT_SIZE = 12.0
TITLE_SIZE = 16.0
LINE_HEIGHT = FONT_SIZE * 1.15
SIGNATURE_MAX_WIDTH = 220.0
SIGNATURE_MAX_HEIGHT = 80.0
PARAGRAPH_GAP = LINE_HEIGHT * 0.5

AGREEMENT_TITLE = "Subcontractor Agreement"

AGREEMENT_CLAUSES = (
    ("Scope of Work",
     "Subcontractor shall furnish all labor, materials, tools and equipment necessary to perform the work "
     "described in each job order issued by Contractor, in a good and workmanlike manner and in accordance "
     "with applicable codes, plans and specifications."),
    ("Independent Contractor",
     "Subcontractor is an independent contractor and not an employee of Contractor. Subcontractor is solely "
     "responsible for the supervision of its workers and for all wages, payroll taxes and benefits owed to them."),
    ("Insurance",
     "Subcontractor shall maintain workers compensation, commercial general liability and automobile liability "
     "insurance in the amounts required by Contractor and shall provide a current certificate of insurance "
     "before starting work. Lapse of coverage is grounds for immediate suspension of work."),
    ("Tax Documentation",
     "Subcontractor shall provide a completed and signed IRS Form W-9 and agrees that payments may be reported "
     "on Form 1099-NEC."),
    ("Payment",
     "Contractor shall pay Subcontractor for work accepted under each job order according to the agreed price. "
     "Invoices must itemize labor and materials and reference the job name."),
    ("Safety and Compliance",
     "Subcontractor shall comply with all applicable safety laws and regulations, keep the job site clean and "
     "report any incident or injury to Contractor the same day."),
    ("Indemnification",
     "To the fullest extent permitted by law, Subcontractor shall indemnify and hold harmless Contractor from "
     "claims arising out of the negligent acts or omissions of Subcontractor or its workers."),
    ("Term and Termination",
     "This agreement remains in effect until terminated by either party with written notice. Obligations for "
     "work already performed survive termination."),
)


@dataclass
class TextItem:
    x: float
    y: float
    text: str
    size: float = FONT_SIZE
    bold: bool = False


@dataclass
class ImageItem:
    x: float
    y: float
    width: float
    height: float
    src: str


@dataclass
class Page:
    items: List = field(default_factory=list)


def wrap_text(text: str, width: float = CONTENT_WIDTH, font_size: float = FONT_SIZE) -> list:
    chars = max(1, int(width // (font_size * 0.5)))
    return textwrap.wrap(text, width=chars) or [""]


def fit_signature(width: float, height: float) -> tuple:
    """Scale ``width`` x ``height`` into the signature box keeping its aspect ratio."""
    if width <= 0 or height <= 0:
        return 0.0, 0.0
    scale = min(SIGNATURE_MAX_WIDTH / width, SIGNATURE_MAX_HEIGHT / height, 1.0)
    return width * scale, height * scale


class AgreementLayout:
    def __init__(self):
        self.pages = [Page()]
        self.y = MARGIN

    @property
    def page(self) -> Page:
        return self.pages[-1]

    @property
    def bottom(self) -> float:
        return PAGE_HEIGHT - MARGIN

    def new_page(self):
        self.pages.append(Page())
        self.y = MARGIN

    def ensure_room(self, height: float):
        if self.y + height > self.bottom:
            self.new_page()

    def add_line(self, text: str, *, size: float = FONT_SIZE, bold: bool = False):
        line_height = size * 1.15
        self.ensure_room(line_height)
        self.page.items.append(TextItem(MARGIN, self.y, text, size, bold))
        self.y += line_height

    def add_paragraph(self, text: str, *, size: float = FONT_SIZE):
        for line in wrap_text(text, CONTENT_WIDTH, size):
            self.add_line(line, size=size)
        self.y += PARAGRAPH_GAP

    def add_heading(self, text: str):
        # keep a heading with the first line of its clause
        self.ensure_room(LINE_HEIGHT * 2)
        self.add_line(text, bold=True)

    def add_image(self, src: str, width: float, height: float):
        self.ensure_room(height)
        self.page.items.append(ImageItem(MARGIN, self.y, width, height, src))
        self.y += height


def layout_agreement(
    *,
    company_name: str,
    signer_name: str,
    signer_title: str = "",
    signed_on: str = "",
    signature_data_url: Optional[str] = None,
) -> list:
    """Return the agreement as a list of ``Page`` objects."""
    layout = AgreementLayout()
    layout.add_line(AGREEMENT_TITLE, size=TITLE_SIZE, bold=True)
    layout.y += PARAGRAPH_GAP
    layout.add_paragraph(
        f"This Subcontractor Agreement is entered into by {company_name or 'the Subcontractor'} "
        "(\"Subcontractor\") for work performed for the general contractor (\"Contractor\")."
    )
    for number, (heading, body) in enumerate(AGREEMENT_CLAUSES, start=1):
        layout.add_heading(f"{number}. {heading}")
        layout.add_paragraph(body)

    layout.y += PARAGRAPH_GAP
    layout.add_line("Signature", bold=True)
    if signature_data_url:
        image = data_url_to_image(signature_data_url)
        width, height = fit_signature(*image.size)
        if width and height:
            layout.add_image(signature_data_url, width, height)
    for label, value in (("Name", signer_name), ("Title", signer_title),
                         ("Company", company_name), ("Date", signed_on)):
        if value:
            layout.add_line(f"{label}: {value}")
    return layout.pages


def pages_to_html(pages: list) -> str:
    rendered = []
    for page in pages:
        items = []
        for item in page.items:
            if isinstance(item, ImageItem):
                items.append(format_html(
                    '<img src="{}" style="position:absolute;left:{}pt;top:{}pt;width:{}pt;height:{}pt">',
                    item.src, f"{item.x:g}", f"{item.y:g}", f"{item.width:g}", f"{item.height:g}",
                ))
            else:
                items.append(format_html(
                    '<div style="position:absolute;left:{}pt;top:{}pt;font-size:{}pt;{}">{}</div>',
                    f"{item.x:g}", f"{item.y:g}", f"{item.size:g}",
                    "font-weight:bold" if item.bold else "", item.text,
                ))
        rendered.append('<div class="page">' + "".join(items) + "</div>")
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\"><style>"
        f"@page {{ size: {PAGE_WIDTH:g}pt {PAGE_HEIGHT:g}pt; margin: 0; }}"
        "body { margin: 0; font-family: 'Times New Roman', Times, serif; }"
        f".page {{ position: relative; width: {PAGE_WIDTH:g}pt; height: {PAGE_HEIGHT:g}pt; "
        f"line-height: {LINE_HEIGHT:g}pt; page-break-after: always; }}"
        ".page:last-child { page-break-after: auto; }"
        "</style></head><body>" + "".join(rendered) + "</body></html>"
    )


def render_agreement_pdf(**kwargs) -> bytes:
    return render_html_to_pdf(pages_to_html(layout_agreement(**kwargs)))
