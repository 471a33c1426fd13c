from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime, timezone
from decimal import Decimal
from io import BytesIO
from pathlib import Path
from typing import Any, List, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from src.insurance.errors import InvoiceRenderError
from src.insurance.premium import line_total, quantize_cents, to_decimal
from src.invoices.images import ImageResolver
from src.utils.config_loader import InvoiceConfig

logger = logging.getLogger(__name__)

INVOICE_EXTENSION = ".pdf"

CONTENT_WIDTH = A4[0] - 2 * 15 * mm
HALF_WIDTH = CONTENT_WIDTH / 2 - 3 * mm
SLIP_IMAGE_MAX_HEIGHT = 75 * mm

BORDER = colors.HexColor("#000000")
HEADER_FILL = colors.HexColor("#E5E7EB")


def invoice_filename(invoice_number: str) -> str:
    return f"{invoice_number}{INVOICE_EXTENSION}"


def invoice_url(base_url: str, invoice_number: str) -> str:
    """Public URL of a rendered invoice, served statically from /invoices."""
    return f"{base_url.rstrip('/')}/invoices/{invoice_filename(invoice_number)}"


def format_date(d: datetime) -> str:
    return d.strftime("%d/%m/%Y")


def group_indian(amount: Decimal) -> str:
    """4432.5 -> '4,432.50', 1234567 -> '12,34,567.00' (lakh/crore grouping)."""
    amount = quantize_cents(amount)
    sign = "-" if amount < 0 else ""
    whole, frac = f"{abs(amount):.2f}".split(".")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    return f"{sign}{whole}.{frac}"


def format_currency(amount: Any, prefix: str = "Rs.") -> str:
    return f"{prefix} {group_indian(to_decimal(amount))}"


def _text(value: Any) -> str:
    s = "" if value is None else str(value).strip()
    return escape(s) if s else "-"


class InvoiceRenderer:
    """Renders the PDF invoice issued when a request is approved.

    Files are written to `<output_dir>/<invoice_number>.pdf`; a failed render
    never leaves a partial file behind.
    """

    def __init__(self, output_dir: Path, config: InvoiceConfig, image_resolver: ImageResolver):
        self.output_dir = Path(output_dir)
        self.config = config
        self.images = image_resolver

        styles = getSampleStyleSheet()
        self.normal = ParagraphStyle("N", parent=styles["Normal"], fontSize=9, leading=12)
        self.small = ParagraphStyle("S", parent=styles["Normal"], fontSize=7, leading=9)
        self.bold = ParagraphStyle("B", parent=self.normal, fontName="Helvetica-Bold")
        self.section = ParagraphStyle("SEC", parent=self.small, fontName="Helvetica-Bold", fontSize=7.5, spaceBefore=3)
        self.brand = ParagraphStyle("BR", parent=styles["Title"], fontSize=18, leading=22, alignment=0, spaceAfter=2)
        self.title = ParagraphStyle("T", parent=self.bold, fontSize=14, leading=18, alignment=TA_CENTER)
        self.total = ParagraphStyle("TOT", parent=self.bold, fontSize=10, leading=14)
        self.right = ParagraphStyle("R", parent=self.normal, alignment=TA_RIGHT)
        self.center = ParagraphStyle("C", parent=self.normal, fontSize=10, alignment=TA_CENTER)

    async def render(
        self,
        request,
        invoice_number: str,
        premium_amount: Any,
        issued_at: Optional[datetime] = None,
    ) -> Path:
        issued_at = issued_at or datetime.now(timezone.utc)
        try:
            async with self.images.acquire(request) as image_path:
                story = self.build_story(request, invoice_number, premium_amount, issued_at, image_path)
                # Blocking reportlab and file work runs in worker threads
                pdf = await asyncio.to_thread(self._build_pdf, story, invoice_number)
                path = await asyncio.to_thread(self._write, invoice_number, pdf)
        except InvoiceRenderError:
            raise
        except Exception as e:
            raise InvoiceRenderError(f"Failed to render invoice {invoice_number}: {e}", invoice_number=invoice_number) from e

        if image_path is None:
            logger.warning("No weighment slip image for request %s, rendered placeholder", getattr(request, "id", "?"))
        logger.info("Invoice %s rendered to %s", invoice_number, path)
        return path

    def _build_pdf(self, story: List[Any], invoice_number: str) -> bytes:
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=15 * mm,
            leftMargin=15 * mm,
            topMargin=12 * mm,
            bottomMargin=15 * mm,
            title=f"Invoice {invoice_number}",
            author=self.config.branding.company_name,
        )
        doc.build(story, onFirstPage=self._footer, onLaterPages=self._footer)
        return buffer.getvalue()

    def _write(self, invoice_number: str, pdf: bytes) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / invoice_filename(invoice_number)
        tmp = path.with_suffix(path.suffix + ".part")
        try:
            tmp.write_bytes(pdf)
            os.replace(tmp, path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise InvoiceRenderError(f"Could not write invoice {path}: {e}", invoice_number=invoice_number) from e
        return path

    def _footer(self, c: canvas.Canvas, doc):
        c.saveState()
        c.setFont("Helvetica", 7)
        c.setFillColor(colors.grey)
        c.drawString(15 * mm, 8 * mm, "This is a computer generated invoice.")
        c.drawRightString(A4[0] - 15 * mm, 8 * mm, f"Page {doc.page}")
        c.restoreState()

    def _box(self, rows: List[List[Any]], col_widths: List[float], *, header: bool = False) -> Table:
        t = Table(rows, colWidths=col_widths)
        style = [
            ("BOX", (0, 0), (-1, -1), 0.6, BORDER),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("LEFTPADDING", (0, 0), (-1, -1), 6),
            ("RIGHTPADDING", (0, 0), (-1, -1), 6),
        ]
        if header:
            style += [
                ("GRID", (0, 0), (-1, -1), 0.4, BORDER),
                ("BACKGROUND", (0, 0), (-1, 0), HEADER_FILL),
            ]
        t.setStyle(TableStyle(style))
        return t

    def _side_by_side(self, left: Any, right: Any) -> Table:
        t = Table([[left, right]], colWidths=[HALF_WIDTH + 3 * mm, HALF_WIDTH + 3 * mm])
        t.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("LEFTPADDING", (0, 0), (-1, -1), 0),
            ("RIGHTPADDING", (0, 0), (-1, -1), 0),
        ]))
        return t

    def _kv(self, label: str, value: Any) -> Paragraph:
        return Paragraph(f"<b>{escape(label)}</b> : {_text(value)}", self.normal)

    def _slip_image(self, image_path: Path) -> Image:
        width, height = ImageReader(str(image_path)).getSize()
        scale = min((HALF_WIDTH - 12) / width, SLIP_IMAGE_MAX_HEIGHT / height)
        return Image(str(image_path), width=width * scale, height=height * scale)

    def build_story(
        self,
        request,
        invoice_number: str,
        premium_amount: Any,
        issued_at: datetime,
        image_path: Optional[Path] = None,
    ) -> List[Any]:
        branding = self.config.branding
        layout = self.config.invoice
        cur = layout.currency_prefix

        quantity = int(request.quantity)
        rate = to_decimal(getattr(request, "rate", None))
        total = line_total(quantity, rate)
        item_name = _text(request.item_name)
        supplier_name = _text(request.supplier_name)
        party_name = _text(request.party_name)
        party_address = _text(request.party_address)

        story: List[Any] = []

        # ---------- Header ----------
        brand = Paragraph(
            f"<font color='#000000'>{escape(branding.brand_prefix)}</font>"
            f"<font color='{branding.brand_color}'>{escape(branding.brand_suffix)}</font>",
            self.brand,
        )
        company = [
            brand,
            Paragraph(f"<b>{escape(branding.company_name)}</b>", self.normal),
            Paragraph(escape(branding.company_address), self.small),
        ]
        title = self._box([[Paragraph("INVOICE", self.title)]], [50 * mm])
        header = Table([[company, title]], colWidths=[CONTENT_WIDTH - 55 * mm, 55 * mm])
        header.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("ALIGN", (1, 0), (1, 0), "RIGHT"),
            ("LINEBELOW", (0, 0), (-1, 0), 0.8, BORDER),
            ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
        ]))
        story += [header, Spacer(1, 8)]

        # ---------- Invoice details / supplier ----------
        details = self._box(
            [
                [self._kv("Invoice Number", invoice_number)],
                [self._kv("Invoice Date", format_date(issued_at))],
                [self._kv("Terms", layout.terms)],
            ],
            [HALF_WIDTH],
        )
        supplier = self._box(
            [
                [self._kv("Supplier Name", request.supplier_name)],
                [self._kv("Place of Supply", request.supplier_place)],
            ],
            [HALF_WIDTH],
        )
        story += [self._side_by_side(details, supplier), Spacer(1, 8)]

        # ---------- Bill to / ship to ----------
        def party_box(label: str) -> Table:
            return self._box(
                [
                    [Paragraph(f"<b>{label}</b>", self.normal)],
                    [Paragraph(party_name, self.normal)],
                    [Paragraph(party_address, self.normal)],
                ],
                [HALF_WIDTH],
            )

        story += [self._side_by_side(party_box("Bill To"), party_box("Ship To")), Spacer(1, 8)]

        # ---------- Line item ----------
        items = self._box(
            [
                [
                    Paragraph("<b>#</b>", self.normal),
                    Paragraph("<b>Item &amp; Description</b>", self.normal),
                    Paragraph("<b>HSN/SAC</b>", self.normal),
                    Paragraph("<b>Qty</b>", self.normal),
                    Paragraph("<b>Rate</b>", self.right),
                    Paragraph("<b>Amount</b>", self.right),
                ],
                [
                    Paragraph("1", self.normal),
                    Paragraph(item_name, self.normal),
                    Paragraph(escape(layout.hsn_code), self.normal),
                    Paragraph(group_indian(Decimal(quantity)).split(".")[0], self.normal),
                    Paragraph(format_currency(rate, cur), self.right),
                    Paragraph(format_currency(total, cur), self.right),
                ],
            ],
            [10 * mm, 58 * mm, 24 * mm, 22 * mm, 31 * mm, CONTENT_WIDTH - 145 * mm],
            header=True,
        )
        story += [items, Spacer(1, 8)]

        # ---------- Notes / totals ----------
        notes = self._box(
            [
                [Paragraph("<b>Notes</b>", self.normal)],
                [Paragraph(f"<b>Vehicle No :</b> {_text(request.vehicle_no)}", self.small)],
                [Paragraph(f"<b>Transporter Name :</b> {_text(request.transporter_name)}", self.small)],
                [Paragraph(
                    f"This vehicle is transporting {item_name} from Supplier: {supplier_name} "
                    f"to Buyer: {party_name}.",
                    self.small,
                )],
                [Paragraph(
                    f"In case of any accident, loss, or damage during transit, {party_name} shall be "
                    "treated as the insured person and will be entitled to receive all claim amounts "
                    "for the damaged goods.",
                    self.small,
                )],
            ],
            [HALF_WIDTH],
        )
        totals = self._box(
            [
                [Paragraph("Total", self.total)],
                [Paragraph(format_currency(total, cur), self.total)],
                [Paragraph("Insurance Amount (0.2%)", self.total)],
                [Paragraph(format_currency(premium_amount, cur), self.total)],
            ],
            [HALF_WIDTH],
        )
        story += [self._side_by_side(notes, totals), Spacer(1, 8)]

        # ---------- Weighment slip / terms ----------
        slip_rows: List[List[Any]] = [[Paragraph("<b>Weightment Slip</b>", self.normal)]]
        if image_path is not None:
            slip_rows.append([self._slip_image(image_path)])
        else:
            slip_rows += [[Spacer(1, 30 * mm)], [Paragraph(escape(layout.image_placeholder), self.center)]]
        slip = self._box(slip_rows, [HALF_WIDTH])

        term_rows: List[List[Any]] = [[Paragraph("<b>Insurance Terms and Conditions</b>", self.normal)]]
        for n, section in enumerate(self.config.terms, start=1):
            term_rows.append([Paragraph(f"{n}. {escape(section.title)}:", self.section)])
            term_rows += [[Paragraph(f"• {escape(item)}", self.small)] for item in section.items]
        n = len(self.config.terms) + 1
        term_rows += [
            [Paragraph(f"{n}. Dispute Resolution &amp; Communication:", self.section)],
            [Paragraph("All claims must be communicated via:", self.small)],
            [Paragraph(f"Email: {escape(branding.claim_email)}", self.small)],
            [Paragraph(f"Phone: {escape(branding.claim_phone)}", self.small)],
        ]
        terms = self._box(term_rows, [HALF_WIDTH])
        story.append(self._side_by_side(slip, terms))

        return story
