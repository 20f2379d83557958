# ==============================================================================
# RECEIPT SERVICE - PDF receipts and invoices
# ==============================================================================
# Two documents are produced from a committed transaction:
#
#   receipt  one page drawn directly on a reportlab canvas
#            receipt-<customer>-<transaction id>.pdf
#   invoice  platypus table that paginates on its own; the table header is
#            repeated and the footer redrawn on every page
#            invoice-<transaction id>-<epoch millis>.pdf
#
# The logo is optional: if it cannot be read the failure is logged and the
# document is rendered without it. Rendering happens after the transaction
# is committed and never touches the store.
#
# Money is always shown with 2 decimals and thousands grouping. The base-14
# PDF fonts have no peso sign, so the ASCII marker is used unless a TTF font
# is configured.
# ==============================================================================

import io
import os
import time
from dataclasses import dataclass
from typing import Callable, List, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from werkzeug.utils import secure_filename

from clinic_pos import config
from clinic_pos.models.entities import Transaction
from clinic_pos.performance_logger import log_error, profile_function
from clinic_pos.services.local_time import now_local, to_local
from clinic_pos.services.pricing import format_money, format_percent

PAGE_WIDTH, PAGE_HEIGHT = A4
LOGO_WIDTH = 40 * mm
HEADER_BLUE = colors.Color(41 / 255, 128 / 255, 185 / 255)
TTF_FONT_NAME = 'ClinicSans'


@dataclass(frozen=True)
class RenderedDocument:
    """A rendered PDF ready to be downloaded or saved."""
    filename: str
    content: bytes
    page_count: int
    mimetype: str = 'application/pdf'


class ReceiptService:
    """
    Service rendering transactions to PDF.

    Responsibilities:
    - Receipt and invoice layouts
    - Deterministic file names
    - Saving a rendered document to disk
    """

    def __init__(
        self,
        logo_path: Optional[str] = None,
        font_path: Optional[str] = None,
        millis_clock: Callable[[], int] = None
    ):
        """
        Args:
            logo_path: Image drawn in the header (optional)
            font_path: TTF font with the peso sign (optional)
            millis_clock: Epoch milliseconds for invoice file names
        """
        self.logo_path = logo_path
        self.font_path = font_path
        self._millis_clock = millis_clock or (lambda: int(time.time() * 1000))

    # =========================================================================
    # ASSETS
    # =========================================================================

    def _load_logo(self) -> Optional[ImageReader]:
        """Reads the logo; any failure is logged and None returned."""
        if not self.logo_path:
            return None
        try:
            logo = ImageReader(self.logo_path)
            logo.getSize()
            return logo
        except Exception as e:
            log_error(f"Load receipt logo ({self.logo_path})", e)
            return None

    def _fonts(self):
        """
        Returns (regular font, bold font, currency marker).

        Uses the configured TTF font when it can be registered, otherwise
        Helvetica with the ASCII currency marker.
        """
        if self.font_path:
            try:
                if TTF_FONT_NAME not in pdfmetrics.getRegisteredFontNames():
                    pdfmetrics.registerFont(TTFont(TTF_FONT_NAME, self.font_path))
                return TTF_FONT_NAME, TTF_FONT_NAME, config.CURRENCY_SYMBOL
            except Exception as e:
                log_error(f"Register receipt font ({self.font_path})", e)
        return 'Helvetica', 'Helvetica-Bold', config.CURRENCY_ASCII_MARKER

    # =========================================================================
    # FILE NAMES
    # =========================================================================

    @staticmethod
    def receipt_filename(tx: Transaction) -> str:
        return secure_filename(f"receipt-{tx.customer_name or 'customer'}-{tx.id}.pdf")

    def invoice_filename(self, tx: Transaction) -> str:
        # the millisecond suffix avoids browser download-cache collisions
        return secure_filename(f"invoice-{tx.id}-{self._millis_clock()}.pdf")

    # =========================================================================
    # RECEIPT (canvas)
    # =========================================================================

    @profile_function(name="Render receipt")
    def render_receipt(self, tx: Transaction) -> RenderedDocument:
        """
        Renders the one-page official receipt.

        Layout (mm from the top of an A4 page): logo at 10, organisation name
        at 40, title at 47, rule at 54, then customer, itemised services,
        subtotal, discount (only when there is one), total, date and time,
        a closing rule and the thank-you footer.
        """
        regular, bold, marker = self._fonts()
        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=A4)
        pdf.setTitle(f"Receipt {tx.id}")
        pages = [1]

        def y_of(top_mm):
            return PAGE_HEIGHT - top_mm * mm

        logo = self._load_logo()
        if logo is not None:
            width, height = logo.getSize()
            logo_height = LOGO_WIDTH * height / width
            pdf.drawImage(logo, 85 * mm, y_of(10) - logo_height,
                          width=LOGO_WIDTH, height=logo_height)

        pdf.setFont(bold, 16)
        pdf.drawCentredString(PAGE_WIDTH / 2, y_of(40), config.ORGANIZATION_NAME)
        pdf.setFont(regular, 12)
        pdf.drawCentredString(PAGE_WIDTH / 2, y_of(47), 'Official Receipt')
        pdf.line(10 * mm, y_of(54), 200 * mm, y_of(54))

        pdf.setFont(regular, 10)
        pdf.drawString(10 * mm, y_of(62), f"Customer Name: {tx.customer_name or '—'}")
        pdf.drawString(10 * mm, y_of(69), 'Services:')

        top = 76
        for line in tx.services or []:
            wrapped = simpleSplit(line.label, regular, 10, 150 * mm)
            if top + 7 * len(wrapped) > 250:
                pdf.setFont(regular, 10)
                pdf.drawCentredString(PAGE_WIDTH / 2, y_of(287), config.RECEIPT_FOOTER)
                pdf.showPage()
                pages.append(pages[-1] + 1)
                pdf.setFont(regular, 10)
                top = 20
            pdf.drawRightString(200 * mm, y_of(top), format_money(line.price, marker))
            for text in wrapped:
                pdf.drawString(14 * mm, y_of(top), text)
                top += 7
        if not tx.services:
            pdf.drawString(14 * mm, y_of(top), '—')
            top += 7

        top += 3
        summary = [('Subtotal', format_money(tx.subtotal, marker))]
        if tx.discount_percent > 0:
            summary.append((f"Discount ({format_percent(tx.discount_percent)}%)",
                            '-' + format_money(tx.discount_amount, marker)))
        summary.append(('Total Price', format_money(tx.total, marker)))
        for label, amount in summary:
            pdf.setFont(bold if label == 'Total Price' else regular, 10)
            pdf.drawString(10 * mm, y_of(top), f"{label}:")
            pdf.drawRightString(200 * mm, y_of(top), amount)
            top += 7

        finished = to_local(tx.finished_at) or now_local()
        pdf.setFont(regular, 10)
        pdf.drawString(10 * mm, y_of(top + 1), f"Date: {finished.strftime('%m/%d/%Y')}")
        pdf.drawString(10 * mm, y_of(top + 8), f"Time: {finished.strftime('%I:%M %p')}")

        pdf.line(10 * mm, y_of(top + 15), 200 * mm, y_of(top + 15))
        pdf.drawCentredString(PAGE_WIDTH / 2, y_of(top + 23), config.RECEIPT_FOOTER)

        pdf.showPage()
        pdf.save()

        return RenderedDocument(
            filename=self.receipt_filename(tx),
            content=buffer.getvalue(),
            page_count=pages[-1],
        )

    # =========================================================================
    # INVOICE (platypus)
    # =========================================================================

    def _invoice_rows(self, tx: Transaction, marker: str, cell_style) -> List[list]:
        rows = [['Service', 'Price']]
        for line in tx.services or []:
            rows.append([Paragraph(escape(line.label), cell_style), format_money(line.price, marker)])

        rows.append(['SUBTOTAL', format_money(tx.subtotal, marker)])
        if tx.discount_percent > 0:
            rows.append([f"DISCOUNT ({format_percent(tx.discount_percent)}%)",
                         '-' + format_money(tx.discount_amount, marker)])
        rows.append(['TOTAL', format_money(tx.total, marker)])
        return rows

    @profile_function(name="Render invoice")
    def render_invoice(self, tx: Transaction) -> RenderedDocument:
        """
        Renders the itemised invoice.

        The item table splits across pages when it does not fit; its header
        row is repeated and the two footer lines are drawn on every page.
        """
        regular, bold, marker = self._fonts()
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=20 * mm,
            rightMargin=20 * mm,
            topMargin=10 * mm,
            bottomMargin=30 * mm,
            title=f"Invoice {tx.id}",
        )

        styles = getSampleStyleSheet()
        centered = ParagraphStyle('Centered', parent=styles['Normal'], fontName=regular,
                                  fontSize=12, leading=15, alignment=TA_CENTER)
        org_style = ParagraphStyle('Organization', parent=centered, fontName=bold,
                                   fontSize=22, leading=26)
        title_style = ParagraphStyle('InvoiceTitle', parent=centered, fontName=bold,
                                     fontSize=18, leading=22)
        detail_style = ParagraphStyle('Detail', parent=styles['Normal'], fontName=regular,
                                      fontSize=10, leading=13)
        cell_style = ParagraphStyle('Cell', parent=detail_style)

        elements = []
        logo = self._load_logo()
        if logo is not None:
            width, height = logo.getSize()
            elements.append(Image(self.logo_path, width=LOGO_WIDTH, height=LOGO_WIDTH * height / width))
            elements.append(Spacer(1, 4 * mm))

        elements.append(Paragraph(escape(config.ORGANIZATION_SHORT_NAME), org_style))
        for text in config.ORGANIZATION_ADDRESS_LINES + (config.ORGANIZATION_CONTACT,):
            elements.append(Paragraph(escape(text), centered))
        elements.append(Spacer(1, 8 * mm))
        elements.append(Paragraph('INVOICE', title_style))
        elements.append(Spacer(1, 6 * mm))

        finished = to_local(tx.finished_at) or now_local()
        elements.append(Paragraph(f"Receipt #: {escape(tx.id)}", detail_style))
        elements.append(Paragraph(f"Date: {finished.strftime('%B %d, %Y, %I:%M %p')}", detail_style))
        elements.append(Paragraph(f"Customer: {escape(tx.customer_name)}", detail_style))
        elements.append(Spacer(1, 6 * mm))

        rows = self._invoice_rows(tx, marker, cell_style)
        summary_start = 1 + len(tx.services or [])
        table = Table(rows, colWidths=[125 * mm, 45 * mm], repeatRows=1)
        table.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (-1, -1), regular),
            ('FONTSIZE', (0, 0), (-1, -1), 10),
            ('BACKGROUND', (0, 0), (-1, 0), HEADER_BLUE),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('FONTNAME', (0, 0), (-1, 0), bold),
            ('ALIGN', (0, 0), (-1, 0), 'CENTER'),
            ('ALIGN', (1, 1), (1, -1), 'RIGHT'),
            ('FONTNAME', (0, summary_start), (-1, -1), bold),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('GRID', (0, 0), (-1, -1), 0.25, colors.black),
            ('TOPPADDING', (0, 0), (-1, -1), 3 * mm / 2),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 3 * mm / 2),
        ]))
        elements.append(table)

        pages = []

        def draw_footer(pdf, document):
            pages.append(document.page)
            pdf.saveState()
            pdf.setFont(regular, 10)
            pdf.setFillGray(0.4)
            first, second = config.INVOICE_FOOTER_LINES
            pdf.drawCentredString(PAGE_WIDTH / 2, 20 * mm, first)
            pdf.drawCentredString(PAGE_WIDTH / 2, 15 * mm, second)
            pdf.restoreState()

        doc.build(elements, onFirstPage=draw_footer, onLaterPages=draw_footer)

        return RenderedDocument(
            filename=self.invoice_filename(tx),
            content=buffer.getvalue(),
            page_count=len(pages),
        )

    # =========================================================================
    # SAVE
    # =========================================================================

    @staticmethod
    def save(document: RenderedDocument, directory: str) -> str:
        """
        Writes a rendered document into a directory.

        Returns:
            Absolute path of the written file
        """
        os.makedirs(directory, exist_ok=True)
        path = os.path.abspath(os.path.join(directory, document.filename))
        with open(path, 'wb') as f:
            f.write(document.content)
        return path
