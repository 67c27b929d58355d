"""
PDF rendering of the lab-record table of contents (reportlab).

Layout is fixed and measured in millimetres from the top-left corner of an
A4 page; _y() flips that into reportlab's bottom-left coordinates.
"""
import logging
from io import BytesIO
from typing import Dict, List, Optional

from reportlab.lib.colors import black, blue, white
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

from labrecord.services.renderers.layout import (
    BODY_FONT_SIZE,
    DECLARATION_TEXT,
    HEADER_FONT_SIZE,
    TABLE_HEADERS,
    TITLE_FONT_SIZE,
    TITLE_TEXT,
    format_experiment_date,
)

logger = logging.getLogger(__name__)


class PdfRenderer:
    """Draws the table-of-contents page(s) directly on a reportlab canvas."""

    HEADING_FONT = "Helvetica"
    BODY_FONT = "Times-Roman"

    PAGE_WIDTH_MM = A4[0] / mm
    PAGE_HEIGHT_MM = A4[1] / mm
    BOTTOM_MARGIN_MM = 15
    TOP_MARGIN_MM = 15

    LOGO_WIDTH_MM = 100
    LOGO_HEIGHT_MM = 25
    LOGO_TOP_MM = 10
    TITLE_Y_MM = 45
    COURSE_Y_MM = 55
    TABLE_TOP_MM = 75

    ROW_HEIGHT_MM = 25
    COLUMN_WIDTHS_MM = [20, 25, 80, 25, 20, 25]
    TEXT_LINE_MM = 4.5
    QR_SIZE_MM = 15

    HEADER_LINE_WIDTH = 0.8
    BODY_LINE_WIDTH = 0.5

    def render(
        self,
        course_title: str,
        student_name: str,
        register_number: str,
        experiments: List,
        logo_bytes: Optional[bytes] = None,
        qr_by_experiment_id: Optional[Dict[str, bytes]] = None,
    ) -> bytes:
        buffer = BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=A4)
        pdf.setTitle(f"{course_title} - {TITLE_TEXT}")
        pdf.setAuthor("Lab Record Generator")
        pdf.setSubject(f"Lab Record for {student_name} ({register_number})")

        if logo_bytes:
            self._draw_logo(pdf, logo_bytes)

        pdf.setFont(self.HEADING_FONT, TITLE_FONT_SIZE)
        center_x = self.PAGE_WIDTH_MM / 2 * mm
        pdf.drawCentredString(center_x, self._y(self.TITLE_Y_MM), TITLE_TEXT)
        pdf.drawCentredString(center_x, self._y(self.COURSE_Y_MM), course_title)

        table_bottom = self._draw_table(pdf, experiments, qr_by_experiment_id or {})
        self._draw_footer(pdf, table_bottom + 20, student_name, register_number)

        pdf.showPage()
        pdf.save()
        return buffer.getvalue()

    def _y(self, top_mm: float) -> float:
        return (self.PAGE_HEIGHT_MM - top_mm) * mm

    @property
    def _start_x(self) -> float:
        return (self.PAGE_WIDTH_MM - sum(self.COLUMN_WIDTHS_MM)) / 2

    def _draw_logo(self, pdf, logo_bytes: bytes):
        x = (self.PAGE_WIDTH_MM - self.LOGO_WIDTH_MM) / 2
        try:
            pdf.drawImage(
                ImageReader(BytesIO(logo_bytes)),
                x * mm,
                self._y(self.LOGO_TOP_MM + self.LOGO_HEIGHT_MM),
                width=self.LOGO_WIDTH_MM * mm,
                height=self.LOGO_HEIGHT_MM * mm,
            )
        except Exception as e:
            logger.warning(f"[PdfRenderer] Could not load logo, continuing without it: {e}")

    def _draw_row_frame(self, pdf, row_top: float, line_width: float):
        table_width = sum(self.COLUMN_WIDTHS_MM)
        pdf.setStrokeColor(black)
        pdf.setFillColor(white)
        pdf.setLineWidth(line_width)
        pdf.rect(
            self._start_x * mm,
            self._y(row_top + self.ROW_HEIGHT_MM),
            table_width * mm,
            self.ROW_HEIGHT_MM * mm,
            stroke=1,
            fill=1,
        )
        x = self._start_x
        for width in self.COLUMN_WIDTHS_MM[:-1]:
            x += width
            pdf.line(x * mm, self._y(row_top), x * mm, self._y(row_top + self.ROW_HEIGHT_MM))
        pdf.setFillColor(black)

    def _draw_header_row(self, pdf, row_top: float):
        self._draw_row_frame(pdf, row_top, self.HEADER_LINE_WIDTH)
        pdf.setFont(self.HEADING_FONT, HEADER_FONT_SIZE)
        x = self._start_x
        for header, width in zip(TABLE_HEADERS, self.COLUMN_WIDTHS_MM):
            pdf.drawCentredString((x + width / 2) * mm, self._y(row_top + 15), header)
            x += width

    def _draw_table(self, pdf, experiments: List, qr_by_experiment_id: Dict[str, bytes]) -> float:
        """Draw header and rows, starting new pages as needed. Returns the bottom of the last row in mm."""
        row_top = self.TABLE_TOP_MM
        self._draw_header_row(pdf, row_top)
        row_top += self.ROW_HEIGHT_MM

        for index, experiment in enumerate(experiments):
            if row_top + self.ROW_HEIGHT_MM > self.PAGE_HEIGHT_MM - self.BOTTOM_MARGIN_MM:
                pdf.showPage()
                row_top = self.TOP_MARGIN_MM
                self._draw_header_row(pdf, row_top)
                row_top += self.ROW_HEIGHT_MM
            self._draw_experiment_row(pdf, row_top, index, experiment, qr_by_experiment_id.get(experiment.id))
            row_top += self.ROW_HEIGHT_MM

        return row_top

    def _draw_experiment_row(self, pdf, row_top: float, index: int, experiment, qr_bytes: Optional[bytes]):
        self._draw_row_frame(pdf, row_top, self.BODY_LINE_WIDTH)
        widths = self.COLUMN_WIDTHS_MM
        text_y = self._y(row_top + 12)
        pdf.setFont(self.BODY_FONT, BODY_FONT_SIZE)

        x = self._start_x
        pdf.drawCentredString((x + widths[0] / 2) * mm, text_y, str(index + 1))
        x += widths[0]

        pdf.drawCentredString((x + widths[1] / 2) * mm, text_y, format_experiment_date(experiment.date))
        x += widths[1]

        self._draw_title_cell(pdf, x, row_top, experiment)
        x += widths[2]

        if qr_bytes:
            try:
                pdf.drawImage(
                    ImageReader(BytesIO(qr_bytes)),
                    (x + 5) * mm,
                    self._y(row_top + 2 + self.QR_SIZE_MM),
                    width=self.QR_SIZE_MM * mm,
                    height=self.QR_SIZE_MM * mm,
                )
            except Exception as e:
                logger.warning(f"[PdfRenderer] Could not add QR code for experiment {index + 1}: {e}")
        # Marks and Signature stay empty

    def _draw_title_cell(self, pdf, x: float, row_top: float, experiment):
        text_width = (self.COLUMN_WIDTHS_MM[2] - 4) * mm
        title_lines = simpleSplit(experiment.title or "", self.BODY_FONT, BODY_FONT_SIZE, text_width)
        link_lines = simpleSplit(experiment.github_link or "", self.BODY_FONT, BODY_FONT_SIZE, text_width)
        max_lines = int((self.ROW_HEIGHT_MM - 6) // self.TEXT_LINE_MM)

        line_top = row_top + 6
        lines = [(line, black) for line in title_lines] + [(line, blue) for line in link_lines]
        for line, color in lines[:max_lines]:
            pdf.setFillColor(color)
            pdf.drawString((x + 2) * mm, self._y(line_top), line)
            line_top += self.TEXT_LINE_MM
        pdf.setFillColor(black)

    def _draw_footer(self, pdf, top_mm: float, student_name: str, register_number: str):
        # Declaration plus two signature lines need about 40mm
        if top_mm + 40 > self.PAGE_HEIGHT_MM - self.BOTTOM_MARGIN_MM:
            pdf.showPage()
            top_mm = self.TOP_MARGIN_MM + 10

        pdf.setFillColor(black)
        pdf.setFont(self.BODY_FONT, BODY_FONT_SIZE)
        pdf.drawCentredString(self.PAGE_WIDTH_MM / 2 * mm, self._y(top_mm), DECLARATION_TEXT)

        details_top = top_mm + 20
        right_x = self.PAGE_WIDTH_MM / 2 + 10
        pdf.drawString(20 * mm, self._y(details_top), f"Name: {student_name}")
        pdf.drawString(20 * mm, self._y(details_top + 10), "Date:")
        pdf.drawString(right_x * mm, self._y(details_top), f"Register Number: {register_number}")
        pdf.drawString(right_x * mm, self._y(details_top + 10), "Learner Signature:")
