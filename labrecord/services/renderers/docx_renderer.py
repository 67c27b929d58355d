"""
DOCX rendering of the lab-record table of contents (python-docx).
"""
import logging
from io import BytesIO
from typing import Dict, List, Optional

from docx import Document
from docx.enum.table import WD_ALIGN_VERTICAL, WD_ROW_HEIGHT_RULE, WD_TABLE_ALIGNMENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Inches, Pt, RGBColor

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


class DocxRenderer:
    """Builds the table-of-contents document with a fixed Word layout."""

    HEADING_FONT = "Arial"
    BODY_FONT = "Times New Roman"
    LINK_COLOR = RGBColor(0, 0, 255)

    PAGE_MARGIN = Inches(0.5)
    CONTENT_WIDTH = Inches(7.5)  # Letter width minus margins
    COLUMN_PERCENTS = [10, 15, 40, 15, 10, 10]

    LOGO_WIDTH = Inches(5.2)
    LOGO_HEIGHT = Inches(1.3)
    QR_SIZE = Inches(0.83)

    HEADER_ROW_HEIGHT = Pt(30)
    BODY_ROW_HEIGHT = Pt(60)
    OUTER_BORDER_SIZE = 8  # eighths of a point
    INNER_BORDER_SIZE = 6
    _TBL_PR_AFTER_BORDERS = (qn("w:shd"), qn("w:tblLayout"), qn("w:tblCellMar"), qn("w:tblLook"))

    def render(
        self,
        course_title: str,
        student_name: str,
        register_number: str,
        experiments: List,
        logo_bytes: Optional[bytes] = None,
        qr_by_experiment_id: Optional[Dict[str, bytes]] = None,
    ) -> bytes:
        document = Document()
        self._setup_document(document, course_title, student_name, register_number)

        if logo_bytes:
            self._add_logo(document, logo_bytes)

        self._add_heading(document, TITLE_TEXT, space_after=Pt(10))
        self._add_heading(document, course_title, space_after=Pt(20))
        self._add_experiments_table(document, experiments, qr_by_experiment_id or {})

        p = document.add_paragraph()
        p.alignment = WD_ALIGN_PARAGRAPH.CENTER
        p.paragraph_format.space_before = Pt(30)
        p.paragraph_format.space_after = Pt(20)
        self._style_run(p.add_run(DECLARATION_TEXT), self.BODY_FONT, BODY_FONT_SIZE)

        self._add_signature_block(document, student_name, register_number)

        buffer = BytesIO()
        document.save(buffer)
        return buffer.getvalue()

    def _setup_document(self, document, course_title: str, student_name: str, register_number: str):
        core_props = document.core_properties
        core_props.title = f"{course_title} - {TITLE_TEXT}"
        core_props.author = "Lab Record Generator"
        core_props.subject = f"Lab Record for {student_name} ({register_number})"

        section = document.sections[0]
        section.top_margin = self.PAGE_MARGIN
        section.bottom_margin = self.PAGE_MARGIN
        section.left_margin = self.PAGE_MARGIN
        section.right_margin = self.PAGE_MARGIN

    def _style_run(self, run, font_name: str, size: int, color: Optional[RGBColor] = None):
        run.font.name = font_name
        run.font.size = Pt(size)
        run.font.bold = False
        # East Asian font slot, otherwise Word falls back to the theme font
        run._element.rPr.rFonts.set(qn('w:eastAsia'), font_name)
        if color is not None:
            run.font.color.rgb = color

    def _add_logo(self, document, logo_bytes: bytes):
        p = document.add_paragraph()
        p.alignment = WD_ALIGN_PARAGRAPH.CENTER
        p.paragraph_format.space_after = Pt(15)
        try:
            p.add_run().add_picture(BytesIO(logo_bytes), width=self.LOGO_WIDTH, height=self.LOGO_HEIGHT)
        except Exception as e:
            logger.warning(f"[DocxRenderer] Could not embed logo, leaving it blank: {e}")

    def _add_heading(self, document, text: str, space_after):
        p = document.add_paragraph()
        p.alignment = WD_ALIGN_PARAGRAPH.CENTER
        p.paragraph_format.space_after = space_after
        self._style_run(p.add_run(text), self.HEADING_FONT, TITLE_FONT_SIZE)

    def _set_table_borders(self, table):
        """Single black borders: heavier outline, lighter inner grid."""
        tbl_pr = table._tbl.tblPr
        borders = OxmlElement('w:tblBorders')
        for edge in ('top', 'left', 'bottom', 'right', 'insideH', 'insideV'):
            element = OxmlElement(f'w:{edge}')
            size = self.INNER_BORDER_SIZE if edge.startswith('inside') else self.OUTER_BORDER_SIZE
            element.set(qn('w:val'), 'single')
            element.set(qn('w:sz'), str(size))
            element.set(qn('w:space'), '0')
            element.set(qn('w:color'), '000000')
            borders.append(element)
        # tblBorders must precede these in tblPr
        successor = next(
            (child for child in tbl_pr if child.tag in self._TBL_PR_AFTER_BORDERS), None
        )
        if successor is not None:
            successor.addprevious(borders)
        else:
            tbl_pr.append(borders)

    def _mark_header_row(self, row):
        tr_pr = row._tr.get_or_add_trPr()
        header = OxmlElement('w:tblHeader')
        header.set(qn('w:val'), 'true')
        tr_pr.append(header)

    def _set_row_height(self, row, height):
        row.height = height
        row.height_rule = WD_ROW_HEIGHT_RULE.AT_LEAST

    def _write_cell(self, cell, text: str, font_name: str, size: int, width,
                    alignment=WD_ALIGN_PARAGRAPH.CENTER):
        cell.width = width
        cell.vertical_alignment = WD_ALIGN_VERTICAL.CENTER
        p = cell.paragraphs[0]
        p.alignment = alignment
        self._style_run(p.add_run(text), font_name, size)

    def _add_experiments_table(self, document, experiments: List, qr_by_experiment_id: Dict[str, bytes]):
        widths = [int(self.CONTENT_WIDTH * pct / 100) for pct in self.COLUMN_PERCENTS]

        table = document.add_table(rows=1, cols=len(TABLE_HEADERS))
        table.alignment = WD_TABLE_ALIGNMENT.CENTER
        table.autofit = False
        self._set_table_borders(table)

        header_row = table.rows[0]
        self._mark_header_row(header_row)
        self._set_row_height(header_row, self.HEADER_ROW_HEIGHT)
        for cell, header, width in zip(header_row.cells, TABLE_HEADERS, widths):
            self._write_cell(cell, header, self.HEADING_FONT, HEADER_FONT_SIZE, width)

        for index, experiment in enumerate(experiments):
            row = table.add_row()
            self._set_row_height(row, self.BODY_ROW_HEIGHT)
            cells = row.cells

            self._write_cell(cells[0], str(index + 1), self.BODY_FONT, BODY_FONT_SIZE, widths[0])
            self._write_cell(cells[1], format_experiment_date(experiment.date), self.BODY_FONT,
                             BODY_FONT_SIZE, widths[1])
            self._write_title_cell(cells[2], experiment, widths[2])
            self._write_qr_cell(cells[3], qr_by_experiment_id.get(experiment.id), widths[3])
            for column in (4, 5):
                self._write_cell(cells[column], "", self.BODY_FONT, BODY_FONT_SIZE, widths[column])

    def _write_title_cell(self, cell, experiment, width):
        self._write_cell(cell, experiment.title, self.BODY_FONT, BODY_FONT_SIZE, width,
                         alignment=WD_ALIGN_PARAGRAPH.LEFT)
        cell.paragraphs[0].paragraph_format.space_after = Pt(5)
        link = cell.add_paragraph()
        link.alignment = WD_ALIGN_PARAGRAPH.LEFT
        self._style_run(link.add_run(experiment.github_link), self.BODY_FONT, BODY_FONT_SIZE,
                        color=self.LINK_COLOR)

    def _write_qr_cell(self, cell, qr_bytes: Optional[bytes], width):
        self._write_cell(cell, "", self.BODY_FONT, BODY_FONT_SIZE, width)
        if not qr_bytes:
            return
        try:
            cell.paragraphs[0].add_run().add_picture(BytesIO(qr_bytes), width=self.QR_SIZE, height=self.QR_SIZE)
        except Exception as e:
            logger.warning(f"[DocxRenderer] Could not embed QR code, leaving it blank: {e}")

    def _add_signature_block(self, document, student_name: str, register_number: str):
        # Default table style has no borders
        table = document.add_table(rows=1, cols=2)
        table.autofit = False
        half = int(self.CONTENT_WIDTH / 2)
        left, right = table.rows[0].cells
        left.width = half
        right.width = half

        self._write_label(left.paragraphs[0], "Name: ", student_name)
        self._write_label(left.add_paragraph(), "Date: ", "")
        self._write_label(right.paragraphs[0], "Register Number: ", register_number)
        self._write_label(right.add_paragraph(), "Learner Signature: ", "")

    def _write_label(self, paragraph, label: str, value: str):
        paragraph.paragraph_format.space_after = Pt(10)
        self._style_run(paragraph.add_run(label), self.BODY_FONT, BODY_FONT_SIZE)
        if value:
            self._style_run(paragraph.add_run(value), self.BODY_FONT, BODY_FONT_SIZE)
