"""
Presentation constants shared by the DOCX and PDF renderers.
"""
import re
from datetime import date

TITLE_TEXT = "Table of Contents"
DECLARATION_TEXT = "I confirm that the experiments and GitHub links provided are entirely my own work."

TABLE_HEADERS = ["Exp No", "Date", "Experiment Title", "QR Code", "Marks", "Signature"]
TITLE_COLUMN = 2
QR_COLUMN = 3

TITLE_FONT_SIZE = 17
HEADER_FONT_SIZE = 14
BODY_FONT_SIZE = 12

FILENAME_SUFFIX = "_Lab_Record"

MEDIA_TYPES = {
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "pdf": "application/pdf",
}


def format_experiment_date(value) -> str:
    """Show ISO dates as M/D/YYYY; anything else is printed as entered."""
    if not value:
        return ""
    try:
        parsed = date.fromisoformat(str(value)[:10])
    except ValueError:
        return str(value)
    return f"{parsed.month}/{parsed.day}/{parsed.year}"


def build_filename(course_title: str, extension: str) -> str:
    """Attachment filename: non-alphanumerics replaced with "_", then the fixed suffix."""
    safe_title = re.sub(r"[^a-zA-Z0-9]", "_", course_title or "")
    return f"{safe_title}{FILENAME_SUFFIX}.{extension}"
