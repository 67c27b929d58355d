"""
Document renderers for the lab-record table of contents.

render_document() is the single entry point used by the API; it picks the
renderer for the requested format and turns unexpected renderer crashes into
RenderFailure.
"""
import logging
from typing import Dict, List, Optional

from labrecord.core.errors import RenderFailure
from labrecord.services.renderers.docx_renderer import DocxRenderer
from labrecord.services.renderers.layout import MEDIA_TYPES, build_filename
from labrecord.services.renderers.pdf_renderer import PdfRenderer

logger = logging.getLogger(__name__)

RENDERERS = {
    "docx": DocxRenderer,
    "pdf": PdfRenderer,
}


def render_document(
    fmt: str,
    course_title: str,
    student_name: str,
    register_number: str,
    experiments: List,
    logo_bytes: Optional[bytes] = None,
    qr_by_experiment_id: Optional[Dict[str, bytes]] = None,
) -> bytes:
    """
    Render the table of contents in the given format.

    Missing or unreadable logo/QR images leave blank space; they never fail the render.

    Args:
        fmt: "docx" or "pdf"
        course_title: Course title shown under the heading
        student_name: Student name for the signature block
        register_number: Register number for the signature block
        experiments: Experiment models in display order
        logo_bytes: College logo image, if available
        qr_by_experiment_id: QR code PNGs keyed by experiment id

    Returns:
        The document bytes

    Raises:
        ValueError: Unknown format
        RenderFailure: The renderer itself crashed
    """
    renderer_cls = RENDERERS.get(fmt)
    if renderer_cls is None:
        raise ValueError(f"Unsupported document format: {fmt}")

    try:
        return renderer_cls().render(
            course_title,
            student_name,
            register_number,
            experiments,
            logo_bytes=logo_bytes,
            qr_by_experiment_id=qr_by_experiment_id,
        )
    except Exception as e:
        logger.error(f"Failed to render {fmt} document: {e}", exc_info=True)
        raise RenderFailure(f"Failed to render {fmt} document") from e


__all__ = ["render_document", "build_filename", "MEDIA_TYPES", "RENDERERS"]
