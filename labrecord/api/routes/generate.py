"""
Document generation endpoints.

Stateless: render the posted form into DOCX or PDF. When the caller is signed
in, the download is also recorded in their history after the response has
been sent; that save is best effort and never affects the download.
"""
import asyncio
import logging
from typing import Callable, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Response, status
from fastapi.concurrency import run_in_threadpool

from labrecord.core.auth_dependency import get_optional_user
from labrecord.core.errors import RenderFailure
from labrecord.db.session import get_session_factory
from labrecord.schemas.record import FormState, RenderRequest
from labrecord.services import asset_fetcher
from labrecord.services.record_store import upsert_record
from labrecord.services.renderers import MEDIA_TYPES, build_filename, render_document

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Generate"])


def save_download_history(session_factory: Callable, user_id: str, state: FormState) -> None:
    """Record a download in the user's history; failures are only logged."""
    db = session_factory()
    try:
        record_id = upsert_record(
            db,
            user_id,
            state.course_title,
            state.student_name,
            state.register_number,
            state.experiments,
            is_download=True,
        )
        logger.info(f"Download recorded: record_id={record_id}, user_id={user_id}")
    except Exception as e:
        logger.warning(f"Failed to record download in history: user_id={user_id}, error={e}")
    finally:
        db.close()


async def _generate(
    fmt: str,
    payload: RenderRequest,
    background_tasks: BackgroundTasks,
    user_id: Optional[str],
    session_factory: Callable,
) -> Response:
    logo_bytes, qr_codes = await asyncio.gather(
        asset_fetcher.fetch_logo(),
        asset_fetcher.fetch_qr_codes(payload.experiments),
    )

    try:
        content = await run_in_threadpool(
            render_document,
            fmt,
            payload.course_title,
            payload.student_name,
            payload.register_number,
            payload.experiments,
            logo_bytes=logo_bytes,
            qr_by_experiment_id=qr_codes,
        )
    except RenderFailure:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate document"
        )

    logger.info(
        f"Document generated: format={fmt}, experiments={len(payload.experiments)}, "
        f"logo={'yes' if logo_bytes else 'no'}, qr_codes={len(qr_codes)}"
    )

    if user_id and payload.save_history and payload.course_title:
        state = FormState.model_validate(payload.model_dump(exclude={"save_history"}))
        background_tasks.add_task(save_download_history, session_factory, user_id, state)

    filename = build_filename(payload.course_title, fmt)
    return Response(
        content=content,
        media_type=MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/generate-docx", status_code=status.HTTP_200_OK)
async def generate_docx(
    payload: RenderRequest,
    background_tasks: BackgroundTasks,
    user_id: Optional[str] = Depends(get_optional_user),
    session_factory: Callable = Depends(get_session_factory),
):
    """Render the table of contents as a Word document."""
    return await _generate("docx", payload, background_tasks, user_id, session_factory)


@router.post("/generate-pdf", status_code=status.HTTP_200_OK)
async def generate_pdf(
    payload: RenderRequest,
    background_tasks: BackgroundTasks,
    user_id: Optional[str] = Depends(get_optional_user),
    session_factory: Callable = Depends(get_session_factory),
):
    """Render the table of contents as a PDF."""
    return await _generate("pdf", payload, background_tasks, user_id, session_factory)
