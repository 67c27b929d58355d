"""
Debounced auto-save for the generator form.

Every edit calls AutoSaver.schedule(state); the save runs once the form has
been quiet for the debounce window, with the latest state only. Routine
failures are logged and swallowed so editing is never interrupted; a
PermissionDenied is the one failure reported back to the caller.
"""
import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from labrecord.core import config
from labrecord.core.errors import PermissionDenied
from labrecord.schemas.record import FormState
from labrecord.services.record_store import upsert_record

logger = logging.getLogger(__name__)


def record_saver(session_factory: Callable, user_id: str) -> Callable[[FormState], int]:
    """Save callable that upserts a form state for user_id using a fresh session."""
    def save(state: FormState) -> int:
        db = session_factory()
        try:
            return upsert_record(
                db,
                user_id,
                state.course_title,
                state.student_name,
                state.register_number,
                state.experiments,
                is_download=False,
            )
        finally:
            db.close()

    return save


class AutoSaver:
    """Coalesces rapid form edits into at most one save per quiet period."""

    def __init__(
        self,
        save: Callable[[FormState], Any],
        debounce_seconds: Optional[float] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self._save = save
        self.debounce_seconds = (
            config.AUTOSAVE_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        )
        self.on_error = on_error
        self._pending: Optional[FormState] = None
        self._task: Optional[asyncio.Task] = None
        self._saving_task: Optional[asyncio.Task] = None
        self.last_error: Optional[Exception] = None
        self.last_saved_id: Any = None
        self.save_count = 0

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def schedule(self, state: FormState) -> None:
        """Queue state for saving, restarting the quiet-period timer. Must be called inside a running loop."""
        self._pending = state.model_copy(deep=True)
        self._cancel_timer()
        self._task = asyncio.get_running_loop().create_task(self._save_after_quiet_period())

    async def _save_after_quiet_period(self):
        await asyncio.sleep(self.debounce_seconds)
        self._saving_task = asyncio.current_task()
        try:
            await self._save_pending()
        finally:
            if self._saving_task is asyncio.current_task():
                self._saving_task = None

    def _cancel_timer(self):
        # Only a timer still in its quiet period is cancelled; a save already under way finishes
        task = self._task
        if task is None or task.done() or task is self._saving_task or task is asyncio.current_task():
            return
        task.cancel()

    async def flush(self) -> Any:
        """Save the pending state right away (manual save); returns the record id or None."""
        self._cancel_timer()
        return await self._save_pending()

    async def wait(self) -> None:
        """Wait for the currently scheduled save, if any, to finish."""
        if self._task is not None and not self._task.done():
            await self._task

    async def _save_pending(self) -> Any:
        state, self._pending = self._pending, None
        if state is None:
            return None
        if not state.course_title:
            logger.debug("Auto-save skipped: course title is empty")
            return None

        try:
            record_id = await asyncio.to_thread(self._save, state)
            # Async callables hand back an awaitable to run on the loop
            if inspect.isawaitable(record_id):
                record_id = await record_id
        except PermissionDenied as e:
            self.last_error = e
            logger.warning(f"Auto-save denied: {e}")
            if self.on_error is not None:
                self.on_error(e)
            return None
        except Exception as e:
            # Transient and index-related faults are not shown to the user
            logger.info(f"Auto-save failed, will retry on next edit: {e}")
            return None

        self.last_error = None
        self.last_saved_id = record_id
        self.save_count += 1
        logger.debug(f"Auto-saved record: record_id={record_id}")
        return record_id
