import asyncio
import enum
from collections.abc import Awaitable, Callable


class AutosaveStatus(str, enum.Enum):
    IDLE = "idle"
    PENDING = "pending"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


class DebouncedTask:
    """
    Runs ``callback`` once edits have been quiet for ``delay`` seconds.

    ``schedule`` cancels a task that is still sleeping and starts a new one,
    so the last edit wins. A task that has already started its callback is
    left to finish; the next schedule simply queues another run after it.
    """

    def __init__(self, callback: Callable[[], Awaitable[None]], delay: float):
        self._callback = callback
        self.delay = delay
        self._task: asyncio.Task | None = None
        self._firing_task: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        """True while a scheduled run is still sleeping."""
        return (
            self._task is not None
            and not self._task.done()
            and self._task is not self._firing_task
        )

    @property
    def running(self) -> bool:
        return self._firing_task is not None

    def schedule(self) -> None:
        self.cancel()
        self._task = asyncio.create_task(self._run_after_delay())

    def cancel(self) -> bool:
        """Cancel a sleeping task. Returns True if one was cancelled."""
        if self.pending:
            self._task.cancel()
            self._task = None
            return True
        return False

    async def flush(self) -> None:
        """Wait for the scheduled or running callback, if any."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def _run_after_delay(self) -> None:
        await asyncio.sleep(self.delay)
        self._firing_task = asyncio.current_task()
        try:
            await self._callback()
        finally:
            if self._firing_task is asyncio.current_task():
                self._firing_task = None
