"""Concurrency-limited dispatch across every tracked file."""

import asyncio
from typing import TYPE_CHECKING, Optional

from common.logging_config import get_logger
from common.types import ChunkStatus, PreprocessState
from uploader.chunk import Chunk
from uploader.events import EventName

if TYPE_CHECKING:
    from uploader.upload_file import UploadFile
    from uploader.uploader import Uploader

logger = get_logger(__name__)


class Scheduler:
    """
    Decides which chunk goes out next, keeping at most `simultaneous_uploads` busy.

    Every entry point runs synchronously on the event loop. A chunk leaves
    PENDING inside `Chunk.send()` before any transport call is awaited, so two
    `advance()` calls can never claim the same chunk.
    """

    def __init__(self, uploader: "Uploader"):
        self._uploader = uploader
        self.running = False
        self._complete_fired = False
        self._scheduled_advances = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def limit(self) -> int:
        return self._uploader.options.simultaneous_uploads

    def active_count(self) -> int:
        """Number of occupied slots: busy chunks plus files running their pre-upload hook."""
        count = 0
        for upload_file in self._uploader.queue:
            if upload_file.preprocess_state == PreprocessState.RUNNING:
                count += 1
            count += sum(1 for chunk in upload_file.chunks if chunk.is_busy)
        return count

    def advance(self) -> bool:
        """
        Advance one slot.

        Tries, in order: the first/last chunk of any file (when boundary
        priority is on), the next pending chunk in admission order, the
        one-time completion notification, and finally a sweep for stranded
        chunks.

        Returns:
            True if a chunk was dispatched or a file's pre-upload hook is occupying the slot
        """
        try:
            if not self.running:
                return False
            if self.active_count() >= self.limit:
                return False

            if self._uploader.options.prioritize_first_and_last_chunk and self._dispatch_boundary_chunk():
                return True
            if self._dispatch_in_order():
                return True

            files = self._uploader.queue.files
            if not files:
                return False

            if all(upload_file.is_complete() for upload_file in files):
                if not self._complete_fired:
                    self._complete_fired = True
                    logger.info(f"All uploads complete [files={len(files)}]")
                    self._uploader.events.fire(EventName.COMPLETE)
                return False

            return self._recover_stranded_chunk()
        finally:
            self._update_idle()

    def fill_slots(self) -> int:
        """
        Call advance() until it dispatches nothing or every slot is taken.

        Returns:
            Number of successful advances
        """
        dispatched = 0
        for _ in range(self.limit):
            if not self.advance():
                break
            dispatched += 1
        return dispatched

    def start(self) -> None:
        """Begin (or restart) uploading and fill every free slot."""
        self.running = True
        self._complete_fired = False
        logger.info(f"Upload started [files={len(self._uploader.queue)} slots={self.limit}]")
        self._uploader.events.fire(EventName.UPLOAD_START)
        self.fill_slots()

    def stop(self) -> None:
        """Stop dispatching. In-flight chunks are left to the caller to abort."""
        self.running = False
        self._update_idle()

    def wake(self) -> None:
        """Re-examine the queue after a pause, resume or cancel."""
        if self.running:
            self.fill_slots()
        else:
            self._update_idle()

    def advance_soon(self) -> None:
        """Schedule one advance() on the next loop iteration."""
        self._scheduled_advances += 1
        self._idle.clear()
        asyncio.get_running_loop().call_soon(self._run_scheduled_advance)

    async def wait_idle(self) -> None:
        """Wait until nothing is in flight and no advance is pending."""
        while True:
            # Let callbacks queued by call_soon (chunking complete, advance_soon) run first.
            await asyncio.sleep(0)
            self._update_idle()
            if self._idle.is_set():
                return
            await self._idle.wait()

    def _run_scheduled_advance(self) -> None:
        self._scheduled_advances -= 1
        self.advance()

    def _update_idle(self) -> None:
        if self._scheduled_advances == 0 and self.active_count() == 0:
            self._idle.set()
        else:
            self._idle.clear()

    def _dispatch_boundary_chunk(self) -> bool:
        files = [f for f in self._uploader.queue if self._can_dispatch(f) and f.is_ready()]

        for upload_file in files:
            if upload_file.chunks and self._is_untouched(upload_file.chunks[0]):
                logger.debug(f"Dispatching first chunk of {upload_file!r}")
                upload_file.chunks[0].send()
                return True

        for upload_file in files:
            if len(upload_file.chunks) > 1 and self._is_untouched(upload_file.chunks[-1]):
                logger.debug(f"Dispatching last chunk of {upload_file!r}")
                upload_file.chunks[-1].send()
                return True

        return False

    def _dispatch_in_order(self) -> bool:
        for upload_file in self._uploader.queue:
            if upload_file.upload():
                return True
        return False

    def _recover_stranded_chunk(self) -> bool:
        # Matches the chunks _dispatch_in_order already covers, so this finds
        # nothing unless a chunk was left PENDING by a path outside advance().
        for upload_file in self._uploader.queue:
            if not self._can_dispatch(upload_file) or not upload_file.is_ready():
                continue
            chunk = self._find_stranded_chunk(upload_file)
            if chunk is not None:
                logger.warning(f"Recovering stranded chunk {chunk!r}")
                chunk.send()
                return True
        return False

    @staticmethod
    def _find_stranded_chunk(upload_file: "UploadFile") -> Optional[Chunk]:
        for chunk in upload_file.chunks:
            if chunk.pending_retry or chunk.preprocess_state == PreprocessState.RUNNING:
                continue
            in_flight = chunk.request is not None and not chunk.request.done
            if not in_flight and chunk.status == ChunkStatus.PENDING:
                return chunk
        return None

    @staticmethod
    def _can_dispatch(upload_file: "UploadFile") -> bool:
        return not upload_file.is_paused() and not upload_file.has_error

    @staticmethod
    def _is_untouched(chunk: Chunk) -> bool:
        return chunk.status == ChunkStatus.PENDING and chunk.preprocess_state == PreprocessState.NOT_STARTED
