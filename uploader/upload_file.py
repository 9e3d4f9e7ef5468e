"""One logical upload: an item partitioned into chunks, with aggregated status and progress."""

import asyncio
from functools import partial
from typing import TYPE_CHECKING, List, Optional

from common.constants import PROGRESS_COMPLETE_THRESHOLD
from common.logging_config import get_logger
from common.types import ChunkStatus, FileMeta, PreprocessState
from uploader.chunk import Chunk, ChunkEvent
from uploader.events import Event, EventName, Subscription
from uploader.hooks import run_hook
from uploader.items import UploadItem

if TYPE_CHECKING:
    from uploader.uploader import Uploader

logger = get_logger(__name__)


class UploadFile:
    """
    An admitted item and its ordered chunk list.

    Collaborators (options, events, transport, scheduler, queue) are read
    through the owning Uploader on every access, never copied.
    """

    def __init__(self, uploader: "Uploader", item: UploadItem, unique_identifier: str):
        """
        Initialize the file and build its chunks.

        Args:
            uploader: Owning Uploader
            item: Byte source being uploaded
            unique_identifier: Identifier assigned at admission
        """
        self._uploader = uploader
        self.item = item
        self.file_name = item.name
        self.size = item.size
        self.relative_path = item.relative_path
        self.mime_type = item.mime_type
        self.unique_identifier = unique_identifier

        self.chunks: List[Chunk] = []
        self.preprocess_state = PreprocessState.NOT_STARTED
        self._pause = False
        self._error = False
        self._prev_progress = 0.0

        self.events.fire(EventName.CHUNKING_START, file=self)
        self.bootstrap()

    @property
    def options(self):
        return self._uploader.options

    @property
    def events(self):
        return self._uploader.events

    @property
    def transport(self):
        return self._uploader.transport

    @property
    def scheduler(self):
        return self._uploader.scheduler

    @property
    def queue(self):
        return self._uploader.queue

    @property
    def has_error(self) -> bool:
        return self._error

    @property
    def file_meta(self) -> FileMeta:
        return FileMeta(
            unique_identifier=self.unique_identifier,
            file_name=self.file_name,
            relative_path=self.relative_path,
            size=self.size,
            mime_type=self.mime_type,
        )

    def bootstrap(self) -> None:
        """
        Rebuild the chunk list from scratch.

        Aborts in-flight chunks, clears the error flag and the progress floor,
        then creates one Chunk per partition entry. CHUNKING_COMPLETE fires on
        the next loop iteration.
        """
        self.abort()
        for chunk in self.chunks:
            chunk.detach()
        self._error = False
        self.chunks = []
        self._prev_progress = 0.0

        chunk_size = self.options.chunk_size
        if self.options.force_chunk_size:
            max_offset = max(-(-self.size // chunk_size), 1)
        else:
            max_offset = max(self.size // chunk_size, 1)

        for offset in range(max_offset):
            self.chunks.append(Chunk(self, offset, self._on_chunk_event))
            self.events.fire(EventName.CHUNKING_PROGRESS, file=self, value=offset / max_offset)

        logger.debug(f"Bootstrapped {self!r} into {max_offset} chunk(s)")
        asyncio.get_running_loop().call_soon(partial(self.events.fire, EventName.CHUNKING_COMPLETE, file=self))

    def progress(self) -> float:
        """
        Overall fraction uploaded, never lower than the previous call's result.

        Returns:
            Value in [0, 1]
        """
        if self._error:
            return 1.0

        ret = 0.0
        error = False
        for chunk in self.chunks:
            if chunk.status == ChunkStatus.ERROR:
                error = True
            ret += chunk.progress(relative=True)

        if error or ret > PROGRESS_COMPLETE_THRESHOLD:
            ret = 1.0
        ret = max(self._prev_progress, ret)
        self._prev_progress = ret
        return ret

    def is_uploading(self) -> bool:
        return any(chunk.status == ChunkStatus.UPLOADING for chunk in self.chunks)

    def is_complete(self) -> bool:
        if self.preprocess_state == PreprocessState.RUNNING:
            return False
        if not self.chunks:
            return False
        return all(
            chunk.status == ChunkStatus.SUCCESS and chunk.preprocess_state != PreprocessState.RUNNING
            for chunk in self.chunks
        )

    def pause(self, pause: Optional[bool] = None) -> None:
        """
        Toggle, or set, this file's pause flag.

        Pausing aborts the file's uploading chunks. Either way the scheduler
        is woken so that freed slots go to other files.

        Args:
            pause: True/False to set, None to toggle
        """
        self._pause = (not self._pause) if pause is None else pause
        if self._pause:
            logger.info(f"Paused {self!r}")
            self.abort()
        else:
            logger.info(f"Resumed {self!r}")
        self.scheduler.wake()

    def is_paused(self) -> bool:
        """Paused by this file's flag or by the queue-wide pause."""
        return self._pause or self.queue.paused

    def abort(self) -> None:
        """Abort every chunk that is currently uploading."""
        abort_count = 0
        for chunk in self.chunks:
            if chunk.status == ChunkStatus.UPLOADING:
                chunk.abort()
                abort_count += 1

        if abort_count > 0:
            self.events.fire(EventName.FILE_PROGRESS, file=self)

    def cancel(self) -> None:
        """Abort everything, drop the chunks and leave the queue."""
        chunks = self.chunks
        self.chunks = []
        for chunk in chunks:
            chunk.detach()

        self.queue.remove(self)
        logger.info(f"Cancelled {self!r}")
        self.events.fire(EventName.FILE_PROGRESS, file=self)
        self.scheduler.fill_slots()

    def retry(self) -> None:
        """Clear the error state, rebuild the chunks and restart uploading once chunking completes."""
        logger.info(f"Retrying {self!r}")
        self.bootstrap()

        subscription: Optional[Subscription] = None

        def _on_chunking_complete(event: Event) -> None:
            if event.file is not self:
                return
            self.events.unsubscribe(subscription)
            self.scheduler.start()

        subscription = self.events.subscribe(EventName.CHUNKING_COMPLETE, _on_chunking_complete)

    def upload(self) -> bool:
        """
        Dispatch this file's next step, if it has one.

        Returns:
            True if a chunk was dispatched or the pre-upload hook is (still) running
        """
        if self.is_paused() or self._error:
            return False

        preprocess = self.options.preprocess_file
        if preprocess is not None:
            if self.preprocess_state == PreprocessState.NOT_STARTED:
                self.preprocess_state = PreprocessState.RUNNING
                run_hook(preprocess, self, self.preprocess_finished)
                return True
            if self.preprocess_state == PreprocessState.RUNNING:
                return True

        for chunk in self.chunks:
            if chunk.status == ChunkStatus.PENDING and chunk.preprocess_state != PreprocessState.RUNNING:
                chunk.send()
                return True
        return False

    def is_ready(self) -> bool:
        """True once the pre-upload hook, if any, has finished."""
        return self.options.preprocess_file is None or self.preprocess_state == PreprocessState.DONE

    def preprocess_finished(self) -> None:
        """Signal that the pre-upload hook is done; the scheduler picks the file up again."""
        self.preprocess_state = PreprocessState.DONE
        self.scheduler.advance()

    def mark_chunks_completed(self, chunk_number: int) -> None:
        """
        Force-complete the first `chunk_number` chunks (a prefix the receiver is known to hold).

        Args:
            chunk_number: Number of leading chunks to mark
        """
        if not self.chunks or len(self.chunks) < chunk_number:
            return
        for chunk in self.chunks[:chunk_number]:
            chunk.mark_complete = True

    def _on_chunk_event(self, event: ChunkEvent, chunk: Chunk, message: str) -> None:
        if event == ChunkEvent.PROGRESS:
            self.events.fire(EventName.CHUNK_PROGRESS, file=self, chunk=chunk)
            self.events.fire(EventName.FILE_PROGRESS, file=self, chunk=chunk, message=message)
        elif event == ChunkEvent.ERROR:
            self.abort()
            self._error = True
            logger.error(f"Upload failed for {self!r}: {message}")
            self.events.fire(EventName.FILE_ERROR, file=self, chunk=chunk, message=message)
        elif event == ChunkEvent.SUCCESS:
            if self._error:
                return
            self.events.fire(EventName.FILE_PROGRESS, file=self, chunk=chunk, message=message)
            if self.is_complete():
                logger.info(f"Upload complete for {self!r}")
                self.events.fire(EventName.FILE_SUCCESS, file=self, chunk=chunk, message=message)
        elif event == ChunkEvent.RETRY:
            self.events.fire(EventName.FILE_RETRY, file=self, chunk=chunk, message=message)

    def __repr__(self) -> str:
        return f"UploadFile(name={self.file_name!r}, id={self.unique_identifier!r}, size={self.size})"
