"""State machine for one byte range of one upload file."""

import asyncio
import time
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

from common.constants import PROGRESS_DAMPING_FACTOR, SUCCESS_STATUS_CODES
from common.logging_config import get_logger
from common.types import ChunkMeta, ChunkStatus, PreprocessState
from uploader.exceptions import PermanentTransportError, TransportError
from uploader.hooks import run_hook

if TYPE_CHECKING:
    from uploader.upload_file import UploadFile

logger = get_logger(__name__)


class ChunkEvent(str, Enum):
    """Outcomes a chunk reports to its file."""
    PROGRESS = "progress"
    SUCCESS = "success"
    ERROR = "error"
    RETRY = "retry"


ChunkCallback = Callable[[ChunkEvent, "Chunk", str], None]


class InFlightRequest:
    """
    One transport operation (probe or transmission) owned by a chunk.

    Unresolved while the task runs; resolved with the receiver's status code
    (None for network failures) once it returns.
    """

    def __init__(self, kind: str):
        self.kind = kind
        self.task: Optional[asyncio.Task] = None
        self.done = False
        self.status_code: Optional[int] = None
        self.body = ""
        self.permanent = False

    def resolve(self, status_code: Optional[int] = None, body: str = "", permanent: bool = False) -> None:
        self.done = True
        self.status_code = status_code
        self.body = body
        self.permanent = permanent

    def __repr__(self) -> str:
        return f"InFlightRequest(kind={self.kind!r}, done={self.done}, status_code={self.status_code})"


class Chunk:
    """
    A half-open byte range `[start_byte, end_byte)` of an UploadFile.

    The status is derived from the chunk's attributes on every read; the only
    way out of PENDING is `send()`, which attaches the in-flight request
    synchronously before any transport call is awaited.
    """

    def __init__(self, file: "UploadFile", offset: int, callback: ChunkCallback):
        """
        Initialize a chunk and compute its byte range.

        Args:
            file: Owning file
            offset: 0-based chunk index
            callback: Receives (event, chunk, message) for progress/success/error/retry
        """
        self.file = file
        self.offset = offset
        self._callback = callback

        chunk_size = file.options.chunk_size
        self.start_byte = offset * chunk_size
        self.end_byte = min(file.size, (offset + 1) * chunk_size)
        if file.size - self.end_byte < chunk_size and not file.options.force_chunk_size:
            # The last chunk absorbs the remainder.
            self.end_byte = file.size

        self.tested = False
        self.retries = 0
        self.pending_retry = False
        self.mark_complete = False
        self.preprocess_state = PreprocessState.NOT_STARTED
        self.loaded = 0
        self.request: Optional[InFlightRequest] = None

        self._detached = False
        self._retry_timer: Optional[asyncio.TimerHandle] = None
        self._last_progress_callback = time.monotonic()

    @property
    def status(self) -> ChunkStatus:
        if self.pending_retry:
            return ChunkStatus.UPLOADING
        if self.mark_complete:
            return ChunkStatus.SUCCESS

        request = self.request
        if request is None:
            return ChunkStatus.PENDING
        if not request.done:
            return ChunkStatus.UPLOADING
        if request.status_code in SUCCESS_STATUS_CODES:
            return ChunkStatus.SUCCESS

        options = self.file.options
        if (
            request.permanent
            or request.status_code in options.permanent_errors
            or self.retries >= options.max_chunk_retries
        ):
            return ChunkStatus.ERROR
        return ChunkStatus.PENDING

    @property
    def is_busy(self) -> bool:
        """True while the chunk occupies a concurrency slot."""
        return self.status == ChunkStatus.UPLOADING or self.preprocess_state == PreprocessState.RUNNING

    @property
    def message(self) -> str:
        return self.request.body if self.request is not None else ""

    @property
    def size(self) -> int:
        return self.end_byte - self.start_byte

    def progress(self, relative: bool = False) -> float:
        """
        Fraction of this chunk that is accounted for.

        Args:
            relative: Scale by this chunk's share of the file, so that summing
                every chunk's relative progress yields the file's fraction

        Returns:
            Value in [0, 1]
        """
        file_size = self.file.size
        factor = self.size / file_size if relative and file_size else 1.0

        if self.pending_retry:
            return 0.0

        request = self.request
        if (request is None or request.status_code is None) and not self.mark_complete:
            factor *= PROGRESS_DAMPING_FACTOR

        status = self.status
        if status in (ChunkStatus.SUCCESS, ChunkStatus.ERROR):
            return factor
        if status == ChunkStatus.PENDING or self.size == 0:
            return 0.0
        return min(self.loaded / self.size, 1.0) * factor

    def chunk_meta(self) -> ChunkMeta:
        """Snapshot the fields sent with this chunk, evaluating caller-supplied query/headers."""
        options = self.file.options
        query = options.query(self.file, self) if callable(options.query) else options.query
        headers = options.headers(self.file, self) if callable(options.headers) else options.headers
        return ChunkMeta(
            offset=self.offset,
            total_chunks=len(self.file.chunks),
            chunk_size=options.chunk_size,
            start_byte=self.start_byte,
            end_byte=self.end_byte,
            query=dict(query or {}),
            headers=dict(headers or {}),
        )

    def send(self) -> None:
        """
        Claim the chunk and start its next step: pre-send hook, existence probe or transmission.
        """
        if self._detached:
            return

        options = self.file.options
        if options.preprocess is not None:
            if self.preprocess_state == PreprocessState.NOT_STARTED:
                self.preprocess_state = PreprocessState.RUNNING
                run_hook(options.preprocess, self, self.preprocess_finished)
                return
            if self.preprocess_state == PreprocessState.RUNNING:
                return

        if options.test_chunks and not self.tested:
            self._test()
            return

        self._transmit()

    def preprocess_finished(self) -> None:
        """
        Signal that the pre-send hook is done.

        The chunk proceeds with send() unless its file was paused or failed in
        the meantime; it then stays PENDING and gives its slot back.
        """
        self.preprocess_state = PreprocessState.DONE
        if self._detached:
            return
        if self.file.is_paused() or self.file.has_error:
            logger.debug(f"Pre-send hook finished while paused, holding {self!r}")
            self.file.scheduler.advance_soon()
            return
        self.send()

    def abort(self) -> None:
        """Cancel the in-flight request and any scheduled retry. Idempotent."""
        request = self.request
        self.request = None
        if request is not None and not request.done and request.task is not None:
            request.task.cancel()
        if self._retry_timer is not None:
            self._retry_timer.cancel()
            self._retry_timer = None
        self.pending_retry = False

    def detach(self) -> None:
        """Abort and disown the chunk; it ignores every later send()."""
        self.abort()
        self._detached = True

    def _test(self) -> None:
        self.abort()
        request = InFlightRequest('test')
        self.request = request
        request.task = asyncio.get_running_loop().create_task(self._run_probe(request))

    def _transmit(self) -> None:
        self.abort()
        request = InFlightRequest('send')
        self.request = request
        self.loaded = 0
        request.task = asyncio.get_running_loop().create_task(self._run_send(request))
        self._callback(ChunkEvent.PROGRESS, self, "")

    async def _run_probe(self, request: InFlightRequest) -> None:
        file = self.file
        try:
            exists = await file.transport.probe_exists(file.file_meta, self.chunk_meta())
        except TransportError as e:
            logger.debug(f"Probe failed for {self!r}, sending instead: {e}")
            exists = False
        except Exception as e:
            logger.warning(f"Unexpected probe failure for {self!r}, sending instead: {e}", exc_info=True)
            exists = False

        if self.request is not request:
            return

        self.tested = True
        if exists:
            request.resolve(status_code=SUCCESS_STATUS_CODES[0])
            logger.debug(f"Chunk already stored, skipping transmission: {self!r}")
            self._callback(ChunkEvent.SUCCESS, self, self.message)
            file.scheduler.advance_soon()
        else:
            request.resolve()
            self._transmit()

    async def _run_send(self, request: InFlightRequest) -> None:
        file = self.file
        try:
            if file.item.blocking_read:
                data = await asyncio.get_running_loop().run_in_executor(
                    None, file.item.read, self.start_byte, self.end_byte
                )
            else:
                data = file.item.read(self.start_byte, self.end_byte)
            response = await file.transport.send_chunk(
                file.file_meta,
                self.chunk_meta(),
                data,
                on_progress=lambda loaded: self._on_upload_progress(request, loaded),
            )
        except PermanentTransportError as e:
            request.resolve(status_code=e.status_code, body=str(e), permanent=True)
        except TransportError as e:
            request.resolve(body=str(e))
        except Exception as e:
            logger.error(f"Unexpected failure sending {self!r}: {e}", exc_info=True)
            request.resolve(body=str(e))
        else:
            request.resolve(status_code=response.status_code, body=response.body)

        if self.request is not request:
            return
        self._on_done()

    def _on_upload_progress(self, request: InFlightRequest, loaded: int) -> None:
        if self.request is not request:
            return
        self.loaded = loaded
        now = time.monotonic()
        if now - self._last_progress_callback > self.file.options.throttle_progress_callbacks:
            self._last_progress_callback = now
            self._callback(ChunkEvent.PROGRESS, self, "")

    def _on_done(self) -> None:
        status = self.status
        if status == ChunkStatus.SUCCESS:
            self._callback(ChunkEvent.SUCCESS, self, self.message)
            self.file.scheduler.advance_soon()
            return
        if status == ChunkStatus.ERROR:
            logger.error(
                f"Chunk failed permanently: {self!r} status={self.request.status_code} "
                f"retries={self.retries} message={self.message!r}"
            )
            self._callback(ChunkEvent.ERROR, self, self.message)
            self.file.scheduler.advance_soon()
            return

        logger.warning(
            f"Transient failure, retrying {self!r} (attempt {self.retries + 1}/{self.file.options.max_chunk_retries}): "
            f"status={self.request.status_code} message={self.message!r}"
        )
        self._callback(ChunkEvent.RETRY, self, self.message)
        self.abort()
        self.retries += 1

        interval = self.file.options.chunk_retry_interval
        if interval is not None:
            self.pending_retry = True
            self._retry_timer = asyncio.get_running_loop().call_later(interval, self._retry_send)
        else:
            self._retry_send()

    def _retry_send(self) -> None:
        self._retry_timer = None
        if self._detached or self.file.is_paused() or self.file.has_error:
            self.pending_retry = False
            self.file.scheduler.advance_soon()
            return
        self.pending_retry = False
        self.send()

    def __repr__(self) -> str:
        return (
            f"Chunk(file={self.file.unique_identifier!r}, offset={self.offset}, "
            f"range=[{self.start_byte}, {self.end_byte}))"
        )
