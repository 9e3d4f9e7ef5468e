"""Engine facade: owns the options, event bus, queue, scheduler and transport."""

from pathlib import Path
from typing import Iterable, List, Optional, Union

from common.logging_config import get_logger
from uploader.config import UploaderOptions
from uploader.events import EventBus, EventHandler, EventName, Subscription
from uploader.items import UploadItem, collect_items
from uploader.queue import AdmissionResult, UploadQueue
from uploader.scheduler import Scheduler
from uploader.transport import HttpTransport, TransportAdapter
from uploader.upload_file import UploadFile

logger = get_logger(__name__)


class Uploader:
    """
    Resumable chunked uploader.

    Example:
        async with Uploader(target="http://localhost:3000/api/upload") as uploader:
            uploader.on(EventName.FILE_SUCCESS, lambda event: print(event.file.file_name))
            await uploader.add_paths(["videos/"])
            uploader.upload()
            await uploader.wait_idle()
    """

    def __init__(
        self,
        options: Optional[UploaderOptions] = None,
        transport: Optional[TransportAdapter] = None,
        **overrides
    ):
        """
        Initialize the uploader.

        Args:
            options: Engine options (defaults when omitted)
            transport: Transport adapter (HttpTransport built from the options when omitted)
            **overrides: Individual option values applied on top of `options`

        Raises:
            pydantic.ValidationError: If an option value is invalid
        """
        if options is None:
            options = UploaderOptions(**overrides)
        elif overrides:
            options = UploaderOptions.model_validate({**dict(options), **overrides})

        self.options = options
        self.events = EventBus()
        self.queue = UploadQueue(self)
        self.scheduler = Scheduler(self)
        self.transport = transport or HttpTransport(options)
        logger.info(
            f"Initialized Uploader [chunk_size={options.chunk_size} "
            f"slots={options.simultaneous_uploads} test_chunks={options.test_chunks}]"
        )

    @property
    def files(self) -> List[UploadFile]:
        return self.queue.files

    def on(self, name: Union[EventName, str], handler: EventHandler) -> Subscription:
        """Subscribe to one event. Returns the handle for off()."""
        return self.events.subscribe(name, handler)

    def on_any(self, handler: EventHandler) -> Subscription:
        """Subscribe to every event."""
        return self.events.subscribe_all(handler)

    def off(self, subscription: Subscription) -> None:
        self.events.unsubscribe(subscription)

    async def add_file(self, item: UploadItem) -> AdmissionResult:
        return await self.queue.add_files([item])

    async def add_files(self, items: Iterable[UploadItem]) -> AdmissionResult:
        return await self.queue.add_files(items)

    async def add_paths(self, paths: Iterable[Union[str, Path]]) -> AdmissionResult:
        """
        Flatten files and directories from disk and admit them.

        Args:
            paths: Files and/or directories

        Returns:
            AdmissionResult for the whole batch
        """
        return await self.queue.add_files(collect_items(paths))

    def upload(self) -> None:
        """Clear any queue-wide pause and start filling the upload slots."""
        if self.is_uploading() and self.scheduler.running and not self.queue.paused:
            return
        self.queue.paused = False
        self.scheduler.start()

    def pause(self) -> None:
        """Pause every file and abort whatever is in flight."""
        self.queue.paused = True
        self.scheduler.stop()
        for upload_file in self.queue:
            upload_file.abort()
        logger.info(f"Paused all uploads [files={len(self.queue)}]")
        self.events.fire(EventName.PAUSE)

    def cancel(self) -> None:
        """Cancel and drop every tracked file."""
        self.events.fire(EventName.BEFORE_CANCEL)
        self.scheduler.stop()
        for upload_file in reversed(self.queue.files):
            upload_file.cancel()
        logger.info("Cancelled all uploads")
        self.events.fire(EventName.CANCEL)

    def progress(self) -> float:
        """
        Overall fraction uploaded, weighted by file size.

        Returns:
            Value in [0, 1]; 0 when nothing with a size is tracked
        """
        total_done = 0.0
        total_size = 0
        for upload_file in self.queue:
            total_done += upload_file.progress() * upload_file.size
            total_size += upload_file.size
        return total_done / total_size if total_size > 0 else 0.0

    def is_uploading(self) -> bool:
        return any(upload_file.is_uploading() for upload_file in self.queue)

    def remove_file(self, upload_file: UploadFile) -> None:
        """Drop a file without firing any event; its in-flight chunks are aborted."""
        for chunk in upload_file.chunks:
            chunk.detach()
        self.queue.remove(upload_file)
        self.scheduler.wake()

    def get_from_unique_identifier(self, unique_identifier: str) -> Optional[UploadFile]:
        return self.queue.get_from_unique_identifier(unique_identifier)

    def get_size(self) -> int:
        return self.queue.get_size()

    async def wait_idle(self) -> None:
        """Wait until no chunk is in flight, waiting for a retry or held by a hook."""
        await self.scheduler.wait_idle()

    async def close(self) -> None:
        """Stop scheduling, abort in-flight chunks and release the transport."""
        self.scheduler.stop()
        for upload_file in self.queue:
            upload_file.abort()
        await self.transport.close()
        logger.info("Uploader closed")

    async def __aenter__(self) -> "Uploader":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
