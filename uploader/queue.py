"""Tracked files and the admission policy for new items."""

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Iterable, Iterator, List, Optional, Sequence

from common.logging_config import get_logger
from uploader.events import EventName
from uploader.exceptions import (
    FileTypeError,
    IdentifierCollisionError,
    IdentifierGenerationError,
    MaxFileSizeError,
    MaxFilesError,
    MinFileSizeError,
    ValidationError,
)
from uploader.identifiers import generate_unique_identifier
from uploader.items import UploadItem
from uploader.upload_file import UploadFile

if TYPE_CHECKING:
    from uploader.uploader import Uploader

logger = get_logger(__name__)

_WHITESPACE = re.compile(r'\s')
_BARE_EXTENSION = re.compile(r'^[^.][^/]+$')


@dataclass
class AdmissionResult:
    """
    Outcome of one add_files batch.

    Attributes:
        added: Files now tracked by the queue
        skipped: Items whose identifier was already tracked
        rejected: Items refused by the count/size/type checks
        failed: Items whose custom identifier generation failed
    """
    added: List[UploadFile] = field(default_factory=list)
    skipped: List[IdentifierCollisionError] = field(default_factory=list)
    rejected: List[ValidationError] = field(default_factory=list)
    failed: List[IdentifierGenerationError] = field(default_factory=list)


def matches_file_type(file_name: str, mime_type: str, patterns: Sequence[str]) -> bool:
    """
    Check an item against an allow-list of extensions and MIME types.

    Patterns are stripped of whitespace and lowercased. `pdf` and `.pdf`
    match file names ending in `.pdf` (case-insensitive); `image/png` matches
    that MIME type exactly; `image/*` matches any MIME type starting with
    `image/`.

    Args:
        file_name: Item name
        mime_type: Item MIME type ('' when unknown)
        patterns: Allowed extensions and MIME types

    Returns:
        True if any pattern matches
    """
    name = file_name.lower()
    mime = (mime_type or '').lower()

    for raw in patterns:
        pattern = _WHITESPACE.sub('', raw).lower()
        if not pattern:
            continue

        extension = ('.' if _BARE_EXTENSION.match(pattern) else '') + pattern
        if name.endswith(extension):
            return True

        if '/' in extension:
            star = extension.find('*')
            if star != -1 and mime[:star] == extension[:star]:
                return True
            if mime == extension:
                return True

    return False


class UploadQueue:
    """
    The single authoritative list of tracked files, in admission order.

    Only the queue mutates the list; everyone else reads it through `files`
    (a copy) or iteration over a snapshot.
    """

    def __init__(self, uploader: "Uploader"):
        self._uploader = uploader
        self._files: List[UploadFile] = []
        self.paused = False

    @property
    def files(self) -> List[UploadFile]:
        return list(self._files)

    def __iter__(self) -> Iterator[UploadFile]:
        return iter(list(self._files))

    def __len__(self) -> int:
        return len(self._files)

    def remove(self, upload_file: UploadFile) -> None:
        """Stop tracking a file. Unknown files are ignored."""
        self._files = [f for f in self._files if f is not upload_file]

    def get_from_unique_identifier(self, unique_identifier: str) -> Optional[UploadFile]:
        for upload_file in self._files:
            if upload_file.unique_identifier == unique_identifier:
                return upload_file
        return None

    def get_size(self) -> int:
        return sum(f.size for f in self._files)

    async def add_files(self, items: Iterable[UploadItem]) -> AdmissionResult:
        """
        Admit a batch of items.

        Applies the file-count ceiling (with single-file replacement), the
        type allow-list and the size limits, then assigns identifiers and
        skips duplicates. Rejections invoke the matching callback from the
        options and are reported in the result, never raised.

        Args:
            items: Items to admit

        Returns:
            AdmissionResult for the batch
        """
        items = list(items)
        result = AdmissionResult()
        if not items:
            return result

        options = self._uploader.options
        events = self._uploader.events
        error_count = 0

        if options.max_files is not None and options.max_files < len(items) + len(self._files):
            if options.max_files == 1 and len(self._files) == 1 and len(items) == 1:
                replaced = self._files[0]
                logger.info(f"Replacing {replaced!r} with {items[0]!r}")
                for chunk in replaced.chunks:
                    chunk.detach()
                self.remove(replaced)
            else:
                error = MaxFilesError(
                    f"Too many files: {len(items)} new + {len(self._files)} tracked > {options.max_files}",
                    items=items,
                )
                logger.warning(str(error))
                self._notify_rejection(options.max_files_error_callback, items, error_count)
                result.rejected.append(error)
                return result

        for item in items:
            error = self._validate(item)
            if error is not None:
                logger.warning(f"Rejected {item!r}: {error}")
                self._notify_rejection(self._callback_for(error), item, error_count)
                error_count += 1
                result.rejected.append(error)
                continue

            try:
                unique_identifier = await generate_unique_identifier(item, options.generate_unique_identifier)
            except IdentifierGenerationError as e:
                logger.warning(str(e))
                result.failed.append(e)
                continue

            if self.get_from_unique_identifier(unique_identifier) is not None:
                logger.info(f"Skipping duplicate {item!r} [id={unique_identifier}]")
                result.skipped.append(IdentifierCollisionError(
                    f"Already tracked: {unique_identifier}",
                    item=item,
                    unique_identifier=unique_identifier,
                ))
                continue

            upload_file = UploadFile(self._uploader, item, unique_identifier)
            self._files.append(upload_file)
            result.added.append(upload_file)
            logger.info(f"Added {upload_file!r}")
            events.fire(EventName.FILE_ADDED, file=upload_file)

        if result.added or result.skipped:
            events.fire(
                EventName.FILES_ADDED,
                files=tuple(result.added),
                skipped=tuple(e.item for e in result.skipped),
            )
        return result

    def _validate(self, item: UploadItem) -> Optional[ValidationError]:
        options = self._uploader.options

        if options.file_type and not matches_file_type(item.name, item.mime_type, options.file_type):
            return FileTypeError(f"File type not allowed: {item.name}", item=item)
        if options.min_file_size is not None and item.size < options.min_file_size:
            return MinFileSizeError(f"File too small: {item.name} ({item.size} < {options.min_file_size} bytes)", item=item)
        if options.max_file_size is not None and item.size > options.max_file_size:
            return MaxFileSizeError(f"File too large: {item.name} ({item.size} > {options.max_file_size} bytes)", item=item)
        return None

    def _callback_for(self, error: ValidationError) -> Optional[Callable[..., Any]]:
        options = self._uploader.options
        if isinstance(error, FileTypeError):
            return options.file_type_error_callback
        if isinstance(error, MinFileSizeError):
            return options.min_file_size_error_callback
        if isinstance(error, MaxFileSizeError):
            return options.max_file_size_error_callback
        return None

    def _notify_rejection(self, callback: Optional[Callable[..., Any]], subject: Any, error_count: int) -> None:
        if callback is None:
            return
        try:
            callback(subject, error_count)
        except Exception as e:
            logger.error(f"Rejection callback failed: {e}", exc_info=True)
