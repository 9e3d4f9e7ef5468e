"""Transferable items: the flat list of byte sources the queue admits."""

import mimetypes
from abc import ABC, abstractmethod
from collections import deque
from pathlib import Path
from typing import Iterable, List, Union

from common.logging_config import get_logger

logger = get_logger(__name__)


class UploadItem(ABC):
    """
    A named, sized byte source that can be sliced into chunks.

    Subclasses provide `read(start, end)` returning the half-open byte range.
    Items whose reads block on I/O set `blocking_read` so chunks read them in
    the loop's default executor.
    """

    blocking_read = False

    def __init__(self, name: str, size: int, relative_path: str | None = None, mime_type: str | None = None):
        self.name = name
        self.size = size
        self.relative_path = relative_path or name
        self.mime_type = mime_type if mime_type is not None else _guess_mime_type(name)

    @abstractmethod
    def read(self, start: int, end: int) -> bytes:
        """Return bytes `[start, end)`."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, size={self.size})"


class PathItem(UploadItem):
    """Item backed by a file on disk. The size is captured once, at construction."""

    blocking_read = True

    def __init__(self, path: Union[str, Path], relative_path: str | None = None, mime_type: str | None = None):
        self.path = Path(path)
        super().__init__(
            self.path.name,
            self.path.stat().st_size,
            relative_path=relative_path,
            mime_type=mime_type,
        )

    def read(self, start: int, end: int) -> bytes:
        with open(self.path, 'rb') as f:
            f.seek(start)
            return f.read(end - start)


class BytesItem(UploadItem):
    """Item backed by an in-memory buffer."""

    def __init__(self, name: str, data: bytes, relative_path: str | None = None, mime_type: str | None = None):
        self._data = bytes(data)
        super().__init__(name, len(self._data), relative_path=relative_path, mime_type=mime_type)

    def read(self, start: int, end: int) -> bytes:
        return self._data[start:end]


def collect_items(paths: Iterable[Union[str, Path]]) -> List[PathItem]:
    """
    Flatten files and directories into a list of PathItems.

    Directories are walked breadth-first with an explicit queue. Entries are
    visited in name order, and each file's relative path is its path below
    the directory that was passed in, prefixed with that directory's name.

    Args:
        paths: Files and/or directories

    Returns:
        PathItems in discovery order
    """
    items: List[PathItem] = []
    pending: deque[tuple[Path, str]] = deque()

    for raw in paths:
        path = Path(raw).expanduser()
        if path.is_dir():
            pending.append((path, f"{path.name}/"))
        elif path.is_file():
            items.append(PathItem(path))
        else:
            logger.warning(f"Skipping missing or unsupported path: {raw}")

    while pending:
        directory, prefix = pending.popleft()
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as e:
            logger.warning(f"Cannot read directory {directory}: {e}")
            continue

        for entry in entries:
            if entry.is_dir():
                pending.append((entry, f"{prefix}{entry.name}/"))
            elif entry.is_file():
                items.append(PathItem(entry, relative_path=f"{prefix}{entry.name}"))

    logger.debug(f"Collected {len(items)} item(s)")
    return items


def _guess_mime_type(name: str) -> str:
    mime_type, _ = mimetypes.guess_type(name)
    return mime_type or ''
