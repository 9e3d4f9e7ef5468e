"""Shared data type definitions (ChunkStatus, FileMeta, ChunkMeta, TransportResponse)."""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Dict


class ChunkStatus(str, Enum):
    """
    Derived status of a single chunk.
    """
    PENDING = "pending"
    UPLOADING = "uploading"
    SUCCESS = "success"
    ERROR = "error"


class PreprocessState(IntEnum):
    """
    Progress of a pre-send (chunk) or pre-upload (file) hook.
    """
    NOT_STARTED = 0
    RUNNING = 1
    DONE = 2


@dataclass(frozen=True)
class FileMeta:
    """
    Snapshot of the file-level fields sent with every chunk request.
    """
    unique_identifier: str
    file_name: str
    relative_path: str
    size: int
    mime_type: str = ""


@dataclass(frozen=True)
class ChunkMeta:
    """
    Snapshot of one chunk request.

    `offset` is 0-based; `number` is the 1-based index used on the wire.
    """
    offset: int
    total_chunks: int
    chunk_size: int
    start_byte: int
    end_byte: int
    query: Dict[str, object] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def number(self) -> int:
        return self.offset + 1

    @property
    def current_chunk_size(self) -> int:
        return self.end_byte - self.start_byte


@dataclass(frozen=True)
class TransportResponse:
    """
    Result of a completed chunk transmission.
    """
    status_code: int
    body: str = ""
