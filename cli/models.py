"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class AddCommand:
    """Queue files and directories for upload."""

    paths: tuple[str, ...]
    command: Literal["add"] = "add"


@dataclass(frozen=True)
class UploadCommand:
    """Start (or restart) uploading every queued file."""

    command: Literal["upload"] = "upload"


@dataclass(frozen=True)
class PauseCommand:
    """Pause one file, or the whole queue when no name is given."""

    name: str | None = None
    command: Literal["pause"] = "pause"


@dataclass(frozen=True)
class ResumeCommand:
    """Resume one file, or the whole queue when no name is given."""

    name: str | None = None
    command: Literal["resume"] = "resume"


@dataclass(frozen=True)
class CancelCommand:
    """Cancel one file, or every file when no name is given."""

    name: str | None = None
    command: Literal["cancel"] = "cancel"


@dataclass(frozen=True)
class RetryCommand:
    """Retry a failed file."""

    name: str
    command: Literal["retry"] = "retry"


@dataclass(frozen=True)
class StatusCommand:
    """Show queue progress."""

    command: Literal["status"] = "status"


@dataclass(frozen=True)
class LoginCommand:
    """Store an API key for the upload endpoint."""

    api_key: str
    command: Literal["login"] = "login"


CommandRequest = (
    AddCommand
    | UploadCommand
    | PauseCommand
    | ResumeCommand
    | CancelCommand
    | RetryCommand
    | StatusCommand
    | LoginCommand
)
