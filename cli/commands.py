"""Command handler functions for CLI operations."""

from pathlib import Path
from typing import Optional

from common.logging_config import get_logger
from cli.config import Config
from cli.models import (
    AddCommand,
    CancelCommand,
    LoginCommand,
    PauseCommand,
    ResumeCommand,
    RetryCommand,
    StatusCommand,
    UploadCommand,
)
from cli.utils import format_file_size, format_file_status, render_progress_bar
from uploader.upload_file import UploadFile
from uploader.uploader import Uploader

logger = get_logger(__name__)


_config: Optional[Config] = None
_uploader: Optional[Uploader] = None


def get_config() -> Config:
    """
    Get or create global Config instance.

    Returns:
        Config instance backed by ~/.resumable/config.json
    """
    global _config
    if _config is None:
        _config = Config(Path.home() / '.resumable' / 'config.json')
    return _config


def get_uploader() -> Uploader:
    """
    Get or create global Uploader instance.

    Returns:
        Uploader configured from the CLI config
    """
    global _uploader
    if _uploader is None:
        logger.debug("Creating new Uploader instance")
        _uploader = Uploader(get_config().get_uploader_options())
    return _uploader


def find_file(uploader: Uploader, name: str) -> Optional[UploadFile]:
    """
    Look up a tracked file by relative path, file name or unique identifier.

    Args:
        uploader: Uploader to search
        name: Name typed by the user

    Returns:
        First matching file or None
    """
    for upload_file in uploader.files:
        if name in (upload_file.relative_path, upload_file.file_name, upload_file.unique_identifier):
            return upload_file
    return None


async def handle_add(cmd: AddCommand, uploader: Optional[Uploader] = None) -> str:
    """
    Handle 'add' command.

    Args:
        cmd: AddCommand with paths
        uploader: Optional Uploader for dependency injection (testing)

    Returns:
        Summary of queued, skipped and rejected files
    """
    logger.info(f"Executing add command: {len(cmd.paths)} path(s)")
    if uploader is None:
        uploader = get_uploader()
    result = await uploader.add_paths(cmd.paths)

    lines = []
    if result.added:
        total = sum(f.size for f in result.added)
        lines.append(f"Queued {len(result.added)} file(s) ({format_file_size(total)})")
    for collision in result.skipped:
        lines.append(f"Already queued: {collision.item.relative_path}")
    for error in result.rejected:
        lines.append(f"Rejected: {error}")
    for error in result.failed:
        lines.append(f"Failed: {error}")
    if not lines:
        lines.append("No files found")
    return "\n".join(lines)


def handle_upload(cmd: UploadCommand, uploader: Optional[Uploader] = None) -> str:
    """
    Handle 'upload' command.

    Args:
        cmd: UploadCommand
        uploader: Optional Uploader for dependency injection (testing)

    Returns:
        Status message
    """
    if uploader is None:
        uploader = get_uploader()
    if not uploader.files:
        return "No files queued. Use 'add <paths...>' first."
    uploader.upload()
    return f"Uploading {len(uploader.files)} file(s) ({format_file_size(uploader.get_size())})"


def handle_pause(cmd: PauseCommand, uploader: Optional[Uploader] = None) -> str:
    """
    Handle 'pause' command.

    Args:
        cmd: PauseCommand with optional file name
        uploader: Optional Uploader for dependency injection (testing)

    Returns:
        Status message
    """
    if uploader is None:
        uploader = get_uploader()
    if cmd.name is None:
        uploader.pause()
        return "Paused all uploads"

    upload_file = find_file(uploader, cmd.name)
    if upload_file is None:
        return f"No such file: {cmd.name}"
    upload_file.pause(True)
    return f"Paused {upload_file.relative_path}"


def handle_resume(cmd: ResumeCommand, uploader: Optional[Uploader] = None) -> str:
    """
    Handle 'resume' command.

    Args:
        cmd: ResumeCommand with optional file name
        uploader: Optional Uploader for dependency injection (testing)

    Returns:
        Status message
    """
    if uploader is None:
        uploader = get_uploader()
    if cmd.name is None:
        for upload_file in uploader.files:
            upload_file.pause(False)
        uploader.upload()
        return "Resumed all uploads"

    upload_file = find_file(uploader, cmd.name)
    if upload_file is None:
        return f"No such file: {cmd.name}"
    upload_file.pause(False)
    if upload_file.is_paused():
        return f"Resumed {upload_file.relative_path} (queue is still paused, use 'resume' to continue)"
    return f"Resumed {upload_file.relative_path}"


def handle_cancel(cmd: CancelCommand, uploader: Optional[Uploader] = None) -> str:
    """
    Handle 'cancel' command.

    Args:
        cmd: CancelCommand with optional file name
        uploader: Optional Uploader for dependency injection (testing)

    Returns:
        Status message
    """
    if uploader is None:
        uploader = get_uploader()
    if cmd.name is None:
        count = len(uploader.files)
        uploader.cancel()
        return f"Cancelled {count} file(s)"

    upload_file = find_file(uploader, cmd.name)
    if upload_file is None:
        return f"No such file: {cmd.name}"
    upload_file.cancel()
    return f"Cancelled {upload_file.relative_path}"


def handle_retry(cmd: RetryCommand, uploader: Optional[Uploader] = None) -> str:
    """
    Handle 'retry' command.

    Args:
        cmd: RetryCommand with file name
        uploader: Optional Uploader for dependency injection (testing)

    Returns:
        Status message
    """
    if uploader is None:
        uploader = get_uploader()
    upload_file = find_file(uploader, cmd.name)
    if upload_file is None:
        return f"No such file: {cmd.name}"
    upload_file.retry()
    return f"Retrying {upload_file.relative_path}"


def handle_status(cmd: StatusCommand, uploader: Optional[Uploader] = None) -> str:
    """
    Handle 'status' command.

    Args:
        cmd: StatusCommand
        uploader: Optional Uploader for dependency injection (testing)

    Returns:
        One line per file plus an overall line
    """
    if uploader is None:
        uploader = get_uploader()
    files = uploader.files
    if not files:
        return "No files queued"

    lines = [format_file_status(upload_file) for upload_file in files]
    overall = uploader.progress()
    lines.append(
        f"Total: {render_progress_bar(overall)} {overall * 100:5.1f}% "
        f"of {format_file_size(uploader.get_size())} in {len(files)} file(s)"
    )
    return "\n".join(lines)


def handle_login(
    cmd: LoginCommand,
    uploader: Optional[Uploader] = None,
    config: Optional[Config] = None
) -> str:
    """
    Handle 'login' command.

    Args:
        cmd: LoginCommand with API key
        uploader: Optional Uploader for dependency injection (testing)
        config: Optional Config for dependency injection (testing)

    Returns:
        Success message
    """
    if config is None:
        config = get_config()
    if uploader is None:
        uploader = get_uploader()

    config.set_api_key(cmd.api_key)
    headers = uploader.options.headers if isinstance(uploader.options.headers, dict) else {}
    uploader.options.headers = {**headers, 'Authorization': f"Bearer {cmd.api_key}"}
    logger.info("API key stored")
    return "API key saved"
