"""Utility functions for CLI output."""

from cli.constants import GREEN, PROGRESS_BAR_WIDTH, RED, RESET, YELLOW
from uploader.upload_file import UploadFile


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"


def render_progress_bar(fraction: float, width: int = PROGRESS_BAR_WIDTH) -> str:
    """
    Render a fixed-width text progress bar.

    Args:
        fraction: Value in [0, 1]
        width: Number of cells

    Returns:
        Bar string (e.g., "[#########.....]")
    """
    fraction = min(max(fraction, 0.0), 1.0)
    filled = int(round(fraction * width))
    return f"[{'#' * filled}{'.' * (width - filled)}]"


def describe_file_state(upload_file: UploadFile) -> str:
    """Short colored state label for a file."""
    if upload_file.has_error:
        return f"{RED}failed{RESET}"
    if upload_file.is_complete():
        return f"{GREEN}done{RESET}"
    if upload_file.is_paused():
        return f"{YELLOW}paused{RESET}"
    if upload_file.is_uploading():
        return "uploading"
    return "queued"


def format_file_status(upload_file: UploadFile) -> str:
    """
    Format one status line for a file.

    Args:
        upload_file: Tracked file

    Returns:
        Line with name, bar, percentage, size and state
    """
    progress = upload_file.progress()
    return (
        f"{upload_file.relative_path}  {render_progress_bar(progress)} "
        f"{progress * 100:5.1f}%  {format_file_size(upload_file.size)}  "
        f"{describe_file_state(upload_file)}"
    )
