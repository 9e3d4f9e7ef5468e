"""REPL with prompt_toolkit for user interaction."""

import os
import sys

from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.patch_stdout import patch_stdout

from common.logging_config import get_logger
from cli.commands import (
    get_uploader,
    handle_add,
    handle_cancel,
    handle_login,
    handle_pause,
    handle_resume,
    handle_retry,
    handle_status,
    handle_upload,
)
from cli.completer import ResumableCompleter
from cli.constants import (
    GREEN,
    HELP_TEXT,
    LOGO,
    PROMPT_TEXT,
    RED,
    RESET,
    STYLE,
    WELCOME_HELP,
    WELCOME_TITLE,
)
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
from cli.parser import ParseError, parse_command
from uploader.events import Event, EventName
from uploader.uploader import Uploader

logger = get_logger(__name__)


def clear_screen() -> None:
    """Clear the terminal screen (cross-platform)."""
    if sys.platform == "win32":
        os.system("cls")
    else:
        os.system("clear")


def show_logo() -> None:
    """Display logo with ANSI colors."""
    print(LOGO)


async def dispatch_command(cmd_obj, uploader: Uploader) -> str:
    """Dispatch parsed command to appropriate handler."""
    if isinstance(cmd_obj, AddCommand):
        return await handle_add(cmd_obj, uploader)
    elif isinstance(cmd_obj, UploadCommand):
        return handle_upload(cmd_obj, uploader)
    elif isinstance(cmd_obj, PauseCommand):
        return handle_pause(cmd_obj, uploader)
    elif isinstance(cmd_obj, ResumeCommand):
        return handle_resume(cmd_obj, uploader)
    elif isinstance(cmd_obj, CancelCommand):
        return handle_cancel(cmd_obj, uploader)
    elif isinstance(cmd_obj, RetryCommand):
        return handle_retry(cmd_obj, uploader)
    elif isinstance(cmd_obj, StatusCommand):
        return handle_status(cmd_obj, uploader)
    elif isinstance(cmd_obj, LoginCommand):
        return handle_login(cmd_obj, uploader)
    else:
        return f"Unknown command type: {type(cmd_obj)}"


def subscribe_notifications(uploader: Uploader) -> None:
    """Print a line when a file finishes, fails, or the whole queue completes."""

    def on_file_success(event: Event) -> None:
        print(f"{GREEN}Uploaded{RESET} {event.file.relative_path}")

    def on_file_error(event: Event) -> None:
        print(f"{RED}Failed{RESET} {event.file.relative_path}: {event.message or 'upload error'}")

    def on_complete(event: Event) -> None:
        print(f"{GREEN}All uploads complete{RESET}")

    uploader.on(EventName.FILE_SUCCESS, on_file_success)
    uploader.on(EventName.FILE_ERROR, on_file_error)
    uploader.on(EventName.COMPLETE, on_complete)


def show_welcome() -> None:
    clear_screen()
    show_logo()
    print(WELCOME_TITLE)
    print(WELCOME_HELP)


async def repl_loop() -> None:
    """Start interactive REPL with prompt_toolkit on the running event loop."""
    uploader = get_uploader()
    subscribe_notifications(uploader)

    completer = ResumableCompleter(lambda: [f.relative_path for f in uploader.files])
    history = InMemoryHistory()
    session: PromptSession = PromptSession(
        completer=completer, history=history, style=STYLE
    )

    show_welcome()

    try:
        with patch_stdout():
            while True:
                try:
                    user_input = await session.prompt_async([("class:prompt", PROMPT_TEXT)])

                    if not user_input.strip():
                        continue

                    if user_input.strip() == "exit":
                        print("Goodbye!")
                        break

                    if user_input.strip() == "help":
                        print(HELP_TEXT)
                        continue

                    if user_input.strip() == "clear":
                        show_welcome()
                        continue

                    cmd_obj = parse_command(user_input)
                    result = await dispatch_command(cmd_obj, uploader)
                    print(result)

                except ParseError as e:
                    print(f"Error: {e}")
                except KeyboardInterrupt:
                    continue
                except EOFError:
                    print("\nGoodbye!")
                    break
    finally:
        await uploader.close()
