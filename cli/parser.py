"""Command parser for CLI input."""

import shlex

from cli.models import (
    AddCommand,
    CancelCommand,
    CommandRequest,
    LoginCommand,
    PauseCommand,
    ResumeCommand,
    RetryCommand,
    StatusCommand,
    UploadCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object (one of Add/Upload/Pause/Resume/Cancel/Retry/Status/Login)

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0].lower()
    args = tokens[1:]

    if command_name == "add":
        return _parse_add(args)
    elif command_name == "upload":
        _expect_no_args("upload", args)
        return UploadCommand()
    elif command_name == "pause":
        return PauseCommand(name=_optional_name("pause", args))
    elif command_name == "resume":
        return ResumeCommand(name=_optional_name("resume", args))
    elif command_name == "cancel":
        return CancelCommand(name=_optional_name("cancel", args))
    elif command_name == "retry":
        return _parse_retry(args)
    elif command_name == "status":
        _expect_no_args("status", args)
        return StatusCommand()
    elif command_name == "login":
        return _parse_login(args)
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _parse_add(args: list[str]) -> AddCommand:
    """Parse 'add <paths...>' command."""
    if not args:
        raise ParseError("add requires at least one file or directory")

    return AddCommand(paths=tuple(args))


def _parse_retry(args: list[str]) -> RetryCommand:
    """Parse 'retry <name>' command."""
    if len(args) != 1:
        raise ParseError("retry requires exactly 1 argument: <name>")

    return RetryCommand(name=args[0])


def _parse_login(args: list[str]) -> LoginCommand:
    """Parse 'login <api-key>' command."""
    if len(args) != 1:
        raise ParseError("login requires exactly 1 argument: <api-key>")

    return LoginCommand(api_key=args[0])


def _optional_name(command_name: str, args: list[str]) -> str | None:
    """Return the single optional file name argument."""
    if len(args) > 1:
        raise ParseError(f"{command_name} takes at most 1 argument: [name]")
    return args[0] if args else None


def _expect_no_args(command_name: str, args: list[str]) -> None:
    if args:
        raise ParseError(f"{command_name} takes no arguments")
