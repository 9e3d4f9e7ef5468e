"""Custom completer for the resumable CLI with path and file-name autocompletion."""

from pathlib import Path
from typing import Callable, Iterable, Optional

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cli.constants import COMMANDS

FILE_NAME_COMMANDS = ("pause", "resume", "cancel", "retry")


class ResumableCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - Filesystem path completion for the 'add' command
    - Queued file name completion for pause/resume/cancel/retry
    """

    def __init__(self, file_names: Optional[Callable[[], Iterable[str]]] = None):
        """
        Initialize the completer.

        Args:
            file_names: Callable returning the names of queued files
        """
        self.file_names = file_names

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        """
        Generate completions based on cursor position and context.

        For the first token, completes command names.
        For 'add' arguments, completes paths relative to the working directory.
        """
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        command = tokens[0].lower()
        current_word = "" if is_typing_new_token else tokens[-1]

        if command == "add":
            already_typed = set(tokens[1:] if is_typing_new_token else tokens[1:-1])
            yield from self._complete_paths(current_word, already_typed)
        elif command in FILE_NAME_COMMANDS and self.file_names is not None:
            if len(tokens) > 2 or (len(tokens) == 2 and is_typing_new_token):
                return
            yield from self._complete_file_names(current_word)

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        """Complete command names matching the partial input."""
        partial_lower = partial.lower()
        for cmd in COMMANDS:
            if cmd.startswith(partial_lower):
                yield Completion(cmd, start_position=-len(partial))

    def _complete_paths(self, partial: str, exclude_paths: set) -> Iterable[Completion]:
        """
        Complete file and directory paths.

        Directories are suggested with a trailing slash so completion can
        continue into them.
        """
        if partial.endswith("/"):
            directory, prefix = Path(partial).expanduser(), ""
        else:
            directory, prefix = Path(partial).expanduser().parent, Path(partial).name

        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError:
            return

        base = partial[: len(partial) - len(prefix)]
        for entry in entries:
            if not entry.name.startswith(prefix):
                continue
            if entry.name.startswith(".") and not prefix.startswith("."):
                continue
            candidate = f"{base}{entry.name}"
            if entry.is_dir():
                candidate += "/"
            if candidate in exclude_paths:
                continue
            yield Completion(candidate, start_position=-len(partial))

    def _complete_file_names(self, partial: str) -> Iterable[Completion]:
        """Complete names of queued files."""
        for name in sorted(self.file_names()):
            if name.startswith(partial):
                yield Completion(name, start_position=-len(partial))
