"""Tests for ResumableCompleter."""

import pytest

from prompt_toolkit.document import Document

from cli.completer import ResumableCompleter
from cli.constants import COMMANDS


@pytest.fixture
def completer():
    """Create a ResumableCompleter with two queued files."""
    return ResumableCompleter(file_names=lambda: ["photos/a.png", "notes.txt"])


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """
    Create a working directory with files to complete.

    Returns:
        Path to the temporary working directory
    """
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "report.pdf").write_text("content")
    (tmp_path / "data.csv").write_text("content")
    (tmp_path / "draft.txt").write_text("content")
    (tmp_path / ".hidden").write_text("content")
    monkeypatch.chdir(tmp_path)
    return tmp_path


def get_completions_list(completer, text):
    """Helper to get list of completion texts from completer."""
    doc = Document(text, len(text))
    return [c.text for c in completer.get_completions(doc, None)]


class TestCommandCompletion:
    """Tests for command name completion."""

    def test_empty_input_shows_all_commands(self, completer):
        """Empty input should suggest all commands."""
        assert get_completions_list(completer, "") == COMMANDS

    def test_partial_command_filters(self, completer):
        """Partial command should filter to matching commands."""
        assert get_completions_list(completer, "re") == ["resume", "retry"]

    def test_case_insensitive(self, completer):
        assert get_completions_list(completer, "UP") == ["upload"]


class TestPathCompletion:
    """Tests for 'add' path completion."""

    def test_lists_visible_entries(self, completer, workdir):
        assert get_completions_list(completer, "add ") == ["data.csv", "docs/", "draft.txt"]

    def test_filters_by_prefix(self, completer, workdir):
        assert get_completions_list(completer, "add d") == ["data.csv", "docs/", "draft.txt"]
        assert get_completions_list(completer, "add dr") == ["draft.txt"]

    def test_descends_into_directories(self, completer, workdir):
        assert get_completions_list(completer, "add docs/") == ["docs/report.pdf"]

    def test_hidden_files_need_dot_prefix(self, completer, workdir):
        assert get_completions_list(completer, "add .h") == [".hidden"]

    def test_excludes_already_typed_paths(self, completer, workdir):
        assert get_completions_list(completer, "add data.csv ") == ["docs/", "draft.txt"]

    def test_missing_directory_yields_nothing(self, completer, workdir):
        assert get_completions_list(completer, "add nowhere/") == []


class TestFileNameCompletion:
    """Tests for queued file name completion."""

    @pytest.mark.parametrize("command", ["pause", "resume", "cancel", "retry"])
    def test_completes_queued_names(self, completer, command):
        assert get_completions_list(completer, f"{command} ") == ["notes.txt", "photos/a.png"]

    def test_filters_by_prefix(self, completer):
        assert get_completions_list(completer, "retry ph") == ["photos/a.png"]

    def test_only_one_name_argument(self, completer):
        assert get_completions_list(completer, "cancel notes.txt ") == []

    def test_no_names_without_source(self):
        assert get_completions_list(ResumableCompleter(), "pause ") == []

    def test_other_commands_have_no_arguments(self, completer):
        assert get_completions_list(completer, "status ") == []
