"""Custom completer for Distore CLI with local path autocompletion."""

from pathlib import Path
from typing import Iterable

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cli.constants import COMMANDS, PATH_COMMANDS


class DistoreCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - Local path completion for the first argument of 'upload'
    """

    def __init__(self, base_dir: Path | None = None):
        self.base_dir = base_dir

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        """
        Generate completions based on cursor position and context.

        For the first token, completes command names.
        For the first 'upload' argument, completes files and directories.
        """
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        command = tokens[0].lower()
        if command not in PATH_COMMANDS:
            return

        argument_position = len(tokens) if is_typing_new_token else len(tokens) - 1
        if argument_position != 1:
            return

        current_word = "" if is_typing_new_token else tokens[-1]
        yield from self._complete_local_paths(current_word)

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        """Complete command names matching the partial input."""
        partial_lower = partial.lower()
        for cmd in COMMANDS:
            if cmd.startswith(partial_lower):
                yield Completion(cmd, start_position=-len(partial))

    def _complete_local_paths(self, partial: str) -> Iterable[Completion]:
        """
        Complete entries of the directory named by the partial path.

        Directories are suggested with a trailing '/'; hidden entries only when
        the partial name starts with '.'.
        """
        base = self.base_dir or Path.cwd()
        head, _, name_prefix = partial.rpartition("/")
        if partial.startswith("/"):
            directory = Path(head or "/")
        else:
            directory = (base / head) if head else base
        directory = directory.expanduser()

        if not directory.is_dir():
            return

        prefix = f"{head}/" if head or partial.startswith("/") else ""
        for item in sorted(directory.iterdir()):
            if item.name.startswith(".") and not name_prefix.startswith("."):
                continue
            if not item.name.startswith(name_prefix):
                continue
            suffix = "/" if item.is_dir() else ""
            yield Completion(
                f"{prefix}{item.name}{suffix}",
                start_position=-len(partial),
                display=f"{item.name}{suffix}",
            )
