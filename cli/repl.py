"""Interactive prompt_toolkit session for Distore."""

import os
import sys
from typing import Callable, Dict

from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory

from common.exceptions import ConfigurationError
from cli.commands import (
    get_config,
    handle_config,
    handle_delete,
    handle_download,
    handle_info,
    handle_list,
    handle_search,
    handle_serve,
    handle_upload,
)
from cli.completer import DistoreCompleter
from cli.constants import HELP_TEXT, LOGO, PROMPT_TEXT, STYLE, WELCOME_HELP, WELCOME_TITLE
from cli.models import (
    ConfigCommand,
    DeleteCommand,
    DownloadCommand,
    InfoCommand,
    ListCommand,
    SearchCommand,
    ServeCommand,
    UploadCommand,
)
from cli.parser import ParseError, parse_command

HANDLERS: Dict[type, Callable[..., str]] = {
    UploadCommand: handle_upload,
    DownloadCommand: handle_download,
    DeleteCommand: handle_delete,
    ListCommand: handle_list,
    SearchCommand: handle_search,
    InfoCommand: handle_info,
    ServeCommand: handle_serve,
    ConfigCommand: handle_config,
}


def clear_screen() -> None:
    os.system("cls" if sys.platform == "win32" else "clear")


def show_welcome() -> None:
    print(LOGO)
    print(WELCOME_TITLE)
    print(WELCOME_HELP)


def warn_incomplete_config() -> None:
    """Print missing configuration fields; file commands fail until they are set."""
    try:
        get_config().validate()
    except ConfigurationError as e:
        print(f"Warning: {e}")
        print("Set values with: config <key> <value>\n")


def dispatch_command(cmd_obj) -> str:
    """Run the handler registered for a parsed command."""
    handler = HANDLERS.get(type(cmd_obj))
    if handler is None:
        return f"Unknown command type: {type(cmd_obj)}"
    return handler(cmd_obj)


def handle_line(line: str) -> bool:
    """
    Execute one line of input.

    Returns:
        False when the session should end
    """
    word = line.strip().lower()
    if not word:
        return True
    if word == "exit":
        print("Goodbye!")
        return False
    if word == "help":
        print(HELP_TEXT)
    elif word == "clear":
        clear_screen()
        show_welcome()
    else:
        try:
            print(dispatch_command(parse_command(line)))
        except ParseError as e:
            print(f"Error: {e}")
    return True


def repl_loop() -> None:
    """Start interactive REPL with prompt_toolkit."""
    session: PromptSession = PromptSession(
        completer=DistoreCompleter(), history=InMemoryHistory(), style=STYLE
    )

    clear_screen()
    show_welcome()
    warn_incomplete_config()

    running = True
    while running:
        try:
            running = handle_line(session.prompt([("class:prompt", PROMPT_TEXT)]))
        except KeyboardInterrupt:
            continue
        except EOFError:
            print("\nGoodbye!")
            break
