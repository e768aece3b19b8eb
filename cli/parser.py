"""Command parser for CLI input."""

import shlex

from cli.models import (
    CommandRequest,
    ConfigCommand,
    DeleteCommand,
    DownloadCommand,
    InfoCommand,
    ListCommand,
    SearchCommand,
    ServeCommand,
    UploadCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL or the command line

    Returns:
        CommandRequest object

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

    if command_name == "upload":
        return _parse_upload(args)
    elif command_name == "download":
        return _parse_download(args)
    elif command_name == "delete":
        return DeleteCommand(target=_single_target("delete", args))
    elif command_name == "list":
        return _parse_list(args)
    elif command_name == "search":
        return _parse_search(args)
    elif command_name == "info":
        return InfoCommand(target=_single_target("info", args))
    elif command_name == "serve":
        return _parse_serve(args)
    elif command_name == "config":
        return _parse_config(args)
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _parse_upload(args: list[str]) -> UploadCommand:
    """Parse 'upload <local_path> [remote_dir]' command."""
    if not 1 <= len(args) <= 2:
        raise ParseError("upload requires 1 or 2 arguments: <local_path> [remote_dir]")

    if len(args) == 2:
        if not args[1].startswith("/"):
            raise ParseError(f"remote_dir must start with '/' - did you mean '/{args[1]}'?")
        return UploadCommand(local_path=args[0], remote_dir=args[1])
    return UploadCommand(local_path=args[0])


def _parse_download(args: list[str]) -> DownloadCommand:
    """Parse 'download <file_id|/path> [output_path]' command."""
    if not 1 <= len(args) <= 2:
        raise ParseError("download requires 1 or 2 arguments: <file_id|/path> [output_path]")

    output_path = args[1] if len(args) > 1 else None
    return DownloadCommand(target=args[0], output_path=output_path)


def _single_target(command_name: str, args: list[str]) -> str:
    if len(args) != 1:
        raise ParseError(f"{command_name} requires exactly 1 argument: <file_id|/path>")
    return args[0]


def _parse_list(args: list[str]) -> ListCommand:
    """Parse 'list [remote_dir]' command."""
    if len(args) > 1:
        raise ParseError("list takes at most 1 argument: [remote_dir]")
    return ListCommand(dir_path=args[0] if args else None)


def _parse_search(args: list[str]) -> SearchCommand:
    """Parse 'search <text>' command; remaining words are joined with spaces."""
    if not args:
        raise ParseError("search requires a search text")
    return SearchCommand(text=" ".join(args))


def _parse_serve(args: list[str]) -> ServeCommand:
    """Parse 'serve [port]' command."""
    if len(args) > 1:
        raise ParseError("serve takes at most 1 argument: [port]")
    if not args:
        return ServeCommand()

    try:
        port = int(args[0])
    except ValueError:
        raise ParseError(f"Invalid port: {args[0]}")
    if not 0 < port < 65536:
        raise ParseError(f"Port out of range: {port}")
    return ServeCommand(port=port)


def _parse_config(args: list[str]) -> ConfigCommand:
    """Parse 'config [key value]' command."""
    if not args:
        return ConfigCommand()
    if len(args) != 2:
        raise ParseError("config takes no arguments, or exactly 2: <key> <value>")
    return ConfigCommand(key=args[0], value=args[1])
