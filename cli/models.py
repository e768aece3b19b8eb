"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class UploadCommand:
    """Upload a local file into a virtual directory."""

    local_path: str
    remote_dir: str = "/"
    command: Literal["upload"] = "upload"


@dataclass(frozen=True)
class DownloadCommand:
    """Download file by id or virtual path."""

    target: str
    output_path: str | None = None
    command: Literal["download"] = "download"


@dataclass(frozen=True)
class DeleteCommand:
    """Delete file by id or virtual path."""

    target: str
    command: Literal["delete"] = "delete"


@dataclass(frozen=True)
class ListCommand:
    """List files of a directory, or all files."""

    dir_path: str | None = None
    command: Literal["list"] = "list"


@dataclass(frozen=True)
class SearchCommand:
    """Search files by name."""

    text: str
    command: Literal["search"] = "search"


@dataclass(frozen=True)
class InfoCommand:
    """Show a file record and its chunk list."""

    target: str
    command: Literal["info"] = "info"


@dataclass(frozen=True)
class ServeCommand:
    """Start the range server."""

    port: int | None = None
    command: Literal["serve"] = "serve"


@dataclass(frozen=True)
class ConfigCommand:
    """Show configuration or set a single key."""

    key: str | None = None
    value: str | None = None
    command: Literal["config"] = "config"


CommandRequest = (
    UploadCommand
    | DownloadCommand
    | DeleteCommand
    | ListCommand
    | SearchCommand
    | InfoCommand
    | ServeCommand
    | ConfigCommand
)
