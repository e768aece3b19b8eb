"""Command handler functions for CLI operations."""

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

from common.config import Config, default_config_path
from common.exceptions import ChunkTransferError, DistoreError
from common.logging_config import get_logger
from common.types import FileRecord
from cli.constants import SECRET_CONFIG_KEYS
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
from cli.utils import ProgressPrinter, format_file_size
from engine.file_manager import FileManager

logger = get_logger(__name__)

T = TypeVar("T")

_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get or load the global Config instance.

    Returns:
        Config instance
    """
    global _config
    if _config is None:
        logger.debug("Loading configuration")
        _config = Config(default_config_path())
    return _config


def _run(operation: Callable[[FileManager], Awaitable[T]], manager: Optional[FileManager]) -> T:
    """
    Run an async operation against a FileManager on a fresh event loop.

    A manager built here is closed afterwards; an injected one is left open.
    """
    async def runner() -> T:
        file_manager = manager if manager is not None else FileManager.from_config(get_config())
        try:
            return await operation(file_manager)
        finally:
            if manager is None:
                await file_manager.close()

    return asyncio.run(runner())


def _format_error(error: Exception) -> str:
    if isinstance(error, ChunkTransferError):
        if error.incomplete_file is not None:
            return (
                f"Error: {error}\nSome chunks were stored; run "
                f"'delete {error.incomplete_file.virtual_path}' before uploading again."
            )
        return f"Error: {error}\nThe command can be run again."
    return f"Error: {error}"


def _format_file_line(file: FileRecord) -> str:
    return f"  - {file.virtual_path} (ID: {file.id}, Size: {format_file_size(file.size)})"


def _format_file_list(files: list[FileRecord], empty_message: str) -> str:
    if not files:
        return empty_message
    lines = [f"Found {len(files)} file(s):"]
    lines.extend(_format_file_line(file) for file in files)
    return "\n".join(lines)


def handle_upload(cmd: UploadCommand, manager: Optional[FileManager] = None) -> str:
    """
    Handle 'upload' command.

    Args:
        cmd: UploadCommand with local_path and remote_dir
        manager: Optional FileManager for dependency injection (testing)

    Returns:
        Success or error message
    """
    path = Path(cmd.local_path).expanduser()
    if not path.exists():
        return f"Error: File not found: {cmd.local_path}"
    if not path.is_file():
        return f"Error: Not a file: {cmd.local_path}"

    logger.info(f"Executing upload command: {path} -> {cmd.remote_dir}")
    progress = ProgressPrinter(f"Uploading {path.name}")

    try:
        file = _run(lambda fm: fm.upload_file(str(path), cmd.remote_dir, observer=progress), manager)
    except (DistoreError, OSError, ValueError) as e:
        logger.debug(f"Upload of {path} failed: {e}")
        return _format_error(e)

    return (
        f"Uploaded: {path.name} -> {file.virtual_path}\n"
        f"File ID: {file.id}\n"
        f"Size: {format_file_size(file.size)}"
    )


def handle_download(cmd: DownloadCommand, manager: Optional[FileManager] = None) -> str:
    """
    Handle 'download' command.

    Args:
        cmd: DownloadCommand with target and optional output_path
        manager: Optional FileManager for dependency injection (testing)

    Returns:
        Success or error message
    """
    logger.info(f"Executing download command: target={cmd.target} output_path={cmd.output_path}")
    progress = ProgressPrinter(f"Downloading {cmd.target}")

    async def download(fm: FileManager):
        file = await fm.resolve(cmd.target)
        if file is None:
            return None, None
        destination = _destination_for(file, cmd.output_path)
        await fm.download_file(file.id, str(destination), observer=progress)
        return file, destination

    try:
        file, destination = _run(download, manager)
    except (DistoreError, OSError, ValueError) as e:
        logger.debug(f"Download of {cmd.target} failed: {e}")
        return _format_error(e)

    if file is None:
        return f"Error: File not found: {cmd.target}"
    return (
        f"Downloaded: {file.virtual_path} ({format_file_size(file.size)})\n"
        f"Saved to: {destination.resolve()}"
    )


def _destination_for(file: FileRecord, output_path: Optional[str]) -> Path:
    if output_path is None:
        return Path.cwd() / file.name
    destination = Path(output_path).expanduser()
    if destination.is_dir():
        return destination / file.name
    return destination


def handle_delete(cmd: DeleteCommand, manager: Optional[FileManager] = None) -> str:
    """
    Handle 'delete' command.

    Args:
        cmd: DeleteCommand with target
        manager: Optional FileManager for dependency injection (testing)

    Returns:
        Success or error message
    """
    async def delete(fm: FileManager):
        file = await fm.resolve(cmd.target)
        if file is None:
            return None
        await fm.delete_file(file.id)
        return file

    try:
        file = _run(delete, manager)
    except (DistoreError, OSError, ValueError) as e:
        logger.debug(f"Delete of {cmd.target} failed: {e}")
        return _format_error(e)

    if file is None:
        return f"Error: File not found: {cmd.target}"
    return f"Deleted: {file.virtual_path} (ID: {file.id})"


def handle_list(cmd: ListCommand, manager: Optional[FileManager] = None) -> str:
    """
    Handle 'list' command.

    Args:
        cmd: ListCommand with optional dir_path
        manager: Optional FileManager for dependency injection (testing)

    Returns:
        Formatted list of files
    """
    logger.info(f"Executing list command: dir={cmd.dir_path}")
    try:
        files = _run(lambda fm: fm.list_files(cmd.dir_path), manager)
    except (DistoreError, OSError, ValueError) as e:
        return _format_error(e)

    where = f"in {cmd.dir_path}" if cmd.dir_path else "in the store"
    return _format_file_list(files, f"No files found {where}")


def handle_search(cmd: SearchCommand, manager: Optional[FileManager] = None) -> str:
    """Handle 'search' command."""
    logger.info(f"Executing search command: text={cmd.text!r}")
    try:
        files = _run(lambda fm: fm.search_files(cmd.text), manager)
    except (DistoreError, OSError, ValueError) as e:
        return _format_error(e)

    return _format_file_list(files, f"No files found matching: {cmd.text}")


def handle_info(cmd: InfoCommand, manager: Optional[FileManager] = None) -> str:
    """
    Handle 'info' command.

    Shows the file record followed by one line per chunk.
    """
    async def info(fm: FileManager):
        file = await fm.resolve(cmd.target)
        if file is None:
            return None, []
        return file, await fm.metadata.get_chunks(file.id)

    try:
        file, chunks = _run(info, manager)
    except (DistoreError, OSError, ValueError) as e:
        return _format_error(e)

    if file is None:
        return f"Error: File not found: {cmd.target}"

    lines = [
        f"Path: {file.virtual_path}",
        f"ID: {file.id}",
        f"Size: {format_file_size(file.size)} ({file.size} bytes)",
        f"Chunks: {len(chunks)}",
    ]
    for chunk in chunks:
        lines.append(
            f"  [{chunk.index}] bytes {chunk.range.start}-{chunk.range.end} "
            f"({format_file_size(chunk.size)}) message={chunk.remote_message_id}"
        )
    return "\n".join(lines)


def handle_serve(cmd: ServeCommand) -> str:
    """
    Handle 'serve' command.

    Blocks until the server is stopped.
    """
    # imported here so plain file commands do not load the web stack
    from server.main import run_server

    logger.info(f"Executing serve command: port={cmd.port}")
    try:
        run_server(port=cmd.port)
    except DistoreError as e:
        return _format_error(e)
    return "Server stopped"


def handle_config(cmd: ConfigCommand, config: Optional[Config] = None) -> str:
    """
    Handle 'config' command.

    Without arguments prints every value, secrets masked. With a key and a
    value, updates and saves that key.
    """
    if config is None:
        try:
            config = get_config()
        except DistoreError as e:
            return _format_error(e)

    if cmd.key is None:
        lines = [f"Config file: {config.config_path}"]
        for name in sorted(config.data):
            lines.append(f"  {name}: {_mask(name, config.data[name])}")
        return "\n".join(lines)

    try:
        config.set_value(cmd.key, cmd.value)
    except (DistoreError, ValueError) as e:
        return _format_error(e)
    return f"Updated {cmd.key}"


def _mask(name: str, value) -> str:
    if value is None:
        return "(not set)"
    if name in SECRET_CONFIG_KEYS:
        text = str(value)
        return f"{text[:6]}...({len(text)} chars)" if len(text) > 6 else "***"
    return str(value)
