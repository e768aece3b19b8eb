"""Configuration management for Distore (JSON file in the user's home directory)."""

import json
import os
import shutil
from pathlib import Path
from typing import Any, Optional

from common.constants import (
    CHUNK_SIZE_BYTES,
    DEFAULT_METADATA_URL,
    DEFAULT_PARALLEL_DOWNLOADS,
    DEFAULT_PARALLEL_UPLOADS,
    DEFAULT_SERVER_PORT,
    MAX_ATTACHMENT_BYTES,
    PAYLOAD_HEADER_BYTES,
)
from common.exceptions import ConfigurationError
from common.logging_config import get_logger
from engine.crypto_codec import decode_key, encode_key, generate_key

logger = get_logger(__name__)

REQUIRED_FIELDS = ("webhook", "deta_project_key", "encryption_key")


def default_config_path() -> Path:
    """Config path from DISTORE_CONFIG, else ~/.distore/config.json."""
    override = os.environ.get("DISTORE_CONFIG")
    if override:
        return Path(override)
    return Path.home() / ".distore" / "config.json"


class Config:
    """Manages Distore configuration stored in a JSON file."""

    DEFAULT_CONFIG = {
        "webhook": None,
        "deta_project_key": None,
        "metadata_url": DEFAULT_METADATA_URL,
        "chunk_size": CHUNK_SIZE_BYTES,
        "parallel_uploads": DEFAULT_PARALLEL_UPLOADS,
        "parallel_downloads": DEFAULT_PARALLEL_DOWNLOADS,
        "timeout": 60,
        "max_retries": 3,
        "retry_backoff_multiplier": 2,
        "server_host": "127.0.0.1",
        "server_port": DEFAULT_SERVER_PORT,
    }

    INT_FIELDS = (
        "chunk_size",
        "parallel_uploads",
        "parallel_downloads",
        "timeout",
        "max_retries",
        "retry_backoff_multiplier",
        "server_port",
    )

    def __init__(self, config_path: Path):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.distore/config.json)

        Raises:
            ConfigurationError: If an existing config file cannot be parsed
        """
        self.config_path = config_path
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating it with a fresh encryption key if missing.

        Returns:
            Configuration dictionary
        """
        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
            except (json.JSONDecodeError, IOError) as e:
                backup_path = self.config_path.with_suffix('.json.bak')
                shutil.copy(self.config_path, backup_path)
                raise ConfigurationError(
                    f"Config file {self.config_path} is unreadable ({e}); "
                    f"a copy was saved to {backup_path}"
                ) from e
            if not isinstance(data, dict):
                raise ConfigurationError(f"Config file {self.config_path} must contain a JSON object")
            config = self.DEFAULT_CONFIG.copy()
            config.update(data)
            return config

        config = self.DEFAULT_CONFIG.copy()
        config["encryption_key"] = encode_key(generate_key())
        with open(self.config_path, 'w') as f:
            json.dump(config, f, indent=2)
        logger.info(f"Initialized configuration file at {self.config_path} with new encryption key")
        return config

    def save(self) -> None:
        """Save current configuration to file."""
        with open(self.config_path, 'w') as f:
            json.dump(self.data, f, indent=2)

    def get(self, name: str, default: Any = None) -> Any:
        value = self.data.get(name)
        return default if value is None else value

    def set_value(self, name: str, value: str) -> None:
        """
        Set a configuration value from its string form and save to file.

        Args:
            name: Configuration key
            value: New value; integer fields are converted

        Raises:
            ConfigurationError: If the key is unknown or the value has the wrong type
        """
        known = set(self.DEFAULT_CONFIG) | set(REQUIRED_FIELDS)
        if name not in known:
            raise ConfigurationError(f"Unknown configuration key: {name}")

        if name in self.INT_FIELDS:
            try:
                parsed: Any = int(value)
            except ValueError:
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
        else:
            parsed = value

        if name == "encryption_key":
            decode_key(parsed)

        self.data[name] = parsed
        self.save()

    def validate(self) -> None:
        """
        Check that every required field is present and well-formed.

        Raises:
            ConfigurationError: Listing all missing fields, or describing a malformed one
        """
        missing = [name for name in REQUIRED_FIELDS if not self.data.get(name)]
        if missing:
            raise ConfigurationError(
                f"Missing required configuration field(s) {', '.join(missing)} in {self.config_path}"
            )

        self.get_encryption_key()

        if self.get_chunk_size() <= 0:
            raise ConfigurationError("chunk_size must be positive")
        if self.get_chunk_size() + PAYLOAD_HEADER_BYTES > MAX_ATTACHMENT_BYTES:
            raise ConfigurationError(
                f"chunk_size {self.get_chunk_size()} exceeds the attachment limit of {MAX_ATTACHMENT_BYTES} bytes"
            )
        for name in ("parallel_uploads", "parallel_downloads"):
            if int(self.get(name)) < 1:
                raise ConfigurationError(f"{name} must be at least 1")

    def get_webhook_url(self) -> Optional[str]:
        return self.data.get('webhook')

    def get_project_key(self) -> Optional[str]:
        return self.data.get('deta_project_key')

    def get_metadata_url(self) -> str:
        return self.get('metadata_url', DEFAULT_METADATA_URL)

    def get_encryption_key(self) -> bytes:
        """
        Get the symmetric key as raw bytes.

        Raises:
            ConfigurationError: If the key is missing or not a valid 256-bit key
        """
        encoded = self.data.get('encryption_key')
        if not encoded:
            raise ConfigurationError(f"No encryption key found in {self.config_path}")
        try:
            return decode_key(encoded)
        except ValueError as e:
            raise ConfigurationError(f"Invalid encryption key in {self.config_path}: {e}") from e

    def get_chunk_size(self) -> int:
        return int(self.get('chunk_size', CHUNK_SIZE_BYTES))

    def get_parallelism(self) -> dict:
        """
        Get transfer parallelism.

        Returns:
            Dictionary with 'uploads' and 'downloads'
        """
        return {
            'uploads': int(self.get('parallel_uploads', DEFAULT_PARALLEL_UPLOADS)),
            'downloads': int(self.get('parallel_downloads', DEFAULT_PARALLEL_DOWNLOADS)),
        }

    def get_timeout(self) -> int:
        return int(self.get('timeout', 60))

    def get_retry_config(self) -> dict:
        """
        Get retry configuration.

        Returns:
            Dictionary with 'max_retries' and 'retry_backoff_multiplier'
        """
        return {
            'max_retries': int(self.get('max_retries', 3)),
            'retry_backoff_multiplier': int(self.get('retry_backoff_multiplier', 2)),
        }

    def get_server_address(self) -> tuple[str, int]:
        return self.get('server_host', '127.0.0.1'), int(self.get('server_port', DEFAULT_SERVER_PORT))
