"""Shared pytest fixtures for all tests."""

import pytest

from clients.metadata_store import MetadataStore
from common.config import Config
from engine.crypto_codec import generate_key
from engine.file_manager import FileManager
from fakes import FakeBlobStore, FakeDocumentBase


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Returns:
        Path to temporary .distore directory
    """
    config_dir = tmp_path / '.distore'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """Config instance backed by a fresh file in the temporary directory."""
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def key():
    return generate_key()


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def metadata():
    return MetadataStore(files=FakeDocumentBase(), chunks=FakeDocumentBase())


@pytest.fixture
def file_manager(metadata, blob_store, key):
    """FileManager over in-memory services with a small chunk size."""
    return FileManager(
        metadata=metadata,
        blob_store=blob_store,
        key=key,
        chunk_size=10,
        upload_parallelism=2,
        download_parallelism=2,
        max_retries=2,
        retry_backoff=0,
    )


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a 25-byte sample file (three chunks at chunk_size=10).

    Returns:
        Path to sample file
    """
    file_path = tmp_path / 'sample.bin'
    file_path.write_bytes(bytes(range(25)))
    return file_path
