"""Project-wide constants (chunk sizing, parallelism, payload layout)."""

CHUNK_SIZE_BYTES: int = 24 * 1024 * 1024  # 24 MiB, fits under the webhook attachment ceiling
MAX_ATTACHMENT_BYTES: int = 25 * 1024 * 1024

DEFAULT_PARALLEL_UPLOADS: int = 3
DEFAULT_PARALLEL_DOWNLOADS: int = 3

KEY_SIZE_BYTES: int = 32
NONCE_SIZE_BYTES: int = 12
TAG_SIZE_BYTES: int = 16
PAYLOAD_HEADER_BYTES: int = NONCE_SIZE_BYTES + TAG_SIZE_BYTES

FILES_BASE_NAME: str = "files"
CHUNKS_BASE_NAME: str = "file_chunks"

DEFAULT_METADATA_URL: str = "https://database.deta.sh/v1"
DEFAULT_SERVER_PORT: int = 3000

DISK_READ_BLOCK_BYTES: int = 1024 * 1024
