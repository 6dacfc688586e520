"""Constants shared across the patcher service modules."""

from __future__ import annotations

GITHUB_API_BASE = "https://api.github.com"

MANIFEST_ASSET_NAME = "manifest"
PACKAGE_CONTENT_TYPE = "application/zip"
MANIFEST_SEPARATOR = "  "
DIGEST_LENGTH = 64

HASH_CHUNK_SIZE = 65536
STAGING_DIR_PREFIX = "tree-patcher-"

DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_REQUEST_RETRIES = 2
DEFAULT_RETRY_BACKOFF = 1.0
RETRYABLE_HTTP_STATUSES = frozenset({408, 429, 500, 502, 503, 504})
DEFAULT_MAX_UPDATE_PASSES = 3

MAX_ARCHIVE_TOTAL_BYTES = 4 * 1024 * 1024 * 1024  # 4 GiB
MAX_ARCHIVE_FILE_SIZE = 2 * 1024 * 1024 * 1024  # 2 GiB per file
MAX_ARCHIVE_ENTRIES = 50000
MAX_COMPRESSION_RATIO = 100  # Uncompressed vs compressed bytes

LOCAL_RELEASE_ENV = "PATCHER_LOCAL_RELEASE_DIR"
DESTINATION_ROOT_ENV = "PATCHER_DESTINATION_ROOT"
GITHUB_TOKEN_ENV = "PATCHER_GITHUB_TOKEN"
