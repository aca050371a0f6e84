from __future__ import annotations

from dataclasses import dataclass

"""Config dataclasses for the bulk agent import tool.

These are produced by config/loader.py after schema validation and defaults
have been applied.
"""

DEFAULT_BATCH_SIZE = 100
MAX_BATCH_SIZE = 500
MAX_UPLOAD_BYTES = 5 * 1024 * 1024
# 11 digits, leading 0 or 9 (local mobile format)
DEFAULT_MOBILE_PATTERN = r"^[09]\d{10}$"


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None
    port: int | None
    user: str | None
    password: str | None
    database: str | None
    dsn: str | None


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for the import process."""
    batch_size: int
    max_batch_size: int
    max_upload_bytes: int
    mobile_number_pattern: str
    code_allocation: str  # counter | lock | scan
    error_log_dir: str
    database: DatabaseConfig

    @staticmethod
    def defaults() -> ImportConfig:
        return ImportConfig(
            batch_size=DEFAULT_BATCH_SIZE,
            max_batch_size=MAX_BATCH_SIZE,
            max_upload_bytes=MAX_UPLOAD_BYTES,
            mobile_number_pattern=DEFAULT_MOBILE_PATTERN,
            code_allocation="counter",
            error_log_dir="logs",
            database=DatabaseConfig(None, None, None, None, None, None),
        )
