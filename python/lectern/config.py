"""Application settings loaded from environment variables.

Environment Configuration:
    LECTERN_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: SQLAlchemy connection string (defaults to a local SQLite file)

Storage Configuration:
    STORAGE_BACKEND: Where uploaded files live (local | memory)
    STORAGE_ROOT: Root directory for the local backend
    IMAGE_ROUTE_TEMPLATE: URL template for embedded chapter images; must
        contain "{source_id}"

Upload / Archive Limits:
    MAX_UPLOAD_BYTES: Largest accepted upload
    MAX_ARCHIVE_ENTRIES, MAX_ARCHIVE_TOTAL_UNCOMPRESSED_BYTES,
    MAX_ARCHIVE_SINGLE_ENTRY_UNCOMPRESSED_BYTES, MAX_ARCHIVE_COMPRESSION_RATIO:
        Archive safety gate. Overrides may only tighten the defaults.

Logging:
    LOG_JSON: Emit JSON logs (default true)
    LOG_LEVEL: Root log level (default INFO)
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

# Archive safety ceilings. Environment overrides must stay at or below these.
DEFAULT_MAX_ARCHIVE_ENTRIES = 10_000
DEFAULT_MAX_ARCHIVE_TOTAL_UNCOMPRESSED_BYTES = 512 * 1024 * 1024
DEFAULT_MAX_ARCHIVE_SINGLE_ENTRY_UNCOMPRESSED_BYTES = 64 * 1024 * 1024
DEFAULT_MAX_ARCHIVE_COMPRESSION_RATIO = 100


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class StorageBackend(str, Enum):
    """Storage provider implementations."""

    LOCAL = "local"
    MEMORY = "memory"


class Settings(BaseSettings):
    """Application configuration.

    Settings are loaded from environment variables.
    Validation rules:
    - Archive safety limits must be positive and no weaker than the defaults
    - IMAGE_ROUTE_TEMPLATE must contain a {source_id} placeholder
    """

    lectern_env: Environment = Field(default=Environment.LOCAL, alias="LECTERN_ENV")
    database_url: str = Field(default="sqlite+pysqlite:///./lectern.db", alias="DATABASE_URL")

    # Storage settings
    storage_backend: StorageBackend = Field(default=StorageBackend.LOCAL, alias="STORAGE_BACKEND")
    storage_root: str = Field(default="./uploads", alias="STORAGE_ROOT")
    image_route_template: str = Field(
        default="/api/sources/{source_id}/image", alias="IMAGE_ROUTE_TEMPLATE"
    )

    # Upload limits
    max_upload_bytes: int = Field(default=50 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")  # 50 MB

    # Archive safety gate
    max_archive_entries: int = Field(
        default=DEFAULT_MAX_ARCHIVE_ENTRIES, alias="MAX_ARCHIVE_ENTRIES"
    )
    max_archive_total_uncompressed_bytes: int = Field(
        default=DEFAULT_MAX_ARCHIVE_TOTAL_UNCOMPRESSED_BYTES,
        alias="MAX_ARCHIVE_TOTAL_UNCOMPRESSED_BYTES",
    )
    max_archive_single_entry_uncompressed_bytes: int = Field(
        default=DEFAULT_MAX_ARCHIVE_SINGLE_ENTRY_UNCOMPRESSED_BYTES,
        alias="MAX_ARCHIVE_SINGLE_ENTRY_UNCOMPRESSED_BYTES",
    )
    max_archive_compression_ratio: int = Field(
        default=DEFAULT_MAX_ARCHIVE_COMPRESSION_RATIO, alias="MAX_ARCHIVE_COMPRESSION_RATIO"
    )

    # Logging
    log_json: bool = Field(default=True, alias="LOG_JSON")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    @model_validator(mode="after")
    def validate_limits(self) -> "Settings":
        """Reject archive limits weaker than the baseline and malformed templates."""
        floors = [
            ("MAX_ARCHIVE_ENTRIES", self.max_archive_entries, DEFAULT_MAX_ARCHIVE_ENTRIES),
            (
                "MAX_ARCHIVE_TOTAL_UNCOMPRESSED_BYTES",
                self.max_archive_total_uncompressed_bytes,
                DEFAULT_MAX_ARCHIVE_TOTAL_UNCOMPRESSED_BYTES,
            ),
            (
                "MAX_ARCHIVE_SINGLE_ENTRY_UNCOMPRESSED_BYTES",
                self.max_archive_single_entry_uncompressed_bytes,
                DEFAULT_MAX_ARCHIVE_SINGLE_ENTRY_UNCOMPRESSED_BYTES,
            ),
            (
                "MAX_ARCHIVE_COMPRESSION_RATIO",
                self.max_archive_compression_ratio,
                DEFAULT_MAX_ARCHIVE_COMPRESSION_RATIO,
            ),
        ]
        for name, value, ceiling in floors:
            if value < 1:
                raise ValueError(f"{name} must be >= 1 (got {value})")
            if value > ceiling:
                raise ValueError(f"{name}={value} is weaker than the baseline limit {ceiling}")

        if self.max_upload_bytes < 1:
            raise ValueError(f"MAX_UPLOAD_BYTES must be >= 1 (got {self.max_upload_bytes})")

        if "{source_id}" not in self.image_route_template:
            raise ValueError("IMAGE_ROUTE_TEMPLATE must contain a {source_id} placeholder")

        return self

    def image_route(self, source_id: object) -> str:
        """Image route for one source, without the query string."""
        return self.image_route_template.format(source_id=source_id)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
