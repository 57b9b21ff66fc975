"""Configuration management using Pydantic Settings."""

from enum import Enum
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from search_rebuilder.core.errors import ConfigurationError

# Load environment variables from .env file if it exists
# In containers/production, environment variables are set directly
ENV_FILE_OPT: str | None = None
DEFAULT_HTTP_TIMEOUT = 30.0

_env_path = Path(".env")
if _env_path.exists():
    load_dotenv(dotenv_path=_env_path)
    ENV_FILE_OPT = str(_env_path)


class SourceMode(str, Enum):
    """How the list of source URLs is produced."""

    MANIFEST = "manifest"
    RANGE = "range"


class KeyMode(str, Enum):
    """How storage object keys are derived."""

    CONTENT = "content"  # digest of the payload, duplicates collapse
    RANDOM = "random"  # fresh key per fetch


class StorageBackend(str, Enum):
    S3 = "s3"
    LOCAL = "local"


class Settings(BaseSettings):
    """Application configuration.

    Loads settings from environment variables. In local development, these can be
    provided via a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=ENV_FILE_OPT,
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    # Application
    app_name: str = "Search Rebuilder"
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    allowed_hosts: list[str] = Field(default=["*"], description="Allowed hosts for CORS")

    # Sources
    source_mode: SourceMode = Field(
        default=SourceMode.RANGE, description="Where source URLs come from"
    )
    manifest_url: Optional[str] = Field(
        default=None, description="URL returning a JSON array of source URLs"
    )
    source_url_template: str = Field(
        default="https://pokeapi.co/api/v2/pokemon/{n}",
        description="Range-mode URL template; {n} is replaced with 1..count",
    )
    default_count: Optional[int] = Field(
        default=None, description="Range-mode count used when the trigger supplies none"
    )

    # Storage
    storage_backend: StorageBackend = Field(default=StorageBackend.S3)
    storage_container: str = Field(
        default="index-storage", description="Bucket or directory holding staged documents"
    )
    storage_local_path: Path = Field(
        default=Path("./blob-storage"), description="Root directory for the local backend"
    )
    s3_region: Optional[str] = Field(default=None)
    s3_endpoint_url: Optional[str] = Field(
        default=None, description="Custom endpoint for S3-compatible services"
    )
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[SecretStr] = Field(default=None)
    key_mode: KeyMode = Field(default=KeyMode.CONTENT, description="Object key strategy")

    # Search service
    search_endpoint: Optional[str] = Field(
        default=None, description="Search service base URL, e.g. https://<name>.search.windows.net"
    )
    search_api_key: Optional[SecretStr] = Field(default=None, description="Search admin key")
    search_api_version: str = Field(default="2020-06-30")
    data_source_type: str = Field(
        default="azureblob", description="Data source type registered with the search service"
    )
    data_source_connection_string: Optional[SecretStr] = Field(
        default=None, description="Connection string the indexer uses to read the container"
    )
    definitions_path: Path = Field(
        default=Path("config/search"),
        description="Directory with index.json, indexer.json and optional datasource.json",
    )

    # Pipeline limits
    http_timeout: float = Field(
        default=DEFAULT_HTTP_TIMEOUT, description="Timeout for every network call (seconds)"
    )
    max_concurrent_fetches: int = Field(default=8, description="Concurrent fetch/upload limit")
    rebuild_timeout: Optional[float] = Field(
        default=None, description="Upper bound for a whole invocation (seconds)"
    )
    indexer_cooldown_seconds: int = Field(
        default=180, description="Minimum interval the service enforces between indexer runs"
    )


class RebuildConfig(BaseModel):
    """Validated, immutable configuration passed explicitly into the pipeline."""

    model_config = ConfigDict(frozen=True)

    source_mode: SourceMode = SourceMode.RANGE
    manifest_url: Optional[str] = None
    source_url_template: str = "https://pokeapi.co/api/v2/pokemon/{n}"
    default_count: Optional[int] = None

    storage_backend: StorageBackend = StorageBackend.LOCAL
    storage_container: str = "index-storage"
    storage_local_path: Path = Path("./blob-storage")
    s3_region: Optional[str] = None
    s3_endpoint_url: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[SecretStr] = None
    key_mode: KeyMode = KeyMode.CONTENT

    search_endpoint: Optional[str] = None
    search_api_key: Optional[SecretStr] = None
    search_api_version: str = "2020-06-30"
    data_source_type: str = "azureblob"
    data_source_connection_string: Optional[SecretStr] = None
    definitions_path: Path = Path("config/search")

    http_timeout: float = Field(default=DEFAULT_HTTP_TIMEOUT, gt=0)
    max_concurrent_fetches: int = Field(default=8, ge=1)
    rebuild_timeout: Optional[float] = Field(default=None, gt=0)
    indexer_cooldown_seconds: int = Field(default=180, ge=0)

    @model_validator(mode="after")
    def _check_source_mode(self) -> "RebuildConfig":
        if self.source_mode == SourceMode.MANIFEST and not self.manifest_url:
            raise ValueError("manifest_url is required when source_mode is 'manifest'")
        if "{n}" not in self.source_url_template:
            raise ValueError("source_url_template must contain an {n} placeholder")
        if self.default_count is not None and self.default_count < 1:
            raise ValueError("default_count must be a positive integer")
        return self

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None) -> "RebuildConfig":
        """Build and validate the pipeline config once, at startup."""
        source = source or settings
        try:
            return cls(**{name: getattr(source, name) for name in cls.model_fields})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid rebuild configuration: {e}") from e


# Global settings instance
settings = Settings()
