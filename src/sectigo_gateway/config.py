"""
Configuration — typed, validated settings loaded from environment/.env.

Uses pydantic-settings to:
  - Load from environment variables (12-factor app)
  - Fall back to .env file
  - Validate types and constraints at startup
  - Keep secrets out of source control

Architecture: Only AppSettings is a BaseSettings instance. Sub-settings are plain
BaseModel classes populated by AppSettings via env_nested_delimiter="__", so the env
var API__ENDPOINT maps to api.endpoint, SYNC__PAGE_SIZE maps to sync.page_size, etc.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sectigo_gateway.domain.models import SyncOptions

_ENV_FILE = Path(__file__).parent.parent.parent / ".env"

MAX_PAGE_SIZE = 200


class ApiSettings(BaseModel):
    """
    Certificate Manager REST API access.

    auth_type "password" sends the password header; "certificate" presents the
    client certificate (PEM, optionally with a separate key file) instead.
    """

    endpoint: str = Field(description="Base URL, e.g. https://cert-manager.com/")
    auth_type: Literal["password", "certificate"] = Field(default="password")
    customer_uri: str = Field(description="Customer URI header value")
    username: str = Field(description="API login")
    password: SecretStr | None = Field(default=None)
    client_cert_path: str | None = Field(default=None)
    client_key_path: str | None = Field(default=None)

    @model_validator(mode="after")
    def check_credentials(self) -> ApiSettings:
        if self.auth_type == "password" and self.password is None:
            raise ValueError("API__PASSWORD is required for password authentication")
        if self.auth_type == "certificate" and not self.client_cert_path:
            raise ValueError(
                "API__CLIENT_CERT_PATH is required for certificate authentication"
            )
        return self


class SyncSettings(BaseModel):
    """
    Synchronization cycle knobs.

    filter maps a listing query dimension to the values to sweep, e.g.
    {"status": ["Issued", "Revoked"]} runs two sweeps. Empty means one
    unfiltered sweep.
    """

    page_size: int = Field(default=25, ge=1)
    filter: dict[str, list[str]] = Field(default_factory=dict)
    force_complete_sync: bool = Field(default=False)
    queue_capacity: int = Field(default=100, ge=1)
    put_timeout_seconds: float = Field(default=0.05, gt=0)

    @field_validator("page_size")
    @classmethod
    def clamp_page_size(cls, value: int) -> int:
        return min(value, MAX_PAGE_SIZE)

    @field_validator("filter")
    @classmethod
    def reject_empty_dimensions(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        empty = [dimension for dimension, values in value.items() if not values]
        if empty:
            raise ValueError(f"Sync filter dimensions need at least one value: {empty}")
        return value

    def to_options(self) -> SyncOptions:
        return SyncOptions(
            page_size=self.page_size,
            sync_filter={k: list(v) for k, v in self.filter.items()},
            force_complete_sync=self.force_complete_sync,
            queue_capacity=self.queue_capacity,
            put_timeout_seconds=self.put_timeout_seconds,
        )


class PickupSettings(BaseModel):
    """Retry policy for collecting freshly issued certificates."""

    retries: int = Field(default=3, ge=1)
    delay_seconds: float = Field(default=10.0, ge=0)
    settle_delay_seconds: float = Field(default=5.0, ge=0)


class EnrollmentSettings(BaseModel):
    external_requester_field_name: str | None = Field(
        default=None,
        description="Enrollment field whose value is sent as externalRequester",
    )


class DatabaseSettings(BaseModel):
    """
    PostgreSQL connection configuration.

    Accepts either a full connection string via DATABASE__DSN or individual
    components (host, port, name, username, password). The DSN wins when both
    are provided.
    """

    dsn: SecretStr | None = Field(default=None)
    host: str | None = Field(default=None)
    port: int = Field(default=5432, ge=1, le=65535)
    name: str | None = Field(default=None)
    username: str | None = Field(default=None)
    password: SecretStr | None = Field(default=None)

    @model_validator(mode="after")
    def resolve_dsn(self) -> DatabaseSettings:
        if self.dsn is not None:
            return self
        missing = [
            f
            for f, v in [
                ("DATABASE__HOST", self.host),
                ("DATABASE__NAME", self.name),
                ("DATABASE__USERNAME", self.username),
                ("DATABASE__PASSWORD", self.password),
            ]
            if not v
        ]
        if missing:
            raise ValueError("Set DATABASE__DSN or provide all of: " + ", ".join(missing))
        dsn_value = (
            f"postgresql://{self.username}:{self.password.get_secret_value()}"  # type: ignore[union-attr]
            f"@{self.host}:{self.port}/{self.name}"
        )
        object.__setattr__(self, "dsn", SecretStr(dsn_value))
        return self

    def get_dsn(self) -> str:
        assert self.dsn is not None  # guaranteed by resolve_dsn
        return self.dsn.get_secret_value()


class SchedulerSettings(BaseModel):
    """
    Standard 5-field cron expression (minute hour day-of-month month day-of-week).

      "0 */6 * * *"  — every 6 hours (default)
      "*/30 * * * *" — every 30 minutes
    """

    cron: str = Field(default="0 */6 * * *")

    @field_validator("cron")
    @classmethod
    def validate_cron(cls, value: str) -> str:
        fields = value.strip().split()
        if len(fields) != 5:
            raise ValueError(
                f"Cron expression must have exactly 5 fields "
                f"(minute hour dom month dow), got {len(fields)}: {value!r}"
            )
        return value.strip()


class AppSettings(BaseSettings):
    """
    Root application settings.

    Load order (highest priority first): environment variables, .env file, defaults.
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    api: ApiSettings
    database: DatabaseSettings
    sync: SyncSettings = Field(default_factory=lambda: SyncSettings())
    pickup: PickupSettings = Field(default_factory=lambda: PickupSettings())
    enrollment: EnrollmentSettings = Field(default_factory=lambda: EnrollmentSettings())
    scheduler: SchedulerSettings = Field(default_factory=lambda: SchedulerSettings())

    http_timeout_seconds: int = Field(default=60, ge=1)
    run_on_startup: bool = Field(default=True)
    log_level: str = Field(default="INFO")
