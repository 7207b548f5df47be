"""Configuration models describing planner settings."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PlannerBaseModel(BaseModel):
    """Shared configuration for planner Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class NextcloudSettings(PlannerBaseModel):
    """Remote share (Nextcloud WebDAV) configuration.

    Attributes:
        base_url: Origin of the Nextcloud server, or a pasted web-UI URL.
        dir: Root directory on the share that samples are crawled from.
        username: Account name used for WebDAV requests.
        app_password: App-scoped password or token.
        timeout_seconds: Per-request timeout for listings and file fetches.
        max_images: Maximum number of images collected by one crawl.
        max_depth: Maximum directory depth expanded below ``dir``.
        sample_limit: Maximum number of images returned to callers.
    """

    base_url: str = ""
    dir: str = ""
    username: str = ""
    app_password: str = ""
    timeout_seconds: float = 12.0
    max_images: int = 300
    max_depth: int = 6
    sample_limit: int = 200

    @property
    def is_configured(self) -> bool:
        """Return whether base URL, username, and password are all present."""
        return bool(self.base_url and self.username and self.app_password)


class LLMSettings(PlannerBaseModel):
    """Suggestion backend configuration.

    Attributes:
        api_base_url: Base URL of the responses-compatible completion API.
        api_key: Credential for the completion API.
        model: Primary vision-capable model identifier.
        fallback_model: Model retried once when the primary is not found.
        timeout_seconds: Timeout applied to each completion request.
    """

    api_base_url: str = "https://api.openai.com"
    api_key: Optional[str] = None
    model: str = "gpt-5.2-2025-12-11"
    fallback_model: Optional[str] = "gpt-4o-mini"
    timeout_seconds: float = 60.0


class ServerSettings(PlannerBaseModel):
    """HTTP server options.

    Attributes:
        host: Interface the server binds to.
        port: TCP port the server listens on.
        max_content_length_mb: Maximum accepted request body size.
    """

    host: str = "127.0.0.1"
    port: int = 8080
    max_content_length_mb: int = 25


class StorageSettings(PlannerBaseModel):
    """Persistence options.

    Attributes:
        state_dir: Directory holding the persisted plan queue.
    """

    state_dir: str = "~/.igplanner"


class LoggingSettings(PlannerBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file: Optional log file path; rotation applies when set.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    file: Optional[str] = None
    max_size_mb: int = 100
    backup_count: int = 5


class PlannerConfig(PlannerBaseModel):
    """Top-level configuration struct for the planner.

    Attributes:
        nextcloud: Remote share settings.
        llm: Suggestion backend settings.
        server: HTTP server settings.
        storage: Plan persistence settings.
        logging: Logging configuration.
    """

    nextcloud: NextcloudSettings = Field(default_factory=NextcloudSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


__all__ = [
    "PlannerBaseModel",
    "NextcloudSettings",
    "LLMSettings",
    "ServerSettings",
    "StorageSettings",
    "LoggingSettings",
    "PlannerConfig",
]
