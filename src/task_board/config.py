"""Configuration for TaskBoard."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Application configuration.

    Every field can be overridden from the environment (e.g. ``PORT=9000``,
    ``SESSIONS_DIR=/var/lib/agent/sessions``).
    """

    data_root: Path = Field(default=Path("data"))
    sessions_dir: Path = Field(
        default_factory=lambda: Path.home() / ".openclaw" / "agents" / "main" / "sessions"
    )
    default_project: str = Field(default="clawkanban")
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8008)
    cost_cache_ttl: float = Field(default=30.0)  # seconds
    debounce_seconds: float = Field(default=0.3)
    watch_enabled: bool = Field(default=True)
    static_dir: Path | None = Field(default=None)  # built board UI, optional
