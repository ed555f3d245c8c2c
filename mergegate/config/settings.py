from __future__ import annotations

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mergegate.constants import DEFAULT_POLL_INTERVAL_S

# Load .env once at module import; all BaseSettings subclasses will see the env vars
load_dotenv()


def split_csv(raw: str) -> tuple[str, ...]:
    """Parse a comma-separated list, dropping blanks and duplicates, keeping order."""
    seen: dict[str, None] = {}
    for part in raw.split(","):
        part = part.strip()
        if part:
            seen.setdefault(part, None)
    return tuple(seen)


class JenkinsSettings(BaseSettings):
    """Build-status source settings. Env vars prefixed with JENKINS_."""

    model_config = SettingsConfigDict(env_prefix="JENKINS_")

    host: str = "http://localhost:8080"
    jobs: str = ""  # comma-separated, checked in this order every sweep
    timeout_s: float = Field(10.0, gt=0)

    @field_validator("host")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def job_names(self) -> tuple[str, ...]:
        return split_csv(self.jobs)


class GitHubSettings(BaseSettings):
    """Version-control host settings. Env vars prefixed with GITHUB_."""

    model_config = SettingsConfigDict(env_prefix="GITHUB_")

    token: str = ""
    org: str = "kubernetes"
    project: str = "kubernetes"
    api_url: str = "https://api.github.com"
    timeout_s: float = Field(10.0, gt=0)
    poll_interval_s: float = Field(DEFAULT_POLL_INTERVAL_S, gt=0)
    poll_max_attempts: int | None = Field(None, gt=0)

    @field_validator("api_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class GateSettings(BaseSettings):
    """Merge-gate policy settings. Env vars prefixed with GATE_."""

    model_config = SettingsConfigDict(env_prefix="GATE_")

    bypass_label: str = ""  # empty = every candidate is validated
    poll_interval_s: float = Field(DEFAULT_POLL_INTERVAL_S, gt=0)
    max_attempts: int | None = Field(None, gt=0)  # None = retry forever
    deadline_s: float | None = Field(None, gt=0)
    whitelist: str = ""  # comma-separated

    @property
    def whitelist_users(self) -> tuple[str, ...]:
        return split_csv(self.whitelist)


class GatewaySettings(BaseSettings):
    """Status server settings. Env vars prefixed with GATEWAY_."""

    model_config = SettingsConfigDict(env_prefix="GATEWAY_")

    host: str = "0.0.0.0"
    port: int = 8080


class LogSettings(BaseSettings):
    """Logging settings. Env vars prefixed with LOG_."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    json_output: bool = True
    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def _validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        v = v.upper()
        if v not in allowed:
            msg = f"LOG_LEVEL must be one of {sorted(allowed)} (got '{v}')"
            raise ValueError(msg)
        return v


class Settings(BaseSettings):
    """Root settings composing all sub-configurations."""

    model_config = SettingsConfigDict(extra="ignore")

    jenkins: JenkinsSettings = Field(default_factory=JenkinsSettings)
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    gate: GateSettings = Field(default_factory=GateSettings)
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    log: LogSettings = Field(default_factory=LogSettings)


def get_settings() -> Settings:
    """Load and validate settings. Raises ValidationError on invalid values."""
    return Settings()
