"""Configuration management for commitlog."""

from enum import StrEnum
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderFamily(StrEnum):
    """Supported source-control provider APIs."""

    GITHUB = "github"
    GITLAB = "gitlab"


class Settings(BaseSettings):
    """Application settings from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_prefix="COMMITLOG_",
        env_file=".env",
        extra="ignore",
    )

    provider: ProviderFamily = ProviderFamily.GITHUB
    github_base_url: str = "https://api.github.com"
    gitlab_base_url: str = "https://gitlab.com/api/v4"
    github_token: str = ""
    gitlab_token: str = ""
    data_dir: Path = Path("data")
    page_size: int = Field(default=100, ge=1, le=100)
    max_concurrency: int = Field(default=4, ge=1)
    timeout: float = 30.0
    max_retries: int = Field(default=3, ge=1)
    log_level: str = "INFO"
    heatmap_days: int = Field(default=365, ge=1)

    def base_url_for(self, provider: ProviderFamily) -> str:
        """Return the API base URL configured for a provider family."""
        if provider is ProviderFamily.GITLAB:
            return self.gitlab_base_url
        return self.github_base_url

    def token_for(self, provider: ProviderFamily) -> str:
        """Return the configured default token for a provider family."""
        if provider is ProviderFamily.GITLAB:
            return self.gitlab_token
        return self.github_token

    def store_dir_for(self, provider: ProviderFamily) -> Path:
        """Return the store directory for a provider family.

        Each family keeps its own projects, commits and daily counts.
        """
        return self.data_dir / provider.value


def get_settings() -> Settings:
    """Get application settings instance.

    Returns:
        Settings loaded from environment and .env file.
    """
    return Settings()
