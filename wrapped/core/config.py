"""Application configuration via environment variables."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_PAT = "your-personal-access-token-here"


def split_csv(value: str | None) -> list[str]:
    """Split a comma-separated value, dropping blanks."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings(BaseSettings):
    """Service-wide configuration options."""

    api_v1_prefix: str = "/v1"
    environment: str = "development"

    organization: str | None = None
    projects: str | None = None
    project: str | None = None
    repository: str | None = None
    pat: str | None = None
    user_email: str | None = None
    year: int = datetime.now(timezone.utc).year

    base_url: str = "https://dev.azure.com"
    identity_base_url: str = "https://vssps.dev.azure.com"
    api_version: str = "7.0"
    identity_api_version: str = "7.1"
    http_timeout_seconds: float = 30.0

    include_commits: bool = True
    include_pull_requests: bool = True
    include_work_items: bool = True
    include_change_counts: bool = False

    commit_branch_candidates: str = "master,main"
    pull_request_target_branches: str = "master,main,dev"
    page_size: int = 100
    work_item_batch_size: int = 200
    commit_change_limit: int = 1000

    cache_backend: str = "off"
    cache_path: str = ".ado-cache"
    redis_url: str = "redis://localhost:6379/0"

    weekend_threshold: float = 30.0
    night_threshold: float = 25.0
    morning_threshold: float = 20.0

    otel_enabled: bool = False
    otel_exporter: str = "console"
    otel_otlp_endpoint: str | None = None

    model_config = SettingsConfigDict(env_prefix="ado_", env_file=".env", extra="ignore")

    @property
    def is_production(self) -> bool:
        return self.environment.lower().strip() == "production"

    def project_list(self) -> list[str]:
        """Projects from ADO_PROJECTS, falling back to the legacy ADO_PROJECT."""
        projects = split_csv(self.projects)
        if projects:
            return projects
        if self.project and self.project.strip():
            return [self.project.strip()]
        return []

    def branch_candidates(self) -> list[str]:
        return split_csv(self.commit_branch_candidates)

    def target_branches(self) -> list[str]:
        return split_csv(self.pull_request_target_branches)

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        if not self.organization:
            errors.append("ADO_ORGANIZATION is required")
        if not self.project_list():
            errors.append("ADO_PROJECTS (or ADO_PROJECT) is required")
        if not self.repository:
            errors.append("ADO_REPOSITORY is required")
        if not self.pat:
            errors.append("ADO_PAT is required")
        elif self.pat == PLACEHOLDER_PAT:
            errors.append("ADO_PAT must be set to a valid Personal Access Token")
        if self.year < 2000 or self.year > 2100:
            errors.append("ADO_YEAR must be a valid year")
        return errors


settings = Settings()
