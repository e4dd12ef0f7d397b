"""Settings for the HTTP adapter."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseSettings):
    """Process-level settings of the REST API.

    Only what the HTTP layer itself needs lives here. Planner, reasoning and
    retention settings are read by ``OrchestratorConfig``.
    """

    definition_path: Path | None = Field(
        default=None,
        validation_alias="ORCHESTRATOR_DEFINITION_PATH",
        description="Pipeline definition loaded once at startup.",
    )

    # Triage front-ends are usually served from another origin.
    cors_origins: str = Field(
        default="",
        validation_alias="ORCHESTRATOR_CORS_ORIGINS",
        description="Comma-separated browser origins allowed to call the API; empty disables CORS.",
    )

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    def parsed_cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]
