"""Application configuration via environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration for the signature audit service."""

    # Application
    app_name: str = "Signature Audit"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = Field(default="development", pattern=r"^(development|staging|production)$")
    log_level: str = "INFO"
    log_format: str = Field(default="json", pattern=r"^(json|console)$")

    # API
    api_prefix: str = "/api"
    allowed_origins: str = "http://localhost:3000"
    rate_limit_default: str = "100/minute"
    rate_limit_burst: str = "200/minute"

    # Embedded record store (overrides, templates, signature history)
    database_url: str = "sqlite:///./data/sigaudit.db"
    database_echo: bool = False

    # Identity directory (client-credentials app registration)
    tenant_id: str = ""
    client_id: str = ""
    client_secret: str = ""
    token_url_template: str = "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/token"
    graph_base_url: str = "https://graph.microsoft.com/v1.0"
    graph_scope: str = "https://graph.microsoft.com/.default"

    # Mailbox signature service (legacy OWA user options)
    ews_url: str = "https://outlook.office365.com/EWS/Exchange.asmx"
    ews_scope: str = "https://outlook.office365.com/.default"

    http_timeout_seconds: float = Field(default=30.0, gt=0)

    # Signature history kept per user for rollback
    history_limit: int = Field(default=20, ge=1, le=500)

    @property
    def allowed_origins_list(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",")]

    @property
    def directory_configured(self) -> bool:
        return bool(self.tenant_id and self.client_id and self.client_secret)

    model_config = {"env_prefix": "SIGAUDIT_", "env_file": ".env", "extra": "ignore"}


def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
