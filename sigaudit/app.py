"""Signature Audit — FastAPI application factory."""

from __future__ import annotations

import threading

from fastapi import FastAPI

from sigaudit.config import Settings, get_settings
from sigaudit.middleware import (
    configure_cors,
    configure_error_handlers,
    configure_rate_limiting,
    lifespan,
    logging_middleware,
)
from sigaudit.routers import audit, health, overrides, signatures, templates, users
from sigaudit.services.auditor import AuditService
from sigaudit.services.auth import ClientCredentialsToken
from sigaudit.services.collaborators import DirectoryService, MailboxSignatureService
from sigaudit.services.deployment import SignatureDeploymentService
from sigaudit.services.ews_client import EwsSignatureClient
from sigaudit.services.graph_client import GraphDirectoryClient
from sigaudit.services.history_store import SignatureHistoryStore
from sigaudit.services.override_store import OverrideStore
from sigaudit.services.profiles import DirectoryProfileService
from sigaudit.services.template_store import TemplateStore
from sigaudit.store import Database


def _token(settings: Settings, scope: str) -> ClientCredentialsToken:
    return ClientCredentialsToken(
        token_url=settings.token_url_template.format(tenant_id=settings.tenant_id),
        client_id=settings.client_id,
        client_secret=settings.client_secret,
        scope=scope,
        timeout=settings.http_timeout_seconds,
    )


def create_app(
    settings: Settings | None = None,
    directory: DirectoryService | None = None,
    mailbox: MailboxSignatureService | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``directory`` and ``mailbox`` default to the Graph and EWS clients
    built from ``settings``.
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Email signature rendering, audit and deployment",
        version=settings.app_version,
        lifespan=lifespan,
    )

    # Store settings on app state
    app.state.settings = settings

    database = Database(settings.database_url, echo=settings.database_echo)
    database.create_all()

    if directory is None:
        directory = GraphDirectoryClient(
            settings.graph_base_url,
            _token(settings, settings.graph_scope),
            timeout=settings.http_timeout_seconds,
        )
    if mailbox is None:
        mailbox = EwsSignatureClient(
            settings.ews_url,
            _token(settings, settings.ews_scope),
            timeout=settings.http_timeout_seconds,
        )

    template_store = TemplateStore(database)
    override_store = OverrideStore(database)
    history_store = SignatureHistoryStore(database, limit=settings.history_limit)

    app.state.database = database
    app.state.template_store = template_store
    app.state.override_store = override_store
    app.state.cancel_event = threading.Event()
    app.state.audit_service = AuditService(directory, mailbox, template_store, override_store)
    app.state.deployment_service = SignatureDeploymentService(
        directory, mailbox, template_store, override_store, history_store
    )
    app.state.profile_service = DirectoryProfileService(directory)

    # Middleware
    configure_cors(app, settings)
    configure_rate_limiting(app, settings)
    configure_error_handlers(app)
    app.middleware("http")(logging_middleware)

    # Routers
    app.include_router(health.router)
    app.include_router(audit.router)
    app.include_router(templates.router)
    app.include_router(overrides.router)
    app.include_router(signatures.router)
    app.include_router(users.router)

    return app
