"""
FastAPI application for the school portal's auth endpoints.

`create_app()` wires the auth core once at startup. A missing signing
secret raises ConfigurationError here, before any request is served.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from schoolauth.auth.config import AuthConfig
from schoolauth.auth.guard import AuthorizationGuard
from schoolauth.auth.passwords import PasswordHasher
from schoolauth.auth.routes import router as auth_router
from schoolauth.auth.tokens import OneTimeTokens, SessionTokens
from schoolauth.config import Settings, get_settings
from schoolauth.integrations.email import EmailService
from schoolauth.integrations.sentry import init_sentry
from schoolauth.logging_config import setup_logging
from schoolauth.services.accounts import AccountService
from schoolauth.storage import CredentialStore, InMemoryCredentialStore

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    store: CredentialStore | None = None,
    email: EmailService | None = None,
) -> FastAPI:
    """
    Build the application.

    Raises:
        ConfigurationError: JWT_SECRET_KEY unset or bcrypt cost invalid
    """
    settings = settings or get_settings()
    config = AuthConfig.from_settings(settings)

    store = store or InMemoryCredentialStore()
    hasher = PasswordHasher.from_config(config)
    sessions = SessionTokens(config)
    one_time = OneTimeTokens(store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level)
        init_sentry(settings)
        logger.info(f"School auth API starting in {settings.environment} mode")
        yield
        logger.info("School auth API shutting down")

    app = FastAPI(
        title="School Portal Auth API",
        description="Login, registration and password flows for the school portal",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.guard = AuthorizationGuard(sessions)
    app.state.email = email or EmailService(settings)
    app.state.accounts = AccountService(
        store,
        hasher,
        sessions,
        one_time,
        verification_ttl=settings.verification_token_ttl,
        reset_ttl=settings.reset_token_ttl,
        invite_ttl=settings.admin_invite_ttl,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app
