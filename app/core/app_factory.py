from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings
from .container import ApplicationContainer
from .logging import configure_logging
from ..application.services.credential_service import CredentialService
from ..domain.errors import ApiError
from ..infrastructure.persistence.sqlite import SQLitePersistence
from ..presentation.api.routers import auth as auth_router
from ..services.email_service import EmailService
from ..services.notifier import EmailNotifier
from ..services.passwords import PasswordHasher
from ..services.token_service import TokenService

logger = logging.getLogger(__name__)


def create_application(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings()

    app = FastAPI(title=f"{settings.app_name} API", lifespan=_create_lifespan(settings))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)
    app.include_router(auth_router.router)

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {"ok": True}

    return app


def build_container(settings: Settings) -> ApplicationContainer:
    persistence = SQLitePersistence(settings.database_path)
    password_hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    token_service = TokenService(
        secret_key=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        expiration_hours=settings.jwt_expiration_hours,
    )
    email_service = EmailService(
        smtp_host=settings.smtp_host,
        smtp_port=settings.smtp_port,
        smtp_username=settings.smtp_username,
        smtp_password=settings.smtp_password,
        from_email=settings.smtp_from_email,
        from_name=settings.smtp_from_name,
        frontend_base_url=settings.frontend_base_url,
        verification_expiration_hours=settings.email_verification_hours,
        password_reset_expiration_minutes=settings.password_reset_minutes,
    )
    notifier = EmailNotifier(email_service)
    credential_service = CredentialService(
        persistence,
        password_hasher,
        token_service,
        notifier,
        persistence,
        verification_expiration_hours=settings.email_verification_hours,
        password_reset_expiration_minutes=settings.password_reset_minutes,
    )
    return ApplicationContainer(
        settings=settings,
        persistence=persistence,
        password_hasher=password_hasher,
        token_service=token_service,
        email_service=email_service,
        notifier=notifier,
        credential_service=credential_service,
    )


def _create_lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level)
        container = build_container(settings)
        app.state.container = container  # type: ignore[attr-defined]

        notifier = container.notifier
        if isinstance(notifier, EmailNotifier):
            await notifier.start()
        if not container.email_service.enabled:
            logger.warning("SMTP is not configured; emails will only be logged.")

        try:
            yield
        finally:
            if isinstance(notifier, EmailNotifier):
                await notifier.stop()
            container.persistence.close()

    return lifespan


def _envelope(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _envelope(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        message = "Invalid request"
        if errors:
            first = errors[0]
            field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
        return _envelope(400, message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _envelope(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _envelope(500, "Internal server error")
