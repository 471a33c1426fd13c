"""
FastAPI application - Main entry point
"""

from dotenv import load_dotenv

load_dotenv()

import logging
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlparse

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.admin_router import api as admin_api
from src.api.insurance_router import api as insurance_api
from src.insurance.errors import (
    ConsentRequiredError,
    DuplicateRequestError,
    InvalidTransitionError,
    RequestNotFoundError,
    SubmissionValidationError,
)
from src.insurance.lifecycle import RequestLifecycle
from src.integrations.policy.notification_service import NotificationService
from src.invoices.images import ImageResolver
from src.invoices.renderer import InvoiceRenderer
from src.utils.config_loader import AppSettings, InvoiceConfig, load_invoice_config, load_settings
from src.utils.rate_limiter import RateLimiter

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SERVICE_NAME = "MandiPlus Insurance API"
SERVICE_VERSION = "1.0.0"


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================
def build_db(settings: AppSettings):
    # Use the SQL store when DATABASE_URL is set, else the in-memory stub
    if settings.database_url:
        from src.database.postgres_real import PostgresDB

        return PostgresDB(connection_string=settings.database_url)

    from src.database.postgres import PostgresDB

    return PostgresDB()


def build_messaging_client(settings: AppSettings):
    """Mock vs real WhatsApp client. This is the only place the choice is made."""
    if settings.use_real_messaging():
        from src.integrations.clients.real_http.messaging import RealMessagingClient

        logger.info("Using Chatrace messaging client at %s", settings.chatrace_api_url)
        return RealMessagingClient(
            base_url=settings.chatrace_api_url,
            api_key=settings.chatrace_api_key,
            bot_id=settings.chatrace_bot_id,
            timeout_seconds=settings.notification_timeout,
        )

    from src.integrations.clients.mocks.messaging import MockMessagingClient

    logger.info("CHATRACE_API_KEY not set; using mock messaging client")
    return MockMessagingClient()


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, **extra})


def register_exception_handlers(app: FastAPI, settings: AppSettings) -> None:
    @app.exception_handler(SubmissionValidationError)
    async def validation_error_handler(request: Request, exc: SubmissionValidationError):
        return _error(status.HTTP_400_BAD_REQUEST, exc.message, errors=exc.field_errors)

    @app.exception_handler(ConsentRequiredError)
    async def consent_error_handler(request: Request, exc: ConsentRequiredError):
        return _error(status.HTTP_400_BAD_REQUEST, exc.message)

    @app.exception_handler(DuplicateRequestError)
    async def duplicate_error_handler(request: Request, exc: DuplicateRequestError):
        return _error(
            status.HTTP_409_CONFLICT,
            "Request with this User ID already exists",
            requestId=exc.request_id,
            status=getattr(exc.status, "value", exc.status),
        )

    @app.exception_handler(RequestNotFoundError)
    async def not_found_error_handler(request: Request, exc: RequestNotFoundError):
        return _error(status.HTTP_404_NOT_FOUND, exc.message)

    @app.exception_handler(InvalidTransitionError)
    async def transition_error_handler(request: Request, exc: InvalidTransitionError):
        return _error(status.HTTP_400_BAD_REQUEST, str(exc), currentStatus=exc.current_status)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = {".".join(str(p) for p in e.get("loc", ())[1:]) or "body": e.get("msg", "") for e in exc.errors()}
        return _error(status.HTTP_400_BAD_REQUEST, "Validation failed", errors=errors)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
            return _error(exc.status_code, "Route not found")
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
        if settings.is_production:
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", error=str(exc))


def create_app(
    settings: Optional[AppSettings] = None,
    db=None,
    messaging_client=None,
    invoice_config: Optional[InvoiceConfig] = None,
) -> FastAPI:
    settings = settings or load_settings()
    db = db if db is not None else build_db(settings)
    messaging_client = messaging_client if messaging_client is not None else build_messaging_client(settings)
    invoice_config = invoice_config or load_invoice_config()

    for directory in (settings.invoices_dir, settings.uploads_dir, settings.temp_dir):
        directory.mkdir(parents=True, exist_ok=True)

    resolver = ImageResolver(
        uploads_dir=settings.uploads_dir,
        temp_dir=settings.temp_dir,
        timeout_seconds=settings.image_download_timeout,
    )
    renderer = InvoiceRenderer(settings.invoices_dir, invoice_config, resolver)
    notifier = NotificationService(messaging_client)

    app = FastAPI(
        title=SERVICE_NAME,
        description="Transit insurance requests from the WhatsApp bot, admin review and invoicing",
        version=SERVICE_VERSION,
    )
    app.state.settings = settings
    app.state.db = db
    app.state.lifecycle = RequestLifecycle(db, renderer, notifier, settings)
    app.state.rate_limiter = RateLimiter(settings.rate_limit_max_requests, settings.rate_limit_window_seconds)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next):
        if request.url.path.startswith("/api"):
            limiter: RateLimiter = request.app.state.rate_limiter
            client_ip = request.client.host if request.client else "unknown"
            if not limiter.allow(client_ip):
                logger.warning("Rate limit exceeded for %s on %s", client_ip, request.url.path)
                return JSONResponse(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    content={"success": False, "message": "Too many requests, please try again later."},
                    headers={"Retry-After": str(int(limiter.retry_after(client_ip)) + 1)},
                )
        return await call_next(request)

    register_exception_handlers(app, settings)

    app.include_router(insurance_api, prefix="/api")
    app.include_router(admin_api, prefix="/api")
    app.mount("/invoices", StaticFiles(directory=str(settings.invoices_dir)), name="invoices")

    @app.get("/", tags=["Health"])
    async def root():
        return {
            "success": True,
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "endpoints": {
                "webhook": "POST /api/insurance/request",
                "requestDetails": "GET /api/insurance/request/{id}",
                "status": "GET /api/insurance/status/{userId}",
                "pending": "GET /api/admin/pending",
                "requests": "GET /api/admin/requests",
                "approve": "POST /api/admin/approve/{id}",
                "reject": "POST /api/admin/reject/{id}",
                "invoices": "GET /invoices/{invoiceNumber}.pdf",
                "docs": "GET /docs",
            },
        }

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}

    # ============================================================================
    # STARTUP/SHUTDOWN EVENTS
    # ============================================================================
    @app.on_event("startup")
    async def startup_event():
        """Initialize on startup"""
        logger.info("Starting %s (%s)...", SERVICE_NAME, settings.app_env)

        if settings.database_url:
            parsed = urlparse(settings.database_url)
            logger.info(
                "DATABASE_URL target: scheme=%s host=%s port=%s db=%s",
                parsed.scheme,
                parsed.hostname,
                parsed.port,
                (parsed.path or "").lstrip("/"),
            )
        else:
            logger.info("DATABASE_URL not set; using in-memory PostgresDB stub")

        # Create database tables if they don't exist
        db.create_tables()
        logger.info("Database tables initialized")
        logger.info("Invoices served from %s at %s/invoices", settings.invoices_dir, settings.public_url)

    @app.on_event("shutdown")
    async def shutdown_event():
        """Cleanup on shutdown"""
        logger.info("Shutting down %s...", SERVICE_NAME)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("src.api.main:app", host="0.0.0.0", port=app.state.settings.port)
