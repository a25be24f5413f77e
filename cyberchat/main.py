"""FastAPI application entry point for the CyberChat API."""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cyberchat.api.auth import router as auth_router
from cyberchat.api.routes.chat import router as chat_router
from cyberchat.config import Settings, get_settings
from cyberchat.core.clock import Clock
from cyberchat.core.errors import AppError, RateLimitError
from cyberchat.core.rate_limit import RateLimiter
from cyberchat.database import init_db, make_engine
from cyberchat.services.auth_service import RegistrationService, SessionAuthenticator
from cyberchat.services.chat_service import ChatRelay
from cyberchat.services.email_service import EmailSender, LoggingEmailSender, SmtpEmailSender
from cyberchat.services.generator import OpenAIGenerator, TextGenerator
from cyberchat.services.sessions import MemorySessionStore, SessionStore, SqlSessionStore
from cyberchat.services.store import CredentialStore, MemoryCredentialStore, SqlCredentialStore
from cyberchat.services.verification import VerificationCodeIssuer

logger = logging.getLogger(__name__)

MAX_LOG_LINE = 80


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables when running on the SQL backend."""
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        init_db(engine)
    logger.info(f"{app.title} started with {type(app.state.store).__name__}")
    yield


def build_mailer(settings: Settings) -> EmailSender:
    if settings.EMAIL_BACKEND == "smtp":
        return SmtpEmailSender(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            sender=settings.SENDER_EMAIL,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            use_tls=settings.SMTP_USE_TLS,
            timeout=settings.SMTP_TIMEOUT,
        )
    return LoggingEmailSender()


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[CredentialStore] = None,
    sessions: Optional[SessionStore] = None,
    generator: Optional[TextGenerator] = None,
    mailer: Optional[EmailSender] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    """
    Assemble the application.

    Any collaborator left as None is built from `settings`; tests pass
    in-memory stores and fakes instead.
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL.upper())

    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Registration, email verification, session login and a cybersecurity chatbot",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.engine = None
    if settings.STORAGE_BACKEND == "sql" and (store is None or sessions is None):
        app.state.engine = make_engine(settings.DATABASE_URL)
        store = store or SqlCredentialStore(app.state.engine)
        sessions = sessions or SqlSessionStore(app.state.engine)

    app.state.settings = settings
    app.state.store = store or MemoryCredentialStore()
    app.state.sessions = sessions or MemorySessionStore()

    issuer = VerificationCodeIssuer(
        app.state.store, ttl_minutes=settings.VERIFICATION_CODE_TTL_MINUTES, clock=clock
    )
    app.state.issuer = issuer
    app.state.authenticator = SessionAuthenticator(
        app.state.store, app.state.sessions, ttl_minutes=settings.SESSION_TTL_MINUTES, clock=clock
    )
    app.state.registration = RegistrationService(
        app.state.store, issuer, mailer or build_mailer(settings), app_name=settings.APP_NAME
    )
    app.state.chat_relay = ChatRelay(
        app.state.store,
        generator or OpenAIGenerator(
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            timeout=settings.OPENAI_TIMEOUT,
        ),
    )
    app.state.rate_limiter = RateLimiter(
        max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
        clock=clock,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def rate_limit_api(request: Request, call_next):
        """Throttle /api requests per client address."""
        if request.url.path.startswith("/api"):
            client_key = request.client.host if request.client else "unknown"
            if not request.app.state.rate_limiter.check_and_increment(client_key):
                logger.warning(f"Rate limit exceeded for {client_key}")
                error = RateLimitError()
                return JSONResponse(status_code=error.status_code, content={"message": error.message})
        return await call_next(request)

    @app.middleware("http")
    async def log_api_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        if request.url.path.startswith("/api"):
            duration_ms = int((time.perf_counter() - start) * 1000)
            line = f"{request.method} {request.url.path} {response.status_code} in {duration_ms}ms"
            if len(line) > MAX_LOG_LINE:
                line = line[: MAX_LOG_LINE - 1] + "…"
            logger.info(line)
        return response

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    # Register auth routes
    app.include_router(auth_router)

    # Register chat routes
    app.include_router(chat_router)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        """Render service errors as `{"message": ...}` with their status."""
        if exc.status_code >= 500:
            logger.warning(f"{request.method} {request.url.path} failed upstream: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors:
            first = errors[0]
            field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
        else:
            message = "Invalid request"
        return JSONResponse(status_code=400, content={"message": message})

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """
        Handle unhandled exceptions with generic error response.

        Internal error details are never sent to clients.
        """
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"message": "Internal server error"}
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("cyberchat.main:app", host="0.0.0.0", port=5000)
