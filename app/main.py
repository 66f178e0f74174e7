from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

from app.api import appointments, doctors, documents, patients, sms
from app.core.config import Settings, get_settings
from app.core.errors import register_exception_handlers
from app.db.session import Database
from app.domain.access import UserRole
from app.logging_utils import (
    _request_id_ctx_var,
    _user_id_ctx_var,
    _user_role_ctx_var,
    configure_logging,
    get_current_role_label,
    get_current_user_label,
)
from app.services.reminders import TaskSender
from app.services.sms_client import SMSClient
from app.services.storage import DocumentStorage, get_storage

logger = logging.getLogger(__name__)

REQUEST_COUNTER = Counter(
    "carepulse_api_requests_total",
    "Total number of processed HTTP requests.",
    ["method", "path", "status", "role"],
)
REQUEST_LATENCY = Histogram(
    "carepulse_api_request_duration_seconds",
    "HTTP request latency in seconds.",
    ["method", "path"],
)

_KNOWN_ROLES = frozenset(role.value for role in UserRole)


class SimpleRateLimiter:
    """In-memory rate limiter keyed by IP and user."""

    def __init__(self, limit: int, window_seconds: int) -> None:
        self.limit = max(1, limit)
        self.window_seconds = max(1, window_seconds)
        self._entries: dict[str, tuple[int, float]] = {}
        self._lock = asyncio.Lock()

    async def allow(self, key: str) -> bool:
        now = time.monotonic()
        async with self._lock:
            count, window_start = self._entries.get(key, (0, now))
            if now - window_start >= self.window_seconds:
                self._entries[key] = (1, now)
                return True
            if count >= self.limit:
                return False
            self._entries[key] = (count + 1, window_start)
            return True


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Populate request and caller context for logging and metrics."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        user_hint = request.headers.get("X-User-ID")
        role_hint = (request.headers.get("X-User-Role") or "").upper()

        request.state.request_id = request_id
        request_id_token = _request_id_ctx_var.set(request_id)
        user_token = _user_id_ctx_var.set(user_hint or None)
        # Only known roles become metric labels.
        role_token = _user_role_ctx_var.set(role_hint if role_hint in _KNOWN_ROLES else None)

        try:
            response = await call_next(request)
        finally:
            _request_id_ctx_var.reset(request_id_token)
            _user_id_ctx_var.reset(user_token)
            _user_role_ctx_var.reset(role_token)

        response.headers["X-Request-ID"] = request_id
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Apply a coarse rate limit per IP and user."""

    def __init__(self, app: FastAPI, limiter: SimpleRateLimiter) -> None:  # type: ignore[override]
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        if request.method == "OPTIONS":
            return await call_next(request)

        client_host = request.client.host if request.client else "unknown"
        user_value = get_current_user_label()
        rate_key = f"{client_host}:{user_value}"

        allowed = await self.limiter.allow(rate_key)
        if not allowed:
            logger.warning(
                "rate limit exceeded",
                extra={"client_ip": client_host, "user": user_value},
            )
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"error": "RateLimited", "detail": "Rate limit exceeded"},
            )

        return await call_next(request)


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Emit structured access logs and feed metrics."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        start_time = time.perf_counter()
        method = request.method

        try:
            response = await call_next(request)
        except Exception:
            elapsed = time.perf_counter() - start_time
            path = _path_label(request)
            REQUEST_COUNTER.labels(
                method=method, path=path, status="500", role=get_current_role_label()
            ).inc()
            REQUEST_LATENCY.labels(method=method, path=path).observe(elapsed)
            logger.exception(
                "request failed",
                extra={
                    "method": method,
                    "path": path,
                    "duration_ms": round(elapsed * 1000, 2),
                },
            )
            raise

        elapsed = time.perf_counter() - start_time
        status_code = response.status_code
        path = _path_label(request)

        REQUEST_COUNTER.labels(
            method=method,
            path=path,
            status=str(status_code),
            role=get_current_role_label(),
        ).inc()
        REQUEST_LATENCY.labels(method=method, path=path).observe(elapsed)

        logger.info(
            "request completed",
            extra={
                "method": method,
                "path": path,
                "status_code": status_code,
                "duration_ms": round(elapsed * 1000, 2),
            },
        )

        return response


def _path_label(request: Request) -> str:
    """Route template when one matched, so ids do not become label values."""

    route = request.scope.get("route")
    if route is not None and getattr(route, "path", None):
        return route.path
    return request.scope.get("root_path", "") + request.scope.get("path", request.url.path)


def _build_api_router() -> APIRouter:
    api_router = APIRouter(prefix="/api")
    api_router.include_router(patients.router)
    api_router.include_router(doctors.router)
    api_router.include_router(appointments.router)
    api_router.include_router(documents.router)
    api_router.include_router(sms.router)
    return api_router


def create_app(
    settings: Settings | None = None,
    database: Database | None = None,
    *,
    sms_client: SMSClient | None = None,
    storage: DocumentStorage | None = None,
    task_sender: TaskSender | None = None,
) -> FastAPI:
    """Build the CarePulse API with its collaborators wired onto ``app.state``."""

    settings = settings or get_settings()
    database = database or Database(settings.database_url, pool_pre_ping=True)
    if task_sender is None and settings.reminders_enabled:
        from jobs.app.celery_app import celery_app

        task_sender = celery_app

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        if settings.auto_create_tables:
            database.create_all()
        logger.info(
            "carepulse api starting",
            extra={
                "environment": settings.environment,
                "sms_mock_mode": settings.sms_mock_mode,
                "storage_configured": settings.storage_configured,
            },
        )
        yield
        database.dispose()

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.sms_client = sms_client or SMSClient(settings)
    app.state.storage = storage or get_storage(settings)
    app.state.task_sender = task_sender

    rate_limiter = SimpleRateLimiter(
        settings.rate_limit_requests, settings.rate_limit_window_seconds
    )

    # The last middleware added runs first, so request context wraps everything else.
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RateLimitMiddleware, limiter=rate_limiter)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    register_exception_handlers(app)

    @app.get("/metrics")
    def metrics() -> Response:
        """Expose Prometheus metrics for scraping."""

        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/health")
    def health() -> dict[str, str]:
        """Health check endpoint used by infrastructure probes."""

        return {"status": "ok"}

    @app.get("/health/detailed", response_model=None)
    def health_detailed(request: Request) -> dict[str, Any] | JSONResponse:
        """Health check that also pings the database."""

        timestamp = datetime.now(timezone.utc).isoformat()
        if not request.app.state.database.ping():
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={
                    "status": "unhealthy",
                    "database": "disconnected",
                    "timestamp": timestamp,
                },
            )
        return {
            "status": "healthy",
            "database": "connected",
            "sms": "mock" if settings.sms_mock_mode else "twilio",
            "storage": "s3" if settings.storage_configured else "mock",
            "timestamp": timestamp,
        }

    app.include_router(_build_api_router())
    return app
