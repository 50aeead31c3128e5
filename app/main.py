"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.jobs.scheduler import register_jobs, scheduler
from app.routers import accounts, admin, balance, generations, leaderboard, referrals, webhooks
from app.utils.errors import AppError, InvalidInputError

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

ROUTERS = (
    (accounts.router, "/accounts"),
    (admin.router, "/admin"),
    (balance.router, "/balance"),
    (generations.router, "/generations"),
    (referrals.router, "/referrals"),
    (webhooks.router, "/webhooks"),
    (leaderboard.router, "/leaderboard"),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the referral reconciliation sweep while the app is up."""
    logger.info(
        "Starting %s %s (ledger=%s, generator=%s)",
        settings.app_name,
        settings.app_version,
        settings.ledger_backend,
        settings.generator_backend,
    )
    if settings.enable_scheduler:
        register_jobs()
        scheduler.start()
    yield
    if scheduler.running:
        scheduler.shutdown(wait=False)


app = FastAPI(
    title=settings.app_name,
    description="Credit ledger, referral rewards and payment top-ups for Loguvo",
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_timing_middleware(request: Request, call_next):
    """Stamp processing time; generation calls are the usual slow path."""
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    response.headers["X-Process-Time-Ms"] = f"{elapsed_ms:.1f}"

    threshold_ms = settings.slow_request_log_threshold_ms
    if threshold_ms > 0 and elapsed_ms >= threshold_ms:
        logger.warning("Slow request %s %s %.1fms", request.method, request.url.path, elapsed_ms)
    return response


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render domain errors as ``{"error", "code"}``; log the server-side ones."""
    if exc.status_code >= 500:
        logger.warning("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    _: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    detail = exc.errors()
    message = detail[0].get("msg", "Invalid request") if detail else "Invalid request"
    api_error = InvalidInputError(message)
    return JSONResponse(status_code=api_error.status_code, content=api_error.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch unexpected errors without leaking internals."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "code": "INTERNAL_ERROR"},
    )


for router, prefix in ROUTERS:
    app.include_router(router, prefix=prefix, tags=[prefix.strip("/")])


@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe with the running version and ledger backend."""
    return {
        "status": "ok",
        "version": settings.app_version,
        "ledger_backend": settings.ledger_backend,
    }
