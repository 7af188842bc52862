"""FastAPI application factory and setup."""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from src.flattr_auth.api.http.app_data import (
    ApplicationDependencies,
    create_dependencies,
)
from src.flattr_auth.api.http.routers.auth import router_auth
from src.flattr_auth.api.utils.app_startup import configure_logging
from src.flattr_auth.core.services import DbSessionService, RedisService
from src.flattr_auth.core.services.database.db_manage import DbManageService
from src.flattr_auth.core.storage import build_callback_guard
from src.flattr_auth.runtime.context import get_config

# Initialize logging
configure_logging()


# --- Security middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault(
            "Referrer-Policy", "strict-origin-when-cross-origin"
        )
        response.headers.setdefault(
            "Permissions-Policy", "geolocation=(), microphone=()"
        )
        # HSTS only in prod
        if get_config().app.environment == "production":
            response.headers.setdefault(
                "Strict-Transport-Security",
                "max-age=31536000; includeSubDomains; preload",
            )
        return response


# --- FastAPI app setup ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    await startup()
    try:
        yield
    finally:
        await shutdown()


app = FastAPI(
    title="Flattr Auth",
    lifespan=lifespan,
    docs_url=None if get_config().app.environment == "production" else "/docs",
    redoc_url=None if get_config().app.environment == "production" else "/redoc",
)

app.add_middleware(SecurityHeadersMiddleware)

# expose startup for tests
__all__ = ["app", "startup", "shutdown"]

# --- CORS configuration ---
if "*" in get_config().app.cors.origins:
    raise RuntimeError(
        "CORS misconfigured: cannot use '*' with credentialed session cookies"
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().app.cors.origins,
    allow_credentials=get_config().app.cors.allow_credentials,
    allow_methods=get_config().app.cors.allow_methods,
    allow_headers=get_config().app.cors.allow_headers,
)


# --- Request logging middleware ---
def _logged_error_response(
    exc: Exception, request_id: str, start: float, status_code: int, detail, event: str
) -> JSONResponse:
    logger.bind(
        status_code=status_code,
        duration_ms=round((time.perf_counter() - start) * 1000, 1),
        error_type=type(exc).__name__,
    ).exception(event)
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "request_id": request_id},
        headers={"X-Request-ID": request_id},
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        client_ip = forwarded_for.split(",")[0].strip()
    else:
        client_ip = request.client.host if request.client else "unknown"

    # Query strings are left out: provider callbacks may carry codes in them
    request_ctx = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "client_ip": client_ip,
        "host": request.headers.get("host", request.url.hostname or "-"),
    }

    start = time.perf_counter()
    with logger.contextualize(**request_ctx):
        logger.info("request.start")
        try:
            response = await call_next(request)
        except HTTPException as exc:
            return _logged_error_response(
                exc, request_id, start, exc.status_code, exc.detail, "request.error"
            )
        except RequestValidationError as exc:
            return _logged_error_response(
                exc, request_id, start, 422, exc.errors(), "request.validation_error"
            )
        except Exception as exc:
            return _logged_error_response(
                exc, request_id, start, 500, "Internal Server Error", "request.error"
            )

        logger.bind(
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 1),
        ).info("request.end")
        response.headers.setdefault("X-Request-ID", request_id)
        return response


# --- Router registration ---
app.include_router(router_auth)


# --- Lifecycle hooks ---
async def startup() -> None:
    config = get_config()
    logger.info("Starting up application in {} environment", config.app.environment)

    # Fail fast on misconfiguration, before touching any backing service
    missing = config.missing_required_settings()
    if missing:
        logger.bind(missing=missing).error("Required configuration is missing")
        raise RuntimeError(f"Missing required configuration: {', '.join(missing)}")

    database_service = DbSessionService()
    await run_in_threadpool(DbManageService(database_service.engine).create_all)

    redis_service = RedisService()
    callback_guard = await build_callback_guard(
        redis_service, maxsize=config.providers.carrier.guard_max_entries
    )

    deps = create_dependencies(
        config,
        database_service=database_service,
        callback_guard=callback_guard,
        redis_service=redis_service,
    )
    app.state.app_dependencies = deps

    enabled = [name for name, on in config.providers.enabled_map().items() if on]
    logger.bind(providers=enabled).info("Application dependencies ready")


async def shutdown() -> None:
    logger.info("Shutting down application")
    app_dependencies: ApplicationDependencies | None = getattr(
        app.state, "app_dependencies", None
    )
    if app_dependencies is None:
        return
    await app_dependencies.callback_guard.close()
    if app_dependencies.redis_service is not None:
        await app_dependencies.redis_service.close()
    app_dependencies.database_service.dispose()


# --- Route handlers ---


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/ready")
async def readiness(request: Request) -> JSONResponse:
    """Readiness check endpoint."""
    app_dependencies: ApplicationDependencies | None = getattr(
        request.app.state, "app_dependencies", None
    )
    if app_dependencies is None:
        return JSONResponse({"status": "starting"}, status_code=503)

    database_ok = await run_in_threadpool(
        app_dependencies.database_service.health_check
    )
    checks = {"database": "ok" if database_ok else "failed"}
    redis_service = app_dependencies.redis_service
    if redis_service is not None and redis_service.is_enabled:
        checks["redis"] = "ok" if await redis_service.health_check() else "failed"

    if any(value == "failed" for value in checks.values()):
        return JSONResponse({"status": "not_ready", "checks": checks}, status_code=503)
    return JSONResponse({"status": "ready", "checks": checks})


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=get_config().app.host,
        port=get_config().app.port,
        access_log=False,  # Access logging happens in middleware
    )
