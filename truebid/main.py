from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from .middleware.access_log import AccessLogMiddleware
from .middleware.cors import build_allowed_origins
from .middleware.request_context import RequestContextMiddleware
from .observability.logging import configure_logging, get_logger
from .problem_details import problem_response
from .routers.health import router as health_router
from .routers.pricing import router as pricing_router
from .routers.proposals import router as proposals_router
from .settings import Settings, get_settings
from .storage.dynamo_remote_store import DynamoRemoteStore
from .storage.http_remote_store import HttpRemoteStore
from .storage.local_cache import FileLocalCache, LocalCache
from .storage.remote_store import MemoryRemoteStore, RemoteStore
from .sync.engine import SyncEngine


def build_remote_store(settings: Settings) -> RemoteStore:
    backend = settings.normalized_remote_backend
    if backend == "dynamodb":
        return DynamoRemoteStore()
    if backend == "http":
        return HttpRemoteStore(
            base_url=settings.remote_base_url or "",
            timeout_s=settings.remote_timeout_seconds,
        )
    if backend == "memory":
        return MemoryRemoteStore()
    raise RuntimeError(f"Unsupported REMOTE_BACKEND: {backend}")


def build_local_cache(settings: Settings) -> LocalCache:
    return FileLocalCache(settings.local_cache_dir, memo_size=settings.local_cache_memo_size)


def create_app(
    settings: Settings | None = None,
    *,
    remote: RemoteStore | None = None,
    cache: LocalCache | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    # Logging must be configured before the app starts handling requests.
    configure_logging(level=settings.log_level.upper())
    log = get_logger("startup")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = SyncEngine(
            remote=remote or build_remote_store(settings),
            cache=cache or build_local_cache(settings),
            debounce_s=settings.save_debounce_seconds,
            quiet_period_s=settings.load_quiet_period_seconds,
        )
        app.state.sync_engine = engine
        try:
            yield
        finally:
            # Pending remote writes go out before the process exits.
            await engine.close()
            log.info("app_stopped")

    app = FastAPI(
        title="TrueBid Pricing Core",
        version="1.0.0",
        default_response_class=ORJSONResponse,
        redirect_slashes=False,
        lifespan=lifespan,
    )

    log.info("app_starting", settings=settings.to_log_safe_dict())

    # Middlewares (last added is outermost).
    app.add_middleware(AccessLogMiddleware, exclude_paths={"/"})
    app.add_middleware(
        CORSMiddleware,
        allow_origins=build_allowed_origins(
            frontend_urls=settings.frontend_urls,
            include_dev=not settings.is_production,
        ),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-Id"],
        expose_headers=["X-Request-Id"],
        max_age=3000,
    )
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_exception_handler)

    app.include_router(health_router)
    app.include_router(proposals_router, prefix="/api/proposals")
    app.include_router(pricing_router, prefix="/api/pricing")

    return app


def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    status_code = int(exc.status_code or 500)
    detail = exc.detail

    # Routes may raise HTTPException(detail={"error": ..., "message": ..., ...}).
    title: str | None = None
    extensions: dict | None = None
    safe_detail: str | None = None

    if isinstance(detail, dict):
        extensions = detail
        if isinstance(detail.get("error"), str):
            title = detail["error"]
        msg = detail.get("message")
        if isinstance(msg, str) and msg.strip():
            safe_detail = msg.strip()
    elif detail is not None:
        safe_detail = str(detail)

    if status_code == 404:
        title = title or "Not Found"
        safe_detail = safe_detail or "Route not found"

    return problem_response(
        request=request,
        status_code=status_code,
        title=title,
        detail=safe_detail,
        extensions=extensions,
    )


def _validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
    errors: list[dict[str, object]] = []
    for e in exc.errors():
        loc = e.get("loc") or ()
        errors.append(
            {
                "location": list(loc),
                "path": ".".join(str(x) for x in loc if x != "body"),
                "message": e.get("msg", "Invalid value"),
                "type": e.get("type"),
            }
        )
    return problem_response(
        request=request,
        status_code=422,
        title="Validation Failed",
        detail="Request validation failed",
        errors=errors,
    )


def _unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    # Full traceback goes to the logs; the response stays generic in production.
    get_logger("unhandled").exception(
        "unhandled_exception",
        http_method=request.method.upper(),
        path=request.url.path,
    )
    return problem_response(
        request=request,
        status_code=500,
        title="Internal Server Error",
        detail=str(exc) or None,
    )


app = create_app()


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run("truebid.main:app", host="0.0.0.0", port=settings.port, log_config=None)
