from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import time
import uuid
from datetime import datetime, timezone
from .config import settings
from .db import Database
from .errors import AppError
from .logs import json_log
from .media import MediaStore
from .printer import PrinterService
from .routers.auth import router as auth_router
from .routers.escpos import router as escpos_router
from .routers.media import router as media_router
from .routers.reports import router as reports_router
from .routers.stock_entries import router as stock_entries_router

SERVICE_NAME = "minimarket-pos-api"

app = FastAPI(title="Minimarket POS API", version=settings.api_version)
STARTED_AT_UTC = datetime.now(timezone.utc)

# Per-process resources, injected into handlers through `request.app.state`.
app.state.db = Database.from_settings(settings)
app.state.media = MediaStore(settings.uploads_dir)
app.state.printer = PrinterService(
    settings.escpos_url,
    timeout=settings.escpos_timeout,
    health_timeout=settings.escpos_health_timeout,
)


def _current_request_id(req: Request) -> str:
    return getattr(req.state, "request_id", "") or req.headers.get("x-request-id") or "startup"


@app.exception_handler(AppError)
def _app_error(req: Request, exc: AppError):
    level = "error" if exc.status_code >= 500 else "info"
    json_log(
        level,
        exc.tag,
        request_id=_current_request_id(req),
        method=req.method,
        path=req.url.path,
        status_code=exc.status_code,
        error=exc.message,
        detail=exc.detail,
    )
    content = {"error": exc.message}
    if exc.status_code >= 500:
        content["request_id"] = _current_request_id(req)
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
def _request_validation_error(_req: Request, exc: Exception):
    content = {"error": "validation failed"}
    if settings.exposes_errors and hasattr(exc, "errors"):
        content["errors"] = jsonable_encoder(exc.errors())
    return JSONResponse(status_code=400, content=content)


@app.exception_handler(Exception)
def _unhandled_exception(req: Request, exc: Exception):
    rid = _current_request_id(req)
    json_log(
        "error",
        "http.request.unhandled",
        request_id=rid,
        method=req.method,
        path=req.url.path,
        error=str(exc),
    )
    content = {"error": "internal server error", "request_id": rid}
    if settings.exposes_errors:
        content["detail"] = str(exc)
    return JSONResponse(status_code=500, content=content)

# Correlation id + basic structured request logging.
@app.middleware("http")
async def _request_logging(request: Request, call_next):
    rid = (request.headers.get("X-Request-Id") or "").strip() or uuid.uuid4().hex
    request.state.request_id = rid
    started = time.time()
    path = request.url.path
    method = request.method
    client_ip = (request.client.host if request.client else None)

    try:
        response = await call_next(request)
    except Exception as exc:
        dur_ms = int((time.time() - started) * 1000)
        json_log(
            "error",
            "http.request.error",
            request_id=rid,
            method=method,
            path=path,
            client_ip=client_ip,
            duration_ms=dur_ms,
            error=str(exc),
        )
        raise

    response.headers["X-Request-Id"] = rid
    response.headers["X-Content-Type-Options"] = "nosniff"
    if path != "/health":
        dur_ms = int((time.time() - started) * 1000)
        json_log(
            "info",
            "http.request",
            request_id=rid,
            method=method,
            path=path,
            status_code=response.status_code,
            client_ip=client_ip,
            duration_ms=dur_ms,
        )
    return response

# The browser frontend runs on a different origin during development.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(auth_router)
app.include_router(reports_router)
app.include_router(stock_entries_router)
app.include_router(escpos_router)
app.include_router(media_router)

@app.on_event("startup")
def _startup():
    app.state.db.open()
    try:
        app.state.db.ping()
        json_log("info", "startup.db_connected", env=settings.env, version=settings.api_version)
    except AppError as exc:
        json_log("warning", "startup.db_ping_failed", env=settings.env, error=exc.detail or exc.message)

@app.on_event("shutdown")
def _shutdown():
    app.state.db.close()


@app.get("/health")
def health(req: Request):
    request_id = _current_request_id(req)
    try:
        db_ok = app.state.db.ping()
        err = None
    except AppError as exc:
        db_ok = False
        err = exc.detail or exc.message
    content = {
        "status": "ok" if db_ok else "degraded",
        "env": settings.env,
        "db": "ok" if db_ok else "down",
        "service": SERVICE_NAME,
        "version": settings.api_version,
        "started_at": STARTED_AT_UTC.isoformat(),
        "request_id": request_id,
    }
    if not db_ok:
        if settings.exposes_errors:
            content["error"] = err
        return JSONResponse(status_code=503, content=content)
    return content
