import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from zeitkonto.db import engine
from zeitkonto.errors import ApiError, EntryValidationError, error_response
from zeitkonto.logging_utils import setup_json_logging
from zeitkonto.routers import admin, entries
from zeitkonto.services.schema_guard import SchemaGuardResult, verify_runtime_schema
from zeitkonto.settings import get_cors_origins, get_settings

settings = get_settings()
setup_json_logging(settings.log_level, service="zeitkonto")
logger = logging.getLogger("zeitkonto.request")
schema_logger = logging.getLogger("zeitkonto.schema_guard")

HTTP_ERROR_CODES = {
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "PUT", "POST", "DELETE"],
    allow_headers=["*"],
)


def _request_log_fields(request: Request) -> dict[str, Any]:
    state = request.state
    return {
        "request_id": getattr(state, "request_id", "unknown"),
        "path": request.url.path,
        "method": request.method,
        "actor": getattr(state, "actor", "anonymous"),
        "actor_id": getattr(state, "actor_id", None),
        "employee_id": getattr(state, "employee_id", None),
    }


@app.middleware("http")
async def request_middleware(request: Request, call_next):
    request.state.request_id = request.headers.get("X-Request-Id") or str(uuid4())
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers["X-Request-Id"] = request.state.request_id
        return response
    finally:
        logger.info(
            "request_complete",
            extra={
                **_request_log_fields(request),
                "status_code": status_code,
                "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )


@app.exception_handler(ApiError)
async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("api_error", extra={**_request_log_fields(request), "code": exc.code})
    return error_response(
        request,
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.messages if isinstance(exc, EntryValidationError) else None,
    )


@app.exception_handler(HTTPException)
async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    return error_response(
        request,
        status_code=exc.status_code,
        code=HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
        message=str(exc.detail or "Request failed."),
    )


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = []
    for item in exc.errors():
        location = ".".join(str(part) for part in item.get("loc", ()) if part != "body")
        details.append(f"{location}: {item.get('msg')}" if location else str(item.get("msg")))
    return error_response(
        request,
        status_code=422,
        code="VALIDATION_ERROR",
        message="Request validation failed.",
        details=details,
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", extra=_request_log_fields(request))
    return error_response(
        request,
        status_code=500,
        code="INTERNAL_ERROR",
        message="Unexpected server error.",
    )


app.include_router(entries.router)
app.include_router(admin.router)


@app.on_event("startup")
async def run_schema_guard() -> None:
    if not settings.schema_guard_enabled:
        return
    result = await asyncio.to_thread(verify_runtime_schema, engine)
    app.state.schema_guard_result = result
    if result.ok:
        schema_logger.info("schema_guard_ok", extra=result.to_dict())
        return

    schema_logger.error("schema_guard_failed", extra=result.to_dict())
    if settings.schema_guard_strict:
        raise RuntimeError("Runtime schema guard failed: " + "; ".join(result.issues))


@app.get("/health")
def health() -> dict[str, Any]:
    if not settings.schema_guard_enabled:
        return {"status": "ok", "schema_guard": None}

    result: SchemaGuardResult | None = getattr(app.state, "schema_guard_result", None)
    if result is None:
        result = SchemaGuardResult(
            ok=False,
            checked_at_utc=datetime.now(timezone.utc),
            issues=["SCHEMA_GUARD_NOT_RUN"],
        )
    return {"status": "ok" if result.ok else "degraded", "schema_guard": result.to_dict()}
