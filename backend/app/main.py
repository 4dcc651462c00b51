import os
from typing import Any, Dict, Optional

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.errors import (
    ConfigurationError,
    ModelNotFoundError,
    NoActiveModelsError,
    StoreUnavailableError,
    UnsupportedProviderError,
)
from .core.logging import configure_logging, get_logger, get_trace_id
from .core.middleware import TraceIDMiddleware
from .core.tracing import (
    StatusCode,
    configure_tracing,
    get_trace_id_from_context,
    instrument_fastapi,
    record_exception,
    set_span_status,
    shutdown_tracing,
)
from .routes import admin, health, metrics, openai_compat, rag
from .services.routing import get_query_classifier

# Configure structured logging
# Use JSON output in production (containerized), console output in development
log_level = os.getenv("LOG_LEVEL", "INFO")
json_output = os.getenv("LOG_JSON", "true").lower() == "true"
configure_logging(log_level=log_level, json_output=json_output)

logger = get_logger(__name__)

# OTLP export only when OTEL_EXPORTER_OTLP_ENDPOINT is set
configure_tracing()

app = FastAPI(
    title="RagRoute API",
    description="Retrieval-augmented querying with rule-based LLM routing",
    version="1.0.0"
)

# CORS for local dev; restrict in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add trace ID middleware (must be after CORS middleware)
app.add_middleware(TraceIDMiddleware)

# Instrument FastAPI with OpenTelemetry (creates automatic spans for HTTP requests)
instrument_fastapi(app)

OPENAI_PREFIX = "/v1"

OPENAI_ERROR_TYPES = {
    400: "invalid_request_error",
    401: "authentication_error",
    403: "permission_error",
    404: "invalid_request_error",
    502: "api_error",
    503: "api_error",
}


@app.on_event("startup")
async def startup_event():
    """Initialize services on application startup."""
    logger.info("app_startup_started")

    # Loads keyword tables; falls back to the built-in tables on failure
    classifier = get_query_classifier()
    if classifier.initialize():
        logger.info("app_startup_classifier_ready")
    else:
        logger.warning(
            "app_startup_classifier_builtin_tables",
            message="Classification data files unavailable. Using built-in keyword tables.",
        )

    logger.info("app_startup_completed")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup resources on application shutdown."""
    logger.info("app_shutdown_started")
    shutdown_tracing()
    logger.info("app_shutdown_completed")


def error_response(
    request: Request,
    status_code: int,
    message: Any,
    code: Optional[str] = None,
    error_type: Optional[str] = None,
) -> JSONResponse:
    """
    Error body with the trace id.

    /v1 routes get OpenAI's {"error": {...}} shape, everything else the
    {"detail", "status_code"} shape.
    """
    trace_id = get_trace_id() or get_trace_id_from_context()

    if request.url.path.startswith(OPENAI_PREFIX):
        if isinstance(message, dict) and "message" in message:
            error = dict(message)
        else:
            error = {
                "message": message if isinstance(message, str) else str(message),
                "type": error_type or OPENAI_ERROR_TYPES.get(status_code, "server_error"),
                "code": code,
            }
        content: Dict[str, Any] = {"error": error, "trace_id": trace_id}
    else:
        content = {"detail": message, "status_code": status_code, "trace_id": trace_id}
        if code:
            content["code"] = code

    response = JSONResponse(status_code=status_code, content=content)
    if trace_id:
        response.headers["X-Trace-ID"] = trace_id
    return response


# Error handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions. TraceIDMiddleware records the request metrics."""
    # Set span status for HTTP exceptions
    set_span_status(StatusCode.ERROR if exc.status_code >= 500 else StatusCode.OK, str(exc.detail))

    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method,
    )
    return error_response(request, exc.status_code, exc.detail)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """400 in OpenAI shape on /v1, FastAPI's usual 422 elsewhere."""
    logger.warning("request_validation_failed", path=request.url.path, errors=len(exc.errors()))
    if request.url.path.startswith(OPENAI_PREFIX):
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg', 'invalid request')}" if location else first.get("msg", "invalid request")
        return error_response(request, 400, message)
    return error_response(request, 422, jsonable_errors(exc))


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


@app.exception_handler(ModelNotFoundError)
async def model_not_found_handler(request: Request, exc: ModelNotFoundError):
    logger.warning("model_not_found", model_id=exc.model_id, path=request.url.path)
    return error_response(request, 404, str(exc), code="model_not_found")


@app.exception_handler(ConfigurationError)
@app.exception_handler(UnsupportedProviderError)
async def model_configuration_handler(request: Request, exc: Exception):
    # Details (which key is missing) go to the log only
    set_span_status(StatusCode.ERROR, type(exc).__name__)
    logger.error(
        "model_configuration_error",
        error=str(exc),
        error_type=type(exc).__name__,
        model_id=getattr(exc, "model_id", None),
        path=request.url.path,
    )
    return error_response(request, 500, "Model configuration error", code="configuration_error", error_type="server_error")


@app.exception_handler(NoActiveModelsError)
async def no_active_models_handler(request: Request, exc: NoActiveModelsError):
    set_span_status(StatusCode.ERROR, "no_active_models")
    logger.error("no_active_models", path=request.url.path)
    return error_response(request, 500, "No active models available", code="no_active_models", error_type="server_error")


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    set_span_status(StatusCode.ERROR, str(exc))
    logger.error("store_unavailable", store=exc.store, path=request.url.path)
    return error_response(request, 503, "Configuration store unavailable", code="store_unavailable")


@app.exception_handler(httpx.HTTPError)
async def provider_error_handler(request: Request, exc: httpx.HTTPError):
    record_exception(exc)
    set_span_status(StatusCode.ERROR, str(exc))
    upstream_status = exc.response.status_code if isinstance(exc, httpx.HTTPStatusError) else None
    logger.error(
        "provider_call_error",
        error=str(exc),
        error_type=type(exc).__name__,
        upstream_status=upstream_status,
        path=request.url.path,
    )
    return error_response(request, 502, "Model provider request failed", code="provider_error")


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    # Record exception on span
    record_exception(exc)
    set_span_status(StatusCode.ERROR, str(exc))

    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )
    return error_response(request, 500, "Internal server error", error_type="server_error")


# Include routers
app.include_router(health.router, prefix="/health", tags=["Health"])
app.include_router(rag.router, prefix="/rag", tags=["RAG"])
app.include_router(openai_compat.router, prefix=OPENAI_PREFIX, tags=["OpenAI compatible"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])
app.include_router(metrics.router, prefix="/metrics", tags=["Metrics"])
