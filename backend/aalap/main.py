import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from aalap.api import previews, storage, thumbnails, trim_sessions
from aalap.config import get_settings
from aalap.constants.error_codes import get_error_spec
from aalap.exceptions import AalapError
from aalap.schemas.envelope import ErrorInfo, ErrorLocation, ErrorResponse

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _http_error_code(status_code: int) -> str:
    mapping = {
        400: "BAD_REQUEST",
        404: "NOT_FOUND",
        409: "CONFLICT",
        422: "VALIDATION_ERROR",
        500: "INTERNAL_ERROR",
    }
    return mapping.get(status_code, "INTERNAL_ERROR")


def _error_response(status_code: int, error: ErrorInfo) -> JSONResponse:
    body = ErrorResponse(error=error)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body.model_dump(exclude_none=True)),
    )


@app.exception_handler(AalapError)
async def aalap_exception_handler(request: Request, exc: AalapError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.code} on {request.url.path}: {exc.message}")
    return _error_response(exc.status_code, exc.to_error_info())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request validation errors (422) in the error envelope."""
    spec = get_error_spec("VALIDATION_ERROR")

    # Build a human-readable message from the first validation error
    errors = exc.errors()
    location = None
    if errors:
        first_error = errors[0]
        loc = [str(x) for x in first_error.get("loc", [])]
        msg = first_error.get("msg", "Validation error")
        message = f"{' -> '.join(loc)}: {msg}" if loc else msg
        if loc:
            location = ErrorLocation(field=loc[-1])
    else:
        message = "Request validation failed"

    error = ErrorInfo(
        code="VALIDATION_ERROR",
        message=message,
        location=location,
        retryable=spec.get("retryable", False),
        suggested_fix=spec.get("suggested_fix"),
    )
    return _error_response(422, error)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    error_code = _http_error_code(exc.status_code)
    spec = get_error_spec(error_code)
    error = ErrorInfo(
        code=error_code,
        message=str(exc.detail),
        retryable=spec.get("retryable", False),
        suggested_fix=spec.get("suggested_fix"),
    )
    return _error_response(exc.status_code, error)


# Global exception handler to ensure errors return proper JSON
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception: {exc}")
    spec = get_error_spec("INTERNAL_ERROR")
    error = ErrorInfo(
        code="INTERNAL_ERROR",
        message="Internal server error",
        retryable=spec.get("retryable", False),
        suggested_fix=spec.get("suggested_fix"),
    )
    return _error_response(500, error)


# Routers
app.include_router(thumbnails.router, prefix="/api", tags=["thumbnails"])
app.include_router(previews.router, prefix="/api", tags=["preview"])
app.include_router(trim_sessions.router, prefix="/api/trim-sessions", tags=["trim-sessions"])
app.include_router(storage.router, prefix="/api/storage", tags=["storage"])


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy", "version": settings.app_version, "git_hash": settings.git_hash}
