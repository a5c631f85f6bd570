"""FastAPI application entrypoint. No business logic; only wiring, middleware and error rendering."""

import logging

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1 import router as v1_router
from app.core.config import settings
from app.core.database import violated_unique_field
from app.core.errors import AppError, DuplicateError, field_errors
from app.schemas.common import ApiResponse

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Cash Advance API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(v1_router, prefix=settings.API_V1_PREFIX)


def _envelope(
    status_code: int,
    message: str,
    details: object = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ApiResponse[None](success=False, message=message, details=details)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", exclude_none=True),
        headers=headers,
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    headers = (
        {"WWW-Authenticate": "Bearer"}
        if exc.status_code == status.HTTP_401_UNAUTHORIZED
        else None
    )
    if exc.status_code >= 500:
        logger.error("Request failed: %s %s: %s", request.method, request.url.path, exc.message)
    return _envelope(exc.status_code, exc.message, exc.details, headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Pydantic/FastAPI input errors as 400 with [{field, message}]."""
    pairs = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        pairs.append((".".join(loc) or "request", error.get("msg", "Invalid value")))
    return _envelope(status.HTTP_400_BAD_REQUEST, "Validation error", field_errors(pairs))


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    field = violated_unique_field(exc, ("email", "employee_id", "request_number"))
    if field is None:
        logger.exception("Integrity error on %s %s", request.method, request.url.path)
        return _envelope(status.HTTP_409_CONFLICT, "Request conflicts with existing data.")
    err = DuplicateError(f"A record with this {field} already exists.", field=field)
    return _envelope(err.status_code, err.message, err.details)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        message = f"Route {request.url.path} not found"
    return _envelope(exc.status_code, message, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Opaque 500; exception text is only exposed in dev with DEBUG on."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    details = None
    if settings.APP_ENV == "dev" and settings.DEBUG:
        details = {"error": f"{type(exc).__name__}: {exc}"}
    return _envelope(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", details
    )


@app.get("/")
def root() -> dict[str, object]:
    """Root route; minimal payload for discovery."""
    return {
        "success": True,
        "message": "Cash Advance API",
        "data": {
            "version": app.version,
            "docs": app.docs_url,
            "api": settings.API_V1_PREFIX,
        },
    }
