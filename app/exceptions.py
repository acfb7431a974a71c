"""
    Centralized exception handling for the FastAPI application.

    Every error leaves the service as ``{"ok": false, "error": <detail>}``.
"""
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
import logging

log = logging.getLogger(__name__)

MISSING_CONFIGURATION = (
    "Storage provider is not configured. "
    "Set AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY and S3_BUCKET."
)

class APIException(Exception):
    """Base class for API exceptions."""
    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(self.detail)

class ConfigurationException(APIException):
    """Raised on data-bearing requests while provider credentials are missing."""
    def __init__(self, detail: str = MISSING_CONFIGURATION):
        super().__init__(status_code=500, detail=detail)

class UploadValidationException(APIException):
    """File count, media type or size out of bounds."""
    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail)

class PinMismatchException(APIException):
    """Exception for a shared-secret mismatch."""
    def __init__(self):
        super().__init__(status_code=401, detail="PIN incorrect")

class ProviderException(APIException):
    """Exception for storage provider failures."""
    def __init__(self, detail: str):
        super().__init__(status_code=500, detail=detail)

def error_body(detail) -> dict:
    return {"ok": False, "error": detail}

async def api_exception_handler(request: Request, exc: APIException):
    """Handles API exceptions."""
    if exc.status_code >= 500:
        log.error(f"API Exception: {exc.detail}", exc_info=exc)
    else:
        log.warning(f"API Exception: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.detail),
    )

async def http_exception_handler(request: Request, exc: HTTPException):
    """Handles FastAPI HTTP exceptions."""
    log.error(f"HTTP Exception: {exc.detail}", exc_info=exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.detail),
    )

async def generic_exception_handler(request: Request, exc: Exception):
    """Handles all other exceptions."""
    log.error(f"Unhandled Exception: {str(exc)}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=error_body("An unexpected error occurred."),
    )

def add_exception_handlers(app):
    """Adds exception handlers to the FastAPI app."""
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
