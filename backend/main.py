"""
Image Resize Gateway Server

FastAPI application exposing the resize API.

Run:
    cd backend
    uvicorn main:app --host 0.0.0.0 --port 8000
"""

import logging
import math
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from image_resize import config
from image_resize.errors import InvalidInputError, RateLimitedError, ResizeGatewayError
from image_resize.routes_fastapi import resize_handler, router as resize_router

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        f"[Server] Resize gateway starting: cache={config.CACHE_BACKEND}, "
        f"rate limit={config.RATE_LIMIT_REQUESTS}/{config.RATE_LIMIT_WINDOW_SECONDS:g}s"
    )
    yield
    resize_handler.close()
    logger.info("[Server] Resize gateway stopped")


app = FastAPI(title="Image Resize Gateway", lifespan=lifespan)
app.include_router(resize_router)


# ============================================
# Error responses
# ============================================

@app.exception_handler(ResizeGatewayError)
async def gateway_error_handler(request: Request, exc: ResizeGatewayError):
    """Map gateway errors onto status codes without leaking internals."""
    if isinstance(exc, InvalidInputError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.public_message, "field": exc.field},
        )

    if isinstance(exc, RateLimitedError):
        headers = {}
        if exc.retry_after is not None:
            headers["Retry-After"] = str(max(1, math.ceil(exc.retry_after)))
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.public_message, "retryAfter": exc.retry_after},
            headers=headers,
        )

    if exc.status_code >= 500:
        logger.error(f"[Server] {type(exc).__name__} on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.public_message},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Report malformed request shapes as 400 naming the offending field."""
    errors = exc.errors()
    field = "body"
    message = "Invalid request"
    if errors:
        loc = [str(part) for part in errors[0].get("loc", ()) if part not in ("body", "query")]
        field = loc[-1] if loc else field
        message = f"{field}: {errors[0].get('msg', message)}"
    return JSONResponse(status_code=400, content={"error": message, "field": field})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"[Server] Unhandled error on {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Failed to process image"})


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "image-resize-gateway"}
