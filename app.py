"""
FastAPI application for image and video generation with Gemini.

Features:
- Batched, seed-reproducible image generation, variations, upscaling and live preview
- Veo video generation with job polling
- Bounded gallery archive with media normalization
- Prompt history, templates and prompt tools
- Daily usage counter
"""
import os
import re
import json
import time
from typing import Any

import uvicorn
from fastapi import FastAPI, Request, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import JSONResponse

from config import Config
from common.exceptions import GenerationError
from common.error_messages import ErrorCode, get_error_response
from image.routes import router as image_router
from videos.routes import router as videos_router
from gallery.routes import router as gallery_router
from prompts.routes import router as prompts_router
from utils.routes import router as usage_router
from utils.logger import get_logger

logger = get_logger("main")

# Fields whose values never reach the logs
SENSITIVE_FIELDS = {"api_key", "key", "secret", "authorization", "token"}
DATA_URL_RE = re.compile(r"data:[\w/+.-]+;base64,[A-Za-z0-9+/=]+")
KEY_PARAM_RE = re.compile(r"([?&]key=)[^&\s\"]+")
MAX_LOGGED_BODY = 2000


def mask_sensitive_data(data: Any, mask_value: str = "***MASKED***") -> Any:
    """
    Recursively mask sensitive fields and shorten inline media in data structures.

    Args:
        data: Data to mask (dict, list, or string)
        mask_value: Value to replace sensitive data with

    Returns:
        Data with sensitive fields masked and data URLs elided
    """
    if isinstance(data, dict):
        return {
            key: mask_value if key.lower() in SENSITIVE_FIELDS else mask_sensitive_data(value, mask_value)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [mask_sensitive_data(item, mask_value) for item in data]
    if isinstance(data, str):
        try:
            parsed = json.loads(data)
            if isinstance(parsed, (dict, list)):
                return json.dumps(mask_sensitive_data(parsed, mask_value))
        except ValueError:
            pass
        masked = DATA_URL_RE.sub(lambda m: f"data:...[{len(m.group(0))} chars]", data)
        return KEY_PARAM_RE.sub(rf"\g<1>{mask_value}", masked)
    return data


def _loggable(body: bytes) -> str:
    text = mask_sensitive_data(body.decode("utf-8", errors="replace"))
    if len(text) > MAX_LOGGED_BODY:
        text = text[:MAX_LOGGED_BODY] + "... [truncated]"
    return text


# Validate configuration on startup
try:
    Config.validate()
    logger.info("Configuration validated successfully")
except ValueError as e:
    logger.error(f"Configuration error: {e}")
    logger.error("Please set required environment variables in .env file")

app = FastAPI(
    title="Nebula Studio API",
    description="Image and video generation with Gemini, Imagen and Veo, with a bounded local gallery.",
    version="1.0.0"
)

# CORS middleware first so it runs on every response
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GenerationError)
async def generation_error_handler(request: Request, exc: GenerationError):
    """Structured failures carry a readable message and a stable code."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: [{exc.code.value}] {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: [{exc.code.value}] {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code.value}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions globally."""
    if isinstance(exc, HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail}
        )

    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    message, status_code = get_error_response(ErrorCode.UNKNOWN_ERROR)
    return JSONResponse(
        status_code=status_code,
        content={"detail": message, "code": ErrorCode.UNKNOWN_ERROR.value}
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests with timing; bodies are masked and truncated."""
    start_time = time.time()
    path = request.url.path

    if request.method in ["POST", "PUT", "PATCH"]:
        body_bytes = await request.body()
        log_msg = f"→ {request.method} {path}"
        if body_bytes:
            log_msg += f"\n  Request Body: {_loggable(body_bytes)}"
        logger.info(log_msg)
    else:
        logger.info(f"→ {request.method} {path}")

    try:
        response = await call_next(request)
    except Exception as e:
        process_time = (time.time() - start_time) * 1000
        logger.error(f"← {request.method} {path} - Error: {e} - Time: {process_time:.2f}ms")
        raise

    # Static files stream; leave their bodies alone
    if path.startswith("/assets/"):
        process_time = (time.time() - start_time) * 1000
        logger.info(f"← {request.method} {path} - Status: {response.status_code} - Time: {process_time:.2f}ms")
        return response

    response_body = b""
    async for chunk in response.body_iterator:
        response_body += chunk

    process_time = (time.time() - start_time) * 1000
    log_msg = f"← {request.method} {path} - Status: {response.status_code} - Time: {process_time:.2f}ms"
    if response_body:
        log_msg += f"\n  Response Body: {_loggable(response_body)}"
    logger.info(log_msg)

    return Response(
        content=response_body,
        status_code=response.status_code,
        headers=dict(response.headers),
        media_type=response.media_type
    )


# Serve generated media (local video files)
os.makedirs(Config.ASSETS_DIR, exist_ok=True)
app.mount(Config.ASSETS_URL_PREFIX.rstrip("/"), StaticFiles(directory=Config.ASSETS_DIR), name="assets")
logger.info(f"Static files mounted at {Config.ASSETS_URL_PREFIX}")

app.include_router(image_router)
app.include_router(videos_router)
app.include_router(gallery_router)
app.include_router(prompts_router)
app.include_router(usage_router)
logger.info("Routers included: image, videos, gallery, prompts, usage")


@app.on_event("startup")
async def startup_event():
    logger.info("=" * 80)
    logger.info("FastAPI application starting up")
    logger.info(f"Host: {Config.HOST}:{Config.PORT}")
    logger.info(f"Gallery capacity: {Config.GALLERY_CAPACITY}, persistence: {'on' if Config.PERSIST else 'off'}")
    logger.info("=" * 80)


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("=" * 80)
    logger.info("FastAPI application shutting down")
    logger.info("=" * 80)


@app.get("/healthz")
def health():
    """Health check endpoint."""
    logger.debug("Health check requested")
    return {"status": "ok"}


if __name__ == "__main__":
    logger.info(f"Starting server on {Config.HOST}:{Config.PORT}")
    uvicorn.run(
        "app:app",
        host=Config.HOST,
        port=Config.PORT,
        reload=True,
        log_level="info"
    )
