from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import get_settings
from .db.mongo import close_mongo_connection, connect_to_mongo, ensure_indexes, get_database
from .routers import generate, questions

settings = get_settings()
logger = logging.getLogger("uvicorn.error")
logging.getLogger("backend").setLevel(settings.log_level.upper())

app = FastAPI(title=settings.app_name, version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list(),
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    allow_credentials=True,
)


# Security Headers Middleware
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

    # Strict Transport Security (only in production/HTTPS)
    if request.url.scheme == "https" or settings.debug is False:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

    return response


@app.on_event("startup")
async def startup() -> None:
    await connect_to_mongo()
    await ensure_indexes(get_database())
    logger.info("MongoDB connected and indexes ensured")


@app.on_event("shutdown")
async def shutdown() -> None:
    await close_mongo_connection()


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.error(f"Validation error for {request.url.path}: {exc.errors()}")

    # Format errors into user-friendly messages
    error_messages = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", []) if part != "body"]
        field_name = loc[-1] if loc else "body"
        error_type = error.get("type", "")
        if "missing" in error_type:
            error_messages.append(f"{field_name} is required")
        else:
            error_messages.append(f"{field_name}: {error.get('msg', '')}")

    message = "; ".join(error_messages) if error_messages else "Validation error"

    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": message,
            "detail": message,
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = f"Route {request.url.path} not found"
    else:
        message = str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": message})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error for {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"message": "Internal Server Error", "error": str(exc)})


@app.get("/")
@app.head("/")
async def root() -> dict[str, Any]:
    return {
        "message": "DSA Question Bank API is running successfully!",
        "timestamp": _now_iso(),
        "status": "healthy",
    }


@app.get("/health")
@app.head("/health")
async def health_check() -> dict[str, Any]:
    return {
        "message": "Health check passed",
        "timestamp": _now_iso(),
        "status": "healthy",
    }


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


app.include_router(generate.router, prefix="/api", tags=["generation"])
app.include_router(questions.router, prefix="/api/questions", tags=["questions"])
