# main.py — Kanban Core API
#
# Request flow: correlation IDs -> security headers -> router. Domain errors
# (KanbanError) become JSON bodies carrying a KBN-* code and the request ID.

import os
import json
import time
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text

from database import init_db, close_db, get_db_context
from errors import KanbanError
from logging_system import RequestContext, set_current_context, reset_current_context, log_response, log_error
from telemetry import setup_telemetry

logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
)
logger = logging.getLogger("kanban-core")

VERSION = "1.0.0"
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if origin.strip()
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Kanban Core v%s (%s)", VERSION, ENVIRONMENT)
    await init_db()
    setup_telemetry(app)
    yield
    logger.info("Shutting down Kanban Core")
    await close_db()


app = FastAPI(
    title="Kanban Core",
    description="Kanban boards, ordered columns and cards, and acyclic card dependencies",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID", "X-Correlation-ID"],
    expose_headers=["X-Request-ID", "X-Correlation-ID", "X-Response-Time"],
)


# ============================================================
# MIDDLEWARE
# ============================================================

@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    """Bind request/correlation IDs for the structured and audit logs"""
    context = RequestContext.create(
        request_id=request.headers.get("X-Request-ID"),
        correlation_id=request.headers.get("X-Correlation-ID"),
    )
    request.state.request_id = context.request_id
    token = set_current_context(context)
    try:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers["X-Request-ID"] = context.request_id
        response.headers["X-Correlation-ID"] = context.correlation_id
        response.headers["X-Response-Time"] = f"{elapsed_ms:.1f}ms"
        log_response(request.method, request.url.path, response.status_code, round(elapsed_ms, 3))
        return response
    finally:
        reset_current_context(token)


@app.middleware("http")
async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    response.headers.update({
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
    })
    return response


# ============================================================
# EXCEPTION HANDLERS
# ============================================================

def _request_id(request: Request):
    return getattr(request.state, "request_id", None)


def _clean_validation_error(err: dict) -> dict:
    # Pydantic may put non-JSON values (datetimes, bytes) in "input"
    cleaned = {
        "type": str(err.get("type", "unknown")),
        "loc": list(err.get("loc", [])),
        "msg": str(err.get("msg", "")),
    }
    if "input" in err:
        try:
            json.dumps(err["input"])
            cleaned["input"] = err["input"]
        except (TypeError, ValueError):
            cleaned["input"] = str(err["input"])
    return cleaned


@app.exception_handler(KanbanError)
async def kanban_error_handler(request: Request, exc: KanbanError):
    return JSONResponse(
        status_code=exc.http_status,
        content={**exc.to_dict(), "request_id": _request_id(request)},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "detail": [_clean_validation_error(err) for err in exc.errors()],
            "request_id": _request_id(request),
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)
    log_error("Unhandled exception", error=exc, metadata={"path": request.url.path})
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "request_id": _request_id(request)},
    )


# ============================================================
# ROUTES
# ============================================================

from routers import kanban

app.include_router(kanban.router)


@app.get("/health")
async def health_check():
    """Liveness plus a SELECT 1 against the database"""
    try:
        async with get_db_context() as db:
            await db.execute(text("SELECT 1"))
        database = "connected"
    except Exception as e:
        database = f"error: {str(e)[:100]}"

    return {
        "status": "healthy" if database == "connected" else "degraded",
        "version": VERSION,
        "environment": ENVIRONMENT,
        "database": database,
    }


@app.get("/")
async def root():
    return {"name": "Kanban Core", "version": VERSION, "docs": "/docs", "health": "/health"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", 8000)),
        reload=ENVIRONMENT != "production",
        workers=int(os.getenv("WORKERS", 1)),
    )
