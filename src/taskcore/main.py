"""
Main TaskCore FastAPI application.

Wires the task router behind the bearer gate, creates the database engine
and token verifier once in the lifespan, and renders every error as a JSON
body with a ``message``.
"""

import os
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .logging_setup import setup_logging

setup_logging(app_name="taskcore.main")
logger = logging.getLogger(__name__)

from .auth import HmacTokenVerifier
from .database import check_pg_health, get_async_pg_engine, get_pg_pool_stats
from .models import TaskBase, FIELD_MESSAGES
from .models.task_api import FieldError, ValidationErrorResponse
from .api.routers.tasks_router import router as tasks_router

API_PREFIX = os.getenv("API_PREFIX", "/api")
RUN_DDL_ON_STARTUP = os.getenv("RUN_DDL_ON_STARTUP", "true").lower() in ("1","true","yes")  # set false in prod

async def init_db(engine: AsyncEngine):
    """Create tables in dev; in prod prefer migrations."""
    if not RUN_DDL_ON_STARTUP:
        return
    async with engine.begin() as conn:
        await conn.run_sync(TaskBase.metadata.create_all)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting TaskCore API application...")

    app.state.token_verifier = HmacTokenVerifier.from_config()
    logger.info("Token verifier initialized")

    engine = get_async_pg_engine()
    app.state.db_engine = engine
    await init_db(engine)
    logger.info("Database initialized successfully")

    logger.info("TaskCore API application startup complete")
    yield

    # Shutdown
    logger.info("Shutting down TaskCore API application...")
    eng: AsyncEngine = app.state.db_engine
    await eng.dispose()
    logger.info("Database engine disposed")

app = FastAPI(
    title="TaskCore API",
    description="Bearer-authenticated task management API",
    version=__version__,
    lifespan=lifespan,
    docs_url="/api-docs",
    redoc_url=None,
    openapi_url="/api-docs/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ALLOW_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(tasks_router, prefix=API_PREFIX, tags=["Tasks"])

# --- Error rendering ---

def _field_errors(exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = list(err.get("loc", ()))
        location = str(loc[0]) if loc else "body"
        field = str(loc[-1]) if len(loc) > 1 else location
        errors.append(FieldError(
            field=field,
            message=FIELD_MESSAGES.get(field, err.get("msg", "Invalid value")),
            location=location,
        ))
    return errors

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    body = ValidationErrorResponse(errors=_field_errors(exc))
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump())

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"message": "Internal server error"})

# --- Operational endpoints ---

@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "taskcore-api", "version": __version__}

@app.get("/readyz")
async def ready_check():
    eng = getattr(app.state, "db_engine", None)
    if eng is None or not await check_pg_health(eng):
        return JSONResponse(status_code=503, content={"status": "not_ready", "deps": {"db": "unavailable"}})
    return {"status": "ready", "deps": {"db": "ok", "pool": get_pg_pool_stats(eng)}}

@app.get("/metrics")
async def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

@app.get("/")
async def root():
    return {"message": "Welcome to TaskCore API", "version": __version__, "docs": "/api-docs", "health": "/health"}

def run():
    import uvicorn
    uvicorn.run(
        app,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "5000")),
        proxy_headers=True,
        forwarded_allow_ips="*",
        log_config=None,
    )

if __name__ == "__main__":
    run()
