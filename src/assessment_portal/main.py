"""
Assessment Portal FastAPI Application.

Self-assessment against a fixed practice checklist: evidence and status per
practice, attached evidence documents, and point-in-time reports.
"""

import logging
import os
from contextlib import asynccontextmanager
from http import HTTPStatus
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .catalog import load_catalog, seed_practices
from .config import PortalConfig
from .db import AssessmentDatabase
from .exceptions import AssessmentPortalError
from .routes import assessments, dashboard, documents, practices, reports
from .services.uploads import ChunkedUploadService

logger = logging.getLogger(__name__)


def load_config(config_path: Optional[Path] = None) -> PortalConfig:
    """Load YAML config (if any), then apply environment overrides."""
    if config_path is None and (env_path := os.environ.get("ASSESSMENT_PORTAL_CONFIG")):
        config_path = Path(env_path)

    base = PortalConfig.from_yaml(config_path) if config_path else None
    return PortalConfig.from_env(base)


def _max_request_bytes(config: PortalConfig) -> int:
    # Single-shot uploads arrive base64-encoded inside JSON (~4/3 larger)
    return config.max_upload_bytes * 4 // 3 + 64 * 1024


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Assessment Portal starting up...")

    config = getattr(app.state, "config", None) or load_config()
    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Config error: {error}")
        raise RuntimeError(f"Invalid configuration: {'; '.join(errors)}")
    app.state.config = config

    db = AssessmentDatabase(config.db_path)
    seed_practices(db, load_catalog(config.catalog_path))
    app.state.db = db
    app.state.uploads = ChunkedUploadService(
        db,
        max_upload_bytes=config.max_upload_bytes,
        max_chunk_bytes=config.max_chunk_bytes,
        max_chunks=config.max_chunks,
    )

    logger.info(f"Assessment Portal ready on port {config.port} (db={config.db_path})")
    yield

    logger.info("Assessment Portal shutting down...")


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AssessmentPortalError)
    async def portal_error_handler(request: Request, exc: AssessmentPortalError):
        if exc.status_code >= 500:
            logger.error(f"{exc.error} on {request.url.path}: {exc}", exc_info=exc)
        else:
            logger.warning(f"{exc.error} on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.error, "message": str(exc)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": HTTPStatus(exc.status_code).phrase, "message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        message = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}"
            for err in exc.errors()
        )
        return JSONResponse(
            status_code=400,
            content={"error": "Validation Error", "message": message},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Server Error",
                "message": "An unexpected error occurred while processing your request.",
            },
        )


def create_app(config: Optional[PortalConfig] = None) -> FastAPI:
    """Create FastAPI application."""
    config = config or load_config()

    app = FastAPI(
        title="Assessment Portal",
        description="Security practice self-assessment and evidence tracking",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "PUT", "POST", "DELETE"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def limit_request_size(request: Request, call_next):
        length = request.headers.get("content-length")
        limit = _max_request_bytes(request.app.state.config)
        if length and length.isdigit() and int(length) > limit:
            return JSONResponse(
                status_code=413,
                content={
                    "error": "File too large",
                    "message": f"The request exceeds the maximum allowed size of "
                               f"{request.app.state.config.max_upload_bytes // (1024 * 1024)}MB.",
                },
            )
        return await call_next(request)

    _register_error_handlers(app)

    # API routes
    app.include_router(dashboard.router, prefix="/api", tags=["dashboard"])
    app.include_router(practices.router, prefix="/api/practices", tags=["practices"])
    app.include_router(assessments.router, prefix="/api/assessments", tags=["assessments"])
    app.include_router(documents.router, prefix="/api", tags=["documents"])
    app.include_router(reports.router, prefix="/api/reports", tags=["reports"])

    # Health check
    @app.get("/health")
    async def health():
        return {"status": "healthy", "service": "assessment-portal"}

    return app


app = create_app()


def main():
    """Entry point for assessment-portal CLI."""
    import argparse

    parser = argparse.ArgumentParser(description="Assessment Portal")
    parser.add_argument("--config", type=Path, help="Path to YAML config file")
    parser.add_argument("--port", type=int, help="Port to listen on")
    parser.add_argument("--host", help="Host to bind to")
    parser.add_argument(
        "--seed-only",
        action="store_true",
        help="Load the practice catalog into the database and exit",
    )
    args = parser.parse_args()

    config = load_config(args.config)
    if args.port:
        config.port = args.port
    if args.host:
        config.host = args.host

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.seed_only:
        db = AssessmentDatabase(config.db_path)
        created = seed_practices(db, load_catalog(config.catalog_path))
        print(f"Seeded {created} new practices into {config.db_path}")
        return

    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
