"""
FastAPI main application for the Bookstore API.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from bookstore.config import APIConfig, config as default_config
from bookstore.database import MongoDBManager
from bookstore.models import ErrorResponse, HealthResponse
from bookstore.routes import auth, books, orders, reviews, users
from bookstore.sessions import MongoSessionStore, SessionMiddleware
from bookstore.validation import validation_failure, violations_from_errors
from utilities.logger import RequestLoggingMiddleware, setup_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    app_config: APIConfig = app.state.config
    setup_logging(
        log_level=app_config.log_level,
        log_format=app_config.log_format,
        log_file=app_config.log_file,
        debug=app_config.debug
    )
    logger.info("Starting Bookstore API", environment=app_config.environment)

    # A failed connection propagates and stops the server from starting
    database = MongoDBManager(app_config.mongodb_uri, app_config.mongodb_database)
    try:
        await database.connect()
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise

    app.state.database = database
    app.state.session_store = MongoSessionStore(database.sessions, app_config.session_ttl)
    logger.info("Database connection established")

    yield

    logger.info("Shutting down Bookstore API")
    await database.disconnect()


def _error_response(status_code: int, error: str, detail: Optional[str] = None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail, status_code=status_code).model_dump(),
        headers=headers
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map exceptions to the API's error bodies."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        detail = None
        if exc.status_code >= 500 and exc.__cause__ is not None and request.app.state.config.debug:
            detail = str(exc.__cause__)
        return _error_response(exc.status_code, str(exc.detail), detail, getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Body rule failures become 412; malformed JSON and bad parameters become 400."""
        errors = exc.errors()

        if any(error.get("type") == "json_invalid" for error in errors):
            return _error_response(status.HTTP_400_BAD_REQUEST, "Malformed JSON body")

        body_errors = [error for error in errors if tuple(error.get("loc", ()))[:1] == ("body",)]
        if len(body_errors) != len(errors):
            parameter_errors = [v.model_dump() for v in violations_from_errors(errors)]
            return _error_response(
                status.HTTP_400_BAD_REQUEST,
                "Invalid request parameters",
                detail="; ".join(f"{v['field']}: {v['message']}" for v in parameter_errors)
            )

        failure = validation_failure(request.url.path, body_errors)
        logger.info(
            "Payload validation failed",
            path=request.url.path,
            fields=[violation.field for violation in failure.data.errors]
        )
        return JSONResponse(
            status_code=status.HTTP_412_PRECONDITION_FAILED,
            content=failure.model_dump()
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error("Unhandled exception", error=str(exc), path=request.url.path)
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            str(exc) if request.app.state.config.debug else None
        )


def create_app(app_config: Optional[APIConfig] = None) -> FastAPI:
    """
    Build the application.

    Args:
        app_config: Settings to use; defaults to the environment-derived config

    Returns:
        Configured FastAPI instance
    """
    app_config = app_config or default_config

    app = FastAPI(
        title=app_config.api_title,
        description=app_config.api_description + """

## Authentication

Reading is public. Creating, updating and deleting require a session:
log in through `/auth/github` and the session cookie is sent automatically.

## Errors

* **400**: malformed identifier or empty body
* **401**: not logged in
* **404**: no document with that identifier
* **409**: duplicate email or duplicate review
* **412**: payload failed validation; `data.errors` lists each field
""",
        version=app_config.api_version,
        docs_url="/api-docs",
        redoc_url=None,
        openapi_url="/api-docs/openapi.json",
        swagger_ui_parameters={"tagsSorter": "alpha", "operationsSorter": "method"},
        lifespan=lifespan
    )
    app.state.config = app_config

    app.add_middleware(
        SessionMiddleware,
        secret=app_config.session_secret,
        cookie_name=app_config.session_cookie_name,
        max_age=app_config.session_max_age,
        same_site=app_config.session_same_site,
        https_only=app_config.is_production
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization"],
    )

    register_exception_handlers(app)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint."""
        database = getattr(request.app.state, "database", None)
        db_status = "unavailable"
        details = None
        if database is not None:
            details = await database.health_check()
            db_status = details.pop("status", "unknown")

        return HealthResponse(
            status="healthy" if db_status == "healthy" else "degraded",
            timestamp=datetime.now(timezone.utc),
            version=app_config.api_version,
            database_status=db_status,
            details=details
        )

    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(books.router)
    app.include_router(orders.router)
    app.include_router(reviews.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "bookstore.main:app",
        host=default_config.host,
        port=default_config.port,
        reload=default_config.debug,
        log_level=default_config.log_level.lower()
    )
