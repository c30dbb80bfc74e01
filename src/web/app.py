"""
Lead Workflow API Application

FastAPI app factory. Wires settings, logging, the lead store and lifecycle
engine, middleware, exception handlers and routers.

Run with:
    uvicorn web.app:create_app --factory
"""

import logging
import traceback
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from config.logging_config import configure_logging
from config.settings import Settings, get_settings, validate_startup_security
from database.lead_store import LeadStore
from lead_workflow.engine import LeadLifecycleEngine
from lead_workflow.errors import ErrorCode, LeadWorkflowError

from .common import HTTP_ERROR_CODES, create_error_response, status_for
from .lead_routes import lead_router
from .middleware import RequestIdMiddleware
from .permission_routes import permission_router, user_router

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

async def lead_workflow_error_handler(request: Request, exc: LeadWorkflowError):
    """Translate workflow errors into their HTTP status and error body."""
    status_code = status_for(exc)
    logger.warning(f"LeadWorkflowError: {exc.code.value} - {exc.message}")
    return create_error_response(
        code=exc.code.value,
        message=exc.user_message,
        status_code=status_code,
        details=exc.details,
        request_id=_request_id(request),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors with user-friendly messages."""
    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append(f"{field}: {error['msg']}")

    return create_error_response(
        code=ErrorCode.VALIDATION_ERROR.value,
        message="Please check your input. Some values appear to be invalid.",
        status_code=422,
        details={"validation_errors": errors},
        request_id=_request_id(request),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions with the standard error body."""
    return create_error_response(
        code=HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
        message=str(exc.detail),
        status_code=exc.status_code,
        request_id=_request_id(request),
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unexpected exceptions."""
    logger.error(f"Unexpected error: {exc}\n{traceback.format_exc()}")
    return create_error_response(
        code="INTERNAL_ERROR",
        message="Something went wrong. Please try again. If the problem persists, contact support.",
        status_code=500,
        details={"type": type(exc).__name__},
        request_id=_request_id(request),
    )


# =============================================================================
# APP FACTORY
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    store: Optional[LeadStore] = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        settings: Application settings. If None, loads from environment.
        store: Lead store to serve. If None, one is created from the
            database settings and closed on shutdown.
    """
    settings = settings or get_settings()
    configure_logging(level=settings.log_level, json_output=settings.log_json)
    validate_startup_security(settings)

    owns_store = store is None
    if store is None:
        store = LeadStore.from_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"{settings.name} {settings.version} starting ({settings.environment})")
        yield
        if owns_store:
            store.close()
        logger.info(f"{settings.name} stopped")

    app = FastAPI(
        title=f"{settings.name} Lead Workflow API",
        version=settings.version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.lead_store = store
    app.state.engine = LeadLifecycleEngine.from_settings(store, settings)

    # Last added = first executed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(LeadWorkflowError, lead_workflow_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(lead_router)
    app.include_router(permission_router)
    app.include_router(user_router)

    @app.get("/health", tags=["Health"])
    async def health():
        return {
            "status": "healthy",
            "service": settings.name,
            "version": settings.version,
            "environment": settings.environment,
        }

    return app
