import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tenantgate import __version__
from tenantgate.core.settings import settings
from tenantgate.core.storage import AuthorizationStore, InMemoryStore
from tenantgate.domains.auth.routes import router as auth_router
from tenantgate.domains.organizations.routes import router as organizations_router
from tenantgate.domains.workflows.engine import WorkflowEngine
from tenantgate.domains.workflows.routes import router as workflows_router
from tenantgate.shared.exceptions import (
    AuthorizationDenied,
    StoreError,
    StoreFailureError,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logger.info(f"{settings.APP_NAME} starting with {type(app.state.store).__name__}")
    yield
    # Shutdown
    logger.info(f"{settings.APP_NAME} shutting down")


async def authorization_denied_handler(
    request: Request, exc: AuthorizationDenied
) -> JSONResponse:
    logger.info(
        f"Denied {request.method} {request.url.path} with {exc.code} "
        f"at stage {exc.failed_stage.value}"
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    """Render a store failure outside the gates as an AUTHORIZATION_ERROR denial."""
    logger.error(f"Store error on {request.method} {request.url.path}: {exc}")
    denial = StoreFailureError()
    return JSONResponse(status_code=denial.status_code, content=denial.to_body())


def create_app(
    store: Optional[AuthorizationStore] = None,
    workflow_engine: Optional[WorkflowEngine] = None,
) -> FastAPI:
    """
    Build the API.

    Args:
        store: Authorization store; a fresh InMemoryStore when omitted
        workflow_engine: Engine behind the workflow routes; those routes
            answer 503 when omitted

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="tenantgate API",
        description="Multi-tenant organization authorization API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.store = store if store is not None else InMemoryStore()
    app.state.workflow_engine = workflow_engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AuthorizationDenied, authorization_denied_handler)
    app.add_exception_handler(StoreError, store_error_handler)

    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(organizations_router, prefix="/api/v1")
    app.include_router(workflows_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    return app


app = create_app()
