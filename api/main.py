"""
Quick Deploy - Main FastAPI Application.

Turns a "deploy" link for a template repository into a running Fastly
Compute service: fork, provision, store the deploy secret and enable CI.
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
import logging
import time

from api.dependencies import close_http_session
from api.routes import deploy, health
from core.domain.errors import AuthError, CheckpointError
from core.domain.value_objects import RepositoryName


# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# =============================================================================
# STARTUP/SHUTDOWN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Quick Deploy API starting up...")
    yield
    await close_http_session()
    logger.info("Quick Deploy API shutting down...")


# =============================================================================
# CREATE FASTAPI APP
# =============================================================================

app = FastAPI(
    title="Quick Deploy",
    description="""
    One-click deployment of template repositories to Fastly Compute.

    Steps:
    - Sign in with GitHub and supply a Fastly API token
    - Copy the template into the user's account
    - Create the service, backends and dictionaries from fastly.toml
    - Store the deploy credential as an Actions secret
    - Enable the deploy workflow
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)


# =============================================================================
# REQUEST LOGGING MIDDLEWARE
# =============================================================================

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing. Query strings carry tokens and are not logged."""
    start_time = time.time()

    logger.info(f"→ {request.method} {request.url.path}")

    response = await call_next(request)

    duration = time.time() - start_time
    logger.info(
        f"← {request.method} {request.url.path} "
        f"[{response.status_code}] ({duration:.3f}s)"
    )

    return response


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

@app.exception_handler(CheckpointError)
async def checkpoint_exception_handler(request: Request, exc: CheckpointError):
    logger.warning(f"Rejected checkpoint on {request.url.path}: {exc.kind.value}")
    return JSONResponse(
        status_code=400,
        content={"error": str(exc), "kind": exc.kind.value, "path": request.url.path},
    )


@app.exception_handler(AuthError)
async def auth_exception_handler(request: Request, exc: AuthError):
    logger.warning(f"Authentication failed on {request.url.path}: {exc.kind.value}")
    return JSONResponse(
        status_code=401,
        content={"error": str(exc), "kind": exc.kind.value, "path": request.url.path},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all uncaught exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "path": request.url.path
        }
    )


# =============================================================================
# ROOT ENDPOINT
# =============================================================================

@app.get("/", tags=["Root"])
async def root(
    request: Request,
    repository: Optional[str] = Query(default=None, description="owner/repository of a template"),
):
    """Service info, or the deploy link and badge for ``repository``."""
    if repository:
        try:
            name = RepositoryName.parse(repository)
        except ValueError as e:
            return JSONResponse(status_code=400, content={"error": str(e)})
        return deploy.deploy_link(request, name).model_dump()

    return {
        "message": "Quick Deploy",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "usage": "/{owner}/{repository}",
    }


# =============================================================================
# INCLUDE ROUTERS
# =============================================================================

app.include_router(
    health.router,
    tags=["Health"]
)

# Last: its /{owner}/{repo} routes would shadow anything registered after them.
app.include_router(
    deploy.router,
    tags=["Deploy"]
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host="0.0.0.0", port=8000)
