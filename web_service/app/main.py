"""
Source Console Web Service

HTTP API over the knowledge base sources, the indexed file browser and
the project API tokens.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import structlog
import time
import uuid

from .core.config import get_settings
from .core.logging import configure_logging
from .api.routes import api_router
from .core.database import close_db, init_db

# Configure structured logging
configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    logger.info("Starting Source Console Web Service")

    await init_db()

    logger.info("Web Service started successfully")
    yield

    logger.info("Shutting down Source Console Web Service")
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    settings = get_settings()

    app = FastAPI(
        title="Source Console API",
        description="Knowledge base sources, indexed files and API tokens",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=settings.CORS_EXPOSE_HEADERS,
    )

    # Request ID middleware
    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()
        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response = await call_next(request)
        process_time = time.time() - start_time

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(process_time)

        return response

    # Include API routes
    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get("/api/v1/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": "source-console-web-service",
            "version": "0.1.0"
        }

    return app


# Create the app instance
app = create_app()

if __name__ == "__main__":
    import uvicorn
    settings = get_settings()

    uvicorn.run(
        "app.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.ENVIRONMENT == "development",
        log_config=None  # Use our custom logging
    )
