from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from retailpos.core.config import settings, validate_config
from retailpos.core.errors import AppError
from retailpos.core.logging import setup_logging, get_logger
from retailpos.db.session import init_db, close_db
from retailpos.api.routes import health, auth, users

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    setup_logging(level=settings.LOG_LEVEL, debug=settings.DEBUG)
    validate_config(settings)
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")

    await init_db()
    logger.info("Database initialized")

    yield

    # Shutdown
    await close_db()
    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render service errors as {"message": ...} with their status code."""
    if exc.status_code >= 500:
        logger.error_with_data(
            exc.message,
            {"path": request.url.path, "error": type(exc).__name__},
            exc_info=exc,
        )
    else:
        logger.info_with_data(
            exc.message,
            {"path": request.url.path, "error": type(exc).__name__},
        )
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, prefix=settings.API_PREFIX, tags=["Auth"])
app.include_router(users.router, prefix=settings.API_PREFIX, tags=["Users"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
