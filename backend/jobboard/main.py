"""
FastAPI application entry point for the job board API.

This is the main app that:
- Initializes FastAPI with CORS
- Maps domain errors to HTTP responses
- Registers all API routers
- Provides health check endpoint
- Sets up database and blob storage lifecycle
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jobboard import database
from jobboard.config import settings
from jobboard.errors import DomainError
from jobboard.services.storage import BlobStorage
# Import API routers
from jobboard.api import applications, job_listings, uploads

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.

    On startup: create the shared blob storage client
    On shutdown: dispose database connections
    """
    # Startup
    logger.info("🚀 Starting Job Board API...")
    logger.info(f"📊 Database: {settings.database_url.split('@')[1] if '@' in settings.database_url else 'configured'}")
    logger.info(f"🔧 Debug mode: {settings.debug}")
    app.state.blob_storage = BlobStorage.from_settings(settings)
    if not app.state.blob_storage.configured:
        logger.warning("Blob storage credentials missing, uploads will fail")

    yield

    # Shutdown
    logger.info("👋 Shutting down Job Board API...")
    await database.engine.dispose()


# Initialize FastAPI app
app = FastAPI(
    title="Job Board API",
    description="API for job listings, custom application forms and candidate applications",
    version="1.0.0",
    debug=settings.debug,
    lifespan=lifespan,
)

# Configure CORS
# Set ALLOWED_ORIGINS environment variable with comma-separated domains
allowed_origins = [
    "http://localhost:3000",  # Local development
]

if settings.allowed_origins:
    allowed_origins.extend(origin.strip() for origin in settings.allowed_origins.split(',') if origin.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    """Render domain errors with the same body shape as HTTPException."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Health check endpoint
@app.get("/health")
async def health_check():
    """Simple health check endpoint."""
    return {
        "status": "healthy",
        "service": "Job Board API",
        "version": "1.0.0",
    }


# Root endpoint
@app.get("/")
async def root():
    """API root with basic info."""
    return {
        "message": "Job Board API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


# Register API routers
app.include_router(job_listings.router, prefix="/api/job-listings", tags=["job-listings"])
app.include_router(applications.router, prefix="/api/applications", tags=["applications"])
app.include_router(uploads.router, prefix="/api/uploads", tags=["uploads"])
