from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import uvicorn

from checkin.api.routes import attendance, attendees, health
from checkin.core.config import settings
from checkin.core.logging import setup_logging
from checkin.services.cache import AttendanceCache
from checkin.services.grid_client import build_grid_client
from checkin.services.sync import AttendanceSyncService

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for startup and shutdown"""
    # Startup
    logger.info("🚀 Starting Event Check-In service...")

    grid, credentials_error = build_grid_client(settings)
    app.state.credentials_error = credentials_error
    app.state.sync_service = AttendanceSyncService.from_settings(grid, settings, AttendanceCache())

    if grid is not None:
        logger.info("✅ Google Sheets Integration: ACTIVE")
        if settings.GOOGLE_SHEET_ID:
            logger.info(f"   Default Sheet ID: {settings.GOOGLE_SHEET_ID}")
            logger.info(f"   Default Range: {settings.GOOGLE_SHEET_RANGE}")
        else:
            logger.info("   Sheet ID: provided by frontend")
    else:
        logger.warning("📱 Google Sheets Integration: DEMO MODE (sample data)")
        logger.warning(f"   Reason: {credentials_error}")

    yield

    # Shutdown
    logger.info("👋 Shutting down...")

# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Attendee search and check-in backed by a Google Sheet",
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(attendees.router, prefix="/api", tags=["Attendees"])
app.include_router(attendance.router, prefix="/api", tags=["Attendance"])

@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "service": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "status": "operational",
        "docs": "/docs",
        "endpoints": {
            "health": "/api/health",
            "validate_sheet": "/api/sheets/validate",
            "attendees": "/api/attendees",
            "search": "/api/attendees/search",
            "checkin": "/api/attendees/{id}/checkin",
            "summary": "/api/attendance/summary",
            "sync_from_sheet": "/api/attendance/sync-from-sheet"
        }
    }

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000, reload=False)
