# main.py - FastAPI Application Entry Point
# ============================================================================

import logging
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import redis.asyncio as redis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from freightdesk.core.config import settings
from freightdesk.core.database import init_db
from freightdesk.core.exceptions import FreightDeskError
from freightdesk.routers import auth, claim_requests, invoices, trucks, users, vehicle_condition

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

redis_client = redis.from_url(settings.REDIS_URL)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    try:
        await init_db()
        logger.info("✅ Database initialized successfully")
    except Exception as e:
        logger.error(f"❌ Database initialization failed: {e}")
    yield
    # Shutdown
    await redis_client.aclose()

app = FastAPI(
    title="FreightDesk API",
    description="Freight invoicing, truck claims and document generation",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["*"]
)


@app.middleware("http")
async def add_coop_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["Cross-Origin-Opener-Policy"] = "same-origin-allow-popups"
    return response

# Domain errors carry their own status code
@app.exception_handler(FreightDeskError)
async def freightdesk_exception_handler(request: Request, exc: FreightDeskError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url}: {exc}")
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for better error logging"""
    logger.error(f"Unhandled exception on {request.method} {request.url}: {str(exc)}")
    logger.error(f"Full traceback: {traceback.format_exc()}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error": str(exc)}
    )

app.include_router(invoices.router)
app.include_router(claim_requests.router)
app.include_router(trucks.router)
app.include_router(vehicle_condition.router)
app.include_router(auth.router)
app.include_router(users.router)

# Uploaded slips, claim media and generated PDFs
app.mount("/media", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="media")

# ============================================================================
# Health Check
# ============================================================================
@app.get("/health")
async def health_check():
    """Health check endpoint"""
    try:
        await redis_client.ping()
        broker = "up"
    except redis.RedisError as e:
        logger.warning(f"⚠️ Redis ping failed: {e}")
        broker = "down"
    return {"status": "healthy", "broker": broker, "timestamp": datetime.now(timezone.utc).isoformat()}

# Root endpoint
@app.get("/")
async def read_root():
    """Root endpoint"""
    return {"message": "FreightDesk API is running", "version": "1.0.0"}
