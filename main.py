"""
Run Your Trip FastAPI Backend
Purchase fulfillment and secure template downloads with Stripe integration
"""

import logging
import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy import text
import redis

from config import settings
from database import SessionLocal, DatabaseManager
from app.routes import auth, download, purchases, stripe_webhook
from app.middleware.rate_limit import RateLimitMiddleware

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

DEFAULT_SECRET_KEY = "your-super-secret-key-change-this"

# Redis backs the shared rate limit counters (optional)
redis_client = None
if settings.REDIS_ENABLED:
    redis_client = redis.Redis(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        password=settings.REDIS_PASSWORD or None,
        decode_responses=True,
        socket_connect_timeout=5
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info(f"{settings.APP_NAME} backend starting...")

    if settings.TOKEN_SIGNING_SECRET == DEFAULT_SECRET_KEY and not settings.DEBUG:
        logger.warning("Download tokens are signed with the default SECRET_KEY; set DOWNLOAD_TOKEN_SECRET")

    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.warning("STRIPE_WEBHOOK_SECRET not configured - webhooks will be rejected")

    if DatabaseManager.check_connection():
        logger.info("Database connection established")
        if settings.SKIP_DB_TABLE_CREATION:
            logger.info("SKIP_DB_TABLE_CREATION is true - tables are managed by alembic")
        else:
            DatabaseManager.create_all_tables()
    else:
        logger.error("Database connection failed")

    if redis_client is not None:
        try:
            redis_client.ping()
            logger.info("Redis connection established")
        except redis.RedisError as e:
            logger.warning(f"Redis connection failed (rate limiting fails open): {e}")

    yield

    # Shutdown
    logger.info(f"{settings.APP_NAME} backend shutting down...")


# Create FastAPI app
app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Template marketplace purchase fulfillment and secure downloads",
    version=settings.APP_VERSION,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
    lifespan=lifespan
)

if redis_client is not None:
    app.add_middleware(RateLimitMiddleware, redis_client=redis_client)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors as {"error": ...}"""
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None)
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}: {exc}",
        exc_info=exc
    )

    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )


# Health check endpoint
@app.get("/health")
async def health_check():
    """System health check"""
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "services": {}
    }

    # Check Database
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        db.close()
        health_status["services"]["database"] = "healthy"
    except Exception:
        health_status["services"]["database"] = "unhealthy"
        health_status["status"] = "degraded"

    # Check Redis
    if redis_client is not None:
        try:
            redis_client.ping()
            health_status["services"]["redis"] = "healthy"
        except redis.RedisError:
            health_status["services"]["redis"] = "unhealthy"
            health_status["status"] = "degraded"

    return health_status


# Root endpoint
@app.get("/")
async def root():
    """Welcome message and API information"""
    return {
        "message": f"Welcome to {settings.APP_NAME} API",
        "description": "Template marketplace purchase fulfillment and secure downloads",
        "status": "running",
        "documentation": "/api/docs",
        "health_check": "/health"
    }

# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(download.router, prefix="/api/download", tags=["Downloads"])
app.include_router(purchases.router, prefix="/api/purchases", tags=["Purchases"])
app.include_router(stripe_webhook.router, prefix="/api/stripe", tags=["Stripe"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=5000,
        reload=settings.DEBUG,
        access_log=settings.DEBUG
    )
