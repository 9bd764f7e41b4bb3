# app/main.py
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from app.config import settings
from app.middleware.cors import setup_cors
from app.database.connection import DatabaseConnection
from app.errors import NewsletterError, error_body


import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info("Starting newsletter delivery API...")
    try:
        await DatabaseConnection.get_pool()
        logger.info("Database connection pool initialized")
    except Exception as e:
        if settings.environment == "development":
            logger.warning(f"Database connection failed (development mode): {e}")
        else:
            logger.error(f"Failed to initialize database: {e}")
            raise

    yield

    # Shutdown
    logger.info("Shutting down newsletter delivery API...")
    try:
        await DatabaseConnection.close_pool()
        logger.info("Database connections closed")
    except Exception as e:
        logger.warning(f"Error closing database connections: {e}")

app = FastAPI(
    title="Daily System Design Newsletter API",
    description="Subscriptions, scheduled newsletter delivery and marketing campaigns",
    version="1.0.0",
    lifespan=lifespan
)

# Setup CORS
setup_cors(app)

from app.routes.cron import router as cron_router
app.include_router(cron_router)

from app.routes.newsletter import router as newsletter_router
app.include_router(newsletter_router)

from app.routes.unsubscribe import router as unsubscribe_router
app.include_router(unsubscribe_router)

from app.routes.webhooks import router as webhooks_router
app.include_router(webhooks_router)

from app.routes.feedback import router as feedback_router
app.include_router(feedback_router)

@app.get("/")
async def root():
    return {"message": "Daily System Design Newsletter API", "status": "healthy"}

@app.get("/health")
async def health_check():
    """Health check including database"""
    try:
        pool = await DatabaseConnection.get_pool()
        async with pool.acquire() as conn:
            await conn.fetchval('SELECT 1')
        db_healthy = True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        db_healthy = False

    return {
        "status": "healthy" if db_healthy else "degraded",
        "environment": settings.environment,
        "database_healthy": db_healthy
    }

@app.exception_handler(NewsletterError)
async def newsletter_exception_handler(request: Request, exc: NewsletterError):
    return JSONResponse(status_code=exc.status_code, content=error_body(exc))

# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )
