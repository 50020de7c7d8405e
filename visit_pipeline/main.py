"""
Visit Pipeline Engine
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorClient

from visit_pipeline.core.config import get_settings
from visit_pipeline.routers import follow_ups, quotations, site_visits

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the Mongo client for the lifetime of the application."""
    settings = get_settings()

    logger.info("Starting Visit Pipeline Engine...")
    mongo_client = AsyncIOMotorClient(settings.mongo_url)

    try:
        await mongo_client.admin.command('ping')
        logger.info("MongoDB connected successfully")
    except Exception as e:
        logger.error(f"MongoDB connection failed: {e}")
        mongo_client.close()
        raise

    app.state.mongo_client = mongo_client
    logger.info(f"Visit Pipeline Engine {settings.app_version} is ready")

    yield

    logger.info("Shutting down Visit Pipeline Engine...")
    mongo_client.close()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Visit Pipeline Engine",
    description=(
        "Turns field site visits into priced quotations and tracks "
        "customer status across follow-up visits."
    ),
    version=get_settings().app_version,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(site_visits.router)
app.include_router(quotations.router)
app.include_router(follow_ups.router)


@app.get("/")
async def root():
    settings = get_settings()
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "status": "operational",
    }


@app.get("/health")
async def health_check(request: Request):
    """Health check with the MongoDB dependency."""
    settings = get_settings()

    mongo_status = "unknown"
    try:
        await request.app.state.mongo_client.admin.command('ping')
        mongo_status = "connected"
    except Exception as e:
        mongo_status = f"error: {str(e)}"

    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "status": "healthy",
        "dependencies": {
            "mongodb": mongo_status,
        }
    }


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "visit_pipeline.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="info"
    )
