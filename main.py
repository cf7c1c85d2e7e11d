from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from api.dependencies.providers import get_provider_registry
from api.routes.meeting_routes import router as meeting_router
from api.routes.calendar_routes import router as calendar_router
from config import settings
from db.mongodb.connection import mongodb_connection
from utils.logger import logger
import uvicorn

API_VERSION = "1.0.0"

app = FastAPI(
    title="Meeting Scheduler API",
    description="Ranked meeting slot suggestions, confirmation and two-way calendar sync",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """Connect to MongoDB and build indexes before serving"""
    logger.info(f"Starting Meeting Scheduler API {API_VERSION}...")
    await mongodb_connection.connect()
    registry = await get_provider_registry()
    logger.info(f"Calendar providers available: {', '.join(registry.providers)}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down Meeting Scheduler API...")
    await mongodb_connection.disconnect()


app.include_router(meeting_router, tags=["Meetings"])
app.include_router(calendar_router, tags=["Calendar"])


@app.get("/")
async def root():
    registry = await get_provider_registry()
    return {
        "message": "Meeting Scheduler API",
        "version": API_VERSION,
        "calendar_providers": registry.providers,
    }


@app.get("/health")
async def health_check():
    """Reports unhealthy (503) when MongoDB does not answer a ping"""
    try:
        await mongodb_connection.get_database().command("ping")
    except Exception as e:
        logger.warning(f"Health check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "unhealthy", "database": "unreachable"})
    return {"status": "healthy", "database": "connected"}


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
