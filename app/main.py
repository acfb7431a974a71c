from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from contextlib import asynccontextmanager
import uvicorn
import logging

from app.broadcast.bus import BroadcastBus
from app.storage.dynamodb import DynamoDBService
from app.storage.s3 import S3Service
from app.storage.gateway import StorageGateway
from app.settings import settings
from app.routers.photo_wall import router as photo_wall_router
from app.exceptions import add_exception_handlers

logging.basicConfig(level=logging.INFO)
log = logging.getLogger("photo-wall")

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
        Async context manager for FastAPI application lifecycle events.
        Creates the broadcast bus and, when credentials are present, the storage gateway.
    """
    app.state.settings = settings
    app.state.bus = BroadcastBus(buffer_size=settings.subscriber_buffer_size)
    app.state.gateway = None
    if settings.storage_configured:
        app.state.gateway = StorageGateway(
            S3Service(settings),
            DynamoDBService(settings),
            folder=settings.photo_folder,
        )
    else:
        log.warning("Storage credentials missing; /api/photos and /api/upload will fail")
    yield
    # Cleanup resources
    app.state.bus.close()
    if app.state.gateway is not None:
        app.state.gateway.close()

# Initialize App
app = FastAPI(
    title=settings.app_title,
    lifespan=lifespan,
    description="Live Photo Wall Service",
)

# Add exception handlers
add_exception_handlers(app)

# CORS - Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=['*'],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add the routers
app.include_router(photo_wall_router)

# Check Health
@app.get("/health", response_class=PlainTextResponse)
@app.get("/healthz", response_class=PlainTextResponse, include_in_schema=False)
def health():
    """
        Liveness probe
    """
    return "ok"

if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.port)
