from dotenv import load_dotenv
from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware
import os
import logging
import sys

# Load environment variables from the backend/.env file before settings are read
dotenv_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), ".env")
load_dotenv(dotenv_path=dotenv_path)

# Import settings and database session management
from podcatalog.core.config import settings
from podcatalog.db.session import engine, Base

# Configure logging for the entire application at the very beginning
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)
logger.debug("Application startup: Initializing FastAPI application.")

import podcatalog.models  # noqa: F401  registers every table on Base.metadata
from podcatalog.core.podcast_index import ConfigurationError, PodcastIndexClient
from podcatalog.jobs.queue import SyncJobQueue

# Import the API routers for each resource
from podcatalog.api.v1 import podcasts, sync, system
logger.debug("Main: Imported API routers.")

# --- Database Table Creation ---
def create_tables():
    """
    Creates all database tables based on the SQLAlchemy Base metadata.
    """
    Base.metadata.create_all(bind=engine)

# Create the main FastAPI application instance
app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)

# --- Middleware ---
# The settings below are permissive; restrict allow_origins to the dashboard
# domain in production.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Event Handlers ---
@app.on_event("startup")
def on_startup():
    """
    Creates the database tables and the shared PodcastIndex and queue clients.
    Missing PodcastIndex credentials or REDIS_URL leave the matching client
    unset; endpoints that need it answer 503 or fall back to inline work.
    """
    logger.debug("Main: Startup event triggered. Creating database tables.")
    create_tables()

    try:
        app.state.podcast_index = PodcastIndexClient.from_settings(settings)
    except ConfigurationError as e:
        logger.warning(f"Main: PodcastIndex client disabled: {e}")
        app.state.podcast_index = None

    app.state.sync_queue = SyncJobQueue.from_settings(settings)
    if app.state.sync_queue is None:
        logger.info("Main: REDIS_URL not set; recent data syncs will run inline.")

@app.on_event("shutdown")
def on_shutdown():
    """
    Closes the clients created at startup.
    """
    client = getattr(app.state, "podcast_index", None)
    if client is not None:
        client.close()
    queue = getattr(app.state, "sync_queue", None)
    if queue is not None:
        queue.close()
    logger.debug("Main: Shutdown complete.")

# --- API Routers ---
app.include_router(podcasts.router, prefix=f"{settings.API_V1_STR}/podcasts", tags=["Podcasts"])
app.include_router(sync.router, prefix=f"{settings.API_V1_STR}/sync", tags=["Sync"])
app.include_router(system.router, prefix=f"{settings.API_V1_STR}/system", tags=["System"])
logger.debug(f"Main: Included routers under {settings.API_V1_STR}")

# --- Root Endpoint ---
@app.get("/", tags=["Root"])
def read_root():
    """
    A simple root endpoint for health checks and to welcome users.
    """
    return {"message": f"Welcome to the {settings.PROJECT_NAME}"}
