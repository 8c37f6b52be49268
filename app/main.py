import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, status
from app.core.db import init_db, close_db
from app.core.container import build_messaging
from app.api.v1.outbox import router as outbox_router
from app.api.v1.inbox import router as inbox_router
from app.api.v1.jobs import router as jobs_router
from app.core.config import PROJECT_NAME, VERSION, SCHEDULER_ENABLED
from app.core.exception_handlers import setup_exception_handlers

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handles startup and shutdown events."""
    log.info(f"Starting {PROJECT_NAME} v{VERSION}...")
    await init_db() # Connect to DB and generate schemas
    messaging = build_messaging()
    app.state.messaging = messaging
    if SCHEDULER_ENABLED:
        await messaging.scheduler.start()
    yield
    await messaging.scheduler.stop()
    await close_db()
    log.info(f"{PROJECT_NAME} stopped.")

app = FastAPI(
    title=PROJECT_NAME,
    version=VERSION,
    lifespan=lifespan,
    # Configure API documentation and paths
    docs_url="/docs",
    redoc_url="/redoc"
)

# Include routers for modular API structure
app.include_router(outbox_router, prefix="/api/v1/outbox", tags=["Outbox Inspection"])
app.include_router(inbox_router, prefix="/api/v1/inbox", tags=["Inbox Inspection"])
app.include_router(jobs_router, prefix="/api/v1/jobs", tags=["Messaging Jobs"])


setup_exception_handlers(app)

@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """Simple health check endpoint."""
    return {"status": "ok", "app_name": PROJECT_NAME}
