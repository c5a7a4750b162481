# app/main.py

from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI, Request
from config.settings import settings
from infrastructure.socketio_manager import create_socketio_server
from api.socketio import create_realtime_gateway
import socketio
import asyncio
import logging

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


# Socket.IO server and the order-tracking namespaces registered on it
sio = create_socketio_server(settings)
realtime = create_realtime_gateway(sio, settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events"""
    # Startup: heartbeat + periodic connection stats
    tracker_task = asyncio.create_task(realtime.tracker.start())
    logger.info("Presence tracker started")

    yield

    # Shutdown: stop background tasks
    realtime.tracker.stop()
    try:
        await asyncio.wait_for(tracker_task, timeout=5.0)
    except asyncio.TimeoutError:
        logger.warning("Presence tracker task did not stop gracefully")


fastapi_app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# HTTP handlers reach the sockets through the notifier
fastapi_app.state.realtime = realtime.notifier


# Health check endpoint
@fastapi_app.get("/health")
async def health_check(request: Request):
    """Health check endpoint for Docker and monitoring"""
    stats = request.app.state.realtime.get_connection_stats()
    return {"status": "healthy", "socketio": stats.model_dump()}


# CORS configuration - important: can't use "*" with allow_credentials=True
fastapi_app.add_middleware(
    middleware_class=CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,  # Required for cookies/authentication
    allow_methods=["*"],
    allow_headers=["*"],
)

# Wrap FastAPI app with Socket.IO
# This allows Socket.IO to handle /socket.io/* paths and pass everything else to FastAPI
app = socketio.ASGIApp(sio, fastapi_app)
