"""FastAPI application"""
from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional
import logging
import time

from analytics import StatsService
from config import (
    DRAIN_BATCH_SIZE, DRAIN_IN_PROCESS, DRAIN_INTERVAL_SECONDS, LOG_FORMAT, LOG_LEVEL,
    MONGODB_DB, MONGODB_URL, QUEUE_NAME, QUEUE_TIMEOUT, RABBITMQ_URL, STORE_TIMEOUT,
)
from db import EventStore
from errors import QueueError, StorageError, ValidationError
from helpers import utc_now_iso
from ingest import EventIngestor
from messaging import EventQueue
from models import EVENT_TYPES
from worker import DrainScheduler, QueueDrainer

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
logger = logging.getLogger(__name__)


def build_services(app: FastAPI, queue: EventQueue, store: EventStore):
    """Wire the pipeline components onto app.state"""
    app.state.queue = queue
    app.state.store = store
    app.state.ingestor = EventIngestor(queue)
    app.state.drainer = QueueDrainer(queue, store, batch_size=DRAIN_BATCH_SIZE)
    app.state.stats = StatsService(store)
    app.state.started_at = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    queue = EventQueue(RABBITMQ_URL, QUEUE_NAME, timeout=QUEUE_TIMEOUT)
    store = EventStore(MONGODB_URL, MONGODB_DB, timeout=STORE_TIMEOUT)
    await queue.connect()
    await store.connect()
    build_services(app, queue, store)

    scheduler = DrainScheduler(app.state.drainer, interval=DRAIN_INTERVAL_SECONDS)
    if DRAIN_IN_PROCESS:
        scheduler.start()
    logger.warning("System initialized")
    yield
    await scheduler.stop()
    await queue.close()
    await store.close()


app = FastAPI(title="Site Analytics API", version="1.0.0", lifespan=lifespan)


def uptime(request: Request) -> float:
    return round(time.monotonic() - request.app.state.started_at, 3)


@app.post("/event", status_code=202)
async def ingest_event(request: Request, payload: Dict[str, Any] = Body(...)):
    """Queue a single event for processing"""
    try:
        result = await request.app.state.ingestor.ingest_event(payload)
    except ValidationError as e:
        return JSONResponse(
            status_code=400,
            content={"status": "error", "field": e.field, "error": e.message}
        )
    except QueueError as e:
        logger.error(f"Event route error: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

    return {
        "status": "success",
        "message": "Event queued for processing",
        "event_id": result.event_id,
        "queue_time": f"{result.queue_time_ms}ms",
        "queue_length": result.queue_length
    }


@app.get("/stats")
async def get_stats(
    request: Request,
    site_id: Optional[str] = None,
    date: Optional[str] = None,
    event_type: str = "page_view"
):
    """Daily statistics for a site"""
    if not site_id:
        raise HTTPException(status_code=400, detail="site_id is required")
    if event_type not in EVENT_TYPES:
        raise HTTPException(status_code=400, detail=f"event_type must be one of: {', '.join(EVENT_TYPES)}")
    try:
        return await request.app.state.stats.get_stats(site_id, date, event_type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        logger.error(f"Analytics route error: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to generate analytics", "details": str(e)}
        )


@app.get("/health")
async def health_check(request: Request):
    """Health check"""
    state = request.app.state
    try:
        await state.store.ping()
        stats = await state.drainer.get_queue_stats()
    except (QueueError, StorageError) as e:
        return JSONResponse(status_code=503, content={"status": "unhealthy", "error": str(e)})

    return {
        "status": "healthy",
        "timestamp": utc_now_iso(),
        "uptime": uptime(request),
        "databases": {
            "rabbitmq": "connected" if state.queue.is_connected else "disconnected",
            "mongodb": "connected"
        },
        "queue": stats.queue,
        "processing": stats.processing
    }


@app.get("/queue-stats")
async def queue_stats(request: Request):
    """Queue depth and drain counters"""
    try:
        stats = await request.app.state.drainer.get_queue_stats()
    except QueueError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {**stats.model_dump(), "performance": {"uptime": uptime(request)}}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=3000)
