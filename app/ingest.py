"""Event admission: validate, stamp and enqueue"""
import logging
import time
import uuid
from typing import Any, Mapping, Optional

import msgpack
from pydantic import BaseModel

from errors import QueueError
from helpers import now_ms, utc_now_iso
from messaging import EventQueue
from models import QueuedEvent, RawEvent
from validation import parse_event

logger = logging.getLogger(__name__)


class IngestResult(BaseModel):
    event_id: str
    queue_time_ms: int
    queue_length: Optional[int]


def prepare_event(raw: RawEvent) -> QueuedEvent:
    """Stamp a validated raw event with identity and timestamps"""
    received_at = utc_now_iso()
    return QueuedEvent(
        id=str(uuid.uuid4()),
        site_id=raw.site_id,
        event_type=raw.event_type,
        path=raw.path,
        user_id=raw.user_id,
        timestamp=raw.timestamp or received_at,
        received_at=received_at,
        enqueued_at_ms=now_ms(),
    )


def serialize_event(event: QueuedEvent) -> bytes:
    return msgpack.packb(event.model_dump())


class EventIngestor:
    def __init__(self, queue: EventQueue):
        self.queue = queue

    async def ingest_event(self, raw: Mapping[str, Any]) -> IngestResult:
        """Validate and push one event to the queue tail"""
        started = time.perf_counter()

        event = prepare_event(parse_event(raw))
        logger.info(f"Queueing event {event.id} for site {event.site_id}")
        await self.queue.push(serialize_event(event))

        queue_time_ms = int((time.perf_counter() - started) * 1000)

        try:
            queue_length = await self.queue.length()
        except QueueError as e:
            logger.warning(f"Queue length unavailable after enqueue: {e}")
            queue_length = None

        return IngestResult(event_id=event.id, queue_time_ms=queue_time_ms, queue_length=queue_length)
