"""Batch drainer moving events from the queue into the store"""
import asyncio
import logging
import msgpack
import signal
from typing import Optional, Set

from config import (
    DRAIN_BATCH_SIZE, DRAIN_INTERVAL_SECONDS, LOG_FORMAT, LOG_LEVEL,
    MONGODB_DB, MONGODB_URL, QUEUE_NAME, QUEUE_TIMEOUT, RABBITMQ_URL, STORE_TIMEOUT,
)
from db import EventStore
from errors import ProcessingError
from helpers import now_ms, utc_now_iso
from messaging import EventQueue
from models import ProcessingInfo, QueuedEvent, QueueInfo, QueueStats, StoredEvent

logger = logging.getLogger(__name__)


class QueueDrainer:
    """Pops bounded batches off the queue and persists them, one drain at a time"""

    def __init__(self, queue: EventQueue, store: EventStore, batch_size: int = DRAIN_BATCH_SIZE):
        self.queue = queue
        self.store = store
        self.batch_size = batch_size
        self.is_processing = False
        self.processed = 0
        self.failed = 0

    async def drain_tick(self) -> int:
        """Run one drain cycle; returns how many entries were persisted"""
        if self.is_processing:
            return 0

        self.is_processing = True
        persisted = 0
        try:
            queue_length = await self.queue.length()
            logger.info(f"Checking queue... (Current length: {queue_length})")

            for _ in range(self.batch_size):
                body = await self.queue.pop()
                if body is None:
                    break
                try:
                    await self.process_entry(body)
                    persisted += 1
                except ProcessingError as e:
                    self.failed += 1
                    logger.error(f"Dropped queue entry: {e}")
        except Exception as e:
            logger.error(f"Queue processor error: {e}")
        finally:
            self.is_processing = False

        return persisted

    async def process_entry(self, body: bytes):
        """Decode one queue entry and persist it"""
        try:
            event = QueuedEvent.model_validate(msgpack.unpackb(body, raw=False))
            stored = StoredEvent.from_queued(event)
        except Exception as e:
            raise ProcessingError(f"Undecodable entry: {e}") from e

        try:
            await self.store.insert(stored)
        except Exception as e:
            raise ProcessingError(f"Insert failed for event {event.id}: {e}") from e

        self.processed += 1
        logger.info(f"Processed event {event.id} in {now_ms() - event.enqueued_at_ms}ms")

        if self.processed % 5000 == 0:
            logger.warning(f"Processed: {self.processed}, Failed: {self.failed}")

    async def get_queue_stats(self) -> QueueStats:
        return QueueStats(
            queue=QueueInfo(
                name=self.queue.name,
                length=await self.queue.length(),
                is_processing=self.is_processing,
            ),
            processing=ProcessingInfo(
                total_processed=self.processed,
                total_failed=self.failed,
                timestamp=utc_now_iso(),
            ),
        )


class DrainScheduler:
    """Fires drain ticks on a fixed cadence until stopped"""

    def __init__(self, drainer: QueueDrainer, interval: float = DRAIN_INTERVAL_SECONDS):
        self.drainer = drainer
        self.interval = interval
        self._timer: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self):
        if not self.running:
            self._timer = asyncio.create_task(self._run())
            logger.warning(f"Background queue processor started (every {self.interval}s)")

    async def _run(self):
        while True:
            # overlapping firings are dropped by the drainer's own guard
            task = asyncio.create_task(self.drainer.drain_tick())
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
            await asyncio.sleep(self.interval)

    async def stop(self):
        """Cancel the timer, then let in-flight drains finish"""
        if self._timer is not None:
            self._timer.cancel()
            try:
                await self._timer
            except asyncio.CancelledError:
                pass
            self._timer = None
        if self._inflight:
            await asyncio.gather(*self._inflight)
        logger.warning(f"Queue processor stopped. Processed: {self.drainer.processed}, Failed: {self.drainer.failed}")


async def main():
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)

    queue = EventQueue(RABBITMQ_URL, QUEUE_NAME, timeout=QUEUE_TIMEOUT)
    store = EventStore(MONGODB_URL, MONGODB_DB, timeout=STORE_TIMEOUT)
    await store.connect()
    await queue.connect()

    scheduler = DrainScheduler(QueueDrainer(queue, store))
    stopped = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stopped.set)

    scheduler.start()
    logger.warning("Worker started")
    try:
        await stopped.wait()
    finally:
        await scheduler.stop()
        await queue.close()
        await store.close()


if __name__ == "__main__":
    asyncio.run(main())
