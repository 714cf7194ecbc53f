"""Database connection and event store"""
from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie
from pymongo.errors import PyMongoError
import asyncio
import logging
from typing import Any, Dict, List, Tuple

from errors import StorageError
from models import EventDocument, StoredEvent

logger = logging.getLogger(__name__)


class EventStore:
    """Beanie-backed store for persisted events"""

    def __init__(self, url: str, database: str, timeout: float = 10.0):
        self.url = url
        self.database = database
        self.timeout = timeout
        self.client: AsyncIOMotorClient = None

    async def connect(self):
        """Initialize Beanie ODM"""
        self.client = AsyncIOMotorClient(self.url)
        await init_beanie(
            database=self.client[self.database],
            document_models=[EventDocument]
        )
        logger.warning("Database connected")

    async def close(self):
        """Close database connection"""
        if self.client:
            self.client.close()

    async def _call(self, op: str, coro):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise StorageError(f"Store {op} timed out after {self.timeout}s") from e
        except PyMongoError as e:
            raise StorageError(f"Store {op} failed: {e}") from e

    async def ping(self) -> bool:
        await self._call("ping", self.client.admin.command("ping"))
        return True

    async def insert(self, event: StoredEvent):
        await self._call("insert", EventDocument(**event.model_dump()).insert())

    async def count(self, query: Dict[str, Any]) -> int:
        return await self._call("count", EventDocument.find(query).count())

    async def distinct(self, field: str, query: Dict[str, Any]) -> List[Any]:
        return await self._call("distinct", EventDocument.distinct(field, query))

    async def top_values(self, field: str, query: Dict[str, Any], limit: int) -> List[Tuple[Any, int]]:
        """Most frequent values of a field among matches, as (value, count)"""
        pipeline = [
            {"$match": query},
            {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
            {"$sort": {"count": -1, "_id": 1}},
            {"$limit": limit}
        ]
        docs = await self._call("aggregate", EventDocument.aggregate(pipeline).to_list())
        return [(doc["_id"], doc["count"]) for doc in docs]
