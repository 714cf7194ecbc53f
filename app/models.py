"""Data models for events"""
from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator, model_validator
from pydantic_core import PydanticCustomError
from beanie import Document
from pymongo import IndexModel, ASCENDING
from typing import Annotated, List, Optional
from datetime import datetime

from helpers import parse_timestamp, utc_now

EVENT_TYPES = ("page_view", "click", "custom")
REQUIRED_FIELDS = ("site_id", "event_type", "path", "user_id")

RequiredStr = Annotated[str, StringConstraints(strict=True, min_length=1)]


class RawEvent(BaseModel):
    """API input validation"""
    site_id: RequiredStr
    event_type: RequiredStr
    path: RequiredStr
    user_id: RequiredStr
    timestamp: Optional[str] = None

    @field_validator('timestamp')
    @classmethod
    def validate_timestamp(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        try:
            parse_timestamp(v)
        except (ValueError, OverflowError, OSError):
            raise ValueError(f"Invalid ISO-8601: {v}")
        return v

    @model_validator(mode='after')
    def validate_type(self) -> 'RawEvent':
        if self.event_type not in EVENT_TYPES:
            raise PydanticCustomError(
                'invalid_event_type',
                'Invalid event_type. Must be one of: {types}',
                {'types': ', '.join(EVENT_TYPES)},
            )
        return self


class QueuedEvent(BaseModel):
    """Event as it sits in the durable queue"""
    model_config = ConfigDict(frozen=True)

    id: str
    site_id: str
    event_type: str
    path: str
    user_id: str
    timestamp: str
    received_at: str
    enqueued_at_ms: int


class StoredEvent(BaseModel):
    """Event ready for persistence"""
    site_id: str
    event_type: str
    path: str
    user_id: str
    timestamp: datetime

    @classmethod
    def from_queued(cls, event: QueuedEvent) -> "StoredEvent":
        return cls(
            site_id=event.site_id,
            event_type=event.event_type,
            path=event.path,
            user_id=event.user_id,
            timestamp=parse_timestamp(event.timestamp),
        )


class EventDocument(Document):
    """MongoDB document with indexes"""
    site_id: str
    event_type: str
    path: str
    user_id: str
    timestamp: datetime
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "events"
        indexes = [
            IndexModel([("site_id", ASCENDING)]),
            IndexModel([("event_type", ASCENDING)]),
            IndexModel([("user_id", ASCENDING)]),
            IndexModel([("timestamp", ASCENDING)]),
            IndexModel([("site_id", ASCENDING), ("timestamp", ASCENDING)]),
            IndexModel([("site_id", ASCENDING), ("event_type", ASCENDING)]),
        ]


class PathViews(BaseModel):
    path: str
    views: int


class DailyStats(BaseModel):
    site_id: str
    date: str
    total_views: int
    unique_users: int
    top_paths: List[PathViews]
    generated_at: str


class QueueInfo(BaseModel):
    name: str
    length: Optional[int]
    is_processing: bool


class ProcessingInfo(BaseModel):
    total_processed: int
    total_failed: int
    timestamp: str


class QueueStats(BaseModel):
    queue: QueueInfo
    processing: ProcessingInfo
