"""Error taxonomy for the ingest pipeline"""


class AnalyticsError(Exception):
    """Base class for pipeline errors"""


class ValidationError(AnalyticsError):
    """Malformed or incomplete event at ingestion"""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class QueueError(AnalyticsError):
    """Durable queue push/pop/length failed"""


class ProcessingError(AnalyticsError):
    """A single drained entry could not be decoded or persisted"""


class StorageError(AnalyticsError):
    """Document store query failed"""
