from enum import Enum
from typing import Dict


class LogEvent(str, Enum):
    TABLE_CREATED = "table_created"
    TABLE_RESIZED = "table_resized"
    INVALID_CONFIGURATION = "invalid_configuration"
    PARTITION_STARTED = "partition_started"
    PARTITION_FINISHED = "partition_finished"
    BUCKET_DEDUPED = "bucket_deduped"
    MERGE_FINISHED = "merge_finished"


class ResizeLog(Dict):
    event: LogEvent
    old_capacity: int
    new_capacity: int
    size: int


class DedupeLog(Dict):
    event: LogEvent
    bucket_index: int
    lines: int
    unique: int
    memory_mb: float


class ErrorLog(Dict):
    event: LogEvent
    error: str
