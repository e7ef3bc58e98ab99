import json
import logging

from bucketmap.config import LOGGER_NAME
from bucketmap.logger.log_types import LogEvent

# Applications attach handlers through logging.config.dictConfig(config.LOGGING)
logger = logging.getLogger(LOGGER_NAME)
logger.addHandler(logging.NullHandler())


def log_table_event(event: LogEvent, capacity: int, load_factor: float):
    """Log a table lifecycle event"""
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(json.dumps({
            "event": event,
            "capacity": capacity,
            "load_factor": load_factor
        }))


def log_resize_event(event: LogEvent, old_capacity: int, new_capacity: int, size: int):
    """Log a capacity doubling"""
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(json.dumps({
            "event": event,
            "old_capacity": old_capacity,
            "new_capacity": new_capacity,
            "size": size
        }))


def log_error_event(event: LogEvent, error: str):
    """Log an error event"""
    logger.error(json.dumps({
        "event": event,
        "error": error
    }))


def log_dedupe_event(event: LogEvent, memory_mb: float, bucket_index: int = None, **fields):
    """Log a step of the dedupe pipeline (with optional bucket index)"""
    log_data = {
        "event": event,
        "memory_mb": round(memory_mb, 2)
    }
    if bucket_index is not None:
        log_data["bucket_index"] = bucket_index
    log_data.update(fields)

    logger.info(json.dumps(log_data))
