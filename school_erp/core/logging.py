import asyncio
import logging
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
import os
import json
from datetime import datetime, timezone
from functools import wraps
import traceback

from school_erp.core.config import get_logging_config

EXTRA_FIELDS = ["request_id", "school_code", "user_id", "ip_address"]


class CustomJsonFormatter(logging.Formatter):
    """JSON formatter for structured file logs"""
    def __init__(self, **kwargs):
        super().__init__()
        self.kwargs = kwargs

    def format(self, record):
        json_record = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        if record.exc_info:
            json_record["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info)
            }

        if hasattr(record, "duration"):
            json_record["duration_ms"] = record.duration

        for field in self.kwargs.get("extra_fields", []):
            if hasattr(record, field):
                json_record[field] = getattr(record, field)

        return json.dumps(json_record, default=str)


class LoggerFactory:
    """Factory class for creating and configuring loggers"""

    @staticmethod
    def create_logger(name: str, log_dir: str = None, level: str = "INFO"):
        if log_dir is None:
            log_dir = os.path.join(os.getcwd(), "logs")

        os.makedirs(log_dir, exist_ok=True)

        log_files = {
            "app": os.path.join(log_dir, "app.log"),
            "error": os.path.join(log_dir, "error.log"),
            "access": os.path.join(log_dir, "access.log"),
        }

        logger = logging.getLogger(name)
        logger.setLevel(getattr(logging, level))

        if logger.handlers:
            logger.handlers.clear()

        handlers = {
            "app": RotatingFileHandler(
                log_files["app"],
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5
            ),
            "error": RotatingFileHandler(
                log_files["error"],
                maxBytes=10 * 1024 * 1024,
                backupCount=5
            ),
            "access": TimedRotatingFileHandler(
                log_files["access"],
                when="midnight",
                interval=1,
                backupCount=30
            ),
            "console": logging.StreamHandler()
        }

        for handler_name, handler in handlers.items():
            if handler_name == "error":
                handler.setLevel(logging.ERROR)
            else:
                handler.setLevel(getattr(logging, level))

            if isinstance(handler, (RotatingFileHandler, TimedRotatingFileHandler)):
                handler.setFormatter(CustomJsonFormatter(extra_fields=EXTRA_FIELDS))
            else:
                handler.setFormatter(logging.Formatter(
                    "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
                ))

            logger.addHandler(handler)

        return logger


def log_function_call(logger):
    """Decorator to log function entry, exit and duration"""
    def decorator(func):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            start_time = datetime.now()
            func_name = func.__name__

            logger.debug(f"Entering function: {func_name}")
            try:
                result = await func(*args, **kwargs)
                duration = (datetime.now() - start_time).total_seconds() * 1000
                logger.info(
                    f"Exiting function: {func_name}",
                    extra={"duration": duration}
                )
                return result
            except Exception:
                logger.error(f"Error in function: {func_name}", exc_info=True)
                raise

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            start_time = datetime.now()
            func_name = func.__name__

            logger.debug(f"Entering function: {func_name}")
            try:
                result = func(*args, **kwargs)
                duration = (datetime.now() - start_time).total_seconds() * 1000
                logger.info(
                    f"Exiting function: {func_name}",
                    extra={"duration": duration}
                )
                return result
            except Exception:
                logger.error(f"Error in function: {func_name}", exc_info=True)
                raise

        return async_wrapper if asyncio.iscoroutinefunction(func) else sync_wrapper
    return decorator


_config = get_logging_config()

# Package-wide logger; module loggers under "school_erp" propagate into it
logger = LoggerFactory.create_logger("school_erp", _config["log_dir"], _config["log_level"])
