import json
import logging
import os
import time
import uuid
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

SERVICE_NAME = "krishilink-backend"
EXTRA_FIELDS = ("request_id", "user_email", "method", "path", "status_code", "duration_ms", "crop_id")


class JSONFormatter(logging.Formatter):
    def format(self, record):
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "message": record.getMessage(),
        }
        for field in EXTRA_FIELDS:
            if hasattr(record, field):
                log[field] = getattr(record, field)
        if record.exc_info:
            log["traceback"] = self.formatException(record.exc_info)
        return json.dumps(log, default=str)


logger = logging.getLogger("krishilink")
logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())

if not logger.handlers:
    json_f = JSONFormatter()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(json_f)
    logger.addHandler(console_handler)

    log_file = os.getenv("LOG_FILE")
    if log_file:
        file_handler = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=5)
        file_handler.setFormatter(json_f)
        logger.addHandler(file_handler)


def generate_request_id() -> str:
    return str(uuid.uuid4())


class RequestLoggingMiddleware:
    """
    ASGI middleware that logs incoming requests and responses,
    sets X-Request-ID header, and records duration.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        request_id = generate_request_id()
        scope["request_id"] = request_id
        method = scope.get("method", "")
        path = scope.get("path", "")

        start = time.perf_counter()
        logger.info("Incoming request", extra={"request_id": request_id, "method": method, "path": path})

        status = {"code": None}

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                status["code"] = message.get("status", 0)
                message["headers"] = list(message.get("headers", [])) + [
                    (b"x-request-id", request_id.encode("utf-8"))
                ]
            await send(message)

        await self.app(scope, receive, send_wrapper)

        logger.info(
            "Request completed",
            extra={
                "request_id": request_id,
                "method": method,
                "path": path,
                "status_code": status["code"],
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
