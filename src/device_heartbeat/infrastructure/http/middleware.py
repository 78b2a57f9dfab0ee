from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any
from uuid import uuid4

from fastapi import Request

logger = logging.getLogger("device_heartbeat.http")


async def request_logging_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Any]],
) -> Any:
    request_id = request.headers.get("x-request-id", uuid4().hex)
    request_data = {
        "request_id": request_id,
        "request_line": _format_request_line(request),
        "method": request.method,
        "path": request.url.path,
        "client": request.client.host if request.client else None,
    }
    logger.info("request_received", extra={"data": request_data})

    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("request_failed", extra={"data": request_data})
        raise

    logger.info(
        "request_completed",
        extra={
            "data": {
                **request_data,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        },
    )
    response.headers.setdefault("x-request-id", request_id)
    return response


def _format_request_line(request: Request) -> str:
    # device requests carry api keys in the query string; never log it
    return f"{request.method} {request.url.path}"
