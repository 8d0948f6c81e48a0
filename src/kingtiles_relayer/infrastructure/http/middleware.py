from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any
from uuid import uuid4

from fastapi import Request

logger = logging.getLogger("kingtiles_relayer.http")


async def request_logging_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Any]],
) -> Any:
    request_id = request.headers.get("x-request-id", uuid4().hex)
    context = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "query_params": list(request.query_params.multi_items()),
    }
    if request.method in ("POST", "PUT", "PATCH"):
        context["body"] = _truncate_body(await request.body())
    logger.info("request_received", extra={"data": context})

    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("request_failed", extra={"data": context})
        raise

    response.headers["x-request-id"] = request_id
    logger.info(
        "request_completed",
        extra={
            "data": {
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            }
        },
    )
    return response


def _truncate_body(body: bytes, limit: int = 1024) -> str:
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError:
        return f"<binary data: {len(body)} bytes>"
    if len(text) <= limit:
        return text
    return text[:limit] + "... (truncated)"


__all__ = ["request_logging_middleware"]
