import json
import logging
import os
import random
import time
import uuid
from datetime import datetime, timezone

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from ..error_handlers import error_body
from ..obs.logging import request_id_ctx

# Receipt fields that identify a customer
PII_KEYS = {"customername", "customerphone", "customer_name", "customer_phone"}
LOG_SAMPLE_2XX = float(os.getenv("LOG_SAMPLE_2XX", "1.0"))

logger = logging.getLogger("api")


def _redact(obj):
    if isinstance(obj, dict):
        return {
            k: ("***" if k.lower() in PII_KEYS else _redact(v)) for k, v in obj.items()
        }
    if isinstance(obj, list):
        return [_redact(v) for v in obj]
    return obj


class LoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and emit inbound/outbound JSON lines.

    The id comes from the ``X-Request-ID`` header when present and is echoed
    back on the response.
    """

    async def dispatch(self, request: Request, call_next):
        req_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = req_id
        token = request_id_ctx.set(req_id)

        body_bytes = await request.body()

        body = None
        if body_bytes:
            try:
                body = json.loads(body_bytes)
            except ValueError:
                body = None

        inbound = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": "INFO",
            "req_id": req_id,
            "path": request.url.path,
            "method": request.method,
        }
        if isinstance(body, dict):
            inbound["body"] = _redact(body)

        start = time.perf_counter()
        error_id = None
        try:
            response = await call_next(request)
        except Exception:
            error_id = str(uuid.uuid4())
            logger.exception(json.dumps({"req_id": req_id, "error_id": error_id}))
            payload = error_body(500, "Internal Server Error")
            payload["error_id"] = error_id
            response = JSONResponse(payload, status_code=500)
        status = response.status_code
        level = "ERROR" if status >= 500 else "INFO"
        outbound = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "req_id": req_id,
            "route": request.url.path,
            "status": status,
            "latency_ms": int((time.perf_counter() - start) * 1000),
        }
        if error_id:
            outbound["error_id"] = error_id

        if not (200 <= status < 300 and random.random() >= LOG_SAMPLE_2XX):
            logger.info(json.dumps(inbound))
            log_fn = logger.error if level == "ERROR" else logger.info
            log_fn(json.dumps(outbound))

        response.headers["X-Request-ID"] = req_id
        request_id_ctx.reset(token)
        return response
