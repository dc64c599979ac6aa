"""ASGI middleware for request logging and metrics.

Requests are labelled with the matched route template, so every conversation
shares one series per endpoint. Unmatched paths fall back to the raw path.
"""

from typing import Callable, Any, Optional
import time
import uuid

from fastapi import FastAPI

from flightlink.obs.context import conversation_id_var, request_id_var, clear_context
from flightlink.obs.logger import log_event
from flightlink.obs.metrics import record_timing, inc_counter

REQUEST_ID_HEADER = b"x-request-id"


def _incoming_request_id(scope: dict) -> Optional[str]:
    for name, value in scope.get("headers") or []:
        if name.lower() == REQUEST_ID_HEADER:
            return value.decode("latin-1").strip() or None
    return None


def route_label(scope: dict) -> str:
    """Route template set by the router, or the raw path when nothing matched."""
    route = scope.get("route")
    return getattr(route, "path", None) or scope.get("path", "")


class ObservabilityMiddleware:
    def __init__(self, app: FastAPI):
        self.app = app

    async def __call__(self, scope: dict, receive: Callable, send: Callable[[dict], Any]):
        if scope.get("type") != "http":
            return await self.app(scope, receive, send)

        clear_context()
        req_id = _incoming_request_id(scope) or str(uuid.uuid4())
        request_id_var.set(req_id)
        start = time.monotonic()
        status_code = 500

        async def send_wrapper(message: dict):
            nonlocal status_code
            if message.get("type") == "http.response.start":
                status_code = int(message.get("status", 200))
                headers = list(message.get("headers") or [])
                headers.append((REQUEST_ID_HEADER, req_id.encode("latin-1")))
                message = {**message, "headers": headers}
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            # Path params and the route are only known once the router has run
            route = route_label(scope)
            conversation_id = (scope.get("path_params") or {}).get("conversation_id")
            if conversation_id:
                conversation_id_var.set(conversation_id)
            elapsed_ms = (time.monotonic() - start) * 1000.0
            record_timing("request_latency_ms", elapsed_ms, {"route": route})
            inc_counter("requests_total", {"route": route, "status": str(status_code)})
            log_event(
                "request",
                method=scope.get("method", ""),
                route=route,
                status=status_code,
                ms_total=round(elapsed_ms, 2),
            )
