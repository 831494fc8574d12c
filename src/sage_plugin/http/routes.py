"""
Plugin API — lets a thin host shim forward chat events over HTTP.

Endpoints:
    POST /v1/chat.message   → {input, output}         (user prompt hook)
    POST /v1/event          → {type, properties}      (or {event: {...}})
    GET  /health            → status + state summary
    GET  /metrics           → in-process metrics snapshot

Event endpoints always answer 202 once the body parses: handler failures are
the plugin's problem, never the host's.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from sage_plugin.core.metrics import metrics

if TYPE_CHECKING:
    from sage_plugin.plugin import SagePlugin

logger = logging.getLogger(__name__)


async def _json_body(request: Request) -> dict | None:
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def _bad_request(detail: str) -> JSONResponse:
    return JSONResponse({"error": detail}, status_code=400)


def create_plugin_router(get_plugin: Callable[[], "SagePlugin"]) -> APIRouter:
    """Create the event ingestion + introspection router."""

    router = APIRouter(tags=["plugin"])

    @router.post("/v1/chat.message")
    async def chat_message(request: Request) -> JSONResponse:
        body = await _json_body(request)
        if body is None:
            return _bad_request("body must be a JSON object")
        await get_plugin().chat_message(body.get("input"), body.get("output"))
        return JSONResponse({"accepted": True}, status_code=202)

    @router.post("/v1/event")
    async def event(request: Request) -> JSONResponse:
        body = await _json_body(request)
        if body is None:
            return _bad_request("body must be a JSON object")
        # Accept both the bare envelope and the hook's {event: {...}} wrapper
        envelope = body.get("event") if isinstance(body.get("event"), dict) else body
        await get_plugin().event(envelope)
        return JSONResponse({"accepted": True}, status_code=202)

    @router.get("/health")
    async def health() -> JSONResponse:
        plugin = get_plugin()
        return JSONResponse(
            {
                "status": "ok",
                "dry_run": plugin.config.sage.dry_run,
                "state": plugin.status(),
            }
        )

    @router.get("/metrics")
    async def get_metrics() -> JSONResponse:
        return JSONResponse(metrics.snapshot())

    return router
