"""Protocol-independent tool call handling shared by MCP server variants."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import mcp.types as types
from loguru import logger

from octoresearch.core.exceptions import QueryValidationError
from octoresearch.mcp_server.tools import execute_tool
from octoresearch.services.hint_tables import EMPTY_QUERY_VALIDATION_HINTS
from octoresearch.services.pipeline import ResearchPipeline

INITIALIZATION_TIMEOUT = 10.0


def _text(payload: Any) -> list[types.TextContent]:
    return [
        types.TextContent(
            type="text", text=json.dumps(payload, ensure_ascii=False, default=str)
        )
    ]


def validation_error_payload(error: QueryValidationError) -> dict[str, Any]:
    """Structured rejection listing every violation, with recovery hints."""
    payload = error.to_dict()
    payload["isError"] = True
    payload["hints"] = list(EMPTY_QUERY_VALIDATION_HINTS[1:])
    if any(v.query_index is None and "empty" in v.message for v in error.violations):
        payload["hints"] = list(EMPTY_QUERY_VALIDATION_HINTS)
    return payload


async def handle_tool_call(
    tool_name: str,
    arguments: dict[str, Any] | None,
    pipeline: ResearchPipeline | None,
    initialization_complete: asyncio.Event,
) -> list[types.TextContent]:
    """Run one tool call and render its result as MCP text content.

    Validation failures and unknown tools become error payloads rather
    than protocol errors so the caller can correct and resubmit.
    """
    try:
        await asyncio.wait_for(initialization_complete.wait(), timeout=INITIALIZATION_TIMEOUT)
    except asyncio.TimeoutError:
        return _text({"error": "Server initialization timed out", "isError": True})

    if pipeline is None:
        return _text({"error": "Server is not initialized", "isError": True})

    try:
        result = await execute_tool(tool_name, pipeline, arguments or {})
    except QueryValidationError as e:
        logger.info(f"Rejected {tool_name} batch: {e}")
        return _text(validation_error_payload(e))
    except ValueError as e:
        return _text({"error": str(e), "isError": True})
    return _text(result)
