"""Declarative tool registry for the MCP server.

Every backend kind is exposed as one tool taking ``{"queries": [...]}``;
the backend field is implied by the tool name and injected before the
batch reaches the pipeline. Input schemas are generated from the query
models so the wire contract cannot drift from validation.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypedDict, cast

from typing_extensions import NotRequired

from octoresearch.core.models import QUERY_MODELS
from octoresearch.core.types import BackendKind
from octoresearch.services.pipeline import ResearchPipeline
from octoresearch.version import __version__

DEFAULT_MAX_QUERIES = 10


class HealthStatus(TypedDict):
    status: str
    version: str
    backends: list[str]
    cache: dict[str, Any]
    issues: NotRequired[list[str]]


TOOL_DESCRIPTIONS: dict[BackendKind, str] = {
    BackendKind.GITHUB_SEARCH_CODE: (
        "Search code across GitHub repositories by keywords. Use match='path' to "
        "discover files and directories, match='file' to search file contents."
    ),
    BackendKind.GITHUB_SEARCH_REPOSITORIES: (
        "Discover GitHub repositories by keywords or topics, filtered by owner, "
        "language and stars."
    ),
    BackendKind.GITHUB_FETCH_CONTENT: (
        "Fetch file content from a GitHub repository. Prefer matchString or a "
        "line range over full content."
    ),
    BackendKind.GITHUB_VIEW_REPO_STRUCTURE: (
        "List files and folders of a GitHub repository path, up to depth 2."
    ),
    BackendKind.GITHUB_SEARCH_PULL_REQUESTS: (
        "Search pull requests by query, repository or number, optionally with "
        "diffs and comments."
    ),
    BackendKind.LOCAL_SEARCH_CODE: (
        "Search files under the workspace root with a regular expression or "
        "fixed string. Respects .gitignore."
    ),
    BackendKind.LOCAL_VIEW_STRUCTURE: (
        "List files and folders under a workspace path, up to depth 5."
    ),
    BackendKind.LOCAL_FETCH_CONTENT: (
        "Read a workspace file: whole file, a line range, or the lines around a "
        "matchString. Page through large files with charOffset and charLength."
    ),
    BackendKind.LOCAL_FIND_FILES: (
        "Find workspace files and directories by name glob, type, depth and "
        "modification age (modifiedWithin=\"7d\"). Results are paginated."
    ),
}

_BATCH_NOTE = (
    " Accepts a batch of independent queries; each must state researchGoal and "
    "reasoning. Results come back in input order with per-query hints."
)


@dataclass
class Tool:
    """Tool definition with metadata and implementation."""

    name: str
    description: str
    parameters: dict[str, Any]
    implementation: Callable
    backend: BackendKind | None = None


def query_schema(kind: BackendKind, max_queries: int = DEFAULT_MAX_QUERIES) -> dict[str, Any]:
    """JSON schema for a tool taking a batch of ``kind`` queries."""
    item = QUERY_MODELS[kind].model_json_schema(by_alias=True)
    defs = item.pop("$defs", None)
    item.get("properties", {}).pop("backend", None)
    if "required" in item:
        item["required"] = [name for name in item["required"] if name != "backend"]
        if not item["required"]:
            del item["required"]
    schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "queries": {
                "type": "array",
                "items": item,
                "minItems": 1,
                "maxItems": max_queries,
                "description": "Queries to execute in one batch",
            }
        },
        "required": ["queries"],
    }
    if defs:
        schema["$defs"] = defs
    return schema


def _with_backend(kind: BackendKind, queries: Any) -> Any:
    if not isinstance(queries, list):
        return queries
    return [
        {**query, "backend": kind.value} if isinstance(query, dict) else query
        for query in queries
    ]


async def research_impl(
    pipeline: ResearchPipeline, kind: BackendKind, arguments: dict[str, Any]
) -> dict[str, Any]:
    """Run one batch of ``kind`` queries through the pipeline."""
    return await pipeline.execute_batch(_with_backend(kind, arguments.get("queries")))


async def get_stats_impl(pipeline: ResearchPipeline) -> dict[str, Any]:
    """Cache statistics and registered backends."""
    stats = pipeline.get_stats()
    stats["version"] = __version__
    return stats


async def health_check_impl(pipeline: ResearchPipeline) -> HealthStatus:
    """Server and cache health."""
    health = pipeline.health_check()
    status = {
        "status": health["status"],
        "version": __version__,
        "backends": sorted(k.value for k in pipeline.supported_kinds),
        "cache": health["cache"],
    }
    if health["cache"].get("issues"):
        status["issues"] = health["cache"]["issues"]
    return cast(HealthStatus, status)


def build_tool_definitions(max_queries: int = DEFAULT_MAX_QUERIES) -> list[Tool]:
    """All tools, with batch schemas sized for ``max_queries``."""
    tools = [
        Tool(
            name="get_stats",
            description="Get cache statistics (hits, misses, hit rate, size) and registered backends",
            parameters={"properties": {}, "type": "object"},
            implementation=get_stats_impl,
        ),
        Tool(
            name="health_check",
            description="Check server health status and cache health issues",
            parameters={"properties": {}, "type": "object"},
            implementation=health_check_impl,
        ),
    ]
    for kind in BackendKind:
        tools.append(
            Tool(
                name=kind.value,
                description=TOOL_DESCRIPTIONS[kind] + _BATCH_NOTE,
                parameters=query_schema(kind, max_queries),
                implementation=research_impl,
                backend=kind,
            )
        )
    return tools


TOOL_DEFINITIONS = build_tool_definitions()

TOOL_REGISTRY: dict[str, Tool] = {tool.name: tool for tool in TOOL_DEFINITIONS}


def available_tools(pipeline: ResearchPipeline) -> list[Tool]:
    """Tools the pipeline can serve: utilities plus registered backends."""
    return [
        tool
        for tool in build_tool_definitions(pipeline.config.max_batch_size)
        if tool.backend is None or tool.backend in pipeline.supported_kinds
    ]


async def execute_tool(
    tool_name: str,
    pipeline: ResearchPipeline,
    arguments: dict[str, Any],
) -> dict[str, Any]:
    """Execute a tool from the registry.

    Raises:
        ValueError: If tool not found in registry
        QueryValidationError: If the batch is rejected
    """
    if tool_name not in TOOL_REGISTRY:
        raise ValueError(f"Unknown tool: {tool_name}")

    tool = TOOL_REGISTRY[tool_name]

    if tool_name == "get_stats":
        return await tool.implementation(pipeline)

    if tool_name == "health_check":
        return dict(await tool.implementation(pipeline))

    if tool.backend is None:
        raise ValueError(f"Tool {tool_name} does not run queries")
    if tool.backend not in pipeline.supported_kinds:
        raise ValueError(f"Tool {tool_name} has no registered backend")
    return await tool.implementation(pipeline, tool.backend, arguments or {})
