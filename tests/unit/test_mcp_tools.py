"""Tests for the MCP tool registry and tool call handling."""

import asyncio
import json

import pytest

from octoresearch.core.types import BackendKind
from octoresearch.mcp_server.common import handle_tool_call
from octoresearch.mcp_server.stdio import StdioMCPServer
from octoresearch.mcp_server.tools import (
    TOOL_REGISTRY,
    Tool,
    available_tools,
    execute_tool,
    query_schema,
)
from octoresearch.services.pipeline import ResearchPipeline
from octoresearch.version import __version__


@pytest.fixture
def pipeline(config, cache, code_backend, fetch_backend) -> ResearchPipeline:
    return ResearchPipeline([code_backend, fetch_backend], config, cache=cache)


@pytest.fixture
def ready() -> asyncio.Event:
    event = asyncio.Event()
    event.set()
    return event


def _payload(contents) -> dict:
    assert len(contents) == 1
    return json.loads(contents[0].text)


class TestToolRegistry:
    def test_every_backend_has_a_tool(self):
        expected = {kind.value for kind in BackendKind} | {"get_stats", "health_check"}

        assert set(TOOL_REGISTRY) == expected

    def test_schema_hides_backend_field(self):
        schema = query_schema(BackendKind.GITHUB_FETCH_CONTENT, max_queries=4)

        queries = schema["properties"]["queries"]
        assert queries["maxItems"] == 4
        assert "backend" not in queries["items"]["properties"]
        assert {"owner", "repo", "path"} <= set(queries["items"]["required"])
        assert "matchString" in queries["items"]["properties"]

    def test_available_tools_limited_to_registered_backends(self, pipeline):
        names = {tool.name for tool in available_tools(pipeline)}

        assert names == {"get_stats", "health_check", "github_search_code", "github_fetch_content"}


class TestExecuteTool:
    @pytest.mark.asyncio
    async def test_unknown_tool(self, pipeline):
        with pytest.raises(ValueError, match="Unknown tool"):
            await execute_tool("delete_everything", pipeline, {})

    @pytest.mark.asyncio
    async def test_unregistered_backend_tool(self, pipeline):
        with pytest.raises(ValueError, match="no registered backend"):
            await execute_tool("local_search_code", pipeline, {"queries": [{"pattern": "x"}]})

    @pytest.mark.asyncio
    async def test_tool_without_backend_rejected(self, pipeline, monkeypatch):
        """A registry entry with no backend is refused, not run with a None kind."""

        async def implementation(*args):
            raise AssertionError("must not run")

        monkeypatch.setitem(
            TOOL_REGISTRY,
            "orphan",
            Tool(name="orphan", description="", parameters={}, implementation=implementation),
        )

        with pytest.raises(ValueError, match="does not run queries"):
            await execute_tool("orphan", pipeline, {"queries": []})

    @pytest.mark.asyncio
    async def test_backend_injected_from_tool_name(self, pipeline, code_backend):
        """Callers omit backend; the tool name supplies it."""
        result = await execute_tool(
            "github_search_code",
            pipeline,
            {"queries": [{"keywordsToSearch": ["useEffect"], "researchGoal": "g", "reasoning": "r"}]},
        )

        assert result["results"][0]["status"] == "hasResults"
        assert code_backend.calls[0].keywords_to_search == ["useEffect"]

    @pytest.mark.asyncio
    async def test_stats_and_health(self, pipeline):
        stats = await execute_tool("get_stats", pipeline, {})
        health = await execute_tool("health_check", pipeline, {})

        assert stats["version"] == __version__
        assert "hitRate" in stats["cache"]
        assert health["status"] == "healthy"
        assert health["backends"] == ["github_fetch_content", "github_search_code"]
        assert "issues" not in health


class TestHandleToolCall:
    @pytest.mark.asyncio
    async def test_validation_error_becomes_payload(self, pipeline, ready):
        contents = await handle_tool_call("github_fetch_content", {"queries": [{}]}, pipeline, ready)

        payload = _payload(contents)
        assert payload["isError"] is True
        assert payload["error"] == "Invalid queries"
        assert {v["location"] for v in payload["violations"]} >= {"owner", "repo", "path"}
        assert payload["hints"]

    @pytest.mark.asyncio
    async def test_empty_batch_hints(self, pipeline, ready):
        contents = await handle_tool_call("github_search_code", {"queries": []}, pipeline, ready)

        payload = _payload(contents)
        assert payload["hints"][0] == "Queries array is required and cannot be empty"

    @pytest.mark.asyncio
    async def test_unknown_tool_payload(self, pipeline, ready):
        payload = _payload(await handle_tool_call("nope", {}, pipeline, ready))

        assert payload == {"error": "Unknown tool: nope", "isError": True}

    @pytest.mark.asyncio
    async def test_uninitialized_server(self, ready):
        payload = _payload(await handle_tool_call("get_stats", {}, None, ready))

        assert payload["isError"] is True


class TestStdioServerLifecycle:
    @pytest.mark.asyncio
    async def test_lifespan_builds_and_clears_pipeline(self, config, code_backend):
        server = StdioMCPServer(config, backends=[code_backend])

        async with server.server_lifespan() as context:
            pipeline = context["pipeline"]
            assert pipeline.supported_kinds == {BackendKind.GITHUB_SEARCH_CODE}
            await pipeline.execute_batch(
                [{"backend": "github_search_code", "keywordsToSearch": ["x"]}]
            )
            assert len(pipeline.cache) == 1

        assert len(pipeline.cache) == 0

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, config, code_backend):
        server = StdioMCPServer(config, backends=[code_backend])

        await server.initialize()
        first = server.pipeline
        await server.initialize()

        assert server.pipeline is first
