"""Shared fixtures for integration tests."""

import asyncio
import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio

from tests.utils.jsonrpc_client import StdioJsonRpcClient

PROJECT_ROOT = Path(__file__).resolve().parents[2]


@pytest.fixture
def sample_workspace(tmp_path: Path) -> Path:
    """Workspace served by the local backends of a spawned server."""
    root = tmp_path / "workspace"
    (root / "src").mkdir(parents=True)
    (root / "src" / "auth.py").write_text(
        "def login(user):\n"
        "    # TODO tighten\n"
        "    return check(user)\n"
    )
    (root / "config.env").write_text(
        "GITHUB_TOKEN=ghp_" + "A1b2C3d4E5" * 4 + "\n"
    )
    (root / ".gitignore").write_text("dist/\n")
    return root


@pytest_asyncio.fixture
async def stdio_client(sample_workspace: Path):
    """Initialized JSON-RPC client connected to ``octoresearch-mcp``."""
    env = dict(os.environ)
    env.pop("OCTORESEARCH_DEBUG", None)
    env["PYTHONPATH"] = os.pathsep.join(
        p for p in (str(PROJECT_ROOT), env.get("PYTHONPATH")) if p
    )
    proc = await asyncio.create_subprocess_exec(
        sys.executable,
        "-m",
        "octoresearch.mcp_server.stdio",
        str(sample_workspace),
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.DEVNULL,
        env=env,
        cwd=str(PROJECT_ROOT),
    )
    client = StdioJsonRpcClient(proc)
    await client.start()
    try:
        result = await client.request(
            "initialize",
            {
                "protocolVersion": "2024-11-05",
                "capabilities": {},
                "clientInfo": {"name": "test", "version": "1.0"},
            },
            timeout=20.0,
        )
        assert result["serverInfo"]["name"] == "octoresearch"
        await client.notify("notifications/initialized")
        yield client
    finally:
        await client.close()
