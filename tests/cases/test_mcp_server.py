"""Tests for the MCP tool surface."""

import asyncio
import json

import pytest
from fastmcp import Client

from git_tools import create_mcp_server

EXPECTED_TOOLS = {
    "add_code_comments",
    "generate_commit_message",
    "generate_daily_worklog",
    "git-status",
    "git-log",
    "git-diff",
    "git-branch",
    "git-commit",
    "health-check",
}


async def list_tool_names():
    async with Client(create_mcp_server()) as client:
        return {tool.name for tool in await client.list_tools()}


async def call(name, arguments):
    async with Client(create_mcp_server()) as client:
        return await client.call_tool(name, arguments)


def test_all_tools_are_registered():
    assert asyncio.run(list_tool_names()) == EXPECTED_TOOLS


@pytest.mark.git
def test_add_code_comments_tool(repo):
    (repo / "util.js").write_text("const a = 1;\nconst b = 2;\n", encoding="utf-8")

    result = asyncio.run(call("add_code_comments", {"comment": "via mcp", "source": "unstaged"}))

    payload = json.loads(result.content[0].text)
    assert payload["success"] is True
    assert payload["filesModified"] == ["util.js"]
