"""Rewrite ``tools/list`` responses with richer, model-friendly tool descriptions.

The rewrite only ever adds text: ids, error payloads and unknown tools pass through
unchanged, and a result with an unexpected shape is returned as-is.
"""

from __future__ import annotations

import copy
from typing import Any

ENHANCED_METHODS = frozenset({"tools/list"})

ENHANCED_TOOL_DESCRIPTIONS: dict[str, dict[str, Any]] = {
    "codex": {
        "description": (
            "Start a new Codex session: an autonomous coding agent that can read, edit and run code "
            "in a local workspace.\n\n"
            "Quick start: pass a self-contained `prompt` and the project directory as `cwd`.\n\n"
            "Use when:\n"
            "- reviewing code or a diff and you want a second opinion\n"
            "- implementing a well-scoped change across several files\n"
            "- investigating a bug that needs the code to be executed\n\n"
            "Workflow:\n"
            "1. Call `codex` with the task; the result contains a `threadId`.\n"
            "2. Read the answer and verify the changes it reports.\n"
            "3. Continue the same session with `codex-reply` and that `threadId`.\n\n"
            "Best practices:\n"
            "- State the goal, constraints and acceptance criteria in the prompt.\n"
            "- Prefer `sandbox: read-only` for reviews and `workspace-write` for edits.\n"
            "- Keep one session per task so context is not mixed."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "prompt": {"type": "string", "description": "Task for the agent. Be specific and self-contained."},
                "cwd": {"type": "string", "description": "Working directory of the session, usually the project root."},
                "sandbox": {
                    "type": "string",
                    "enum": ["read-only", "workspace-write", "danger-full-access"],
                    "description": "Filesystem access granted to commands run by the agent.",
                },
                "approval-policy": {
                    "type": "string",
                    "enum": ["untrusted", "on-failure", "on-request", "never"],
                    "description": "When the agent must ask before running a command.",
                },
                "model": {"type": "string", "description": "Optional model override."},
                "profile": {"type": "string", "description": "Optional configuration profile name."},
                "config": {"type": "object", "description": "Optional configuration overrides."},
            },
            "required": ["prompt"],
        },
    },
    "codex-reply": {
        "description": (
            "Continue an existing Codex session with a follow-up prompt.\n\n"
            "When to use: refining, correcting or extending work from an earlier `codex` call "
            "without repeating its context.\n\n"
            "Example: {\"threadId\": \"<id from the codex result>\", \"prompt\": \"Also add tests for the parser.\"}\n\n"
            "Important: `threadId` must come from a previous `codex` result in this server's lifetime; "
            "sessions do not survive a server restart."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "threadId": {"type": "string", "description": "Session id returned by a previous `codex` call."},
                "prompt": {"type": "string", "description": "Follow-up instruction for the session."},
            },
            "required": ["threadId", "prompt"],
        },
    },
}


def should_enhance_response(method: str | None) -> bool:
    return method in ENHANCED_METHODS


def enhance_tools_list_response(
    response: dict[str, Any],
    descriptions: dict[str, dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Return ``response`` with enriched descriptions for known tools."""
    table = ENHANCED_TOOL_DESCRIPTIONS if descriptions is None else descriptions
    result = response.get("result")
    if "error" in response or not isinstance(result, dict):
        return response
    tools = result.get("tools")
    if not isinstance(tools, list) or not any(_known_tool(tool, table) for tool in tools):
        return response

    enhanced = copy.deepcopy(response)
    for tool in enhanced["result"]["tools"]:
        if _known_tool(tool, table):
            _enhance_tool(tool, table[tool["name"]])
    return enhanced


def _known_tool(tool: Any, table: dict[str, dict[str, Any]]) -> bool:
    return isinstance(tool, dict) and isinstance(tool.get("name"), str) and tool["name"] in table


def _enhance_tool(tool: dict[str, Any], enhancement: dict[str, Any]) -> None:
    description = enhancement.get("description")
    if isinstance(description, str) and description:
        tool["description"] = description

    schema = tool.get("inputSchema")
    extra_props = (enhancement.get("inputSchema") or {}).get("properties") or {}
    if not isinstance(schema, dict) or not isinstance(schema.get("properties"), dict):
        return
    for name, prop in schema["properties"].items():
        hint = extra_props.get(name)
        if isinstance(prop, dict) and isinstance(hint, dict) and not prop.get("description") and hint.get("description"):
            prop["description"] = hint["description"]
