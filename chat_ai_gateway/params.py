from __future__ import annotations

from typing import Any

from chat_ai_gateway.routing import BackendSelection
from chat_ai_gateway.schemas import ChatCompletionRequest
from chat_ai_gateway.tools import normalize_tools

# Upstream middleware rejects `timeout` for these model families.
_TIMEOUT_INCOMPATIBLE_MODEL_MARKERS = ("rag", "sauerkraut")


def _drops_timeout(params: dict[str, Any]) -> bool:
    if params.get("arcana"):
        return True
    model = str(params.get("model") or "")
    return any(marker in model for marker in _TIMEOUT_INCOMPATIBLE_MODEL_MARKERS)


def build_upstream_params(
    request: ChatCompletionRequest,
    selection: BackendSelection,
) -> dict[str, Any]:
    params: dict[str, Any] = {
        "model": request.model,
        "messages": request.dumped_messages(),
        "temperature": request.temperature,
        "top_p": request.top_p,
        "stream": request.stream,
        "timeout": request.timeout,
    }
    if request.stream:
        params["stream_options"] = {"include_usage": True}

    arcana = request.dumped_arcana()
    if arcana is not None and isinstance(arcana.get("id"), str) and arcana["id"]:
        params["arcana"] = arcana

    if selection.run_tools_on_server:
        params["runToolsOnServer"] = True
        if request.mcp_servers:
            params["mcp-servers"] = list(request.mcp_servers)
        tools = normalize_tools(request.tools)
        if tools:
            params["tools"] = tools

    # evaluated last, once arcana and model are final
    if _drops_timeout(params):
        params.pop("timeout", None)
    return params


def summarize_params(params: dict[str, Any]) -> dict[str, Any]:
    messages = params.get("messages")
    tools = params.get("tools")
    return {
        "keys": sorted(params),
        "messages_count": len(messages) if isinstance(messages, list) else 0,
        "tools": [tool.get("type") for tool in tools] if isinstance(tools, list) else [],
        "stream": bool(params.get("stream")),
    }
