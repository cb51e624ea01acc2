from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any

from chat_ai_gateway.schemas import ToolSpec, ToolType

TOOL_TYPE_MAP: Mapping[str, str] = MappingProxyType(
    {
        ToolType.WEB_SEARCH.value: ToolType.WEB_SEARCH_PREVIEW.value,
        ToolType.WEB_SEARCH_PREVIEW.value: ToolType.WEB_SEARCH_PREVIEW.value,
        ToolType.FETCH_URL.value: ToolType.FETCH_URL.value,
        ToolType.IMAGE_GENERATION.value: ToolType.IMAGE_GENERATION.value,
        ToolType.VIDEO_GENERATION.value: ToolType.VIDEO_GENERATION.value,
        ToolType.IMAGE_MODIFY.value: ToolType.IMAGE_MODIFY.value,
        ToolType.IMAGE_MODIFICATION.value: ToolType.IMAGE_MODIFY.value,
        ToolType.AUDIO_GENERATION.value: ToolType.AUDIO_GENERATION.value,
        ToolType.AUDIO_TRANSCRIPTION.value: ToolType.AUDIO_TRANSCRIPTION.value,
        ToolType.RUN_RSCRIPT.value: ToolType.RUN_RSCRIPT.value,
        ToolType.RUN_RSCRIPT_LEGACY.value: ToolType.RUN_RSCRIPT.value,
    }
)


def _raw_tool_type(tool: ToolSpec | Mapping[str, Any] | Any) -> Any:
    if isinstance(tool, Mapping):
        raw = tool.get("type")
    else:
        raw = getattr(tool, "type", None)
    if isinstance(raw, Enum):
        return raw.value
    return raw


def canonical_tool_type(raw: Any) -> str | None:
    if not isinstance(raw, str):
        return None
    return TOOL_TYPE_MAP.get(raw)


def normalize_tools(
    tools: Iterable[ToolSpec | Mapping[str, Any]] | None,
) -> list[dict[str, str]]:
    """Map tool aliases to canonical types, keeping first-seen order.

    Unknown tool types are dropped, not rejected.
    """
    if not tools:
        return []
    # dict keys double as an insertion-ordered set
    normalized: dict[str, None] = {}
    for tool in tools:
        canonical = canonical_tool_type(_raw_tool_type(tool))
        if canonical is None:
            continue
        normalized.setdefault(canonical, None)
    return [{"type": tool_type} for tool_type in normalized]
