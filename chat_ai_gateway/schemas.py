from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

MAX_BODY_SIZE = 50 * 1024 * 1024
MIN_TIMEOUT = 5000
MAX_TIMEOUT = 900000


class ToolType(str, Enum):
    """Tool kinds accepted from clients, legacy aliases included."""

    AUDIO_GENERATION = "audio_generation"
    AUDIO_TRANSCRIPTION = "audio_transcription"
    FETCH_URL = "fetch_url"
    IMAGE_GENERATION = "image_generation"
    IMAGE_MODIFY = "image_modify"
    IMAGE_MODIFICATION = "image_modification"
    RUN_RSCRIPT = "run_rscript"
    RUN_RSCRIPT_LEGACY = "runRscript"
    VIDEO_GENERATION = "video_generation"
    WEB_SEARCH = "web_search"
    WEB_SEARCH_PREVIEW = "web_search_preview"


CANONICAL_TOOL_TYPES: frozenset[str] = frozenset(
    {
        ToolType.AUDIO_GENERATION.value,
        ToolType.AUDIO_TRANSCRIPTION.value,
        ToolType.FETCH_URL.value,
        ToolType.IMAGE_GENERATION.value,
        ToolType.IMAGE_MODIFY.value,
        ToolType.VIDEO_GENERATION.value,
        ToolType.WEB_SEARCH_PREVIEW.value,
        ToolType.RUN_RSCRIPT.value,
    }
)


class ToolSpec(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    type: ToolType


class Message(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: Literal["system", "user", "assistant", "tool"]
    content: str | list[Any]
    name: str | None = None
    tool_call_id: str | None = None
    tool_calls: list[Any] | None = None

    def to_upstream(self) -> dict[str, Any]:
        # optional fields the client never sent stay absent
        omitted = {
            key
            for key in ("name", "tool_call_id", "tool_calls")
            if key not in self.model_fields_set
        }
        return self.model_dump(exclude=omitted)


class Arcana(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str


class ChatCompletionRequest(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    messages: list[Message] = Field(min_length=1)
    model: str = Field(min_length=1)
    temperature: float = Field(default=0.5, ge=0, le=2, strict=True)
    top_p: float = Field(default=0.5, ge=0, le=1, strict=True)
    stream: bool = Field(default=True, strict=True)
    timeout: float = Field(default=30000, ge=MIN_TIMEOUT, le=MAX_TIMEOUT, strict=True)
    arcana: Arcana | None = None
    enable_tools: bool | None = Field(default=None, strict=True)
    tools: list[ToolSpec] | None = None
    mcp_servers: list[Any] | None = Field(default=None, alias="mcp-servers")

    def dumped_messages(self) -> list[dict[str, Any]]:
        return [message.to_upstream() for message in self.messages]

    def dumped_arcana(self) -> dict[str, Any] | None:
        if self.arcana is None:
            return None
        return self.arcana.model_dump()


def format_validation_error(exc: ValidationError) -> str:
    issues = []
    for error in exc.errors():
        path = ".".join(str(part) for part in error.get("loc", ()))
        issues.append(f"{path}: {error.get('msg', 'Invalid value')}")
    return "; ".join(issues)
