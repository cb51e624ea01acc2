from __future__ import annotations

from dataclasses import dataclass

TOOL_GATEWAY_SERVICE = "saia-openai-gateway"

_EXTERNAL_MODEL_PREFIX = "openai-"
_SELF_HOSTED_OPENAI_PREFIX = "openai-gpt-oss"


@dataclass(frozen=True, slots=True)
class BackendSelection:
    inference_service: str
    run_tools_on_server: bool = False


def is_external_model(model: str) -> bool:
    return model.startswith(_EXTERNAL_MODEL_PREFIX) and not model.startswith(
        _SELF_HOSTED_OPENAI_PREFIX
    )


def select_backend(model: str, enable_tools: bool | None) -> BackendSelection:
    """Pick the service identity advertised to the upstream.

    Tool-augmented requests for self-hosted models go through the tool
    orchestration gateway; everything else addresses the model directly.
    """
    if enable_tools and not is_external_model(model):
        return BackendSelection(
            inference_service=TOOL_GATEWAY_SERVICE,
            run_tools_on_server=True,
        )
    return BackendSelection(inference_service=model)
