from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from typing import Any, AsyncIterator

import httpx
from fastapi.responses import StreamingResponse
from openai import AsyncOpenAI, Omit

from chat_ai_gateway.responses import with_cors
from chat_ai_gateway.settings import Settings

HOP_BY_HOP_RESPONSE_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
    "content-length",
}

# Sent as typed SDK arguments; everything else rides in `extra_body`.
_SDK_PARAM_FIELDS = (
    "model",
    "messages",
    "temperature",
    "top_p",
    "stream",
    "stream_options",
)

# The SDK insists on a key; without one its Authorization header is omitted per request.
_UNUSED_SDK_API_KEY = "unused"

logger = logging.getLogger("uvicorn.error")


def build_headers(
    settings: Settings,
    inference_id: str | None,
    uid: str | None,
    inference_service: str | None = None,
) -> dict[str, str]:
    headers: dict[str, str] = {"inference-portal": settings.service_name}
    if inference_service:
        headers["inference-service"] = inference_service
    # the configured key wins; a forwarded inference id is only used without one
    if settings.api_key:
        headers["Authorization"] = f"Bearer {settings.api_key}"
    elif inference_id:
        headers["inference-id"] = inference_id
    if uid:
        headers["user"] = uid
    return headers


def _filter_response_headers(headers: httpx.Headers) -> dict[str, str]:
    filtered: dict[str, str] = {}
    for name, value in headers.items():
        if name.lower() not in HOP_BY_HOP_RESPONSE_HEADERS:
            filtered[name] = value
    return filtered


def forward_response(upstream: httpx.Response) -> StreamingResponse:
    """Relay an upstream response without buffering its body.

    Status and headers are mirrored, CORS headers are laid on top. The
    upstream response is closed when the relay finishes or the client goes
    away.
    """
    response_headers = _filter_response_headers(upstream.headers)
    media_type = response_headers.pop("content-type", None)

    async def relay() -> AsyncIterator[bytes]:
        try:
            async for chunk in upstream.aiter_raw():
                yield chunk
        finally:
            await upstream.aclose()

    return StreamingResponse(
        content=relay(),
        status_code=upstream.status_code,
        headers=with_cors(response_headers),
        media_type=media_type,
    )


class UpstreamClient:
    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.base_url = settings.api_endpoint
        timeout = httpx.Timeout(
            timeout=None,
            connect=max(0.1, settings.upstream_connect_timeout_seconds),
        )
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(
            timeout=timeout,
            limits=httpx.Limits(max_connections=512, max_keepalive_connections=128),
        )
        self.openai = AsyncOpenAI(
            base_url=self.base_url,
            api_key=settings.api_key or _UNUSED_SDK_API_KEY,
            http_client=self.client,
            max_retries=0,
            timeout=timeout,
        )

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    def _sdk_headers(self, headers: dict[str, str]) -> dict[str, Any]:
        sdk_headers: dict[str, Any] = dict(headers)
        if "Authorization" not in sdk_headers:
            sdk_headers["Authorization"] = Omit()
        return sdk_headers

    async def create_chat_completion(
        self,
        params: dict[str, Any],
        headers: dict[str, str],
    ) -> httpx.Response:
        """POST the chat completion through the SDK, leaving the body unread.

        The caller owns the returned response and must close it.
        """
        sdk_params = {key: params[key] for key in _SDK_PARAM_FIELDS if key in params}
        extra_body = {
            key: value for key, value in params.items() if key not in _SDK_PARAM_FIELDS
        }
        async with AsyncExitStack() as stack:
            api_response = await stack.enter_async_context(
                self.openai.chat.completions.with_streaming_response.create(
                    **sdk_params,
                    extra_body=extra_body or None,
                    extra_headers=self._sdk_headers(headers),
                )
            )
            # hand the open response over to the caller
            stack.pop_all()
        return api_response.http_response

    async def post_raw(
        self,
        path: str,
        payload: dict[str, Any],
        headers: dict[str, str],
    ) -> httpx.Response:
        return await self.client.post(
            f"{self.base_url}{path}",
            json=payload,
            headers=headers,
        )

    async def forward_document(
        self,
        *,
        filename: str,
        content: bytes,
        content_type: str | None,
        headers: dict[str, str],
    ) -> httpx.Response:
        files = {
            "document": (filename, content, content_type or "application/octet-stream")
        }
        data = {
            "extract_tables_as_images": "false",
            "image_resolution_scale": "4",
        }
        response = await self.client.post(
            f"{self.base_url}/documents/convert",
            files=files,
            data=data,
            headers=headers,
        )
        logger.info(
            "document_convert_upstream status=%d filename=%s bytes=%d",
            response.status_code,
            filename,
            len(content),
        )
        return response

    async def list_models(self, headers: dict[str, str]) -> httpx.Response:
        return await self.client.get(
            f"{self.base_url}/models",
            headers={"Accept": "application/json", **headers},
        )
