"""Error recovery for failed chat completion calls."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from fastapi import Request
from fastapi.responses import JSONResponse
from openai import APIStatusError

from chat_ai_gateway.responses import error_response
from chat_ai_gateway.upstream import UpstreamClient

UNKNOWN_ERROR_MESSAGE = "An unknown error occurred"
INTERNAL_ERROR_MESSAGE = "An internal server error occurred"
GENERIC_API_ERROR_MESSAGE = "API error"
UNKNOWN_INFERENCE_SERVICE = "unknown"

# Some upstream errors embed a python-repr'd dict, e.g. "... {'msg': 'disk full'} ..."
_EMBEDDED_MSG_PATTERN = re.compile(r"'msg':\s*'([^']*)'")
_LOGGED_BODY_LIMIT = 500

logger = logging.getLogger("uvicorn.error")


@dataclass(slots=True)
class RecoveryContext:
    request: Request
    upstream: UpstreamClient
    request_id: str
    inference_id: str | None = None
    inference_service: str | None = None


class RecoveryStrategy(Protocol):
    name: str

    async def __call__(
        self, context: RecoveryContext, exc: BaseException
    ) -> JSONResponse | None: ...


def failure_status(exc: BaseException) -> int | None:
    status = getattr(exc, "status_code", None)
    if isinstance(status, int) and not isinstance(status, bool):
        return status
    return None


def _structured_payload(exc: BaseException) -> Any:
    if not isinstance(exc, APIStatusError):
        return None
    try:
        body = exc.response.json()
    except (ValueError, httpx.ResponseNotRead):
        # opaque, non-JSON error body: nothing structured to report
        return None
    # only an explicit `error` member counts as a structured error
    if not isinstance(body, dict):
        return None
    return body.get("error") or None


def payload_message(payload: Any) -> str:
    if isinstance(payload, str):
        return payload
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message:
            return message
    return GENERIC_API_ERROR_MESSAGE


class StructuredErrorStrategy:
    name = "structured_sdk_error"

    async def __call__(
        self, context: RecoveryContext, exc: BaseException
    ) -> JSONResponse | None:
        status = failure_status(exc)
        payload = _structured_payload(exc)
        if status is None or payload is None:
            return None
        return error_response(payload_message(payload), status)


async def recover_minimal_params(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except Exception:
        return {}
    if not isinstance(body, dict):
        return {}
    return {
        "model": body.get("model"),
        "messages": body.get("messages"),
        "temperature": body.get("temperature") or 0.5,
        "top_p": body.get("top_p") or 0.5,
        "stream": body.get("stream", True),
    }


def extract_error_message(
    response: httpx.Response, failure_status_code: int | None
) -> tuple[str, int]:
    status = response.status_code
    text = response.text
    try:
        payload = json.loads(text)
    except ValueError:
        logger.warning(
            "recovery_unparsed_upstream_body status=%d body=%s",
            status,
            text[:_LOGGED_BODY_LIMIT],
        )
        return UNKNOWN_ERROR_MESSAGE, failure_status_code or 500

    message = payload
    if isinstance(payload, dict):
        message = payload.get("message") or payload
    if not isinstance(message, str):
        logger.warning(
            "recovery_message_not_found status=%d body=%s",
            status,
            text[:_LOGGED_BODY_LIMIT],
        )
        return UNKNOWN_ERROR_MESSAGE, failure_status_code or 500

    match = _EMBEDDED_MSG_PATTERN.search(message)
    if match:
        message = match.group(1)
        logger.info("recovery_extracted_message message=%s", message)
    return message or UNKNOWN_ERROR_MESSAGE, status or failure_status_code or 500


class RawRetryStrategy:
    name = "raw_retry"

    async def __call__(
        self, context: RecoveryContext, exc: BaseException
    ) -> JSONResponse | None:
        upstream = context.upstream
        settings = upstream.settings
        params = await recover_minimal_params(context.request)
        credential = settings.api_key or context.inference_id or ""
        headers = {
            "Authorization": f"Bearer {credential}",
            "Content-Type": "application/json",
            "inference-service": context.inference_service or UNKNOWN_INFERENCE_SERVICE,
            "inference-portal": settings.service_name,
        }
        if context.inference_id and not settings.api_key:
            headers["inference-id"] = context.inference_id

        response = await upstream.post_raw("/chat/completions", params, headers)
        message, status = extract_error_message(response, failure_status(exc))
        return error_response(message, status)


class ErrorRecoveryChain:
    def __init__(self, strategies: list[RecoveryStrategy] | None = None) -> None:
        self.strategies: list[RecoveryStrategy] = (
            strategies
            if strategies is not None
            else [StructuredErrorStrategy(), RawRetryStrategy()]
        )

    async def recover(
        self, context: RecoveryContext, exc: BaseException
    ) -> JSONResponse:
        for strategy in self.strategies:
            try:
                response = await strategy(context, exc)
            except Exception:
                logger.exception(
                    "recovery_failed request_id=%s stage=%s original_error=%s",
                    context.request_id,
                    strategy.name,
                    exc.__class__.__name__,
                )
                return error_response(INTERNAL_ERROR_MESSAGE, 500)
            if response is not None:
                logger.info(
                    "recovery_resolved request_id=%s stage=%s status=%d",
                    context.request_id,
                    strategy.name,
                    response.status_code,
                )
                return response
        logger.error(
            "recovery_exhausted request_id=%s original_error=%s",
            context.request_id,
            exc.__class__.__name__,
        )
        return error_response(INTERNAL_ERROR_MESSAGE, 500)
