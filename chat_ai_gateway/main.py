from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable
from uuid import uuid4

import httpx
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import Response
from pydantic import ValidationError
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from chat_ai_gateway.params import build_upstream_params, summarize_params
from chat_ai_gateway.recovery import ErrorRecoveryChain, RecoveryContext, failure_status
from chat_ai_gateway.responses import (
    CORS_HEADERS,
    error_response,
    json_response,
    text_response,
)
from chat_ai_gateway.routing import select_backend
from chat_ai_gateway.schemas import (
    MAX_BODY_SIZE,
    ChatCompletionRequest,
    format_validation_error,
)
from chat_ai_gateway.settings import Settings, get_settings
from chat_ai_gateway.upstream import UpstreamClient, build_headers, forward_response

logger = logging.getLogger("uvicorn.error")

PLACEHOLDER_USER: dict[str, str] = {
    "email": "user@example.com",
    "firstname": "Sample",
    "lastname": "User",
    "org": "GWD",
    "organization": "GWDG",
    "username": "sample-user",
}

router = APIRouter()


def _request_id(request: Request) -> str:
    return (
        request.headers.get("x-request-id")
        or request.headers.get("x-correlation-id")
        or uuid4().hex[:12]
    )


def _parse_content_length(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


async def cors_preflight_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=CORS_HEADERS)
    return await call_next(request)


async def http_exception_handler(
    _: Request, exc: StarletteHTTPException
) -> Response:
    return text_response(str(exc.detail), exc.status_code)


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/chat/completions")
async def chat_completions(request: Request) -> Response:
    settings: Settings = request.app.state.settings
    upstream: UpstreamClient = request.app.state.upstream
    recovery_chain: ErrorRecoveryChain = request.app.state.recovery_chain
    request_id = _request_id(request)

    content_length = _parse_content_length(request.headers.get("content-length"))
    if content_length is not None and content_length > MAX_BODY_SIZE:
        logger.info(
            "request_too_large request_id=%s content_length=%d",
            request_id,
            content_length,
        )
        return error_response("Request body too large", 413)

    try:
        raw_body: Any = await request.json()
    except ValueError:
        return error_response("Invalid JSON body", 400)
    if not isinstance(raw_body, dict):
        return error_response("Invalid JSON body", 400)

    try:
        body = ChatCompletionRequest.model_validate(raw_body)
    except ValidationError as exc:
        message = format_validation_error(exc)
        logger.info("invalid_request request_id=%s issues=%s", request_id, message)
        return error_response(message, 422)

    inference_id = request.headers.get("inference-id")
    uid = request.headers.get("oidc_claim_uid")
    context = RecoveryContext(
        request=request,
        upstream=upstream,
        request_id=request_id,
        inference_id=inference_id,
    )

    try:
        selection = select_backend(body.model, body.enable_tools)
        context.inference_service = selection.inference_service
        params = build_upstream_params(body, selection)
        headers = build_headers(settings, inference_id, uid, selection.inference_service)
        logger.info(
            (
                "chat_completion_request request_id=%s model=%s service=%s "
                "stream=%s run_tools_on_server=%s"
            ),
            request_id,
            body.model,
            selection.inference_service,
            body.stream,
            selection.run_tools_on_server,
        )
        if settings.development:
            logger.debug(
                "chat_completion_params request_id=%s summary=%s",
                request_id,
                summarize_params(params),
            )
        upstream_response = await upstream.create_chat_completion(params, headers)
    except Exception as exc:
        logger.warning(
            "chat_completion_failed request_id=%s error_type=%s status=%s",
            request_id,
            exc.__class__.__name__,
            failure_status(exc),
        )
        return await recovery_chain.recover(context, exc)

    logger.info(
        "chat_completion_upstream request_id=%s status=%d",
        request_id,
        upstream_response.status_code,
    )
    return forward_response(upstream_response)


@router.post("/documents")
async def documents(request: Request) -> Response:
    settings: Settings = request.app.state.settings
    upstream: UpstreamClient = request.app.state.upstream

    content_type = request.headers.get("content-type") or ""
    if "multipart/form-data" not in content_type:
        return error_response(
            "Invalid content type. Expected multipart/form-data", 400
        )

    form = await request.form()
    document = form.get("document")
    if not isinstance(document, UploadFile):
        return error_response("document: No file provided", 422)
    content = await document.read()
    if len(content) > MAX_BODY_SIZE:
        return error_response(
            f"document: File size exceeds {MAX_BODY_SIZE // 1024 // 1024}MB limit",
            422,
        )

    try:
        response = await upstream.forward_document(
            filename=document.filename or "document",
            content=content,
            content_type=document.content_type,
            headers=build_headers(settings, request.headers.get("inference-id"), None),
        )
        if not response.is_success:
            logger.error(
                "document_convert_failed status=%d body=%s",
                response.status_code,
                response.text[:500],
            )
            return text_response(response.reason_phrase, response.status_code)
        return json_response(response.json())
    except (httpx.HTTPError, ValueError):
        logger.exception("document_convert_error")
        return error_response(
            "An internal server error occurred while processing file", 500
        )


@router.get("/models")
async def models(request: Request) -> Response:
    settings: Settings = request.app.state.settings
    upstream: UpstreamClient = request.app.state.upstream
    try:
        response = await upstream.list_models(build_headers(settings, None, None))
        data = response.json()
    except (httpx.HTTPError, ValueError):
        logger.exception("models_fetch_failed")
        return error_response("Failed to fetch models.", 500)
    return json_response(data)


@router.get("/user")
async def user() -> Response:
    return json_response(dict(PLACEHOLDER_USER))


def create_app(
    settings: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    resolved_settings = settings or get_settings()
    upstream = UpstreamClient(resolved_settings, http_client=http_client)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "startup complete api_endpoint=%s service_name=%s api_key_configured=%s "
            "development=%s",
            resolved_settings.api_endpoint,
            resolved_settings.service_name,
            bool(resolved_settings.api_key),
            resolved_settings.development,
        )
        yield
        await upstream.close()
        logger.info("shutdown complete")

    app = FastAPI(
        title="Chat AI Gateway",
        description="Gateway between chat clients and OpenAI-compatible inference backends.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = resolved_settings
    app.state.upstream = upstream
    app.state.recovery_chain = ErrorRecoveryChain()
    app.middleware("http")(cors_preflight_middleware)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "chat_ai_gateway.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.development,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    run()
