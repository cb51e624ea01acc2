from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from fastapi.responses import JSONResponse, PlainTextResponse

CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "*",
}


def with_cors(headers: Mapping[str, str] | None = None) -> dict[str, str]:
    merged: dict[str, str] = {}
    cors_keys = {key.lower() for key in CORS_HEADERS}
    for key, value in (headers or {}).items():
        if key.lower() not in cors_keys:
            merged[key] = value
    merged.update(CORS_HEADERS)
    return merged


def json_response(data: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=data, status_code=status_code, headers=with_cors())


def error_response(message: str, status_code: int = 500) -> JSONResponse:
    return json_response({"error": message}, status_code)


def text_response(text: str, status_code: int) -> PlainTextResponse:
    return PlainTextResponse(content=text, status_code=status_code, headers=with_cors())
