from __future__ import annotations

import traceback
from datetime import datetime
from typing import Any, Dict, List

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from recipe_platform.errors import ApiError
from recipe_platform.util.time import isoformat_z


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


def _encode(data: Any) -> Any:
    return jsonable_encoder(data, custom_encoder={datetime: isoformat_z})


def api_response(data: Any = None, message: str = "Success", *, status_code: int = 200) -> JSONResponse:
    """Success envelope: {success: true, data, message}."""
    body = {"success": True, "data": _encode(data if data is not None else {}), "message": message}
    return JSONResponse(status_code=status_code, content=body)


def error_response(status_code: int, message: str, errors: List[Any] | None = None, headers: Dict[str, str] | None = None) -> JSONResponse:
    body: Dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = _encode(errors)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        _debug(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return error_response(exc.status_code, exc.message, exc.errors, exc.headers)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(p) for p in e.get("loc", ()) if p != "body"), "message": e.get("msg")}
        for e in exc.errors()
    ]
    return error_response(400, "Invalid request", errors)


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


async def _unhandled_handler(request: Request, exc: Exception) -> JSONResponse:
    # Log everything, leak nothing.
    _debug(f"Unhandled error on {request.method} {request.url.path}: {exc!r}")
    traceback.print_exception(type(exc), exc, exc.__traceback__)
    return error_response(500, "Something went wrong!")


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(Exception, _unhandled_handler)
