"""Standart API yanıt zarfı.

Başarılı yanıtlar: {"data": ..., "status": 200, "message": "..."}
Hatalı yanıtlar:   {"error": "...", "status": 4xx/5xx, "message": "..."}
"""
from typing import Any, Optional

from fastapi.responses import JSONResponse

from errors import ApiError


def success_response(data: Any, message: Optional[str] = None, status: int = 200) -> JSONResponse:
    body = {"data": data, "status": status}
    if message:
        body["message"] = message
    return JSONResponse(body, status_code=status)


def error_response(error: str, message: Optional[str] = None, status: int = 500) -> JSONResponse:
    body = {"error": error, "status": status}
    if message:
        body["message"] = message
    return JSONResponse(body, status_code=status)


def from_api_error(exc: ApiError) -> JSONResponse:
    return error_response(exc.error, exc.message, exc.status_code)


def ok(data: Any, message: Optional[str] = None) -> JSONResponse:
    return success_response(data, message, 200)


def created(data: Any, message: Optional[str] = None) -> JSONResponse:
    return success_response(data, message, 201)
