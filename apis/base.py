from typing import Any

from fastapi import HTTPException
from pydantic import BaseModel, ConfigDict

from core.errors import AppError


class StrictModel(BaseModel):
    """请求体基类：拒绝未声明字段。"""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


def success_response(data: Any = None, message: str = "success", code: int = 0) -> dict:
    return {
        "code": code,
        "message": message,
        "data": data,
    }


def error_response(code: int, message: str, data: Any = None) -> dict:
    body = {
        "code": code,
        "message": message,
    }
    if data is not None:
        body["data"] = data
    return body


def http_error(e: AppError) -> HTTPException:
    return HTTPException(
        status_code=e.status_code,
        detail=error_response(code=e.code, message=e.message),
    )
