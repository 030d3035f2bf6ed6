from typing import Any, Generic, TypeVar

from fastapi import status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from startrader.core.exceptions.errors import StarTraderError

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    success: bool
    message: str = ""
    data: T | None = None
    status_code: int = status.HTTP_200_OK


def send_success(
    message: str = "Success", data: Any = None, status_code: int = status.HTTP_200_OK
) -> APIResponse:
    return APIResponse(
        success=True, message=message, data=data, status_code=status_code
    )


def send_error(
    message: str = "Error",
    data: Any = None,
    status_code: int = status.HTTP_400_BAD_REQUEST,
) -> APIResponse:
    return APIResponse(
        success=False, message=message, data=data, status_code=status_code
    )


def error_response(exc: StarTraderError) -> JSONResponse:
    """Render a domain error in the standard envelope with its own status code."""
    return JSONResponse(
        status_code=exc.status_code,
        content=send_error(
            message=exc.message, data=exc.to_dict(), status_code=exc.status_code
        ).model_dump(),
    )
