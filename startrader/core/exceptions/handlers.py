import traceback

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from openai import OpenAIError
from starlette.exceptions import HTTPException as StarletteHTTPException

from startrader.core.exceptions.errors import StarTraderError, UpstreamFetchError
from startrader.core.responses import error_response, send_error
from startrader.utils.logging import get_logger


def register_exception_handlers(app):
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger = get_logger()
        logger.error(
            f"Unhandled exception for {request.method} {request.url}: {exc}\n"
            f"Traceback: {traceback.format_exc()}\n"
            f"User-Agent: {request.headers.get('user-agent')}"
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=send_error(
                message="An unexpected error occurred.",
                data={"detail": str(exc)},
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            ).model_dump(),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        logger = get_logger()
        raw_errors = exc.errors()
        logger.warning(
            f"Validation error for {request.method} {request.url}: {raw_errors}"
        )

        friendly_errors = {}
        for error in raw_errors:
            field = ".".join(map(str, error["loc"]))
            if field.startswith("body."):
                field = field.replace("body.", "", 1)
            friendly_errors[field] = error["msg"]

        return JSONResponse(
            status_code=422,
            content=send_error(
                message="Validation failed",
                data={"errors": friendly_errors},
                status_code=422,
            ).model_dump(),
        )

    @app.exception_handler(UpstreamFetchError)
    async def upstream_exception_handler(request: Request, exc: UpstreamFetchError):
        logger = get_logger()
        logger.error(
            f"Upstream failure for {request.method} {request.url}: {exc.message}"
        )
        return error_response(exc)

    @app.exception_handler(StarTraderError)
    async def domain_exception_handler(request: Request, exc: StarTraderError):
        logger = get_logger()
        logger.warning(
            f"{type(exc).__name__} for {request.method} {request.url}: {exc.message}"
        )
        return error_response(exc)

    @app.exception_handler(OpenAIError)
    async def llm_exception_handler(request: Request, exc: OpenAIError):
        logger = get_logger()
        logger.error(
            f"LLM provider error for {request.method} {request.url}: {exc}\n"
            f"Traceback: {traceback.format_exc()}"
        )
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content=send_error(
                message="Language model service unavailable.",
                data={"detail": str(exc)},
                status_code=status.HTTP_502_BAD_GATEWAY,
            ).model_dump(),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger = get_logger()
        logger.warning(
            f"HTTP {exc.status_code} for {request.method} {request.url}: {exc.detail}"
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=send_error(
                message=exc.detail, status_code=exc.status_code
            ).model_dump(),
            headers=getattr(exc, "headers", None),
        )
