"""异常处理器 -- 所有错误都以 {"error": kind, "message": ...} JSON 返回"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse
from tcof.core.exceptions import StoreUnavailableError, TaskServiceError
from tcof.core.models.enums import ErrorKind

log = structlog.get_logger()


def error_response(status_code: int, kind: ErrorKind, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": kind.value, "message": message},
    )


def _describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        # loc 首项是 body / query / path
        loc = ".".join(str(p) for p in err.get("loc", ())[1:])
        msg = err.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "Invalid request"


async def handle_task_service_error(request: Request, exc: TaskServiceError) -> JSONResponse:
    if isinstance(exc, StoreUnavailableError):
        log.error(
            "store_unavailable",
            message=exc.message,
            original_error=type(exc.original_error).__name__ if exc.original_error else None,
        )
    else:
        log.info("request_rejected", error=exc.kind.value, message=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    message = _describe_validation_errors(exc)
    log.info("request_rejected", error=ErrorKind.INVALID_PARAMETERS.value, message=message)
    return error_response(400, ErrorKind.INVALID_PARAMETERS, message)


async def handle_http_exception(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": ErrorKind.HTTP_ERROR.value, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    # 内部细节只进日志，不进响应体
    log.error("unhandled_error", error_type=type(exc).__name__, exc_info=exc)
    return error_response(500, ErrorKind.INTERNAL, "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    """注册全局异常处理器"""
    app.add_exception_handler(TaskServiceError, handle_task_service_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected_error)
