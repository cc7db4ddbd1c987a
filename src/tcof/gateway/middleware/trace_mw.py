"""TraceMiddleware -- 为任务操作绑定 project_id / task_ref

从 /api/projects/{project_id}/tasks/{ref} 形式的路径中提取标识，
resolver 与 upsert 的日志因此都带有请求作用域。
"""

from urllib.parse import unquote

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response


def extract_trace_context(path: str) -> dict[str, str]:
    """从请求路径提取 project_id 与 task_ref"""
    parts = [p for p in path.split("/") if p]
    context: dict[str, str] = {}

    if len(parts) >= 3 and parts[0] == "api" and parts[1] == "projects":
        context["project_id"] = unquote(parts[2])
        if len(parts) >= 5 and parts[3] == "tasks":
            context["task_ref"] = unquote(parts[4])

    return context


class TraceMiddleware(BaseHTTPMiddleware):
    """任务级追踪中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        context = extract_trace_context(request.url.path)
        if context:
            structlog.contextvars.bind_contextvars(**context)

        return await call_next(request)
