"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭 + 模板目录加载 + 路由与异常处理注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from tcof.core.catalog import load_catalog
from tcof.core.config import get_catalog_path, get_db_path, load_retry_policy
from tcof.core.store import create_store_group

from .errors import register_error_handlers
from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import health, tasks

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """启动时初始化 Store 与模板目录，关闭时清理连接"""
    db_path = get_db_path()
    app.state.store_group = await create_store_group(db_path)
    app.state.catalog = load_catalog(get_catalog_path())
    app.state.retry_policy = load_retry_policy()

    log.info(
        "task_service_started",
        db_path=db_path,
        templates=len(app.state.catalog),
        retry_attempts=app.state.retry_policy.attempts,
        timeout_s=app.state.retry_policy.timeout_s,
    )

    yield

    if getattr(app.state, "store_group", None) is not None:
        await app.state.store_group.conn.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="TCOF Task Service",
        version="0.1.0",
        description="项目任务清单 API：任务引用解析与按需克隆",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging，Logging 位于最外层）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    setup_logging()
    setup_logfire(app)

    register_error_handlers(app)

    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
