"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store 与 TaskService

StoreGroup、模板目录与重试策略保存在 app.state，在 lifespan 中初始化/清理。
"""

from fastapi import Depends, Request
from tcof.core.store import StoreGroup

from .services.task_service import TaskService


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_task_service(
    request: Request,
    store_group: StoreGroup = Depends(get_store_group),
) -> TaskService:
    """按请求构造 TaskService"""
    return TaskService(
        store_group.task_store,
        catalog=getattr(request.app.state, "catalog", None),
        policy=getattr(request.app.state, "retry_policy", None),
    )
