"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、模板目录路径、列表上限、Store 调用超时与重试策略。
"""

import os
from pathlib import Path

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("TCOF_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "TCOF_DB_PATH",
        str(_get_base_dir() / "sqlite" / "tcof.db"),
    )


def get_catalog_path() -> Path | None:
    """获取模板目录 JSON 文件路径，未配置时返回 None（空目录）"""
    value = os.environ.get("TCOF_CATALOG_PATH")
    return Path(value) if value else None


DEFAULT_TASK_LIST_MAX = 1000


def get_task_list_max() -> int:
    """列表接口单次返回上限（TCOF_TASK_LIST_MAX），非法取值回退到默认值"""
    val = os.environ.get("TCOF_TASK_LIST_MAX")
    if not val:
        return DEFAULT_TASK_LIST_MAX
    try:
        limit = int(val)
    except ValueError:
        limit = 0
    if limit < 1:
        log.warning(
            "invalid_list_config",
            env_var="TCOF_TASK_LIST_MAX",
            value=val,
            fallback=DEFAULT_TASK_LIST_MAX,
        )
        return DEFAULT_TASK_LIST_MAX
    return limit


class RetryPolicy(BaseModel):
    """Store 调用重试策略

    环境变量:
        TCOF_STORE_TIMEOUT_S: 单次 Store 调用超时（秒，默认 5）
        TCOF_STORE_RETRY_ATTEMPTS: 幂等调用最大尝试次数（默认 3）
        TCOF_STORE_RETRY_BACKOFF_S: 重试间隔基数（秒，默认 0.05，线性递增）
    """

    timeout_s: float = Field(default=5.0, gt=0, description="单次调用超时（秒）")
    attempts: int = Field(default=3, ge=1, le=10, description="最大尝试次数")
    backoff_s: float = Field(default=0.05, ge=0, description="重试间隔基数（秒）")


_RETRY_ENV = {
    "timeout_s": ("TCOF_STORE_TIMEOUT_S", float),
    "attempts": ("TCOF_STORE_RETRY_ATTEMPTS", int),
    "backoff_s": ("TCOF_STORE_RETRY_BACKOFF_S", float),
}


def load_retry_policy() -> RetryPolicy:
    """从环境变量加载重试策略

    非法取值记录 warning 并回退到默认值，不阻塞启动。
    """
    kwargs: dict = {}
    defaults = RetryPolicy()

    for field_name, (env_var, cast) in _RETRY_ENV.items():
        if val := os.environ.get(env_var):
            try:
                kwargs[field_name] = cast(val)
            except ValueError:
                log.warning(
                    "invalid_retry_config",
                    env_var=env_var,
                    value=val,
                    fallback=getattr(defaults, field_name),
                )

    try:
        return RetryPolicy(**kwargs)
    except ValueError:
        log.warning("invalid_retry_config", values=kwargs, fallback="defaults")
        return defaults
