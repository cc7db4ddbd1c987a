"""TCOF Core -- 项目任务清单的领域层

任务引用解析（TaskResolver）、更新/按需克隆（UpsertCoordinator）
以及持久化接口（TaskStore）。
"""

from .exceptions import (
    ConflictError,
    DuplicateSourceIdError,
    InvalidParametersError,
    StoreUnavailableError,
    TaskNotFoundError,
    TaskServiceError,
)
from .identifiers import ParsedRef, parse
from .resolver import Resolution, TaskResolver
from .upsert import UpsertCoordinator, UpsertResult

__all__ = [
    "ParsedRef",
    "parse",
    "Resolution",
    "TaskResolver",
    "UpsertCoordinator",
    "UpsertResult",
    "TaskServiceError",
    "InvalidParametersError",
    "TaskNotFoundError",
    "ConflictError",
    "DuplicateSourceIdError",
    "StoreUnavailableError",
]
