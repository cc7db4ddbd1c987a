"""TCOF Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import (
    STAGE_ORDER,
    TEMPLATE_ORIGINS,
    ErrorKind,
    ResolutionMethod,
    TaskOrigin,
    TaskStage,
    is_template_origin,
)
from .task import NULLABLE_TEXT_FIELDS, Task, TaskCreate, TaskPatch, coerce_bool

__all__ = [
    # 枚举
    "TaskStage",
    "TaskOrigin",
    "ResolutionMethod",
    "ErrorKind",
    "STAGE_ORDER",
    "TEMPLATE_ORIGINS",
    "is_template_origin",
    # Task
    "Task",
    "TaskPatch",
    "TaskCreate",
    "NULLABLE_TEXT_FIELDS",
    "coerce_bool",
]
