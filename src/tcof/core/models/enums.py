"""枚举定义

包含 TaskStage 生命周期阶段（有序）、TaskOrigin 来源标记、
ResolutionMethod 解析路径，以及对外暴露的 ErrorKind。
"""

from enum import StrEnum


class TaskStage(StrEnum):
    """任务生命周期阶段 -- 定义顺序即阶段顺序"""

    IDENTIFICATION = "identification"
    DEFINITION = "definition"
    DELIVERY = "delivery"
    CLOSURE = "closure"


STAGE_ORDER: dict[TaskStage, int] = {stage: idx for idx, stage in enumerate(TaskStage)}


class TaskOrigin(StrEnum):
    """任务来源"""

    CUSTOM = "custom"
    FACTOR = "factor"
    # 旧客户端使用的别名，与 FACTOR 等价
    SUCCESS_FACTOR = "success-factor"


TEMPLATE_ORIGINS: set[TaskOrigin] = {
    TaskOrigin.FACTOR,
    TaskOrigin.SUCCESS_FACTOR,
}


class ResolutionMethod(StrEnum):
    """Resolver 命中路径"""

    EXACT_ID = "exact-id"
    EXACT_SOURCE_ID = "exact-source-id"
    CANONICAL_ID = "canonical-id"
    CANONICAL_SOURCE_ID = "canonical-source-id"
    NOT_FOUND = "not-found"


class ErrorKind(StrEnum):
    """对外错误类型"""

    INVALID_PARAMETERS = "InvalidParameters"
    TASK_NOT_FOUND = "TaskNotFound"
    CONFLICT = "Conflict"
    STORE_UNAVAILABLE = "StoreUnavailable"
    DATA_INTEGRITY_WARNING = "DataIntegrityWarning"
    HTTP_ERROR = "HTTPError"
    INTERNAL = "InternalError"


def is_template_origin(origin: TaskOrigin | str | None) -> bool:
    """判断 origin 是否表示模板克隆任务"""
    if origin is None:
        return False
    try:
        return TaskOrigin(origin) in TEMPLATE_ORIGINS
    except ValueError:
        return False
