"""任务服务异常体系

每个异常携带对外暴露的 ErrorKind 与 HTTP 状态码，
由 gateway 统一转换为 {"error": kind, "message": ...} JSON 响应。
"""

from .models.enums import ErrorKind


class TaskServiceError(Exception):
    """任务服务基础异常"""

    kind: ErrorKind = ErrorKind.INTERNAL
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, str]:
        """转换为错误响应体"""
        return {"error": self.kind.value, "message": self.message}


class InvalidParametersError(TaskServiceError):
    """project_id / ref 缺失或格式非法，不会进入 resolver"""

    kind = ErrorKind.INVALID_PARAMETERS
    status_code = 400


class TaskNotFoundError(TaskServiceError):
    """解析失败且不适用 upsert（或删除目标不存在）"""

    kind = ErrorKind.TASK_NOT_FOUND
    status_code = 404

    def __init__(self, project_id: str, ref: str) -> None:
        super().__init__(f"Task {ref} not found in project {project_id}")
        self.project_id = project_id
        self.ref = ref


class ConflictError(TaskServiceError):
    """同一项目内 source_id 已存在，或并发写入互相矛盾"""

    kind = ErrorKind.CONFLICT
    status_code = 409


class DuplicateSourceIdError(ConflictError):
    """Store 层唯一约束 (project_id, source_id) 冲突

    UpsertCoordinator 捕获此异常并回退为更新已存在的行。
    """

    def __init__(self, project_id: str, source_id: str) -> None:
        super().__init__(
            f"Source {source_id} is already cloned into project {project_id}"
        )
        self.project_id = project_id
        self.source_id = source_id


class StoreUnavailableError(TaskServiceError):
    """持久层 I/O 失败或超时"""

    kind = ErrorKind.STORE_UNAVAILABLE
    status_code = 503

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.original_error = original_error
