"""Task Domain Model

Task 属于且仅属于一个 Project；source_id 指向被克隆的模板，
同一项目内唯一，不同项目之间允许重复。
JSON 字段名使用 camelCase（projectId、sourceId、dueDate 等），
Python 侧使用 snake_case，两种写法在输入时均被接受。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .enums import TaskOrigin, TaskStage

# 可为空的自由文本字段：空字符串归一化为 None
NULLABLE_TEXT_FIELDS: tuple[str, ...] = ("notes", "priority", "owner", "due_date", "status")

_TRUTHY = {"true", "1", "yes", "on", "y", "t"}


def coerce_bool(value: Any) -> bool:
    """将任意输入强制转换为 bool（"false"/"0"/"" 视为 False）"""
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Task(_CamelModel):
    """Task 数据模型"""

    id: str = Field(description="全局唯一标识（UUID 形态）")
    project_id: str = Field(description="所属项目，创建后不可变")
    source_id: str | None = Field(default=None, description="克隆来源模板 ID")
    origin: TaskOrigin = Field(default=TaskOrigin.CUSTOM, description="任务来源")
    stage: TaskStage = Field(default=TaskStage.IDENTIFICATION, description="生命周期阶段")
    completed: bool = Field(default=False, description="是否完成")
    text: str = Field(description="任务内容")
    notes: str | None = None
    priority: str | None = None
    owner: str | None = None
    due_date: str | None = None
    status: str | None = None
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间，每次变更严格递增")

    def to_response(self) -> dict[str, Any]:
        """序列化为对外 JSON（camelCase）"""
        return self.model_dump(mode="json", by_alias=True)


class TaskPatch(_CamelModel):
    """部分更新请求体

    只有显式出现在请求中的字段才会覆盖已有值，
    通过 pydantic 的 model_fields_set 区分“未提供”与“显式为 null”。
    """

    text: str | None = None
    stage: TaskStage | None = None
    completed: bool | None = None
    origin: TaskOrigin | None = None
    source_id: str | None = None
    notes: str | None = None
    priority: str | None = None
    owner: str | None = None
    due_date: str | None = None
    status: str | None = None

    @field_validator("completed", mode="before")
    @classmethod
    def _coerce_completed(cls, value: Any) -> bool | None:
        if value is None:
            return None
        return coerce_bool(value)

    @field_validator("stage", "origin", mode="before")
    @classmethod
    def _normalize_enum_text(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator(*NULLABLE_TEXT_FIELDS, "source_id", mode="before")
    @classmethod
    def _empty_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("text must not be blank")
        return value

    def has(self, field_name: str) -> bool:
        """字段是否在请求中显式出现"""
        return field_name in self.model_fields_set


class TaskCreate(TaskPatch):
    """显式创建请求体 -- text 必填，其余字段带默认值"""

    text: str
    stage: TaskStage = TaskStage.IDENTIFICATION
    completed: bool = False
    origin: TaskOrigin = TaskOrigin.CUSTOM
