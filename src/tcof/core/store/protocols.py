"""Store Protocol 接口定义

使用 Python Protocol 实现结构化子类型（duck typing）。
除审计用的 list_all_tasks 外，所有查询都以 project_id 作为第一个参数，
实现方必须先按项目过滤再匹配。
"""

from collections.abc import Collection, Sequence
from enum import StrEnum
from typing import Protocol

from ..models.enums import TaskStage
from ..models.task import Task


class MatchField(StrEnum):
    """可用于 find_tasks 匹配的列"""

    ID = "id"
    SOURCE_ID = "source_id"


class TaskStore(Protocol):
    """Task 存储接口

    写操作违反 (project_id, source_id) 唯一约束时抛 DuplicateSourceIdError，
    I/O 失败时抛 StoreUnavailableError。
    """

    async def create_task(self, task: Task) -> None:
        """插入任务记录"""
        ...

    async def get_task(self, project_id: str, task_id: str) -> Task | None:
        """按 (project_id, id) 查询任务"""
        ...

    async def find_tasks(
        self,
        project_id: str,
        field: MatchField,
        exact: Sequence[str] = (),
        prefix: str | None = None,
    ) -> list[Task]:
        """项目内按列匹配：值等于 exact 之一，或以 prefix 开头；按 id 升序"""
        ...

    async def list_tasks(
        self,
        project_id: str,
        stage: TaskStage | None = None,
    ) -> list[Task]:
        """查询项目内任务列表，按 created_at 升序"""
        ...

    async def list_all_tasks(self) -> list[Task]:
        """跨项目读取全部任务（仅供审计）"""
        ...

    async def update_task(self, task: Task, fields: Collection[str] | None = None) -> bool:
        """写回任务，返回是否命中 (project_id, id)

        fields 为 None 时整行写回；否则只写 fields 中的列与 updated_at，
        其余列保留存储中的当前值。读取当前值与写入之间不得被其他写入穿插。
        """
        ...

    async def delete_task(self, project_id: str, task_id: str) -> bool:
        """删除任务，返回是否命中"""
        ...
