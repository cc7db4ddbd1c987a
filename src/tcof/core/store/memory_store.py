"""TaskStore 内存实现 -- 测试替身

与 SqliteTaskStore 行为一致：主键唯一、(project_id, source_id) 唯一、
项目内匹配按 id 升序返回。每次调用都会让出事件循环，
用于在测试中复现并发交错（真实 Store 的每次调用都可能挂起在 I/O 上）。
返回值均为副本，调用方修改不会影响存储内容。
"""

import asyncio
from collections.abc import Collection, Sequence

from ..exceptions import ConflictError, DuplicateSourceIdError, StoreUnavailableError
from ..models.enums import TaskStage
from ..models.task import Task
from .protocols import MatchField


class InMemoryTaskStore:
    """TaskStore 的内存实现"""

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}
        self.available = True

    async def create_task(self, task: Task) -> None:
        await self._io()
        if task.id in self._tasks:
            raise ConflictError(f"Task {task.id} could not be inserted: duplicate id")
        self._check_source_unique(task)
        self._tasks[task.id] = task.model_copy(deep=True)

    async def get_task(self, project_id: str, task_id: str) -> Task | None:
        await self._io()
        task = self._tasks.get(task_id)
        if task is None or task.project_id != project_id:
            return None
        return task.model_copy(deep=True)

    async def find_tasks(
        self,
        project_id: str,
        field: MatchField,
        exact: Sequence[str] = (),
        prefix: str | None = None,
    ) -> list[Task]:
        await self._io()
        attr = MatchField(field).value
        wanted = set(exact)
        if not wanted and not prefix:
            return []

        matches = []
        for task in self._tasks.values():
            if task.project_id != project_id:
                continue
            value = getattr(task, attr)
            if value is None:
                continue
            if value in wanted or (prefix and value.startswith(prefix)):
                matches.append(task.model_copy(deep=True))
        return sorted(matches, key=lambda t: t.id)

    async def list_tasks(
        self,
        project_id: str,
        stage: TaskStage | None = None,
    ) -> list[Task]:
        await self._io()
        tasks = [
            task.model_copy(deep=True)
            for task in self._tasks.values()
            if task.project_id == project_id and (stage is None or task.stage == stage)
        ]
        return sorted(tasks, key=lambda t: (t.created_at, t.id))

    async def list_all_tasks(self) -> list[Task]:
        await self._io()
        tasks = [task.model_copy(deep=True) for task in self._tasks.values()]
        return sorted(tasks, key=lambda t: (t.project_id, t.created_at, t.id))

    async def update_task(self, task: Task, fields: Collection[str] | None = None) -> bool:
        await self._io()
        current = self._tasks.get(task.id)
        if current is None or current.project_id != task.project_id:
            return False
        if fields is None:
            merged = task
        else:
            columns = {*fields, "updated_at"}
            merged = current.model_copy(update={name: getattr(task, name) for name in columns})
        self._check_source_unique(merged)
        self._tasks[task.id] = merged.model_copy(deep=True)
        return True

    async def delete_task(self, project_id: str, task_id: str) -> bool:
        await self._io()
        current = self._tasks.get(task_id)
        if current is None or current.project_id != project_id:
            return False
        del self._tasks[task_id]
        return True

    def count(self, project_id: str | None = None) -> int:
        """同步计数，便于测试断言"""
        if project_id is None:
            return len(self._tasks)
        return sum(1 for t in self._tasks.values() if t.project_id == project_id)

    async def _io(self) -> None:
        await asyncio.sleep(0)
        if not self.available:
            raise StoreUnavailableError("In-memory task store is marked unavailable")

    def _check_source_unique(self, task: Task) -> None:
        if task.source_id is None:
            return
        for other in self._tasks.values():
            if (
                other.id != task.id
                and other.project_id == task.project_id
                and other.source_id == task.source_id
            ):
                raise DuplicateSourceIdError(task.project_id, task.source_id)

    def insert_unchecked(self, task: Task) -> None:
        """绕过唯一约束直接写入 -- 仅用于构造历史脏数据的测试场景"""
        self._tasks[task.id] = task.model_copy(deep=True)
