"""TaskService -- 任务清单的对外门面

路由层只与 TaskService 交互，不直接触碰 Store：
1. 校验 project_id / ref，非法时抛 InvalidParametersError（不进入 resolver）
2. 读取与定位统一经由 TaskResolver
3. 更新统一经由 UpsertCoordinator（命中即更新，未命中按需克隆）
4. Store 调用统一经由 call_with_retry（超时保护 + 幂等调用有限重试）
"""

from datetime import UTC, datetime

import structlog
from tcof.core.catalog import TemplateCatalog
from tcof.core.config import RetryPolicy, get_task_list_max
from tcof.core.exceptions import (
    ConflictError,
    InvalidParametersError,
    TaskNotFoundError,
)
from tcof.core.identifiers import new_task_id
from tcof.core.models import STAGE_ORDER, Task, TaskCreate, TaskPatch, TaskStage
from tcof.core.resolver import TaskResolver
from tcof.core.retry import call_with_retry
from tcof.core.store import TaskStore
from tcof.core.upsert import UpsertCoordinator, UpsertResult

log = structlog.get_logger()


def _require(value: str | None, name: str) -> str:
    """校验路径参数非空"""
    if value is None or not value.strip():
        raise InvalidParametersError(f"{name} is required")
    return value


class TaskService:
    """任务业务服务"""

    def __init__(
        self,
        store: TaskStore,
        catalog: TemplateCatalog | None = None,
        policy: RetryPolicy | None = None,
    ) -> None:
        self._store = store
        self._policy = policy or RetryPolicy()
        self._resolver = TaskResolver(store)
        self._coordinator = UpsertCoordinator(
            store,
            resolver=self._resolver,
            catalog=catalog,
            policy=self._policy,
        )

    async def create(self, project_id: str, data: TaskCreate) -> Task:
        """显式创建任务

        带 source_id 时要求项目内尚无同源任务，否则 ConflictError。
        新任务 id 总是服务端生成。
        """
        project_id = _require(project_id, "projectId")

        if data.source_id:
            existing = await call_with_retry(
                lambda: self._resolver.resolve_source(project_id, data.source_id),
                "resolve_source",
                self._policy,
            )
            if existing is not None:
                raise ConflictError(
                    f"Source {data.source_id} is already cloned into project "
                    f"{project_id} as task {existing.id}"
                )

        now = datetime.now(UTC)
        task = Task(
            id=new_task_id(),
            project_id=project_id,
            source_id=data.source_id,
            origin=data.origin,
            stage=data.stage,
            completed=data.completed,
            text=data.text,
            notes=data.notes,
            priority=data.priority,
            owner=data.owner,
            due_date=data.due_date,
            status=data.status,
            created_at=now,
            updated_at=now,
        )
        # 并发创建同源任务时由唯一约束抛 DuplicateSourceIdError（409）
        await call_with_retry(
            lambda: self._store.create_task(task),
            "create_task",
            self._policy,
            attempts=1,
        )

        log.info(
            "task_created",
            project_id=project_id,
            task_id=task.id,
            source_id=task.source_id,
            origin=task.origin.value,
        )
        return task

    async def list_tasks(
        self,
        project_id: str,
        stage: TaskStage | None = None,
    ) -> list[Task]:
        """项目内任务列表，按阶段顺序、再按创建时间排序"""
        project_id = _require(project_id, "projectId")
        tasks = await call_with_retry(
            lambda: self._store.list_tasks(project_id, stage),
            "list_tasks",
            self._policy,
        )
        tasks.sort(key=lambda t: (STAGE_ORDER[t.stage], t.created_at, t.id))
        return tasks[: get_task_list_max()]

    async def get(self, project_id: str, ref: str) -> Task:
        """按任意可接受的引用形式读取任务"""
        project_id = _require(project_id, "projectId")
        ref = _require(ref, "taskId")
        return await call_with_retry(
            lambda: self._resolver.resolve_or_raise(project_id, ref),
            "resolve",
            self._policy,
        )

    async def update(self, project_id: str, ref: str, patch: TaskPatch) -> UpsertResult:
        """部分更新；引用未命中且 patch 足以构造任务时按需克隆"""
        project_id = _require(project_id, "projectId")
        ref = _require(ref, "taskId")
        return await self._coordinator.upsert(project_id, ref, patch)

    async def delete(self, project_id: str, ref: str) -> Task:
        """解析引用后删除，返回被删除的任务"""
        project_id = _require(project_id, "projectId")
        ref = _require(ref, "taskId")

        task = await call_with_retry(
            lambda: self._resolver.resolve_or_raise(project_id, ref),
            "resolve",
            self._policy,
        )
        deleted = await call_with_retry(
            lambda: self._store.delete_task(project_id, task.id),
            "delete_task",
            self._policy,
            attempts=1,
        )
        if not deleted:
            # 解析之后被并发删除
            raise TaskNotFoundError(project_id, ref)

        log.info("task_deleted", project_id=project_id, ref=ref, task_id=task.id)
        return task

    async def clone_templates(self, project_id: str) -> list[Task]:
        """把模板目录克隆到项目，已克隆的模板跳过"""
        project_id = _require(project_id, "projectId")
        return await self._coordinator.clone_templates(project_id)
