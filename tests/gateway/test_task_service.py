"""TaskService 门面测试

测试内容：
1. 参数校验先于解析
2. 删除不可解析的引用：TaskNotFound 且 Store 不变
3. 显式创建时同源冲突（含经带后缀引用克隆出的任务）
4. 列表排序
5. Store 不可用时抛 StoreUnavailableError
"""

from datetime import UTC, datetime, timedelta

import pytest
from tcof.core.exceptions import (
    ConflictError,
    InvalidParametersError,
    StoreUnavailableError,
    TaskNotFoundError,
)
from tcof.core.models import TaskCreate, TaskOrigin, TaskPatch, TaskStage
from tcof.core.store import InMemoryTaskStore
from tcof.gateway.services.task_service import TaskService


@pytest.fixture
def memory_service(memory_store, catalog, fast_policy) -> TaskService:
    return TaskService(memory_store, catalog=catalog, policy=fast_policy)


class TestValidation:
    @pytest.mark.parametrize(("project_id", "ref"), [("", "t1"), ("  ", "t1"), ("p1", ""), ("p1", " ")])
    async def test_blank_parameters_rejected(self, memory_service, project_id, ref):
        with pytest.raises(InvalidParametersError):
            await memory_service.get(project_id, ref)
        with pytest.raises(InvalidParametersError):
            await memory_service.update(project_id, ref, TaskPatch(completed=True))
        with pytest.raises(InvalidParametersError):
            await memory_service.delete(project_id, ref)

    async def test_validation_happens_before_store(self, fast_policy):
        store = InMemoryTaskStore()
        store.available = False
        service = TaskService(store, policy=fast_policy)

        with pytest.raises(InvalidParametersError):
            await service.list_tasks("")


class TestDelete:
    async def test_delete_unknown_ref(self, memory_service, memory_store, make_task):
        """删除不可解析的引用不改变任务数"""
        await memory_store.create_task(make_task("t1"))

        with pytest.raises(TaskNotFoundError):
            await memory_service.delete("p1", "nonexistent-id")
        assert memory_store.count("p1") == 1

    async def test_delete_never_synthesizes(self, memory_service, memory_store):
        with pytest.raises(TaskNotFoundError):
            await memory_service.delete("p1", "sf-1")
        assert memory_store.count() == 0

    async def test_delete_by_compound_ref(self, memory_service, memory_store, make_task):
        canonical = "3f2b8c1e-9d4a-4e2f-b1c7-0a9e8d7c6b5a"
        await memory_store.create_task(make_task(canonical))

        deleted = await memory_service.delete("p1", f"{canonical}-9")
        assert deleted.id == canonical
        assert memory_store.count("p1") == 0

    async def test_delete_scoped_to_project(self, memory_service, memory_store, make_task):
        await memory_store.create_task(make_task("t1", project_id="p2", source_id="sf-7"))

        with pytest.raises(TaskNotFoundError):
            await memory_service.delete("p1", "sf-7")
        assert memory_store.count("p2") == 1


class TestCreate:
    async def test_create_assigns_id(self, memory_service):
        task = await memory_service.create("p1", TaskCreate(text="Write the charter"))
        assert task.project_id == "p1"
        assert task.origin == TaskOrigin.CUSTOM
        assert task.created_at == task.updated_at

    async def test_create_duplicate_source_conflicts(self, memory_service):
        data = TaskCreate(text="Budget", source_id="sf-2", origin=TaskOrigin.FACTOR)
        await memory_service.create("p1", data)

        with pytest.raises(ConflictError):
            await memory_service.create("p1", data)
        # 其他项目不受影响
        await memory_service.create("p2", data)

    async def test_create_conflicts_with_clone_from_suffixed_ref(self, memory_service, memory_store):
        """经 sf-9-row3 克隆出的任务占用模板 sf-9，之后不能再显式创建同源任务"""
        await memory_service.update(
            "p1",
            "sf-9-row3",
            TaskPatch(origin="factor", text="Retro", stage=TaskStage.CLOSURE),
        )

        with pytest.raises(ConflictError):
            await memory_service.create(
                "p1", TaskCreate(text="Retro again", source_id="sf-9", origin=TaskOrigin.FACTOR)
            )
        assert memory_store.count("p1") == 1
        assert {t.source_id for t in await memory_service.clone_templates("p1")} == {"sf-1", "sf-2"}


class TestReadAndUpdate:
    async def test_list_sorted_by_stage_then_created(self, memory_service, memory_store, make_task):
        base = datetime.now(UTC)
        await memory_store.create_task(make_task("closing", stage=TaskStage.CLOSURE, created_at=base))
        await memory_store.create_task(
            make_task("define-2", stage=TaskStage.DEFINITION, created_at=base + timedelta(seconds=2))
        )
        await memory_store.create_task(
            make_task("define-1", stage=TaskStage.DEFINITION, created_at=base + timedelta(seconds=1))
        )

        tasks = await memory_service.list_tasks("p1")
        assert [t.id for t in tasks] == ["define-1", "define-2", "closing"]

        closure = await memory_service.list_tasks("p1", TaskStage.CLOSURE)
        assert [t.id for t in closure] == ["closing"]

    async def test_get_by_source(self, memory_service, memory_store, make_task):
        await memory_store.create_task(make_task("t1", source_id="sf-7"))
        assert (await memory_service.get("p1", "sf-7")).id == "t1"

    async def test_update_reports_creation(self, memory_service):
        result = await memory_service.update("p1", "sf-1", TaskPatch(origin="factor"))
        assert result.created is True
        again = await memory_service.update("p1", "sf-1", TaskPatch(completed=True))
        assert again.created is False
        assert again.task.id == result.task.id

    async def test_clone_templates(self, memory_service, memory_store):
        created = await memory_service.clone_templates("p1")
        assert len(created) == 3
        assert memory_store.count("p1") == 3


class TestStoreUnavailable:
    async def test_reads_raise_unavailable(self, fast_policy):
        store = InMemoryTaskStore()
        store.available = False
        service = TaskService(store, policy=fast_policy)

        with pytest.raises(StoreUnavailableError):
            await service.get("p1", "t1")
        with pytest.raises(StoreUnavailableError):
            await service.create("p1", TaskCreate(text="x"))
