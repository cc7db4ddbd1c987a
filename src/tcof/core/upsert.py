"""UpsertCoordinator -- 更新已存在任务，或按需克隆模板任务

流程：
1. 通过 TaskResolver 在项目内解析引用
2. 命中：只写回 patch 涉及的列与 updated_at，再读回完整行
3. 未命中且 can_synthesize() 成立：以全新 id 创建任务（克隆模板）
4. 未命中且信息不足：TaskNotFoundError

并发克隆同一模板时，Store 的 (project_id, source_id) 唯一约束会让
后到的插入失败，此时回查已存在的行并把 patch 作为更新应用上去。
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import structlog

from .catalog import TaskTemplate, TemplateCatalog
from .config import RetryPolicy
from .exceptions import ConflictError, DuplicateSourceIdError, TaskNotFoundError
from .identifiers import ParsedRef, new_task_id
from .models.enums import TaskOrigin, is_template_origin
from .models.task import Task, TaskPatch
from .resolver import TaskResolver
from .retry import call_with_retry
from .store.protocols import TaskStore

log = structlog.get_logger()

# 这些字段在 Task 上不可为空，patch 中显式的 null 视为未提供
_NON_NULL_FIELDS = {"text", "stage", "completed"}
# 模板元数据由 _merge_metadata 单独处理
_METADATA_FIELDS = {"origin", "source_id"}


@dataclass(frozen=True)
class UpsertResult:
    task: Task
    created: bool


def next_updated_at(previous: datetime) -> datetime:
    """返回严格大于 previous 的当前时间"""
    now = datetime.now(UTC)
    if now <= previous:
        return previous + timedelta(microseconds=1)
    return now


def _source_candidates(ref: ParsedRef) -> list[str]:
    """引用可能指向的模板 id，从长到短"""
    values = dict.fromkeys([ref.canonical, *ref.prefixes()])
    return sorted(values, key=len, reverse=True)


def clone_source_id(
    patch: TaskPatch,
    ref: ParsedRef,
    catalog: TemplateCatalog | None = None,
) -> str | None:
    """新建行时使用的 source_id

    显式且不同于原始引用的值优先；模板克隆时取引用及其前缀中
    模板目录认识的最长者（sf-9-row3 -> sf-9），目录都不认识时取规范形式。
    """
    explicit = patch.source_id
    if not is_template_origin(patch.origin):
        return explicit or None
    if explicit and explicit != ref.raw:
        return explicit
    if catalog is not None:
        for candidate in _source_candidates(ref):
            if catalog.get_template(candidate) is not None:
                return candidate
    return explicit or ref.canonical


def can_synthesize(
    patch: TaskPatch,
    ref: ParsedRef,
    catalog: TemplateCatalog | None = None,
) -> bool:
    """未命中时 patch 是否足以创建新任务

    满足其一即可：
    - 同时提供 text 与 stage
    - origin 为模板克隆，且 source_id 能在模板目录中找到
    """
    if patch.text and patch.stage:
        return True
    if not is_template_origin(patch.origin) or catalog is None:
        return False
    source_id = clone_source_id(patch, ref, catalog)
    return source_id is not None and catalog.get_template(source_id) is not None


def _merge_metadata(task: Task, patch: TaskPatch, ref: ParsedRef) -> dict:
    """计算 origin / source_id 的变更

    模板克隆任务：缺省值、由引用字符串推导出的值、模板别名之间的互换
    都不覆盖已存储的值，只有显式且不同的新值才会替换。
    自定义任务：按普通字段处理。
    """
    updates: dict = {}
    stored_is_template = is_template_origin(task.origin)

    if patch.has("origin") and patch.origin is not None and patch.origin != task.origin:
        if not (stored_is_template and is_template_origin(patch.origin)):
            updates["origin"] = patch.origin

    if patch.has("source_id"):
        if not stored_is_template:
            updates["source_id"] = patch.source_id
        elif (
            patch.source_id is not None
            and patch.source_id != task.source_id
            and patch.source_id not in (ref.raw, ref.canonical)
        ):
            updates["source_id"] = patch.source_id

    return updates


def patch_changes(task: Task, patch: TaskPatch, ref: ParsedRef) -> dict:
    """patch 实际要写入的列（不含 updated_at）"""
    updates: dict = {}
    for name in patch.model_fields_set:
        if name in _METADATA_FIELDS:
            continue
        value = getattr(patch, name)
        if value is None and name in _NON_NULL_FIELDS:
            continue
        updates[name] = value

    updates.update(_merge_metadata(task, patch, ref))
    return updates


class UpsertCoordinator:
    """更新或按需创建任务"""

    def __init__(
        self,
        store: TaskStore,
        resolver: TaskResolver | None = None,
        catalog: TemplateCatalog | None = None,
        policy: RetryPolicy | None = None,
    ) -> None:
        self._store = store
        self._resolver = resolver or TaskResolver(store)
        self._catalog = catalog
        self._policy = policy or RetryPolicy()

    async def upsert(self, project_id: str, raw_ref: str, patch: TaskPatch) -> UpsertResult:
        resolution = await call_with_retry(
            lambda: self._resolver.resolve(project_id, raw_ref),
            "resolve",
            self._policy,
        )
        if resolution.task is not None:
            task = await self._update(resolution.task, patch, resolution.ref)
            return UpsertResult(task=task, created=False)

        if not can_synthesize(patch, resolution.ref, self._catalog):
            raise TaskNotFoundError(project_id, raw_ref)

        new_task = self._synthesize(project_id, resolution.ref, patch)
        try:
            await call_with_retry(
                lambda: self._store.create_task(new_task),
                "create_task",
                self._policy,
                attempts=1,
            )
        except DuplicateSourceIdError:
            log.warning(
                "task_upsert_source_race",
                project_id=project_id,
                ref=raw_ref,
                source_id=new_task.source_id,
            )
            existing = await call_with_retry(
                lambda: self._resolver.resolve_source(project_id, new_task.source_id),
                "resolve_source",
                self._policy,
            )
            if existing is None:
                raise ConflictError(
                    f"Concurrent writes for source {new_task.source_id} "
                    f"in project {project_id} could not be reconciled"
                ) from None
            task = await self._update(existing, patch, resolution.ref)
            return UpsertResult(task=task, created=False)

        log.info(
            "task_upsert_created",
            project_id=project_id,
            ref=raw_ref,
            task_id=new_task.id,
            source_id=new_task.source_id,
            origin=new_task.origin.value,
        )
        return UpsertResult(task=new_task, created=True)

    async def clone_templates(self, project_id: str) -> list[Task]:
        """把目录中尚未克隆到项目的模板全部克隆进来，重复调用幂等"""
        if self._catalog is None:
            return []

        existing = await call_with_retry(
            lambda: self._store.list_tasks(project_id),
            "list_tasks",
            self._policy,
        )
        cloned_sources = {task.source_id for task in existing if task.source_id}

        created: list[Task] = []
        for template in self._catalog.list_templates():
            if template.id in cloned_sources:
                continue
            now = datetime.now(UTC)
            task = Task(
                id=new_task_id(),
                project_id=project_id,
                source_id=template.id,
                origin=TaskOrigin.FACTOR,
                stage=template.stage,
                text=template.text,
                created_at=now,
                updated_at=now,
            )
            try:
                await call_with_retry(
                    lambda: self._store.create_task(task),
                    "create_task",
                    self._policy,
                    attempts=1,
                )
            except DuplicateSourceIdError:
                log.debug(
                    "template_already_cloned",
                    project_id=project_id,
                    source_id=template.id,
                )
                continue
            created.append(task)

        log.info("templates_cloned", project_id=project_id, cloned=len(created))
        return created

    async def _update(self, task: Task, patch: TaskPatch, ref: ParsedRef) -> Task:
        changes = patch_changes(task, patch, ref)
        updated = task.model_copy(
            update={**changes, "updated_at": next_updated_at(task.updated_at)}
        )
        # 只写 patch 涉及的列：并发的不相交更新互不覆盖；相同 patch 重放结果不变，可安全重试
        written = await call_with_retry(
            lambda: self._store.update_task(updated, fields=changes.keys()),
            "update_task",
            self._policy,
        )
        if not written:
            # 解析之后被并发删除
            raise TaskNotFoundError(task.project_id, ref.raw)

        log.info(
            "task_upsert_updated",
            project_id=task.project_id,
            ref=ref.raw,
            task_id=task.id,
            fields=sorted(patch.model_fields_set),
        )
        stored = await call_with_retry(
            lambda: self._store.get_task(task.project_id, task.id),
            "get_task",
            self._policy,
        )
        if stored is None:
            raise TaskNotFoundError(task.project_id, ref.raw)
        return stored

    def _synthesize(self, project_id: str, ref: ParsedRef, patch: TaskPatch) -> Task:
        """构造新任务 -- id 总是新生成，绝不复用原始引用"""
        source_id = clone_source_id(patch, ref, self._catalog)
        template: TaskTemplate | None = None
        if source_id is not None and self._catalog is not None:
            template = self._catalog.get_template(source_id)

        now = datetime.now(UTC)
        return Task(
            id=new_task_id(),
            project_id=project_id,
            source_id=source_id,
            origin=patch.origin or TaskOrigin.CUSTOM,
            stage=patch.stage or template.stage,
            completed=bool(patch.completed),
            text=patch.text or template.text,
            notes=patch.notes,
            priority=patch.priority,
            owner=patch.owner,
            due_date=patch.due_date,
            status=patch.status,
            created_at=now,
            updated_at=now,
        )
