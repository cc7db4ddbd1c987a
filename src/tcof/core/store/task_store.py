"""TaskStore SQLite 实现

project_tasks 表上的 CRUD 与项目内匹配查询。
sqlite 异常在此转换为领域异常：唯一约束冲突 -> DuplicateSourceIdError，
连接/锁/IO 失败 -> StoreUnavailableError。
"""

import asyncio
from collections.abc import Collection, Sequence
from datetime import datetime

import aiosqlite

from ..exceptions import ConflictError, DuplicateSourceIdError, StoreUnavailableError
from ..models.enums import TaskStage
from ..models.task import Task
from .protocols import MatchField
from .sqlite_init import SOURCE_UNIQUE_INDEX

_COLUMNS = (
    "id",
    "project_id",
    "source_id",
    "origin",
    "stage",
    "completed",
    "text",
    "notes",
    "priority",
    "owner",
    "due_date",
    "status",
    "created_at",
    "updated_at",
)

_SELECT = f"SELECT {', '.join(_COLUMNS)} FROM project_tasks"

_MATCH_COLUMNS: dict[MatchField, str] = {
    MatchField.ID: "id",
    MatchField.SOURCE_ID: "source_id",
}

# 连接失效、锁超时、磁盘错误等视为存储不可用
_UNAVAILABLE_ERRORS = (aiosqlite.OperationalError, aiosqlite.ProgrammingError, ValueError)


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn
        # 共享连接上的写事务必须串行，否则一次 rollback 会连带撤销其他协程的写入
        self._write_lock = asyncio.Lock()

    async def create_task(self, task: Task) -> None:
        """插入任务记录"""
        placeholders = ", ".join("?" for _ in _COLUMNS)
        await self._write(
            f"INSERT INTO project_tasks ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
            self._task_to_row(task),
            task,
        )

    async def get_task(self, project_id: str, task_id: str) -> Task | None:
        """按 (project_id, id) 查询任务"""
        rows = await self._fetch_all(
            f"{_SELECT} WHERE project_id = ? AND id = ?",
            (project_id, task_id),
        )
        return self._row_to_task(rows[0]) if rows else None

    async def find_tasks(
        self,
        project_id: str,
        field: MatchField,
        exact: Sequence[str] = (),
        prefix: str | None = None,
    ) -> list[Task]:
        """项目内按列匹配，project_id 过滤始终先于匹配条件"""
        column = _MATCH_COLUMNS[MatchField(field)]
        clauses: list[str] = []
        params: list[object] = [project_id]

        values = list(dict.fromkeys(exact))
        if values:
            clauses.append(f"{column} IN ({', '.join('?' for _ in values)})")
            params.extend(values)
        if prefix:
            # substr 比较是精确匹配；LIKE 会忽略大小写并解释 % 和 _
            clauses.append(f"substr({column}, 1, ?) = ?")
            params.extend([len(prefix), prefix])

        if not clauses:
            return []

        rows = await self._fetch_all(
            f"{_SELECT} WHERE project_id = ? AND ({' OR '.join(clauses)}) ORDER BY id",
            tuple(params),
        )
        return [self._row_to_task(row) for row in rows]

    async def list_tasks(
        self,
        project_id: str,
        stage: TaskStage | None = None,
    ) -> list[Task]:
        """查询项目内任务列表，按 created_at 升序"""
        if stage:
            rows = await self._fetch_all(
                f"{_SELECT} WHERE project_id = ? AND stage = ? ORDER BY created_at, id",
                (project_id, TaskStage(stage).value),
            )
        else:
            rows = await self._fetch_all(
                f"{_SELECT} WHERE project_id = ? ORDER BY created_at, id",
                (project_id,),
            )
        return [self._row_to_task(row) for row in rows]

    async def list_all_tasks(self) -> list[Task]:
        """跨项目读取全部任务（仅供审计）"""
        rows = await self._fetch_all(f"{_SELECT} ORDER BY project_id, created_at, id", ())
        return [self._row_to_task(row) for row in rows]

    async def update_task(self, task: Task, fields: Collection[str] | None = None) -> bool:
        """按列写回（id 与 project_id 不可变，作为 WHERE 条件）

        fields 为空时写回全部可变列；否则只写 fields 与 updated_at，
        未列出的列保留库中当前值，并发的不相交更新互不覆盖。
        """
        values = dict(zip(_COLUMNS, self._task_to_row(task), strict=True))
        if fields is None:
            columns = list(_COLUMNS[2:])
        else:
            unknown = set(fields) - set(_COLUMNS[2:])
            if unknown:
                raise ValueError(f"Not writable columns: {sorted(unknown)}")
            columns = [col for col in _COLUMNS[2:] if col in fields or col == "updated_at"]

        assignments = ", ".join(f"{col} = ?" for col in columns)
        cursor = await self._write(
            f"UPDATE project_tasks SET {assignments} WHERE id = ? AND project_id = ?",
            (*(values[col] for col in columns), task.id, task.project_id),
            task,
        )
        return cursor.rowcount > 0

    async def delete_task(self, project_id: str, task_id: str) -> bool:
        """删除任务，返回是否命中"""
        cursor = await self._write(
            "DELETE FROM project_tasks WHERE id = ? AND project_id = ?",
            (task_id, project_id),
        )
        return cursor.rowcount > 0

    async def _write(self, sql: str, params: tuple, task: Task | None = None) -> aiosqlite.Cursor:
        """在写锁内执行单条写语句并提交，失败或被取消时回滚"""
        async with self._write_lock:
            try:
                cursor = await self._conn.execute(sql, params)
                await self._conn.commit()
            except aiosqlite.IntegrityError as e:
                await self._conn.rollback()
                if task is not None and task.source_id is not None and self._is_source_conflict(e):
                    raise DuplicateSourceIdError(task.project_id, task.source_id) from e
                raise ConflictError(f"Task write rejected: {e}") from e
            except _UNAVAILABLE_ERRORS as e:
                await self._safe_rollback()
                raise StoreUnavailableError("Task store write failed", e) from e
            except asyncio.CancelledError:
                # 调用方超时取消时语句可能已执行，未提交的事务不能留给下一个写入者
                await self._safe_rollback()
                raise
        return cursor

    async def _fetch_all(self, sql: str, params: tuple) -> list:
        try:
            cursor = await self._conn.execute(sql, params)
            return list(await cursor.fetchall())
        except _UNAVAILABLE_ERRORS as e:
            raise StoreUnavailableError("Task store read failed", e) from e

    async def _safe_rollback(self) -> None:
        """连接已失效时 rollback 本身也会失败，此时保留原始异常"""
        try:
            await self._conn.rollback()
        except _UNAVAILABLE_ERRORS:
            pass

    @staticmethod
    def _is_source_conflict(error: Exception) -> bool:
        text = str(error)
        return SOURCE_UNIQUE_INDEX in text or "project_tasks.source_id" in text

    @staticmethod
    def _task_to_row(task: Task) -> tuple:
        return (
            task.id,
            task.project_id,
            task.source_id,
            task.origin.value,
            task.stage.value,
            int(task.completed),
            task.text,
            task.notes,
            task.priority,
            task.owner,
            task.due_date,
            task.status,
            task.created_at.isoformat(),
            task.updated_at.isoformat(),
        )

    @staticmethod
    def _row_to_task(row) -> Task:
        """将数据库行转换为 Task 模型（列顺序与 _COLUMNS 一致）"""
        return Task(
            id=row[0],
            project_id=row[1],
            source_id=row[2],
            origin=row[3],
            stage=row[4],
            completed=bool(row[5]),
            text=row[6],
            notes=row[7],
            priority=row[8],
            owner=row[9],
            due_date=row[10],
            status=row[11],
            created_at=datetime.fromisoformat(row[12]),
            updated_at=datetime.fromisoformat(row[13]),
        )
