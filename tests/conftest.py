"""全局 pytest 配置 -- 临时 SQLite 数据库 + 内存 Store + 任务构造 fixture"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio
from tcof.core.catalog import StaticTemplateCatalog, TaskTemplate
from tcof.core.config import RetryPolicy
from tcof.core.models import Task, TaskStage
from tcof.core.store import InMemoryTaskStore, SqliteTaskStore
from tcof.core.store.sqlite_init import init_db


def build_task(task_id: str, project_id: str = "p1", **fields) -> Task:
    now = datetime.now(UTC)
    data = {
        "id": task_id,
        "project_id": project_id,
        "text": f"Task {task_id}",
        "created_at": now,
        "updated_at": now,
    }
    data.update(fields)
    return Task(**data)


@pytest.fixture
def make_task():
    """构造 Task 的工厂函数"""
    return build_task


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "test.db"


@pytest_asyncio.fixture
async def db_conn(tmp_db_path: Path) -> AsyncGenerator[aiosqlite.Connection, None]:
    """提供已初始化的临时 SQLite 数据库连接"""
    conn = await aiosqlite.connect(str(tmp_db_path))
    await init_db(conn)
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def sqlite_store(db_conn: aiosqlite.Connection) -> SqliteTaskStore:
    return SqliteTaskStore(db_conn)


@pytest.fixture
def memory_store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path: Path):
    """两种 Store 实现都需满足同一组行为"""
    if request.param == "memory":
        yield InMemoryTaskStore()
        return

    conn = await aiosqlite.connect(str(tmp_path / "store.db"))
    await init_db(conn)
    yield SqliteTaskStore(conn)
    await conn.close()


@pytest.fixture
def catalog() -> StaticTemplateCatalog:
    return StaticTemplateCatalog(
        [
            TaskTemplate(
                id="sf-1",
                text="Agree the definition of success",
                stage=TaskStage.IDENTIFICATION,
                factor="Clear goals",
            ),
            TaskTemplate(
                id="sf-2",
                text="Confirm the budget envelope",
                stage=TaskStage.DEFINITION,
                factor="Resourcing",
            ),
            TaskTemplate(
                id="sf-9",
                text="Hold a lessons-learned session",
                stage=TaskStage.CLOSURE,
            ),
        ]
    )


@pytest.fixture
def fast_policy() -> RetryPolicy:
    """测试用重试策略：无退避等待"""
    return RetryPolicy(timeout_s=1.0, attempts=3, backoff_s=0)
