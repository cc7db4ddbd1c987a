"""SQLite 数据库初始化

PRAGMA 配置 + project_tasks 表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# project_tasks 表 DDL
_PROJECT_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS project_tasks (
    id          TEXT PRIMARY KEY,
    project_id  TEXT NOT NULL,
    source_id   TEXT,
    origin      TEXT NOT NULL DEFAULT 'custom',
    stage       TEXT NOT NULL DEFAULT 'identification',
    completed   INTEGER NOT NULL DEFAULT 0,
    text        TEXT NOT NULL,
    notes       TEXT,
    priority    TEXT,
    owner       TEXT,
    due_date    TEXT,
    status      TEXT,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
"""

# 唯一索引名称同时用于识别 IntegrityError 的来源
SOURCE_UNIQUE_INDEX = "idx_project_tasks_project_source"

_PROJECT_TASKS_INDEXES = [
    # 同一项目内同一模板只允许克隆一次（仅对非 NULL 值生效）
    (
        f"CREATE UNIQUE INDEX IF NOT EXISTS {SOURCE_UNIQUE_INDEX} "
        "ON project_tasks(project_id, source_id) WHERE source_id IS NOT NULL;"
    ),
    "CREATE INDEX IF NOT EXISTS idx_project_tasks_project_created "
    "ON project_tasks(project_id, created_at);",
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    await conn.execute(_PROJECT_TASKS_DDL)

    for idx_sql in _PROJECT_TASKS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效"""
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
