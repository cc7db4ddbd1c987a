"""gateway 测试配置 -- FastAPI app + httpx AsyncClient"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from tcof.core.config import RetryPolicy
from tcof.core.store import create_store_group


@pytest_asyncio.fixture
async def app(tmp_path: Path, catalog):
    """创建测试用 FastAPI app 实例（手动初始化 app.state，绕过 lifespan）"""
    os.environ["TCOF_DB_PATH"] = str(tmp_path / "sqlite" / "test.db")
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from tcof.gateway.main import create_app

    application = create_app()
    store_group = await create_store_group(os.environ["TCOF_DB_PATH"])
    application.state.store_group = store_group
    application.state.catalog = catalog
    application.state.retry_policy = RetryPolicy(timeout_s=1.0, attempts=2, backoff_s=0)

    yield application

    await store_group.conn.close()
    for key in ["TCOF_DB_PATH", "LOGFIRE_SEND_TO_LOGFIRE"]:
        os.environ.pop(key, None)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
