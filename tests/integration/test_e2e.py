"""端到端测试 -- 真实 lifespan + SQLite + 模板目录文件

覆盖完整流程：启动加载配置 -> 克隆模板 -> 复合引用更新 -> 删除 -> 重启后数据仍在
"""

import json
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from tcof.core.audit import audit_tasks
from tcof.core.store import create_store_group


@pytest_asyncio.fixture
async def configured_env(tmp_path: Path, monkeypatch):
    catalog_path = tmp_path / "catalog.json"
    catalog_path.write_text(
        json.dumps(
            {
                "templates": [
                    {"id": "sf-1", "text": "Agree success criteria", "stage": "identification"},
                    {"id": "sf-2", "text": "Confirm sponsor", "stage": "definition"},
                ]
            }
        ),
        encoding="utf-8",
    )
    db_path = tmp_path / "sqlite" / "tcof.db"
    monkeypatch.setenv("TCOF_DB_PATH", str(db_path))
    monkeypatch.setenv("TCOF_CATALOG_PATH", str(catalog_path))
    monkeypatch.setenv("TCOF_STORE_RETRY_BACKOFF_S", "0")
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")
    return db_path


async def run_with_lifespan(steps):
    """在真实 lifespan 内执行请求序列"""
    from tcof.gateway.main import create_app

    app = create_app()
    async with app.router.lifespan_context(app):
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as client:
            return await steps(app, client)


class TestEndToEnd:
    async def test_full_flow(self, configured_env: Path):
        async def first_run(app, client: AsyncClient):
            assert len(app.state.catalog) == 2
            assert app.state.retry_policy.backoff_s == 0

            ready = await client.get("/ready")
            assert ready.json()["checks"]["catalog_templates"] == 2

            cloned = await client.post("/api/projects/p1/templates/clone")
            assert cloned.json()["cloned"] == 2

            tasks = (await client.get("/api/projects/p1/tasks")).json()["tasks"]
            assert [t["sourceId"] for t in tasks] == ["sf-1", "sf-2"]

            # 客户端渲染时拼接的复合引用
            target = tasks[0]
            resp = await client.put(
                f"/api/projects/p1/tasks/{target['id']}-row0",
                json={"completed": True, "owner": "sam"},
            )
            assert resp.status_code == 200
            assert resp.json()["sourceId"] == "sf-1"

            # 另一个项目按模板 ID 更新，按需克隆
            resp = await client.put(
                "/api/projects/p2/tasks/sf-2",
                json={"origin": "success-factor", "completed": True},
            )
            assert resp.status_code == 201
            assert resp.json()["text"] == "Confirm sponsor"

            resp = await client.delete("/api/projects/p1/tasks/sf-2")
            assert resp.status_code == 200
            return target["id"]

        kept_id = await run_with_lifespan(first_run)

        async def second_run(app, client: AsyncClient):
            p1 = (await client.get("/api/projects/p1/tasks")).json()["tasks"]
            assert [(t["id"], t["completed"], t["owner"]) for t in p1] == [(kept_id, True, "sam")]

            p2 = (await client.get("/api/projects/p2/tasks")).json()["tasks"]
            assert [t["sourceId"] for t in p2] == ["sf-2"]

        await run_with_lifespan(second_run)

        store_group = await create_store_group(str(configured_env))
        try:
            report = await audit_tasks(store_group.task_store)
        finally:
            await store_group.conn.close()
        assert report.clean
        assert report.total_tasks == 2
