"""可观测性测试

测试内容：
1. 每个响应携带 X-Request-ID，上游传入时沿用
2. 路径中的 project_id / task_ref 提取
3. 日志配置按环境变量选择渲染器
"""

import logging

import structlog
from httpx import AsyncClient
from tcof.gateway.middleware.logging_config import setup_logging
from tcof.gateway.middleware.trace_mw import extract_trace_context


class TestRequestId:
    async def test_response_has_request_id(self, client: AsyncClient):
        first = await client.get("/health")
        second = await client.get("/health")

        assert first.headers["X-Request-ID"]
        assert first.headers["X-Request-ID"] != second.headers["X-Request-ID"]

    async def test_upstream_request_id_reused(self, client: AsyncClient):
        resp = await client.get("/health", headers={"X-Request-ID": "req-123"})
        assert resp.headers["X-Request-ID"] == "req-123"


class TestTraceContext:
    def test_task_path(self):
        assert extract_trace_context("/api/projects/p1/tasks/sf-7-3") == {
            "project_id": "p1",
            "task_ref": "sf-7-3",
        }

    def test_project_path(self):
        assert extract_trace_context("/api/projects/p%201/tasks") == {"project_id": "p 1"}

    def test_other_path(self):
        assert extract_trace_context("/health") == {}


class TestLoggingConfig:
    def test_json_mode(self, monkeypatch):
        monkeypatch.setenv("TCOF_LOG_FORMAT", "json")
        monkeypatch.setenv("TCOF_LOG_LEVEL", "warning")
        setup_logging()

        root = logging.getLogger()
        assert root.level == logging.WARNING
        formatter = root.handlers[0].formatter
        assert isinstance(formatter, structlog.stdlib.ProcessorFormatter)

    def test_invalid_level_falls_back_to_info(self, monkeypatch):
        monkeypatch.setenv("TCOF_LOG_FORMAT", "dev")
        monkeypatch.setenv("TCOF_LOG_LEVEL", "chatty")
        setup_logging()

        assert logging.getLogger().level == logging.INFO
