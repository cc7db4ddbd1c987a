"""模板目录（Success Factor 任务库）

只读的外部模板来源，以稳定的模板 ID 为键。
模板 ID 与任务的 source_id 等价：克隆到项目中的任务以模板 ID 作为 source_id。
"""

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

import structlog
from pydantic import BaseModel, Field, TypeAdapter

from .models.enums import TaskStage

log = structlog.get_logger()


class TaskTemplate(BaseModel):
    """可克隆到任意项目的规范任务定义"""

    id: str = Field(min_length=1, description="稳定模板 ID")
    text: str = Field(min_length=1, description="任务内容")
    stage: TaskStage = Field(default=TaskStage.IDENTIFICATION, description="所属阶段")
    factor: str | None = Field(default=None, description="所属 Success Factor 名称")


class TemplateCatalog(Protocol):
    """模板目录接口"""

    def get_template(self, template_id: str) -> TaskTemplate | None:
        ...

    def list_templates(self) -> list[TaskTemplate]:
        ...


class StaticTemplateCatalog:
    """内存模板目录，按加载顺序保存模板"""

    def __init__(self, templates: Iterable[TaskTemplate] = ()) -> None:
        self._templates: dict[str, TaskTemplate] = {}
        for template in templates:
            if template.id in self._templates:
                log.warning("duplicate_template_ignored", template_id=template.id)
                continue
            self._templates[template.id] = template

    def get_template(self, template_id: str) -> TaskTemplate | None:
        return self._templates.get(template_id)

    def list_templates(self) -> list[TaskTemplate]:
        return list(self._templates.values())

    def __len__(self) -> int:
        return len(self._templates)


_TEMPLATE_LIST = TypeAdapter(list[TaskTemplate])


def load_catalog(path: Path | None) -> StaticTemplateCatalog:
    """从 JSON 文件加载模板目录

    文件内容可以是模板列表，或 {"templates": [...]}。
    path 为 None 时返回空目录。
    """
    if path is None:
        return StaticTemplateCatalog()

    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("templates", [])

    catalog = StaticTemplateCatalog(_TEMPLATE_LIST.validate_python(data))
    log.info("template_catalog_loaded", path=str(path), templates=len(catalog))
    return catalog
