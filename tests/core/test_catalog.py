"""模板目录测试"""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError
from tcof.core.catalog import StaticTemplateCatalog, TaskTemplate, load_catalog
from tcof.core.models import TaskStage


class TestStaticTemplateCatalog:
    def test_lookup(self, catalog):
        assert catalog.get_template("sf-2").stage == TaskStage.DEFINITION
        assert catalog.get_template("missing") is None
        assert len(catalog) == 3

    def test_duplicate_ids_keep_first(self):
        catalog = StaticTemplateCatalog(
            [
                TaskTemplate(id="sf-1", text="first"),
                TaskTemplate(id="sf-1", text="second"),
            ]
        )
        assert len(catalog) == 1
        assert catalog.get_template("sf-1").text == "first"


class TestLoadCatalog:
    def test_none_path_gives_empty_catalog(self):
        assert len(load_catalog(None)) == 0

    def test_load_list(self, tmp_path: Path):
        path = tmp_path / "catalog.json"
        path.write_text(
            json.dumps(
                [
                    {"id": "sf-1", "text": "Agree scope", "stage": "identification"},
                    {"id": "sf-2", "text": "Plan handover", "stage": "closure"},
                ]
            ),
            encoding="utf-8",
        )

        catalog = load_catalog(path)
        assert [t.id for t in catalog.list_templates()] == ["sf-1", "sf-2"]
        assert catalog.get_template("sf-2").stage == TaskStage.CLOSURE

    def test_load_wrapped_object(self, tmp_path: Path):
        path = tmp_path / "catalog.json"
        path.write_text(
            json.dumps({"templates": [{"id": "sf-1", "text": "Agree scope"}]}),
            encoding="utf-8",
        )

        template = load_catalog(path).get_template("sf-1")
        assert template.stage == TaskStage.IDENTIFICATION

    def test_invalid_template_rejected(self, tmp_path: Path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps([{"id": "sf-1", "stage": "nope"}]), encoding="utf-8")

        with pytest.raises(ValidationError):
            load_catalog(path)
