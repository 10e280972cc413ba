from __future__ import annotations

from pathlib import Path

import pytest

from fillengine.fields.models import PersonalMapping, TemplateField
from fillengine.templates.field_store import TemplateFieldSet, TemplateFieldStore


def _field(name: str) -> TemplateField:
    return TemplateField(name=name, x=10, y=20, mapping=PersonalMapping(field="fullName"))


def test_field_store_initializes_empty_data(tmp_path: Path) -> None:
    store = TemplateFieldStore(tmp_path / "fields.json")

    assert store.list_all() == []
    assert store.get("missing") is None


def test_field_store_upsert_and_get_round_trip(tmp_path: Path) -> None:
    store = TemplateFieldStore(tmp_path / "fields.json")
    field_set = TemplateFieldSet(fingerprint="pdf:1", fields=[_field("name")], note="cv")

    store.upsert(field_set)

    assert store.get("pdf:1") == field_set
    assert TemplateFieldStore(tmp_path / "fields.json").get("pdf:1") == field_set


def test_field_store_writes_camel_case_fields(tmp_path: Path) -> None:
    path = tmp_path / "fields.json"
    TemplateFieldStore(path).upsert(TemplateFieldSet(fingerprint="pdf:1", fields=[_field("a")]))

    raw = path.read_text(encoding="utf-8")

    assert '"fontSize":' in raw
    assert '"font_size"' not in raw
    assert not (tmp_path / "fields.json.tmp").exists()


def test_field_store_list_all_is_sorted_and_delete(tmp_path: Path) -> None:
    store = TemplateFieldStore(tmp_path / "fields.json")
    store.upsert(TemplateFieldSet(fingerprint="pdf:2"))
    store.upsert(TemplateFieldSet(fingerprint="pdf:1"))

    assert [item.fingerprint for item in store.list_all()] == ["pdf:1", "pdf:2"]
    assert store.delete("pdf:2") is True
    assert store.delete("pdf:2") is False
    assert [item.fingerprint for item in store.list_all()] == ["pdf:1"]


def test_field_store_rejects_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "fields.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid field store JSON"):
        TemplateFieldStore(path).get("pdf:1")


def test_field_store_rejects_invalid_schema(tmp_path: Path) -> None:
    path = tmp_path / "fields.json"
    path.write_text('{"version": 1, "templates": {"x": {"fields": 3}}}', encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid field store schema"):
        TemplateFieldStore(path).get("x")
