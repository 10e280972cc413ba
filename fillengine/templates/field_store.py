"""Local JSON store for configured template fields keyed by fingerprint."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from fillengine.fields.models import TemplateField

_STORE_VERSION = 1


class TemplateFieldSet(BaseModel):
    """Fields configured once for a template and read at every fill."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    fingerprint: str
    fields: list[TemplateField] = Field(default_factory=list)
    note: str | None = None


class _StoreData(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: int = _STORE_VERSION
    templates: dict[str, TemplateFieldSet] = Field(default_factory=dict)


class TemplateFieldStore:
    """Persist template field sets keyed by fingerprint in a JSON file."""

    def __init__(self, store_path: Path) -> None:
        self._store_path = store_path

    def get(self, fingerprint: str) -> TemplateFieldSet | None:
        return self._read_data().templates.get(fingerprint)

    def upsert(self, field_set: TemplateFieldSet) -> None:
        data = self._read_data()
        data.templates[field_set.fingerprint] = field_set
        self._write_data(data)

    def list_all(self) -> list[TemplateFieldSet]:
        data = self._read_data()
        return [data.templates[key] for key in sorted(data.templates)]

    def delete(self, fingerprint: str) -> bool:
        data = self._read_data()
        if fingerprint not in data.templates:
            return False
        del data.templates[fingerprint]
        self._write_data(data)
        return True

    def _read_data(self) -> _StoreData:
        if not self._store_path.exists():
            return _StoreData()

        try:
            raw = json.loads(self._store_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid field store JSON: {self._store_path}") from exc

        try:
            return _StoreData.model_validate(raw)
        except ValidationError as exc:
            raise ValueError(f"Invalid field store schema: {self._store_path}") from exc

    def _write_data(self, data: _StoreData) -> None:
        self._store_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._store_path.with_suffix(f"{self._store_path.suffix}.tmp")

        payload = data.model_dump(mode="json", by_alias=True)
        temp_path.write_text(
            json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False),
            encoding="utf-8",
        )
        temp_path.replace(self._store_path)
