"""CLI I/O helpers for atomic output writing."""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from fillengine.container.introspector import PDF_MEDIA_TYPE
from fillengine.fields.models import FillReport
from fillengine.orchestrator.pipeline import FillOutput


@dataclass(frozen=True)
class OutputPaths:
    """Fixed output artifact paths for a single fill."""

    pdf: Path
    docx: Path
    report: Path


def build_output_paths(out_dir: Path) -> OutputPaths:
    """Build fixed output file paths under out_dir."""

    return OutputPaths(
        pdf=out_dir / "out.pdf",
        docx=out_dir / "out.docx",
        report=out_dir / "out.fill_report.json",
    )


def existing_output_files(paths: OutputPaths) -> list[Path]:
    """Return existing output files among fixed artifact paths."""

    return [path for path in (paths.pdf, paths.docx, paths.report) if path.exists()]


def document_path_for(paths: OutputPaths, media_type: str) -> Path:
    return paths.pdf if media_type == PDF_MEDIA_TYPE else paths.docx


def write_fill_output_atomic(paths: OutputPaths, output: FillOutput) -> Path:
    """Write the filled document and its report using temporary files + replace."""

    document_path = document_path_for(paths, output.media_type)
    document_path.parent.mkdir(parents=True, exist_ok=True)
    _atomic_write_bytes(document_path, output.content)
    _atomic_write_json(paths.report, output.report.model_dump(mode="json"))
    return document_path


def write_fallback_json_atomic(
    paths: OutputPaths,
    *,
    error_type: str,
    error_message: str,
    stage: str,
    retryable: bool = False,
    report: FillReport | None = None,
) -> None:
    """Write the fallback report with required error metadata."""

    payload: dict[str, Any]
    if report is not None:
        payload = report.model_dump(mode="json")
    else:
        payload = FillReport(method="none").model_dump(mode="json")

    payload["error"] = {
        "error_type": error_type,
        "error_message": error_message,
        "stage": stage,
        "retryable": retryable,
    }

    paths.report.parent.mkdir(parents=True, exist_ok=True)
    _atomic_write_json(paths.report, payload)


def write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    _atomic_write_json(path, payload)


def _atomic_write_json(path: Path, payload: dict[str, Any]) -> None:
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        delete=False,
        prefix=f"{path.name}.",
        suffix=".tmp",
    ) as tmp:
        tmp_path = Path(tmp.name)
        json.dump(payload, tmp, ensure_ascii=False, sort_keys=True, separators=(",", ":"))

    tmp_path.replace(path)


def _atomic_write_bytes(path: Path, content: bytes) -> None:
    fd, raw_tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f"{path.name}.",
        suffix=".tmp",
    )
    os.close(fd)
    tmp_path = Path(raw_tmp_path)

    try:
        tmp_path.write_bytes(content)
        tmp_path.replace(path)
    except Exception:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)
        raise
