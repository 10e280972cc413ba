"""Typer CLI entrypoint for fillengine."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any, Literal, cast

import typer
from pydantic import TypeAdapter, ValidationError

from apps.cli.io import (
    OutputPaths,
    build_output_paths,
    existing_output_files,
    write_fallback_json_atomic,
    write_fill_output_atomic,
    write_json_atomic,
)
from fillengine.blueprint.models import DescriptionFormat
from fillengine.bridge.format_bridge import FormatBridge
from fillengine.config.settings import EngineSettings, load_settings
from fillengine.container.introspector import (
    ContainerKind,
    classify,
    page_count,
    render_preview,
    sniff_kind,
)
from fillengine.fields.models import FillReport, TemplateField
from fillengine.llm.service import AnthropicAnalysisService, EnvCredentialProvider
from fillengine.orchestrator.pipeline import FillOrchestrator, FillRequest, OutputFormat
from fillengine.profile.models import JobVacancy, Profile
from fillengine.storage.template_store import HttpTemplateStorage
from fillengine.style.extractor import StyleExtraction, extract_style
from fillengine.templates.field_store import TemplateFieldSet, TemplateFieldStore
from fillengine.templates.fingerprint import compute_fingerprint
from fillengine.utils.errors import (
    AnalysisFailed,
    ConversionFailed,
    FillEngineError,
    NoFillableTarget,
    RateLimited,
    StorageUnavailable,
    UnsupportedFormat,
)

app = typer.Typer(help="Template fill engine CLI", rich_markup_mode=None)

_TEMPLATE_FIELDS = TypeAdapter(list[TemplateField])
_EXIT_CODES: tuple[tuple[type[FillEngineError], int, str], ...] = (
    (NoFillableTarget, 2, "no fillable target"),
    (UnsupportedFormat, 3, "unsupported template format"),
    (RateLimited, 4, "rate limited"),
    (AnalysisFailed, 4, "analysis failed"),
    (ConversionFailed, 5, "conversion failed"),
    (StorageUnavailable, 6, "template storage unavailable"),
)


@app.callback()
def cli_callback() -> None:
    """CLI root callback to keep subcommands explicit."""


@app.command("inspect")
def inspect_command(
    template: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
) -> None:
    """Print the container kind, native fields and fingerprint of a template."""

    content = template.read_bytes()
    try:
        info = classify(content)
        fingerprint = compute_fingerprint(content)
    except UnsupportedFormat as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=3) from exc

    payload = {
        "kind": info.kind.value,
        "fingerprint": fingerprint,
        "native_fields": [
            {"name": item.name, "type": item.type, "value": item.value, "page": item.page}
            for item in info.native_fields
        ],
        "warnings": info.warnings,
    }
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True))


@app.command("register-fields")
def register_fields_command(
    template: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
    fields: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
    field_store: Annotated[Path, typer.Option(...)],
    note: Annotated[str | None, typer.Option()] = None,
) -> None:
    """Store configured TemplateFields for a template under its fingerprint."""

    try:
        fingerprint = compute_fingerprint(template.read_bytes())
        template_fields = _load_template_fields(fields)
        TemplateFieldStore(field_store).upsert(
            TemplateFieldSet(fingerprint=fingerprint, fields=template_fields, note=note)
        )
    except UnsupportedFormat as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=3) from exc
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=1) from exc

    typer.echo(f"INFO: stored {len(template_fields)} field(s) for {fingerprint}")


@app.command("style")
def style_command(
    out: Annotated[Path, typer.Option(help="Where to write the style tokens JSON.")],
    template: Annotated[
        Path | None, typer.Option(exists=True, dir_okay=False, file_okay=True)
    ] = None,
    template_url: Annotated[str | None, typer.Option()] = None,
    page: Annotated[int, typer.Option(min=0, help="0-based page to render.")] = 0,
    settings_path: Annotated[Path | None, typer.Option("--settings")] = None,
) -> None:
    """Extract design tokens (colours, fonts, section order) from a rendered template page."""

    if (template is None) == (template_url is None):
        typer.echo("ERROR: pass exactly one of --template and --template-url.")
        raise typer.Exit(code=1)

    try:
        settings = load_settings(settings_path)
        extraction, pages = asyncio.run(_run_style(template, template_url, page, settings))
    except FillEngineError as exc:
        exit_code, reason = _exit_code_for(exc)
        typer.echo(f"ERROR: {reason}: {exc}")
        raise typer.Exit(code=exit_code) from exc
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=1) from exc

    write_json_atomic(
        out,
        {
            "confidence": extraction.confidence,
            "degraded": extraction.degraded,
            "page": page,
            "page_count": pages,
            "tokens": extraction.tokens.model_dump(mode="json", by_alias=True),
        },
    )
    if extraction.degraded:
        typer.echo("WARNING: style analysis unavailable, default tokens written")
    typer.echo(f"INFO: style confidence={extraction.confidence} -> {out.name}")


@app.command("fill")
def fill_command(
    profile: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
    out_dir: Annotated[Path, typer.Option()] = Path("."),
    template: Annotated[
        Path | None, typer.Option(exists=True, dir_okay=False, file_okay=True)
    ] = None,
    template_url: Annotated[
        str | None, typer.Option(help="Fetch the template from blob storage instead.")
    ] = None,
    fields: Annotated[
        Path | None,
        typer.Option(exists=True, dir_okay=False, help="JSON list of TemplateFields."),
    ] = None,
    field_store: Annotated[
        Path | None,
        typer.Option(help="Field store to look up TemplateFields by template fingerprint."),
    ] = None,
    job: Annotated[Path | None, typer.Option(exists=True, dir_okay=False)] = None,
    custom: Annotated[
        list[str] | None,
        typer.Option("--custom", help="Custom value as KEY=VALUE, e.g. birthDate=01-01-1990."),
    ] = None,
    language: Annotated[str | None, typer.Option()] = None,
    output_format: Annotated[str, typer.Option()] = "native",
    description_format: Annotated[str, typer.Option()] = "bullets",
    instructions: Annotated[str | None, typer.Option()] = None,
    settings_path: Annotated[Path | None, typer.Option("--settings")] = None,
    force: Annotated[
        bool, typer.Option("--force", help="Overwrite outputs when they already exist.")
    ] = False,
    no_overwrite: Annotated[
        bool,
        typer.Option(
            "--no-overwrite",
            help="Fail when outputs already exist.",
        ),
    ] = False,
) -> None:
    """Fill one template with profile data and write fixed output artifacts."""

    paths = build_output_paths(out_dir)

    if (template is None) == (template_url is None):
        typer.echo("ERROR: pass exactly one of --template and --template-url.")
        _safe_write_fallback(paths, "ArgumentConflict", "template source", "args")
        raise typer.Exit(code=1)

    normalized_output = output_format.lower().strip()
    if normalized_output not in {"native", "pdf"}:
        typer.echo("ERROR: --output-format must be one of: native, pdf.")
        _safe_write_fallback(paths, "ArgumentValidationError", "invalid output_format", "args")
        raise typer.Exit(code=1)

    normalized_description = description_format.lower().strip()
    if normalized_description not in {"bullets", "paragraph"}:
        typer.echo("ERROR: --description-format must be one of: bullets, paragraph.")
        _safe_write_fallback(
            paths, "ArgumentValidationError", "invalid description_format", "args"
        )
        raise typer.Exit(code=1)

    normalized_language = language.lower().strip() if language is not None else None
    if normalized_language is not None and normalized_language not in {"nl", "en"}:
        typer.echo("ERROR: --language must be one of: nl, en.")
        _safe_write_fallback(paths, "ArgumentValidationError", "invalid language", "args")
        raise typer.Exit(code=1)

    if force and no_overwrite:
        typer.echo("ERROR: --force and --no-overwrite cannot be used together.")
        _safe_write_fallback(paths, "ArgumentConflict", "conflicting overwrite flags", "args")
        raise typer.Exit(code=1)

    existing = existing_output_files(paths)
    if existing and no_overwrite:
        typer.echo("ERROR: outputs already exist and --no-overwrite is enabled.")
        raise typer.Exit(code=1)
    if existing:
        names = ", ".join(path.name for path in existing)
        typer.echo(f"INFO: overwriting existing outputs: {names}")

    exit_code = 1
    failure_stage = "unknown"
    try:
        failure_stage = "load_settings"
        settings = load_settings(settings_path)
        failure_stage = "load_inputs"
        content = asyncio.run(_fetch_template(template, template_url))
        profile_model = Profile.model_validate(_load_json_object(profile))
        job_model = JobVacancy.model_validate(_load_json_object(job)) if job else None
        custom_values = _parse_custom_values(custom or [])
        template_fields = _resolve_template_fields(content, fields, field_store)

        failure_stage = "fill"
        request = FillRequest(
            template=content,
            profile=profile_model,
            template_fields=template_fields,
            custom_values=custom_values,
            job=job_model,
            description_format=cast(DescriptionFormat, normalized_description),
            custom_instructions=instructions,
            language=cast(Literal["nl", "en"] | None, normalized_language),
            output_format=cast(OutputFormat, normalized_output),
        )
        output = asyncio.run(_run_fill(request, settings))

        failure_stage = "write_output"
        document_path = write_fill_output_atomic(paths, output)
        typer.echo(
            f"INFO: method={output.report.method} "
            f"filled={len(output.report.filled_field_names)} -> {document_path.name}"
        )
        for warning in output.report.warnings:
            typer.echo(f"WARNING: {warning}")
        exit_code = 0
    except FillEngineError as exc:
        exit_code, reason = _exit_code_for(exc)
        typer.echo(f"ERROR: {reason}: {exc}")
        _safe_write_fallback(
            paths,
            type(exc).__name__,
            str(exc),
            failure_stage,
            retryable=exc.retryable,
            report=exc.report,
        )
    except Exception as exc:  # noqa: BLE001
        exit_code = 1
        typer.echo(f"ERROR: {type(exc).__name__}: {exc}")
        _safe_write_fallback(paths, type(exc).__name__, str(exc), failure_stage)

    if exit_code == 0:
        typer.echo("INFO: success")
    raise typer.Exit(code=exit_code)


async def _run_fill(request: FillRequest, settings: EngineSettings) -> Any:
    analysis = AnthropicAnalysisService(settings.analysis, EnvCredentialProvider())
    orchestrator = FillOrchestrator(settings=settings, analysis=analysis)
    return await orchestrator.fill(request)


async def _run_style(
    template: Path | None, template_url: str | None, page: int, settings: EngineSettings
) -> tuple[StyleExtraction, int]:
    content = await _fetch_template(template, template_url)
    if sniff_kind(content) is ContainerKind.FLOW_LAYOUT:
        bridge = FormatBridge(
            settings.conversion.command,
            timeout_seconds=settings.conversion.timeout_seconds,
        )
        content = await bridge.to_paginated_output(content)

    pages = page_count(content)
    if page >= pages:
        raise ValueError(f"--page {page} is out of range, the template has {pages} page(s)")
    preview = await asyncio.to_thread(render_preview, content, page)
    analysis = AnthropicAnalysisService(settings.analysis, EnvCredentialProvider())
    extraction = await extract_style(
        analysis, preview, temperature=settings.analysis.analysis_temperature
    )
    return extraction, pages


async def _fetch_template(template: Path | None, template_url: str | None) -> bytes:
    if template is not None:
        return template.read_bytes()
    if template_url is None:
        raise ValueError("no template source given")
    return await HttpTemplateStorage().fetch(template_url)


def _exit_code_for(exc: FillEngineError) -> tuple[int, str]:
    for error_type, code, reason in _EXIT_CODES:
        if isinstance(exc, error_type):
            return code, reason
    return 1, "internal error"


def _resolve_template_fields(
    content: bytes, fields: Path | None, field_store: Path | None
) -> list[TemplateField]:
    if fields is not None:
        return _load_template_fields(fields)
    if field_store is not None:
        stored = TemplateFieldStore(field_store).get(compute_fingerprint(content))
        if stored is not None:
            return list(stored.fields)
    return []


def _load_template_fields(path: Path) -> list[TemplateField]:
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError("Fields JSON must be a list")
    try:
        return _TEMPLATE_FIELDS.validate_python(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid template fields: {path}") from exc


def _load_json_object(path: Path) -> dict[str, Any]:
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError(f"JSON in {path} must be an object")
    return raw


def _parse_custom_values(items: list[str]) -> dict[str, str]:
    values: dict[str, str] = {}
    for item in items:
        key, separator, value = item.partition("=")
        if not separator or not key.strip():
            raise ValueError(f"Custom value must look like KEY=VALUE: {item!r}")
        values[key.strip()] = value
    return values


def _safe_write_fallback(
    paths: OutputPaths,
    error_type: str,
    error_message: str,
    stage: str,
    *,
    retryable: bool = False,
    report: FillReport | None = None,
) -> None:
    try:
        write_fallback_json_atomic(
            paths,
            error_type=error_type,
            error_message=error_message,
            stage=stage,
            retryable=retryable,
            report=report,
        )
    except OSError as exc:
        typer.echo(f"ERROR: fallback report write failed: {exc}")


def main() -> None:
    """Console script entrypoint."""

    app()


if __name__ == "__main__":
    main()
