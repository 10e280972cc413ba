"""Fill orchestration: classify, select a strategy, fill, report.

The fallback chain is an explicit state machine. Each strategy is guarded
by a named predicate and the first guard that holds wins:

1. form:        the template has native text fields and auto-matching filled one
2. coordinates: a fixed-layout template with configured TemplateFields
3. structural:  a flow-layout template, analyzed and filled through the service
4. otherwise:   NoFillableTarget
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from fillengine.blueprint.analyzer import analyze_structure
from fillengine.blueprint.content_filler import fill_blueprint
from fillengine.blueprint.models import DescriptionFormat
from fillengine.blueprint.structure import apply_fills, build_structural_map
from fillengine.bridge.format_bridge import FormatBridge
from fillengine.config.settings import EngineSettings
from fillengine.container.introspector import (
    PDF_MEDIA_TYPE,
    ContainerInfo,
    ContainerKind,
    classify,
)
from fillengine.coordinates.filler import fill_coordinates
from fillengine.fields.models import FillMethod, FillReport, TemplateField
from fillengine.llm.service import AnalysisService
from fillengine.matching.auto_matcher import auto_fill
from fillengine.profile.models import JobVacancy, Profile, ProfileCounts
from fillengine.utils.errors import AnalysisFailed, FillEngineError, NoFillableTarget

logger = logging.getLogger("fillengine.orchestrator")

OutputFormat = Literal["native", "pdf"]


class FillState(str, Enum):
    RECEIVED = "received"
    CLASSIFIED = "classified"
    STRATEGY_SELECTED = "strategy_selected"
    FILLED = "filled"
    REPORTED = "reported"
    FAILED = "failed"


_ALLOWED_TRANSITIONS: dict[FillState, frozenset[FillState]] = {
    FillState.RECEIVED: frozenset({FillState.CLASSIFIED, FillState.FAILED}),
    FillState.CLASSIFIED: frozenset({FillState.STRATEGY_SELECTED, FillState.FAILED}),
    FillState.STRATEGY_SELECTED: frozenset({FillState.FILLED, FillState.FAILED}),
    FillState.FILLED: frozenset({FillState.REPORTED, FillState.FAILED}),
    FillState.REPORTED: frozenset(),
    FillState.FAILED: frozenset(),
}


@dataclass(frozen=True)
class FillRequest:
    template: bytes
    profile: Profile
    template_fields: Sequence[TemplateField] = ()
    custom_values: Mapping[str, str] = field(default_factory=dict)
    job: JobVacancy | None = None
    description_format: DescriptionFormat = "bullets"
    custom_instructions: str | None = None
    language: Literal["nl", "en"] | None = None
    output_format: OutputFormat = "native"
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass(frozen=True)
class FillOutput:
    content: bytes
    media_type: str
    report: FillReport


@dataclass
class _Run:
    request_id: str
    started: float
    state: FillState = FillState.RECEIVED

    def advance(self, state: FillState, **fields: Any) -> None:
        if state not in _ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(f"illegal fill transition {self.state.value} -> {state.value}")
        self.state = state
        level = logging.WARNING if state is FillState.FAILED else logging.INFO
        log_event(
            level, state.value, self.request_id, elapsed_ms=_elapsed_ms(self.started), **fields
        )


@dataclass(frozen=True)
class _Filled:
    method: FillMethod
    content: bytes
    filled_field_names: tuple[str, ...]
    warnings: tuple[str, ...]


def has_native_text_fields(info: ContainerInfo) -> bool:
    return any(native.type == "text" for native in info.native_fields)


def has_configured_fields(info: ContainerInfo, request: FillRequest) -> bool:
    return info.kind is ContainerKind.FIXED_LAYOUT and len(request.template_fields) > 0


def is_flow_layout(info: ContainerInfo) -> bool:
    return info.kind is ContainerKind.FLOW_LAYOUT


class FillOrchestrator:
    """Run one fill request through the strategy chain."""

    def __init__(
        self,
        *,
        settings: EngineSettings | None = None,
        analysis: AnalysisService | None = None,
        bridge: FormatBridge | None = None,
    ) -> None:
        self._settings = settings or EngineSettings()
        self._analysis = analysis
        self._bridge = bridge

    async def fill(self, request: FillRequest) -> FillOutput:
        run = _Run(request_id=request.request_id, started=time.perf_counter())
        log_event(
            logging.INFO,
            FillState.RECEIVED.value,
            run.request_id,
            template_bytes=len(request.template),
            output_format=request.output_format,
        )

        try:
            info = await asyncio.to_thread(classify, request.template)
            run.advance(
                FillState.CLASSIFIED,
                kind=info.kind.value,
                native_fields=len(info.native_fields),
            )

            filled = await self._run_strategies(run, info, request)
            run.advance(
                FillState.FILLED,
                method=filled.method,
                filled_count=len(filled.filled_field_names),
            )

            content, media_type = await self._render_output(info, filled, request)
        except FillEngineError as exc:
            run.advance(
                FillState.FAILED,
                error_type=type(exc).__name__,
                retryable=exc.retryable,
                message=str(exc),
            )
            raise
        except Exception as exc:
            run.advance(FillState.FAILED, error_type=type(exc).__name__, retryable=False)
            raise

        report = FillReport(
            method=filled.method,
            filled_field_names=filled.filled_field_names,
            warnings=(*info.warnings, *filled.warnings),
        )
        run.advance(FillState.REPORTED, method=report.method, warnings=len(report.warnings))
        return FillOutput(content=content, media_type=media_type, report=report)

    async def _run_strategies(
        self, run: _Run, info: ContainerInfo, request: FillRequest
    ) -> _Filled:
        language = self._language(request)

        if has_native_text_fields(info):
            auto = await asyncio.to_thread(
                auto_fill,
                request.template,
                info.kind,
                info.native_fields,
                request.profile,
                request.custom_values,
                language=language,
            )
            if auto is not None:
                run.advance(FillState.STRATEGY_SELECTED, strategy="form")
                return _Filled(
                    method="form",
                    content=auto.content,
                    filled_field_names=tuple(auto.filled_field_names),
                    warnings=(),
                )

        if has_configured_fields(info, request):
            run.advance(FillState.STRATEGY_SELECTED, strategy="coordinates")
            return await self._fill_coordinates(request, language)

        if is_flow_layout(info):
            run.advance(FillState.STRATEGY_SELECTED, strategy="structural")
            return await self._fill_structural(request, language)

        raise NoFillableTarget(report=FillReport(method="none", warnings=tuple(info.warnings)))

    async def _fill_coordinates(self, request: FillRequest, language: str) -> _Filled:
        layout_settings = self._settings.layout
        result = await asyncio.to_thread(
            fill_coordinates,
            request.template,
            request.template_fields,
            request.profile,
            request.custom_values,
            fontname=layout_settings.font_name,
            default_font_size=layout_settings.default_font_size,
            line_height_factor=layout_settings.line_height_factor,
            language=language,
        )
        if not result.filled_field_names:
            raise NoFillableTarget(
                "no configured field resolved to a value",
                report=FillReport(method="none", warnings=tuple(result.warnings)),
            )
        return _Filled(
            method="coordinates",
            content=result.content,
            filled_field_names=tuple(result.filled_field_names),
            warnings=tuple(result.warnings),
        )

    async def _fill_structural(self, request: FillRequest, language: str) -> _Filled:
        if self._analysis is None:
            raise AnalysisFailed("no analysis service configured", retryable=False)

        structural_map = await asyncio.to_thread(build_structural_map, request.template)
        if not structural_map.segments:
            raise NoFillableTarget(
                "flow-layout template contains no text to fill",
                report=FillReport(method="none"),
            )

        analysis_settings = self._settings.analysis
        blueprint = await analyze_structure(
            self._analysis,
            structural_map,
            ProfileCounts.from_profile(request.profile),
            temperature=analysis_settings.analysis_temperature,
        )
        result = await fill_blueprint(
            self._analysis,
            blueprint,
            structural_map,
            request.profile,
            job=request.job,
            description_format=request.description_format,
            custom_instructions=request.custom_instructions,
            language=language,
            custom_values=request.custom_values,
            temperature=analysis_settings.fill_temperature,
        )

        filled_names = tuple(
            segment_id for segment_id, value in result.fills.items() if value.strip()
        )
        if not filled_names:
            raise AnalysisFailed(
                "structural fill produced no values",
                retryable=True,
                report=FillReport(method="none", warnings=tuple(result.warnings)),
            )

        content = await asyncio.to_thread(
            apply_fills, request.template, result.fills, structural_map
        )
        return _Filled(
            method="structural",
            content=content,
            filled_field_names=filled_names,
            warnings=tuple(result.warnings),
        )

    async def _render_output(
        self, info: ContainerInfo, filled: _Filled, request: FillRequest
    ) -> tuple[bytes, str]:
        if request.output_format == "native" or info.kind is ContainerKind.FIXED_LAYOUT:
            return filled.content, info.media_type

        bridge = self._bridge or FormatBridge(
            self._settings.conversion.command,
            timeout_seconds=self._settings.conversion.timeout_seconds,
        )
        return await bridge.to_paginated_output(filled.content), PDF_MEDIA_TYPE

    def _language(self, request: FillRequest) -> str:
        return request.language or self._settings.language


async def fill_template(
    request: FillRequest,
    *,
    settings: EngineSettings | None = None,
    analysis: AnalysisService | None = None,
    bridge: FormatBridge | None = None,
) -> FillOutput:
    """Convenience wrapper around FillOrchestrator.fill."""

    orchestrator = FillOrchestrator(settings=settings, analysis=analysis, bridge=bridge)
    return await orchestrator.fill(request)


def log_event(level: int, event: str, request_id: str, **fields: Any) -> None:
    payload = {
        "event": event,
        "request_id": request_id,
        **fields,
    }
    logger.log(level, _dump_json(payload))


def _dump_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
