"""Analysis service port and its HTTP implementation.

The engine only talks to language models through `AnalysisService`. The
HTTP implementation targets the Anthropic Messages API and forces a single
tool call whose input schema is the requested pydantic model, so every
response is validated before it reaches engine code.
"""

from __future__ import annotations

import base64
import json
import logging
import os
import re
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from fillengine.config.settings import AnalysisSettings
from fillengine.llm.retry import TransientServiceError, with_retry
from fillengine.utils.errors import AnalysisFailed, RateLimited

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_TOOL_NAME = "submit_result"
_JSON_OBJECT_RE = re.compile(r"(\{[\s\S]*\})")


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class ImagePart:
    data: bytes = field(repr=False)
    media_type: str = "image/png"


ContentPart = TextPart | ImagePart


class AnalysisService(Protocol):
    async def generate(
        self,
        *,
        system_prompt: str,
        content: str | Sequence[ContentPart],
        schema: type[ModelT],
        temperature: float,
    ) -> ModelT:
        """Return a schema-validated object or raise AnalysisFailed / RateLimited."""


@dataclass(frozen=True)
class Credentials:
    api_key: str = field(repr=False)
    model: str | None = None


class CredentialProvider(Protocol):
    def get(self) -> Credentials:
        """Return credentials for the analysis service."""


class EnvCredentialProvider:
    """Read credentials from ANTHROPIC_API_KEY / FILLENGINE_ANALYSIS_MODEL."""

    def get(self) -> Credentials:
        api_key = os.getenv("ANTHROPIC_API_KEY", "").strip()
        if not api_key:
            raise AnalysisFailed("analysis credentials are not configured", retryable=False)
        model = os.getenv("FILLENGINE_ANALYSIS_MODEL") or None
        return Credentials(api_key=api_key, model=model)


class RateLimitGate(Protocol):
    async def acquire(self) -> None:
        """Return when a call may proceed; raise RateLimited to refuse it."""


class UnlimitedGate:
    async def acquire(self) -> None:
        return None


class AnthropicAnalysisService:
    """AnalysisService backed by the Anthropic Messages API."""

    def __init__(
        self,
        settings: AnalysisSettings,
        credentials: CredentialProvider,
        *,
        rate_limit: RateLimitGate | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self._settings = settings
        self._credentials = credentials
        self._rate_limit = rate_limit or UnlimitedGate()
        self._transport = transport
        self._sleep = sleep

    async def generate(
        self,
        *,
        system_prompt: str,
        content: str | Sequence[ContentPart],
        schema: type[ModelT],
        temperature: float,
    ) -> ModelT:
        credentials = self._credentials.get()
        body = {
            "model": credentials.model or self._settings.model,
            "max_tokens": self._settings.max_tokens,
            "temperature": temperature,
            "system": system_prompt,
            "messages": [{"role": "user", "content": _content_blocks(content)}],
            "tools": [
                {
                    "name": _TOOL_NAME,
                    "description": f"Submit the {schema.__name__} result.",
                    "input_schema": schema.model_json_schema(),
                }
            ],
            "tool_choice": {"type": "tool", "name": _TOOL_NAME},
        }
        headers = {
            "x-api-key": credentials.api_key,
            "anthropic-version": self._settings.api_version,
            "content-type": "application/json",
        }

        async def attempt() -> dict[str, Any]:
            await self._rate_limit.acquire()
            return await self._post(body, headers)

        retry_kwargs: dict[str, Any] = {
            "max_retries": self._settings.max_retries,
            "base_delay": self._settings.retry_base_delay_seconds,
            "max_delay": self._settings.retry_max_delay_seconds,
        }
        if self._sleep is not None:
            retry_kwargs["sleep"] = self._sleep

        try:
            payload = await with_retry(attempt, **retry_kwargs)
        except TransientServiceError as exc:
            raise AnalysisFailed(
                f"analysis service unavailable: {exc}",
                retryable=True,
                detail={"status_code": exc.status_code},
            ) from exc

        return _parse_result(payload, schema)

    async def _post(self, body: dict[str, Any], headers: dict[str, str]) -> dict[str, Any]:
        started = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self._settings.timeout_seconds,
            ) as client:
                response = await client.post(self._settings.base_url, json=body, headers=headers)
        except httpx.TimeoutException as exc:
            raise TransientServiceError("analysis request timed out") from exc
        except httpx.TransportError as exc:
            raise TransientServiceError(f"analysis transport error: {exc}") from exc

        logger.info(
            "analysis response status=%d model=%s elapsed_ms=%d",
            response.status_code,
            body["model"],
            int((time.perf_counter() - started) * 1000),
        )

        status = response.status_code
        if status == 429:
            raise RateLimited(
                "analysis service rate limit reached",
                retry_after=_retry_after(response),
            )
        if status in (401, 403):
            raise AnalysisFailed(
                "analysis service rejected the credentials",
                retryable=False,
                detail={"status_code": status},
            )
        if status >= 500:
            raise TransientServiceError(f"analysis service returned {status}", status_code=status)
        if status >= 400:
            raise AnalysisFailed(
                f"analysis request rejected with status {status}",
                retryable=False,
                detail={"status_code": status},
            )

        try:
            payload = response.json()
        except json.JSONDecodeError as exc:
            raise AnalysisFailed("analysis response is not JSON", retryable=False) from exc
        if not isinstance(payload, dict):
            raise AnalysisFailed("analysis response must be an object", retryable=False)
        return payload


def _content_blocks(content: str | Sequence[ContentPart]) -> list[dict[str, Any]]:
    if isinstance(content, str):
        return [{"type": "text", "text": content}]

    blocks: list[dict[str, Any]] = []
    for part in content:
        if isinstance(part, TextPart):
            blocks.append({"type": "text", "text": part.text})
        elif isinstance(part, ImagePart):
            blocks.append(
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": part.media_type,
                        "data": base64.b64encode(part.data).decode("ascii"),
                    },
                }
            )
        else:
            raise TypeError(f"Unsupported content part: {type(part).__name__}")
    return blocks


def _parse_result(payload: dict[str, Any], schema: type[ModelT]) -> ModelT:
    raw: Any = None
    for block in payload.get("content") or []:
        if not isinstance(block, dict):
            continue
        if block.get("type") == "tool_use" and block.get("name") == _TOOL_NAME:
            raw = block.get("input")
            break
        if block.get("type") == "text" and raw is None:
            raw = _json_from_text(block.get("text") or "")

    if raw is None:
        raise AnalysisFailed("analysis response contained no result", retryable=False)

    try:
        return schema.model_validate(raw)
    except ValidationError as exc:
        raise AnalysisFailed(
            f"analysis response does not match {schema.__name__}",
            retryable=False,
            detail={"errors": exc.error_count()},
        ) from exc


def _json_from_text(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        match = _JSON_OBJECT_RE.search(text)
        if match is None:
            return None
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError:
            return None


def _retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("retry-after")
    if raw is None:
        return None
    try:
        parsed = float(raw)
    except ValueError:
        return None
    return parsed if parsed >= 0 else None
