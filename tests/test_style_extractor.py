from __future__ import annotations

from typing import Any

import pytest

from fillengine.llm.service import ImagePart
from fillengine.style.extractor import (
    DEFAULT_SECTION_ORDER,
    StyleResponse,
    StyleTokens,
    extract_style,
    repair_tokens,
)
from fillengine.utils.errors import AnalysisFailed, RateLimited


class StubAnalysisService:
    def __init__(self, response: dict[str, Any] | Exception) -> None:
        self.response = response
        self.content: Any = None

    async def generate(
        self, *, system_prompt: str, content: Any, schema: type[Any], temperature: float
    ) -> Any:
        self.content = content
        if isinstance(self.response, Exception):
            raise self.response
        return schema.model_validate(self.response)


@pytest.mark.anyio
async def test_extract_style_sends_preview_image() -> None:
    service = StubAnalysisService(
        {
            "tokens": {
                "colors": {"primary": "#112233"},
                "layout": "sidebar-left",
                "sectionOrder": ["experience", "summary"],
                "showPhoto": True,
            },
            "confidence": "high",
        }
    )

    extraction = await extract_style(service, b"\x89PNG-preview")

    assert extraction.degraded is False
    assert extraction.confidence == "high"
    assert extraction.tokens.colors.primary == "#112233"
    assert extraction.tokens.layout == "sidebar-left"
    assert extraction.tokens.section_order == ["experience", "summary"]
    assert isinstance(service.content[0], ImagePart)
    assert service.content[0].data == b"\x89PNG-preview"


@pytest.mark.anyio
async def test_analysis_failure_degrades_to_defaults() -> None:
    service = StubAnalysisService(AnalysisFailed("service down"))

    extraction = await extract_style(service, b"png")

    assert extraction.degraded is True
    assert extraction.confidence == "low"
    assert extraction.tokens == StyleTokens()


@pytest.mark.anyio
async def test_rate_limit_is_not_swallowed() -> None:
    service = StubAnalysisService(RateLimited(retry_after=3))

    with pytest.raises(RateLimited):
        await extract_style(service, b"png")


def test_repair_tokens_replaces_bad_colours_and_unknown_sections() -> None:
    tokens = StyleResponse.model_validate(
        {
            "tokens": {
                "colors": {"primary": "navy", "accent": "#ABCDEF"},
                "sectionOrder": ["Skills", "hobbies", "skills", "education"],
            }
        }
    ).tokens

    repaired = repair_tokens(tokens)

    assert repaired.colors.primary == "#1a365d"
    assert repaired.colors.accent == "#ABCDEF"
    assert repaired.section_order == ["skills", "education"]


def test_repair_tokens_falls_back_to_default_order() -> None:
    repaired = repair_tokens(StyleTokens(section_order=["hobbies"]))

    assert repaired.section_order == list(DEFAULT_SECTION_ORDER)
