"""Extract design tokens from a rendered template page.

This path never blocks a fill: when the analysis service fails the default
token set is returned with low confidence. Rate limiting still propagates.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from fillengine.llm.service import AnalysisService, ImagePart, TextPart
from fillengine.utils.errors import AnalysisFailed

logger = logging.getLogger(__name__)

Confidence = Literal["high", "medium", "low"]

STYLE_TEMPERATURE = 0.1
_HEX_RE = re.compile(r"^#[0-9a-fA-F]{6}$")
DEFAULT_SECTION_ORDER = (
    "summary",
    "experience",
    "education",
    "skills",
    "languages",
    "certifications",
)

SYSTEM_PROMPT = """You are a CV design analyst. Look at the rendered template page
and describe its visual design as tokens: colours as #rrggbb hex, the font
pairing, the header and section styles, the layout and the order of the CV
sections. Only describe what is visible; use the defaults when unsure."""


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ColorTokens(_CamelModel):
    primary: str = "#1a365d"
    secondary: str = "#f7fafc"
    accent: str = "#2b6cb0"
    text: str = "#2d3748"
    muted: str = "#718096"


class StyleTokens(_CamelModel):
    colors: ColorTokens = Field(default_factory=ColorTokens)
    font_pairing: str = "inter-inter"
    scale: Literal["small", "medium", "large"] = "medium"
    spacing: Literal["compact", "comfortable", "spacious"] = "comfortable"
    header_variant: str = "simple"
    section_style: str = "clean"
    layout: Literal["single-column", "two-column", "sidebar-left", "sidebar-right"] = (
        "single-column"
    )
    section_order: list[str] = Field(default_factory=lambda: list(DEFAULT_SECTION_ORDER))
    show_photo: bool = False


class StyleResponse(_CamelModel):
    tokens: StyleTokens
    confidence: Confidence = "medium"


@dataclass(frozen=True)
class StyleExtraction:
    tokens: StyleTokens
    confidence: Confidence
    degraded: bool = False


def default_style() -> StyleExtraction:
    return StyleExtraction(tokens=StyleTokens(), confidence="low", degraded=True)


async def extract_style(
    service: AnalysisService,
    preview_png: bytes,
    *,
    temperature: float = STYLE_TEMPERATURE,
) -> StyleExtraction:
    try:
        response = await service.generate(
            system_prompt=SYSTEM_PROMPT,
            content=[
                ImagePart(data=preview_png, media_type="image/png"),
                TextPart(text="Extract the design tokens of this CV template."),
            ],
            schema=StyleResponse,
            temperature=temperature,
        )
    except AnalysisFailed as exc:
        logger.warning("style extraction degraded to defaults: %s", exc)
        return default_style()

    return StyleExtraction(tokens=repair_tokens(response.tokens), confidence=response.confidence)


def repair_tokens(tokens: StyleTokens) -> StyleTokens:
    """Replace invalid colours with defaults and keep only known sections in order."""

    defaults = ColorTokens()
    colors = {
        name: value if _HEX_RE.match(value) else getattr(defaults, name)
        for name, value in tokens.colors.model_dump().items()
    }

    order: list[str] = []
    for section in tokens.section_order:
        normalized = section.strip().lower()
        if normalized in DEFAULT_SECTION_ORDER and normalized not in order:
            order.append(normalized)
    if not order:
        order = list(DEFAULT_SECTION_ORDER)

    return tokens.model_copy(update={"colors": ColorTokens(**colors), "section_order": order})
