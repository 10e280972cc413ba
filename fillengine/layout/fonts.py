"""Font metrics used to measure text for wrapping."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol

import fitz  # type: ignore[import-untyped]


class FontMetrics(Protocol):
    def text_width(self, text: str, size: float) -> float:
        """Return the rendered width of text in points at the given size."""


@dataclass(frozen=True)
class AdvanceWidthTable:
    """Per-glyph advance widths in 1/1000 em."""

    widths: Mapping[str, float] = field(default_factory=dict)
    default_width: float = 500.0

    def text_width(self, text: str, size: float) -> float:
        units = sum(self.widths.get(char, self.default_width) for char in text)
        return units * size / 1000.0


class Base14Font:
    """Metrics of a PDF base-14 font as shipped with PyMuPDF."""

    def __init__(self, fontname: str = "helv") -> None:
        self.fontname = fontname
        self._font = fitz.Font(fontname)

    def text_width(self, text: str, size: float) -> float:
        return self._font.text_length(text, fontsize=size)
