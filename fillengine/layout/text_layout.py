"""Greedy word wrapping and line placement for fixed-layout pages."""

from __future__ import annotations

from dataclasses import dataclass

from fillengine.layout.fonts import FontMetrics

DEFAULT_LINE_HEIGHT_FACTOR = 1.2


@dataclass(frozen=True)
class PlacedLine:
    """One line of text with its baseline origin (y measured from the page bottom)."""

    text: str
    x: float
    y: float


def layout(text: str, font: FontMetrics, font_size: float, max_width: float) -> list[str]:
    """Wrap text into lines no wider than max_width.

    Words are split on whitespace and never broken, so a single word wider
    than max_width occupies its own line.
    """

    words = text.split()
    lines: list[str] = []
    current = ""

    for word in words:
        candidate = f"{current} {word}" if current else word
        if current and font.text_width(candidate, font_size) > max_width:
            lines.append(current)
            current = word
        else:
            current = candidate

    if current:
        lines.append(current)

    return lines


def place_lines(
    lines: list[str],
    x: float,
    y: float,
    font_size: float,
    max_lines: int | None = None,
    *,
    line_height_factor: float = DEFAULT_LINE_HEIGHT_FACTOR,
) -> list[PlacedLine]:
    """Stack lines downward from (x, y); lines beyond max_lines are dropped."""

    kept = lines if max_lines is None else lines[:max_lines]
    line_height = font_size * line_height_factor
    return [
        PlacedLine(text=line, x=x, y=y - index * line_height) for index, line in enumerate(kept)
    ]
