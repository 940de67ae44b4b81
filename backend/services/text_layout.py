"""
Text layout engine.

Pure computation, no drawing: word wrapping, block heights, vertical lock
offsets and the sequential stacking of vertical-group items. Measurement is
injected (a TextMeasurer, normally the CardSurface) so the same code runs
against real fonts or a deterministic measurer in tests.

Heights follow a fixed line-height ratio of 1.2 x font size. A skill item's
title block is 1.8 x its title font size plus vertical padding, regardless of
how long its body text is; the item is as tall as the larger of the two.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Protocol

from domain.models import (
    FontSpec,
    LockPosition,
    Padding,
    SkillItem,
    Template,
    VerticalGroup,
)

LINE_HEIGHT_RATIO = 1.2
TITLE_HEIGHT_RATIO = 1.8
# Added to the first baseline of a bottom-locked block.
BOTTOM_LOCK_OFFSET_RATIO = 0.2

_LINE_BREAK = re.compile(r"\r\n|\r|\n")

Measure = Callable[[str], float]


class TextMeasurer(Protocol):
    def measure_text(self, text: str, font: FontSpec) -> float:
        ...


def line_height(font_size: float) -> float:
    return font_size * LINE_HEIGHT_RATIO


def wrap_text(text: str, max_width: float, measure: Measure) -> List[str]:
    """
    Greedy word wrap.

    Explicit line breaks always start a new line and empty paragraphs are
    kept as empty lines. Words are never split, so a word wider than
    max_width gets a line of its own.
    """
    lines: List[str] = []
    for paragraph in _LINE_BREAK.split(text or ""):
        words = paragraph.split()
        if not words:
            lines.append("")
            continue
        current = words[0]
        for word in words[1:]:
            candidate = f"{current} {word}"
            if measure(candidate) > max_width:
                lines.append(current)
                current = word
            else:
                current = candidate
        lines.append(current)
    return lines


@dataclass
class TextBlock:
    """Result of laying out one block of text in a box."""
    lines: List[str]
    line_count: int  # lines actually drawn
    line_height: float
    height: float

    @property
    def drawn_lines(self) -> List[str]:
        """Lines to paint; slots past the wrapped text are empty."""
        padded = self.lines + [""] * max(0, self.line_count - len(self.lines))
        return padded[: self.line_count]


def layout_text(
    text: str,
    width: float,
    font_size: float,
    measure: Measure,
    max_height: Optional[float] = None,
) -> TextBlock:
    """
    Wrap text and compute its height.

    With max_height, exactly floor(max_height / line_height) line slots are
    used: longer text is dropped without an ellipsis, shorter text leaves
    empty slots. The height never exceeds max_height.
    """
    lh = line_height(font_size)
    if width <= 0:
        return TextBlock(lines=[], line_count=0, line_height=lh, height=0.0)
    lines = wrap_text(text, width, measure)
    count = len(lines)
    if max_height:
        count = math.floor(max_height / lh + 1e-9)
        return TextBlock(lines=lines, line_count=count, line_height=lh, height=min(count * lh, max_height))
    return TextBlock(lines=lines, line_count=count, line_height=lh, height=count * lh)


def text_height(text: str, width: float, font_size: float, measure: Measure) -> float:
    """Height needed to show all of text; empty text needs no space."""
    if not text or width <= 0:
        return 0.0
    return len(wrap_text(text, width, measure)) * line_height(font_size)


def first_baseline(
    y: float,
    font_size: float,
    block_height: float,
    box_height: Optional[float] = None,
    lock: Optional[LockPosition] = None,
) -> float:
    """Baseline of the first line; bottom-locked blocks hug the box bottom."""
    baseline = y + font_size
    if lock == LockPosition.BOTTOM and box_height and block_height < box_height:
        baseline += box_height - block_height + font_size * BOTTOM_LOCK_OFFSET_RATIO
    return baseline


# --- vertical groups ---

def fixed_title_height(title_font_size: float, padding: Padding) -> float:
    return title_font_size * TITLE_HEIGHT_RATIO + padding.top + padding.bottom


def content_column_width(group_width: float, title_width: float, padding: Padding) -> float:
    return group_width - title_width - padding.left - padding.right


@dataclass
class ItemLayout:
    """Resolved geometry of one skill item for a single render pass."""
    item_id: str
    x: float
    top: float
    width: float
    height: float
    title_height: float
    content_height: float
    content_width: float
    text: str


@dataclass
class GroupLayout:
    group_id: str
    items: List[ItemLayout] = field(default_factory=list)
    spacing: float = 0

    @property
    def total_height(self) -> float:
        if not self.items:
            return 0.0
        return sum(item.height for item in self.items) + (len(self.items) - 1) * self.spacing


def item_text(item: SkillItem, text_content: Mapping[str, str]) -> str:
    """User text for an item, falling back to its placeholder."""
    return text_content.get(item.id) or item.content_placeholder or ""


def layout_group(
    group: VerticalGroup,
    text_content: Mapping[str, str],
    measurer: TextMeasurer,
) -> GroupLayout:
    """
    Stack the group's items top-to-bottom in list order.

    Item k starts at group.y plus the heights of all earlier items plus one
    spacing per earlier item. One pass, no reflow.
    """
    layout = GroupLayout(group_id=group.id, spacing=group.spacing)
    top = group.y
    for item in group.items:
        pad = item.padding
        text = item_text(item, text_content)
        content_width = content_column_width(group.width, item.title_width, pad)
        font = item.font
        content_height = text_height(text, content_width, item.font_size, lambda s: measurer.measure_text(s, font))
        title_height = fixed_title_height(item.title_font_size, pad)
        height = max(content_height + pad.top + pad.bottom, title_height)
        layout.items.append(ItemLayout(
            item_id=item.id,
            x=group.x,
            top=top,
            width=group.width,
            height=height,
            title_height=title_height,
            content_height=content_height,
            content_width=content_width,
            text=text,
        ))
        top += height + group.spacing
    return layout


def compute_item_layouts(
    template: Template,
    text_content: Mapping[str, str],
    measurer: TextMeasurer,
) -> Dict[str, ItemLayout]:
    """Lay out every vertical group; returns a render-scoped map keyed by item id."""
    result: Dict[str, ItemLayout] = {}
    for group in template.vertical_groups:
        for item_layout in layout_group(group, text_content, measurer).items:
            result[item_layout.item_id] = item_layout
    return result
