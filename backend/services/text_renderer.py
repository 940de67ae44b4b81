"""
Drawing routines for text regions, skill items and skill title layers.

Geometry comes from services.text_layout; this module only paints.
"""
from __future__ import annotations

from typing import Optional

from PIL import Image

from domain.models import (
    CardTheme,
    FontSpec,
    LockPosition,
    SkillItem,
    TextAlign,
    TextArea,
)
from services.shape_clip import ClipPath
from services.surface import CardSurface
from services.text_layout import ItemLayout, TextBlock, first_baseline, layout_text

TEXT_PANEL_PADDING = 5

_ANCHORS = {
    TextAlign.LEFT: "ls",
    TextAlign.CENTER: "ms",
    TextAlign.RIGHT: "rs",
}


def aligned_x(x: float, width: float, align: TextAlign) -> float:
    if align == TextAlign.CENTER:
        return x + width / 2
    if align == TextAlign.RIGHT:
        return x + width
    return x


def draw_text_block(
    surface: CardSurface,
    theme: CardTheme,
    text: str,
    x: float,
    y: float,
    width: float,
    max_height: Optional[float],
    font: FontSpec,
    color: str,
    align: TextAlign = TextAlign.LEFT,
    has_background: bool = False,
    lock: Optional[LockPosition] = None,
    bg_color: Optional[str] = None,
) -> TextBlock:
    """Wrap and draw text inside a box; returns the laid-out block."""
    block = layout_text(text, width, font.size, lambda s: surface.measure_text(s, font), max_height)
    if width <= 0:
        return block
    baseline = first_baseline(y, font.size, block.height, max_height, lock)

    if has_background:
        panel = (
            x - TEXT_PANEL_PADDING,
            baseline - font.size - TEXT_PANEL_PADDING,
            width + TEXT_PANEL_PADDING * 2,
            block.height + TEXT_PANEL_PADDING * 2,
        )
        surface.fill_rect(panel, bg_color or theme.text_bg_color)
        surface.stroke_rect(panel, theme.text_border_color)

    line_x = aligned_x(x, width, align)
    for line in block.drawn_lines:
        surface.fill_text(line, (line_x, baseline), font, color, anchor=_ANCHORS[align])
        baseline += block.line_height
    return block


def draw_text_area(surface: CardSurface, theme: CardTheme, area: TextArea, text: str) -> TextBlock:
    return draw_text_block(
        surface,
        theme,
        text,
        area.x,
        area.y,
        area.width,
        area.height,
        area.font,
        area.text_color,
        align=area.align,
        has_background=area.has_background,
        lock=area.lock_position,
        bg_color=area.bg_color,
    )


def draw_group_item(surface: CardSurface, theme: CardTheme, item: SkillItem, layout: ItemLayout) -> None:
    """Item background panel (inset by padding) plus the body text column."""
    pad = item.padding
    if item.has_background:
        panel = (
            layout.x + pad.left,
            layout.top + pad.top,
            layout.width - pad.left - pad.right,
            layout.height - pad.top - pad.bottom,
        )
        surface.fill_rect(panel, item.bg_color or theme.text_bg_color)
        surface.stroke_rect(panel, theme.text_border_color)

    draw_text_block(
        surface,
        theme,
        layout.text,
        layout.x + item.title_width + pad.left,
        layout.top + pad.top,
        layout.content_width,
        layout.content_height or None,
        item.font,
        item.text_color,
    )


def _cover_box(image: Image.Image, x: float, y: float, width: float, height: float):
    img_ratio = image.width / image.height
    target_ratio = width / height
    if img_ratio > target_ratio:
        draw_h = height
        draw_w = image.width * (height / image.height)
        return x + (width - draw_w) / 2, y, draw_w, draw_h
    draw_w = width
    draw_h = image.height * (width / image.width)
    return x, y + (height - draw_h) / 2, draw_w, draw_h


def draw_title_layer(
    surface: CardSurface,
    theme: CardTheme,
    item: SkillItem,
    layout: ItemLayout,
    background: Optional[Image.Image] = None,
) -> None:
    """
    Draw the fixed-height title block of a skill item.

    The background is the pre-loaded title image scaled to cover the title
    area, else the title layer's color.
    """
    title = item.title_layer
    if title is None:
        return
    pad = item.padding
    x = layout.x + pad.left
    y = layout.top + pad.top
    width = item.title_width - pad.left - pad.right
    height = layout.title_height - pad.top - pad.bottom
    if width <= 0 or height <= 0:
        return

    if background is not None and background.width > 0 and background.height > 0:
        area = ClipPath(polygon=[(x, y), (x + width, y), (x + width, y + height), (x, y + height)])
        with surface.clip(area):
            surface.blit(background, _cover_box(background, x, y, width, height))
    else:
        surface.fill_rect((x, y, width, height), title.bg_color or theme.title_bg_color)

    font = FontSpec(
        family=title.font_family or item.title_font_family,
        size=title.font_size or item.title_font_size,
        weight=title.font_weight or item.title_font_weight,
    )
    surface.fill_text(
        title.text or item.title,
        (x + width / 2, y + height / 2),
        font,
        title.text_color or "#000000",
        anchor="mm",
    )
