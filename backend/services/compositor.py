"""
Card compositor.

A render pass:
1. clears the frame,
2. lays out every vertical group (render-scoped item heights),
3. collects one flat list of drawable elements with resolved priorities,
4. draws a plain background when no base layer sits at priority <= 10,
5. draws the elements in ascending priority (stable, so insertion order
   breaks ties: base layers, group titles, text regions, group items,
   image regions).

One element failing to draw is logged and skipped. If layout or collection
fails the frame shows a diagnostic instead of card content.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from domain.models import (
    DEFAULT_PRIORITY,
    FontSpec,
    ImageArea,
    ImageTransform,
    LoadedLayer,
    RenderContext,
    SkillItem,
    TextArea,
)
from services.shape_clip import build_clip_path
from services.surface import CardSurface
from services.text_layout import ItemLayout, compute_item_layouts
from services.text_renderer import draw_group_item, draw_text_area, draw_title_layer

logger = logging.getLogger(__name__)

BACKGROUND_PRIORITY_MAX = 10
ERROR_TITLE = "Render failed"
ERROR_MESSAGE_MAX_CHARS = 50


class ElementKind(str, Enum):
    BASE_LAYER = "base_layer"
    GROUP_TITLE = "group_title"
    TEXT_REGION = "text_region"
    GROUP_ITEM = "group_item"
    IMAGE_REGION = "image_region"


@dataclass
class DrawElement:
    kind: ElementKind
    priority: int
    element_id: str
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RenderResult:
    """Outcome of one render pass."""
    ok: bool
    drawn: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    item_layouts: Dict[str, ItemLayout] = field(default_factory=dict)
    error: Optional[str] = None


def resolve_priority(explicit: Optional[int], layer: Optional[str], content_layers: Mapping[str, int]) -> int:
    """Explicit priority, else the named content layer's priority, else 50."""
    if explicit is not None:
        return explicit
    if layer is not None and layer in content_layers:
        return content_layers[layer]
    return DEFAULT_PRIORITY


def sort_elements(elements: List[DrawElement]) -> List[DrawElement]:
    # sorted() is stable: equal priorities keep insertion order.
    return sorted(elements, key=lambda el: el.priority)


def needs_fallback_background(layers: List[LoadedLayer]) -> bool:
    return not any(loaded.layer.z_index <= BACKGROUND_PRIORITY_MAX for loaded in layers)


class Compositor:
    def __init__(self, context: RenderContext):
        self.context = context

    # --- collection ---

    def collect_elements(self, item_layouts: Mapping[str, ItemLayout]) -> List[DrawElement]:
        ctx = self.context
        template = ctx.template
        if template is None:
            return []
        layers = template.content_layers
        elements: List[DrawElement] = []

        for loaded in ctx.layers:
            elements.append(DrawElement(ElementKind.BASE_LAYER, loaded.layer.z_index, loaded.layer.id, {"loaded": loaded}))

        for group in template.vertical_groups:
            for item in group.items:
                if item.title_layer is None:
                    continue
                priority = resolve_priority(item.title_layer.z_index, group.layer, layers)
                elements.append(DrawElement(
                    ElementKind.GROUP_TITLE, priority, item.id,
                    {"item": item, "layout": item_layouts[item.id]},
                ))

        for area in template.text_areas:
            elements.append(DrawElement(
                ElementKind.TEXT_REGION,
                resolve_priority(area.z_index, area.layer, layers),
                area.id,
                {"area": area, "text": ctx.content.text_content.get(area.id) or ""},
            ))

        for group in template.vertical_groups:
            priority = resolve_priority(group.z_index, group.layer, layers)
            for item in group.items:
                elements.append(DrawElement(
                    ElementKind.GROUP_ITEM, priority, item.id,
                    {"item": item, "layout": item_layouts[item.id]},
                ))

        for area in template.image_areas:
            image = ctx.content.image_content.get(area.id)
            if image is None:
                continue
            elements.append(DrawElement(
                ElementKind.IMAGE_REGION,
                resolve_priority(area.z_index, area.layer, layers),
                area.id,
                {"area": area, "image": image, "transform": ctx.content.transform_for(area.id)},
            ))

        return sort_elements(elements)

    # --- render pass ---

    def render(self) -> RenderResult:
        ctx = self.context
        surface = ctx.surface
        if surface is None or ctx.template is None:
            logger.warning("Render skipped: no surface or template")
            return RenderResult(ok=False, error="not ready")

        surface.clear()
        try:
            item_layouts = compute_item_layouts(ctx.template, ctx.content.text_content, surface)
            elements = self.collect_elements(item_layouts)
        except Exception as exc:
            logger.exception("Failed to collect card elements for template '%s'", ctx.template.id)
            self.draw_diagnostic(str(exc) or type(exc).__name__)
            return RenderResult(ok=False, error=str(exc) or type(exc).__name__)

        if needs_fallback_background(ctx.layers):
            self.draw_solid_background()

        result = RenderResult(ok=True, item_layouts=item_layouts)
        for index, element in enumerate(elements):
            try:
                self.draw_element(element)
                result.drawn.append(element.element_id)
            except Exception:
                logger.exception("Failed to draw element [%d] %s '%s'", index, element.kind.value, element.element_id)
                result.failed.append(element.element_id)
        return result

    def draw_element(self, element: DrawElement) -> None:
        payload = element.payload
        if element.kind == ElementKind.BASE_LAYER:
            self.draw_base_layer(payload["loaded"])
        elif element.kind == ElementKind.GROUP_TITLE:
            self.draw_title(payload["item"], payload["layout"])
        elif element.kind == ElementKind.TEXT_REGION:
            self.draw_text(payload["area"], payload["text"])
        elif element.kind == ElementKind.GROUP_ITEM:
            self.draw_item(payload["item"], payload["layout"])
        elif element.kind == ElementKind.IMAGE_REGION:
            self.draw_image(payload["area"], payload["image"], payload["transform"])
        else:
            raise ValueError(f"Unknown element kind: {element.kind}")

    # --- per-kind drawing ---

    @property
    def surface(self) -> CardSurface:
        if self.context.surface is None:
            raise RuntimeError("Compositor has no drawing surface")
        return self.context.surface

    def draw_base_layer(self, loaded: LoadedLayer) -> None:
        layer, image = loaded.layer, loaded.image
        width = layer.width if layer.width is not None else image.width
        height = layer.height if layer.height is not None else image.height
        self.surface.blit(image, (layer.x, layer.y, width, height))

    def draw_title(self, item: SkillItem, layout: ItemLayout) -> None:
        background = self.context.title_backgrounds.get(item.id)
        draw_title_layer(self.surface, self.context.theme, item, layout, background)

    def draw_text(self, area: TextArea, text: str) -> None:
        draw_text_area(self.surface, self.context.theme, area, text)

    def draw_item(self, item: SkillItem, layout: ItemLayout) -> None:
        draw_group_item(self.surface, self.context.theme, item, layout)

    def draw_image(self, area: ImageArea, image, transform: ImageTransform) -> None:
        """Blit the scaled image offset by the transform, clipped to the region shape."""
        scaled_w = image.width * transform.scale
        scaled_h = image.height * transform.scale
        path = build_clip_path(area.shape, area.x, area.y, area.width, area.height)
        with self.surface.clip(path):
            self.surface.blit(
                image,
                (area.x - transform.x, area.y - transform.y, scaled_w, scaled_h),
                src=(0, 0, image.width, image.height),
            )

    def draw_solid_background(self) -> None:
        surface = self.surface
        theme = self.context.theme
        box = (0, 0, surface.width, surface.height)
        surface.fill_rect(box, theme.solid_color)
        surface.stroke_rect(box, theme.solid_border_color)

    def draw_diagnostic(self, message: str) -> None:
        surface = self.surface
        theme = self.context.theme
        surface.clear()
        surface.fill_rect((0, 0, surface.width, surface.height), theme.error_bg_color)
        cx = surface.width / 2
        cy = surface.height / 2
        surface.fill_text(ERROR_TITLE, (cx, cy - 20), FontSpec(theme.error_font_family, 16), theme.error_text_color, anchor="ms")
        if len(message) > ERROR_MESSAGE_MAX_CHARS:
            message = message[:ERROR_MESSAGE_MAX_CHARS] + "..."
        surface.fill_text(message, (cx, cy + 10), FontSpec(theme.error_font_family, 12), theme.error_text_color, anchor="ms")
