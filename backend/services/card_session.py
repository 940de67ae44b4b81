"""
Card session: the composition root for one card being edited.

Owns the RenderContext and hands it to the compositor and the bleed
exporter. Callers drive it with plain method calls; an optional
RenderObserver gets told about finished or failed renders.

Only one render pass is expected at a time. Callers should not trigger a new
render while select_template is still loading assets.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Protocol

from PIL import Image

from domain.models import (
    BleedSpec,
    CardTheme,
    ImageTransform,
    LoadedLayer,
    RenderContext,
    Template,
)
from services.asset_loader import AssetLoader
from services.bleed_export import BleedExporter, ExportResult
from services.compositor import Compositor, RenderResult
from services.surface import CardSurface
from settings import settings

logger = logging.getLogger(__name__)


class RenderObserver(Protocol):
    def render_completed(self, frame: Image.Image) -> None:
        ...

    def render_failed(self, message: str) -> None:
        ...


def display_scale(width: int, max_display_width: Optional[int] = None) -> float:
    """Scale that fits a card of this width into the preview column."""
    max_width = max_display_width or settings.PREVIEW_MAX_WIDTH
    if width <= 0:
        return 1.0
    return min(max_width / width, 1.0)


def centered_transform(image: Image.Image, box_width: float, box_height: float, scale: float = 1.0) -> ImageTransform:
    """Offsets that centre the scaled image over a region box."""
    return ImageTransform(
        x=(image.width * scale - box_width) / 2,
        y=(image.height * scale - box_height) / 2,
        scale=scale,
    )


class CardSession:
    def __init__(
        self,
        loader: Optional[AssetLoader] = None,
        theme: Optional[CardTheme] = None,
        observer: Optional[RenderObserver] = None,
        render_delay: Optional[float] = None,
    ):
        self.loader = loader or AssetLoader()
        self.context = RenderContext(theme=theme or CardTheme())
        self.compositor = Compositor(self.context)
        self.exporter = BleedExporter(self.context, self.loader)
        self.observer = observer
        self.render_delay = settings.RENDER_DEFER_SECONDS if render_delay is None else render_delay

    @property
    def template(self) -> Optional[Template]:
        return self.context.template

    @property
    def available(self) -> bool:
        return self.context.ready

    # --- template selection ---

    async def select_template(self, template: Template) -> Dict[str, List[str]]:
        """
        Switch to a template: reset user content, create the surface and load
        base layers plus title backgrounds. Returns the ids that failed to load.
        """
        ctx = self.context
        ctx.template = template
        ctx.content.clear()
        ctx.layers = []
        ctx.title_backgrounds = {}
        try:
            ctx.surface = CardSurface(template.width, template.height)
        except ValueError:
            logger.exception("Cannot create drawing surface for template '%s'", template.id)
            ctx.surface = None
            return {"layers": [], "titles": []}

        layer_sources: Dict[str, str] = {}
        for layer in sorted(template.layers, key=lambda l: l.z_index):
            if not layer.url:
                logger.warning("Layer '%s' has no url; skipping", layer.id)
                continue
            layer_sources[layer.id] = layer.url
        title_sources: Dict[str, str] = {}
        for group in template.vertical_groups:
            for item in group.items:
                if item.title_layer and item.title_layer.bg_url:
                    title_sources[item.id] = item.title_layer.bg_url

        results = await self.loader.load_all({
            **{f"layer:{k}": v for k, v in layer_sources.items()},
            **{f"title:{k}": v for k, v in title_sources.items()},
        })

        failed: Dict[str, List[str]] = {"layers": [], "titles": []}
        for layer in sorted(template.layers, key=lambda l: l.z_index):
            outcome = results.get(f"layer:{layer.id}")
            if outcome is None:
                continue
            if outcome.ok:
                ctx.layers.append(LoadedLayer(layer=layer, image=outcome.image))
            else:
                failed["layers"].append(layer.id)
        for item_id in title_sources:
            outcome = results[f"title:{item_id}"]
            if outcome.ok:
                ctx.title_backgrounds[item_id] = outcome.image
            else:
                failed["titles"].append(item_id)
        logger.info(
            "Template '%s' ready: %d/%d layers loaded",
            template.id, len(ctx.layers), len(layer_sources),
        )
        return failed

    # --- user content ---

    def set_text(self, region_id: str, text: str) -> None:
        self.context.content.text_content[region_id] = text

    def set_image(self, area_id: str, image: Image.Image, transform: Optional[ImageTransform] = None) -> None:
        content = self.context.content
        content.image_content[area_id] = image
        if transform is None:
            area = self.template.find_image_area(area_id) if self.template else None
            if area is not None:
                transform = centered_transform(image, area.width, area.height)
            else:
                transform = ImageTransform()
        content.image_transforms[area_id] = transform

    def set_image_transform(
        self,
        area_id: str,
        x: Optional[float] = None,
        y: Optional[float] = None,
        scale: Optional[float] = None,
    ) -> Optional[ImageTransform]:
        """Update parts of a transform; ignored when the area has no image."""
        content = self.context.content
        if area_id not in content.image_content:
            return None
        transform = content.image_transforms.setdefault(area_id, ImageTransform())
        if x is not None:
            transform.x = x
        if y is not None:
            transform.y = y
        if scale is not None:
            transform.scale = scale
        return transform

    def remove_image(self, area_id: str) -> None:
        self.context.content.image_content.pop(area_id, None)
        self.context.content.image_transforms.pop(area_id, None)

    def reset_content(self) -> None:
        self.context.content.clear()

    # --- rendering ---

    def render_now(self) -> Optional[RenderResult]:
        if not self.available:
            logger.warning("Render requested before a template was ready")
            return None
        result = self.compositor.render()
        if self.observer is not None:
            if result.ok:
                self.observer.render_completed(self.context.surface.snapshot())
            else:
                self.observer.render_failed(result.error or "render failed")
        return result

    async def render(self) -> Optional[RenderResult]:
        """Render after a short yield so the triggering caller is not blocked."""
        await asyncio.sleep(self.render_delay)
        return self.render_now()

    def frame(self) -> Optional[Image.Image]:
        if self.context.surface is None:
            return None
        return self.context.surface.snapshot()

    async def export(self, bleed: Optional[BleedSpec] = None) -> Optional[ExportResult]:
        return await self.exporter.export(bleed)
