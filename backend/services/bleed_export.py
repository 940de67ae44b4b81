"""
Bleed-aware export.

Extends the rendered card frame by independent top/right/bottom/left
margins, fills the whole raster (template background image or flat color),
places the card unscaled at (left, top), stamps corner crop marks and encodes
the result as a PNG with a timestamped filename.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from io import BytesIO
from typing import Optional, Tuple

from PIL import Image

from domain.models import BleedBackground, BleedSpec, FillMode, RenderContext
from services.asset_loader import AssetLoader, AssetLoadError
from services.surface import CardSurface
from settings import settings

logger = logging.getLogger(__name__)

CROP_MARK_WIDTH = 1


@dataclass
class ExportResult:
    filename: str
    data: bytes
    size: Tuple[int, int]
    card_offset: Tuple[int, int]
    mark_length: float


def default_bleed() -> BleedSpec:
    return BleedSpec(
        top=settings.BLEED_TOP,
        right=settings.BLEED_RIGHT,
        bottom=settings.BLEED_BOTTOM,
        left=settings.BLEED_LEFT,
    )


def export_filename(now_ms: Optional[int] = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"card-{now_ms}.png"


def contain_box(image: Image.Image, width: int, height: int) -> Tuple[float, float, float, float]:
    """Largest aspect-preserving box for image inside width x height, centered."""
    img_ratio = image.width / image.height
    target_ratio = width / height
    if img_ratio > target_ratio:
        draw_w = width
        draw_h = width / img_ratio
        return 0, (height - draw_h) / 2, draw_w, draw_h
    draw_h = height
    draw_w = height * img_ratio
    return (width - draw_w) / 2, 0, draw_w, draw_h


def fill_background(
    surface: CardSurface,
    fallback_color: str,
    image: Optional[Image.Image] = None,
    mode: FillMode = FillMode.CONTAIN,
) -> None:
    """Fill the entire surface; the flat color goes down first so no pixel is left empty."""
    surface.fill_rect((0, 0, surface.width, surface.height), fallback_color)
    if image is None:
        return
    if mode == FillMode.COVER:
        surface.blit(image, (0, 0, surface.width, surface.height))
    elif mode == FillMode.REPEAT:
        surface.fill_pattern(image)
    else:
        surface.blit(image, contain_box(image, surface.width, surface.height))


def draw_crop_marks(
    surface: CardSurface,
    bleed: BleedSpec,
    card_width: int,
    card_height: int,
    color: str,
) -> None:
    """Two short strokes per corner, pointing outward from the card edges."""
    mark = bleed.mark_length
    left, top = bleed.left, bleed.top
    right, bottom = left + card_width, top + card_height
    strokes = [
        ((left - mark, top), (left, top)),
        ((left, top - mark), (left, top)),
        ((right, top), (right + mark, top)),
        ((right, top - mark), (right, top)),
        ((left - mark, bottom), (left, bottom)),
        ((left, bottom), (left, bottom + mark)),
        ((right, bottom), (right + mark, bottom)),
        ((right, bottom), (right, bottom + mark)),
    ]
    for start, end in strokes:
        surface.stroke_line(start, end, color, width=CROP_MARK_WIDTH)


class BleedExporter:
    def __init__(self, context: RenderContext, loader: Optional[AssetLoader] = None):
        self.context = context
        self.loader = loader or AssetLoader()

    async def load_background(self, background: Optional[BleedBackground]) -> Optional[Image.Image]:
        if background is None:
            return None
        try:
            return await self.loader.load_image_async(background.url)
        except AssetLoadError as exc:
            logger.warning("Bleed background failed to load, using flat color: %s", exc)
            return None

    async def export(self, bleed: Optional[BleedSpec] = None) -> Optional[ExportResult]:
        """
        Compose the bleed-inclusive PNG.

        Returns None (and writes nothing) when there is no surface or template.
        """
        ctx = self.context
        if ctx.surface is None or ctx.template is None:
            logger.warning("Export skipped: no surface or template")
            return None
        bleed = bleed or default_bleed()
        frame = ctx.surface.snapshot()
        try:
            background = await self.load_background(ctx.template.bleed_background)
            result = self.compose(frame, bleed, background)
        except Exception:
            logger.exception("Export failed for template '%s'", ctx.template.id)
            return None
        logger.info("Exported %s (%dx%d)", result.filename, *result.size)
        return result

    def compose(
        self,
        frame: Image.Image,
        bleed: BleedSpec,
        background: Optional[Image.Image] = None,
    ) -> ExportResult:
        card_w, card_h = frame.size
        total_w = card_w + bleed.left + bleed.right
        total_h = card_h + bleed.top + bleed.bottom
        out = CardSurface(total_w, total_h)

        mode = FillMode.CONTAIN
        if background is not None and self.context.template and self.context.template.bleed_background:
            mode = self.context.template.bleed_background.fill_mode
        fill_background(out, self.context.theme.solid_color, background, mode)

        out.blit(frame, (bleed.left, bleed.top, card_w, card_h))
        draw_crop_marks(out, bleed, card_w, card_h, self.context.theme.crop_mark_color)

        buf = BytesIO()
        out.image.save(buf, format="PNG")
        return ExportResult(
            filename=export_filename(),
            data=buf.getvalue(),
            size=(total_w, total_h),
            card_offset=(bleed.left, bleed.top),
            mark_length=bleed.mark_length,
        )
