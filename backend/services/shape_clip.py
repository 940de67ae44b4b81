"""
Clip boundaries for image regions.

build_clip_path turns a shape variant plus the region box into a closed
path (polygon or ellipse); render_clip_mask rasterises that path into an
"L" mask the surface uses while the region's image is drawn.
"""
from dataclasses import dataclass
from typing import List, Optional, Tuple

from PIL import Image, ImageDraw

from domain.models import (
    CircleShape,
    DiamondShape,
    RectangleShape,
    Shape,
    TrapezoidShape,
)

Point = Tuple[float, float]

TRAPEZOID_DEFAULT_TOP_RATIO = 0.8


@dataclass(frozen=True)
class ClipPath:
    """Either a closed polygon or an ellipse bounding box."""
    polygon: Optional[List[Point]] = None
    ellipse: Optional[Tuple[float, float, float, float]] = None


def build_clip_path(shape: Shape, x: float, y: float, width: float, height: float) -> ClipPath:
    if isinstance(shape, RectangleShape):
        return ClipPath(polygon=[(x, y), (x + width, y), (x + width, y + height), (x, y + height)])
    if isinstance(shape, CircleShape):
        cx = x + width / 2
        cy = y + height / 2
        r = min(width, height) / 2
        return ClipPath(ellipse=(cx - r, cy - r, cx + r, cy + r))
    if isinstance(shape, DiamondShape):
        return ClipPath(polygon=[
            (x + width / 2, y),
            (x + width, y + height / 2),
            (x + width / 2, y + height),
            (x, y + height / 2),
        ])
    if isinstance(shape, TrapezoidShape):
        top_width = shape.top_width or width * TRAPEZOID_DEFAULT_TOP_RATIO
        inset = (width - top_width) / 2
        return ClipPath(polygon=[
            (x + inset, y),
            (x + width - inset, y),
            (x + width, y + height),
            (x, y + height),
        ])
    raise TypeError(f"Unsupported shape variant: {shape!r}")


def render_clip_mask(path: ClipPath, size: Tuple[int, int]) -> Image.Image:
    """Rasterise a clip path to a full-surface mask (255 inside, 0 outside)."""
    mask = Image.new("L", size, 0)
    draw = ImageDraw.Draw(mask)
    if path.ellipse is not None:
        draw.ellipse(path.ellipse, fill=255)
    elif path.polygon:
        # Pillow's polygon fill includes the right/bottom edge pixel; trim the
        # axis-aligned rectangle case so a WxH box covers exactly WxH pixels.
        xs = [p[0] for p in path.polygon]
        ys = [p[1] for p in path.polygon]
        if len(path.polygon) == 4 and len(set(xs)) <= 2 and len(set(ys)) <= 2:
            if max(xs) - min(xs) >= 1 and max(ys) - min(ys) >= 1:
                draw.rectangle((min(xs), min(ys), max(xs) - 1, max(ys) - 1), fill=255)
        else:
            draw.polygon(path.polygon, fill=255)
    return mask
