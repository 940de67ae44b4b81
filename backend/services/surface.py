"""
Immediate-mode drawing surface backed by a Pillow RGBA image.

Every operation paints onto a transparent scratch layer which is then
alpha-composited onto the frame, so translucent fills blend instead of
overwriting. While a clip is active the scratch layer's alpha is multiplied
by the clip mask before compositing.
"""
from __future__ import annotations

import re
from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple

from PIL import Image, ImageChops, ImageColor, ImageDraw

from domain.models import FontSpec
from services.fonts import load_font
from services.shape_clip import ClipPath, render_clip_mask

Box = Tuple[float, float, float, float]  # x, y, width, height
RGBA = Tuple[int, int, int, int]

_CSS_RGBA = re.compile(
    r"^rgba?\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*(?:,\s*([0-9.]+%?)\s*)?\)$",
    re.IGNORECASE,
)


def parse_color(color: str) -> RGBA:
    """Parse CSS-ish colors, including rgba() with a 0..1 alpha."""
    match = _CSS_RGBA.match(color.strip())
    if match:
        r, g, b, a = match.groups()
        if a is None:
            alpha = 255
        elif a.endswith("%"):
            alpha = round(float(a[:-1]) * 2.55)
        elif "." in a or float(a) <= 1:
            alpha = round(float(a) * 255)
        else:
            alpha = int(a)
        return int(r), int(g), int(b), max(0, min(255, alpha))
    rgb = ImageColor.getrgb(color)
    if len(rgb) == 3:
        return rgb[0], rgb[1], rgb[2], 255
    return rgb  # type: ignore[return-value]


class CardSurface:
    """A fixed-size RGBA frame with clip support."""

    def __init__(self, width: int, height: int):
        if int(width) <= 0 or int(height) <= 0:
            raise ValueError(f"Surface size must be positive, got {width}x{height}")
        self.width = int(width)
        self.height = int(height)
        self.image = Image.new("RGBA", self.size, (0, 0, 0, 0))
        self._clip_masks: List[Image.Image] = []

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def clip_depth(self) -> int:
        return len(self._clip_masks)

    def clear(self) -> None:
        self.image = Image.new("RGBA", self.size, (0, 0, 0, 0))

    def snapshot(self) -> Image.Image:
        return self.image.copy()

    # --- clipping ---

    @contextmanager
    def clip(self, path: ClipPath) -> Iterator["CardSurface"]:
        """Restrict drawing to path for the duration of the block."""
        mask = render_clip_mask(path, self.size)
        if self._clip_masks:
            mask = ImageChops.multiply(self._clip_masks[-1], mask)
        self._clip_masks.append(mask)
        try:
            yield self
        finally:
            self._clip_masks.pop()

    def _layer(self) -> Image.Image:
        return Image.new("RGBA", self.size, (0, 0, 0, 0))

    def _composite(self, layer: Image.Image) -> None:
        if self._clip_masks:
            layer.putalpha(ImageChops.multiply(layer.getchannel("A"), self._clip_masks[-1]))
        self.image.alpha_composite(layer)

    # --- primitives ---

    def fill_rect(self, box: Box, color: str) -> None:
        x, y, w, h = box
        if w <= 0 or h <= 0:
            return
        layer = self._layer()
        ImageDraw.Draw(layer).rectangle(
            (round(x), round(y), round(x + w) - 1, round(y + h) - 1),
            fill=parse_color(color),
        )
        self._composite(layer)

    def stroke_rect(self, box: Box, color: str, width: int = 1) -> None:
        x, y, w, h = box
        if w <= 0 or h <= 0:
            return
        layer = self._layer()
        ImageDraw.Draw(layer).rectangle(
            (round(x), round(y), round(x + w) - 1, round(y + h) - 1),
            outline=parse_color(color),
            width=width,
        )
        self._composite(layer)

    def stroke_line(
        self,
        start: Tuple[float, float],
        end: Tuple[float, float],
        color: str,
        width: int = 1,
    ) -> None:
        layer = self._layer()
        ImageDraw.Draw(layer).line(
            [(round(start[0]), round(start[1])), (round(end[0]), round(end[1]))],
            fill=parse_color(color),
            width=width,
        )
        self._composite(layer)

    def blit(self, image: Image.Image, dest: Box, src: Optional[Box] = None) -> None:
        """Draw the src rect of image (whole image by default) into dest."""
        dx, dy, dw, dh = dest
        target = (round(dw), round(dh))
        if target[0] <= 0 or target[1] <= 0:
            return
        img = image.convert("RGBA")
        if src is not None:
            sx, sy, sw, sh = src
            img = img.crop((round(sx), round(sy), round(sx + sw), round(sy + sh)))
        if img.size != target:
            img = img.resize(target, Image.Resampling.LANCZOS)
        layer = self._layer()
        layer.paste(img, (round(dx), round(dy)))
        self._composite(layer)

    def fill_pattern(self, tile: Image.Image) -> None:
        """Tile an image across the whole surface, starting at the origin."""
        tile = tile.convert("RGBA")
        tw, th = tile.size
        if tw <= 0 or th <= 0:
            return
        layer = self._layer()
        for ty in range(0, self.height, th):
            for tx in range(0, self.width, tw):
                layer.paste(tile, (tx, ty))
        self._composite(layer)

    # --- text ---

    def measure_text(self, text: str, font: FontSpec) -> float:
        if not text:
            return 0.0
        return float(load_font(font).getlength(text))

    def fill_text(
        self,
        text: str,
        xy: Tuple[float, float],
        font: FontSpec,
        color: str,
        anchor: str = "ls",
    ) -> None:
        if not text:
            return
        layer = self._layer()
        ImageDraw.Draw(layer).text(xy, text, font=load_font(font), fill=parse_color(color), anchor=anchor)
        self._composite(layer)
