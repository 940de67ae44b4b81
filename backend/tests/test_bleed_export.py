import asyncio
import re
from io import BytesIO

import pytest
from PIL import Image

from domain.models import BleedSpec, CardTheme, FillMode, RenderContext, Template
from services.asset_loader import AssetLoader
from services.bleed_export import BleedExporter, contain_box, export_filename
from services.surface import CardSurface

GREY = (102, 102, 102, 255)
RED = (255, 0, 0, 255)


def _context(width=600, height=800, bleed_background=None):
    data = {"id": "t", "width": width, "height": height}
    if bleed_background:
        data["bleedBackground"] = bleed_background
    template = Template.from_dict(data)
    return RenderContext(theme=CardTheme(), template=template, surface=CardSurface(width, height))


def _export(ctx, loader, bleed):
    result = asyncio.run(BleedExporter(ctx, loader).export(bleed))
    assert result is not None
    return result, Image.open(BytesIO(result.data)).convert("RGBA")


def test_export_size_offset_and_marks(tmp_path):
    ctx = _context()
    ctx.surface.fill_rect((0, 0, 600, 800), "#0000ff")
    result, image = _export(ctx, AssetLoader(assets_root=tmp_path), BleedSpec(20, 20, 20, 20))

    assert result.size == (640, 840)
    assert image.size == (640, 840)
    assert result.card_offset == (20, 20)
    assert result.mark_length == 10
    assert re.fullmatch(r"card-\d+\.png", result.filename)

    # The card sits unscaled at (left, top).
    assert image.getpixel((21, 21)) == (0, 0, 255, 255)
    assert image.getpixel((619, 819)) == (0, 0, 255, 255)
    assert image.getpixel((5, 5)) == (255, 255, 255, 255)
    # Horizontal arm left of the top-left corner, vertical arm below bottom-right.
    assert image.getpixel((12, 20)) == GREY
    assert image.getpixel((620, 828)) == GREY


def test_failed_background_still_fully_opaque(tmp_path):
    ctx = _context(bleed_background={"url": "/missing/bleed.png", "fillMode": "cover"})
    result, image = _export(ctx, AssetLoader(assets_root=tmp_path), BleedSpec(20, 20, 20, 20))
    assert result.size == (640, 840)
    assert image.getchannel("A").getextrema() == (255, 255)


def test_asymmetric_margins(tmp_path):
    ctx = _context(width=100, height=100)
    result, image = _export(ctx, AssetLoader(assets_root=tmp_path), BleedSpec(top=10, right=30, bottom=0, left=5))
    assert image.size == (135, 110)
    assert result.card_offset == (5, 10)
    assert result.mark_length == 15


def test_zero_bleed_uses_minimum_mark(tmp_path):
    ctx = _context(width=50, height=50)
    result, image = _export(ctx, AssetLoader(assets_root=tmp_path), BleedSpec(0, 0, 0, 0))
    assert image.size == (50, 50)
    assert result.mark_length == 5


def test_cover_background_fills_the_margins(tmp_path):
    Image.new("RGBA", (10, 10), RED).save(tmp_path / "bleed.png")
    ctx = _context(width=100, height=100, bleed_background={"url": "/bleed.png", "fillMode": "cover"})
    _, image = _export(ctx, AssetLoader(assets_root=tmp_path), BleedSpec(20, 20, 20, 20))
    assert image.getpixel((2, 2)) == RED
    assert image.getpixel((137, 137)) == RED


def test_contain_background_letterboxes_on_flat_color(tmp_path):
    Image.new("RGBA", (100, 10), RED).save(tmp_path / "wide.png")
    ctx = _context(bleed_background={"url": "wide.png"})
    assert ctx.template.bleed_background.fill_mode == FillMode.CONTAIN
    _, image = _export(ctx, AssetLoader(assets_root=tmp_path), BleedSpec(20, 20, 20, 20))
    # 640 wide -> 64 tall band centered at y=388..452.
    assert image.getpixel((5, 5)) == (255, 255, 255, 255)
    assert image.getpixel((5, 420)) == RED


def test_repeat_background_tiles_from_origin(tmp_path):
    tile = Image.new("RGBA", (4, 4), (0, 0, 0, 0))
    tile.putpixel((0, 0), RED)
    tile.save(tmp_path / "tile.png")
    ctx = _context(width=10, height=10, bleed_background={"url": "tile.png", "repeat": True})
    _, image = _export(ctx, AssetLoader(assets_root=tmp_path), BleedSpec(20, 20, 20, 20))
    assert image.getpixel((0, 0)) == RED
    assert image.getpixel((4, 8)) == RED
    assert image.getpixel((1, 1)) == (255, 255, 255, 255)


def test_export_without_surface_returns_none(tmp_path):
    ctx = RenderContext()
    assert asyncio.run(BleedExporter(ctx, AssetLoader(assets_root=tmp_path)).export()) is None


def test_negative_bleed_rejected():
    with pytest.raises(ValueError):
        BleedSpec(top=-1)


def test_contain_box_and_filename():
    image = Image.new("RGBA", (100, 10))
    assert contain_box(image, 640, 840) == (0, 388.0, 640, 64.0)
    assert export_filename(1234) == "card-1234.png"
