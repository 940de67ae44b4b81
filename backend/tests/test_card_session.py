import asyncio
from unittest.mock import MagicMock

import pytest
from PIL import Image

from domain.models import BleedSpec, ImageTransform, Template
from services.asset_loader import AssetLoader
from services.card_session import CardSession, centered_transform, display_scale

RED = (255, 0, 0, 255)


def _template(**extra):
    data = {
        "id": "session-card",
        "width": 200,
        "height": 100,
        "contentLayers": {"midground": 50},
        "textAreas": [{"id": "name", "x": 10, "y": 10, "width": 180, "height": 30, "layer": "midground"}],
        "imageAreas": [{"id": "photo", "x": 0, "y": 40, "width": 100, "height": 50, "layer": "midground"}],
    }
    data.update(extra)
    return Template.from_dict(data)


def _session(tmp_path, observer=None):
    return CardSession(loader=AssetLoader(assets_root=tmp_path), observer=observer, render_delay=0)


def test_select_template_loads_layers_and_reports_failures(tmp_path):
    Image.new("RGBA", (200, 100), RED).save(tmp_path / "bg.png")
    template = _template(layers=[
        {"id": "frame", "url": "missing.png", "zIndex": 100},
        {"id": "bg", "url": "bg.png", "zIndex": 5},
        {"id": "blank", "zIndex": 1},
    ])
    session = _session(tmp_path)
    failed = asyncio.run(session.select_template(template))

    assert session.available
    assert failed == {"layers": ["frame"], "titles": []}
    assert [loaded.layer.id for loaded in session.context.layers] == ["bg"]


def test_select_template_loads_title_backgrounds(tmp_path):
    Image.new("RGBA", (8, 8), RED).save(tmp_path / "title.png")
    template = _template(verticalGroups=[{
        "id": "g", "width": 200,
        "items": [
            {"id": "s1", "titleLayer": {"bgUrl": "title.png"}},
            {"id": "s2", "titleLayer": {"bgUrl": "gone.png"}},
        ],
    }])
    session = _session(tmp_path)
    failed = asyncio.run(session.select_template(template))
    assert failed["titles"] == ["s2"]
    assert set(session.context.title_backgrounds) == {"s1"}


def test_select_template_resets_user_content(tmp_path):
    session = _session(tmp_path)
    asyncio.run(session.select_template(_template()))
    session.set_text("name", "Hello")
    session.set_image("photo", Image.new("RGBA", (10, 10)))

    asyncio.run(session.select_template(_template()))
    assert session.context.content.text_content == {}
    assert session.context.content.image_content == {}


def test_invalid_size_leaves_session_unavailable(tmp_path):
    session = _session(tmp_path)
    asyncio.run(session.select_template(_template(width=-5)))
    assert not session.available
    assert session.render_now() is None
    assert asyncio.run(session.export()) is None


def test_set_image_centres_by_default(tmp_path):
    session = _session(tmp_path)
    asyncio.run(session.select_template(_template()))
    session.set_image("photo", Image.new("RGBA", (200, 100)))
    transform = session.context.content.image_transforms["photo"]
    assert (transform.x, transform.y, transform.scale) == (50, 25, 1)


def test_set_image_transform_updates_only_given_fields(tmp_path):
    session = _session(tmp_path)
    asyncio.run(session.select_template(_template()))
    assert session.set_image_transform("photo", x=5) is None

    session.set_image("photo", Image.new("RGBA", (100, 50)), ImageTransform(1, 2, 1))
    updated = session.set_image_transform("photo", scale=2)
    assert (updated.x, updated.y, updated.scale) == (1, 2, 2)

    session.remove_image("photo")
    assert "photo" not in session.context.content.image_content
    assert "photo" not in session.context.content.image_transforms


def test_render_notifies_observer(tmp_path):
    observer = MagicMock()
    session = _session(tmp_path, observer=observer)
    asyncio.run(session.select_template(_template()))
    session.set_text("name", "Fire Drake")

    result = asyncio.run(session.render())

    assert result.ok
    assert "name" in result.drawn
    observer.render_completed.assert_called_once()
    frame = observer.render_completed.call_args.args[0]
    assert frame.size == (200, 100)
    observer.render_failed.assert_not_called()


def test_reset_content_clears_everything(tmp_path):
    session = _session(tmp_path)
    asyncio.run(session.select_template(_template()))
    session.set_text("name", "x")
    session.set_image("photo", Image.new("RGBA", (10, 10)))
    session.reset_content()
    assert session.context.content.text_content == {}
    assert session.context.content.image_transforms == {}


def test_export_after_render(tmp_path):
    session = _session(tmp_path)
    asyncio.run(session.select_template(_template()))
    session.render_now()
    result = asyncio.run(session.export(BleedSpec(10, 10, 10, 10)))
    assert result.size == (220, 120)


def test_display_scale_and_centering():
    assert display_scale(1000) == pytest.approx(0.5)
    assert display_scale(300) == 1.0
    assert display_scale(1417, max_display_width=500) == pytest.approx(500 / 1417)

    transform = centered_transform(Image.new("RGBA", (100, 100)), 50, 50, scale=2)
    assert (transform.x, transform.y) == (75, 75)
