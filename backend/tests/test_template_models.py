import json

import pytest

from domain.models import (
    CircleShape,
    FillMode,
    LockPosition,
    RectangleShape,
    Template,
    TemplateError,
    TextAlign,
    TrapezoidShape,
)
from services.template_catalog import TemplateCatalog, load_template_file


def test_bundled_catalog_loads_every_template():
    catalog = TemplateCatalog()
    ids = {t.id for t in catalog.list_templates()}
    assert ids == {"standard-card", "character-card", "item-card", "character-skill-card"}


def test_standard_card_fields():
    template = TemplateCatalog().get("standard-card")
    assert (template.width, template.height) == (600, 800)
    assert template.content_layers["foreground"] == 100
    assert [layer.z_index for layer in template.layers] == [5, 100]

    attribute = next(a for a in template.text_areas if a.id == "card-attribute")
    assert attribute.lock_position == LockPosition.BOTTOM
    assert attribute.align == TextAlign.RIGHT

    icon = template.find_image_area("icon-image")
    assert icon.shape == CircleShape()
    assert template.bleed_background.fill_mode == FillMode.COVER


def test_skill_card_group():
    template = TemplateCatalog().get("character-skill-card")
    group = template.vertical_groups[0]
    assert group.spacing == 15
    assert [item.id for item in group.items] == ["skill-1", "skill-2", "skill-3"]
    first = group.items[0]
    assert first.padding.left == 12
    assert first.title_layer.z_index == 60
    assert first.title_layer.font_size == 20
    assert group.items[2].title_layer.font_size is None


def test_item_card_trapezoid():
    area = TemplateCatalog().get("item-card").find_image_area("item-image")
    assert area.shape == TrapezoidShape(top_width=240)


def test_defaults_for_sparse_document():
    template = Template.from_dict({
        "id": "sparse",
        "textAreas": [{"id": "t", "x": 0, "y": 0, "width": 10, "height": 10}],
        "imageAreas": [{"id": "i", "x": 0, "y": 0, "width": 10, "height": 10, "shape": "star"}],
    })
    assert (template.width, template.height) == (600, 800)
    assert template.name == "sparse"
    assert template.text_areas[0].font_size == 16
    assert template.text_areas[0].lock_position is None
    assert template.image_areas[0].shape == RectangleShape()
    assert template.bleed_background is None


def test_duplicate_region_ids_rejected():
    with pytest.raises(TemplateError):
        Template.from_dict({
            "id": "dup",
            "textAreas": [{"id": "x", "x": 0, "y": 0, "width": 1, "height": 1}],
            "verticalGroups": [{"id": "g", "items": [{"id": "x"}]}],
        })


@pytest.mark.parametrize("doc", [
    [],
    {"name": "no id"},
    {"id": "t", "width": "wide"},
    {"id": "t", "textAreas": [{"id": "a", "lockPosition": "middle"}]},
    {"id": "t", "bleedBackground": {"url": "x.png", "fillMode": "stretch"}},
    {"id": "t", "contentLayers": {"midground": "high"}},
])
def test_malformed_documents_raise_template_error(doc):
    with pytest.raises(TemplateError):
        Template.from_dict(doc)


def test_catalog_skips_malformed_files(tmp_path):
    (tmp_path / "good.json").write_text(json.dumps({"id": "good"}))
    (tmp_path / "bad.json").write_text("{not json")
    catalog = TemplateCatalog(tmp_path)
    assert [t.id for t in catalog.list_templates()] == ["good"]
    assert catalog.get("bad") is None
    assert catalog.get_document("good") == {"id": "good"}


def test_load_template_file_wraps_io_errors(tmp_path):
    with pytest.raises(TemplateError):
        load_template_file(tmp_path / "absent.json")
