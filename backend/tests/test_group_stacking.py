import pytest

from domain.models import Template, VerticalGroup
from services.text_layout import compute_item_layouts, layout_group

WORD = "aaaa"


def _group(items, spacing=15):
    return VerticalGroup.from_dict({
        "id": "skills",
        "x": 0,
        "y": 100,
        "width": 300,
        "spacing": spacing,
        "items": items,
    })


def _item(item_id, **extra):
    data = {"id": item_id, "title": item_id, "titleWidth": 100, "fontSize": 16, "titleFontSize": 18}
    data.update(extra)
    return data


def test_items_stack_in_order_with_spacing(measurer):
    group = _group([_item("s1"), _item("s2"), _item("s3")])
    text = {"s1": WORD, "s2": " ".join([WORD] * 10), "s3": WORD}

    layout = layout_group(group, text, measurer)
    s1, s2, s3 = layout.items

    # Short bodies are smaller than the 1.8 x title font size title block.
    assert s1.height == pytest.approx(32.4)
    # Four words per 200px line, ten words -> three lines of 19.2px.
    assert s2.content_height == pytest.approx(57.6)
    assert s2.height == pytest.approx(57.6)
    assert s1.top == 100
    assert s2.top == pytest.approx(100 + 32.4 + 15)
    assert s3.top == pytest.approx(100 + 32.4 + 15 + 57.6 + 15)
    assert layout.total_height == pytest.approx(32.4 + 57.6 + 32.4 + 30)


def test_growing_an_item_pushes_later_items_down(measurer):
    group = _group([_item("s1"), _item("s2")])
    short = layout_group(group, {"s1": WORD}, measurer)
    tall = layout_group(group, {"s1": " ".join([WORD] * 20)}, measurer)

    delta = tall.items[0].height - short.items[0].height
    assert delta > 0
    assert tall.items[1].top - short.items[1].top == pytest.approx(delta)


def test_padding_adds_to_both_heights(measurer):
    padding = {"top": 8, "right": 12, "bottom": 8, "left": 12}
    group = _group([_item("s1", padding=padding)])
    item = layout_group(group, {"s1": WORD}, measurer).items[0]

    assert item.content_width == 300 - 100 - 24
    assert item.title_height == pytest.approx(32.4 + 16)
    assert item.height == pytest.approx(32.4 + 16)


def test_placeholder_is_laid_out_when_no_user_text(measurer):
    group = _group([_item("s1", contentPlaceholder=" ".join([WORD] * 10))])
    item = layout_group(group, {}, measurer).items[0]
    assert item.text.startswith(WORD)
    assert item.content_height == pytest.approx(57.6)


def test_item_without_text_is_title_height(measurer):
    group = _group([_item("s1")])
    item = layout_group(group, {}, measurer).items[0]
    assert item.content_height == 0
    assert item.height == pytest.approx(32.4)


def test_empty_group_has_no_height(measurer):
    assert layout_group(_group([]), {}, measurer).total_height == 0


def test_compute_item_layouts_covers_every_group(measurer):
    template = Template.from_dict({
        "id": "t",
        "width": 600,
        "height": 800,
        "verticalGroups": [
            {"id": "g1", "x": 0, "y": 0, "width": 300, "items": [_item("a"), _item("b")]},
            {"id": "g2", "x": 300, "y": 50, "width": 300, "items": [_item("c")]},
        ],
    })
    layouts = compute_item_layouts(template, {}, measurer)
    assert set(layouts) == {"a", "b", "c"}
    assert layouts["c"].top == 50
    assert layouts["c"].x == 300
