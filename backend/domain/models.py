"""
Core domain models for the card composer.
These are framework-agnostic and can be used across all services.

Template models mirror the JSON template document (camelCase keys) and are
frozen once loaded. Anything derived while rendering (group item heights,
loaded images) lives on the RenderContext or in render-scoped maps instead.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Dict, List, Optional, Union

if TYPE_CHECKING:
    from PIL import Image

    from services.surface import CardSurface


DEFAULT_PRIORITY = 50
DEFAULT_FONT_FAMILY = "Arial, sans-serif"


class TemplateError(ValueError):
    """Raised when a template document is malformed."""


class TextAlign(str, Enum):
    """Horizontal alignment of text inside its box."""
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class LockPosition(str, Enum):
    """Where a text block sits when it is shorter than its box."""
    TOP = "top"
    BOTTOM = "bottom"


class FillMode(str, Enum):
    """How the export background image fills the bleed-inclusive raster."""
    COVER = "cover"
    REPEAT = "repeat"
    CONTAIN = "contain"


def _num(data: Dict[str, Any], key: str, default: float = 0) -> float:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TemplateError(f"Field '{key}' must be a number, got {value!r}")
    return value


def _opt_int(data: Dict[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TemplateError(f"Field '{key}' must be a number, got {value!r}")
    return int(value)


def _require_id(data: Dict[str, Any], kind: str) -> str:
    ident = data.get("id")
    if not ident or not isinstance(ident, str):
        raise TemplateError(f"{kind} is missing a string 'id': {data!r}")
    return ident


@dataclass(frozen=True)
class FontSpec:
    """Font descriptor: CSS-like family list, pixel size, weight and style."""
    family: str = DEFAULT_FONT_FAMILY
    size: float = 16
    weight: str = "normal"
    style: str = "normal"

    @property
    def is_bold(self) -> bool:
        return self.weight in ("bold", "bolder") or (self.weight.isdigit() and int(self.weight) >= 600)

    @property
    def is_italic(self) -> bool:
        return self.style in ("italic", "oblique")


@dataclass(frozen=True)
class Padding:
    top: float = 0
    right: float = 0
    bottom: float = 0
    left: float = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Padding":
        data = data or {}
        return cls(
            top=_num(data, "top"),
            right=_num(data, "right"),
            bottom=_num(data, "bottom"),
            left=_num(data, "left"),
        )


# Shapes: a closed set of variants, each carrying only its own parameters.

@dataclass(frozen=True)
class RectangleShape:
    kind: ClassVar[str] = "rectangle"


@dataclass(frozen=True)
class CircleShape:
    kind: ClassVar[str] = "circle"


@dataclass(frozen=True)
class DiamondShape:
    kind: ClassVar[str] = "diamond"


@dataclass(frozen=True)
class TrapezoidShape:
    kind: ClassVar[str] = "trapezoid"
    top_width: Optional[float] = None  # None -> 80% of the box width


Shape = Union[RectangleShape, CircleShape, DiamondShape, TrapezoidShape]


def parse_shape(name: Optional[str], params: Optional[Dict[str, Any]] = None) -> Shape:
    """Map a template shape string to its variant; unknown names become rectangles."""
    if name == CircleShape.kind:
        return CircleShape()
    if name == DiamondShape.kind:
        return DiamondShape()
    if name == TrapezoidShape.kind:
        top_width = (params or {}).get("topWidth")
        return TrapezoidShape(top_width=float(top_width) if top_width else None)
    return RectangleShape()


@dataclass(frozen=True)
class BaseLayer:
    """A static artwork layer of the template."""
    id: str
    url: Optional[str] = None
    x: float = 0
    y: float = 0
    width: Optional[float] = None  # None -> natural image size
    height: Optional[float] = None
    z_index: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BaseLayer":
        width = data.get("width")
        height = data.get("height")
        return cls(
            id=_require_id(data, "Layer"),
            url=data.get("url"),
            x=_num(data, "x"),
            y=_num(data, "y"),
            width=_num(data, "width") if width is not None else None,
            height=_num(data, "height") if height is not None else None,
            z_index=_opt_int(data, "zIndex") or 0,
        )


@dataclass(frozen=True)
class TextArea:
    """A user-editable text region."""
    id: str
    x: float
    y: float
    width: float
    height: float
    placeholder: str = ""
    font_size: float = 16
    align: TextAlign = TextAlign.LEFT
    layer: Optional[str] = None
    has_background: bool = False
    lock_position: Optional[LockPosition] = None
    text_color: str = "#000000"
    font_family: str = DEFAULT_FONT_FAMILY
    font_weight: str = "normal"
    font_style: str = "normal"
    bg_color: Optional[str] = None
    z_index: Optional[int] = None

    @property
    def font(self) -> FontSpec:
        return FontSpec(self.font_family, self.font_size, self.font_weight, self.font_style)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TextArea":
        lock = data.get("lockPosition")
        try:
            align = TextAlign(data.get("align") or "left")
            lock_position = LockPosition(lock) if lock else None
        except ValueError as exc:
            raise TemplateError(f"Text area '{data.get('id')}': {exc}") from exc
        return cls(
            id=_require_id(data, "Text area"),
            x=_num(data, "x"),
            y=_num(data, "y"),
            width=_num(data, "width"),
            height=_num(data, "height"),
            placeholder=data.get("placeholder") or "",
            font_size=_num(data, "fontSize", 16) or 16,
            align=align,
            layer=data.get("layer"),
            has_background=bool(data.get("hasBackground", False)),
            lock_position=lock_position,
            text_color=data.get("textColor") or "#000000",
            font_family=data.get("fontFamily") or DEFAULT_FONT_FAMILY,
            font_weight=str(data.get("fontWeight") or "normal"),
            font_style=data.get("fontStyle") or "normal",
            bg_color=data.get("bgColor"),
            z_index=_opt_int(data, "zIndex"),
        )


@dataclass(frozen=True)
class ImageArea:
    """A region that shows an uploaded image clipped to a shape."""
    id: str
    x: float
    y: float
    width: float
    height: float
    placeholder: str = ""
    shape: Shape = field(default_factory=RectangleShape)
    layer: Optional[str] = None
    z_index: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImageArea":
        return cls(
            id=_require_id(data, "Image area"),
            x=_num(data, "x"),
            y=_num(data, "y"),
            width=_num(data, "width"),
            height=_num(data, "height"),
            placeholder=data.get("placeholder") or "",
            shape=parse_shape(data.get("shape"), data.get("trapezoidParams")),
            layer=data.get("layer"),
            z_index=_opt_int(data, "zIndex"),
        )


@dataclass(frozen=True)
class TitleLayer:
    """Decorative header of a skill item; drawn at a fixed height."""
    text: Optional[str] = None
    font_family: Optional[str] = None
    font_size: Optional[float] = None
    font_weight: Optional[str] = None
    text_color: Optional[str] = None
    bg_url: Optional[str] = None
    bg_color: Optional[str] = None
    z_index: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TitleLayer":
        font_size = data.get("fontSize")
        weight = data.get("fontWeight")
        return cls(
            text=data.get("text"),
            font_family=data.get("fontFamily"),
            font_size=_num(data, "fontSize") if font_size is not None else None,
            font_weight=str(weight) if weight is not None else None,
            text_color=data.get("textColor"),
            bg_url=data.get("bgUrl"),
            bg_color=data.get("bgColor"),
            z_index=_opt_int(data, "zIndex"),
        )


@dataclass(frozen=True)
class SkillItem:
    """One titled, variable-height entry of a vertical group."""
    id: str
    title: str = ""
    title_width: float = 100
    content_placeholder: str = ""
    font_size: float = 16
    title_font_size: float = 18
    title_font_weight: str = "bold"
    title_font_family: str = DEFAULT_FONT_FAMILY
    font_family: str = DEFAULT_FONT_FAMILY
    font_weight: str = "normal"
    font_style: str = "normal"
    text_color: str = "#000000"
    has_background: bool = False
    bg_color: Optional[str] = None
    padding: Padding = field(default_factory=Padding)
    title_layer: Optional[TitleLayer] = None

    @property
    def font(self) -> FontSpec:
        return FontSpec(self.font_family, self.font_size, self.font_weight, self.font_style)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SkillItem":
        title_layer = data.get("titleLayer")
        return cls(
            id=_require_id(data, "Skill item"),
            title=data.get("title") or "",
            title_width=_num(data, "titleWidth", 100) or 100,
            content_placeholder=data.get("contentPlaceholder") or "",
            font_size=_num(data, "fontSize", 16) or 16,
            title_font_size=_num(data, "titleFontSize", 18) or 18,
            title_font_weight=str(data.get("titleFontWeight") or "bold"),
            title_font_family=data.get("titleFontFamily") or DEFAULT_FONT_FAMILY,
            font_family=data.get("fontFamily") or DEFAULT_FONT_FAMILY,
            font_weight=str(data.get("fontWeight") or "normal"),
            font_style=data.get("fontStyle") or "normal",
            text_color=data.get("textColor") or "#000000",
            has_background=bool(data.get("hasBackground", False)),
            bg_color=data.get("bgColor"),
            padding=Padding.from_dict(data.get("padding")),
            title_layer=TitleLayer.from_dict(title_layer) if title_layer else None,
        )


@dataclass(frozen=True)
class VerticalGroup:
    """Skill items stacked top-to-bottom with content-driven heights."""
    id: str
    x: float = 0
    y: float = 0
    width: float = 0
    spacing: float = 15
    layer: Optional[str] = None
    items: List[SkillItem] = field(default_factory=list)
    z_index: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VerticalGroup":
        spacing = data.get("spacing")
        return cls(
            id=_require_id(data, "Vertical group"),
            x=_num(data, "x"),
            y=_num(data, "y"),
            width=_num(data, "width"),
            spacing=_num(data, "spacing") if spacing is not None else 15,
            layer=data.get("layer"),
            items=[SkillItem.from_dict(item) for item in data.get("items") or []],
            z_index=_opt_int(data, "zIndex"),
        )


@dataclass(frozen=True)
class BleedBackground:
    url: str
    fill_mode: FillMode = FillMode.CONTAIN

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["BleedBackground"]:
        url = data.get("url")
        if not url:
            return None
        mode = data.get("fillMode")
        if mode:
            try:
                fill_mode = FillMode(mode)
            except ValueError as exc:
                raise TemplateError(f"Unknown bleed fill mode: {mode!r}") from exc
        elif data.get("repeat"):
            fill_mode = FillMode.REPEAT
        else:
            fill_mode = FillMode.CONTAIN
        return cls(url=url, fill_mode=fill_mode)


@dataclass(frozen=True)
class Template:
    """
    A card template.

    contentLayers maps a semantic layer name ("background", "midground",
    "foreground") to the draw priority shared by every region on that layer.
    """
    id: str
    name: str
    width: int
    height: int
    content_layers: Dict[str, int] = field(default_factory=dict)
    layers: List[BaseLayer] = field(default_factory=list)
    text_areas: List[TextArea] = field(default_factory=list)
    image_areas: List[ImageArea] = field(default_factory=list)
    vertical_groups: List[VerticalGroup] = field(default_factory=list)
    thumbnail_url: Optional[str] = None
    bleed_background: Optional[BleedBackground] = None

    def content_ids(self) -> List[str]:
        """Ids of every text region, image region and group item, in document order."""
        ids = [area.id for area in self.text_areas]
        ids.extend(area.id for area in self.image_areas)
        for group in self.vertical_groups:
            ids.extend(item.id for item in group.items)
        return ids

    def find_image_area(self, area_id: str) -> Optional[ImageArea]:
        return next((a for a in self.image_areas if a.id == area_id), None)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Template":
        if not isinstance(data, dict):
            raise TemplateError("Template document must be an object")
        content_layers = data.get("contentLayers") or {}
        if not isinstance(content_layers, dict):
            raise TemplateError("'contentLayers' must map layer names to priorities")
        try:
            template = cls(
                id=_require_id(data, "Template"),
                name=data.get("name") or data["id"],
                width=int(_num(data, "width", 600) or 600),
                height=int(_num(data, "height", 800) or 800),
                content_layers={str(k): int(v) for k, v in content_layers.items()},
                layers=[BaseLayer.from_dict(layer) for layer in data.get("layers") or []],
                text_areas=[TextArea.from_dict(a) for a in data.get("textAreas") or []],
                image_areas=[ImageArea.from_dict(a) for a in data.get("imageAreas") or []],
                vertical_groups=[VerticalGroup.from_dict(g) for g in data.get("verticalGroups") or []],
                thumbnail_url=data.get("thumbnailUrl"),
                bleed_background=BleedBackground.from_dict(data.get("bleedBackground") or {}),
            )
        except TemplateError:
            raise
        except (TypeError, AttributeError, ValueError) as exc:
            raise TemplateError(f"Malformed template document: {exc}") from exc

        seen = set()
        for ident in template.content_ids():
            if ident in seen:
                raise TemplateError(f"Duplicate region id '{ident}' in template '{template.id}'")
            seen.add(ident)
        return template


# User content (owned by the caller, supplied per render)

@dataclass
class ImageTransform:
    """Pixel offset into the scaled image plus the scale factor."""
    x: float = 0
    y: float = 0
    scale: float = 1


@dataclass
class UserContent:
    text_content: Dict[str, str] = field(default_factory=dict)
    image_content: Dict[str, "Image.Image"] = field(default_factory=dict)
    image_transforms: Dict[str, ImageTransform] = field(default_factory=dict)

    def transform_for(self, area_id: str) -> ImageTransform:
        return self.image_transforms.get(area_id) or ImageTransform()

    def clear(self) -> None:
        self.text_content.clear()
        self.image_content.clear()
        self.image_transforms.clear()


@dataclass(frozen=True)
class BleedSpec:
    """Independent bleed margins in pixels."""
    top: int = 0
    right: int = 0
    bottom: int = 0
    left: int = 0

    def __post_init__(self) -> None:
        for name in ("top", "right", "bottom", "left"):
            if getattr(self, name) < 0:
                raise ValueError(f"Bleed margin '{name}' must be non-negative")

    @property
    def mark_length(self) -> float:
        """Crop-mark arm length: half the largest margin, at least 5px."""
        return max(max(self.top, self.right, self.bottom, self.left) / 2, 5)


# Theme / Render context

@dataclass
class CardTheme:
    """
    Colors used by the compositor outside of template-provided values.
    Colors are any string Pillow's ImageColor understands (incl. rgba()).
    """
    name: str = "default"
    solid_color: str = "#ffffff"
    solid_border_color: str = "#dddddd"
    text_bg_color: str = "rgba(255, 255, 255, 0.8)"
    text_border_color: str = "rgba(0, 0, 0, 0.1)"
    title_bg_color: str = "rgba(200, 200, 200, 0.8)"
    crop_mark_color: str = "#666666"
    error_bg_color: str = "#ffebee"
    error_text_color: str = "#b71c1c"
    error_font_family: str = DEFAULT_FONT_FAMILY


@dataclass
class LoadedLayer:
    """A base layer whose image finished loading."""
    layer: BaseLayer
    image: "Image.Image"


@dataclass
class RenderContext:
    """
    Context shared by the compositor and the exporter.
    Constructed once per session and passed in explicitly.
    """
    theme: CardTheme = field(default_factory=CardTheme)
    template: Optional[Template] = None
    surface: Optional["CardSurface"] = None
    content: UserContent = field(default_factory=UserContent)
    layers: List[LoadedLayer] = field(default_factory=list)
    title_backgrounds: Dict[str, "Image.Image"] = field(default_factory=dict)

    @property
    def ready(self) -> bool:
        return self.template is not None and self.surface is not None
