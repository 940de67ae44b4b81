"""
Card API routes.

Templates are read from the catalog; render and export build a fresh
CardSession per request from the posted user content.
"""
import asyncio
import logging
from io import BytesIO
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, Field
from PIL import Image

from domain.models import BleedSpec, Template
from services.asset_loader import AssetLoader, AssetLoadError
from services.card_session import CardSession, display_scale
from services.template_catalog import TemplateCatalog
from settings import settings
from storage.file_storage import FileStorage

router = APIRouter()
catalog = TemplateCatalog()
loader = AssetLoader()
storage = FileStorage()
logger = logging.getLogger(__name__)


class TemplateSummary(BaseModel):
    id: str
    name: str
    width: int
    height: int
    thumbnail_url: Optional[str] = None
    text_ids: List[str]
    image_ids: List[str]


class TransformIn(BaseModel):
    x: Optional[float] = None
    y: Optional[float] = None
    scale: Optional[float] = Field(default=None, gt=0)


class BleedIn(BaseModel):
    top: int = Field(default_factory=lambda: settings.BLEED_TOP, ge=0)
    right: int = Field(default_factory=lambda: settings.BLEED_RIGHT, ge=0)
    bottom: int = Field(default_factory=lambda: settings.BLEED_BOTTOM, ge=0)
    left: int = Field(default_factory=lambda: settings.BLEED_LEFT, ge=0)


class CardContent(BaseModel):
    text_content: Dict[str, str] = Field(default_factory=dict)
    # base64 or data: URLs keyed by image region id
    images: Dict[str, str] = Field(default_factory=dict)
    image_transforms: Dict[str, TransformIn] = Field(default_factory=dict)


class ExportRequest(CardContent):
    bleed: Optional[BleedIn] = None


def template_to_summary(template: Template) -> TemplateSummary:
    """Convert a Template to an API summary."""
    text_ids = [area.id for area in template.text_areas]
    for group in template.vertical_groups:
        text_ids.extend(item.id for item in group.items)
    return TemplateSummary(
        id=template.id,
        name=template.name,
        width=template.width,
        height=template.height,
        thumbnail_url=template.thumbnail_url,
        text_ids=text_ids,
        image_ids=[area.id for area in template.image_areas],
    )


def get_template_or_404(template_id: str) -> Template:
    template = catalog.get(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")
    return template


async def build_session(template: Template, content: CardContent) -> CardSession:
    """Select the template and apply the posted content."""
    session = CardSession(loader=loader, render_delay=0)
    await session.select_template(template)
    if not session.available:
        raise HTTPException(status_code=503, detail="Drawing surface unavailable")

    for region_id, text in content.text_content.items():
        session.set_text(region_id, text)

    for area_id, source in content.images.items():
        if template.find_image_area(area_id) is None:
            raise HTTPException(status_code=422, detail=f"Unknown image region: {area_id}")
        try:
            image = await loader.load_image_async(source)
        except AssetLoadError as exc:
            raise HTTPException(status_code=422, detail=f"Invalid image for {area_id}: {exc}") from exc
        session.set_image(area_id, image)
        transform = content.image_transforms.get(area_id)
        if transform is not None:
            session.set_image_transform(area_id, transform.x, transform.y, transform.scale)
    return session


def png_response(image: Image.Image) -> Response:
    buf = BytesIO()
    image.save(buf, format="PNG")
    return Response(content=buf.getvalue(), media_type="image/png")


@router.get("", response_model=List[TemplateSummary])
async def list_templates():
    """List every template in the catalog."""
    return [template_to_summary(t) for t in catalog.list_templates()]


@router.get("/{template_id}")
async def get_template(template_id: str) -> Dict[str, Any]:
    """Return the raw template document."""
    get_template_or_404(template_id)
    document = catalog.get_document(template_id)
    if document is None:
        raise HTTPException(status_code=404, detail="Template not found")
    return document


@router.post("/{template_id}/render")
async def render_card(template_id: str, content: CardContent, preview: bool = False):
    """Render the card and return it as a PNG (downscaled for preview if asked)."""
    template = get_template_or_404(template_id)
    session = await build_session(template, content)
    result = await asyncio.to_thread(session.render_now)
    frame = session.frame()
    if result is None or frame is None:
        raise HTTPException(status_code=503, detail="Render unavailable")
    if preview:
        scale = display_scale(frame.width)
        if scale < 1:
            size = (max(1, round(frame.width * scale)), max(1, round(frame.height * scale)))
            frame = frame.resize(size, Image.Resampling.LANCZOS)
    response = png_response(frame)
    if result.failed:
        response.headers["X-Card-Failed-Elements"] = ",".join(result.failed)
    return response


@router.post("/{template_id}/export")
async def export_card(template_id: str, request: ExportRequest):
    """Render, then export the bleed-inclusive PNG as an attachment."""
    template = get_template_or_404(template_id)
    session = await build_session(template, request)
    if await asyncio.to_thread(session.render_now) is None:
        raise HTTPException(status_code=503, detail="Render unavailable")

    bleed = None
    if request.bleed is not None:
        bleed = BleedSpec(
            top=request.bleed.top,
            right=request.bleed.right,
            bottom=request.bleed.bottom,
            left=request.bleed.left,
        )
    result = await session.export(bleed)
    if result is None:
        raise HTTPException(status_code=503, detail="Export unavailable")

    headers = {"Content-Disposition": f'attachment; filename="{result.filename}"'}
    if settings.SAVE_EXPORTS:
        rel_path = storage.save_export(template.id, result.filename, result.data)
        headers["X-Card-Export-Path"] = rel_path
        logger.info("Saved export for template '%s' to %s", template.id, rel_path)
    return Response(content=result.data, media_type="image/png", headers=headers)
