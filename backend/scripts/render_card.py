"""Render or export one card from a catalog template.

Usage:
    python -m scripts.render_card --template standard-card --text card-title="Fire Drake" \
        --image main-image=photos/drake.png [--export] [--bleed 20] [--out out.png]

Run from backend/ (or with backend/ on PYTHONPATH). Without --out the PNG is
written to media/cards/<template_id>/exports/ for exports and to the current
directory for plain renders.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Dict, List, Tuple

from domain.models import BleedSpec
from services.asset_loader import AssetLoader, AssetLoadError
from services.card_session import CardSession
from services.template_catalog import TemplateCatalog
from storage.file_storage import FileStorage

logger = logging.getLogger("render_card")


def _parse_pairs(values: List[str], flag: str) -> Dict[str, str]:
    pairs: Dict[str, str] = {}
    for raw in values:
        key, sep, value = raw.partition("=")
        if not sep or not key:
            raise SystemExit(f"{flag} expects id=value, got {raw!r}")
        pairs[key] = value
    return pairs


def _parse_bleed(raw: str | None) -> BleedSpec | None:
    if raw is None:
        return None
    parts = [int(p) for p in raw.split(",")]
    if len(parts) == 1:
        parts = parts * 4
    if len(parts) != 4:
        raise SystemExit("--bleed expects N or top,right,bottom,left")
    top, right, bottom, left = parts
    return BleedSpec(top=top, right=right, bottom=bottom, left=left)


async def run(args: argparse.Namespace) -> Tuple[int, str]:
    catalog = TemplateCatalog(Path(args.templates_dir) if args.templates_dir else None)
    template = catalog.get(args.template)
    if template is None:
        known = ", ".join(t.id for t in catalog.list_templates())
        logger.error("Unknown template %r (known: %s)", args.template, known)
        return 2, ""

    loader = AssetLoader()
    session = CardSession(loader=loader, render_delay=0)
    failed = await session.select_template(template)
    if failed["layers"] or failed["titles"]:
        logger.warning("Missing assets: layers=%s titles=%s", failed["layers"], failed["titles"])
    if not session.available:
        logger.error("Drawing surface unavailable for %s", template.id)
        return 1, ""

    for region_id, text in _parse_pairs(args.text, "--text").items():
        session.set_text(region_id, text)
    for area_id, path in _parse_pairs(args.image, "--image").items():
        try:
            session.set_image(area_id, loader.load_image(path))
        except AssetLoadError as exc:
            logger.error("Cannot load image for %s: %s", area_id, exc)
            return 1, ""

    result = await session.render()
    if result is None or not result.ok:
        logger.error("Render failed for %s", template.id)
        return 1, ""
    if result.failed:
        logger.warning("Elements skipped: %s", ", ".join(result.failed))

    if not args.export:
        out = Path(args.out or f"{template.id}.png")
        session.frame().save(out, format="PNG")
        return 0, str(out)

    export = await session.export(_parse_bleed(args.bleed))
    if export is None:
        logger.error("Export failed for %s", template.id)
        return 1, ""
    if args.out:
        Path(args.out).write_bytes(export.data)
        return 0, args.out
    storage = FileStorage()
    rel_path = storage.save_export(template.id, export.filename, export.data)
    return 0, str(storage.get_absolute_path(rel_path))


def main() -> int:
    if not logger.handlers:
        logging.basicConfig(level=logging.INFO, format="%(message)s")
    parser = argparse.ArgumentParser(description="Render or export a card from a template.")
    parser.add_argument("--template", required=True, help="Template id from the catalog.")
    parser.add_argument("--templates-dir", default=None, help="Override the template directory.")
    parser.add_argument("--text", action="append", default=[], help="Text content as id=value (repeatable).")
    parser.add_argument("--image", action="append", default=[], help="Image content as id=path (repeatable).")
    parser.add_argument("--export", action="store_true", help="Write the bleed-inclusive export instead of the plain card.")
    parser.add_argument("--bleed", default=None, help="Bleed margins: N or top,right,bottom,left.")
    parser.add_argument("--out", default=None, help="Output PNG path.")
    args = parser.parse_args()

    code, out = asyncio.run(run(args))
    if code == 0:
        logger.info("Wrote %s", out)
    return code


if __name__ == "__main__":
    sys.exit(main())
