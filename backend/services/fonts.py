"""
Font resolution for card text.

A FontSpec carries a CSS-like family list ("FZKATK, Arial, sans-serif").
Each family is tried as a TrueType file in the configured fonts directory,
then as a system font name; if nothing resolves we keep Pillow's scalable
default font so measurement and drawing still work.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Union

from PIL import ImageFont

from domain.models import FontSpec
from settings import settings

logger = logging.getLogger(__name__)

PillowFont = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]

# Generic CSS families mapped to common TTF files.
GENERIC_FAMILIES = {
    "sans-serif": ["DejaVuSans", "Arial", "LiberationSans-Regular"],
    "serif": ["DejaVuSerif", "Georgia", "LiberationSerif-Regular"],
    "monospace": ["DejaVuSansMono", "LiberationMono-Regular"],
}


def _family_names(family: str) -> List[str]:
    names: List[str] = []
    for raw in family.split(","):
        name = raw.strip().strip("'\"")
        if not name:
            continue
        names.extend(GENERIC_FAMILIES.get(name.lower(), [name]))
    return names


def _candidate_files(name: str, bold: bool, italic: bool) -> List[str]:
    suffixes = []
    if bold and italic:
        suffixes += ["-BoldItalic", "-BoldOblique", "bi"]
    if bold:
        suffixes += ["-Bold", "bd", "b"]
    if italic:
        suffixes += ["-Italic", "-Oblique", "i"]
    suffixes.append("")
    files = []
    for suffix in suffixes:
        files.append(f"{name}{suffix}.ttf")
        files.append(f"{name}{suffix}.otf")
    return files


def _try_truetype(path: Union[str, Path], size: int) -> Optional[ImageFont.FreeTypeFont]:
    try:
        return ImageFont.truetype(str(path), size)
    except OSError:
        return None


@lru_cache(maxsize=256)
def load_font(spec: FontSpec, fonts_dir: Optional[Path] = None) -> PillowFont:
    """Resolve a FontSpec to a Pillow font (cached)."""
    size = max(1, int(round(spec.size)))
    fonts_dir = fonts_dir or settings.FONTS_DIR
    for name in _family_names(spec.family):
        for filename in _candidate_files(name, spec.is_bold, spec.is_italic):
            local = fonts_dir / filename
            if local.is_file():
                font = _try_truetype(local, size)
                if font is not None:
                    return font
            # Pillow also searches the platform font directories by file name.
            font = _try_truetype(filename, size)
            if font is not None:
                return font
    logger.debug("No TrueType font for %r; using Pillow default", spec.family)
    return ImageFont.load_default(size=size)
