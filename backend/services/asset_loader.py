"""
Image asset loading.

Sources may be http(s) URLs, data: URLs, raw base64 strings or paths. Paths
starting with "/" are resolved against the assets root first (template
documents use web-style paths such as /assets/images/...).

load_all issues every load at once and waits for all of them; each key gets
its own LoadResult so one broken layer never takes the batch down.
"""
from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Dict, Mapping, Optional

import requests
from PIL import Image, UnidentifiedImageError

from settings import settings

logger = logging.getLogger(__name__)


class AssetLoadError(Exception):
    """An image source could not be fetched or decoded."""


@dataclass
class LoadResult:
    key: str
    source: str
    image: Optional[Image.Image] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.image is not None


class AssetLoader:
    def __init__(
        self,
        assets_root: Optional[Path] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.assets_root = Path(assets_root or settings.ASSETS_ROOT)
        self.timeout = timeout if timeout is not None else settings.ASSET_FETCH_TIMEOUT
        self.session = session or requests.Session()

    def resolve_path(self, source: str) -> Optional[Path]:
        for candidate in (self.assets_root / source.lstrip("/"), Path(source)):
            try:
                if candidate.is_file():
                    return candidate
            except OSError:
                # e.g. a base64 payload longer than the filesystem name limit
                continue
        return None

    def read_bytes(self, source: str) -> bytes:
        if source.startswith(("http://", "https://")):
            resp = self.session.get(source, timeout=self.timeout)
            resp.raise_for_status()
            return resp.content
        if source.startswith("data:"):
            _, _, encoded = source.partition(",")
            return base64.b64decode(encoded + "=" * (-len(encoded) % 4))
        path = self.resolve_path(source)
        if path is not None:
            return path.read_bytes()
        try:
            return base64.b64decode(source, validate=True)
        except (binascii.Error, ValueError):
            raise AssetLoadError(f"Asset not found: {source[:70]}") from None

    def load_image(self, source: str) -> Image.Image:
        """Fetch and decode one image as RGBA; raises AssetLoadError."""
        if not source:
            raise AssetLoadError("Empty image source")
        try:
            data = self.read_bytes(source)
            img = Image.open(BytesIO(data))
            img.load()
        except AssetLoadError:
            raise
        except (requests.RequestException, OSError, UnidentifiedImageError, binascii.Error, ValueError) as exc:
            raise AssetLoadError(f"Failed to load image '{source[:70]}': {type(exc).__name__}") from exc
        return img.convert("RGBA")

    async def load_image_async(self, source: str) -> Image.Image:
        return await asyncio.to_thread(self.load_image, source)

    async def load_all(self, sources: Mapping[str, str]) -> Dict[str, LoadResult]:
        """Load every source concurrently; failures are reported per key."""
        keys = list(sources.keys())
        outcomes = await asyncio.gather(
            *(self.load_image_async(sources[key]) for key in keys),
            return_exceptions=True,
        )
        results: Dict[str, LoadResult] = {}
        for key, outcome in zip(keys, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("Asset '%s' failed to load from %s: %s", key, sources[key][:70], outcome)
                results[key] = LoadResult(key=key, source=sources[key], error=outcome)
            else:
                results[key] = LoadResult(key=key, source=sources[key], image=outcome)
        return results
