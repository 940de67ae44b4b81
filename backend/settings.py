import os
from pathlib import Path

# Basic settings helper to read environment configuration.

BACKEND_ROOT = Path(__file__).resolve().parent


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_int(val: str | None, default: int) -> int:
    if val is None or val.strip() == "":
        return default
    return int(val)


def _as_float(val: str | None, default: float | None) -> float | None:
    if val is None or val.strip() == "":
        return default
    return float(val)


class Settings:
    def __init__(self) -> None:
        self.TEMPLATES_DIR: Path = Path(
            os.getenv("CARD_TEMPLATES_DIR", str(BACKEND_ROOT / "data" / "templates"))
        )
        self.ASSETS_ROOT: Path = Path(os.getenv("CARD_ASSETS_ROOT", str(BACKEND_ROOT / "data")))
        self.FONTS_DIR: Path = Path(os.getenv("CARD_FONTS_DIR", str(BACKEND_ROOT / "data" / "fonts")))
        self.MEDIA_ROOT: Path = Path(os.getenv("CARD_MEDIA_ROOT", "media"))

        self.BLEED_TOP: int = _as_int(os.getenv("CARD_BLEED_TOP"), 20)
        self.BLEED_RIGHT: int = _as_int(os.getenv("CARD_BLEED_RIGHT"), 20)
        self.BLEED_BOTTOM: int = _as_int(os.getenv("CARD_BLEED_BOTTOM"), 20)
        self.BLEED_LEFT: int = _as_int(os.getenv("CARD_BLEED_LEFT"), 20)

        self.RENDER_DEFER_SECONDS: float = _as_float(os.getenv("CARD_RENDER_DEFER_SECONDS"), 0.1) or 0.0
        # None waits indefinitely.
        self.ASSET_FETCH_TIMEOUT: float | None = _as_float(os.getenv("ASSET_FETCH_TIMEOUT"), None)
        self.PREVIEW_MAX_WIDTH: int = _as_int(os.getenv("CARD_PREVIEW_MAX_WIDTH"), 500)
        self.SAVE_EXPORTS: bool = _as_bool(os.getenv("CARD_SAVE_EXPORTS"), True)


settings = Settings()
