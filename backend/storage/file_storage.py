"""
File storage abstraction.

Provides a simple interface for storing and retrieving card files.
Currently uses the local filesystem.
"""
from pathlib import Path
from typing import Optional

from settings import settings


class FileStorage:
    """
    Local file storage implementation.

    Files are organized as:
    - media/cards/{template_id}/exports/  - Bleed-inclusive PNG exports
    """

    def __init__(self, media_root: Optional[str] = None):
        if media_root is None:
            media_root = settings.MEDIA_ROOT
        self.media_root = Path(media_root)
        self.media_root.mkdir(parents=True, exist_ok=True)

    def get_card_exports_dir(self, template_id: str) -> Path:
        """Get the exports directory for a card template."""
        path = self.media_root / "cards" / template_id / "exports"
        path.mkdir(parents=True, exist_ok=True)
        return path

    def save_export(self, template_id: str, filename: str, data: bytes) -> str:
        """
        Write an exported PNG.

        Returns:
            Relative path to the saved export
        """
        file_path = self.get_card_exports_dir(template_id) / Path(filename).name
        file_path.write_bytes(data)
        return str(file_path.relative_to(self.media_root))

    def get_absolute_path(self, relative_path: str) -> Path:
        """Convert a relative path to absolute."""
        return self.media_root / relative_path

    def file_exists(self, relative_path: str) -> bool:
        """Check if a file exists."""
        return (self.media_root / relative_path).exists()
