"""
Template catalog.

Templates are JSON documents (one per file) in the templates directory.
Files are parsed lazily and cached by template id.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from domain.models import Template, TemplateError
from settings import settings

logger = logging.getLogger(__name__)


def load_template_file(path: Path) -> Template:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise TemplateError(f"Cannot read template {path}: {exc}") from exc
    return Template.from_dict(data)


class TemplateCatalog:
    def __init__(self, templates_dir: Optional[Path] = None):
        self.templates_dir = Path(templates_dir or settings.TEMPLATES_DIR)
        self._templates: Optional[Dict[str, Template]] = None

    def _load(self) -> Dict[str, Template]:
        if self._templates is None:
            templates: Dict[str, Template] = {}
            for path in sorted(self.templates_dir.glob("*.json")):
                try:
                    template = load_template_file(path)
                except TemplateError:
                    logger.warning("Skipping malformed template file %s", path, exc_info=True)
                    continue
                templates[template.id] = template
            self._templates = templates
        return self._templates

    def list_templates(self) -> List[Template]:
        return list(self._load().values())

    def get(self, template_id: str) -> Optional[Template]:
        return self._load().get(template_id)

    def get_document(self, template_id: str) -> Optional[Dict[str, Any]]:
        """Raw JSON document for a template id (as shipped to editors)."""
        for path in sorted(self.templates_dir.glob("*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError):
                continue
            if isinstance(data, dict) and data.get("id") == template_id:
                return data
        return None

    def reload(self) -> None:
        self._templates = None
