"""
Template PDF lookup.

Templates are plain PDF files in one directory; a template id is the PDF's
file name (e.g. "intake-form.pdf").
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

from .errors import TemplateNotFoundError
from .schema_store import FieldSchemaStore

logger = logging.getLogger(__name__)


class TemplateLibrary:
    def __init__(self, templates_dir: Path):
        self.templates_dir = Path(templates_dir)

    def list_templates(self) -> List[str]:
        if not self.templates_dir.exists():
            return []
        return sorted(p.name for p in self.templates_dir.iterdir() if p.is_file() and p.suffix.lower() == ".pdf")

    def resolve(self, template_id: str) -> Path:
        name = Path(template_id).name
        if not name or name != template_id or not name.lower().endswith(".pdf"):
            raise TemplateNotFoundError(f"Invalid template name '{template_id}'")

        candidate = self.templates_dir / name
        if not candidate.is_file():
            raise TemplateNotFoundError(f"Template '{template_id}' not found")
        return candidate

    def read_bytes(self, template_id: str) -> bytes:
        return self.resolve(template_id).read_bytes()

    def list_fillable(self, schema_store: FieldSchemaStore, user_id: Optional[str] = None) -> List[Dict]:
        """Templates that have a saved schema for this user or globally."""
        results = []
        for filename in self.list_templates():
            fields = schema_store.get(filename, user_id)
            if fields is None:
                continue
            results.append(
                {
                    "name": Path(filename).stem,
                    "filename": filename,
                    "fieldCount": len(fields),
                }
            )
        logger.debug("%d fillable templates for %s", len(results), user_id or "global")
        return results
