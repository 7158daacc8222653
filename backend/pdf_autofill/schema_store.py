"""
Field schema storage.

Schemas are saved per user under `<users_dir>/<user_id>/<template>.fields.json`.
A lookup prefers the user's own schema and falls back to the global schema
stored next to the template PDF in `templates_dir`.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import ValidationError

from .models import FieldDescriptor, TemplateSchema

logger = logging.getLogger(__name__)

SCHEMA_SUFFIX = ".fields.json"
_SAFE_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.@-]*$")


def schema_filename(template_id: str) -> str:
    name = Path(template_id).name
    if name.lower().endswith(".pdf"):
        name = name[:-4]
    return f"{name}{SCHEMA_SUFFIX}"


def validate_user_id(user_id: str) -> str:
    if not user_id or not _SAFE_ID.match(user_id) or ".." in user_id:
        raise ValueError(f"Invalid user id '{user_id}'")
    return user_id


class FieldSchemaStore:
    """Reads and writes template field schemas (global + per-user overrides)."""

    def __init__(self, templates_dir: Path, users_dir: Path):
        self.templates_dir = Path(templates_dir)
        self.users_dir = Path(users_dir)

    def get_user_dir(self, user_id: str) -> Path:
        return self.users_dir / validate_user_id(user_id)

    def user_schema_path(self, template_id: str, user_id: str) -> Path:
        return self.get_user_dir(user_id) / schema_filename(template_id)

    def global_schema_path(self, template_id: str) -> Path:
        return self.templates_dir / schema_filename(template_id)

    def load_schema(self, template_id: str, user_id: Optional[str] = None) -> Optional[TemplateSchema]:
        candidates: List[Path] = []
        if user_id:
            candidates.append(self.user_schema_path(template_id, user_id))
        candidates.append(self.global_schema_path(template_id))

        for path in candidates:
            if not path.exists():
                continue
            try:
                with path.open("r", encoding="utf-8") as f:
                    data = json.load(f)
                data.setdefault("templateName", template_id)
                return TemplateSchema.model_validate(data)
            except (OSError, json.JSONDecodeError, ValidationError) as exc:
                logger.error("Error loading field schema %s: %s", path, exc)
        return None

    def get(self, template_id: str, user_id: Optional[str] = None) -> Optional[List[FieldDescriptor]]:
        """Ordered field list for a template, or None when no schema is saved."""
        schema = self.load_schema(template_id, user_id)
        return schema.fields if schema is not None else None

    def save(self, template_id: str, user_id: str, fields: Sequence[FieldDescriptor]) -> TemplateSchema:
        schema = TemplateSchema(
            templateName=Path(template_id).name,
            userId=validate_user_id(user_id),
            savedAt=datetime.now(timezone.utc).isoformat(),
            fields=list(fields),
        )
        path = self.user_schema_path(template_id, user_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            json.dump(schema.to_json(), f, indent=2)

        logger.info("Saved %d fields for %s/%s", len(schema.fields), user_id, path.name)
        return schema
