"""In-memory PDF builders and readers shared by the tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional, Sequence

import fitz  # PyMuPDF

from pdf_autofill.models import FieldDescriptor
from pdf_autofill.schema_store import schema_filename
from pdf_autofill.settings import Settings

TEMPLATE_NAME = "form.pdf"


def make_pdf(pages: int = 1, width: float = 612, height: float = 792, with_widgets: bool = False) -> bytes:
    doc = fitz.open()
    for _ in range(pages):
        doc.new_page(width=width, height=height)
    if with_widgets:
        page = doc[0]
        text = fitz.Widget()
        text.field_type = fitz.PDF_WIDGET_TYPE_TEXT
        text.field_name = "full_name"
        text.rect = fitz.Rect(72, 72, 272, 92)
        page.add_widget(text)

        box = fitz.Widget()
        box.field_type = fitz.PDF_WIDGET_TYPE_CHECKBOX
        box.field_name = "agree"
        box.rect = fitz.Rect(72, 120, 87, 135)
        page.add_widget(box)
    data = doc.tobytes()
    doc.close()
    return data


def page_count(pdf_bytes: bytes) -> int:
    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        return doc.page_count


def page_text(pdf_bytes: bytes, page: int = 0) -> str:
    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        return doc[page].get_text()


def write_template(
    settings: Settings,
    fields: Sequence[FieldDescriptor],
    name: str = TEMPLATE_NAME,
    pdf_bytes: Optional[bytes] = None,
) -> Path:
    """Put a template PDF and its global schema into the templates directory."""
    settings.templates_dir.mkdir(parents=True, exist_ok=True)
    path = settings.templates_dir / name
    path.write_bytes(pdf_bytes or make_pdf())
    schema = {"templateName": name, "fields": [f.to_json() for f in fields]}
    (settings.templates_dir / schema_filename(name)).write_text(json.dumps(schema), encoding="utf-8")
    return path
