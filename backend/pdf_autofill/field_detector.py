"""
PDF field detection

Turns the interactive widgets of an uploaded PDF into field descriptors in
bottom-left page coordinates. PDFs without widgets get a small set of
suggested fields on the first page that the user can move into place.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import fitz  # PyMuPDF
from pydantic import BaseModel, ConfigDict, Field

from .errors import RenderError
from .models import FieldDescriptor, FieldType

logger = logging.getLogger(__name__)

WIDGET_FIELD_TYPES = {
    fitz.PDF_WIDGET_TYPE_TEXT: FieldType.TEXT,
    fitz.PDF_WIDGET_TYPE_CHECKBOX: FieldType.CHECKBOX,
    fitz.PDF_WIDGET_TYPE_RADIOBUTTON: FieldType.CHECKBOX,
    fitz.PDF_WIDGET_TYPE_COMBOBOX: FieldType.DROPDOWN,
    fitz.PDF_WIDGET_TYPE_LISTBOX: FieldType.DROPDOWN,
    fitz.PDF_WIDGET_TYPE_SIGNATURE: FieldType.SIGNATURE,
}

# (name, type, distance from the top as a fraction of page height)
SUGGESTED_FIELDS = [
    ("Full Name", FieldType.TEXT, 0.15),
    ("Date", FieldType.DATE, 0.22),
    ("Email", FieldType.TEXT, 0.29),
    ("Phone", FieldType.TEXT, 0.36),
    ("Signature", FieldType.SIGNATURE, 0.85),
]
SUGGESTED_X = 150.0
SUGGESTED_SIZE = (200.0, 20.0)
SUGGESTED_SIGNATURE_SIZE = (250.0, 50.0)


class PageInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page_number: int = Field(alias="pageNumber")
    width: float
    height: float


class DetectionResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page_count: int = Field(alias="pageCount")
    page_info: List[PageInfo] = Field(alias="pageInfo")
    fields: List[FieldDescriptor]
    has_existing_form: bool = Field(alias="hasExistingForm")

    def to_json(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True, exclude={"fields"})
        data["fields"] = [f.to_json() for f in self.fields]
        return data


def _widget_fields(doc: fitz.Document) -> List[FieldDescriptor]:
    fields: List[FieldDescriptor] = []
    for page in doc:
        page_height = page.rect.height
        for widget in page.widgets() or []:
            field_type = WIDGET_FIELD_TYPES.get(widget.field_type)
            if field_type is None:
                # push buttons carry no fillable value
                continue
            rect = widget.rect
            fields.append(
                FieldDescriptor(
                    id=f"field_{len(fields)}",
                    name=widget.field_name or f"Field {len(fields) + 1}",
                    type=field_type,
                    page=page.number + 1,
                    x=rect.x0,
                    y=page_height - rect.y1,
                    width=rect.width,
                    height=rect.height,
                    value="",
                    required=False,
                    detected=True,
                )
            )
    return fields


def suggest_fields(page: PageInfo) -> List[FieldDescriptor]:
    suggested = []
    for index, (name, field_type, offset) in enumerate(SUGGESTED_FIELDS):
        width, height = SUGGESTED_SIGNATURE_SIZE if field_type is FieldType.SIGNATURE else SUGGESTED_SIZE
        suggested.append(
            FieldDescriptor(
                id=f"suggested_{index}",
                name=name,
                type=field_type,
                page=1,
                x=SUGGESTED_X,
                y=page.height - page.height * offset,
                width=width,
                height=height,
                value="",
                required=False,
                detected=False,
                suggested=True,
            )
        )
    return suggested


def detect_fields(pdf_bytes: bytes) -> DetectionResult:
    try:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    except Exception as exc:
        raise RenderError(f"Could not open PDF: {exc}") from exc

    try:
        page_info = [
            PageInfo(pageNumber=page.number + 1, width=page.rect.width, height=page.rect.height)
            for page in doc
        ]
        fields = _widget_fields(doc)
    finally:
        doc.close()

    has_existing_form = bool(fields)
    if not fields and page_info:
        logger.info("No form widgets found; proposing %d suggested fields", len(SUGGESTED_FIELDS))
        fields = suggest_fields(page_info[0])

    return DetectionResult(
        pageCount=len(page_info),
        pageInfo=page_info,
        fields=fields,
        hasExistingForm=has_existing_form,
    )
