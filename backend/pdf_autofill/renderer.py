"""
Draw filled form fields onto a source PDF.

Every field type has one draw strategy (see DRAW_STRATEGIES). Field geometry
uses the PDF convention with the origin at the bottom-left of the page, while
PyMuPDF places content from the top-left, so y values are flipped against the
page height before anything is drawn.

A field that cannot be drawn (bad image, impossible geometry) is skipped and
logged; with `strict=True` the failure is raised as FieldRenderError instead
so batch callers can attribute it to a record. A source document that cannot
be opened always raises RenderError.
"""

from __future__ import annotations

import base64
import binascii
import html
import logging
import re
import threading
from typing import Any, Callable, Dict, List, Sequence

import fitz  # PyMuPDF

from .errors import FieldRenderError, RenderError
from .models import FieldType, FilledField

logger = logging.getLogger(__name__)

FONT_NAME = "helv"
MAX_FONT_SIZE = 12.0
FONT_HEIGHT_RATIO = 0.7
TEXT_PADDING = 2.0

TEXTAREA_FONT_SIZE = 10.0
TEXTAREA_LINE_HEIGHT = 14.0

CHECKBOX_PADDING_RATIO = 0.2
CHECKMARK_WIDTH = 2.0

# tried in this order when embedding a signature
IMAGE_FORMATS = ("png", "jpeg")

BLACK = (0, 0, 0)

# PyMuPDF is not thread-safe: one document is rendered at a time per process.
_RENDER_LOCK = threading.Lock()


# ----------------------------------------------------------------------
# Value formatting
# ----------------------------------------------------------------------
def format_time(value: Any) -> str:
    """Reformat 24-hour "HH:MM" as "H:MM AM/PM"; anything else passes through."""
    if value is None:
        return ""
    text = str(value)
    if not text or "m" in text.lower():
        return text

    parts = text.split(":")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        return text
    try:
        hours = int(parts[0])
    except ValueError:
        return text

    suffix = "PM" if hours >= 12 else "AM"
    return f"{hours % 12 or 12}:{parts[1]} {suffix}"


_CLOSING_BLOCK_TAG = re.compile(r"</\s*(?:p|div|li|ul|ol)\s*>", re.IGNORECASE)
_LINE_BREAK_TAG = re.compile(r"<br\s*/?\s*>", re.IGNORECASE)
_LIST_ITEM_TAG = re.compile(r"<li(?:\s[^>]*)?>", re.IGNORECASE)
_ANY_TAG = re.compile(r"<[^>]*>")


def html_to_text(markup: str) -> str:
    """Reduce rich text to plain lines: blocks end a line, list items get a bullet."""
    if not markup:
        return ""
    text = _CLOSING_BLOCK_TAG.sub("\n", markup)
    text = _LINE_BREAK_TAG.sub("\n", text)
    text = _LIST_ITEM_TAG.sub("• ", text)
    text = _ANY_TAG.sub("", text)
    text = html.unescape(text).replace("\xa0", " ")
    return text.strip()


def display_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def wrap_text(text: str, max_width: float, font_size: float, fontname: str = FONT_NAME) -> List[str]:
    """Greedy word wrap; explicit newlines always start a new line."""
    lines: List[str] = []
    for paragraph in text.split("\n"):
        current = ""
        for word in paragraph.split(" "):
            candidate = f"{current} {word}" if current else word
            too_wide = fitz.get_text_length(candidate, fontname=fontname, fontsize=font_size) > max_width
            if current and too_wide:
                lines.append(current)
                current = word
            else:
                current = candidate
        lines.append(current)
    return lines


def decode_data_uri(value: Any) -> bytes:
    if not isinstance(value, str) or not value.startswith("data:image"):
        raise ValueError("signature value is not an image data URI")
    _, _, payload = value.partition(",")
    # payload may be line-wrapped
    payload = "".join(payload.split())
    if not payload:
        raise ValueError("signature data URI has no payload")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"signature payload is not valid base64: {exc}") from exc


def _image_size(data: bytes) -> fitz.Rect:
    for fmt in IMAGE_FORMATS:
        try:
            with fitz.open(stream=data, filetype=fmt) as image:
                if image.page_count:
                    return image[0].rect
        except Exception:
            logger.debug("Signature is not a %s image", fmt)
    raise ValueError(f"signature image is not one of: {', '.join(IMAGE_FORMATS)}")


# ----------------------------------------------------------------------
# Geometry
# ----------------------------------------------------------------------
def _point(page: fitz.Page, x: float, y: float) -> fitz.Point:
    return fitz.Point(x, page.rect.height - y)


def _require_box(field: FilledField) -> None:
    if field.width <= 0 or field.height <= 0:
        raise FieldRenderError(field.name, f"invalid size {field.width}x{field.height}")


# ----------------------------------------------------------------------
# Draw strategies
# ----------------------------------------------------------------------
def _insert_line(page: fitz.Page, field: FilledField, text: str) -> None:
    font_size = field.font_size or min(field.height * FONT_HEIGHT_RATIO, MAX_FONT_SIZE)
    if font_size <= 0:
        raise FieldRenderError(field.name, "field height leaves no room for text")
    baseline = field.y + (field.height - font_size) / 2
    page.insert_text(
        _point(page, field.x + TEXT_PADDING, baseline),
        text,
        fontsize=font_size,
        fontname=FONT_NAME,
        color=BLACK,
    )


def draw_text(page: fitz.Page, field: FilledField) -> None:
    _insert_line(page, field, display_text(field.value))


def draw_time(page: fitz.Page, field: FilledField) -> None:
    _insert_line(page, field, format_time(display_text(field.value)))


def draw_textarea(page: fitz.Page, field: FilledField) -> None:
    text = html_to_text(display_text(field.value))
    if not text:
        return
    _require_box(field)

    lines = wrap_text(text, field.width - 2 * TEXT_PADDING, TEXTAREA_FONT_SIZE)
    top_baseline = field.y + field.height - TEXTAREA_FONT_SIZE - TEXT_PADDING
    for index, line in enumerate(lines):
        if not line:
            continue
        page.insert_text(
            _point(page, field.x + TEXT_PADDING, top_baseline - index * TEXTAREA_LINE_HEIGHT),
            line,
            fontsize=TEXTAREA_FONT_SIZE,
            fontname=FONT_NAME,
            color=BLACK,
        )


def is_checked(value: Any) -> bool:
    return value is True or value in ("true", "checked")


def draw_checkbox(page: fitz.Page, field: FilledField) -> None:
    # An unchecked box draws nothing; the source document shows the empty box.
    if not is_checked(field.value):
        return
    _require_box(field)

    size = min(field.width, field.height)
    padding = size * CHECKBOX_PADDING_RATIO
    x, y = field.x, field.y

    start = _point(page, x + padding, y + size / 2)
    corner = _point(page, x + size / 2, y + padding)
    end = _point(page, x + size - padding, y + size - padding)
    page.draw_line(start, corner, color=BLACK, width=CHECKMARK_WIDTH)
    page.draw_line(corner, end, color=BLACK, width=CHECKMARK_WIDTH)


def draw_signature(page: fitz.Page, field: FilledField) -> None:
    _require_box(field)
    try:
        data = decode_data_uri(field.value)
        image_rect = _image_size(data)
    except ValueError as exc:
        raise FieldRenderError(field.name, str(exc)) from exc

    scale = min(field.width / image_rect.width, field.height / image_rect.height)
    width = image_rect.width * scale
    height = image_rect.height * scale
    left = field.x + (field.width - width) / 2
    bottom = field.y + (field.height - height) / 2

    target = fitz.Rect(_point(page, left, bottom + height), _point(page, left + width, bottom))
    page.insert_image(target, stream=data, keep_proportion=True)


FieldDrawer = Callable[[fitz.Page, FilledField], None]

DRAW_STRATEGIES: Dict[FieldType, FieldDrawer] = {
    FieldType.TEXT: draw_text,
    FieldType.NUMBER: draw_text,
    FieldType.DATE: draw_text,
    FieldType.DAY: draw_text,
    FieldType.DROPDOWN: draw_text,
    FieldType.TIME: draw_time,
    FieldType.TEXTAREA: draw_textarea,
    FieldType.CHECKBOX: draw_checkbox,
    FieldType.SIGNATURE: draw_signature,
}


# ----------------------------------------------------------------------
# Document rendering
# ----------------------------------------------------------------------
def _open_source(source: bytes) -> fitz.Document:
    try:
        doc = fitz.open(stream=source, filetype="pdf")
    except Exception as exc:
        raise RenderError(f"Could not open source document: {exc}") from exc

    if doc.needs_pass and not doc.authenticate(""):
        doc.close()
        raise RenderError("Source document is password protected")
    if doc.page_count == 0:
        doc.close()
        raise RenderError("Source document has no pages")
    return doc


def _draw_fields(doc: fitz.Document, fields: Sequence[FilledField], strict: bool) -> int:
    drawn = 0
    for field in fields:
        if field.type is not FieldType.CHECKBOX and not field.value:
            continue

        page_index = field.page - 1
        if page_index >= doc.page_count:
            logger.debug("Field '%s' targets missing page %d; skipped", field.name, field.page)
            continue

        try:
            DRAW_STRATEGIES[field.type](doc[page_index], field)
        except FieldRenderError as exc:
            if strict:
                raise
            logger.warning("Skipping field: %s", exc)
            continue
        except Exception as exc:
            if strict:
                raise FieldRenderError(field.name, str(exc)) from exc
            logger.warning("Skipping field '%s': %s", field.name, exc)
            continue
        drawn += 1
    return drawn


def flatten_form(doc: fitz.Document) -> None:
    """Merge interactive widgets into static page content."""
    if not doc.is_form_pdf:
        return
    doc.bake(annots=False, widgets=True)


def render_document(
    source: bytes,
    fields: Sequence[FilledField],
    flatten: bool = False,
    strict: bool = False,
) -> bytes:
    """Return a new PDF with `fields` drawn onto `source`."""
    with _RENDER_LOCK:
        doc = _open_source(source)
        try:
            drawn = _draw_fields(doc, fields, strict)
            if flatten:
                flatten_form(doc)
            result = doc.tobytes(garbage=3, deflate=True)
        finally:
            doc.close()

    logger.debug("Rendered %d of %d fields", drawn, len(fields))
    return result
