"""
pytest configuration and shared fixtures

PDFs and signature images are built in memory with PyMuPDF, so the tests need
no files on disk besides the per-test temporary directories.
"""

from __future__ import annotations

import base64
from pathlib import Path
from typing import List

import fitz  # PyMuPDF
import pytest

from helpers import make_pdf
from pdf_autofill.models import FieldDescriptor, FieldType
from pdf_autofill.runners import InlineTaskRunner
from pdf_autofill.service import PDFAutofillService
from pdf_autofill.settings import Settings


# ============================================================================
# PDF / image fixtures
# ============================================================================

@pytest.fixture
def blank_pdf() -> bytes:
    return make_pdf()


@pytest.fixture
def signature_png() -> bytes:
    pix = fitz.Pixmap(fitz.csRGB, fitz.IRect(0, 0, 40, 20), False)
    pix.clear_with(0)
    return pix.tobytes("png")


@pytest.fixture
def signature_uri(signature_png: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(signature_png).decode("ascii")


# ============================================================================
# Schema fixtures
# ============================================================================

@pytest.fixture
def name_paid_fields() -> List[FieldDescriptor]:
    return [
        FieldDescriptor(name="Name", type=FieldType.TEXT, page=1, x=72, y=700, width=200, height=20),
        FieldDescriptor(name="Paid", type=FieldType.CHECKBOX, page=1, x=72, y=660, width=15, height=15),
    ]


@pytest.fixture
def signed_fields(name_paid_fields) -> List[FieldDescriptor]:
    return name_paid_fields + [
        FieldDescriptor(name="Signature", type=FieldType.SIGNATURE, page=1, x=300, y=100, width=200, height=50),
    ]


# ============================================================================
# Service fixtures
# ============================================================================

@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    settings = Settings(
        base_dir=tmp_path,
        templates_dir=tmp_path / "pdf-format",
        users_dir=tmp_path / "data" / "users",
        temp_dir=tmp_path / "temp",
        max_rows=10,
        download_cleanup_delay=0,
    )
    settings.ensure_dirs()
    return settings


@pytest.fixture
def service(settings: Settings) -> PDFAutofillService:
    """Service whose bulk jobs finish before `start_bulk` returns."""
    return PDFAutofillService(settings, runner=InlineTaskRunner())
