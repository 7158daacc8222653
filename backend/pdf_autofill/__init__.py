"""
PDF auto-fill package.

This module bundles reusable utilities for:
  - detecting and storing the field layout of PDF templates
  - parsing CSV/JSON data and mapping its columns onto template fields
  - drawing field values onto PDFs, one at a time or as bulk jobs
"""

from .errors import PDFAutofillError
from .service import PDFAutofillService

__all__ = ["PDFAutofillService", "PDFAutofillError"]
