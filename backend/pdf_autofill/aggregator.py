"""
Combine rendered documents into one deliverable.

- merge_pdfs: one PDF with every page of every input, in input order
- create_zip_archive: one archive entry per document, maximum compression
"""

from __future__ import annotations

import io
import logging
import zipfile
from pathlib import Path
from typing import List, Sequence

from pypdf import PdfReader, PdfWriter

from .errors import AggregationError

logger = logging.getLogger(__name__)


def merge_pdfs(documents: Sequence[bytes]) -> bytes:
    writer = PdfWriter()
    for index, content in enumerate(documents):
        try:
            reader = PdfReader(io.BytesIO(content), strict=False)
            pages = list(reader.pages)
        except Exception as exc:
            raise AggregationError(f"Document {index + 1} could not be read for merging: {exc}") from exc
        if not pages:
            raise AggregationError(f"Document {index + 1} has no pages")
        for page in pages:
            writer.add_page(page)

    buffer = io.BytesIO()
    writer.write(buffer)
    logger.info("Merged %d documents into %d pages", len(documents), len(writer.pages))
    return buffer.getvalue()


def unique_names(names: Sequence[str]) -> List[str]:
    """Suffix repeated entry names (`a.pdf`, `a_2.pdf`, ...) so no entry is shadowed."""
    used = set()
    result: List[str] = []
    for name in names:
        candidate, count = name, 1
        while candidate in used:
            count += 1
            stem, dot, suffix = name.rpartition(".")
            candidate = f"{stem}_{count}.{suffix}" if dot else f"{name}_{count}"
        used.add(candidate)
        result.append(candidate)
    return result


def create_zip_archive(documents: Sequence[bytes], names: Sequence[str], output_path: Path) -> Path:
    """Write the archive to `output_path`; returns once the file is closed."""
    if len(documents) != len(names):
        raise AggregationError(f"{len(documents)} documents but {len(names)} entry names")

    output_path = Path(output_path)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(output_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
            for name, content in zip(unique_names(names), documents):
                archive.writestr(name, content)
    except OSError as exc:
        raise AggregationError(f"Could not write archive {output_path.name}: {exc}") from exc

    logger.info("Archived %d documents into %s", len(documents), output_path.name)
    return output_path
