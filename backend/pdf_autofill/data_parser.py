"""
Tabular data parsing for bulk fill.

Turns an uploaded CSV or JSON payload into an ordered list of records plus the
ordered header list. Values are kept as parsed; type coercion happens later
when a record is applied to a schema.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .errors import DataParseError

logger = logging.getLogger(__name__)

JSON_HINTS = {"json", "application/json", "text/json"}
MAX_REPORTED_ROWS = 5

Record = Dict[str, Any]


@dataclass
class ParsedData:
    records: List[Record] = field(default_factory=list)
    headers: List[str] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.records)


def is_json_hint(format_hint: Optional[str], filename: Optional[str] = None) -> bool:
    if format_hint and format_hint.split(";")[0].strip().lower() in JSON_HINTS:
        return True
    return bool(filename and filename.lower().endswith(".json"))


def parse_data(raw: bytes, format_hint: Optional[str] = None, filename: Optional[str] = None) -> ParsedData:
    """Parse `raw` as JSON when the hint (MIME type or extension) says so, else as CSV."""
    try:
        content = raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise DataParseError(f"Data file is not valid UTF-8: {exc}") from exc

    if is_json_hint(format_hint, filename):
        return parse_json(content)
    return parse_csv(content)


def dedupe_headers(headers: Iterable[str]) -> List[str]:
    """
    Rename repeated headers to `name_1`, `name_2`, ... so no column is lost.

    Spreadsheet exports often end in blank columns (`Name,Paid,,`); those
    come out as "", "_1".
    """
    result: List[str] = []
    seen = set()
    counts: Dict[str, int] = {}
    for header in headers:
        name = header
        while name in seen:
            counts[header] = counts.get(header, 0) + 1
            name = f"{header}_{counts[header]}"
        seen.add(name)
        result.append(name)
    return result


def parse_csv(content: str) -> ParsedData:
    """
    First row is the header; every following non-empty row becomes a record.

    Rows with unbalanced quoting or a field count different from the header
    fail the whole parse; up to five offending data rows (1-based) are named.
    """
    reader = csv.reader(io.StringIO(content, newline=""), strict=True)
    headers: Optional[List[str]] = None
    records: List[Record] = []
    problems: List[str] = []
    row_number = 0

    while True:
        try:
            row = next(reader)
        except StopIteration:
            break
        except csv.Error as exc:
            # the reader cannot resynchronise after a quoting error
            problems.append(f"Row {row_number + 1}: {exc}")
            break

        if not row:
            continue

        if headers is None:
            headers = dedupe_headers(h.strip() for h in row)
            continue

        row_number += 1
        if len(row) != len(headers):
            problems.append(
                f"Row {row_number}: expected {len(headers)} fields but found {len(row)}"
            )
            continue
        records.append(dict(zip(headers, row)))

    if problems:
        raise DataParseError(f"CSV parsing errors: {'; '.join(problems[:MAX_REPORTED_ROWS])}")

    logger.debug("Parsed CSV with %d columns and %d rows", len(headers or []), len(records))
    return ParsedData(records=records, headers=headers or [])


def parse_json(content: str) -> ParsedData:
    """Input must be a non-empty JSON array of objects; headers come from the first one."""
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as exc:
        raise DataParseError(f"Invalid JSON: {exc.msg} (line {exc.lineno}, column {exc.colno})") from exc

    if not isinstance(parsed, list):
        raise DataParseError("JSON must be an array of objects")
    if not parsed:
        raise DataParseError("JSON array is empty")

    bad = [str(i + 1) for i, item in enumerate(parsed) if not isinstance(item, dict)]
    if bad:
        raise DataParseError(f"JSON array elements must be objects (rows {', '.join(bad[:MAX_REPORTED_ROWS])})")

    headers = list(parsed[0].keys())
    logger.debug("Parsed JSON with %d keys and %d rows", len(headers), len(parsed))
    return ParsedData(records=parsed, headers=headers)


def csv_template(field_names: Iterable[str]) -> str:
    """Header-only CSV for a schema: BOM, then unique non-empty names in order."""
    headers: List[str] = []
    for name in field_names:
        if name and name not in headers:
            headers.append(name)

    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerow(headers)
    return "\ufeff" + buffer.getvalue()
