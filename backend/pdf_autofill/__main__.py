"""
Command line entry point.

    python -m pdf_autofill fill form.pdf form.fields.json people.csv --out filled.zip
    python -m pdf_autofill detect form.pdf
"""

from __future__ import annotations

import argparse
import json
import shutil
import sys
import tempfile
from pathlib import Path

from dotenv import load_dotenv

from .data_parser import parse_data
from .errors import PDFAutofillError
from .field_detector import detect_fields
from .models import BulkOptions, JobStatus
from .runners import InlineTaskRunner
from .schema_store import schema_filename
from .service import PDFAutofillService
from .settings import Settings, configure_logging


def run_fill(args: argparse.Namespace) -> int:
    template = Path(args.template)
    raw = Path(args.data).read_bytes()
    parsed = parse_data(raw, filename=args.data)

    with tempfile.TemporaryDirectory(prefix="pdf-autofill-") as workdir:
        work = Path(workdir)
        settings = Settings(
            base_dir=work,
            templates_dir=work / "templates",
            users_dir=work / "users",
            temp_dir=work / "out",
            max_rows=max(parsed.row_count, 1),
            log_level=args.log_level,
        )
        settings.ensure_dirs()
        shutil.copyfile(template, settings.templates_dir / template.name)
        shutil.copyfile(args.schema, settings.templates_dir / schema_filename(template.name))

        service = PDFAutofillService(settings, runner=InlineTaskRunner())
        if args.mapping:
            mapping = json.loads(Path(args.mapping).read_text(encoding="utf-8"))
        else:
            mapping = service.auto_map(template.name, parsed.headers)

        options = BulkOptions(merge=args.merge, filename_field=args.filename_field)
        job_id = service.start_bulk(template.name, parsed.records, mapping, options)
        job = service.orchestrator.get_job(job_id)

        if job.status is JobStatus.COMPLETED:
            shutil.copyfile(job.output_file, args.out)

        summary = job.snapshot()
        summary["mapping"] = mapping
        summary["output"] = args.out if job.status is JobStatus.COMPLETED else None
        print(json.dumps(summary, indent=2))

    return 0 if job.status is JobStatus.COMPLETED else 1


def run_detect(args: argparse.Namespace) -> int:
    result = detect_fields(Path(args.pdf).read_bytes())
    print(json.dumps(result.to_json(), indent=2))
    return 0


def main(argv=None) -> int:
    load_dotenv(".env.local"); load_dotenv()

    ap = argparse.ArgumentParser(prog="pdf_autofill", description="Fill PDF templates from CSV/JSON data")
    ap.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    sub = ap.add_subparsers(dest="command", required=True)

    fill = sub.add_parser("fill", help="Render one document per data row")
    fill.add_argument("template", help="Template PDF path")
    fill.add_argument("schema", help="Field schema JSON (<template>.fields.json)")
    fill.add_argument("data", help="CSV or JSON data file")
    fill.add_argument("--out", required=True, help="Output path (.zip, or .pdf with --merge)")
    fill.add_argument("--merge", action="store_true", help="Merge all documents into one PDF")
    fill.add_argument("--filename-field", help="Column used to name files inside the archive")
    fill.add_argument("--mapping", help="JSON file with {column: field name}; auto-mapped when omitted")
    fill.set_defaults(handler=run_fill)

    detect = sub.add_parser("detect", help="Print the fields detected in a PDF")
    detect.add_argument("pdf", help="PDF path")
    detect.set_defaults(handler=run_detect)

    args = ap.parse_args(argv)
    configure_logging(args.log_level)

    try:
        return args.handler(args)
    except (PDFAutofillError, OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
