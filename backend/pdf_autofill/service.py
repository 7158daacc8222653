"""
High-level service that exposes PDF auto-fill capabilities to the FastAPI layer.

Responsibilities
----------------
* manage template field schemas (global + per-user overrides)
* parse uploaded data files and auto-map their columns onto schema fields
* fill a single document interactively or preview one record
* run bulk generation jobs and hand out their output
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .applicator import apply_data_to_fields
from .auto_mapper import AutomaticFieldMapper
from .data_parser import ParsedData, csv_template, parse_data
from .errors import DataParseError, JobNotFoundError, JobStateError, SchemaNotFoundError
from .field_detector import DetectionResult, detect_fields
from .job_store import InMemoryJobStore, JobStore
from .models import BulkOptions, FieldDescriptor, Job, JobStatus, OutputType
from .orchestrator import BulkJobOrchestrator
from .renderer import render_document
from .runners import TaskRunner, ThreadTaskRunner
from .schema_store import FieldSchemaStore
from .settings import Settings, get_settings
from .templates import TemplateLibrary

logger = logging.getLogger(__name__)

PREVIEW_ROWS = 5
DOWNLOAD_NAMES = {
    OutputType.ZIP: ("filled-forms.zip", "application/zip"),
    OutputType.PDF: ("filled-forms-merged.pdf", "application/pdf"),
}


class PDFAutofillService:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        job_store: Optional[JobStore] = None,
        runner: Optional[TaskRunner] = None,
    ):
        self.settings = settings or get_settings()
        self.settings.ensure_dirs()

        self.templates = TemplateLibrary(self.settings.templates_dir)
        self.schemas = FieldSchemaStore(self.settings.templates_dir, self.settings.users_dir)
        self.field_mapper = AutomaticFieldMapper(self.settings.automap_threshold)

        self.job_store = job_store or InMemoryJobStore(ttl_seconds=self.settings.job_ttl_seconds)
        self.runner = runner or ThreadTaskRunner(max_workers=self.settings.max_workers)
        self.orchestrator = BulkJobOrchestrator(
            schema_store=self.schemas,
            templates=self.templates,
            job_store=self.job_store,
            runner=self.runner,
            output_dir=self.settings.temp_dir,
        )

    def shutdown(self) -> None:
        self.runner.shutdown(wait=False)

    # ------------------------------------------------------------------
    # Template + schema management
    # ------------------------------------------------------------------
    def list_templates(self, user_id: Optional[str] = None) -> List[Dict]:
        """Templates that can be bulk filled, i.e. have a saved schema."""
        return self.templates.list_fillable(self.schemas, user_id)

    def get_fields(self, template_id: str, user_id: Optional[str] = None) -> List[FieldDescriptor]:
        fields = self.schemas.get(template_id, user_id)
        if fields is None:
            raise SchemaNotFoundError(f"Template fields not found for '{template_id}'")
        return fields

    def save_fields(self, template_id: str, user_id: str, fields: Sequence[FieldDescriptor]) -> Dict:
        schema = self.schemas.save(template_id, user_id, fields)
        return {"success": True, "fieldCount": len(schema.fields), "savedAt": schema.saved_at}

    def csv_template(self, template_id: str, user_id: Optional[str] = None) -> str:
        return csv_template(f.name for f in self.get_fields(template_id, user_id))

    # ------------------------------------------------------------------
    # Data upload + auto-mapping
    # ------------------------------------------------------------------
    def parse_upload(
        self,
        raw: bytes,
        content_type: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> ParsedData:
        if len(raw) > self.settings.max_upload_bytes:
            raise DataParseError(
                f"File too large: {len(raw)} bytes (limit {self.settings.max_upload_bytes})"
            )

        parsed = parse_data(raw, content_type, filename)
        if parsed.row_count == 0:
            raise DataParseError("No data rows found")
        if parsed.row_count > self.settings.max_rows:
            raise DataParseError(
                f"Too many rows: {parsed.row_count} (maximum {self.settings.max_rows})"
            )

        logger.info("Parsed upload %s: %d rows, %d columns", filename or "<data>", parsed.row_count, len(parsed.headers))
        return parsed

    @staticmethod
    def upload_summary(parsed: ParsedData) -> Dict[str, Any]:
        return {
            "headers": parsed.headers,
            "rowCount": parsed.row_count,
            "preview": parsed.records[:PREVIEW_ROWS],
            "data": parsed.records,
        }

    def auto_map(self, template_id: str, headers: Sequence[str], user_id: Optional[str] = None) -> Dict[str, str]:
        fields = self.get_fields(template_id, user_id)
        return self.field_mapper.auto_map(headers, fields)

    # ------------------------------------------------------------------
    # PDF generation
    # ------------------------------------------------------------------
    def detect_fields(self, pdf_bytes: bytes) -> DetectionResult:
        return detect_fields(pdf_bytes)

    def fill_document(self, source: bytes, fields: Sequence[FieldDescriptor], flatten: bool = False) -> bytes:
        """Interactive single fill: a field that cannot be drawn is skipped."""
        return render_document(source, fields, flatten=flatten, strict=False)

    def preview(
        self,
        template_id: str,
        record: Mapping[str, Any],
        mapping: Mapping[str, str],
        user_id: Optional[str] = None,
    ) -> bytes:
        fields = self.get_fields(template_id, user_id)
        source = self.templates.read_bytes(template_id)
        filled = apply_data_to_fields(fields, record, mapping)
        return render_document(source, filled, flatten=True, strict=False)

    def start_bulk(
        self,
        template_id: str,
        records: Sequence[Mapping[str, Any]],
        mapping: Mapping[str, str],
        options: Optional[BulkOptions] = None,
        user_id: Optional[str] = None,
    ) -> str:
        if not records:
            raise DataParseError("No data rows provided")
        if not mapping:
            raise DataParseError("Field mapping is required")
        if len(records) > self.settings.max_rows:
            raise DataParseError(f"Too many rows: {len(records)} (maximum {self.settings.max_rows})")

        job_id = uuid.uuid4().hex
        self.orchestrator.start(job_id, template_id, records, mapping, options, user_id)
        return job_id

    # ------------------------------------------------------------------
    # Job status + download
    # ------------------------------------------------------------------
    def job_status(self, job_id: str) -> Dict[str, Any]:
        return self.orchestrator.get_status(job_id)

    def download_info(self, job_id: str) -> Dict[str, Any]:
        """Path, filename and media type of a completed job's output."""
        job: Job = self.orchestrator.get_job(job_id)
        if job.status is not JobStatus.COMPLETED or not job.output_file:
            raise JobStateError(f"Job '{job_id}' is not completed")

        path = Path(job.output_file)
        if not path.exists():
            raise JobNotFoundError(f"Output for job '{job_id}' no longer exists")

        filename, media_type = DOWNLOAD_NAMES[job.output_type]
        return {"path": path, "filename": filename, "media_type": media_type}

    def schedule_cleanup(self, job_id: str) -> None:
        self.orchestrator.schedule_cleanup(job_id, self.settings.download_cleanup_delay)
