"""
Bulk job orchestration.

A job is registered in the job store as `processing` before `start` returns;
the records are then applied and rendered one after another in a background
task. A record that fails is written to the job's error list and the batch
moves on. Only a missing schema/template or a failure while building the
final merge/archive ends the job in `error`.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional, Sequence

from .aggregator import create_zip_archive, merge_pdfs
from .applicator import apply_data_to_fields
from .errors import JobNotFoundError, TemplateNotFoundError
from .job_store import JobStore
from .models import BulkOptions, FieldDescriptor, Job, OutputType
from .renderer import display_text, render_document
from .runners import TaskRunner, run_later
from .schema_store import FieldSchemaStore
from .templates import TemplateLibrary

logger = logging.getLogger(__name__)

MAX_FILENAME_LENGTH = 50
_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9_-]")

Renderer = Callable[..., bytes]


def output_filename(record: Mapping[str, Any], filename_field: Optional[str], row: int) -> str:
    """Sanitized value of the filename column, else `filled_<row>.pdf`."""
    value = record.get(filename_field) if filename_field else None
    if value:
        safe_name = _UNSAFE_FILENAME_CHARS.sub("_", display_text(value))[:MAX_FILENAME_LENGTH]
        return f"{safe_name}.pdf"
    return f"filled_{row}.pdf"


class BulkJobOrchestrator:
    def __init__(
        self,
        schema_store: FieldSchemaStore,
        templates: TemplateLibrary,
        job_store: JobStore,
        runner: TaskRunner,
        output_dir: Path,
        renderer: Renderer = render_document,
    ):
        self.schema_store = schema_store
        self.templates = templates
        self.job_store = job_store
        self.runner = runner
        self.output_dir = Path(output_dir)
        self.renderer = renderer

    # ------------------------------------------------------------------
    # Job lifecycle
    # ------------------------------------------------------------------
    def start(
        self,
        job_id: str,
        template_id: str,
        records: Sequence[Mapping[str, Any]],
        mapping: Mapping[str, str],
        options: Optional[BulkOptions] = None,
        user_id: Optional[str] = None,
    ) -> Job:
        """Register the job and hand the work to the task runner."""
        options = options or BulkOptions()
        records = list(records)
        job = Job(id=job_id, template_id=template_id, total=len(records))
        self.job_store.set(job)
        logger.info("[%s] Registered bulk job for %s with %d records", job_id, template_id, len(records))

        self.runner.submit(self._run_guarded, job, records, dict(mapping), options, user_id)
        return job

    def _run_guarded(self, job: Job, records, mapping, options, user_id) -> None:
        try:
            self._run(job, records, mapping, options, user_id)
        except Exception as exc:
            logger.exception("[%s] Bulk job crashed", job.id)
            if not job.is_terminal:
                job.mark_failed(f"Unexpected error: {exc}")
                self.job_store.set(job)

    def _run(
        self,
        job: Job,
        records: List[Mapping[str, Any]],
        mapping: Mapping[str, str],
        options: BulkOptions,
        user_id: Optional[str],
    ) -> None:
        fields = self.schema_store.get(job.template_id, user_id)
        if fields is None:
            self._fail(job, f"Template fields not found for '{job.template_id}'")
            return
        try:
            source = self.templates.read_bytes(job.template_id)
        except TemplateNotFoundError as exc:
            self._fail(job, str(exc))
            return

        documents, names = self._render_records(job, source, fields, records, mapping, options)

        output_base = self.output_dir / f"{job.id}_bulk"
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            if options.merge:
                output_path = output_base.with_suffix(".pdf")
                output_path.write_bytes(merge_pdfs(documents))
                output_type = OutputType.PDF
            else:
                output_path = create_zip_archive(documents, names, output_base.with_suffix(".zip"))
                output_type = OutputType.ZIP
        except Exception as exc:
            self._fail(job, f"Failed to build output: {exc}")
            return

        job.mark_completed(str(output_path), output_type)
        self.job_store.set(job)
        logger.info(
            "[%s] Completed: %d/%d documents, %d row errors, output %s",
            job.id, len(documents), job.total, len(job.errors), output_path.name,
        )

    def _render_records(
        self,
        job: Job,
        source: bytes,
        fields: Sequence[FieldDescriptor],
        records: List[Mapping[str, Any]],
        mapping: Mapping[str, str],
        options: BulkOptions,
    ):
        documents: List[bytes] = []
        names: List[str] = []

        for index, record in enumerate(records):
            row = index + 1
            try:
                filled = apply_data_to_fields(fields, record, mapping)
                documents.append(self.renderer(source, filled, flatten=True, strict=True))
                names.append(output_filename(record, options.filename_field, row))
            except Exception as exc:
                logger.warning("[%s] Row %d failed: %s", job.id, row, exc)
                job.add_row_error(row, str(exc))
            job.advance()
            self.job_store.set(job)

        return documents, names

    def _fail(self, job: Job, message: str) -> None:
        logger.error("[%s] Bulk job failed: %s", job.id, message)
        job.mark_failed(message)
        self.job_store.set(job)

    # ------------------------------------------------------------------
    # Status, download and cleanup
    # ------------------------------------------------------------------
    def get_job(self, job_id: str) -> Job:
        job = self.job_store.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Job '{job_id}' not found")
        return job

    def get_status(self, job_id: str) -> dict:
        return self.get_job(job_id).snapshot()

    def cleanup_job(self, job_id: str) -> None:
        job = self.job_store.get(job_id)
        if job is not None and job.output_file:
            try:
                Path(job.output_file).unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("[%s] Could not delete %s: %s", job_id, job.output_file, exc)
        self.job_store.delete(job_id)
        logger.info("[%s] Cleaned up", job_id)

    def schedule_cleanup(self, job_id: str, delay: float) -> None:
        run_later(delay, self.cleanup_job, job_id)
