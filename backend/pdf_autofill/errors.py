"""
Exception hierarchy for the PDF auto-fill package.

Input errors are raised before any job starts; per-record errors are caught by
the orchestrator and stored on the job; everything else is terminal for the
call or job that raised it.
"""


class PDFAutofillError(RuntimeError):
    """Base class for all domain errors."""


class DataParseError(PDFAutofillError):
    """The uploaded CSV/JSON payload could not be turned into records."""


class TemplateNotFoundError(PDFAutofillError):
    """The requested template PDF does not exist."""


class SchemaNotFoundError(PDFAutofillError):
    """No saved field schema exists for a template."""


class RenderError(PDFAutofillError):
    """The source document could not be opened for rendering."""


class FieldRenderError(PDFAutofillError):
    """A single field could not be drawn."""

    def __init__(self, field_name: str, message: str):
        super().__init__(f"Field '{field_name}': {message}")
        self.field_name = field_name


class AggregationError(PDFAutofillError):
    """Merging or archiving the rendered documents failed."""


class JobStateError(PDFAutofillError):
    """Unknown job or an illegal status transition."""


class JobNotFoundError(JobStateError):
    """No job (or no job output) exists for the given id."""
