import json
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(".env.local"); load_dotenv()  # also loads .env if present

import logging  # noqa: E402
from typing import Any, Dict, List, Optional  # noqa: E402

from fastapi import (  # noqa: E402
    BackgroundTasks,
    Depends,
    FastAPI,
    File,
    Form,
    Header,
    HTTPException,
    Response,
    UploadFile,
)
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi.responses import FileResponse  # noqa: E402
from pydantic import BaseModel, ConfigDict, Field, ValidationError  # noqa: E402

from pdf_autofill import PDFAutofillError, PDFAutofillService  # noqa: E402
from pdf_autofill.errors import (  # noqa: E402
    DataParseError,
    JobNotFoundError,
    JobStateError,
    RenderError,
    SchemaNotFoundError,
    TemplateNotFoundError,
)
from pdf_autofill.models import BulkOptions, FieldDescriptor  # noqa: E402
from pdf_autofill.settings import configure_logging, get_settings  # noqa: E402

configure_logging(get_settings().log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="PDF Auto-fill")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "*"
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_service: Optional[PDFAutofillService] = None


def get_service() -> PDFAutofillService:
    global _service
    if _service is None:
        _service = PDFAutofillService()
    return _service


def _http_error(exc: Exception) -> HTTPException:
    """Translate a domain (or invalid input) error into the matching HTTP status."""
    if isinstance(exc, (TemplateNotFoundError, SchemaNotFoundError, JobNotFoundError)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (DataParseError, RenderError, JobStateError, ValueError)):
        return HTTPException(status_code=400, detail=str(exc))
    logger.error("Request failed: %s", exc)
    return HTTPException(status_code=500, detail=str(exc))


class FieldsSaveRequest(BaseModel):
    fields: List[FieldDescriptor] = []


class AutoMapRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    template_filename: str = Field(alias="templateFilename")
    data_headers: List[str] = Field(alias="dataHeaders")


class PreviewRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data_row: Dict[str, Any] = Field(alias="dataRow")
    field_mapping: Dict[str, str] = Field(alias="fieldMapping")


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data: List[Dict[str, Any]]
    field_mapping: Dict[str, str] = Field(default_factory=dict, alias="fieldMapping")
    options: BulkOptions = Field(default_factory=BulkOptions)


@app.get("/health")
def health():
    return {"ok": True}


# --- Interactive fill -----------------------------------------------------------


@app.post("/api/detect-fields")
def detect_fields(pdf: UploadFile = File(...), service: PDFAutofillService = Depends(get_service)):
    try:
        result = service.detect_fields(pdf.file.read())
    except (PDFAutofillError, ValueError) as exc:
        raise _http_error(exc) from exc
    return result.to_json()


@app.post("/api/fill")
def fill_pdf(
    pdf: UploadFile = File(...),
    fields: str = Form("[]"),
    flatten: bool = Form(False),
    service: PDFAutofillService = Depends(get_service),
):
    try:
        descriptors = [FieldDescriptor.model_validate(f) for f in json.loads(fields)]
    except (ValueError, TypeError, ValidationError) as exc:
        raise HTTPException(status_code=400, detail=f"Invalid fields: {exc}") from exc

    try:
        pdf_bytes = service.fill_document(pdf.file.read(), descriptors, flatten=flatten)
    except (PDFAutofillError, ValueError) as exc:
        raise _http_error(exc) from exc

    headers = {"Content-Disposition": 'attachment; filename="filled-form.pdf"'}
    return Response(content=pdf_bytes, media_type="application/pdf", headers=headers)


# --- Template field schemas -----------------------------------------------------


@app.get("/api/templates")
def list_templates(service: PDFAutofillService = Depends(get_service)):
    return {"templates": service.templates.list_templates()}


@app.get("/api/templates/{template_id}/fields")
def get_template_fields(
    template_id: str,
    x_user_id: Optional[str] = Header(None),
    service: PDFAutofillService = Depends(get_service),
):
    try:
        fields = service.get_fields(template_id, x_user_id)
    except SchemaNotFoundError:
        return {"fields": [], "saved": False}
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"fields": [f.to_json() for f in fields], "saved": True}


@app.post("/api/templates/{template_id}/fields")
def save_template_fields(
    template_id: str,
    req: FieldsSaveRequest,
    x_user_id: Optional[str] = Header(None),
    service: PDFAutofillService = Depends(get_service),
):
    if not template_id.lower().endswith(".pdf"):
        raise HTTPException(status_code=400, detail="Invalid filename")
    if not x_user_id:
        raise HTTPException(status_code=401, detail="User ID required to save fields")
    try:
        return service.save_fields(template_id, x_user_id, req.fields)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


# --- Bulk fill ------------------------------------------------------------------


@app.get("/api/bulk/templates")
def bulk_templates(x_user_id: Optional[str] = Header(None), service: PDFAutofillService = Depends(get_service)):
    try:
        return {"templates": service.list_templates(x_user_id)}
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/api/bulk/template/{template_id}/fields")
def bulk_template_fields(
    template_id: str,
    x_user_id: Optional[str] = Header(None),
    service: PDFAutofillService = Depends(get_service),
):
    try:
        fields = service.get_fields(template_id, x_user_id)
    except (PDFAutofillError, ValueError) as exc:
        raise _http_error(exc) from exc
    return {"fields": [{"name": f.name, "type": f.type.value, "required": f.required} for f in fields]}


@app.get("/api/bulk/template-csv/{template_id}")
def bulk_template_csv(
    template_id: str,
    x_user_id: Optional[str] = Header(None),
    service: PDFAutofillService = Depends(get_service),
):
    try:
        content = service.csv_template(template_id, x_user_id)
    except (PDFAutofillError, ValueError) as exc:
        raise _http_error(exc) from exc

    stem = Path(template_id).stem
    headers = {"Content-Disposition": f'attachment; filename="{stem}_bulk_template.csv"'}
    return Response(content=content, media_type="text/csv; charset=utf-8", headers=headers)


@app.post("/api/bulk/upload-data")
def bulk_upload_data(dataFile: UploadFile = File(...), service: PDFAutofillService = Depends(get_service)):
    raw = dataFile.file.read()
    try:
        parsed = service.parse_upload(raw, dataFile.content_type, dataFile.filename)
    except (PDFAutofillError, ValueError) as exc:
        raise _http_error(exc) from exc
    return {"success": True, **service.upload_summary(parsed)}


@app.post("/api/bulk/auto-map")
def bulk_auto_map(
    req: AutoMapRequest,
    x_user_id: Optional[str] = Header(None),
    service: PDFAutofillService = Depends(get_service),
):
    try:
        mapping = service.auto_map(req.template_filename, req.data_headers, x_user_id)
    except (PDFAutofillError, ValueError) as exc:
        raise _http_error(exc) from exc
    return {"mapping": mapping}


@app.post("/api/bulk/preview/{template_id}")
def bulk_preview(
    template_id: str,
    req: PreviewRequest,
    x_user_id: Optional[str] = Header(None),
    service: PDFAutofillService = Depends(get_service),
):
    try:
        pdf_bytes = service.preview(template_id, req.data_row, req.field_mapping, x_user_id)
    except (PDFAutofillError, ValueError) as exc:
        raise _http_error(exc) from exc
    return Response(content=pdf_bytes, media_type="application/pdf")


@app.post("/api/bulk/generate/{template_id}")
def bulk_generate(
    template_id: str,
    req: GenerateRequest,
    x_user_id: Optional[str] = Header(None),
    service: PDFAutofillService = Depends(get_service),
):
    try:
        service.templates.resolve(template_id)
        job_id = service.start_bulk(template_id, req.data, req.field_mapping, req.options, x_user_id)
    except (PDFAutofillError, ValueError) as exc:
        raise _http_error(exc) from exc
    return {"success": True, "jobId": job_id, "message": "Bulk generation started"}


@app.get("/api/bulk/status/{job_id}")
def bulk_status(job_id: str, service: PDFAutofillService = Depends(get_service)):
    try:
        return service.job_status(job_id)
    except (PDFAutofillError, ValueError) as exc:
        raise _http_error(exc) from exc


@app.get("/api/bulk/download/{job_id}")
def bulk_download(
    job_id: str,
    background_tasks: BackgroundTasks,
    service: PDFAutofillService = Depends(get_service),
):
    try:
        info = service.download_info(job_id)
    except (PDFAutofillError, ValueError) as exc:
        raise _http_error(exc) from exc

    background_tasks.add_task(service.schedule_cleanup, job_id)
    return FileResponse(info["path"], media_type=info["media_type"], filename=info["filename"])
