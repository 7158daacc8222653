"""Service layer tests"""

import json

import pytest

from helpers import page_text, write_template
from pdf_autofill.errors import DataParseError, JobNotFoundError, JobStateError, SchemaNotFoundError
from pdf_autofill.models import BulkOptions, FieldDescriptor, FieldType
from pdf_autofill.runners import InlineTaskRunner


class TestUploads:
    def test_parse_upload(self, service):
        parsed = service.parse_upload(b"Name,Paid\nAlice,yes\n", "text/csv", "people.csv")
        summary = service.upload_summary(parsed)
        assert summary["rowCount"] == 1
        assert summary["headers"] == ["Name", "Paid"]
        assert summary["preview"] == summary["data"] == [{"Name": "Alice", "Paid": "yes"}]

    def test_preview_holds_first_five_rows(self, service):
        rows = json.dumps([{"n": i} for i in range(8)]).encode()
        summary = service.upload_summary(service.parse_upload(rows, "application/json"))
        assert len(summary["preview"]) == 5
        assert len(summary["data"]) == 8

    def test_row_ceiling(self, service):
        content = "n\n" + "\n".join(str(i) for i in range(11)) + "\n"
        with pytest.raises(DataParseError, match="Too many rows"):
            service.parse_upload(content.encode())

    def test_no_rows(self, service):
        with pytest.raises(DataParseError, match="No data rows"):
            service.parse_upload(b"Name,Paid\n")

    def test_upload_size_limit(self, settings):
        from pdf_autofill.service import PDFAutofillService

        small = settings.model_copy(update={"max_upload_bytes": 10})
        with pytest.raises(DataParseError, match="too large"):
            PDFAutofillService(small, runner=InlineTaskRunner()).parse_upload(b"Name\n" + b"x\n" * 20)


class TestSchemas:
    def test_get_fields_missing(self, service):
        with pytest.raises(SchemaNotFoundError):
            service.get_fields("form.pdf")

    def test_save_then_get(self, service):
        result = service.save_fields("form.pdf", "alice", [FieldDescriptor(name="Name")])
        assert result["success"] is True
        assert result["fieldCount"] == 1
        assert [f.name for f in service.get_fields("form.pdf", "alice")] == ["Name"]

    def test_csv_template(self, settings, service, name_paid_fields):
        write_template(settings, name_paid_fields + [FieldDescriptor(name="Name"), FieldDescriptor(name="")])
        assert service.csv_template("form.pdf") == "\ufeffName,Paid\n"

    def test_auto_map(self, settings, service, name_paid_fields):
        write_template(settings, name_paid_fields)
        assert service.auto_map("form.pdf", ["full name", "paid?", "other"]) == {
            "full name": "Name",
            "paid?": "Paid",
        }

    def test_list_templates(self, settings, service, name_paid_fields):
        write_template(settings, name_paid_fields)
        assert service.list_templates() == [{"name": "form", "filename": "form.pdf", "fieldCount": 2}]


class TestGeneration:
    def test_preview(self, settings, service, name_paid_fields):
        write_template(settings, name_paid_fields)
        pdf = service.preview("form.pdf", {"who": "Preview Person"}, {"who": "Name"})
        assert "Preview Person" in page_text(pdf)

    def test_fill_document_skips_bad_fields(self, service, blank_pdf):
        fields = [
            FieldDescriptor(name="Sig", type=FieldType.SIGNATURE, width=10, height=10, value="garbage"),
            FieldDescriptor(name="Name", x=72, y=700, width=200, height=20, value="Kept"),
        ]
        assert "Kept" in page_text(service.fill_document(blank_pdf, fields, flatten=True))

    def test_start_bulk_requires_mapping_and_rows(self, service):
        with pytest.raises(DataParseError, match="mapping"):
            service.start_bulk("form.pdf", [{"a": 1}], {})
        with pytest.raises(DataParseError, match="No data"):
            service.start_bulk("form.pdf", [], {"a": "b"})
        with pytest.raises(DataParseError, match="Too many rows"):
            service.start_bulk("form.pdf", [{"a": 1}] * 11, {"a": "b"})

    def test_bulk_and_download(self, settings, service, name_paid_fields):
        write_template(settings, name_paid_fields)
        job_id = service.start_bulk(
            "form.pdf", [{"Name": "A"}, {"Name": "B"}], {"Name": "Name"}, BulkOptions(merge=True)
        )

        status = service.job_status(job_id)
        assert status["status"] == "completed"
        assert status["outputType"] == "pdf"

        info = service.download_info(job_id)
        assert info["filename"] == "filled-forms-merged.pdf"
        assert info["media_type"] == "application/pdf"
        assert info["path"].exists()

    def test_download_requires_completed_job(self, service):
        job_id = service.start_bulk("missing.pdf", [{"Name": "A"}], {"Name": "Name"})
        assert service.job_status(job_id)["status"] == "error"
        with pytest.raises(JobStateError):
            service.download_info(job_id)

    def test_unknown_job(self, service):
        with pytest.raises(JobNotFoundError):
            service.job_status("nope")
