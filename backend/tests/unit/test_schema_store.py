"""Field schema storage and template lookup tests"""

import json

import pytest

from helpers import make_pdf, write_template
from pdf_autofill.errors import TemplateNotFoundError
from pdf_autofill.models import FieldDescriptor, FieldType
from pdf_autofill.schema_store import FieldSchemaStore, schema_filename, validate_user_id
from pdf_autofill.templates import TemplateLibrary


@pytest.fixture
def store(settings):
    return FieldSchemaStore(settings.templates_dir, settings.users_dir)


class TestFieldSchemaStore:
    def test_schema_filename(self):
        assert schema_filename("intake.pdf") == "intake.fields.json"
        assert schema_filename("../x/intake.PDF") == "intake.fields.json"

    def test_missing_schema(self, store):
        assert store.get("nothing.pdf") is None

    def test_global_schema(self, settings, store, name_paid_fields):
        write_template(settings, name_paid_fields)
        fields = store.get("form.pdf")
        assert [f.name for f in fields] == ["Name", "Paid"]
        assert fields[1].type is FieldType.CHECKBOX

    def test_user_schema_overrides_global(self, settings, store, name_paid_fields):
        write_template(settings, name_paid_fields)
        store.save("form.pdf", "alice", [FieldDescriptor(name="Only")])

        assert [f.name for f in store.get("form.pdf", "alice")] == ["Only"]
        assert [f.name for f in store.get("form.pdf", "bob")] == ["Name", "Paid"]

    def test_save_writes_persisted_record(self, settings, store):
        raw = {"id": "field_0", "name": "Email", "type": "text", "page": 1, "detected": True}
        store.save("form.pdf", "alice", [FieldDescriptor.model_validate(raw)])

        path = settings.users_dir / "alice" / "form.fields.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["templateName"] == "form.pdf"
        assert data["userId"] == "alice"
        assert data["savedAt"]
        assert data["fields"] == [raw]

    def test_unreadable_schema_falls_back(self, settings, store, name_paid_fields):
        write_template(settings, name_paid_fields)
        user_dir = settings.users_dir / "alice"
        user_dir.mkdir(parents=True)
        (user_dir / "form.fields.json").write_text("{broken", encoding="utf-8")
        assert [f.name for f in store.get("form.pdf", "alice")] == ["Name", "Paid"]

    @pytest.mark.parametrize("user_id", ["", "..", "../etc", "a/b", ".hidden"])
    def test_invalid_user_ids(self, user_id):
        with pytest.raises(ValueError):
            validate_user_id(user_id)


class TestTemplateLibrary:
    def test_list_and_read(self, settings):
        (settings.templates_dir / "b.pdf").write_bytes(make_pdf())
        (settings.templates_dir / "a.pdf").write_bytes(make_pdf())
        (settings.templates_dir / "notes.txt").write_text("x")
        library = TemplateLibrary(settings.templates_dir)

        assert library.list_templates() == ["a.pdf", "b.pdf"]
        assert library.read_bytes("a.pdf").startswith(b"%PDF")

    @pytest.mark.parametrize("template_id", ["missing.pdf", "../secret.pdf", "notes.txt", ""])
    def test_resolve_rejects(self, settings, template_id):
        (settings.templates_dir / "notes.txt").write_text("x")
        with pytest.raises(TemplateNotFoundError):
            TemplateLibrary(settings.templates_dir).resolve(template_id)

    def test_list_fillable_only_with_schema(self, settings, store, name_paid_fields):
        write_template(settings, name_paid_fields, name="with-schema.pdf")
        (settings.templates_dir / "bare.pdf").write_bytes(make_pdf())
        library = TemplateLibrary(settings.templates_dir)

        assert library.list_fillable(store) == [
            {"name": "with-schema", "filename": "with-schema.pdf", "fieldCount": 2},
        ]

    def test_missing_directory(self, tmp_path):
        assert TemplateLibrary(tmp_path / "nope").list_templates() == []
