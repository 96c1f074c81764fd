"""Test DOCX rendering, HTML conversion and PDF output."""

import io

import pytest
from docx import Document
from docx.oxml import parse_xml
from docx.oxml.ns import nsdecls

from app.core.exceptions import TemplateRenderError
from app.models.enums import DocumentType
from app.services.template_renderer import TemplateRenderer, is_docx_container


@pytest.fixture
def renderer():
    return TemplateRenderer()


def _docx(build) -> bytes:
    doc = Document()
    build(doc)
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def _text(content: bytes) -> str:
    doc = Document(io.BytesIO(content))
    lines = [p.text for p in doc.paragraphs]
    for table in doc.tables:
        for row in table.rows:
            for cell in row.cells:
                lines.extend(p.text for p in cell.paragraphs)
    return "\n".join(lines)


def test_render_substitutes_placeholders(renderer):
    template = _docx(lambda doc: doc.add_paragraph("Name: {full_name}, Purpose: {request_purpose}"))

    result = renderer.render(template, {"full_name": "Juan Dela Cruz", "request_purpose": "employment"})

    assert "Name: Juan Dela Cruz, Purpose: employment" in _text(result)


def test_render_placeholder_split_across_runs(renderer):
    def build(doc):
        paragraph = doc.add_paragraph("Issued to ")
        paragraph.add_run("{full_").bold = True
        paragraph.add_run("name}")
        paragraph.add_run(" on {date_issued}.")

    result = renderer.render(_docx(build), {"full_name": "Maria Reyes", "date_issued": "May 1, 2026"})

    assert "Issued to Maria Reyes on May 1, 2026." in _text(result)


def test_render_inside_tables(renderer):
    def build(doc):
        table = doc.add_table(rows=1, cols=2)
        table.cell(0, 0).text = "Name"
        table.cell(0, 1).text = "{last_name}"

    result = renderer.render(_docx(build), {"last_name": "Santos"})

    assert "Santos" in _text(result)
    assert "{last_name}" not in _text(result)


def _with_fragment(fragment: str) -> bytes:
    def build(doc):
        paragraph = doc.add_paragraph("Issued to ")
        paragraph._p.append(parse_xml(fragment))

    return _docx(build)


def _hyperlink_template() -> bytes:
    return _with_fragment(
        f"<w:hyperlink {nsdecls('w')} w:anchor=\"top\">"
        "<w:r><w:t>{full_</w:t></w:r><w:r><w:t>name}</w:t></w:r>"
        "</w:hyperlink>"
    )


def _tracked_insertion_template() -> bytes:
    return _with_fragment(
        f"<w:ins {nsdecls('w')} w:id=\"1\" w:author=\"clerk\" w:date=\"2026-01-01T00:00:00Z\">"
        "<w:r><w:t>{full_name}</w:t></w:r>"
        "</w:ins>"
    )


def _text_box_template() -> bytes:
    return _with_fragment(
        f"<w:r {nsdecls('w')} xmlns:v=\"urn:schemas-microsoft-com:vml\">"
        "<w:pict><v:shape style=\"width:200pt;height:40pt\"><v:textbox><w:txbxContent>"
        "<w:p><w:r><w:t>Resident: {full_name}</w:t></w:r></w:p>"
        "</w:txbxContent></v:textbox></v:shape></w:pict>"
        "</w:r>"
    )


@pytest.mark.parametrize(
    "build_template",
    [_hyperlink_template, _tracked_insertion_template, _text_box_template],
    ids=["hyperlink", "tracked-insertion", "text-box"],
)
def test_render_reaches_nested_run_containers(renderer, build_template):
    template = build_template()

    assert renderer.find_placeholders(template) == ["full_name"]
    with pytest.raises(TemplateRenderError) as exc_info:
        renderer.render(template, {})
    assert exc_info.value.missing == ["full_name"]

    result = renderer.render(template, {"full_name": "Maria Reyes"})
    xml = Document(io.BytesIO(result)).element.xml
    assert "{full_name}" not in xml and "{full_" not in xml
    assert "Maria Reyes" in xml


def test_html_includes_hyperlink_and_inserted_text(renderer):
    for template in (_hyperlink_template(), _tracked_insertion_template()):
        html = renderer.to_html(renderer.render(template, {"full_name": "Maria Reyes"}))
        assert "Issued to Maria Reyes" in html


def test_render_stringifies_values(renderer):
    template = _docx(lambda doc: doc.add_paragraph("Year {current_year}"))
    assert "Year 2026" in _text(renderer.render(template, {"current_year": 2026}))


def test_render_unresolved_placeholder_raises(renderer):
    template = _docx(lambda doc: doc.add_paragraph("{full_name} of {unknown_field} and {other}"))

    with pytest.raises(TemplateRenderError) as exc_info:
        renderer.render(template, {"full_name": "Juan"})

    assert exc_info.value.missing == ["other", "unknown_field"]
    assert exc_info.value.status_code == 422


def test_render_rejects_non_docx(renderer):
    with pytest.raises(TemplateRenderError):
        renderer.render(b"not a zip file", {})
    with pytest.raises(TemplateRenderError):
        renderer.render(b"", {})


def test_is_docx_container(renderer):
    assert is_docx_container(_docx(lambda doc: doc.add_paragraph("x"))) is True
    assert is_docx_container(b"plain text") is False


def test_find_placeholders_in_document_order(renderer):
    def build(doc):
        doc.add_paragraph("{first_name} {last_name}")
        doc.add_paragraph("{first_name} again, {birth_date}")

    assert renderer.find_placeholders(_docx(build)) == ["first_name", "last_name", "birth_date"]


def test_rendered_html_contains_values_verbatim(renderer):
    def build(doc):
        doc.add_heading("Certificate", level=1)
        doc.add_paragraph("This certifies that {full_name} resides at {full_address}.")
        doc.add_paragraph("First item", style="List Bullet")

    data = {"full_name": "Juan Dela Cruz", "full_address": "123 Rizal Street, Bagong Barrio, Caloocan City"}
    html = renderer.to_html(renderer.render(_docx(build), data))

    assert "Juan Dela Cruz" in html
    assert "123 Rizal Street, Bagong Barrio, Caloocan City" in html
    assert "{" not in html
    assert "<h1" in html
    assert "<ul>" in html and "<li>First item</li>" in html


def test_html_escapes_text(renderer):
    html = renderer.to_html(_docx(lambda doc: doc.add_paragraph("A & B <tag>")))
    assert "A &amp; B &lt;tag&gt;" in html


def test_html_is_deterministic(renderer):
    document = _docx(lambda doc: doc.add_paragraph("Same input"))
    assert renderer.to_html(document) == renderer.to_html(document)


def test_to_pdf_produces_pdf(renderer):
    pdf = renderer.to_pdf("<p>Hello Barangay</p>")
    assert pdf.startswith(b"%PDF")


def test_default_templates_render_with_full_data(renderer):
    data = {
        "full_name": "Juan Dela Cruz",
        "first_name": "Juan",
        "last_name": "Dela Cruz",
        "birth_date": "January 15, 1990",
        "street_address": "123 Rizal Street",
        "street_number": "123",
        "street_name": "Rizal Street",
        "barangay_name": "Bagong Barrio",
        "city_name": "Caloocan City",
        "full_address": "123 Rizal Street, Bagong Barrio, Caloocan City",
        "request_purpose": "employment",
        "date_issued": "May 1, 2026",
        "current_year": 2026,
        "current_date": "5/1/2026",
    }
    for document_type in DocumentType:
        template = renderer.build_default_template(document_type)
        text = _text(renderer.render(template, data))
        assert document_type.display_name.upper() in text
        assert "Juan Dela Cruz" in text
        assert "{" not in text
