"""DOCX template rendering and HTML/PDF conversion.

Templates are .docx files whose text holds ``{field_name}`` placeholders.
Rendering replaces every placeholder with a value from a flat data map and
refuses to produce output while any placeholder is left unresolved.

FLOW:
template bytes → render(data) → filled DOCX bytes → to_html() → to_pdf()
"""
import base64
import html
import io
import logging
import re
import zipfile
from typing import Any, Dict, Iterator, List, Set

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.opc.exceptions import PackageNotFoundError
from docx.oxml.ns import qn
from docx.shared import Mm, Pt
from docx.table import Table
from docx.text.paragraph import Paragraph
from docx.text.run import Run
from reportlab import rl_config
from xhtml2pdf import pisa

from app.core.exceptions import GenerationFailureError, TemplateRenderError
from app.models.enums import DocumentType

logger = logging.getLogger(__name__)

# Drop creation timestamps and random document IDs from ReportLab output
rl_config.invariant = 1

PLACEHOLDER_PATTERN = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")

DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PDF_MIME_TYPE = "application/pdf"

PDF_PAGE_CSS = """
@page {
    size: a4 portrait;
    margin: 20mm;
}
body { font-family: Helvetica; font-size: 11pt; line-height: 1.4; }
p { margin: 0 0 6pt 0; }
table { border-collapse: collapse; width: 100%; }
td, th { border: 0.5pt solid #808080; padding: 3pt; vertical-align: top; }
"""

_ALIGNMENT_CSS = {
    WD_ALIGN_PARAGRAPH.CENTER: "center",
    WD_ALIGN_PARAGRAPH.RIGHT: "right",
    WD_ALIGN_PARAGRAPH.JUSTIFY: "justify",
}

_DEFAULT_TEMPLATE_BODY = {
    DocumentType.BARANGAY_CLEARANCE: [
        "This is to certify that {full_name}, born on {birth_date}, is a resident of {full_address}.",
        "This clearance is issued for the purpose of: {request_purpose}",
    ],
    DocumentType.CERTIFICATE_OF_RESIDENCY: [
        "This is to certify that {full_name}, born on {birth_date}, is a bona fide resident of {full_address}.",
        "This certification is issued upon the request of the above-named person "
        "for the purpose of: {request_purpose}",
    ],
    DocumentType.CERTIFICATE_OF_INDIGENCY: [
        "This is to certify that {full_name}, born on {birth_date}, residing at {full_address}, "
        "belongs to an indigent family of this barangay.",
        "This certification is issued upon the request of the above-named person "
        "for the purpose of: {request_purpose}",
    ],
}


def _open_docx(content: bytes):
    """Load DOCX bytes, raising TemplateRenderError for anything else."""
    if not content:
        raise TemplateRenderError("Template is empty")
    try:
        return Document(io.BytesIO(content))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as e:
        raise TemplateRenderError(f"Invalid DOCX file: {e}")


def is_docx_container(content: bytes) -> bool:
    """Check that bytes are a zip package holding word/document.xml."""
    try:
        with zipfile.ZipFile(io.BytesIO(content)) as archive:
            return "word/document.xml" in archive.namelist()
    except zipfile.BadZipFile:
        return False


_W_P = qn("w:p")
_W_R = qn("w:r")
_W_T = qn("w:t")
_XML_SPACE = qn("xml:space")


def _iter_paragraph_elements(doc) -> Iterator:
    """Yield every w:p of the body, headers and footers.

    Walks the XML rather than python-docx's block items, so paragraphs in
    tables, text boxes and content controls are included.
    """
    yield from doc.element.body.iter(_W_P)
    for section in doc.sections:
        for part in (
            section.header, section.footer,
            section.first_page_header, section.first_page_footer,
            section.even_page_header, section.even_page_footer,
        ):
            # Linked parts have no definition of their own; touching one would add it
            if not part.is_linked_to_previous:
                yield from part._element.iter(_W_P)


def _own_descendants(p_element, tag) -> List:
    """Descendants with the given tag whose nearest enclosing paragraph is p_element.

    Covers runs inside hyperlinks, tracked insertions and fields, and skips
    paragraphs nested in text boxes, which are visited on their own.
    """
    nodes = []
    for node in p_element.iter(tag):
        parent = node.getparent()
        while parent is not None and parent.tag != _W_P:
            parent = parent.getparent()
        if parent is p_element:
            nodes.append(node)
    return nodes


def _own_text_nodes(p_element) -> List:
    return _own_descendants(p_element, _W_T)


def _paragraph_text(p_element) -> str:
    return "".join(node.text or "" for node in _own_text_nodes(p_element))


def _substitute_paragraph(p_element, data: Dict[str, Any], missing: Set[str]) -> None:
    """Replace placeholders in a paragraph, keeping the formatting of the first run of each.

    Word splits text into runs at arbitrary points, so a placeholder may
    span several text nodes. Matches are located on the joined text and
    applied from last to first so earlier offsets stay valid.
    """
    nodes = _own_text_nodes(p_element)
    if not nodes:
        return
    texts = [node.text or "" for node in nodes]
    joined = "".join(texts)
    if "{" not in joined:
        return

    bounds = []
    position = 0
    for text in texts:
        bounds.append((position, position + len(text)))
        position += len(text)

    for match in reversed(list(PLACEHOLDER_PATTERN.finditer(joined))):
        key = match.group(1)
        if key not in data:
            missing.add(key)
            continue
        value = "" if data[key] is None else str(data[key])
        start, end = match.span()
        first = next(i for i, (s, e) in enumerate(bounds) if s <= start < e)
        last = next(i for i, (s, e) in enumerate(bounds) if s < end <= e)
        if first == last:
            offset = bounds[first][0]
            texts[first] = texts[first][:start - offset] + value + texts[first][end - offset:]
        else:
            texts[first] = texts[first][:start - bounds[first][0]] + value
            for i in range(first + 1, last):
                texts[i] = ""
            texts[last] = texts[last][end - bounds[last][0]:]

    for node, text in zip(nodes, texts):
        # Only touch changed nodes; other run content (drawings, tabs) stays as is
        if (node.text or "") != text:
            node.text = text
            node.set(_XML_SPACE, "preserve")


class TemplateRenderer:
    """Stateless DOCX renderer and converter."""

    def render(self, template: bytes, data: Dict[str, Any]) -> bytes:
        """Fill every placeholder in a DOCX template.

        Args:
            template: DOCX template bytes
            data: Placeholder name to value; values are stringified

        Returns:
            Filled DOCX bytes

        Raises:
            TemplateRenderError: If the template is not a DOCX file or a
                placeholder has no value in data
        """
        doc = _open_docx(template)
        missing: Set[str] = set()
        for p_element in _iter_paragraph_elements(doc):
            _substitute_paragraph(p_element, data, missing)

        if missing:
            raise TemplateRenderError(
                f"Unresolved template placeholders: {', '.join(sorted(missing))}",
                missing=missing,
            )

        buffer = io.BytesIO()
        doc.save(buffer)
        return buffer.getvalue()

    def find_placeholders(self, template: bytes) -> List[str]:
        """List distinct placeholder names in document order."""
        doc = _open_docx(template)
        seen: Dict[str, None] = {}
        for p_element in _iter_paragraph_elements(doc):
            for match in PLACEHOLDER_PATTERN.finditer(_paragraph_text(p_element)):
                seen.setdefault(match.group(1), None)
        return list(seen)

    def extract_images(self, template: bytes) -> Dict[str, str]:
        """Map each image under word/media/ to a data URI."""
        _open_docx(template)
        images = {}
        with zipfile.ZipFile(io.BytesIO(template)) as archive:
            for name in sorted(archive.namelist()):
                if not name.startswith("word/media/"):
                    continue
                filename = name.rsplit("/", 1)[-1]
                extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
                mime_type = {
                    "png": "image/png",
                    "jpg": "image/jpeg",
                    "jpeg": "image/jpeg",
                    "gif": "image/gif",
                    "bmp": "image/bmp",
                    "tif": "image/tiff",
                    "tiff": "image/tiff",
                    "svg": "image/svg+xml",
                }.get(extension)
                if mime_type:
                    encoded = base64.b64encode(archive.read(name)).decode("ascii")
                    images[filename] = f"data:{mime_type};base64,{encoded}"
        return images

    def to_html(self, document: bytes) -> str:
        """Convert a DOCX document to an HTML fragment.

        Headings, alignment, bold/italic/underline, line breaks, bullet and
        numbered lists and tables are kept; inline images become data URIs.
        Output depends only on the input bytes.
        """
        doc = _open_docx(document)
        parts: List[str] = []
        open_list = None

        for child in doc.element.body.iterchildren():
            if child.tag == qn("w:p"):
                paragraph = Paragraph(child, doc)
                list_tag = self._list_tag(paragraph)
                if list_tag != open_list:
                    if open_list:
                        parts.append(f"</{open_list}>")
                    if list_tag:
                        parts.append(f"<{list_tag}>")
                    open_list = list_tag
                if list_tag:
                    parts.append(f"<li>{self._runs_html(paragraph)}</li>")
                else:
                    parts.append(self._paragraph_html(paragraph))
            elif child.tag == qn("w:tbl"):
                if open_list:
                    parts.append(f"</{open_list}>")
                    open_list = None
                parts.append(self._table_html(Table(child, doc)))

        if open_list:
            parts.append(f"</{open_list}>")
        return "\n".join(parts)

    def to_pdf(self, html_content: str) -> bytes:
        """Convert HTML to an A4 PDF with 20mm margins.

        Raises:
            GenerationFailureError: If xhtml2pdf reports an error
        """
        if "<html" in html_content.lower():
            source = html_content
        else:
            source = (
                "<html><head><meta charset=\"utf-8\"/>"
                f"<style>{PDF_PAGE_CSS}</style></head>"
                f"<body>{html_content}</body></html>"
            )

        buffer = io.BytesIO()
        try:
            result = pisa.CreatePDF(io.BytesIO(source.encode("UTF-8")), dest=buffer, encoding="utf-8")
        except Exception as e:
            logger.error(f"HTML to PDF conversion crashed: {e}", exc_info=True)
            raise GenerationFailureError(f"Failed to convert document to PDF: {e}")
        if result.err:
            raise GenerationFailureError(f"Failed to convert document to PDF ({result.err} errors)")
        return buffer.getvalue()

    def docx_to_pdf(self, document: bytes) -> bytes:
        return self.to_pdf(self.to_html(document))

    def build_default_template(self, document_type: DocumentType) -> bytes:
        """Build the built-in template for a document type.

        Uses the same placeholders as the data map supplied at approval
        time, on an A4 page with 20mm margins.
        """
        doc = Document()
        section = doc.sections[0]
        section.page_width = Mm(210)
        section.page_height = Mm(297)
        for side in ("left_margin", "right_margin", "top_margin", "bottom_margin"):
            setattr(section, side, Mm(20))

        for line in ("REPUBLIC OF THE PHILIPPINES", "{city_name}", "BARANGAY {barangay_name}"):
            self._add_paragraph(doc, line, bold=True, center=True)
        doc.add_paragraph()
        self._add_paragraph(doc, document_type.display_name.upper(), bold=True, center=True, size=14)
        doc.add_paragraph()
        doc.add_paragraph("Date: {date_issued}")
        doc.add_paragraph()
        self._add_paragraph(doc, "TO WHOM IT MAY CONCERN:", bold=True)
        doc.add_paragraph()
        for sentence in _DEFAULT_TEMPLATE_BODY[document_type]:
            doc.add_paragraph(sentence)
            doc.add_paragraph()
        doc.add_paragraph("Given this {date_issued} at Barangay {barangay_name}, {city_name}.")
        doc.add_paragraph()
        doc.add_paragraph()
        doc.add_paragraph("_____________________")
        doc.add_paragraph("Barangay Captain")

        buffer = io.BytesIO()
        doc.save(buffer)
        return buffer.getvalue()

    @staticmethod
    def _add_paragraph(doc, text: str, bold: bool = False, center: bool = False, size: int = None) -> None:
        paragraph = doc.add_paragraph()
        if center:
            paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
        run = paragraph.add_run(text)
        run.bold = bold
        if size:
            run.font.size = Pt(size)

    @staticmethod
    def _list_tag(paragraph: Paragraph):
        style_name = paragraph.style.name if paragraph.style is not None else ""
        if style_name.startswith("List Bullet"):
            return "ul"
        if style_name.startswith("List Number"):
            return "ol"
        return None

    def _paragraph_html(self, paragraph: Paragraph) -> str:
        style_name = paragraph.style.name if paragraph.style is not None else ""
        tag = "p"
        if style_name == "Title":
            tag = "h1"
        elif style_name.startswith("Heading "):
            level = style_name.split(" ", 1)[1]
            if level.isdigit() and 1 <= int(level) <= 6:
                tag = f"h{level}"

        attributes = ""
        alignment = _ALIGNMENT_CSS.get(paragraph.paragraph_format.alignment)
        if alignment:
            attributes = f' style="text-align: {alignment}"'

        content = self._runs_html(paragraph)
        if not content:
            # Keep blank lines as vertical spacing
            content = "&nbsp;"
        return f"<{tag}{attributes}>{content}</{tag}>"

    def _runs_html(self, paragraph: Paragraph) -> str:
        pieces = []
        for r_element in _own_descendants(paragraph._p, _W_R):
            run = Run(r_element, paragraph)
            for blip in run._element.iter(qn("a:blip")):
                rel_id = blip.get(qn("r:embed"))
                try:
                    image_part = paragraph.part.related_parts[rel_id] if rel_id else None
                except KeyError:
                    logger.warning(f"Image relationship {rel_id} not found, skipping image")
                    image_part = None
                if image_part is not None:
                    encoded = base64.b64encode(image_part.blob).decode("ascii")
                    pieces.append(f'<img src="data:{image_part.content_type};base64,{encoded}" />')

            text = run.text
            if not text:
                continue
            markup = html.escape(text).replace("\n", "<br />").replace("\t", "&#160;&#160;&#160;&#160;")
            if run.underline:
                markup = f"<u>{markup}</u>"
            if run.italic:
                markup = f"<em>{markup}</em>"
            if run.bold:
                markup = f"<strong>{markup}</strong>"
            pieces.append(markup)
        return "".join(pieces)

    def _table_html(self, table: Table) -> str:
        rows = []
        for row in table.rows:
            cells = []
            previous = None
            for cell in row.cells:
                # Horizontally merged cells repeat the same underlying element
                if previous is not None and cell._tc is previous[0]._tc:
                    previous[1] += 1
                    continue
                previous = [cell, 1]
                cells.append(previous)
            row_html = []
            for cell, span in cells:
                inner = "".join(self._paragraph_html(p) for p in cell.paragraphs)
                inner += "".join(self._table_html(t) for t in cell.tables)
                colspan = f' colspan="{span}"' if span > 1 else ""
                row_html.append(f"<td{colspan}>{inner}</td>")
            rows.append(f"<tr>{''.join(row_html)}</tr>")
        return f"<table>{''.join(rows)}</table>"


template_renderer = TemplateRenderer()
