import io
import logging
from datetime import datetime

from docx import Document
from docx.shared import Pt, RGBColor
from pypdf import PdfReader

logger = logging.getLogger(__name__)

DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def extract_text(filename: str, content_type: str, data: bytes) -> str | None:
    """Plain text of an uploaded document, or None when it has no text layer.

    PDF goes through pypdf, DOCX through python-docx, text types are decoded
    as UTF-8. Legacy .doc files are not parsed.
    """
    name = (filename or "").lower()
    try:
        if content_type == "application/pdf" or name.endswith(".pdf"):
            reader = PdfReader(io.BytesIO(data))
            pages = [page.extract_text() or "" for page in reader.pages]
            text = "\n".join(p for p in pages if p)
        elif content_type == DOCX_TYPE or name.endswith(".docx"):
            doc = Document(io.BytesIO(data))
            text = "\n".join(p.text for p in doc.paragraphs if p.text and p.text.strip())
        elif content_type.startswith("text/"):
            text = data.decode("utf-8", errors="replace")
        else:
            return None
    except Exception as e:
        logger.warning("Could not extract text from %s: %s", filename, e)
        return None
    return text.strip() or None


def build_scope_docx(project_name: str, scope_content: str, updated_at: datetime) -> bytes:
    """Render a project's scope as a Word document."""
    doc = Document()
    doc.add_heading(project_name, level=1)
    doc.add_heading("Project Scope", level=2)

    for line in scope_content.split("\n"):
        paragraph = doc.add_paragraph()
        paragraph.paragraph_format.space_after = Pt(6)
        run = paragraph.add_run(line)
        run.font.size = Pt(12)

    footer = doc.add_paragraph()
    footer.paragraph_format.space_before = Pt(20)
    run = footer.add_run(f"Last Updated: {updated_at.strftime('%m/%d/%Y')}")
    run.font.size = Pt(10)
    run.font.color.rgb = RGBColor(0x66, 0x66, 0x66)

    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()
