import io

import pytest
from docx import Document
from fastapi import HTTPException, UploadFile

from jobpilot.utils.file_upload import content_disposition, extract_text, get_file_extension, read_resume_upload

pytestmark = pytest.mark.unit


def docx_bytes() -> bytes:
    document = Document()
    document.add_paragraph("Jane Seeker")
    document.add_paragraph("   ")
    table = document.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "Python"
    table.rows[0].cells[1].text = "8 years"
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def upload_file(content: bytes, filename: str) -> UploadFile:
    return UploadFile(file=io.BytesIO(content), filename=filename)


def test_get_file_extension() -> None:
    assert get_file_extension("CV.PDF") == ".pdf"
    assert get_file_extension("resume.final.docx") == ".docx"
    assert get_file_extension("resume") == ""


def test_extract_text_from_txt() -> None:
    assert extract_text("Café\nPython".encode("utf-8"), "resume.txt") == "Café\nPython"
    assert extract_text("Café".encode("latin-1"), "resume.txt") == "Café"


def test_extract_text_from_docx_includes_tables() -> None:
    assert extract_text(docx_bytes(), "resume.docx") == "Jane Seeker\nPython | 8 years"


def test_extract_text_rejects_unknown_extension() -> None:
    with pytest.raises(ValueError):
        extract_text(b"data", "resume.rtf")


async def test_read_resume_upload() -> None:
    content, filename, content_type = await read_resume_upload(upload_file(b"hello", "resume.txt"))

    assert (content, filename, content_type) == (b"hello", "resume.txt", "text/plain")


@pytest.mark.parametrize(
    "content, filename, status_code",
    [
        (b"hello", "resume.exe", 400),
        (b"hello", "", 400),
        (b"", "resume.pdf", 400),
    ],
)
async def test_read_resume_upload_rejects(content, filename, status_code) -> None:
    with pytest.raises(HTTPException) as exc_info:
        await read_resume_upload(upload_file(content, filename))
    assert exc_info.value.status_code == status_code


def test_content_disposition_keeps_header_safe() -> None:
    assert content_disposition("resume.txt") == "attachment; filename=\"resume.txt\"; filename*=UTF-8''resume.txt"
    assert content_disposition('my "best"\r\nCV.pdf') == (
        "attachment; filename=\"my bestCV.pdf\"; filename*=UTF-8''my%20%22best%22%0D%0ACV.pdf"
    )
    assert content_disposition("Иванов.txt").startswith('attachment; filename=".txt"; filename*=UTF-8\'\'%D0%98')
    assert content_disposition("简历").startswith('attachment; filename="resume";')
