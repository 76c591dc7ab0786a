"""
File Upload Utility - validate résumé uploads and extract their text.

Supported formats:
- PDF (.pdf) using PyPDF2
- Word (.docx) using python-docx
- Plain Text (.txt)

The size limit comes from ``max_resume_size_mb`` (8 MB by default).
"""

import io
import re
from typing import Tuple
from urllib.parse import quote

from docx import Document
from fastapi import HTTPException, UploadFile
from PyPDF2 import PdfReader

from jobpilot.core.config import get_settings

settings = get_settings()

ALLOWED_EXTENSIONS = {'.pdf', '.docx', '.txt'}

CONTENT_TYPES = {
    '.pdf': 'application/pdf',
    '.docx': 'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    '.txt': 'text/plain',
}


def get_file_extension(filename: str) -> str:
    """Get lowercase file extension."""
    if '.' not in filename:
        return ''
    return '.' + filename.rsplit('.', 1)[1].lower()


def max_file_size_bytes() -> int:
    return settings.max_resume_size_mb * 1024 * 1024


async def read_resume_upload(file: UploadFile) -> Tuple[bytes, str, str]:
    """
    Validate an uploaded résumé and read it.

    Returns:
        Tuple of (content, filename, content_type)

    Raises:
        HTTPException on validation errors
    """
    if not file.filename:
        raise HTTPException(status_code=400, detail="No filename provided")

    ext = get_file_extension(file.filename)
    if ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type '{ext}'. Allowed: PDF, DOCX, TXT"
        )

    content = await file.read()

    if not content:
        raise HTTPException(status_code=400, detail="File is empty")
    if len(content) > max_file_size_bytes():
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size: {settings.max_resume_size_mb}MB"
        )

    return content, file.filename, CONTENT_TYPES[ext]


def extract_text(content: bytes, filename: str) -> str:
    """Extract text from stored file bytes; the format follows the extension."""
    ext = get_file_extension(filename)
    if ext == '.pdf':
        return extract_from_pdf(content)
    if ext == '.docx':
        return extract_from_docx(content)
    if ext == '.txt':
        return extract_from_txt(content)
    raise ValueError(f"Unsupported file type '{ext}'")


def extract_from_pdf(content: bytes) -> str:
    reader = PdfReader(io.BytesIO(content))
    text_parts = []
    for page in reader.pages:
        page_text = page.extract_text()
        if page_text:
            text_parts.append(page_text)
    return '\n'.join(text_parts)


def extract_from_docx(content: bytes) -> str:
    doc = Document(io.BytesIO(content))
    text_parts = []

    for para in doc.paragraphs:
        if para.text.strip():
            text_parts.append(para.text)

    # Tables hold a lot of résumé content (skills grids, dates)
    for table in doc.tables:
        for row in table.rows:
            row_text = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if row_text:
                text_parts.append(' | '.join(row_text))

    return '\n'.join(text_parts)


def extract_from_txt(content: bytes) -> str:
    for encoding in ['utf-8', 'latin-1']:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise ValueError("Could not decode text file")


def content_disposition(filename: str) -> str:
    """
    Content-Disposition for downloading ``filename``.

    ``filename`` carries an ASCII-only fallback; ``filename*`` carries the
    real name percent-encoded as UTF-8 (RFC 5987).
    """
    fallback = filename.encode('ascii', 'ignore').decode('ascii')
    fallback = re.sub(r'[\x00-\x1f\x7f"\\]', '', fallback).strip() or 'resume'
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"
