"""Plain-text extraction for supplementary lecture PDFs."""

import fitz  # PyMuPDF


def extract_pdf_text(content: bytes) -> str:
    """Text of every page, pages separated by blank lines.

    Raises ``fitz.FileDataError`` when ``content`` is not a readable PDF.
    """
    with fitz.open(stream=content, filetype="pdf") as document:
        return "\n\n".join(page.get_text() for page in document).strip()
