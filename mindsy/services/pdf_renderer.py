"""Markdown to HTML conversion and HTML to PDF rendering through Gotenberg."""

import html
import logging
from dataclasses import dataclass
from typing import Optional

import httpx
import markdown

from mindsy.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

PAGE_BREAK_MARKER = "<!-- NEW_PAGE -->"

NOTES_STYLESHEET = """
body { font-family: -apple-system, "Segoe UI", Helvetica, Arial, sans-serif; font-size: 11pt; line-height: 1.5; color: #1f2933; }
h1 { font-size: 22pt; border-bottom: 2px solid #4f46e5; padding-bottom: 4pt; }
h2 { font-size: 16pt; color: #312e81; margin-top: 18pt; }
h3 { font-size: 13pt; color: #3730a3; }
h4 { font-size: 11.5pt; }
code { background: #f3f4f6; padding: 1pt 3pt; border-radius: 3pt; }
pre { background: #f3f4f6; padding: 8pt; border-radius: 4pt; overflow-x: auto; }
table { border-collapse: collapse; width: 100%; }
th, td { border: 1px solid #d1d5db; padding: 4pt 6pt; vertical-align: top; }
blockquote { border-left: 3px solid #c7d2fe; margin-left: 0; padding-left: 10pt; color: #4b5563; }
.page-break { page-break-after: always; break-after: page; }
"""


@dataclass
class PdfResult:
    """Outcome of one render call."""

    success: bool
    pdf: Optional[bytes] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


def markdown_to_html(content: str, title: Optional[str] = None) -> str:
    """Render Markdown to a complete, styled HTML document.

    ``<!-- NEW_PAGE -->`` markers become CSS page breaks.
    """
    content = content.replace(PAGE_BREAK_MARKER, '\n<div class="page-break"></div>\n')
    body = markdown.markdown(
        content,
        extensions=["extra", "sane_lists", "toc"],
        output_format="html",
    )
    page_title = html.escape(title or "Mindsy Notes")
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n<head>\n<meta charset="utf-8">\n'
        f"<title>{page_title}</title>\n"
        f"<style>{NOTES_STYLESHEET}</style>\n"
        f"</head>\n<body>\n{body}\n</body>\n</html>\n"
    )


def _error_message(response: httpx.Response) -> str:
    default = f"Gotenberg API error: {response.status_code} {response.reason_phrase}"
    try:
        data = response.json()
    except ValueError:
        return response.text or default
    if isinstance(data, dict):
        return data.get("message") or data.get("error") or default
    return default


class PdfRenderer:
    """Client for the Gotenberg Chromium HTML route."""

    def __init__(self, base_url: Optional[str] = None, timeout: float = 120.0):
        self.base_url = (base_url if base_url is not None else settings.gotenberg_url).rstrip("/")
        self.timeout = timeout

    async def render_html(self, html_content: str, generate_bookmarks: bool = False) -> PdfResult:
        """Convert an HTML document to PDF. Never raises."""
        if not html_content or not html_content.strip():
            return PdfResult(
                success=False,
                error="Content is required and cannot be empty",
                error_code="INVALID_INPUT",
            )
        if not self.base_url:
            return PdfResult(
                success=False,
                error="Gotenberg API URL is not configured",
                error_code="MISSING_CONFIG",
            )

        form = {
            "marginTop": "1in",
            "marginBottom": "1in",
            "marginLeft": "1in",
            "marginRight": "1in",
        }
        if generate_bookmarks:
            form.update(
                {
                    "pdfFormat": "PDF/A-1a",
                    "printBackground": "true",
                    "preferCSSPageSize": "true",
                }
            )
        files = {"files": ("index.html", html_content.encode("utf-8"), "text/html")}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/forms/chromium/convert/html",
                    data=form,
                    files=files,
                )
        except httpx.TimeoutException:
            return PdfResult(
                success=False, error="PDF generation timed out", error_code="TIMEOUT_ERROR"
            )
        except httpx.RequestError as e:
            logger.error(f"Gotenberg request error: {e}")
            return PdfResult(success=False, error=str(e), error_code="NETWORK_ERROR")

        if not response.is_success:
            return PdfResult(success=False, error=_error_message(response), error_code="API_ERROR")

        content_type = response.headers.get("content-type", "")
        if "application/pdf" not in content_type:
            return PdfResult(
                success=False,
                error=f"Unexpected response content type: {content_type or None}",
                error_code="INVALID_RESPONSE",
            )

        if not response.content:
            return PdfResult(success=False, error="Generated PDF is empty", error_code="EMPTY_PDF")

        logger.info(f"Rendered PDF ({len(response.content)} bytes)")
        return PdfResult(success=True, pdf=response.content)

    async def render_markdown(
        self, content: str, title: Optional[str] = None, generate_bookmarks: bool = True
    ) -> PdfResult:
        """Convenience wrapper: Markdown to HTML, then HTML to PDF."""
        return await self.render_html(markdown_to_html(content, title), generate_bookmarks)
