"""Script to check the Gotenberg connection by rendering a sample note."""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, ".")

from mindsy.services.pdf_renderer import PAGE_BREAK_MARKER, PdfRenderer

SAMPLE = f"""# Sample Lecture

## Key Points
- Markdown headings become PDF bookmarks
- Tables and code blocks are styled

| Term | Meaning |
|------|---------|
| ATP  | Energy currency of the cell |

{PAGE_BREAK_MARKER}

## Summary
This page starts after a forced page break.
"""


async def main():
    output = Path(sys.argv[1] if len(sys.argv) > 1 else "sample_notes.pdf")
    renderer = PdfRenderer()

    print(f"Rendering sample notes via {renderer.base_url}...")
    result = await renderer.render_markdown(SAMPLE, title="Sample Lecture")
    if not result.success:
        print(f"Render failed [{result.error_code}]: {result.error}")
        sys.exit(1)

    output.write_bytes(result.pdf)
    print(f"Wrote {len(result.pdf)} bytes to {output}")


if __name__ == "__main__":
    asyncio.run(main())
