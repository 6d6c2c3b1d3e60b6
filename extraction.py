"""Text extraction and cleanup for uploaded documents.

Supported formats are dispatched on the filename suffix:

- ``.pdf``  - every page's text via pypdf, in document order
- ``.docx`` - paragraph and table-cell text via python-docx, in document
  order (table layout, formatting and images dropped)
- ``.txt``  - the bytes decoded as UTF-8, without a leading BOM
"""
from __future__ import annotations

import io
import logging
import re
from typing import Callable, Dict, Iterator, Optional

import docx
from docx.table import Table
from pypdf import PdfReader

from errors import ExtractionFailed, UnsupportedFormat

logger = logging.getLogger(__name__)

MAX_TEXT_CHARS = 120_000

_TRAILING_SPACE_RE = re.compile(r"[ \t]+\n")
_BLANK_RUN_RE = re.compile(r"\n{3,}")

# Characters trimmed from both ends. The information separators \x1c-\x1f
# and \x85 are not whitespace here even though str.isspace() says they are.
_TRIM_CHARS = (
    " \t\n\x0b\x0c\r\u00a0\u1680\u2028\u2029\u202f\u205f\u3000\ufeff"
    + "".join(chr(c) for c in range(0x2000, 0x200B))
)


def _extract_pdf_text(data: bytes) -> str:
    """Extract text from PDF bytes using pypdf."""
    reader = PdfReader(io.BytesIO(data))
    text_parts = []
    for page in reader.pages:
        text_parts.append(page.extract_text() or "")
    return "\n\n".join(text_parts)


def _iter_block_text(container) -> Iterator[str]:
    """Paragraph text of ``container`` in document order, descending into tables."""
    for block in container.iter_inner_content():
        if isinstance(block, Table):
            # Merged cells are repeated by python-docx; read each one once.
            seen = set()
            for row in block.rows:
                for cell in row.cells:
                    if cell._tc in seen:
                        continue
                    seen.add(cell._tc)
                    yield from _iter_block_text(cell)
        else:
            yield block.text


def _extract_docx_text(data: bytes) -> str:
    document = docx.Document(io.BytesIO(data))
    return "\n\n".join(_iter_block_text(document))


def _extract_txt_text(data: bytes) -> str:
    return data.decode("utf-8-sig", errors="replace")


# Checked in order; the first matching suffix wins.
_DECODERS: Dict[str, Callable[[bytes], str]] = {
    ".pdf": _extract_pdf_text,
    ".docx": _extract_docx_text,
    ".txt": _extract_txt_text,
}


def extract_text(filename: Optional[str], data: bytes) -> str:
    """Decode ``data`` according to the suffix of ``filename``.

    Raises ``UnsupportedFormat`` for any other suffix and ``ExtractionFailed``
    when the decoder cannot read the document.
    """
    name = (filename or "").lower()

    for suffix, decoder in _DECODERS.items():
        if not name.endswith(suffix):
            continue
        try:
            return decoder(data)
        except Exception as e:
            logger.error(f"{suffix} text extraction failed for {filename!r}: {e}")
            fmt = suffix.lstrip(".").upper()
            raise ExtractionFailed(f"Failed to extract text from {fmt} file") from e

    raise UnsupportedFormat()


def normalize_text(text: Optional[str], max_chars: int = MAX_TEXT_CHARS) -> str:
    """Clean line-ending noise and clamp to ``max_chars`` characters.

    The cut is a hard one: it may split a word and is not stripped again.
    """
    cleaned = (text or "").replace("\r", "")
    cleaned = _TRAILING_SPACE_RE.sub("\n", cleaned)
    cleaned = _BLANK_RUN_RE.sub("\n\n", cleaned)
    cleaned = cleaned.strip(_TRIM_CHARS)

    if len(cleaned) > max_chars:
        logger.debug(f"Truncating normalized text from {len(cleaned)} to {max_chars} chars")
        return cleaned[:max_chars]
    return cleaned
