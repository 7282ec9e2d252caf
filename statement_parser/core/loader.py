"""
Statement text loading: PDF pages via pdfplumber, or pre-extracted text files.
"""
import re
from pathlib import Path
from typing import List, Union
import logging

import pdfplumber

logger = logging.getLogger(__name__)

LIGATURES = {
    'ﬁ': 'fi',
    'ﬂ': 'fl',
    'ﬀ': 'ff',
    'ﬃ': 'ffi',
    'ﬄ': 'ffl',
    'ﬆ': 'st',
    'ﬅ': 'st'
}

# Pre-extracted text files separate pages with a form feed
PAGE_BREAK = "\f"


def normalize_page_text(text: str) -> str:
    """Replace ligatures and collapse runs of spaces on every line."""
    for ligature, replacement in LIGATURES.items():
        text = text.replace(ligature, replacement)

    lines = [re.sub(r'[ \t]+', ' ', line).strip() for line in text.splitlines()]
    return "\n".join(lines)


class PDFLoader:
    """Handles PDF loading and per-page text extraction."""

    def __init__(self, pdf_path: Union[str, Path]):
        self.pdf_path = Path(pdf_path)
        self._pdf = None
        self._pages: List[str] = []

    def load(self) -> List[str]:
        """Load the PDF and return one text string per page."""
        if self._pages:
            return self._pages

        try:
            if self._pdf is None:
                self._pdf = pdfplumber.open(self.pdf_path)
            logger.info(f"Loaded PDF with {len(self._pdf.pages)} pages")

            for i, page in enumerate(self._pdf.pages, 1):
                text = page.extract_text(x_tolerance=1, y_tolerance=3) or ""
                self._pages.append(normalize_page_text(text))
                logger.debug(f"Page {i}: {len(text)} characters extracted")

            return self._pages

        except Exception as e:
            logger.error(f"Error loading PDF: {e}")
            raise

    def close(self):
        """Close the PDF file."""
        if self._pdf:
            self._pdf.close()
            self._pdf = None

    def __enter__(self) -> "PDFLoader":
        return self

    def __exit__(self, *exc_info):
        self.close()


def load_page_text(path: Union[str, Path]) -> List[str]:
    """
    Load page-segmented text from a statement file.

    Args:
        path: ``.pdf`` file, or a text file with form-feed page breaks

    Returns:
        List of page strings
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Statement file not found: {path}")

    if path.suffix.lower() == ".pdf":
        with PDFLoader(path) as loader:
            return loader.load()

    text = path.read_text(encoding="utf-8")
    pages = [normalize_page_text(page) for page in text.split(PAGE_BREAK)]
    # A trailing form feed does not start a new page
    if len(pages) > 1 and not pages[-1].strip():
        pages.pop()
    logger.info(f"Loaded {len(pages)} text pages from {path.name}")
    return pages
