"""
Format Decoders

Maps file extensions to decoder functions ``(file_name, data) -> text``.
New formats are added with ``DecoderRegistry.register``.

PDFs go through an ordered fallback chain: direct text extraction first,
then OCR when the direct result looks like a scanned document.
"""

import io
import csv
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

logger = logging.getLogger("assistant.retriever.decoders")

Decoder = Callable[[str, bytes], str]

PLAIN_TEXT_EXTENSIONS = ("txt", "md", "markdown", "csv", "tsv", "json", "xml", "yaml", "yml", "log")
SPREADSHEET_EXTENSIONS = ("xlsx", "xlsm")
RICH_DOCUMENT_EXTENSIONS = ("docx",)
PDF_EXTENSIONS = ("pdf",)


def extension_of(file_name: str) -> str:
    name = (file_name or "").lower()
    idx = name.rfind(".")
    return name[idx + 1:] if idx >= 0 else ""


def decode_utf8(file_name: str, data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def decode_spreadsheet(file_name: str, data: bytes) -> str:
    """One ``# Sheet: <name>`` block of CSV rows per worksheet."""
    from openpyxl import load_workbook

    workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    try:
        parts = []
        for sheet in workbook.worksheets:
            buffer = io.StringIO()
            writer = csv.writer(buffer, lineterminator="\n")
            for row in sheet.iter_rows(values_only=True):
                writer.writerow(["" if v is None else v for v in row])
            parts.append(f"# Sheet: {sheet.title}\n{buffer.getvalue()}")
        return "\n\n".join(parts)
    finally:
        workbook.close()


def decode_docx(file_name: str, data: bytes) -> str:
    """Paragraph text followed by table rows (cells tab-separated)."""
    from docx import Document

    document = Document(io.BytesIO(data))
    lines = [p.text for p in document.paragraphs if p.text.strip()]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells]
            if any(cells):
                lines.append("\t".join(cells))
    return "\n".join(lines).strip()


def looks_scanned(text: str, byte_size: int) -> bool:
    """Very little text relative to file size means the PDF is likely image-based."""
    threshold = 100 if byte_size > 50_000 else 50
    return len((text or "").strip()) < threshold


def extract_pdf_text(data: bytes) -> str:
    """Direct text layer extraction with pypdf."""
    from pypdf import PdfReader

    reader = PdfReader(io.BytesIO(data), strict=False)
    pages = []
    for page in reader.pages:
        page_text = page.extract_text() or ""
        if page_text.strip():
            pages.append(page_text.strip())
    return "\n\n".join(pages).strip()


class PdfOcr:
    """Rasterize PDF pages with pdf2image and read them with Tesseract."""

    def __init__(self, dpi: int = 200, max_pages: int = 20, language: str = "eng"):
        self.dpi = dpi
        self.max_pages = max_pages
        self.language = language

    def __call__(self, data: bytes) -> str:
        from pdf2image import convert_from_bytes
        import pytesseract

        images = convert_from_bytes(data, dpi=self.dpi, first_page=1, last_page=self.max_pages)
        pages = []
        for image in images:
            page_text = (pytesseract.image_to_string(image, lang=self.language) or "").strip()
            if page_text:
                pages.append(page_text)
        return "\n\n".join(pages)


@dataclass
class Strategy:
    """One step of a fallback chain"""
    name: str
    run: Callable[[bytes], str]


class FallbackChain:
    """
    Ordered list of strategies tried in sequence.

    The longest result so far is kept; the chain stops as soon as
    ``needs_fallback(best, data)`` is false. A failing strategy is logged
    and treated as empty.
    """

    def __init__(self, strategies: List[Strategy], needs_fallback: Callable[[str, bytes], bool]):
        self.strategies = list(strategies)
        self._needs_fallback = needs_fallback

    def run(self, data: bytes, label: str = "") -> str:
        best = ""
        for strategy in self.strategies:
            try:
                text = strategy.run(data) or ""
            except Exception as e:
                logger.warning("%s strategy failed for %s: %s", strategy.name, label, e)
                text = ""
            if len(text) > len(best):
                if best:
                    logger.info("%s improved %s: %d -> %d chars", strategy.name, label, len(best), len(text))
                best = text
            if not self._needs_fallback(best, data):
                break
        return best


def build_pdf_chain(ocr: Optional[Callable[[bytes], str]] = None) -> FallbackChain:
    strategies = [Strategy("pdf-text", extract_pdf_text)]
    if ocr is not None:
        strategies.append(Strategy("ocr", ocr))
    return FallbackChain(strategies, needs_fallback=lambda text, data: looks_scanned(text, len(data)))


class DecoderRegistry:
    """
    Extension -> decoder strategy map with a UTF-8 fallback.

    ``decode`` never raises: decoder failures are logged and yield "".
    """

    def __init__(self, fallback: Decoder = decode_utf8):
        self._decoders: Dict[str, Decoder] = {}
        self._fallback = fallback

    def register(self, extensions: Iterable[str], decoder: Decoder) -> None:
        for ext in extensions:
            self._decoders[ext.lower().lstrip(".")] = decoder

    def decoder_for(self, file_name: str) -> Decoder:
        return self._decoders.get(extension_of(file_name), self._fallback)

    @property
    def extensions(self) -> List[str]:
        return sorted(self._decoders)

    def decode(self, file_name: str, data: bytes) -> str:
        decoder = self.decoder_for(file_name)
        try:
            return decoder(file_name, data) or ""
        except Exception as e:
            logger.warning("Extraction failed for %s (%s): %s", file_name, getattr(decoder, "__name__", decoder), e)
            return ""


def default_registry(
    ocr_enabled: bool = True,
    ocr_dpi: int = 200,
    ocr_max_pages: int = 20,
    ocr_language: str = "eng",
) -> DecoderRegistry:
    """Registry with plain text, spreadsheet, docx and PDF(+OCR) decoders."""
    registry = DecoderRegistry()
    registry.register(PLAIN_TEXT_EXTENSIONS, decode_utf8)
    registry.register(SPREADSHEET_EXTENSIONS, decode_spreadsheet)
    registry.register(RICH_DOCUMENT_EXTENSIONS, decode_docx)

    ocr = PdfOcr(dpi=ocr_dpi, max_pages=ocr_max_pages, language=ocr_language) if ocr_enabled else None
    pdf_chain = build_pdf_chain(ocr)

    def decode_pdf(file_name: str, data: bytes) -> str:
        return pdf_chain.run(data, label=file_name).strip()

    registry.register(PDF_EXTENSIONS, decode_pdf)
    return registry
