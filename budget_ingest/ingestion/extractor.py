"""
Text Extraction Adapter

Validates the declared media type of an uploaded quote, archives the original
file, and returns the raw text produced by the configured engines. The text
is returned verbatim; interpretation happens in the parser.
"""

import logging
import time
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from ..exceptions import ExtractionFailure, UnsupportedFormat
from ..librarian.blob_store import BaseBlobStore
from .ocr_client import TextEngine

logger = logging.getLogger(__name__)

EXTENSION_MEDIA_TYPES = {
    ".pdf": "application/pdf",
    ".txt": "text/plain",
    ".csv": "text/csv",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".tiff": "image/tiff",
    ".tif": "image/tiff",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


class ExtractedText(BaseModel):
    """Raw text of one uploaded document."""
    text: str = Field("", description="Newline-separated text, verbatim")
    media_type: str = Field(..., description="Normalized declared media type")
    source: str = Field(..., description="Engine that produced the text")
    document_url: Optional[str] = Field(None, description="Archived copy, if stored")

    @property
    def lines(self) -> List[str]:
        return self.text.splitlines()


def normalize_media_type(declared_type: Optional[str]) -> str:
    """Map a MIME type or file extension to a lower-case MIME type."""
    if not declared_type:
        return ""
    value = declared_type.split(";")[0].strip().lower()
    if "/" in value:
        return value
    if not value.startswith("."):
        value = "." + value
    return EXTENSION_MEDIA_TYPES.get(value, value)


class TextExtractor:
    """
    Turns an uploaded quote into text.

    Engines are tried in order; the first one returning non-blank text wins.
    A typical setup puts the PDF text layer first and the OCR service second,
    so scanned PDFs still reach OCR while digital ones skip it.
    """

    def __init__(
        self,
        engines: Sequence[TextEngine],
        blob_store: Optional[BaseBlobStore] = None,
        accepted_media_types: Sequence[str] = ("application/pdf",),
        language_hint: str = "por",
    ):
        """
        Initialize the extractor.

        Args:
            engines: Ordered text engines for binary formats
            blob_store: Optional store used to archive the original upload
            accepted_media_types: Media types accepted for extraction
            language_hint: Language code forwarded to OCR engines
        """
        if not engines:
            raise ValueError("TextExtractor needs at least one engine")
        self.engines = list(engines)
        self.blob_store = blob_store
        self.accepted_media_types = tuple(normalize_media_type(t) for t in accepted_media_types)
        self.language_hint = language_hint
        logger.info(f"TextExtractor initialized (engines={[e.name for e in self.engines]}, "
                    f"accepted={self.accepted_media_types})")

    def extract(self, file_bytes: bytes, declared_type: str,
                filename: str = "orcamento.pdf") -> ExtractedText:
        """
        Extract raw text from an uploaded document.

        Args:
            file_bytes: Document contents
            declared_type: MIME type or file extension declared by the uploader
            filename: Original file name

        Returns:
            ExtractedText with the verbatim text

        Raises:
            UnsupportedFormat: If the media type is not accepted (no engine is called)
            ExtractionFailure: If every engine fails
        """
        media_type = normalize_media_type(declared_type)
        if media_type not in self.accepted_media_types:
            logger.warning(f"Rejecting {filename}: unsupported media type '{declared_type}'")
            raise UnsupportedFormat(declared_type, self.accepted_media_types)

        document_url = self._archive(file_bytes, filename)

        if media_type.startswith("text/"):
            text = self._decode(file_bytes)
            return ExtractedText(text=text, media_type=media_type, source="decoded",
                                 document_url=document_url)

        errors: List[str] = []
        for engine in self.engines:
            try:
                text = engine.recognize(file_bytes, self.language_hint,
                                        filename=filename, media_type=media_type)
            except ExtractionFailure as e:
                logger.warning(f"Engine {engine.name} failed on {filename}: {e}")
                errors.append(f"{engine.name}: {e}")
                continue

            if text and text.strip():
                logger.info(f"Extracted {len(text.splitlines())} lines from {filename} "
                            f"using {engine.name}")
                return ExtractedText(text=text, media_type=media_type, source=engine.name,
                                     document_url=document_url)
            logger.info(f"Engine {engine.name} returned no text for {filename}")

        if errors and len(errors) == len(self.engines):
            raise ExtractionFailure(f"Text extraction failed for {filename}: " + "; ".join(errors))

        return ExtractedText(text="", media_type=media_type, source=self.engines[-1].name,
                             document_url=document_url)

    def _archive(self, file_bytes: bytes, filename: str) -> Optional[str]:
        """Store the original upload; failures are logged and ignored."""
        if self.blob_store is None:
            return None

        key = f"orcamentos/{int(time.time() * 1000)}_{filename}"
        try:
            stored_key = self.blob_store.put(file_bytes, key)
            url = self.blob_store.get_public_url(stored_key)
            logger.info(f"Archived original document at {url}")
            return url
        except Exception as e:
            logger.warning(f"Could not archive {filename}: {e}")
            return None

    def _decode(self, file_bytes: bytes) -> str:
        try:
            return file_bytes.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug("Document is not UTF-8, decoding as latin-1")
            return file_bytes.decode("latin-1")
