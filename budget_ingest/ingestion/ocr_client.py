"""
Text Engines

Engines turn document bytes into raw text. The OCR service client talks to
an HTTP OCR endpoint; the PDF text-layer engine reads embedded text with
pdfplumber and needs no external service.
"""

import io
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List

import pdfplumber
import requests

from ..exceptions import ExtractionFailure

logger = logging.getLogger(__name__)


class TextEngine(ABC):
    """Abstract text/OCR engine addressed by a language hint."""

    name = "engine"

    @abstractmethod
    def recognize(self, data: bytes, language_hint: str, filename: str = "document.pdf",
                  media_type: str = "application/pdf") -> str:
        """
        Recognize the text of a document.

        Args:
            data: Raw document bytes
            language_hint: Tesseract-style language code (e.g. "por")
            filename: Original file name, forwarded to remote engines
            media_type: Declared media type of the document

        Returns:
            Newline-separated text

        Raises:
            ExtractionFailure: If recognition fails
        """
        pass


class OcrServiceClient(TextEngine):
    """
    Client for an HTTP OCR service.

    Posts the document to ``{api_url}/ocr`` and accepts either a ``text``
    field or a ``lines`` list in the JSON response.
    """

    name = "ocr_service"

    def __init__(self, api_url: str = "http://localhost:8001", timeout: float = 120.0):
        """
        Initialize OCR service client.

        Args:
            api_url: Base URL for the OCR service
            timeout: Request timeout in seconds
        """
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        logger.info(f"OcrServiceClient initialized with API URL: {self.api_url}")

    def recognize(self, data: bytes, language_hint: str, filename: str = "document.pdf",
                  media_type: str = "application/pdf") -> str:
        logger.info(f"Sending {filename} to OCR service (lang={language_hint})")

        try:
            response = requests.post(
                f"{self.api_url}/ocr",
                files={"file": (filename, data, media_type)},
                params={"lang": language_hint},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.Timeout as e:
            raise ExtractionFailure(f"OCR service timed out after {self.timeout}s", e)
        except requests.exceptions.RequestException as e:
            raise ExtractionFailure(f"OCR service request failed: {e}", e)
        except ValueError as e:
            raise ExtractionFailure(f"OCR service returned invalid JSON: {e}", e)

        text = self._text_from_payload(payload)
        logger.info(f"OCR complete: {len(text.splitlines())} lines")
        return text

    def _text_from_payload(self, payload: Dict[str, Any]) -> str:
        """Flatten the service response into newline-separated text."""
        if isinstance(payload.get("text"), str):
            return payload["text"]

        lines: List[str] = []
        for line in payload.get("lines", []):
            if isinstance(line, dict):
                lines.append(str(line.get("text", "")))
            else:
                lines.append(str(line))

        if not lines and "text" not in payload:
            raise ExtractionFailure("OCR service response has neither 'text' nor 'lines'")
        return "\n".join(lines)


class PdfTextLayerEngine(TextEngine):
    """Reads the embedded text layer of a PDF (no OCR)."""

    name = "pdf_text_layer"

    def recognize(self, data: bytes, language_hint: str, filename: str = "document.pdf",
                  media_type: str = "application/pdf") -> str:
        try:
            with pdfplumber.open(io.BytesIO(data)) as pdf:
                pages = [page.extract_text() or "" for page in pdf.pages]
        except Exception as e:
            raise ExtractionFailure(f"Could not read PDF text layer of {filename}: {e}", e)

        logger.debug(f"Read text layer of {len(pages)} pages from {filename}")
        return "\n".join(pages)
