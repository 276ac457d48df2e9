"""
Ingestion Module

Turns uploaded quotes into candidate line items: text extraction (PDF text
layer or OCR service), table header detection, line-item parsing and
supplier header extraction.
"""

from .extractor import ExtractedText, TextExtractor
from .ocr_client import OcrServiceClient, PdfTextLayerEngine, TextEngine
from .parser import PLACEHOLDER_PRICE, CandidateItem, LineItemParser
from .supplier_info import SupplierInfo, extract_supplier
from .table_detector import detect_table

__all__ = [
    "ExtractedText",
    "TextExtractor",
    "TextEngine",
    "OcrServiceClient",
    "PdfTextLayerEngine",
    "CandidateItem",
    "LineItemParser",
    "PLACEHOLDER_PRICE",
    "SupplierInfo",
    "extract_supplier",
    "detect_table",
]
