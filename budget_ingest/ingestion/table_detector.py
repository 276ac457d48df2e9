"""
Tabular Structure Detector

Finds the header line of a line-item table in quote text. Returns the index
of the first data line, or None when the document has no recognizable table
(the parser then falls back to non-tabular strategies).
"""

import logging
import re
import unicodedata
from typing import Dict, Optional, Pattern

logger = logging.getLogger(__name__)

# Every column family must be present on the same line.
HEADER_COLUMNS: Dict[str, Pattern] = {
    "item": re.compile(r"\b(item|itens|it|seq)\b|\bn[o°]\s"),
    "code": re.compile(r"\b(cod|codigo|code|ref|referencia)\b"),
    "description": re.compile(r"\b(descricao|description|desc|discriminacao|produto|material|especificacao)\b"),
    "unit": re.compile(r"\b(un|und|unid|unidade|unit|um)\b"),
    "quantity": re.compile(r"\b(qtd|qtde|qde|quant|quantidade|qty|quantity)\b"),
}


def strip_accents(text: str) -> str:
    """Remove combining accents (ç -> c, ã -> a)."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def is_table_header(line: str) -> bool:
    """Check whether a line names all the line-item columns."""
    folded = strip_accents(line).lower()
    # "Cód." / "Qtd." / "Un." abbreviations
    folded = folded.replace(".", " ")
    return all(pattern.search(folded) for pattern in HEADER_COLUMNS.values())


def detect_table(text: str) -> Optional[int]:
    """
    Locate the first line-item table in the text.

    Args:
        text: Raw extracted text

    Returns:
        Index of the line after the header, or None if no header was found
    """
    for index, line in enumerate(text.splitlines()):
        if is_table_header(line):
            logger.info(f"Table header found at line {index}: {line.strip()[:80]}")
            return index + 1

    logger.info("No table header found")
    return None
