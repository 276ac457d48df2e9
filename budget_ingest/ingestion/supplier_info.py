"""
Supplier Header Extraction

Reads the vendor identification (CNPJ, company name, phone, e-mail) printed
at the top of a quote.
"""

import logging
import re
from typing import List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

HEADER_SCAN_LINES = 15

CNPJ_RE = re.compile(r"\b(\d{2})\.?(\d{3})\.?(\d{3})/?(\d{4})-?(\d{2})\b")
PHONE_RE = re.compile(r"\(?\b(\d{2})\)?\s*(\d{4,5})[-\s]?(\d{4})\b")
EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
COMPANY_HINT_RE = re.compile(
    r"\b(ltda|eireli|me|epp|s/?a|s\.a\.?|com[ée]rcio|materiais|constru[çc][ãa]o|distribuidora|ind[úu]stria)\b",
    re.IGNORECASE,
)
LABEL_RE = re.compile(r"^\s*(raz[ãa]o\s+social|fornecedor|empresa|nome)\s*:?\s*", re.IGNORECASE)


class SupplierInfo(BaseModel):
    """Vendor identification found on a quote."""
    id: Optional[str] = Field(None, description="Catalog supplier id once resolved")
    name: str = Field("", description="Company name")
    tax_id: Optional[str] = Field(None, description="CNPJ formatted as 00.000.000/0000-00")
    phone: Optional[str] = None
    email: Optional[str] = None


def format_cnpj(raw: str) -> Optional[str]:
    """Format a CNPJ with punctuation; None when it is not 14 digits."""
    digits = re.sub(r"\D", "", raw)
    if len(digits) != 14:
        return None
    return f"{digits[:2]}.{digits[2:5]}.{digits[5:8]}/{digits[8:12]}-{digits[12:]}"


def _guess_name(lines: List[str], cnpj_line: Optional[int]) -> str:
    for line in lines:
        if LABEL_RE.match(line):
            return LABEL_RE.sub("", line).strip()

    for line in lines:
        if COMPANY_HINT_RE.search(line) and not CNPJ_RE.search(line):
            return line.strip()

    if cnpj_line:
        previous = lines[cnpj_line - 1].strip()
        if previous and any(ch.isalpha() for ch in previous):
            return previous

    return next((line.strip() for line in lines
                 if any(ch.isalpha() for ch in line) and not CNPJ_RE.search(line)), "")


def extract_supplier(text: str, scan_lines: int = HEADER_SCAN_LINES) -> Optional[SupplierInfo]:
    """
    Extract supplier identification from the quote header.

    Args:
        text: Raw extracted text
        scan_lines: Number of non-empty leading lines to inspect

    Returns:
        SupplierInfo, or None when no CNPJ is printed in the header
    """
    lines = [line for line in text.splitlines() if line.strip()][:scan_lines]

    tax_id = None
    cnpj_line = None
    for index, line in enumerate(lines):
        match = CNPJ_RE.search(line)
        if match:
            tax_id = format_cnpj("".join(match.groups()))
            cnpj_line = index
            break

    if tax_id is None:
        logger.info("No CNPJ found in quote header")
        return None

    header = "\n".join(lines)
    without_cnpj = CNPJ_RE.sub(" ", header)
    phone_match = PHONE_RE.search(without_cnpj)
    email_match = EMAIL_RE.search(header)

    supplier = SupplierInfo(
        name=_guess_name(lines, cnpj_line),
        tax_id=tax_id,
        phone=f"({phone_match.group(1)}) {phone_match.group(2)}-{phone_match.group(3)}"
        if phone_match else None,
        email=email_match.group(0).lower() if email_match else None,
    )
    logger.info(f"Supplier found in header: {supplier.name} ({supplier.tax_id})")
    return supplier
