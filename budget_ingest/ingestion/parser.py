"""
Line-Item Parser

Turns raw quote text into candidate line items. Parsing is an ordered chain
of strategies run by a small interpreter loop: each strategy sees the whole
document, and the first one that yields at least one clean item wins.

Strategies, most to least strict:
- table: column-order parsing of the rows below a detected header
- regex: a ranked list of per-line regular expressions
- positional: numeric-token heuristics for lines starting with a code
- degenerate: every plausible line becomes a priceless, unit-quantity item
"""

import logging
import re
from typing import Callable, Iterable, List, Optional, Pattern, Sequence, Tuple

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Marks "item found, price unknown". Not a real price.
PLACEHOLDER_PRICE = 0.01
DEFAULT_UNIT = "UN"
MIN_DESCRIPTION_LENGTH = 5
DEGENERATE_MIN_LINE_LENGTH = 10

UNIT_ALIASES = {
    "UN": "UN", "UND": "UN", "UNID": "UN",
    "MT": "MT", "M": "MT",
    "KG": "KG",
    "M²": "M²", "M2": "M²",
    "M³": "M³", "M3": "M³",
    "PC": "PC", "PÇ": "PC", "CX": "CX", "SC": "SC", "LT": "LT",
}
UNIT_PATTERN = r"(?:UNID|UND|UN|MT|KG|M²|M2|M³|M3|PÇ|PC|CX|SC|LT)"
UNIT_TOKEN_RE = re.compile(rf"^{UNIT_PATTERN}\.?$", re.IGNORECASE)

NUMBER_PATTERN = r"\d+(?:[.,]\d{3})*(?:[.,]\d+)?"
NUMBER_TOKEN_RE = re.compile(rf"^(?:R\$)?{NUMBER_PATTERN}$")

TABLE_END_RE = re.compile(
    r"\b(sub\s*)?total\b|observa[çc][õo]es|^\s*(p[áa]g(ina)?\.?\s*)?\d{1,3}\s*(/|de)\s*\d{1,3}\s*$",
    re.IGNORECASE,
)

NOISE_RE = re.compile(
    r"\b(sub\s*)?total\b"
    r"|\bp[áa]g(ina)?\.?\s*\d+"
    r"|^\s*\d{1,3}\s*/\s*\d{1,3}\s*$"
    r"|\b(tel|fone|telefone|celular|whatsapp|fax)\b"
    r"|\be-?mail\b|@"
    r"|\b(cnpj|cpf|cep|inscri[çc][ãa]o)\b"
    r"|www\.|https?://"
    r"|observa[çc][õo]es|\bvalidade\b|\bcondi[çc][õo]es\b|\bpagamento\b|\bdesconto\b|\bfrete\b",
    re.IGNORECASE,
)

CODE_DASH_PREFIX_RE = re.compile(r"^\s*(?:\d+[.)º°]?|[\w./]*\d[\w./]*)\s*[-–—]\s+")
BOUNDARY_RE = re.compile(r"^[\W_]+|[\W_]+$")
WHITESPACE_RE = re.compile(r"\s+")
MULTI_SPACE_RE = re.compile(r"\s{2,}|\t")


class CandidateItem(BaseModel):
    """A line item parsed from a quote, before catalog resolution."""
    description: str = Field(..., description="Material description as printed")
    quantity: float = Field(1.0, description="Quoted quantity")
    unit: str = Field(DEFAULT_UNIT, description="Unit of measurement")
    unit_price: float = Field(PLACEHOLDER_PRICE, description="Unit price or placeholder")
    strategy: str = Field("", description="Parsing strategy that produced the item")

    @property
    def has_price(self) -> bool:
        return self.unit_price != PLACEHOLDER_PRICE


Strategy = Callable[[List[str], Optional[int]], List[CandidateItem]]


def parse_number(token: str) -> Optional[float]:
    """
    Parse a price or quantity token in Brazilian or US notation.

    "1.394,10" -> 1394.1, "1394.10" -> 1394.1, "30,98" -> 30.98, "1.234" -> 1234.0
    """
    value = token.strip().upper().replace("R$", "").replace(" ", "")
    if not value or not re.fullmatch(NUMBER_PATTERN, value):
        return None

    if "," in value and "." in value:
        if value.rfind(",") > value.rfind("."):
            value = value.replace(".", "").replace(",", ".")
        else:
            value = value.replace(",", "")
    elif "," in value:
        if value.count(",") > 1:
            value = value.replace(",", "")
        else:
            value = value.replace(",", ".")
    elif value.count(".") > 1 or re.fullmatch(r"\d{1,3}\.\d{3}", value):
        value = value.replace(".", "")

    try:
        return float(value)
    except ValueError:
        return None


def normalize_unit(token: Optional[str]) -> str:
    if not token:
        return DEFAULT_UNIT
    key = token.strip().rstrip(".").upper()
    return UNIT_ALIASES.get(key, key or DEFAULT_UNIT)


def is_unit_token(token: str) -> bool:
    return bool(UNIT_TOKEN_RE.match(token.strip()))


def is_number_token(token: str) -> bool:
    return bool(NUMBER_TOKEN_RE.match(token.strip()))


def is_noise_line(line: str) -> bool:
    """Footer/header lines (totals, page markers, contact info) are never items."""
    return bool(NOISE_RE.search(line))


def normalize_description(description: str) -> str:
    """Collapse whitespace, drop a leading "code -" prefix and boundary punctuation."""
    text = WHITESPACE_RE.sub(" ", description).strip()
    text = CODE_DASH_PREFIX_RE.sub("", text)
    return BOUNDARY_RE.sub("", text).strip()


def is_acceptable_description(description: str) -> bool:
    return (len(description) >= MIN_DESCRIPTION_LENGTH
            and any(ch.isalpha() for ch in description))


def _make_item(description: str, quantity: Optional[float], unit: Optional[str],
               unit_price: Optional[float], strategy: str) -> CandidateItem:
    return CandidateItem(
        description=description,
        quantity=quantity if quantity and quantity > 0 else 1.0,
        unit=normalize_unit(unit),
        unit_price=unit_price if unit_price and unit_price > 0 else PLACEHOLDER_PRICE,
        strategy=strategy,
    )


# ---------------------------------------------------------------------------
# Strategy 1: strict table columns
# ---------------------------------------------------------------------------

def _tokenizations(line: str) -> List[List[str]]:
    """Column split on multi-space runs first, single spaces as a fallback."""
    single = line.split()
    fields = [f.strip() for f in MULTI_SPACE_RE.split(line.strip()) if f.strip()]
    if len(fields) >= 4 and fields != single:
        return [fields, single]
    return [single]


def _looks_like_code(token: str) -> bool:
    return " " not in token and any(ch.isdigit() for ch in token) and not is_unit_token(token)


def _parse_table_row(tokens: Sequence[str]) -> Optional[CandidateItem]:
    """
    Consume tokens in column order: item, code, description, unit, quantity,
    unit price, total. The description absorbs tokens until a unit token.
    """
    if not tokens or not tokens[0][:1].isdigit():
        return None

    position = 1
    if position < len(tokens) - 1 and _looks_like_code(tokens[position]):
        position += 1

    description_tokens: List[str] = []
    while position < len(tokens) and not is_unit_token(tokens[position]):
        description_tokens.append(tokens[position])
        position += 1

    if position >= len(tokens) or not description_tokens:
        return None

    unit = tokens[position]
    numbers = [parse_number(t) for t in tokens[position + 1:] if is_number_token(t)]
    numbers = [n for n in numbers if n is not None]
    if not numbers:
        return None

    quantity = numbers[0]
    unit_price = numbers[1] if len(numbers) > 1 else None
    return _make_item(" ".join(description_tokens), quantity, unit, unit_price, "table")


def parse_table_rows(lines: List[str], table_offset: Optional[int]) -> List[CandidateItem]:
    """Strict tabular strategy; only runs when a table header was detected."""
    if table_offset is None:
        return []

    items: List[CandidateItem] = []
    for line in lines[table_offset:]:
        if not line.strip():
            continue
        if items and TABLE_END_RE.search(line):
            logger.debug(f"Table end marker reached: {line.strip()[:60]}")
            break

        for tokens in _tokenizations(line):
            item = _parse_table_row(tokens)
            if item is not None:
                items.append(item)
                break
        else:
            logger.debug(f"Table row skipped: {line.strip()[:60]}")

    return items


# ---------------------------------------------------------------------------
# Strategy 2: ranked regular expressions
# ---------------------------------------------------------------------------

_NUM = rf"(?:R\$\s*)?({NUMBER_PATTERN})"
_UNIT = rf"({UNIT_PATTERN})\.?"
_DESC = r"(.*?[^\W\d_].*?)"

# (name, pattern, group order) most specific first
LINE_PATTERNS: List[Tuple[str, Pattern, Tuple[str, ...]]] = [
    (
        "number_code_desc_unit_qty_price_total",
        re.compile(rf"^\s*\d+\s+[\w./-]*\d[\w./-]*\s+{_DESC}\s+{_UNIT}\s+{_NUM}\s+{_NUM}\s+{_NUM}\s*$",
                   re.IGNORECASE),
        ("description", "unit", "quantity", "unit_price", "total"),
    ),
    (
        "code_desc_unit_qty_price",
        re.compile(rf"^\s*[\w./-]*\d[\w./-]*\s+{_DESC}\s+{_UNIT}\s+{_NUM}\s+{_NUM}(?:\s+{_NUM})?\s*$",
                   re.IGNORECASE),
        ("description", "unit", "quantity", "unit_price", "total"),
    ),
    (
        "desc_unit_qty_price",
        re.compile(rf"^\s*{_DESC}\s+{_UNIT}\s+{_NUM}\s+{_NUM}(?:\s+{_NUM})?\s*$", re.IGNORECASE),
        ("description", "unit", "quantity", "unit_price", "total"),
    ),
    (
        "desc_qty_unit_price",
        re.compile(rf"^\s*{_DESC}\s+{_NUM}\s*{_UNIT}\s+{_NUM}(?:\s+{_NUM})?\s*$", re.IGNORECASE),
        ("description", "quantity", "unit", "unit_price", "total"),
    ),
    (
        "desc_two_numbers",
        re.compile(rf"^\s*{_DESC}\s+{_NUM}\s+{_NUM}\s*$", re.IGNORECASE),
        ("description", "quantity", "unit_price"),
    ),
]


def match_line(line: str,
               patterns: Iterable[Tuple[str, Pattern, Tuple[str, ...]]] = LINE_PATTERNS
               ) -> Optional[CandidateItem]:
    """Apply patterns in order; the first pattern matching the line wins."""
    for name, pattern, fields in patterns:
        match = pattern.match(line)
        if not match:
            continue
        values = dict(zip(fields, match.groups()))
        logger.debug(f"Pattern {name} matched: {line.strip()[:60]}")
        return _make_item(
            values["description"],
            parse_number(values["quantity"]) if values.get("quantity") else None,
            values.get("unit"),
            parse_number(values["unit_price"]) if values.get("unit_price") else None,
            "regex",
        )
    return None


def parse_with_patterns(lines: List[str], table_offset: Optional[int]) -> List[CandidateItem]:
    """Loose regex strategy over every line of the document."""
    items = []
    for line in lines:
        if not line.strip() or is_noise_line(line):
            continue
        item = match_line(line)
        if item is not None:
            items.append(item)
    return items


# ---------------------------------------------------------------------------
# Strategy 3: token positions
# ---------------------------------------------------------------------------

def parse_by_position(lines: List[str], table_offset: Optional[int]) -> List[CandidateItem]:
    """
    For lines starting with a numeric code and holding two or more numbers:
    quantity follows the unit token when there is one, otherwise the last two
    numbers are quantity and unit price.
    """
    items = []
    for line in lines:
        tokens = line.split()
        if len(tokens) < 3 or not tokens[0][:1].isdigit() or is_noise_line(line):
            continue

        numeric = [i for i, t in enumerate(tokens) if i > 0 and is_number_token(t)]
        if len(numeric) < 2:
            continue

        unit_index = next((i for i, t in enumerate(tokens) if i > 0 and is_unit_token(t)), None)
        after_unit = [i for i in numeric if unit_index is not None and i > unit_index]

        if unit_index is not None and after_unit:
            description = tokens[1:unit_index]
            unit = tokens[unit_index]
            quantity = parse_number(tokens[after_unit[0]])
            unit_price = parse_number(tokens[after_unit[1]]) if len(after_unit) > 1 else None
        else:
            qty_index, price_index = numeric[-2], numeric[-1]
            description = tokens[1:qty_index]
            unit = None
            quantity = parse_number(tokens[qty_index])
            unit_price = parse_number(tokens[price_index])

        if description:
            items.append(_make_item(" ".join(description), quantity, unit, unit_price, "positional"))
    return items


# ---------------------------------------------------------------------------
# Strategy 4: degenerate fallback
# ---------------------------------------------------------------------------

def parse_degenerate(lines: List[str], table_offset: Optional[int]) -> List[CandidateItem]:
    """Every long line with letters and digits becomes one priceless item."""
    items = []
    for line in lines:
        stripped = line.strip()
        if len(stripped) <= DEGENERATE_MIN_LINE_LENGTH or is_noise_line(stripped):
            continue
        if not (any(ch.isdigit() for ch in stripped) and any(ch.isalpha() for ch in stripped)):
            continue
        items.append(_make_item(stripped, None, None, None, "degenerate"))
    return items


DEFAULT_STRATEGIES: List[Tuple[str, Strategy]] = [
    ("table", parse_table_rows),
    ("regex", parse_with_patterns),
    ("positional", parse_by_position),
    ("degenerate", parse_degenerate),
]


def clean_candidates(items: Iterable[CandidateItem]) -> List[CandidateItem]:
    """Normalize descriptions, drop noise and repeated descriptions (first wins)."""
    cleaned: List[CandidateItem] = []
    seen = set()

    for item in items:
        description = normalize_description(item.description)
        if not is_acceptable_description(description):
            logger.debug(f"Rejected candidate description: {item.description!r}")
            continue

        key = " ".join(description.lower().split())
        if key in seen:
            logger.debug(f"Duplicate candidate dropped: {description}")
            continue
        seen.add(key)
        cleaned.append(item.model_copy(update={"description": description}))

    return cleaned


class LineItemParser:
    """
    Runs the strategy chain over extracted quote text.

    Strategies are ``(name, function)`` pairs; each function takes the text
    lines and the table offset and returns candidate items.
    """

    def __init__(self, strategies: Optional[Sequence[Tuple[str, Strategy]]] = None):
        self.strategies = list(strategies if strategies is not None else DEFAULT_STRATEGIES)
        logger.info(f"LineItemParser initialized (strategies={[n for n, _ in self.strategies]})")

    def parse(self, text: str, table_offset: Optional[int] = None) -> List[CandidateItem]:
        """
        Parse candidate items from text.

        Args:
            text: Raw extracted text
            table_offset: First data line of a detected table, or None

        Returns:
            Candidate items from the first successful strategy (possibly empty)
        """
        lines = text.splitlines()

        for name, strategy in self.strategies:
            try:
                items = clean_candidates(strategy(lines, table_offset))
            except Exception as e:
                logger.warning(f"Strategy {name} failed: {e}")
                continue

            if items:
                logger.info(f"Strategy {name} produced {len(items)} items")
                return items
            logger.debug(f"Strategy {name} produced no items")

        logger.info("No line items found")
        return []
