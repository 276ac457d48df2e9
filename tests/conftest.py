"""
Shared fixtures: a scripted text engine, a JSON catalog store on tmp_path
and sample quote texts.
"""

from typing import List

import pytest

from budget_ingest.ingestion.extractor import TextExtractor
from budget_ingest.ingestion.ocr_client import TextEngine
from budget_ingest.librarian.json_store import JsonCatalogStore
from budget_ingest.pipeline import IngestionPipeline


class FakeEngine(TextEngine):
    """Returns a fixed text and records every call."""

    name = "fake_ocr"

    def __init__(self, text: str = ""):
        self.text = text
        self.calls: List[dict] = []

    def recognize(self, data, language_hint, filename="document.pdf",
                  media_type="application/pdf"):
        self.calls.append({"language_hint": language_hint, "filename": filename})
        return self.text


SUPPLIER_HEADER = """CASA DO CONSTRUTOR MATERIAIS LTDA
CNPJ: 12.345.678/0001-90
Fone: (11) 3456-7890  vendas@casadoconstrutor.com.br
ORÇAMENTO Nº 1520
"""

TABLE_HEADER = "Item  Cód.  Descrição  Un  Qtd  Vl. Unit  Vl. Total"

VERG_QUOTE = SUPPLIER_HEADER + TABLE_HEADER + """
4725 VERG CA50 5/16 UN 45 30.98 1394.10
Total: R$ 1.394,10
Página 1/1
"""

TEN_MATERIALS = [
    "Cimento Portland CP II",
    "Areia Media Lavada",
    "Brita Numero Um",
    "Tijolo Ceramico Furado",
    "Vergalhao CA50 10mm",
    "Tubo PVC Esgoto 100mm",
    "Cal Hidratada Saco",
    "Argamassa Colante AC1",
    "Telha Fibrocimento Ondulada",
    "Prego Galvanizado 18x27",
]


def ten_item_quote() -> str:
    rows = [
        f"{i}  {1000 + i}  {name}  UN  2  10,00  20,00"
        for i, name in enumerate(TEN_MATERIALS, start=1)
    ]
    return TABLE_HEADER + "\n" + "\n".join(rows) + "\nTotal  200,00\n"


@pytest.fixture
def store(tmp_path):
    return JsonCatalogStore(str(tmp_path / "catalog.json"))


@pytest.fixture
def make_pipeline():
    def _make(text: str, catalog_store, **kwargs):
        engine = FakeEngine(text)
        extractor = TextExtractor(engines=[engine])
        return IngestionPipeline(extractor, catalog_store, **kwargs), engine
    return _make
