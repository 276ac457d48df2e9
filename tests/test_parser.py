"""
Tests for the line-item parser strategies and candidate cleanup.
"""

from unittest.mock import Mock

import pytest

from budget_ingest.ingestion.parser import (
    DEFAULT_UNIT,
    PLACEHOLDER_PRICE,
    CandidateItem,
    LineItemParser,
    clean_candidates,
    is_noise_line,
    match_line,
    normalize_description,
    parse_by_position,
    parse_degenerate,
    parse_number,
    parse_table_rows,
    parse_with_patterns,
)
from budget_ingest.ingestion.table_detector import detect_table

TABLE_TEXT = """Item  Cód.  Descrição  Un  Qtd  Vl. Unit  Vl. Total
1  4725  VERG CA50 5/16  UN  45  30,98  1.394,10
2  1010  CIMENTO PORTLAND CP II 50KG  SC  10  32,50  325,00
Obs: entregar pela manhã
Total: R$ 1.719,10
3  999  NAO DEVE APARECER  UN  1  1,00  1,00
"""


class TestParseNumber:

    @pytest.mark.parametrize("token,expected", [
        ("1.394,10", 1394.10),
        ("1394.10", 1394.10),
        ("30,98", 30.98),
        ("1.234", 1234.0),
        ("45", 45.0),
        ("R$ 32,50", 32.50),
        ("1,234.56", 1234.56),
    ])
    def test_formats(self, token, expected):
        assert parse_number(token) == pytest.approx(expected)

    def test_not_a_number(self):
        assert parse_number("5/16") is None
        assert parse_number("CA50") is None
        assert parse_number("") is None


class TestNormalization:

    def test_collapses_whitespace_and_strips_code_prefix(self):
        assert normalize_description("01 -  Cimento   Portland;") == "Cimento Portland"

    def test_keeps_inner_punctuation(self):
        assert normalize_description("  (VERG CA50 5/16)  ") == "VERG CA50 5/16"

    def test_short_and_numeric_descriptions_are_rejected(self):
        items = [
            CandidateItem(description="AB1"),
            CandidateItem(description="12345 678"),
            CandidateItem(description="Areia media"),
        ]
        assert [i.description for i in clean_candidates(items)] == ["Areia media"]

    def test_duplicate_descriptions_keep_first(self):
        items = [
            CandidateItem(description="Cimento  CP II", unit_price=30.0),
            CandidateItem(description="cimento cp ii", unit_price=31.0),
        ]
        cleaned = clean_candidates(items)
        assert len(cleaned) == 1
        assert cleaned[0].description == "Cimento CP II"
        assert cleaned[0].unit_price == 30.0


class TestTableStrategy:

    def test_rows_until_end_marker(self):
        lines = TABLE_TEXT.splitlines()
        items = parse_table_rows(lines, detect_table(TABLE_TEXT))

        assert [i.description for i in items] == [
            "VERG CA50 5/16",
            "CIMENTO PORTLAND CP II 50KG",
        ]
        assert items[0].quantity == 45
        assert items[0].unit == "UN"
        assert items[0].unit_price == pytest.approx(30.98)
        assert items[1].unit == "SC"
        assert items[1].unit_price == pytest.approx(32.50)

    def test_single_space_row(self):
        lines = ["4725 VERG CA50 5/16 UN 45 30.98 1394.10"]
        items = parse_table_rows(lines, 0)
        assert len(items) == 1
        assert items[0].description == "VERG CA50 5/16"
        assert items[0].quantity == 45
        assert items[0].unit_price == pytest.approx(30.98)

    def test_missing_price_uses_placeholder(self):
        items = parse_table_rows(["7  ARAME RECOZIDO 18  KG  3"], 0)
        assert items[0].unit_price == PLACEHOLDER_PRICE
        assert not items[0].has_price

    def test_end_marker_before_any_item_is_ignored(self):
        lines = ["Página 1/2", "1  10  AREIA MEDIA  M3  2  120,00"]
        items = parse_table_rows(lines, 0)
        assert len(items) == 1

    def test_not_run_without_table(self):
        assert parse_table_rows(TABLE_TEXT.splitlines(), None) == []


class TestRegexStrategy:

    def test_code_description_unit_quantity_price(self):
        item = match_line("4725 VERG CA50 5/16 UN 45 30.98 1394.10")
        assert item.description == "VERG CA50 5/16"
        assert item.unit == "UN"
        assert item.quantity == 45
        assert item.unit_price == pytest.approx(30.98)

    def test_quantity_before_unit(self):
        item = match_line("Cimento Portland 10 SC 32,50")
        assert item.description == "Cimento Portland"
        assert item.quantity == 10
        assert item.unit == "SC"
        assert item.unit_price == pytest.approx(32.50)

    def test_size_in_description_is_not_read_as_quantity(self):
        item = match_line("Cimento Portland CP II 50kg 10 SC 32,50")
        assert item.description == "Cimento Portland CP II 50kg"
        assert item.quantity == 10
        assert item.unit == "SC"
        assert item.unit_price == pytest.approx(32.50)

    def test_description_and_two_numbers(self):
        item = match_line("Areia media lavada 2 120,00")
        assert item.description == "Areia media lavada"
        assert item.quantity == 2
        assert item.unit == DEFAULT_UNIT
        assert item.unit_price == pytest.approx(120.0)

    def test_noise_lines_skipped(self):
        lines = ["Total geral 3 1.234,56", "Areia media lavada 2 120,00"]
        items = parse_with_patterns(lines, None)
        assert [i.description for i in items] == ["Areia media lavada"]


class TestPositionalStrategy:

    def test_unit_token_locates_quantity(self):
        items = parse_by_position(["4725 VERG CA50 5/16 UN 45 30.98 1394.10"], None)
        assert items[0].description == "VERG CA50 5/16"
        assert items[0].quantity == 45
        assert items[0].unit_price == pytest.approx(30.98)

    def test_last_two_numbers_without_unit(self):
        items = parse_by_position(["880 LIXA FERRO GRAO 100 12 2,35"], None)
        assert items[0].description == "LIXA FERRO GRAO 100"
        assert items[0].quantity == 12
        assert items[0].unit_price == pytest.approx(2.35)

    def test_requires_leading_digit_and_two_numbers(self):
        assert parse_by_position(["LIXA FERRO 12 2,35", "880 LIXA FERRO 12"], None) == []


class TestDegenerateStrategy:

    def test_long_mixed_lines_become_priceless_items(self):
        items = parse_degenerate(["Areia lavada 2 caminhões", "curta 1", "Sem digitos aqui"], None)
        assert len(items) == 1
        assert items[0].quantity == 1
        assert items[0].unit == DEFAULT_UNIT
        assert items[0].unit_price == PLACEHOLDER_PRICE


class TestNoise:

    @pytest.mark.parametrize("line", [
        "Página 1/2",
        "Total: R$ 1.234,56",
        "Fone: (11) 3456-7890",
        "contato@fornecedor.com.br",
        "CNPJ 12.345.678/0001-90",
        "2/3",
    ])
    def test_noise(self, line):
        assert is_noise_line(line)

    def test_noise_lines_never_produce_items(self):
        parser = LineItemParser()
        assert parser.parse("Página 1/2\nTotal: R$ 1.234,56") == []


class TestLineItemParser:
    """Test the strategy chain."""

    def test_table_strategy_wins(self):
        items = LineItemParser().parse(TABLE_TEXT, detect_table(TABLE_TEXT))
        assert {i.strategy for i in items} == {"table"}
        assert len(items) == 2

    def test_regex_runs_when_table_strategy_finds_nothing(self):
        text = "Item Cod Descricao Un Qtd\nnenhuma linha numerada\nCimento Portland 10 SC 32,50"
        items = LineItemParser().parse(text, detect_table(text))
        assert [i.strategy for i in items] == ["regex"]

    def test_degenerate_runs_last(self):
        items = LineItemParser().parse("Orçamento de reforma\nAreia lavada 2 caminhões entregues")
        assert len(items) == 1
        assert items[0].strategy == "degenerate"
        assert items[0].unit_price == PLACEHOLDER_PRICE

    def test_first_successful_strategy_stops_chain(self):
        first = Mock(return_value=[])
        second = Mock(return_value=[CandidateItem(description="Cimento Portland")])
        third = Mock(return_value=[CandidateItem(description="Nunca usado")])
        parser = LineItemParser([("a", first), ("b", second), ("c", third)])

        items = parser.parse("qualquer texto", None)

        assert [i.description for i in items] == ["Cimento Portland"]
        first.assert_called_once()
        second.assert_called_once()
        third.assert_not_called()

    def test_strategy_yielding_only_noise_does_not_stop_chain(self):
        noisy = Mock(return_value=[CandidateItem(description="ab")])
        fallback = Mock(return_value=[CandidateItem(description="Areia lavada")])
        items = LineItemParser([("noisy", noisy), ("fallback", fallback)]).parse("x")
        assert [i.description for i in items] == ["Areia lavada"]

    def test_failing_strategy_is_skipped(self):
        broken = Mock(side_effect=ValueError("boom"))
        fallback = Mock(return_value=[CandidateItem(description="Areia lavada")])
        items = LineItemParser([("broken", broken), ("fallback", fallback)]).parse("x")
        assert len(items) == 1

    def test_empty_text(self):
        assert LineItemParser().parse("") == []
