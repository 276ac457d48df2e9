"""
Tests for material name similarity and catalog resolution.
"""

from unittest.mock import Mock

import pytest

from budget_ingest.exceptions import CatalogStoreError
from budget_ingest.ingestion.parser import CandidateItem
from budget_ingest.librarian.catalog_store import BaseCatalogStore, CatalogMaterial
from budget_ingest.resolution.resolver import CatalogResolver, find_material
from budget_ingest.resolution.similarity import best_match, jaccard_similarity, normalize_name


def material(name, material_id="m1", supplier_id="s1", unit_price=30.0):
    return CatalogMaterial(id=material_id, name=name, supplier_id=supplier_id,
                           unit="UN", unit_price=unit_price)


class TestSimilarity:

    def test_normalize_name(self):
        assert normalize_name("  Cimento Portland CP-II ") == "cimento portland cp ii"
        assert normalize_name("VERG. CA50 (5/16)") == "verg ca50 5 16"

    def test_jaccard(self):
        assert jaccard_similarity("cp ii", "cp iii") == pytest.approx(1 / 3)
        assert jaccard_similarity("a b c d", "a b c d e") == pytest.approx(0.8)
        assert jaccard_similarity("", "") == 0.0

    def test_exact_match_beats_earlier_similar_entry(self):
        candidates = [("areia media lavada fina grossa", "near"), ("areia media lavada fina", "exact")]
        assert best_match("areia media lavada fina", candidates, 0.8) == ("exact", 1.0)

    def test_tie_keeps_first_entry(self):
        candidates = [("a b c d x", "first"), ("a b c d y", "second")]
        value, score = best_match("a b c d", candidates, 0.8)
        assert value == "first"
        assert score == pytest.approx(0.8)

    def test_below_threshold(self):
        assert best_match("cimento cp iii", [("cimento cp ii", 1)], 0.8) is None


class TestFindMaterial:

    def test_punctuation_and_case_insensitive(self):
        found, score = find_material("CIMENTO PORTLAND CP-II", [material("Cimento Portland CP II")])
        assert found.id == "m1"
        assert score == 1.0

    def test_threshold_is_inclusive(self):
        catalog = [material("Areia Media Lavada Fina")]
        assert find_material("Areia Media Lavada Fina Grossa", catalog, 0.8) is not None
        assert find_material("Areia Media Lavada Fina Grossa", catalog, 0.81) is None


class TestCatalogResolver:
    """Test matching candidates against a supplier catalog."""

    def test_new_material_created_with_zero_stock(self, store):
        resolver = CatalogResolver(store)
        candidate = CandidateItem(description="VERG CA50 5/16", quantity=45, unit="UN", unit_price=30.98)

        state = resolver.resolve_all([candidate], "s1")

        assert state.created_count == 1
        assert state.matched_count == 0
        stored = store.list_materials("s1")
        assert len(stored) == 1
        assert stored[0].name == "VERG CA50 5/16"
        assert stored[0].unit_price == pytest.approx(30.98)
        assert stored[0].stock_quantity == 0
        assert stored[0].category == "Orçamento Importado"

    def test_exact_match_updates_price_only(self, store):
        existing = store.create_material("Cimento Portland CP II", "s1", "SC", 30.0)
        resolver = CatalogResolver(store)

        state = resolver.resolve_all(
            [CandidateItem(description="CIMENTO PORTLAND CP-II", unit="KG", unit_price=32.5)], "s1"
        )

        assert state.matched_count == 1
        assert state.outcomes[0].material_id == existing.id
        stored = store.list_materials("s1")
        assert len(stored) == 1
        assert stored[0].unit_price == pytest.approx(32.5)
        assert stored[0].unit == "SC"
        assert stored[0].name == "Cimento Portland CP II"

    def test_near_duplicate_is_merged(self, store):
        store.create_material("Cimento Portland CP II 50kg", "s1", "SC", 30.0)

        state = CatalogResolver(store).resolve_all(
            [CandidateItem(description="Cimento Portland CP II 50kg saco", unit_price=31.0)], "s1"
        )

        assert state.matched_count == 1
        assert state.outcomes[0].similarity == pytest.approx(5 / 6)
        assert len(store.list_materials("s1")) == 1

    def test_dissimilar_name_creates_new_material(self, store):
        store.create_material("Cimento CP II", "s1", "SC", 30.0)
        state = CatalogResolver(store).resolve_all([CandidateItem(description="Cimento CP III")], "s1")
        assert state.created_count == 1
        assert len(store.list_materials("s1")) == 2

    def test_catalogs_are_scoped_per_supplier(self, store):
        store.create_material("Cimento Portland CP II", "s2", "SC", 30.0)
        state = CatalogResolver(store).resolve_all(
            [CandidateItem(description="Cimento Portland CP II")], "s1"
        )
        assert state.created_count == 1
        assert len(store.list_materials("s2")) == 1

    def test_material_created_earlier_in_batch_is_matched(self, store):
        candidates = [
            CandidateItem(description="Tubo PVC Esgoto 100mm", unit_price=20.0),
            CandidateItem(description="Tubo PVC Esgoto 100mm Branco", unit_price=21.0),
        ]

        state = CatalogResolver(store).resolve_all(candidates, "s1")

        assert state.created_count == 1
        assert state.matched_count == 1
        assert state.outcomes[0].material_id == state.outcomes[1].material_id
        stored = store.list_materials("s1")
        assert len(stored) == 1
        assert stored[0].unit_price == pytest.approx(21.0)

    def test_priceless_match_keeps_stored_price(self, store):
        store.create_material("Areia Media Lavada", "s1", "M3", 120.0)
        state = CatalogResolver(store).resolve_all([CandidateItem(description="Areia Media Lavada")], "s1")
        assert state.matched_count == 1
        assert store.list_materials("s1")[0].unit_price == pytest.approx(120.0)

    def test_owner_recorded_on_touched_materials(self, store):
        store.create_material("Areia Media Lavada", "s1", "M3", 120.0)
        resolver = CatalogResolver(store, owner_id="user-7")

        resolver.resolve_all([
            CandidateItem(description="Areia Media Lavada"),
            CandidateItem(description="Cal Hidratada Saco", unit_price=15.0),
        ], "s1")

        assert {m.owner_id for m in store.list_materials("s1")} == {"user-7"}

    def test_store_failure_is_recorded_per_item(self):
        store = Mock(spec=BaseCatalogStore)
        store.list_materials.return_value = []

        def create_material(name, supplier_id, unit, unit_price, owner_id=None):
            if name.startswith("Brita"):
                raise CatalogStoreError("insert rejected")
            return material(name, material_id=name, supplier_id=supplier_id, unit_price=unit_price)

        store.create_material.side_effect = create_material
        candidates = [
            CandidateItem(description="Areia Media Lavada"),
            CandidateItem(description="Brita Numero Um"),
            CandidateItem(description="Cal Hidratada Saco"),
        ]

        state = CatalogResolver(store).resolve_all(candidates, "s1")

        assert state.created_count == 2
        assert len(state.errors) == 1
        assert state.errors[0].item_description == "Brita Numero Um"
        assert "insert rejected" in state.errors[0].error_message
        assert [m.name for m in state.catalog] == ["Areia Media Lavada", "Cal Hidratada Saco"]

    def test_given_catalog_is_not_refetched(self):
        store = Mock(spec=BaseCatalogStore)
        store.update_material.return_value = material("Cal Hidratada Saco", unit_price=15.0)

        state = CatalogResolver(store).resolve_all(
            [CandidateItem(description="Cal Hidratada Saco", unit_price=15.0)],
            "s1",
            catalog=[material("Cal Hidratada Saco")],
        )

        store.list_materials.assert_not_called()
        store.update_material.assert_called_once_with("m1", {"unit_price": 15.0})
        assert state.matched_count == 1
