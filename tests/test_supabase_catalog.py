"""
Tests for the Supabase REST client and the Supabase catalog store (HTTP mocked).
"""

from unittest.mock import Mock

import pytest
import requests

from budget_ingest.exceptions import CatalogStoreError
from budget_ingest.ingestion.supplier_info import SupplierInfo
from budget_ingest.librarian.blob_store import SupabaseBlobStore
from budget_ingest.librarian.catalog_store import StageMaterialLink
from budget_ingest.librarian.supabase_catalog import SupabaseCatalogStore
from budget_ingest.librarian.supabase_client import SupabaseClient

MATERIAL_ROW = {
    "id": 5,
    "nome": "Cimento Portland CP II",
    "fornecedor_id": 9,
    "unidade": "SC",
    "preco_unitario": 30.0,
    "quantidade_estoque": 0,
    "categoria": "Orçamento Importado",
    "user_id": None,
}


@pytest.fixture
def session():
    session = Mock()
    session.headers = {}
    return session


@pytest.fixture
def client():
    return Mock(spec=SupabaseClient)


class TestSupabaseClient:

    def test_auth_headers(self, session):
        SupabaseClient("https://proj.supabase.co/", "secret", session=session)
        assert session.headers["apikey"] == "secret"
        assert session.headers["Authorization"] == "Bearer secret"

    def test_select_builds_postgrest_filters(self, session):
        session.request.return_value.json.return_value = [MATERIAL_ROW]
        client = SupabaseClient("https://proj.supabase.co", "secret", session=session)

        rows = client.select("materiais", {"fornecedor_id": "9"}, order="nome")

        assert rows == [MATERIAL_ROW]
        session.request.assert_called_once_with(
            "GET",
            "https://proj.supabase.co/rest/v1/materiais",
            timeout=30.0,
            params={"select": "*", "fornecedor_id": "eq.9", "order": "nome"},
        )

    def test_http_error_becomes_store_error(self, session):
        response = session.request.return_value
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(
            "409 Conflict", response=Mock(text="duplicate key")
        )
        client = SupabaseClient("https://proj.supabase.co", "secret", session=session)

        with pytest.raises(CatalogStoreError) as exc_info:
            client.insert("materiais", {"nome": "x"})
        assert "duplicate key" in str(exc_info.value)

    def test_connection_error_becomes_store_error(self, session):
        session.request.side_effect = requests.exceptions.ConnectionError("refused")
        client = SupabaseClient("https://proj.supabase.co", "secret", session=session)
        with pytest.raises(CatalogStoreError):
            client.select("materiais")
        assert client.health_check() is False

    def test_update_requires_filters(self, session):
        client = SupabaseClient("https://proj.supabase.co", "secret", session=session)
        with pytest.raises(ValueError):
            client.update("materiais", {}, {"preco_unitario": 1.0})

    def test_public_url(self, session):
        client = SupabaseClient("https://proj.supabase.co", "secret", session=session)
        assert client.public_url("orcamentos", "orcamentos/1_a.pdf") == \
            "https://proj.supabase.co/storage/v1/object/public/orcamentos/orcamentos/1_a.pdf"


class TestSupabaseCatalogStore:
    """Test column mapping onto the Supabase tables."""

    def test_list_materials_maps_columns(self, client):
        client.select.return_value = [MATERIAL_ROW]

        materials = SupabaseCatalogStore(client).list_materials("9")

        client.select.assert_called_once_with("materiais", {"fornecedor_id": "9"}, order="nome")
        assert materials[0].id == "5"
        assert materials[0].supplier_id == "9"
        assert materials[0].name == "Cimento Portland CP II"
        assert materials[0].unit_price == 30.0

    def test_create_material_row(self, client):
        client.insert.return_value = MATERIAL_ROW

        SupabaseCatalogStore(client).create_material("Cimento Portland CP II", "9", "SC", 30.0,
                                                     owner_id="u1")

        table, row = client.insert.call_args[0]
        assert table == "materiais"
        assert row["nome"] == "Cimento Portland CP II"
        assert row["fornecedor_id"] == "9"
        assert row["quantidade_estoque"] == 0
        assert row["categoria"] == "Orçamento Importado"
        assert row["user_id"] == "u1"

    def test_update_material(self, client):
        client.update.return_value = [dict(MATERIAL_ROW, preco_unitario=32.5)]

        updated = SupabaseCatalogStore(client).update_material("5", {"unit_price": 32.5})

        client.update.assert_called_once_with("materiais", {"id": "5"}, {"preco_unitario": 32.5})
        assert updated.unit_price == 32.5

    def test_update_rejects_unknown_fields(self, client):
        with pytest.raises(CatalogStoreError):
            SupabaseCatalogStore(client).update_material("5", {"colour": "red"})
        client.update.assert_not_called()

    def test_update_missing_material(self, client):
        client.update.return_value = []
        with pytest.raises(CatalogStoreError):
            SupabaseCatalogStore(client).update_material("404", {"unit_price": 1.0})

    def test_create_link_row(self, client):
        client.insert.return_value = {
            "id": 1, "etapa_id": "e1", "obra_id": "p1", "material_id": "5",
            "quantidade": 2, "valor_total": 61.96, "data_compra": "2024-03-01",
        }
        link = StageMaterialLink(stage_id="e1", project_id="p1", material_id="5",
                                 quantity=2, total_value=61.96, purchase_date="2024-03-01")

        stored = SupabaseCatalogStore(client).create_link(link)

        table, row = client.insert.call_args[0]
        assert table == "etapas_materiais"
        assert row["etapa_id"] == "e1"
        assert row["obra_id"] == "p1"
        assert row["valor_total"] == 61.96
        assert row["nota_fiscal"] == "Orçamento importado"
        assert "id" not in row
        assert stored.id == "1"

    def test_stage_value_written_to_etapas(self, client):
        SupabaseCatalogStore(client).update_stage_realized_value("e1", 1394.1)
        client.update.assert_called_once_with("etapas", {"id": "e1"}, {"valor_realizado": 1394.1})

    def test_recompute_stage_value(self, client):
        client.select.return_value = [
            {"etapa_id": "e1", "obra_id": "p1", "material_id": "1", "valor_total": 10.005},
            {"etapa_id": "e1", "obra_id": "p1", "material_id": "2", "valor_total": 20.0},
        ]
        total = SupabaseCatalogStore(client).recompute_stage_value("e1")
        assert total == pytest.approx(30.0, abs=0.01)
        client.update.assert_called_once_with("etapas", {"id": "e1"}, {"valor_realizado": total})

    def test_resolve_supplier_registers_new_cnpj(self, client):
        client.select.return_value = []
        client.insert.return_value = {"id": 77, "nome": "Casa do Construtor", "cnpj": "12.345.678/0001-90"}

        supplier = SupabaseCatalogStore(client).resolve_supplier(
            SupplierInfo(name="Casa do Construtor", tax_id="12.345.678/0001-90")
        )

        client.select.assert_called_once_with("fornecedores", {"cnpj": "12.345.678/0001-90"})
        assert client.insert.call_args[0][1] == {"nome": "Casa do Construtor",
                                                 "cnpj": "12.345.678/0001-90"}
        assert supplier.id == "77"

    def test_resolve_supplier_reuses_existing(self, client):
        client.select.return_value = [{"id": 3, "nome": "Casa do Construtor",
                                       "cnpj": "12.345.678/0001-90"}]
        supplier = SupabaseCatalogStore(client).resolve_supplier(
            SupplierInfo(name="Outro nome", tax_id="12.345.678/0001-90")
        )
        assert supplier.id == "3"
        client.insert.assert_not_called()


class TestSupabaseBlobStore:

    def test_put_and_url(self, client):
        client.upload.return_value = "orcamentos/1_a.pdf"
        client.public_url.return_value = "https://proj/public/orcamentos/1_a.pdf"
        blob_store = SupabaseBlobStore(client, bucket="orcamentos")

        key = blob_store.put(b"%PDF", "orcamentos/1_a.pdf")

        client.upload.assert_called_once_with("orcamentos", "orcamentos/1_a.pdf", b"%PDF",
                                              content_type="application/pdf")
        assert blob_store.get_public_url(key) == "https://proj/public/orcamentos/1_a.pdf"
