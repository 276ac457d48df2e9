"""
Supabase Catalog Store

Maps catalog records onto the application's Supabase tables:
materiais, etapas_materiais, etapas and fornecedores.
"""

import logging
from typing import Any, Dict, List, Optional

from ..exceptions import CatalogStoreError
from ..ingestion.supplier_info import SupplierInfo
from .catalog_store import (
    IMPORTED_CATEGORY,
    BaseCatalogStore,
    CatalogMaterial,
    StageMaterialLink,
)
from .supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

MATERIAL_COLUMNS = {
    "name": "nome",
    "supplier_id": "fornecedor_id",
    "unit": "unidade",
    "unit_price": "preco_unitario",
    "stock_quantity": "quantidade_estoque",
    "owner_id": "user_id",
    "category": "categoria",
    "minimum_quantity": "quantidade_minima",
}

LINK_COLUMNS = {
    "stage_id": "etapa_id",
    "project_id": "obra_id",
    "material_id": "material_id",
    "quantity": "quantidade",
    "total_value": "valor_total",
    "purchase_date": "data_compra",
    "updated_at": "updated_at",
    "invoice_note": "nota_fiscal",
    "notes": "observacoes",
}

SUPPLIER_COLUMNS = {
    "name": "nome",
    "tax_id": "cnpj",
    "phone": "telefone",
    "email": "email",
}


def _to_row(fields: Dict[str, Any], columns: Dict[str, str]) -> Dict[str, Any]:
    unknown = set(fields) - set(columns)
    if unknown:
        raise CatalogStoreError(f"Unknown fields: {', '.join(sorted(unknown))}")
    return {columns[key]: value for key, value in fields.items()}


def _from_row(row: Dict[str, Any], columns: Dict[str, str]) -> Dict[str, Any]:
    record = {key: row.get(column) for key, column in columns.items() if row.get(column) is not None}
    if row.get("id") is not None:
        record["id"] = str(row["id"])
    return record


def _material(row: Dict[str, Any]) -> CatalogMaterial:
    record = _from_row(row, MATERIAL_COLUMNS)
    record["supplier_id"] = str(record.get("supplier_id", ""))
    return CatalogMaterial(**record)


def _link(row: Dict[str, Any]) -> StageMaterialLink:
    record = _from_row(row, LINK_COLUMNS)
    for key in ("stage_id", "project_id", "material_id"):
        record[key] = str(record.get(key, ""))
    return StageMaterialLink(**record)


class SupabaseCatalogStore(BaseCatalogStore):
    """
    Catalog store over the hosted Supabase database.
    """

    def __init__(self, client: SupabaseClient):
        """
        Initialize the store.

        Args:
            client: Connected SupabaseClient
        """
        self.client = client
        logger.info("SupabaseCatalogStore initialized")

    def list_materials(self, supplier_id: str) -> List[CatalogMaterial]:
        rows = self.client.select("materiais", {"fornecedor_id": supplier_id}, order="nome")
        return [_material(row) for row in rows]

    def create_material(
        self,
        name: str,
        supplier_id: str,
        unit: str,
        unit_price: float,
        owner_id: Optional[str] = None
    ) -> CatalogMaterial:
        row = _to_row({
            "name": name,
            "supplier_id": supplier_id,
            "unit": unit,
            "unit_price": unit_price,
            "stock_quantity": 0,
            "minimum_quantity": 0,
            "category": IMPORTED_CATEGORY,
        }, MATERIAL_COLUMNS)
        row["descricao"] = ""
        if owner_id:
            row["user_id"] = owner_id
        return _material(self.client.insert("materiais", row))

    def update_material(self, material_id: str, fields: Dict[str, Any]) -> CatalogMaterial:
        rows = self.client.update("materiais", {"id": material_id}, _to_row(fields, MATERIAL_COLUMNS))
        if not rows:
            raise CatalogStoreError(f"Material not found: {material_id}")
        return _material(rows[0])

    def list_stage_links(self, stage_id: str) -> List[StageMaterialLink]:
        rows = self.client.select("etapas_materiais", {"etapa_id": stage_id})
        return [_link(row) for row in rows]

    def create_link(self, link: StageMaterialLink) -> StageMaterialLink:
        fields = link.model_dump(exclude={"id", "updated_at"})
        return _link(self.client.insert("etapas_materiais", _to_row(fields, LINK_COLUMNS)))

    def update_link(self, stage_id: str, material_id: str,
                    fields: Dict[str, Any]) -> StageMaterialLink:
        rows = self.client.update(
            "etapas_materiais",
            {"etapa_id": stage_id, "material_id": material_id},
            _to_row(fields, LINK_COLUMNS),
        )
        if not rows:
            raise CatalogStoreError(f"Link not found: stage={stage_id} material={material_id}")
        return _link(rows[0])

    def update_stage_realized_value(self, stage_id: str, realized_value: float) -> None:
        self.client.update("etapas", {"id": stage_id}, {"valor_realizado": realized_value})

    def find_supplier_by_tax_id(self, tax_id: str) -> Optional[SupplierInfo]:
        rows = self.client.select("fornecedores", {"cnpj": tax_id})
        if not rows:
            return None
        return SupplierInfo(**_from_row(rows[0], SUPPLIER_COLUMNS))

    def create_supplier(self, supplier: SupplierInfo) -> SupplierInfo:
        fields = supplier.model_dump(exclude={"id"}, exclude_none=True)
        row = self.client.insert("fornecedores", _to_row(fields, SUPPLIER_COLUMNS))
        return SupplierInfo(**_from_row(row, SUPPLIER_COLUMNS))
