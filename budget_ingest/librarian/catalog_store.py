"""
Catalog Store Interface

Records kept by the catalog store and the provider-agnostic interface the
pipeline writes through. Backends (Supabase, Neo4j, JSON file) implement
BaseCatalogStore; the pipeline never talks to a backend directly.
"""

import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..ingestion.supplier_info import SupplierInfo

logger = logging.getLogger(__name__)

IMPORTED_CATEGORY = "Orçamento Importado"
IMPORTED_INVOICE_NOTE = "Orçamento importado"
IMPORTED_LINK_NOTE = "Material adicionado automaticamente a partir de orçamento"


class CatalogMaterial(BaseModel):
    """A material row, scoped to one supplier."""
    id: str
    name: str
    supplier_id: str
    unit: str = "UN"
    unit_price: float = 0.0
    stock_quantity: float = 0.0
    owner_id: Optional[str] = None
    category: str = IMPORTED_CATEGORY
    minimum_quantity: float = 0.0


class StageMaterialLink(BaseModel):
    """Association of a material with a project stage (one per stage/material)."""
    id: Optional[str] = None
    stage_id: str
    project_id: str
    material_id: str
    quantity: float = 1.0
    total_value: float = 0.0
    purchase_date: str = Field(default_factory=lambda: date.today().isoformat())
    updated_at: Optional[str] = None
    invoice_note: str = IMPORTED_INVOICE_NOTE
    notes: str = IMPORTED_LINK_NOTE


class BaseCatalogStore(ABC):
    """
    Abstract catalog store.

    The pipeline only performs one batch read of materials per supplier, one
    batch read of links per stage, and per-item inserts/updates. Backends raise
    CatalogStoreError on failure.
    """

    @abstractmethod
    def list_materials(self, supplier_id: str) -> List[CatalogMaterial]:
        """Return every material of a supplier."""
        pass

    @abstractmethod
    def create_material(
        self,
        name: str,
        supplier_id: str,
        unit: str,
        unit_price: float,
        owner_id: Optional[str] = None
    ) -> CatalogMaterial:
        """Insert a material with zero stock and return the stored row."""
        pass

    @abstractmethod
    def update_material(self, material_id: str, fields: Dict[str, Any]) -> CatalogMaterial:
        """Update the given fields of a material and return the stored row."""
        pass

    @abstractmethod
    def list_stage_links(self, stage_id: str) -> List[StageMaterialLink]:
        """Return every material link of a stage."""
        pass

    @abstractmethod
    def create_link(self, link: StageMaterialLink) -> StageMaterialLink:
        """Insert a stage/material link."""
        pass

    @abstractmethod
    def update_link(self, stage_id: str, material_id: str,
                    fields: Dict[str, Any]) -> StageMaterialLink:
        """Update the link of a material to a stage."""
        pass

    @abstractmethod
    def update_stage_realized_value(self, stage_id: str, realized_value: float) -> None:
        """Persist the realized-value aggregate of a stage."""
        pass

    @abstractmethod
    def find_supplier_by_tax_id(self, tax_id: str) -> Optional[SupplierInfo]:
        """Look a supplier up by CNPJ."""
        pass

    @abstractmethod
    def create_supplier(self, supplier: SupplierInfo) -> SupplierInfo:
        """Insert a supplier and return it with its id."""
        pass

    def recompute_stage_value(self, stage_id: str) -> float:
        """
        Recompute and persist the realized value of a stage.

        Returns:
            Sum of total_value over the stage's material links
        """
        total = sum(link.total_value for link in self.list_stage_links(stage_id))
        total = round(total, 2)
        self.update_stage_realized_value(stage_id, total)
        logger.debug(f"Stage {stage_id} realized value is now {total:.2f}")
        return total

    def resolve_supplier(self, supplier: SupplierInfo) -> SupplierInfo:
        """
        Return the registered supplier for a quote, registering it if needed.

        Suppliers are matched by tax id; without one a new row is always created.
        """
        if supplier.tax_id:
            existing = self.find_supplier_by_tax_id(supplier.tax_id)
            if existing is not None:
                logger.info(f"Supplier already registered: {existing.name} ({existing.id})")
                return existing

        created = self.create_supplier(supplier)
        logger.info(f"Supplier registered: {created.name} ({created.id})")
        return created
