"""
JSON Catalog Store

Catalog store backed by a single JSON file. Used for local runs without a
hosted database and as the store in tests.
"""

import json
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..exceptions import CatalogStoreError
from ..ingestion.supplier_info import SupplierInfo
from .catalog_store import BaseCatalogStore, CatalogMaterial, StageMaterialLink

logger = logging.getLogger(__name__)


class CatalogState(BaseModel):
    """Complete file contents."""
    last_updated: str = Field(default_factory=lambda: datetime.now().isoformat())
    suppliers: List[SupplierInfo] = Field(default_factory=list)
    materials: List[CatalogMaterial] = Field(default_factory=list)
    stage_links: List[StageMaterialLink] = Field(default_factory=list)
    stage_values: Dict[str, float] = Field(default_factory=dict)


class JsonCatalogStore(BaseCatalogStore):
    """
    Catalog store that reads/writes a JSON file.

    Every call loads the file and every write saves it, so two store objects
    on the same file see each other's changes.
    """

    def __init__(self, catalog_file_path: str):
        """
        Initialize the JSON store.

        Args:
            catalog_file_path: Path to the JSON file storing catalog state
        """
        self.catalog_file = Path(catalog_file_path)
        logger.info(f"JsonCatalogStore initialized with file: {catalog_file_path}")

        if not self.catalog_file.exists() or self.catalog_file.stat().st_size == 0:
            logger.info("Creating empty catalog file")
            self._save(CatalogState())

    def _load(self) -> CatalogState:
        try:
            with open(self.catalog_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            return CatalogState(**data)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load catalog: {e}")
            raise CatalogStoreError(f"Failed to load catalog file {self.catalog_file}: {e}", e)

    def _save(self, state: CatalogState) -> None:
        state.last_updated = datetime.now().isoformat()
        try:
            self.catalog_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.catalog_file, "w", encoding="utf-8") as f:
                json.dump(state.model_dump(), f, indent=2, ensure_ascii=False)
            logger.debug("Catalog saved successfully")
        except OSError as e:
            logger.error(f"Failed to save catalog: {e}")
            raise CatalogStoreError(f"Failed to save catalog file {self.catalog_file}: {e}", e)

    def list_materials(self, supplier_id: str) -> List[CatalogMaterial]:
        state = self._load()
        return [m for m in state.materials if m.supplier_id == supplier_id]

    def create_material(
        self,
        name: str,
        supplier_id: str,
        unit: str,
        unit_price: float,
        owner_id: Optional[str] = None
    ) -> CatalogMaterial:
        state = self._load()
        material = CatalogMaterial(
            id=str(uuid.uuid4()),
            name=name,
            supplier_id=supplier_id,
            unit=unit,
            unit_price=unit_price,
            stock_quantity=0.0,
            owner_id=owner_id,
        )
        state.materials.append(material)
        self._save(state)
        return material

    def update_material(self, material_id: str, fields: Dict[str, Any]) -> CatalogMaterial:
        state = self._load()
        for index, material in enumerate(state.materials):
            if material.id == material_id:
                updated = material.model_copy(update=fields)
                state.materials[index] = updated
                self._save(state)
                return updated
        raise CatalogStoreError(f"Material not found: {material_id}")

    def list_stage_links(self, stage_id: str) -> List[StageMaterialLink]:
        state = self._load()
        return [link for link in state.stage_links if link.stage_id == stage_id]

    def create_link(self, link: StageMaterialLink) -> StageMaterialLink:
        state = self._load()
        stored = link.model_copy(update={"id": link.id or str(uuid.uuid4())})
        state.stage_links.append(stored)
        self._save(state)
        return stored

    def update_link(self, stage_id: str, material_id: str,
                    fields: Dict[str, Any]) -> StageMaterialLink:
        state = self._load()
        for index, link in enumerate(state.stage_links):
            if link.stage_id == stage_id and link.material_id == material_id:
                updated = link.model_copy(update=fields)
                state.stage_links[index] = updated
                self._save(state)
                return updated
        raise CatalogStoreError(f"Link not found: stage={stage_id} material={material_id}")

    def update_stage_realized_value(self, stage_id: str, realized_value: float) -> None:
        state = self._load()
        state.stage_values[stage_id] = realized_value
        self._save(state)

    def get_stage_realized_value(self, stage_id: str) -> Optional[float]:
        return self._load().stage_values.get(stage_id)

    def find_supplier_by_tax_id(self, tax_id: str) -> Optional[SupplierInfo]:
        state = self._load()
        return next((s for s in state.suppliers if s.tax_id == tax_id), None)

    def create_supplier(self, supplier: SupplierInfo) -> SupplierInfo:
        state = self._load()
        stored = supplier.model_copy(update={"id": supplier.id or str(uuid.uuid4())})
        state.suppliers.append(stored)
        self._save(state)
        return stored

    def get_summary(self) -> Dict[str, Any]:
        """
        Get summary of catalog state.

        Returns:
            Dictionary with per-table counts and stage values
        """
        state = self._load()
        return {
            "last_updated": state.last_updated,
            "supplier_count": len(state.suppliers),
            "material_count": len(state.materials),
            "link_count": len(state.stage_links),
            "stage_values": dict(state.stage_values),
        }
