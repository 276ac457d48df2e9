"""
Graph Catalog Store

Catalog store on Neo4j. Graph shape:

    (:Supplier)-[:SUPPLIES]->(:Material)
    (:Stage {id, project_id, realized_value})-[:USES {quantity, total_value, ...}]->(:Material)
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from ..exceptions import CatalogStoreError
from ..ingestion.supplier_info import SupplierInfo
from .catalog_store import BaseCatalogStore, CatalogMaterial, StageMaterialLink
from .graph_client import GraphClient

logger = logging.getLogger(__name__)

MATERIAL_PROPERTIES = set(CatalogMaterial.model_fields) - {"id", "supplier_id"}
LINK_PROPERTIES = set(StageMaterialLink.model_fields) - {"stage_id", "project_id", "material_id"}


class GraphCatalogStore(BaseCatalogStore):
    """
    Catalog store implemented with Cypher queries over a GraphClient.
    """

    def __init__(self, graph_client: GraphClient):
        """
        Initialize the store.

        Args:
            graph_client: Connected GraphClient instance
        """
        self.client = graph_client
        logger.info("GraphCatalogStore initialized")

    @staticmethod
    def _checked(fields: Dict[str, Any], allowed: set) -> Dict[str, Any]:
        unknown = set(fields) - allowed
        if unknown:
            raise CatalogStoreError(f"Unknown fields: {', '.join(sorted(unknown))}")
        return fields

    def list_materials(self, supplier_id: str) -> List[CatalogMaterial]:
        query = """
        MATCH (s:Supplier {id: $supplier_id})-[:SUPPLIES]->(m:Material)
        RETURN m {.*, supplier_id: s.id} AS material
        ORDER BY m.name
        """
        records = self.client.execute_query(query, {"supplier_id": supplier_id})
        return [CatalogMaterial(**record["material"]) for record in records]

    def create_material(
        self,
        name: str,
        supplier_id: str,
        unit: str,
        unit_price: float,
        owner_id: Optional[str] = None
    ) -> CatalogMaterial:
        material = CatalogMaterial(
            id=str(uuid.uuid4()),
            name=name,
            supplier_id=supplier_id,
            unit=unit,
            unit_price=unit_price,
            stock_quantity=0.0,
            owner_id=owner_id,
        )
        query = """
        MATCH (s:Supplier {id: $supplier_id})
        CREATE (s)-[:SUPPLIES]->(m:Material)
        SET m = $props
        RETURN m.id AS id
        """
        props = material.model_dump(exclude={"supplier_id"})
        records = self.client.execute_write(query, {"supplier_id": supplier_id, "props": props})
        if not records:
            raise CatalogStoreError(f"Supplier not found: {supplier_id}")
        return material

    def update_material(self, material_id: str, fields: Dict[str, Any]) -> CatalogMaterial:
        query = """
        MATCH (s:Supplier)-[:SUPPLIES]->(m:Material {id: $material_id})
        SET m += $fields
        RETURN m {.*, supplier_id: s.id} AS material
        """
        records = self.client.execute_write(query, {
            "material_id": material_id,
            "fields": self._checked(fields, MATERIAL_PROPERTIES),
        })
        if not records:
            raise CatalogStoreError(f"Material not found: {material_id}")
        return CatalogMaterial(**records[0]["material"])

    def list_stage_links(self, stage_id: str) -> List[StageMaterialLink]:
        query = """
        MATCH (e:Stage {id: $stage_id})-[r:USES]->(m:Material)
        RETURN r {.*, stage_id: e.id, project_id: e.project_id, material_id: m.id} AS link
        """
        records = self.client.execute_query(query, {"stage_id": stage_id})
        return [StageMaterialLink(**record["link"]) for record in records]

    def create_link(self, link: StageMaterialLink) -> StageMaterialLink:
        stored = link.model_copy(update={"id": link.id or str(uuid.uuid4())})
        query = """
        MERGE (e:Stage {id: $stage_id})
        ON CREATE SET e.project_id = $project_id, e.realized_value = 0.0
        WITH e
        MATCH (m:Material {id: $material_id})
        CREATE (e)-[r:USES]->(m)
        SET r = $props
        RETURN r.id AS id
        """
        records = self.client.execute_write(query, {
            "stage_id": stored.stage_id,
            "project_id": stored.project_id,
            "material_id": stored.material_id,
            "props": stored.model_dump(exclude={"stage_id", "project_id", "material_id"},
                                       exclude_none=True),
        })
        if not records:
            raise CatalogStoreError(f"Material not found: {stored.material_id}")
        return stored

    def update_link(self, stage_id: str, material_id: str,
                    fields: Dict[str, Any]) -> StageMaterialLink:
        query = """
        MATCH (e:Stage {id: $stage_id})-[r:USES]->(m:Material {id: $material_id})
        SET r += $fields
        RETURN r {.*, stage_id: e.id, project_id: e.project_id, material_id: m.id} AS link
        """
        records = self.client.execute_write(query, {
            "stage_id": stage_id,
            "material_id": material_id,
            "fields": self._checked(fields, LINK_PROPERTIES),
        })
        if not records:
            raise CatalogStoreError(f"Link not found: stage={stage_id} material={material_id}")
        return StageMaterialLink(**records[0]["link"])

    def update_stage_realized_value(self, stage_id: str, realized_value: float) -> None:
        query = """
        MERGE (e:Stage {id: $stage_id})
        SET e.realized_value = $realized_value
        """
        self.client.execute_write(query, {"stage_id": stage_id, "realized_value": realized_value})

    def find_supplier_by_tax_id(self, tax_id: str) -> Optional[SupplierInfo]:
        query = """
        MATCH (s:Supplier {tax_id: $tax_id})
        RETURN s {.*} AS supplier
        LIMIT 1
        """
        records = self.client.execute_query(query, {"tax_id": tax_id})
        return SupplierInfo(**records[0]["supplier"]) if records else None

    def create_supplier(self, supplier: SupplierInfo) -> SupplierInfo:
        stored = supplier.model_copy(update={"id": supplier.id or str(uuid.uuid4())})
        query = """
        CREATE (s:Supplier)
        SET s = $props
        """
        self.client.execute_write(query, {"props": stored.model_dump(exclude_none=True)})
        return stored
