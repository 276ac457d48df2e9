"""
Stage Linkage

Attaches resolved materials to a project stage. A stage holds at most one
link per material: repeated uploads update the existing link's quantity and
value instead of adding a second row. Every successful change is followed by
a recompute of the stage's realized value.
"""

import logging
from datetime import date, datetime
from typing import FrozenSet, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

from ..exceptions import CatalogStoreError, LinkError
from ..librarian.catalog_store import BaseCatalogStore, StageMaterialLink
from ..resolution.resolver import ItemError, ResolutionOutcome

logger = logging.getLogger(__name__)

# ItemError.stage for errors about the stage itself rather than one item
STAGE_ERROR = "stage"


class LinkageReport(BaseModel):
    """Outcome of linking one batch to a stage."""
    stage_id: str
    inserted: List[str] = Field(default_factory=list, description="Material ids newly linked")
    updated: List[str] = Field(default_factory=list, description="Material ids re-linked")
    errors: List[ItemError] = Field(default_factory=list)
    realized_value: Optional[float] = None


class StageLinker:
    """
    Upserts stage/material links through a catalog store.
    """

    def __init__(self, store: BaseCatalogStore, processing_date: Optional[date] = None):
        """
        Initialize the linker.

        Args:
            store: Catalog store holding the links
            processing_date: Purchase date for new links (today when None)
        """
        self.store = store
        self.processing_date = processing_date

    def linked_material_ids(self, stage_id: str) -> FrozenSet[str]:
        """Material ids already linked to a stage (one batch read)."""
        linked = frozenset(link.material_id for link in self.store.list_stage_links(stage_id))
        logger.info(f"Stage {stage_id} has {len(linked)} linked materials")
        return linked

    def link(
        self,
        material_id: str,
        stage_id: str,
        project_id: str,
        quantity: float,
        unit_price: float,
        linked: FrozenSet[str] = frozenset()
    ) -> Tuple[str, FrozenSet[str]]:
        """
        Link a material to a stage, updating the link when it already exists.

        Args:
            material_id: Catalog material id
            stage_id: Target stage
            project_id: Project owning the stage
            quantity: Quoted quantity
            unit_price: Unit price used for the total value
            linked: Material ids already linked to the stage

        Returns:
            ("inserted" or "updated", linked ids including this material)

        Raises:
            LinkError: If the store write fails
        """
        total_value = round(quantity * unit_price, 2)

        try:
            if material_id in linked:
                self.store.update_link(stage_id, material_id, {
                    "quantity": quantity,
                    "total_value": total_value,
                    "updated_at": datetime.now().isoformat(),
                })
                action = "updated"
            else:
                purchase_date = (self.processing_date or date.today()).isoformat()
                self.store.create_link(StageMaterialLink(
                    stage_id=stage_id,
                    project_id=project_id,
                    material_id=material_id,
                    quantity=quantity,
                    total_value=total_value,
                    purchase_date=purchase_date,
                ))
                action = "inserted"
        except (CatalogStoreError, ValueError) as e:
            raise LinkError(material_id, f"Failed to link material {material_id} "
                                         f"to stage {stage_id}: {e}", e)

        logger.debug(f"Link {action}: stage={stage_id} material={material_id} "
                     f"quantity={quantity} total={total_value:.2f}")
        return action, linked | {material_id}

    def link_all(
        self,
        outcomes: Iterable[ResolutionOutcome],
        stage_id: str,
        project_id: str,
        linked: Optional[FrozenSet[str]] = None
    ) -> LinkageReport:
        """
        Link every resolved material of a batch to a stage.

        Link failures are recorded per item, keyed by the candidate
        description. A failed realized-value recompute is one stage-level
        error, reported only when the last recompute of the batch failed.

        Args:
            outcomes: Resolved candidates
            stage_id: Target stage
            project_id: Project owning the stage
            linked: Material ids already linked (read from the store when None)
        """
        report = LinkageReport(stage_id=stage_id)
        outcomes = list(outcomes)

        if linked is None:
            try:
                linked = self.linked_material_ids(stage_id)
            except CatalogStoreError as e:
                logger.error(f"Links of stage {stage_id} could not be read: {e}")
                report.errors = [
                    ItemError(item_description=outcome.candidate.description,
                              error_message=f"Links of stage {stage_id} could not be read: {e}",
                              stage="link")
                    for outcome in outcomes
                ]
                return report

        recompute_error: Optional[CatalogStoreError] = None
        for outcome in outcomes:
            candidate = outcome.candidate
            unit_price = candidate.unit_price if candidate.has_price else outcome.material.unit_price

            try:
                action, linked = self.link(outcome.material_id, stage_id, project_id,
                                           candidate.quantity, unit_price, linked)
            except LinkError as e:
                logger.error(f"Failed to link '{candidate.description}': {e}")
                report.errors.append(ItemError(item_description=candidate.description,
                                               error_message=str(e), stage="link"))
                continue

            getattr(report, action).append(outcome.material_id)

            try:
                report.realized_value = self.store.recompute_stage_value(stage_id)
                recompute_error = None
            except CatalogStoreError as e:
                logger.error(f"Stage {stage_id} realized value not updated: {e}")
                recompute_error = e

        if recompute_error is not None:
            report.errors.append(ItemError(
                item_description=f"etapa {stage_id}",
                error_message=f"Stage realized value not updated: {recompute_error}",
                stage=STAGE_ERROR,
            ))

        logger.info(f"Linkage complete for stage {stage_id}: {len(report.inserted)} inserted, "
                    f"{len(report.updated)} updated, {len(report.errors)} failed")
        return report
