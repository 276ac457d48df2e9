"""
Catalog Resolver

Decides, for each candidate item, whether it is a material the supplier's
catalog already holds (update its price) or a new one (insert it).

Resolution of a batch is a fold over the candidates. The accumulator carries
the supplier's catalog as known so far, so a material created for one
candidate is visible when the next candidate is matched.
"""

import logging
from functools import reduce
from typing import Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

from ..exceptions import CatalogStoreError, PerItemResolutionError
from ..ingestion.parser import CandidateItem
from ..librarian.catalog_store import BaseCatalogStore, CatalogMaterial
from .similarity import best_match, display_name, normalize_name

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.8


class ResolutionOutcome(BaseModel):
    """Result of resolving one candidate."""
    candidate: CandidateItem
    action: str = Field(..., description="matched or created")
    material: CatalogMaterial
    similarity: float = Field(1.0, description="1.0 for exact or new, Jaccard score otherwise")

    @property
    def material_id(self) -> str:
        return self.material.id


class ItemError(BaseModel):
    """A candidate that failed resolution or linkage."""
    item_description: str
    error_message: str
    stage: str = Field("resolution", description="resolution, link or stage")


class ResolutionState(BaseModel):
    """Fold accumulator."""
    catalog: List[CatalogMaterial] = Field(default_factory=list)
    outcomes: List[ResolutionOutcome] = Field(default_factory=list)
    errors: List[ItemError] = Field(default_factory=list)

    @property
    def created_count(self) -> int:
        return sum(1 for o in self.outcomes if o.action == "created")

    @property
    def matched_count(self) -> int:
        return sum(1 for o in self.outcomes if o.action == "matched")


def find_material(
    name: str,
    catalog: Iterable[CatalogMaterial],
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD
) -> Optional[Tuple[CatalogMaterial, float]]:
    """Exact normalized match first, then best token-set match at or above threshold."""
    return best_match(
        normalize_name(name),
        ((normalize_name(material.name), material) for material in catalog),
        threshold,
    )


def _replace(catalog: List[CatalogMaterial], material: CatalogMaterial) -> List[CatalogMaterial]:
    replaced = [material if m.id == material.id else m for m in catalog]
    if not any(m.id == material.id for m in catalog):
        replaced.append(material)
    return replaced


class CatalogResolver:
    """
    Matches candidate items against a supplier's catalog and writes the outcome.
    """

    def __init__(
        self,
        store: BaseCatalogStore,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        owner_id: Optional[str] = None
    ):
        """
        Initialize the resolver.

        Args:
            store: Catalog store receiving inserts and updates
            similarity_threshold: Minimum Jaccard similarity for a near-duplicate
            owner_id: User recorded as owner of touched materials
        """
        self.store = store
        self.similarity_threshold = similarity_threshold
        self.owner_id = owner_id

    def resolve(
        self,
        candidate: CandidateItem,
        supplier_id: str,
        catalog: List[CatalogMaterial]
    ) -> Tuple[ResolutionOutcome, List[CatalogMaterial]]:
        """
        Resolve one candidate against the known catalog.

        Args:
            candidate: Parsed line item
            supplier_id: Supplier the catalog is scoped to
            catalog: Materials known so far (not mutated)

        Returns:
            (outcome, catalog including the touched material)

        Raises:
            PerItemResolutionError: If the store write fails
        """
        match = find_material(candidate.description, catalog, self.similarity_threshold)

        try:
            if match is not None:
                existing, score = match
                material = self._update(existing, candidate)
                action = "matched"
                logger.debug(f"Matched '{candidate.description}' to '{existing.name}' "
                             f"(similarity={score:.2f})")
            else:
                score = 1.0
                material = self.store.create_material(
                    name=display_name(candidate.description),
                    supplier_id=supplier_id,
                    unit=candidate.unit,
                    unit_price=candidate.unit_price,
                    owner_id=self.owner_id,
                )
                action = "created"
                logger.debug(f"Created material '{material.name}' ({material.id})")
        except (CatalogStoreError, ValueError) as e:
            raise PerItemResolutionError(candidate.description, str(e), e)

        outcome = ResolutionOutcome(candidate=candidate, action=action,
                                    material=material, similarity=score)
        return outcome, _replace(catalog, material)

    def _update(self, existing: CatalogMaterial, candidate: CandidateItem) -> CatalogMaterial:
        """Only the price and owner of a matched material change."""
        fields = {}
        if candidate.has_price:
            fields["unit_price"] = candidate.unit_price
        if self.owner_id:
            fields["owner_id"] = self.owner_id
        if not fields:
            return existing
        return self.store.update_material(existing.id, fields)

    def step(self, state: ResolutionState, candidate: CandidateItem,
             supplier_id: str) -> ResolutionState:
        """One fold step: resolve a candidate, record an error instead of raising."""
        try:
            outcome, catalog = self.resolve(candidate, supplier_id, state.catalog)
        except PerItemResolutionError as e:
            logger.error(f"Failed to resolve '{candidate.description}': {e}")
            error = ItemError(item_description=e.item_description, error_message=str(e))
            return state.model_copy(update={"errors": state.errors + [error]})

        return state.model_copy(update={
            "catalog": catalog,
            "outcomes": state.outcomes + [outcome],
        })

    def resolve_all(
        self,
        candidates: Iterable[CandidateItem],
        supplier_id: str,
        catalog: Optional[List[CatalogMaterial]] = None
    ) -> ResolutionState:
        """
        Resolve a batch of candidates in order.

        Args:
            candidates: Parsed line items
            supplier_id: Supplier the catalog is scoped to
            catalog: Existing materials; fetched once from the store when None

        Returns:
            Final fold state with outcomes, errors and the updated catalog
        """
        if catalog is None:
            catalog = self.store.list_materials(supplier_id)
        logger.info(f"Resolving against {len(catalog)} existing materials of supplier {supplier_id}")

        final = reduce(
            lambda state, candidate: self.step(state, candidate, supplier_id),
            candidates,
            ResolutionState(catalog=list(catalog)),
        )

        logger.info(f"Resolution complete: {final.created_count} created, "
                    f"{final.matched_count} matched, {len(final.errors)} failed")
        return final
