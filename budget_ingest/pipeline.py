"""
Ingestion Pipeline

Runs one uploaded quote through extraction, table detection, line-item
parsing, catalog resolution and stage linkage, and reports what happened.

Only UnsupportedFormat, ExtractionFailure and SupplierNotResolved abort a run.
Per-item failures are collected and returned with whatever progress was made.
"""

import logging
import threading
import weakref
from contextlib import contextmanager
from datetime import date
from typing import FrozenSet, Iterator, List, Optional

from pydantic import BaseModel, Field

from .config import PipelineConfig
from .dispatcher.linkage import STAGE_ERROR, LinkageReport, StageLinker
from .exceptions import CatalogStoreError, ConfigurationError, SupplierNotResolved
from .ingestion.extractor import TextExtractor
from .ingestion.ocr_client import OcrServiceClient, PdfTextLayerEngine
from .ingestion.parser import CandidateItem, LineItemParser
from .ingestion.supplier_info import SupplierInfo, extract_supplier
from .ingestion.table_detector import detect_table
from .librarian.blob_store import BaseBlobStore, LocalBlobStore, SupabaseBlobStore
from .librarian.catalog_store import BaseCatalogStore
from .librarian.graph_catalog import GraphCatalogStore
from .librarian.graph_client import GraphClient
from .librarian.json_store import JsonCatalogStore
from .librarian.supabase_catalog import SupabaseCatalogStore
from .librarian.supabase_client import SupabaseClient
from .resolution.resolver import DEFAULT_SIMILARITY_THRESHOLD, CatalogResolver, ItemError

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_NO_ITEMS = "no_items_found"
STATUS_PARSED = "parsed"


class IngestionResult(BaseModel):
    """Summary returned to the caller of one ingestion run."""
    success: bool
    status: str = STATUS_COMPLETED
    items_found: int = 0
    created_count: int = 0
    updated_count: int = 0
    linked_count: int = 0
    processed_count: int = 0
    errors: List[ItemError] = Field(default_factory=list)
    supplier: Optional[SupplierInfo] = None
    document_url: Optional[str] = None
    items: List[CandidateItem] = Field(default_factory=list)
    realized_value: Optional[float] = None

    @property
    def partial(self) -> bool:
        return bool(self.errors) and self.processed_count > 0

    @property
    def message(self) -> str:
        if self.status == STATUS_NO_ITEMS:
            return "Nenhum item encontrado no documento"
        if not self.errors:
            return f"{self.processed_count} materiais processados com sucesso"
        return f"{self.processed_count} materiais processados, {len(self.errors)} com erro"


class SupplierLocks:
    """
    Per-supplier locks around resolution and insert.

    Serializes uploads for the same supplier within one process. Uploads in
    different processes can still race on catalog creation. A supplier's
    lock is dropped once no upload holds or waits on it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()

    @contextmanager
    def hold(self, supplier_id: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(supplier_id, threading.Lock())
        with lock:
            yield


class IngestionPipeline:
    """
    Orchestrates one budget-document ingestion.

    All collaborators are injected, so tests can substitute fakes for the
    OCR engine and the catalog store.
    """

    def __init__(
        self,
        extractor: TextExtractor,
        store: BaseCatalogStore,
        parser: Optional[LineItemParser] = None,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        owner_id: Optional[str] = None,
        locks: Optional[SupplierLocks] = None,
        processing_date: Optional[date] = None
    ):
        """
        Initialize the pipeline.

        Args:
            extractor: Text extraction adapter
            store: Catalog store
            parser: Line-item parser (default strategy chain when None)
            similarity_threshold: Jaccard threshold for near-duplicate materials
            owner_id: User recorded as owner of touched materials
            locks: Shared per-supplier locks (a private set when None)
            processing_date: Purchase date for new stage links (today when None)
        """
        self.extractor = extractor
        self.store = store
        self.parser = parser or LineItemParser()
        self.resolver = CatalogResolver(store, similarity_threshold, owner_id)
        self.linker = StageLinker(store, processing_date)
        self.locks = locks or SupplierLocks()
        logger.info("IngestionPipeline initialized")

    def parse_document(self, text: str) -> List[CandidateItem]:
        """Detect the item table and parse candidate items from text."""
        table_offset = detect_table(text)
        return self.parser.parse(text, table_offset)

    def _resolve_supplier(self, text: str, supplier_id: Optional[str],
                          supplier: Optional[SupplierInfo]) -> SupplierInfo:
        if supplier_id:
            found = supplier or extract_supplier(text) or SupplierInfo()
            return found.model_copy(update={"id": supplier_id})

        if supplier is None:
            supplier = extract_supplier(text)
        if supplier is None:
            raise SupplierNotResolved(
                "No supplier given and no CNPJ found in the document header"
            )
        if supplier.id:
            return supplier
        return self.store.resolve_supplier(supplier)

    def _read_stage_links(self, stage_id: str) -> Optional[FrozenSet[str]]:
        """Linked material ids, or None to let linkage report the failed read."""
        try:
            return self.linker.linked_material_ids(stage_id)
        except CatalogStoreError as e:
            logger.warning(f"Links of stage {stage_id} not read before resolution: {e}")
            return None

    def ingest(
        self,
        file_bytes: bytes,
        declared_type: str,
        filename: str = "orcamento.pdf",
        supplier_id: Optional[str] = None,
        supplier: Optional[SupplierInfo] = None,
        stage_id: Optional[str] = None,
        project_id: Optional[str] = None,
        dry_run: bool = False
    ) -> IngestionResult:
        """
        Ingest one uploaded quote.

        Args:
            file_bytes: Document contents
            declared_type: MIME type or extension declared by the uploader
            filename: Original file name
            supplier_id: Catalog supplier id, when already known
            supplier: Supplier identification, when not read from the header
            stage_id: Stage receiving the materials (no linkage when None)
            project_id: Project owning the stage
            dry_run: Parse and report only, no catalog writes

        Returns:
            IngestionResult

        Raises:
            UnsupportedFormat: If the document type is not accepted
            ExtractionFailure: If text extraction fails
            SupplierNotResolved: If no supplier can be determined
        """
        logger.info(f"Ingesting {filename} ({declared_type})")
        if stage_id and not project_id:
            raise ValueError("project_id is required when stage_id is given")

        extracted = self.extractor.extract(file_bytes, declared_type, filename)
        items = self.parse_document(extracted.text)

        if not items:
            logger.info(f"No items found in {filename}")
            return IngestionResult(success=True, status=STATUS_NO_ITEMS,
                                   document_url=extracted.document_url)

        if dry_run:
            return IngestionResult(
                success=True,
                status=STATUS_PARSED,
                items_found=len(items),
                items=items,
                supplier=supplier or extract_supplier(extracted.text),
                document_url=extracted.document_url,
            )

        resolved_supplier = self._resolve_supplier(extracted.text, supplier_id, supplier)

        linkage: Optional[LinkageReport] = None
        with self.locks.hold(resolved_supplier.id):
            linked = self._read_stage_links(stage_id) if stage_id else None
            state = self.resolver.resolve_all(items, resolved_supplier.id)
            if stage_id:
                linkage = self.linker.link_all(state.outcomes, stage_id, project_id, linked)

        errors = list(state.errors) + (linkage.errors if linkage else [])
        failed = {e.item_description for e in errors if e.stage != STAGE_ERROR}
        processed = [o for o in state.outcomes if o.candidate.description not in failed]

        result = IngestionResult(
            success=not errors,
            items_found=len(items),
            created_count=state.created_count,
            updated_count=state.matched_count,
            linked_count=len(linkage.inserted) + len(linkage.updated) if linkage else 0,
            processed_count=len(processed),
            errors=errors,
            supplier=resolved_supplier,
            document_url=extracted.document_url,
            items=items,
            realized_value=linkage.realized_value if linkage else None,
        )
        logger.info(f"Ingestion of {filename} finished: {result.message}")
        return result


def build_catalog_store(config: PipelineConfig) -> BaseCatalogStore:
    """Create the catalog store selected by configuration."""
    if config.catalog_backend == "supabase":
        return SupabaseCatalogStore(SupabaseClient(config.supabase_url, config.supabase_key))
    if config.catalog_backend == "neo4j":
        client = GraphClient(config.neo4j_uri, config.neo4j_user, config.neo4j_password)
        client.initialize_schema()
        return GraphCatalogStore(client)
    if config.catalog_backend == "json":
        return JsonCatalogStore(config.catalog_file)
    raise ConfigurationError(f"Unknown catalog backend: {config.catalog_backend}")


def build_blob_store(config: PipelineConfig) -> BaseBlobStore:
    """Create the archive store matching the catalog backend."""
    if config.catalog_backend == "supabase":
        return SupabaseBlobStore(SupabaseClient(config.supabase_url, config.supabase_key),
                                 bucket=config.supabase_bucket)
    return LocalBlobStore(config.blob_dir)


def build_pipeline(config: PipelineConfig, owner_id: Optional[str] = None) -> IngestionPipeline:
    """
    Wire a pipeline from configuration.

    The PDF text layer is read first; the OCR service handles scanned pages.
    """
    extractor = TextExtractor(
        engines=[
            PdfTextLayerEngine(),
            OcrServiceClient(config.ocr_api_url, timeout=config.ocr_timeout),
        ],
        blob_store=build_blob_store(config),
        accepted_media_types=config.accepted_media_types,
        language_hint=config.ocr_language,
    )
    return IngestionPipeline(
        extractor=extractor,
        store=build_catalog_store(config),
        similarity_threshold=config.similarity_threshold,
        owner_id=owner_id,
    )
