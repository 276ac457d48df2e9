"""
Librarian Module

Catalog and document storage. BaseCatalogStore is implemented on Supabase,
Neo4j and a local JSON file; blob stores keep the original uploads.
"""

from .blob_store import BaseBlobStore, LocalBlobStore, SupabaseBlobStore
from .catalog_store import BaseCatalogStore, CatalogMaterial, StageMaterialLink
from .graph_catalog import GraphCatalogStore
from .graph_client import GraphClient
from .json_store import JsonCatalogStore
from .supabase_catalog import SupabaseCatalogStore
from .supabase_client import SupabaseClient

__all__ = [
    "BaseBlobStore",
    "LocalBlobStore",
    "SupabaseBlobStore",
    "BaseCatalogStore",
    "CatalogMaterial",
    "StageMaterialLink",
    "GraphCatalogStore",
    "GraphClient",
    "JsonCatalogStore",
    "SupabaseCatalogStore",
    "SupabaseClient",
]
