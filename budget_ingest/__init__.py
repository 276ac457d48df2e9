"""
Budget Ingest - Vendor quote ingestion for construction project stages

Reads uploaded supplier budget documents, parses their line items, merges
them into the supplier's material catalog without creating near-duplicates,
and links the materials to a project stage.
"""

__version__ = "0.1.0"
__author__ = "Gestobra Team"
