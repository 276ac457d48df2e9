#!/usr/bin/env python3
"""
Budget Ingest - Command-line Pipeline

Ingests one supplier quote end to end:
1. Extract text (PDF text layer, OCR service for scanned pages)
2. Detect the item table and parse line items
3. Register the supplier
4. Resolve items against the supplier's material catalog
5. Link materials to a project stage

Usage:
    python run_pipeline.py orcamento.pdf --stage-id 12 --project-id 3
    python run_pipeline.py orcamento.pdf --dry-run
"""

import argparse
import logging
import mimetypes
import sys
from pathlib import Path
from typing import List, Optional

from budget_ingest.config import load_config
from budget_ingest.exceptions import IngestionError
from budget_ingest.pipeline import IngestionResult, build_pipeline

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest a supplier budget document")
    parser.add_argument("document", type=Path, help="Quote file (PDF)")
    parser.add_argument("--media-type", help="Declared media type (guessed from the name when omitted)")
    parser.add_argument("--supplier-id", help="Catalog supplier id (read from the CNPJ when omitted)")
    parser.add_argument("--stage-id", help="Stage receiving the materials")
    parser.add_argument("--project-id", help="Project owning the stage")
    parser.add_argument("--owner-id", help="User recorded as owner of touched materials")
    parser.add_argument("--env-file", help="Path to a .env file")
    parser.add_argument("--dry-run", action="store_true", help="Parse only, do not write")
    return parser.parse_args(argv)


def print_separator(title: str = "") -> None:
    """Print a formatted separator line."""
    if title:
        print(f"\n{'='*70}")
        print(f"  {title}")
        print(f"{'='*70}\n")
    else:
        print(f"{'='*70}")


def print_result(result: IngestionResult) -> None:
    """Print the ingestion summary."""
    print_separator("RESULT")

    if result.supplier:
        print(f"Supplier: {result.supplier.name or '-'} "
              f"(id={result.supplier.id or '-'}, CNPJ={result.supplier.tax_id or '-'})")
    if result.document_url:
        print(f"Archived: {result.document_url}")

    print(f"Status: {result.status}")
    print(f"Items found: {result.items_found}")

    for item in result.items:
        price = f"{item.unit_price:.2f}" if item.has_price else "?"
        print(f"  - {item.description} | {item.quantity:g} {item.unit} x {price} [{item.strategy}]")

    print(f"\nCreated: {result.created_count}  Updated: {result.updated_count}  "
          f"Linked: {result.linked_count}  Failed: {len(result.errors)}")
    if result.realized_value is not None:
        print(f"Stage realized value: {result.realized_value:.2f}")

    for error in result.errors:
        print(f"  ✗ {error.item_description}: {error.error_message}")

    print(f"\n{result.message}")


def main(argv: Optional[List[str]] = None) -> int:
    """Run the ingestion pipeline."""
    args = parse_args(argv)
    print_separator("BUDGET INGEST - Quote to Catalog Pipeline")

    try:
        config = load_config(args.env_file)
        logging.basicConfig(
            level=config.log_level.upper(),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        logger.info(f"Configuration loaded (backend={config.catalog_backend})")

        if not args.document.exists():
            raise FileNotFoundError(f"Document not found: {args.document}")

        media_type = args.media_type or mimetypes.guess_type(args.document.name)[0] or args.document.suffix
        pipeline = build_pipeline(config, owner_id=args.owner_id)

        result = pipeline.ingest(
            args.document.read_bytes(),
            media_type,
            filename=args.document.name,
            supplier_id=args.supplier_id,
            stage_id=args.stage_id,
            project_id=args.project_id,
            dry_run=args.dry_run,
        )
        print_result(result)
        return 0 if result.success else 1

    except IngestionError as e:
        logger.error(f"Ingestion aborted: {e}")
        print(f"\n✗ {e}")
        return 2
    except (FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        print(f"\n✗ {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
