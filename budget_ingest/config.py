"""
Pipeline Configuration

Loads environment configuration (optionally from a .env file) into a
validated PipelineConfig.
"""

import logging
import os
from typing import Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

BACKEND_REQUIRED_VARS = {
    "supabase": ["SUPABASE_URL", "SUPABASE_KEY"],
    "neo4j": ["NEO4J_URI", "NEO4J_USER", "NEO4J_PASSWORD"],
    "json": [],
}


class PipelineConfig(BaseModel):
    """Runtime settings for one ingestion process."""
    catalog_backend: str = Field("json", description="supabase, neo4j or json")
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    supabase_bucket: str = "orcamentos"
    neo4j_uri: Optional[str] = None
    neo4j_user: Optional[str] = None
    neo4j_password: Optional[str] = None
    catalog_file: str = "./data/catalog_state.json"
    blob_dir: str = "./data/uploads"
    ocr_api_url: str = "http://localhost:8001"
    ocr_language: str = "por"
    ocr_timeout: float = Field(120.0, gt=0)
    similarity_threshold: float = Field(0.8, ge=0.0, le=1.0)
    accepted_media_types: Tuple[str, ...] = ("application/pdf",)
    log_level: str = "INFO"


def load_config(env_file: Optional[str] = None) -> PipelineConfig:
    """
    Load and validate environment configuration.

    Args:
        env_file: Optional path to a .env file (defaults to ./.env lookup)

    Returns:
        PipelineConfig with values from the environment

    Raises:
        ConfigurationError: If the backend is unknown or its variables are missing
    """
    load_dotenv(env_file)

    backend = os.getenv("CATALOG_BACKEND", "json").strip().lower()
    if backend not in BACKEND_REQUIRED_VARS:
        raise ConfigurationError(
            f"Unknown CATALOG_BACKEND '{backend}' "
            f"(expected one of: {', '.join(BACKEND_REQUIRED_VARS)})"
        )

    missing = [var for var in BACKEND_REQUIRED_VARS[backend] if not os.getenv(var)]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}\n"
            f"Please copy .env.example to .env and fill in the values."
        )

    media_types = os.getenv("ACCEPTED_MEDIA_TYPES", "application/pdf")

    try:
        config = PipelineConfig(
            catalog_backend=backend,
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_key=os.getenv("SUPABASE_KEY"),
            supabase_bucket=os.getenv("SUPABASE_BUCKET", "orcamentos"),
            neo4j_uri=os.getenv("NEO4J_URI"),
            neo4j_user=os.getenv("NEO4J_USER"),
            neo4j_password=os.getenv("NEO4J_PASSWORD"),
            catalog_file=os.getenv("CATALOG_FILE", "./data/catalog_state.json"),
            blob_dir=os.getenv("BLOB_DIR", "./data/uploads"),
            ocr_api_url=os.getenv("OCR_API_URL", "http://localhost:8001"),
            ocr_language=os.getenv("OCR_LANGUAGE", "por"),
            ocr_timeout=float(os.getenv("OCR_TIMEOUT", "120")),
            similarity_threshold=float(os.getenv("SIMILARITY_THRESHOLD", "0.8")),
            accepted_media_types=tuple(
                t.strip().lower() for t in media_types.split(",") if t.strip()
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration value: {e}", e)

    logger.debug(f"Configuration loaded (backend={config.catalog_backend})")
    return config
