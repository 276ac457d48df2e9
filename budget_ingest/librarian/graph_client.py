"""
Neo4j Graph Client

Manages the Neo4j driver and runs Cypher for the graph catalog backend.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from neo4j import Driver, GraphDatabase, Session
from neo4j.exceptions import AuthError, Neo4jError, ServiceUnavailable

from ..exceptions import CatalogStoreError

logger = logging.getLogger(__name__)

CATALOG_SCHEMA = [
    "CREATE CONSTRAINT material_id IF NOT EXISTS FOR (m:Material) REQUIRE m.id IS UNIQUE",
    "CREATE CONSTRAINT supplier_id IF NOT EXISTS FOR (s:Supplier) REQUIRE s.id IS UNIQUE",
    "CREATE CONSTRAINT stage_id IF NOT EXISTS FOR (e:Stage) REQUIRE e.id IS UNIQUE",
    "CREATE INDEX supplier_tax_id IF NOT EXISTS FOR (s:Supplier) ON (s.tax_id)",
]


class GraphClient:
    """
    Neo4j database client for the material catalog graph.
    """

    def __init__(self, uri: str, user: str, password: str, database: Optional[str] = None):
        """
        Initialize Neo4j connection.

        Args:
            uri: Neo4j connection URI (e.g., bolt://localhost:7687)
            user: Database username
            password: Database password
            database: Optional database name (server default when None)

        Raises:
            ServiceUnavailable: If cannot connect to Neo4j
            AuthError: If authentication fails
        """
        self.uri = uri
        self.database = database
        self._driver: Optional[Driver] = None
        logger.info(f"Initializing GraphClient for {uri}")

        try:
            self._driver = GraphDatabase.driver(uri, auth=(user, password))
            self._driver.verify_connectivity()
            logger.info("Successfully connected to Neo4j")
        except ServiceUnavailable as e:
            logger.error(f"Cannot connect to Neo4j at {uri}: {e}")
            raise
        except AuthError as e:
            logger.error(f"Authentication failed for Neo4j: {e}")
            raise

    def close(self) -> None:
        """Close the Neo4j driver connection."""
        if self._driver:
            self._driver.close()
            logger.info("Neo4j connection closed")

    @contextmanager
    def get_session(self) -> Iterator[Session]:
        """
        Context manager for Neo4j sessions.

        Yields:
            Neo4j Session object
        """
        if not self._driver:
            raise RuntimeError("GraphClient not connected to Neo4j")

        session = self._driver.session(database=self.database)
        try:
            yield session
        finally:
            session.close()

    def execute_query(
        self,
        query: str,
        parameters: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """
        Execute a read query and return results as a list of dictionaries.

        Raises:
            CatalogStoreError: If query execution fails
        """
        logger.debug(f"Executing query: {query[:100]}...")

        try:
            with self.get_session() as session:
                result = session.run(query, parameters or {})
                records = [record.data() for record in result]
                logger.debug(f"Query returned {len(records)} records")
                return records
        except (Neo4jError, ServiceUnavailable) as e:
            logger.error(f"Query execution failed: {e}")
            raise CatalogStoreError(f"Failed to execute query: {e}", e)

    def execute_write(
        self,
        query: str,
        parameters: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """
        Execute a write query (CREATE, MERGE, SET) in a managed transaction.

        Raises:
            CatalogStoreError: If the transaction fails
        """
        logger.debug(f"Executing write transaction: {query[:100]}...")

        try:
            with self.get_session() as session:
                return session.execute_write(
                    lambda tx: tx.run(query, parameters or {}).data()
                )
        except (Neo4jError, ServiceUnavailable) as e:
            logger.error(f"Write transaction failed: {e}")
            raise CatalogStoreError(f"Failed to execute write transaction: {e}", e)

    def initialize_schema(self) -> None:
        """Create the catalog constraints and indexes if missing."""
        logger.info("Initializing catalog schema")
        for statement in CATALOG_SCHEMA:
            self.execute_write(statement)
        logger.info("Schema initialized successfully")

    def health_check(self) -> bool:
        """
        Check if the Neo4j connection is healthy.

        Returns:
            True if connection is healthy, False otherwise
        """
        try:
            result = self.execute_query("RETURN 1 as health")
            return len(result) > 0 and result[0].get("health") == 1
        except CatalogStoreError as e:
            logger.error(f"Health check failed: {e}")
            return False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
