"""
Supabase REST Client

Thin wrapper over the PostgREST and Storage HTTP APIs of a Supabase project.
Provides table select/insert/update and object upload; knows nothing about
the catalog schema.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from ..exceptions import CatalogStoreError

logger = logging.getLogger(__name__)


class SupabaseClient:
    """
    HTTP client for a Supabase project.
    """

    def __init__(self, url: str, api_key: str, timeout: float = 30.0,
                 session: Optional[requests.Session] = None):
        """
        Initialize the client.

        Args:
            url: Project URL (e.g. https://xyz.supabase.co)
            api_key: Service or anon API key
            timeout: Request timeout in seconds
            session: Optional pre-configured requests session
        """
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "x-application-name": "gestobra",
        })
        logger.info(f"SupabaseClient initialized for {self.url}")

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.url}{path}"
        logger.debug(f"{method} {url} params={kwargs.get('params')}")
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response
        except requests.exceptions.HTTPError as e:
            detail = e.response.text[:200] if e.response is not None else ""
            logger.error(f"{method} {path} failed: {e} {detail}")
            raise CatalogStoreError(f"{method} {path} failed: {e} {detail}".strip(), e)
        except requests.exceptions.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise CatalogStoreError(f"{method} {path} failed: {e}", e)

    @staticmethod
    def _filters(filters: Optional[Dict[str, Any]]) -> Dict[str, str]:
        """Equality filters in PostgREST syntax (column=eq.value)."""
        return {column: f"eq.{value}" for column, value in (filters or {}).items()}

    def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        columns: str = "*",
        order: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Select rows matching equality filters.

        Args:
            table: Table name
            filters: Column -> value equality filters
            columns: PostgREST select list
            order: Optional order clause (e.g. "nome")

        Returns:
            List of rows as dictionaries
        """
        params = {"select": columns, **self._filters(filters)}
        if order:
            params["order"] = order
        rows = self._request("GET", f"/rest/v1/{table}", params=params).json()
        logger.debug(f"Select on {table} returned {len(rows)} rows")
        return rows

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert one row and return its stored representation."""
        response = self._request(
            "POST",
            f"/rest/v1/{table}",
            json=[row],
            headers={"Prefer": "return=representation"},
        )
        rows = response.json()
        if not rows:
            raise CatalogStoreError(f"Insert into {table} returned no row")
        return rows[0]

    def update(self, table: str, filters: Dict[str, Any],
               values: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Update rows matching equality filters and return them."""
        if not filters:
            raise ValueError("Refusing to update without filters")
        response = self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=self._filters(filters),
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return response.json()

    def upload(self, bucket: str, path: str, data: bytes,
               content_type: str = "application/octet-stream") -> str:
        """
        Upload an object to a storage bucket.

        Returns:
            The object path inside the bucket
        """
        self._request(
            "POST",
            f"/storage/v1/object/{bucket}/{path}",
            data=data,
            headers={
                "Content-Type": content_type,
                "Cache-Control": "3600",
                "x-upsert": "false",
            },
        )
        logger.info(f"Uploaded {len(data)} bytes to {bucket}/{path}")
        return path

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.url}/storage/v1/object/public/{bucket}/{path}"

    def health_check(self) -> bool:
        """
        Check that the REST endpoint answers.

        Returns:
            True if the endpoint is reachable and the key is accepted
        """
        try:
            self._request("GET", "/rest/v1/")
            return True
        except CatalogStoreError as e:
            logger.error(f"Health check failed: {e}")
            return False
