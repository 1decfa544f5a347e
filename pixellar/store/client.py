"""
REST client for the mirrored ``pixels`` table (PostgREST / Supabase).
"""

from __future__ import annotations

import logging
from typing import List, Optional

import requests

from pixellar.core.errors import StoreError
from pixellar.core.models import PixelRow

logger = logging.getLogger(__name__)


class MirroredStore:
    """
    Reads and writes pixel rows in the mirrored store.

    Args:
        url: Project base URL (``https://<project>.supabase.co``)
        key: Anon API key
        table: Table holding one row per painted cell
        timeout: Per-request timeout in seconds
        page_size: Rows requested per page by ``fetch_all``
    """

    def __init__(
        self,
        url: str,
        key: str,
        table: str = "pixels",
        timeout: int = 30,
        page_size: int = 1000,
        session: Optional[requests.Session] = None,
    ):
        self.url = url.rstrip("/")
        self.key = key
        self.table = table
        self.timeout = timeout
        self.page_size = page_size
        self.session = session or requests.Session()

    @property
    def endpoint(self) -> str:
        return f"{self.url}/rest/v1/{self.table}"

    def _headers(self, **extra) -> dict:
        headers = {
            "apikey": self.key,
            "Authorization": f"Bearer {self.key}",
            "Accept": "application/json",
        }
        headers.update(extra)
        return headers

    def fetch_all(self) -> List[PixelRow]:
        """
        Fetches every row of the table, one page at a time.

        Malformed rows are logged and skipped.

        Raises:
            StoreError: On any HTTP or decoding failure
        """
        rows: List[PixelRow] = []
        start = 0
        while True:
            end = start + self.page_size - 1
            headers = self._headers(**{"Range-Unit": "items", "Range": f"{start}-{end}"})
            try:
                resp = self.session.get(
                    self.endpoint,
                    params={"select": "*"},
                    headers=headers,
                    timeout=self.timeout,
                )
                resp.raise_for_status()
                page = resp.json()
            except requests.exceptions.RequestException as e:
                raise StoreError(f"Failed to fetch pixels: {e}") from e
            except ValueError as e:
                raise StoreError(f"Invalid JSON from store: {e}") from e

            if not isinstance(page, list):
                raise StoreError(f"Unexpected store response: {type(page).__name__}")

            for item in page:
                try:
                    rows.append(PixelRow.from_dict(item))
                except ValueError as e:
                    logger.warning("Skipping row: %s", e)

            if len(page) < self.page_size:
                break
            start += self.page_size

        logger.info("Fetched %d pixel rows from store", len(rows))
        return rows

    def upsert(self, row: PixelRow) -> None:
        """
        Inserts or replaces the row for ``(x, y)``.

        Raises:
            StoreError: On any HTTP failure
        """
        headers = self._headers(Prefer="resolution=merge-duplicates,return=minimal")
        try:
            resp = self.session.post(
                self.endpoint,
                params={"on_conflict": "x,y"},
                json=row.to_dict(),
                headers=headers,
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise StoreError(f"Failed to upsert pixel ({row.x}, {row.y}): {e}") from e
        logger.debug("Upserted pixel (%d, %d)", row.x, row.y)
