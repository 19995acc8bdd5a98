# maintenance_hub/services/table_sources.py
"""
Paged row sources for the inventory tables.

Two backends expose the same page contract:
- RestTableSource: Supabase PostgREST over HTTP (Range + exact count)
- SqlTableSource: the same tables through an async SQLAlchemy session

`fetch_all` walks either one page at a time. There are no retries: the first
failing page aborts the whole walk.
"""
from __future__ import annotations
import logging
import re
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Tuple

import httpx
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_hub.db_models import Product, Batch
from maintenance_hub.errors import SourceError
from maintenance_hub.settings import Settings

logger = logging.getLogger(__name__)

PRODUCTS_TABLE = "inventory_products"
BATCHES_TABLE = "inventory_batches"
DEFAULT_PAGE_SIZE = 1000

Row = Dict[str, Any]
Page = Tuple[List[Row], Optional[int]]

_CONTENT_RANGE_RE = re.compile(r"^(?:\d+-\d+|\*)/(\d+|\*)$")


class RowSource(Protocol):
    async def fetch_page(self, table: str, columns: str, start: int, end: int) -> Page:
        """Return rows [start, end] inclusive and the exact total, if known."""
        ...


def _split_columns(columns: str) -> List[str]:
    return [c.strip() for c in columns.split(",") if c.strip()]


def parse_content_range(value: Optional[str]) -> Optional[int]:
    """'0-999/5432' -> 5432, '*/0' -> 0, anything unparseable -> None."""
    if not value:
        return None
    m = _CONTENT_RANGE_RE.match(value.strip())
    if not m or m.group(1) == "*":
        return None
    return int(m.group(1))


# ============================================================================
# Supabase REST
# ============================================================================

class RestTableSource:
    """PostgREST reader authenticated with the project's anon key."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "RestTableSource":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    def _headers(self, start: int, end: int) -> Dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
            "Range-Unit": "items",
            "Range": f"{start}-{end}",
            "Prefer": "count=exact",
        }

    async def fetch_page(self, table: str, columns: str, start: int, end: int) -> Page:
        url = f"{self.base_url}/rest/v1/{table}"
        params = {"select": ",".join(_split_columns(columns))}
        try:
            resp = await self.client.get(url, params=params, headers=self._headers(start, end))
        except httpx.HTTPError as e:
            raise SourceError(table, f"request failed: {e}") from e

        if resp.status_code >= 400:
            raise SourceError(table, f"HTTP {resp.status_code}: {_error_message(resp)}")

        try:
            data = resp.json()
        except ValueError as e:
            raise SourceError(table, "response is not JSON") from e
        if not isinstance(data, list):
            raise SourceError(table, f"expected a JSON array, got {type(data).__name__}")

        return data, parse_content_range(resp.headers.get("content-range"))


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200] or resp.reason_phrase
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)


# ============================================================================
# SQL (async SQLAlchemy)
# ============================================================================

class SqlTableSource:
    """Reads the inventory tables through an AsyncSession, ordered by id."""

    MODELS = {
        PRODUCTS_TABLE: Product,
        BATCHES_TABLE: Batch,
    }

    def __init__(self, db: AsyncSession):
        self.db = db

    async def fetch_page(self, table: str, columns: str, start: int, end: int) -> Page:
        model = self.MODELS.get(table)
        if model is None:
            raise SourceError(table, "unknown table")
        try:
            cols = [getattr(model, name) for name in _split_columns(columns)]
        except AttributeError as e:
            raise SourceError(table, f"unknown column: {e}") from e

        stmt = select(*cols).order_by(model.id).offset(start).limit(end - start + 1)
        try:
            total = (await self.db.execute(select(func.count()).select_from(model))).scalar_one()
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise SourceError(table, str(e)) from e

        return [dict(r) for r in result.mappings().all()], int(total)


# ============================================================================
# Pagination
# ============================================================================

async def fetch_all(
    source: RowSource,
    table: str,
    columns: str,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> List[Row]:
    """
    Read a whole table page by page.

    Stops when a page comes back short or when the reported total is reached.
    """
    if page_size < 1:
        raise ValueError("page_size must be >= 1")

    out: List[Row] = []
    start = 0
    while True:
        rows, count = await source.fetch_page(table, columns, start, start + page_size - 1)
        if rows:
            out.extend(rows)
        start += page_size
        logger.debug("fetched %s rows from %s (total so far %s, reported %s)", len(rows or []), table, len(out), count)
        if not rows or len(rows) < page_size:
            break
        if count is not None and len(out) >= count:
            break
    return out


@asynccontextmanager
async def open_source(settings: Settings, kind: Optional[str] = None) -> AsyncIterator[RowSource]:
    """Open the row source selected by `kind` (or settings.CHECK_SOURCE)."""
    kind = kind or settings.CHECK_SOURCE
    if kind == "rest":
        url, key = settings.rest_credentials()
        async with RestTableSource(url, key, timeout=settings.HTTP_TIMEOUT) as src:
            yield src
    elif kind == "sql":
        from maintenance_hub.database import init_db, get_session_context

        await init_db(settings)
        async with get_session_context() as db:
            yield SqlTableSource(db)
    else:
        raise ValueError(f"Unknown source '{kind}'")
