# maintenance_hub/services/batch_integrity.py
"""
Batch integrity check.

Finds, across inventory_batches:
- batch_number values used more than once (system wide)
- (product_id, batch_number) pairs used more than once
- batches whose product_id is missing or points at no existing product

Duplicate groups are ordered by count, highest first; equal counts keep the
order in which the key was first seen, so the same data always produces the
same report.
"""
from __future__ import annotations
import logging
from typing import Any, Callable, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar, Union

from maintenance_hub.models import (
    BatchRow, ProductRow, Totals, Duplicates,
    BatchNumberDuplicate, ProductBatchDuplicate, IntegrityReport,
)
from maintenance_hub.services.table_sources import (
    RowSource, fetch_all, PRODUCTS_TABLE, BATCHES_TABLE, DEFAULT_PAGE_SIZE,
)

logger = logging.getLogger(__name__)

DEFAULT_ORPHAN_CAP = 200
DEFAULT_PRINT_LIMIT = 50

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


def summarize_duplicates_by_key(
    rows: Iterable[T],
    key: Callable[[T], Optional[K]],
) -> List[Tuple[K, int]]:
    """
    Count rows per key and return the keys seen more than once.

    A key function returning None leaves that row out of the grouping.
    """
    counts: dict = {}
    for row in rows:
        k = key(row)
        if k is None:
            continue
        counts[k] = counts.get(k, 0) + 1
    dups = [(k, c) for k, c in counts.items() if c > 1]
    # list.sort is stable, so ties stay in first-seen order
    dups.sort(key=lambda kc: kc[1], reverse=True)
    return dups


def batch_number_key(null_as_empty: bool = True) -> Callable[[BatchRow], Optional[str]]:
    def _key(b: BatchRow) -> Optional[str]:
        if b.batch_number is None:
            return "" if null_as_empty else None
        return b.batch_number
    return _key


def product_batch_key(null_as_empty: bool = True) -> Callable[[BatchRow], Optional[tuple]]:
    number = batch_number_key(null_as_empty)

    def _key(b: BatchRow) -> Optional[tuple]:
        n = number(b)
        if n is None:
            return None
        return (b.product_id, n)
    return _key


def is_missing_product(product_id: Any) -> bool:
    return product_id is None or product_id == ""


def find_orphans(batches: Iterable[BatchRow], product_ids: set) -> List[BatchRow]:
    """Batches without a product_id or whose product_id is not a known product."""
    return [
        b for b in batches
        if is_missing_product(b.product_id) or b.product_id not in product_ids
    ]


RowLike = Union[Mapping[str, Any], BatchRow, ProductRow]


def _as_batches(rows: Iterable[Union[Mapping[str, Any], BatchRow]]) -> List[BatchRow]:
    return [r if isinstance(r, BatchRow) else BatchRow.model_validate(r) for r in rows]


def _as_products(rows: Iterable[Union[Mapping[str, Any], ProductRow]]) -> List[ProductRow]:
    return [r if isinstance(r, ProductRow) else ProductRow.model_validate(r) for r in rows]


def build_report(
    products: Sequence[RowLike],
    batches: Sequence[RowLike],
    *,
    orphan_cap: int = DEFAULT_ORPHAN_CAP,
    null_batch_number_as_empty: bool = True,
) -> IntegrityReport:
    product_rows = _as_products(products)
    batch_rows = _as_batches(batches)
    product_ids = {p.id for p in product_rows}

    by_number = summarize_duplicates_by_key(batch_rows, batch_number_key(null_batch_number_as_empty))
    by_product = summarize_duplicates_by_key(batch_rows, product_batch_key(null_batch_number_as_empty))
    orphans = find_orphans(batch_rows, product_ids)

    return IntegrityReport(
        totals=Totals(products=len(product_rows), batches=len(batch_rows)),
        duplicates=Duplicates(
            by_batch_number=[BatchNumberDuplicate(batch_number=k, count=c) for k, c in by_number],
            by_product_and_batch=[
                ProductBatchDuplicate(
                    product_id=None if is_missing_product(pid) else pid,
                    batch_number=num,
                    count=c,
                )
                for (pid, num), c in by_product
            ],
        ),
        orphans=orphans[:orphan_cap],
        orphans_count=len(orphans),
    )


async def run_check(
    source: RowSource,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    orphan_cap: int = DEFAULT_ORPHAN_CAP,
    null_batch_number_as_empty: bool = True,
) -> IntegrityReport:
    """Fetch products and batches from `source` and build the report."""
    products = await fetch_all(source, PRODUCTS_TABLE, "id", page_size=page_size)
    batches = await fetch_all(source, BATCHES_TABLE, "id, product_id, batch_number", page_size=page_size)
    logger.info("integrity check loaded %s products, %s batches", len(products), len(batches))

    report = build_report(
        products,
        batches,
        orphan_cap=orphan_cap,
        null_batch_number_as_empty=null_batch_number_as_empty,
    )
    logger.info(
        "integrity check: %s duplicate batch_numbers, %s duplicate product+batch, %s orphans",
        len(report.duplicates.by_batch_number),
        len(report.duplicates.by_product_and_batch),
        report.orphans_count,
    )
    return report


def _null(v: Any) -> str:
    return "NULL" if is_missing_product(v) else str(v)


def render_report(report: IntegrityReport, limit: int = DEFAULT_PRINT_LIMIT) -> str:
    """Human readable summary, each section cut at `limit` rows."""
    lines = [
        "=== Batch Integrity Check ===",
        f"Products: {report.totals.products}",
        f"Batches: {report.totals.batches}",
    ]

    by_number = report.duplicates.by_batch_number
    lines.append(f"Duplicate batch_numbers: {len(by_number)}")
    for row in by_number[:limit]:
        lines.append(f"  batch_number='{row.batch_number}' -> {row.count}")
    if len(by_number) > limit:
        lines.append("  ...")

    by_product = report.duplicates.by_product_and_batch
    lines.append(f"Duplicate per product+batch: {len(by_product)}")
    for row in by_product[:limit]:
        lines.append(f"  product_id={_null(row.product_id)}, batch_number='{row.batch_number}' -> {row.count}")
    if len(by_product) > limit:
        lines.append("  ...")

    lines.append(f"Orphan batches (no parent product): {report.orphans_count}")
    for b in report.orphans[:limit]:
        lines.append(f"  batch id={b.id}, product_id={_null(b.product_id)}, batch_number='{b.batch_number or ''}'")
    if report.orphans_count > limit:
        lines.append("  ...")

    if not report.has_issues:
        lines.append("No duplicates or orphan batches found.")
    return "\n".join(lines)
