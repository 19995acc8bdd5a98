# maintenance_hub/routers/integrity.py
"""
Batch integrity report over HTTP. Same report the check-batches CLI prints.
"""
from __future__ import annotations
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from maintenance_hub.deps import require_feature
from maintenance_hub.errors import ConfigurationError, MaintenanceHubError
from maintenance_hub.models import IntegrityReport
from maintenance_hub.services.batch_integrity import run_check
from maintenance_hub.services.table_sources import RowSource, open_source
from maintenance_hub.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrity", tags=["Integrity"])


async def get_row_source() -> AsyncGenerator[RowSource, None]:
    try:
        async with open_source(settings) as src:
            yield src
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get(
    "/batches",
    response_model=IntegrityReport,
    dependencies=[Depends(require_feature("batchManagement"))],
)
async def batch_integrity(source: RowSource = Depends(get_row_source)) -> IntegrityReport:
    try:
        return await run_check(
            source,
            page_size=settings.CHECK_PAGE_SIZE,
            orphan_cap=settings.CHECK_ORPHAN_CAP,
            null_batch_number_as_empty=settings.NULL_BATCH_NUMBER_AS_EMPTY,
        )
    # unreadable pages and malformed rows both mean the check could not run
    except (MaintenanceHubError, ValidationError) as e:
        logger.error("batch integrity check failed: %s", e)
        raise HTTPException(status_code=502, detail=f"Check failed: {e}")
