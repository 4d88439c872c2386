"""Dynamic result scanning endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends

from dealmate.dependencies import get_scanner
from dealmate.schemas.api import ScanRequest, ScanResponse
from dealmate.services.scanner.result_scanner import ResultScanner
from dealmate.services.scanner.sections import group_into_sections
from dealmate.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=ScanResponse,
    summary="Scan an analysis result",
    description="Discover, categorize and group the fields of an arbitrary analysis result",
    operation_id="scan_analysis_result",
)
async def scan_result(
    payload: ScanRequest,
    scanner: Annotated[ResultScanner, Depends(get_scanner)],
) -> ScanResponse:
    fields = await scanner.scan_safely(payload.data, payload.base_path)
    sections = group_into_sections(fields, max_fields=scanner.max_fields)

    LOGGER.info(
        "Scanned analysis result",
        extra={"field_count": len(fields), "section_count": len(sections)},
    )
    return ScanResponse(fields=fields, sections=sections)
