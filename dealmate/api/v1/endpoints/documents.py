"""Deal document upload and AI server passthrough endpoints."""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, UploadFile, status

from dealmate.core.exceptions import APIClientError
from dealmate.dependencies import get_ai_client, get_document_service
from dealmate.schemas.ai_server import AIResponse
from dealmate.schemas.api import DocumentSubmissionResponse, MemoRequest
from dealmate.services.ai_server_client import AIServerClient
from dealmate.services.processing.document_processing import DocumentProcessingService
from dealmate.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()


@router.post(
    "/{deal_id}/documents",
    response_model=DocumentSubmissionResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Upload a deal document",
    description=(
        "Classify an uploaded document, create its processing job and send it to the AI server.\n\n"
        "Processing continues in the background; follow it through the processing status stream."
    ),
    operation_id="upload_deal_document",
)
async def upload_document(
    deal_id: UUID,
    document_service: Annotated[DocumentProcessingService, Depends(get_document_service)],
    file: UploadFile = File(...),
) -> DocumentSubmissionResponse:
    LOGGER.info(f"Received upload {file.filename}", extra={"deal_id": str(deal_id)})
    content = await file.read()
    result = await document_service.submit(
        str(deal_id),
        file.filename or "upload",
        content,
        content_type=file.content_type,
    )
    return DocumentSubmissionResponse(**result)


@router.post(
    "/{deal_id}/memo",
    response_model=AIResponse,
    summary="Generate an investment memo",
    operation_id="generate_deal_memo",
)
async def generate_memo(
    deal_id: UUID,
    ai_client: Annotated[AIServerClient, Depends(get_ai_client)],
    request: Optional[MemoRequest] = None,
) -> AIResponse:
    """Ask the AI server for a memo over the deal's processed documents."""
    response = await ai_client.generate_memo(str(deal_id), request.sections if request else None)
    if not response.success:
        raise APIClientError(response.error or "Memo generation failed")
    return response


@router.get(
    "/{deal_id}/documents/jobs/{job_id}",
    response_model=AIResponse,
    summary="AI server job status",
    description="Status of a job the AI server is running for one of the deal's documents",
    operation_id="get_ai_server_job_status",
)
async def get_ai_job_status(
    deal_id: UUID,
    job_id: str,
    ai_client: Annotated[AIServerClient, Depends(get_ai_client)],
) -> AIResponse:
    response = await ai_client.check_processing_status(job_id)
    if not response.success:
        LOGGER.warning(f"Status check failed for AI job {job_id}", extra={"deal_id": str(deal_id)})
        raise APIClientError(response.error or "Status check failed")
    return response
