# phylodash/api/blast.py
from __future__ import annotations
from typing import Union

from fastapi import APIRouter, Depends, Response, status

from phylodash.api.deps import get_blast_service
from phylodash.schemas.errors import ErrorResponse
from phylodash.schemas.blast import BlastPollResponse, BlastRequest, BlastSubmitResponse
from phylodash.services.blast import BlastService
from phylodash.services.errors import ValidationError

router = APIRouter(prefix="/api", tags=["blast"])


@router.post(
    "/blastp",
    response_model=Union[BlastPollResponse, BlastSubmitResponse],
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def blastp(
    payload: BlastRequest,
    response: Response,
    service: BlastService = Depends(get_blast_service),
):
    if payload.job_id:
        return await service.poll(payload.job_id)

    if payload.sequence is None:
        raise ValidationError("Request must include either a sequence or a jobId.")

    job_id = await service.submit(payload.sequence)
    response.status_code = status.HTTP_202_ACCEPTED
    return BlastSubmitResponse(job_id=job_id)
