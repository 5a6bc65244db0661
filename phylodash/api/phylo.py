# phylodash/api/phylo.py
from __future__ import annotations
from fastapi import APIRouter, Depends, Response, status

from phylodash.api.deps import get_orchestrator
from phylodash.schemas.errors import ErrorResponse
from phylodash.schemas.phylo import PhyloRequest, ProgressEnvelope
from phylodash.services.phylogeny import PhylogenyOrchestrator

router = APIRouter(prefix="/api", tags=["phylo"])


@router.post(
    "/phylo",
    response_model=ProgressEnvelope,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def phylo(
    payload: PhyloRequest,
    response: Response,
    orchestrator: PhylogenyOrchestrator = Depends(get_orchestrator),
):
    """Submit sequences for tree building, or poll a job token returned earlier."""
    if payload.job_id:
        return await orchestrator.poll(payload.job_id)

    envelope = await orchestrator.submit(payload.sequences, payload.method)
    response.status_code = status.HTTP_202_ACCEPTED
    return envelope
