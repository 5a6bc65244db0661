# phylodash/services/phylogeny.py
"""
Two-stage phylogeny pipeline on top of the EMBL-EBI job dispatcher.

``clustalo``          one Clustal Omega job; its ``phylotree`` result is the tree.
``simple_phylogeny``  Clustal Omega alignment, then a Simple Phylogeny
                      neighbour-joining job on the aligned FASTA.

Nothing is kept between calls. The position in the pipeline travels inside the
job token handed back to the caller, so any instance can answer any poll.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

import httpx

from phylodash import config
from phylodash.schemas.phylo import ProgressEnvelope
from phylodash.services.ebi import RemoteJobStatus, RemoteTool
from phylodash.services.errors import TokenError, ValidationError
from phylodash.services.job_state import (
    JobToken,
    PipelineStage,
    PipelineState,
    TokenKind,
    encode_state,
    parse_token,
)

logger = logging.getLogger(__name__)

MIN_SEQUENCES = 2

# Simple Phylogeny run parameters: Phylip tree, NJ clustering, no Kimura correction
SIMPLE_PHYLOGENY_PARAMS = {
    "tree": "phylip",
    "clustering": "Neighbour-joining",
    "kimura": "false",
}


class PhyloMethod(str, Enum):
    clustalo = "clustalo"
    simple_phylogeny = "simple_phylogeny"


class PipelinePhase(str, Enum):
    clustal_direct = "clustal_direct"
    alignment = "alignment"
    tree = "tree"


def normalize_method(raw: object) -> PhyloMethod:
    if isinstance(raw, str) and raw.strip().lower() == PhyloMethod.clustalo.value:
        return PhyloMethod.clustalo
    return PhyloMethod.simple_phylogeny


def build_fasta(sequences: Sequence[str]) -> str:
    return "\n".join(f">seq{i}\n{(seq or '').strip()}" for i, seq in enumerate(sequences, start=1))


def phase_of(token: JobToken) -> PipelinePhase:
    if token.kind is TokenKind.external:
        return PipelinePhase.clustal_direct
    if token.state.stage is PipelineStage.alignment:
        return PipelinePhase.alignment
    return PipelinePhase.tree


def make_clustal_tool(client: httpx.AsyncClient) -> RemoteTool:
    return RemoteTool("clustalo", config.CLUSTALO_URL, client, label="Clustal Omega")


def make_simple_phylogeny_tool(client: httpx.AsyncClient) -> RemoteTool:
    return RemoteTool("simple_phylogeny", config.SIMPLE_PHYLOGENY_URL, client, label="Simple Phylogeny")


class PhylogenyOrchestrator:
    def __init__(self, clustal: RemoteTool, simple_phylogeny: RemoteTool):
        self.clustal = clustal
        self.simple_phylogeny = simple_phylogeny
        self._handlers: Dict[PipelinePhase, Callable[[JobToken], Awaitable[ProgressEnvelope]]] = {
            PipelinePhase.clustal_direct: self._poll_clustal_direct,
            PipelinePhase.alignment: self._poll_alignment,
            PipelinePhase.tree: self._poll_tree,
        }

    @classmethod
    def from_client(cls, client: httpx.AsyncClient) -> "PhylogenyOrchestrator":
        return cls(make_clustal_tool(client), make_simple_phylogeny_tool(client))

    # ---------- Submission ----------

    async def submit(self, sequences: Optional[List[str]], method: object = None) -> ProgressEnvelope:
        if not isinstance(sequences, list) or len(sequences) < MIN_SEQUENCES:
            raise ValidationError("At least two sequences are required for tree generation.")
        if any(not isinstance(s, str) or not s.strip() for s in sequences):
            raise ValidationError("Sequences must be non-empty strings.")

        chosen = normalize_method(method)
        clustal_job_id = await self.clustal.submit({"sequence": build_fasta(sequences)})

        if chosen is PhyloMethod.clustalo:
            return ProgressEnvelope(
                status="PENDING",
                job_id=clustal_job_id,
                service="clustalo",
                stage="tree",
                external_service="clustalo",
                external_id=clustal_job_id,
                external_url=self.clustal.result_url(clustal_job_id, "phylotree"),
                alignment_job_id=clustal_job_id,
            )

        state = PipelineState(stage=PipelineStage.alignment, clustal_job_id=clustal_job_id)
        return ProgressEnvelope(
            status="PENDING",
            job_id=encode_state(state),
            service="simple_phylogeny",
            stage="alignment",
            external_service="clustalo",
            external_id=clustal_job_id,
            external_url=self.clustal.result_url(clustal_job_id, "fa"),
            alignment_job_id=clustal_job_id,
        )

    # ---------- Polling ----------

    async def poll(self, job_id: str) -> ProgressEnvelope:
        token = parse_token(job_id)
        phase = phase_of(token)
        try:
            return await self._handlers[phase](token)
        except TokenError as e:
            logger.warning("rejecting job token in phase %s: %s", phase.value, e)
            return ProgressEnvelope(status="FAILURE", message=str(e))

    async def _poll_clustal_direct(self, token: JobToken) -> ProgressEnvelope:
        job_id = token.raw
        status = await self.clustal.get_status(job_id)
        tree_url = self.clustal.result_url(job_id, "phylotree")

        if status is RemoteJobStatus.FINISHED:
            tree = await self.clustal.fetch_result(job_id, "phylotree")
            return ProgressEnvelope(
                status="FINISHED",
                service="clustalo",
                stage="tree",
                external_service="clustalo",
                external_id=job_id,
                external_url=tree_url,
                alignment_job_id=job_id,
                tree_job_id=job_id,
                result=tree,
            )

        if status.in_progress:
            return ProgressEnvelope(
                status="RUNNING",
                job_id=job_id,
                service="clustalo",
                stage="tree",
                external_service="clustalo",
                external_id=job_id,
                external_url=tree_url,
                alignment_job_id=job_id,
            )

        return ProgressEnvelope(status="FAILURE", message=f"Clustal Omega job failed with status: {status.value}")

    async def _poll_alignment(self, token: JobToken) -> ProgressEnvelope:
        state = token.state
        status = await self.clustal.get_status(state.clustal_job_id)

        if status is RemoteJobStatus.FINISHED:
            alignment = await self.clustal.fetch_result(state.clustal_job_id, "fa")
            simple_job_id = await self.simple_phylogeny.submit({"sequence": alignment, **SIMPLE_PHYLOGENY_PARAMS})
            next_state = state.model_copy(update={"stage": PipelineStage.tree, "simple_job_id": simple_job_id})
            logger.info("alignment %s finished, tree job %s submitted", state.clustal_job_id, simple_job_id)
            # the caller must switch to the new token from here on
            return ProgressEnvelope(
                status="RUNNING",
                job_id=encode_state(next_state),
                service="simple_phylogeny",
                stage="tree",
                external_service="simple_phylogeny",
                external_id=simple_job_id,
                external_url=self.simple_phylogeny.result_url(simple_job_id, "tree"),
                alignment_job_id=state.clustal_job_id,
                tree_job_id=simple_job_id,
            )

        if status.in_progress:
            return ProgressEnvelope(
                status="RUNNING",
                job_id=token.raw,
                service="simple_phylogeny",
                stage="alignment",
                external_service="clustalo",
                external_id=state.clustal_job_id,
                external_url=self.clustal.result_url(state.clustal_job_id, "fa"),
                alignment_job_id=state.clustal_job_id,
            )

        return ProgressEnvelope(status="FAILURE", message=f"Clustal Omega alignment failed with status: {status.value}")

    async def _poll_tree(self, token: JobToken) -> ProgressEnvelope:
        state = token.state
        if not state.simple_job_id:
            raise TokenError("Invalid job token: missing Simple Phylogeny job identifier.")

        simple_job_id = state.simple_job_id
        status = await self.simple_phylogeny.get_status(simple_job_id)
        tree_url = self.simple_phylogeny.result_url(simple_job_id, "tree")

        if status is RemoteJobStatus.FINISHED:
            tree = await self.simple_phylogeny.fetch_result(simple_job_id, "tree")
            return ProgressEnvelope(
                status="FINISHED",
                service="simple_phylogeny",
                stage="tree",
                external_service="simple_phylogeny",
                external_id=simple_job_id,
                external_url=tree_url,
                alignment_job_id=state.clustal_job_id,
                tree_job_id=simple_job_id,
                result=tree,
            )

        if status.in_progress:
            return ProgressEnvelope(
                status="RUNNING",
                job_id=token.raw,
                service="simple_phylogeny",
                stage="tree",
                external_service="simple_phylogeny",
                external_id=simple_job_id,
                external_url=tree_url,
                alignment_job_id=state.clustal_job_id,
                tree_job_id=simple_job_id,
            )

        return ProgressEnvelope(status="FAILURE", message=f"Simple Phylogeny job failed with status: {status.value}")
