# phylodash/services/blast.py
from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Dict, List, Optional

import httpx

from phylodash import config
from phylodash.schemas.blast import AlignmentRange, AlignmentToken, BlastHit, BlastPollResponse
from phylodash.services.ebi import RemoteJobStatus, RemoteTool
from phylodash.services.errors import ResultError, ValidationError

logger = logging.getLogger(__name__)

MAX_HITS = 100

BLASTP_PARAMS = {
    "program": "blastp",
    "stype": "protein",
    "database": "uniprotkb",
}


def _to_number(value: Any) -> Optional[float]:
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    return n if math.isfinite(n) else None


def _to_int(value: Any) -> Optional[int]:
    n = _to_number(value)
    return int(n) if n is not None else None


def _clean(seq: Any) -> Optional[str]:
    if not isinstance(seq, str):
        return None
    return re.sub(r"\s+", "", seq) or None


def _residue_state(q: str, s: str, mid: str) -> str:
    if q == "-" or s == "-":
        return "gap"
    if mid == "+":
        return "positive"
    if q == s:
        return "match"
    return "mismatch"


def alignment_tokens(
    query: str,
    subject: str,
    midline: Optional[str],
    query_from: Optional[int],
    subject_from: Optional[int],
) -> List[AlignmentToken]:
    """Column-by-column view of one HSP, numbering residues but not gaps."""
    n = min(len(query), len(subject), len(midline) if midline else len(query))
    q_pos, s_pos = query_from, subject_from
    tokens: List[AlignmentToken] = []
    for i in range(n):
        q, s = query[i], subject[i]
        mid = midline[i] if midline else " "
        tok = AlignmentToken(query_residue=q, subject_residue=s, state=_residue_state(q, s, mid), midline=mid)
        if q != "-" and q_pos is not None:
            tok.query_position = q_pos
            q_pos += 1
        if s != "-" and s_pos is not None:
            tok.subject_position = s_pos
            s_pos += 1
        tokens.append(tok)
    return tokens


def _alignment_text(query, midline, subject, rng: AlignmentRange) -> Optional[str]:
    lines = []
    if query:
        label = f"Query {rng.query_from}-{rng.query_to}:" if rng.query_from is not None and rng.query_to is not None else "Query:"
        lines.append(f"{label} {query}")
    if midline:
        lines.append(f"Match: {midline}")
    if subject:
        label = f"Subject {rng.subject_from}-{rng.subject_to}:" if rng.subject_from is not None and rng.subject_to is not None else "Subject:"
        lines.append(f"{label} {subject}")
    return "\n".join(lines) if lines else None


def format_hit(hit: Dict[str, Any], query_length: Optional[float]) -> Optional[BlastHit]:
    hsps = hit.get("hit_hsps")
    if not isinstance(hsps, list) or not hsps:
        return None
    hsp = hsps[0]
    if any(hsp.get(k) is None for k in ("hsp_bit_score", "hsp_expect", "hsp_identity")) or not hit.get("hit_acc"):
        logger.warning("skipping malformed BLAST hit %s: missing fields", hit.get("hit_acc"))
        return None

    identity = _to_number(hsp.get("hsp_identity"))
    align_len = _to_number(hsp.get("hsp_align_len"))
    coverage = None
    if query_length and query_length > 0 and align_len is not None:
        coverage = min(1.0, max(0.0, align_len / query_length))

    query = _clean(hsp.get("hsp_qseq"))
    # spaces in the midline mark mismatching columns, only drop line breaks
    mseq = hsp.get("hsp_mseq")
    midline = None
    if isinstance(mseq, str):
        midline = mseq.replace("\n", "").replace("\r", "") or None
    subject = _clean(hsp.get("hsp_hseq"))
    rng = AlignmentRange(
        query_from=_to_int(hsp.get("hsp_query_from")),
        query_to=_to_int(hsp.get("hsp_query_to")),
        subject_from=_to_int(hsp.get("hsp_hit_from")),
        subject_to=_to_int(hsp.get("hsp_hit_to")),
    )

    tokens = None
    if query and subject:
        tokens = alignment_tokens(query, subject, midline, rng.query_from, rng.subject_from)

    return BlastHit(
        accession=hit["hit_acc"],
        description=hit.get("hit_desc"),
        score=_to_number(hsp.get("hsp_bit_score")),
        e_value=_to_number(hsp.get("hsp_expect")),
        identity=identity / 100 if identity is not None else None,
        query_coverage=coverage,
        coverage=coverage,
        length=_to_int(hit.get("hit_len")),
        organism=hit.get("hit_os") or hit.get("hit_uni_os"),
        alignment=_alignment_text(query, midline, subject, rng),
        sequence=subject.replace("-", "") if subject else None,
        alignment_tokens=tokens,
        alignment_range=rng,
    )


def format_hits(results: Dict[str, Any], max_hits: int = MAX_HITS) -> List[BlastHit]:
    hits = results.get("hits") if isinstance(results, dict) else None
    if not isinstance(hits, list):
        return []
    query_length = _to_number(results.get("query_len"))
    formatted = []
    for hit in hits[:max_hits]:
        if not isinstance(hit, dict):
            continue
        item = format_hit(hit, query_length)
        if item is not None:
            formatted.append(item)
    return formatted


class BlastService:
    def __init__(self, tool: RemoteTool):
        self.tool = tool

    @classmethod
    def from_client(cls, client: httpx.AsyncClient) -> "BlastService":
        return cls(RemoteTool("ncbiblast", config.NCBIBLAST_URL, client, label="NCBI BLAST"))

    async def submit(self, sequence: Optional[str]) -> str:
        if not isinstance(sequence, str) or not sequence.strip():
            raise ValidationError("A valid protein sequence is required.")
        return await self.tool.submit({**BLASTP_PARAMS, "sequence": sequence})

    async def poll(self, job_id: str) -> BlastPollResponse:
        status = await self.tool.get_status(job_id)
        if status.in_progress:
            return BlastPollResponse(status="RUNNING")
        if status is not RemoteJobStatus.FINISHED:
            return BlastPollResponse(status="FAILURE", message=f"Job failed with status: {status.value}")

        raw = await self.tool.fetch_result(job_id, "json", accept="application/json")
        try:
            results = json.loads(raw)
        except ValueError as e:
            raise ResultError(f"BLAST result for {job_id} was not valid JSON: {e}") from e
        return BlastPollResponse(status="FINISHED", results=format_hits(results))
