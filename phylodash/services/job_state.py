# phylodash/services/job_state.py
from __future__ import annotations

import base64
import json
import logging
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)

STATE_VERSION = 1
PIPELINE_METHOD = "simple_phylogeny"


class PipelineStage(str, Enum):
    alignment = "alignment"
    tree = "tree"


class PipelineState(BaseModel):
    version: Literal[1] = STATE_VERSION
    method: Literal["simple_phylogeny"] = PIPELINE_METHOD
    stage: PipelineStage
    clustal_job_id: str = Field(alias="clustalJobId", min_length=1)
    # only set once stage == tree
    simple_job_id: Optional[str] = Field(default=None, alias="simpleJobId")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @model_validator(mode="after")
    def _tree_job_only_in_tree_stage(self) -> "PipelineState":
        # a tree stage without simpleJobId is reported by the orchestrator instead
        if self.stage is PipelineStage.alignment and self.simple_job_id is not None:
            raise ValueError("simpleJobId is only valid in the tree stage")
        return self


class TokenKind(str, Enum):
    external = "external"
    pipeline = "pipeline"


class JobToken(BaseModel):
    """A caller-held job id, classified as a raw upstream id or a pipeline state."""

    kind: TokenKind
    raw: str
    state: Optional[PipelineState] = None

    model_config = ConfigDict(frozen=True)


def encode_state(state: PipelineState) -> str:
    payload = state.model_dump(mode="json", by_alias=True, exclude_none=True)
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_state(token: str) -> Optional[PipelineState]:
    """
    Return the PipelineState carried by ``token`` or None.

    Never raises: anything that is not a base64url JSON object tagged with our
    version and method is simply "not a composite token".
    """
    if not isinstance(token, str) or not token:
        return None
    try:
        padded = token + "=" * (-len(token) % 4)
        parsed = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8"))
    except ValueError:
        return None

    if not isinstance(parsed, dict):
        return None
    if parsed.get("version") != STATE_VERSION or parsed.get("method") != PIPELINE_METHOD:
        return None

    try:
        return PipelineState.model_validate(parsed)
    except ValueError as e:
        logger.warning("pipeline token has the right tags but invalid fields: %s", e)
        return None


def parse_token(token: str) -> JobToken:
    state = decode_state(token)
    if state is None:
        return JobToken(kind=TokenKind.external, raw=token)
    return JobToken(kind=TokenKind.pipeline, raw=token, state=state)
