# phylodash/schemas/blast.py
from __future__ import annotations
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ResidueState = Literal["match", "positive", "mismatch", "gap"]


class BlastRequest(BaseModel):
    sequence: Optional[str] = None
    job_id: Optional[str] = Field(default=None, alias="jobId")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class BlastSubmitResponse(BaseModel):
    job_id: str = Field(alias="jobId")

    model_config = ConfigDict(populate_by_name=True)


class AlignmentToken(BaseModel):
    query_residue: str = Field(alias="queryResidue")
    subject_residue: str = Field(alias="subjectResidue")
    state: ResidueState
    midline: str
    query_position: Optional[int] = Field(default=None, alias="queryPosition")
    subject_position: Optional[int] = Field(default=None, alias="subjectPosition")

    model_config = ConfigDict(populate_by_name=True)


class AlignmentRange(BaseModel):
    query_from: Optional[int] = Field(default=None, alias="queryFrom")
    query_to: Optional[int] = Field(default=None, alias="queryTo")
    subject_from: Optional[int] = Field(default=None, alias="subjectFrom")
    subject_to: Optional[int] = Field(default=None, alias="subjectTo")

    model_config = ConfigDict(populate_by_name=True)


class BlastHit(BaseModel):
    accession: str
    description: Optional[str] = None
    score: Optional[float] = None
    e_value: Optional[float] = None
    identity: Optional[float] = None  # fraction, 0..1
    query_coverage: Optional[float] = Field(default=None, alias="queryCoverage")
    coverage: Optional[float] = None
    length: Optional[int] = None
    organism: Optional[str] = None
    alignment: Optional[str] = None
    sequence: Optional[str] = None
    alignment_tokens: Optional[list[AlignmentToken]] = Field(default=None, alias="alignmentTokens")
    alignment_range: AlignmentRange = Field(alias="alignmentRange")

    model_config = ConfigDict(populate_by_name=True)


class BlastPollResponse(BaseModel):
    status: Literal["RUNNING", "FINISHED", "FAILURE"]
    results: Optional[list[BlastHit]] = None
    message: Optional[str] = None
