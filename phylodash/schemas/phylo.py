# phylodash/schemas/phylo.py
from __future__ import annotations
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

PhyloStatus = Literal["RUNNING", "FINISHED", "FAILURE", "PENDING"]
PhyloService = Literal["clustalo", "simple_phylogeny"]
PhyloStage = Literal["alignment", "tree"]


class PhyloRequest(BaseModel):
    # submission
    sequences: Optional[List[str]] = None
    method: Optional[str] = None  # "clustalo" | "simple_phylogeny"; anything else -> simple_phylogeny

    # polling
    job_id: Optional[str] = Field(default=None, alias="jobId")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ProgressEnvelope(BaseModel):
    status: PhyloStatus
    job_id: Optional[str] = Field(default=None, alias="jobId")
    service: Optional[PhyloService] = None
    stage: Optional[PhyloStage] = None
    external_service: Optional[PhyloService] = Field(default=None, alias="externalService")
    external_id: Optional[str] = Field(default=None, alias="externalId")
    external_url: Optional[str] = Field(default=None, alias="externalUrl")
    alignment_job_id: Optional[str] = Field(default=None, alias="alignmentJobId")
    tree_job_id: Optional[str] = Field(default=None, alias="treeJobId")
    result: Optional[str] = None
    message: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)
