# phylodash/schemas/structures.py
from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class PdbCitation(BaseModel):
    title: Optional[str] = None
    journal: Optional[str] = None
    year: Optional[int] = None
    doi: Optional[str] = None
    pubmed_id: Optional[int] = Field(default=None, alias="pubmedId")
    authors: Optional[list[str]] = None

    model_config = ConfigDict(populate_by_name=True)


class PdbMetadata(BaseModel):
    pdb_id: str = Field(alias="pdbId")
    title: Optional[str] = None
    classification: Optional[str] = None
    deposition_date: Optional[str] = Field(default=None, alias="depositionDate")
    release_date: Optional[str] = Field(default=None, alias="releaseDate")
    experimental_methods: list[str] = Field(default_factory=list, alias="experimentalMethods")
    resolution: Optional[float] = None
    organisms: list[str] = Field(default_factory=list)
    citation: Optional[PdbCitation] = None

    model_config = ConfigDict(populate_by_name=True)


class StructureInfo(BaseModel):
    """Where a structure file comes from and how to link to it."""
    fetch_url: str = Field(alias="fetchUrl")
    download_url: str = Field(alias="downloadUrl")
    share_url: str = Field(alias="shareUrl")
    download_file_name: str = Field(alias="downloadFileName")
    display_id: str = Field(alias="displayId")
    source_name: str = Field(alias="sourceName")
    uniprot_start: Optional[int] = Field(default=None, alias="uniprotStart")
    uniprot_end: Optional[int] = Field(default=None, alias="uniprotEnd")
    fragment_count: int = Field(default=1, alias="fragmentCount")

    model_config = ConfigDict(populate_by_name=True)
