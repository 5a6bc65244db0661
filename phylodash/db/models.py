from datetime import datetime

from sqlalchemy import Column, DateTime
from sqlmodel import SQLModel, Field


class StructureMetadataRecord(SQLModel, table=True):
    __tablename__ = "structure_metadata"

    # normalised identifier, e.g. "1CRN"
    key: str = Field(primary_key=True, index=True)
    payload_json: str
    # always UTC
    fetched_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False, index=True))
