from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.engine import Engine
from sqlmodel import select

from .session import get_session
from .models import StructureMetadataRecord


def _now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # sqlite hands DateTime columns back without tzinfo
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---------- Structure metadata ----------
def get_metadata_record(key: str, *, bind: Optional[Engine] = None) -> Optional[StructureMetadataRecord]:
    with get_session(bind) as s:
        return s.get(StructureMetadataRecord, key)


def put_metadata_record(
    key: str,
    payload_json: str,
    *,
    fetched_at: Optional[datetime] = None,
    bind: Optional[Engine] = None,
) -> StructureMetadataRecord:
    with get_session(bind) as s:
        rec = s.get(StructureMetadataRecord, key)
        if rec is None:
            rec = StructureMetadataRecord(key=key, payload_json=payload_json, fetched_at=as_utc(fetched_at or _now()))
        else:
            rec.payload_json = payload_json
            rec.fetched_at = as_utc(fetched_at or _now())
        s.add(rec)
        s.commit()
        s.refresh(rec)
        return rec


def delete_metadata_record(key: str, *, bind: Optional[Engine] = None) -> bool:
    """Delete one cached entry. Returns True if deleted, False if not found."""
    with get_session(bind) as s:
        rec = s.get(StructureMetadataRecord, key)
        if not rec:
            return False
        s.delete(rec)
        s.commit()
        return True


def delete_metadata_older_than(cutoff: datetime, *, bind: Optional[Engine] = None) -> int:
    with get_session(bind) as s:
        stmt = select(StructureMetadataRecord).where(StructureMetadataRecord.fetched_at < as_utc(cutoff))
        stale = list(s.exec(stmt))
        for rec in stale:
            s.delete(rec)
        s.commit()
        return len(stale)
