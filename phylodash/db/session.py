# phylodash/db/session.py
from __future__ import annotations
from typing import Optional

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session
from pathlib import Path
import os

# store db under the working directory by default
DB_PATH = Path(os.getenv("PHYLODASH_DB", "phylodash.db")).resolve()
DB_URL = f"sqlite:///{DB_PATH}"

# check_same_thread=False: sessions are opened from the event loop and worker threads
engine = create_engine(DB_URL, echo=False, connect_args={"check_same_thread": False})


def make_engine(path: Path) -> Engine:
    return create_engine(f"sqlite:///{Path(path).resolve()}", echo=False, connect_args={"check_same_thread": False})


def init_db(bind: Optional[Engine] = None) -> None:
    """Create tables if they don't exist."""
    SQLModel.metadata.create_all(bind or engine)


def get_session(bind: Optional[Engine] = None) -> Session:
    return Session(bind or engine)
