from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.db.config import DATABASE_URL, DATABASE_ECHO


def build_engine(url: str = DATABASE_URL, echo: bool = DATABASE_ECHO):
    connect_args = {}
    if url.startswith("sqlite"):
        # Per-asset price lookups may run on worker threads
        connect_args["check_same_thread"] = False
    return create_engine(url, echo=echo, connect_args=connect_args)


engine = build_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
