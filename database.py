# database.py
import os
from datetime import datetime, date

from dateutil import parser as date_parser
from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool


DB_URL = os.getenv("DATABASE_URL", "sqlite:///./survey.db")
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", 10))


def create_db_engine(url: str | None = None, pool_size: int = DB_POOL_SIZE) -> Engine:
    """Build the single engine (and its connection pool) the app runs on."""
    url = url or DB_URL
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        # An in-memory database only exists on its one connection
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_size=pool_size, max_overflow=0, pool_pre_ping=True)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db(request: Request):
    db: Session = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_features(request: Request):
    return request.app.state.features


def as_datetime(value):
    """Timestamps come back as strings from some drivers (SQLite)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return date_parser.parse(str(value))
