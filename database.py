"""
Database Helper Functions

Connection setup for both persistence backends and the factory that picks one
at startup. The rest of the application only ever sees the ``Storage``
interface returned by ``build_storage``.
"""

import logging
from typing import Optional

from pymongo import MongoClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import config
from models import Base
from mongo_storage import MongoStorage
from sql_storage import SqlStorage
from storage import Storage

logger = logging.getLogger("foodieexpress.storage")


def create_sql_engine(url: str) -> Engine:
    kwargs = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            # One shared connection, otherwise every session sees an empty database.
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


def init_sql_database(url: str) -> sessionmaker:
    engine = create_sql_engine(url)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def connect_mongo(database_url: str, database_name: str):
    client = MongoClient(database_url, tz_aware=True)
    return client[database_name]


def build_storage(backend: Optional[str] = None) -> Storage:
    backend = (backend or config.STORAGE_BACKEND).lower()
    if backend == "sql":
        logger.info("Using relational storage at %s", config.SQL_DATABASE_URL)
        return SqlStorage(init_sql_database(config.SQL_DATABASE_URL))
    if backend == "mongo":
        if not config.DATABASE_URL or not config.DATABASE_NAME:
            raise Exception("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")
        logger.info("Using document storage database %s", config.DATABASE_NAME)
        return MongoStorage(connect_mongo(config.DATABASE_URL, config.DATABASE_NAME))
    raise ValueError(f"Unknown STORAGE_BACKEND '{backend}', expected 'sql' or 'mongo'")
