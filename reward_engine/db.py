from pathlib import Path

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from reward_engine import models  # noqa: F401  (registers the tables)
from reward_engine.config import EngineConfig


def make_engine(database_url: str) -> Engine:
    """
    check_same_thread=False is needed for SQLite: store reads run on worker
    threads via asyncio.to_thread.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args)


# 1. The Engine (lazy: nothing touches the file until first use)
engine = make_engine(EngineConfig.from_env().database_url)


# 2. The Initialization Function
def create_db_and_tables(target: Engine = engine) -> None:
    """
    Creates the database file and all tables defined in reward_engine.models.
    Run this once when you set up the project or change the schema.
    """
    url = target.url
    if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    SQLModel.metadata.create_all(target)
