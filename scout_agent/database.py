from pathlib import Path

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from scout_agent.config import settings


def build_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite:///"):
        # Ensure data directory exists
        db_path = database_url.replace("sqlite:///", "")
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        connect_args["check_same_thread"] = False
    return create_engine(database_url, echo=False, connect_args=connect_args)


engine = build_engine(settings.database_url)


def init_db(bind: Engine | None = None) -> None:
    import scout_agent.models  # noqa: F401  registers tables on the metadata

    SQLModel.metadata.create_all(bind or engine)


def get_session() -> Session:
    return Session(engine, expire_on_commit=False)
