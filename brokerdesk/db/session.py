from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from brokerdesk.core.config import settings


def build_engine(database_url: str):
    """Create an engine with backend-appropriate connection settings."""
    url = make_url(database_url)
    backend = url.get_backend_name()

    if backend == "sqlite":
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            # One shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)

    connect_args = {}
    if backend.startswith("postgresql"):
        connect_args["options"] = "-c timezone=utc"
    return create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
