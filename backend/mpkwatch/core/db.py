import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def database_url_from_env() -> str:
    """
    DATABASE_URL wins; otherwise the URL is assembled from the POSTGRES_* parts.
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        user = os.getenv("POSTGRES_USER", "mpkhate")
        password = os.getenv("POSTGRES_PASSWORD", "password")
        host = os.getenv("POSTGRES_IP", "localhost")
        port = os.getenv("PGPORT", "5432")
        database = os.getenv("POSTGRES_DB", "mpkhate")
        url = f"postgresql://{user}:{password}@{host}:{port}/{database}"
    return normalize_database_url(url)


def normalize_database_url(url: str) -> str:
    # libpq-style schemes are not understood by SQLAlchemy
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        url = "postgresql+psycopg2://" + url[len("postgresql://"):]
    return url


def make_engine(database_url: str, *, pool_size: int = 5, connect_timeout: int = 3) -> Engine:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        # inserts run on worker threads; an in-memory db must keep its one connection
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    if url.get_backend_name() != "postgresql":
        return create_engine(url)

    return create_engine(
        url,
        pool_size=pool_size,
        max_overflow=0,
        pool_pre_ping=True,
        connect_args={"connect_timeout": connect_timeout},
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
