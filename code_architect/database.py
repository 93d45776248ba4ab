# code_architect/database.py
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base, Session
from sqlalchemy.pool import StaticPool

from .config import settings

SQLALCHEMY_DB_URL = settings.DATABASE_URL

connect_args = {}
engine_kwargs = {}
if SQLALCHEMY_DB_URL.startswith("sqlite"):
    connect_args["check_same_thread"] = False  # needed for SQLite + FastAPI threadpool
    if SQLALCHEMY_DB_URL in ("sqlite://", "sqlite:///:memory:"):
        # one shared connection, otherwise every checkout sees an empty database
        engine_kwargs["poolclass"] = StaticPool

engine = create_engine(
    SQLALCHEMY_DB_URL,
    connect_args=connect_args,
    future=True,
    echo=False,  # set True to log SQL in dev
    **engine_kwargs,
)

if SQLALCHEMY_DB_URL.startswith("sqlite"):
    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_conn, _record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)
Base = declarative_base()


def init_db() -> None:
    from . import models  # noqa: F401  (register tables on Base.metadata)

    Base.metadata.create_all(bind=engine)


def get_db() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
