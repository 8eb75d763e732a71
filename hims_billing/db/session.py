# hims_billing/db/session.py
from typing import Dict

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from hims_billing.core.config import settings

_engines: Dict[str, Engine] = {}


def _sqlite_transactional(eng: Engine) -> None:
    """
    pysqlite defers BEGIN until the first DML, which breaks SAVEPOINT and
    read consistency; let SQLAlchemy emit BEGIN itself.
    """

    @event.listens_for(eng, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(eng, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def get_or_create_engine(db_uri: str) -> Engine:
    eng = _engines.get(db_uri)
    if eng is None:
        if db_uri.startswith("sqlite"):
            # charge reader workers open their own connections
            eng = create_engine(
                db_uri,
                connect_args={"check_same_thread": False},
                future=True,
            )
            _sqlite_transactional(eng)
        else:
            eng = create_engine(
                db_uri,
                pool_pre_ping=True,
                pool_recycle=280,
                pool_size=10,
                max_overflow=20,
                future=True,
            )
        _engines[db_uri] = eng
    return eng


def make_sessionmaker(eng: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=eng,
        future=True,
    )


engine = get_or_create_engine(settings.SQLALCHEMY_DATABASE_URI)

SessionLocal = make_sessionmaker(engine)
