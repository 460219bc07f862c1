from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from .config import DATABASE_URL, DB_ECHO


def get_engine(database_url: str, echo: bool = False):
    engine = create_async_engine(database_url, echo=echo, future=True)

    if engine.dialect.name == "sqlite":
        # SQLite has no row locks; take the write lock when the transaction
        # starts so booking check-then-insert sequences serialize.
        @event.listens_for(engine.sync_engine, "connect")
        def _disable_driver_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def get_session(engine):
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False,
    )


engine = get_engine(DATABASE_URL, echo=DB_ECHO)
SessionLocal = get_session(engine)

Base = declarative_base()


async def get_db():
    async with SessionLocal() as session:
        yield session
