from typing import Any, AsyncIterator, Iterator, Optional, Protocol, Union

from sqlalchemy import Engine, Select, Text, bindparam, create_engine, select
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.sql.functions import Function

from loysql.core.config import Settings, settings
from loysql.core.exceptions import ConfigurationError

# Name of the single IN parameter of the central routine
PAYLOAD_PARAM = "p_json"


# =========================
# Invocation protocols
# =========================
class RoutineInvoker(Protocol):
    def invoke(
        self,
        routine_name: str,
        payload: str,
        schema: Optional[str] = None,
        catalog: Optional[str] = None,
    ) -> Any: ...


class AsyncRoutineInvoker(Protocol):
    async def invoke(
        self,
        routine_name: str,
        payload: str,
        schema: Optional[str] = None,
        catalog: Optional[str] = None,
    ) -> Any: ...


def build_call(
    routine_name: str,
    payload: str,
    schema: Optional[str] = None,
    catalog: Optional[str] = None,
) -> Select:
    """
    Build SELECT [schema.][catalog.]routine(:p_json).

    Empty qualifiers are skipped so the connection's current schema applies.
    The dialect adds quoting and FROM DUAL where it needs them.
    """

    qualifiers = tuple(name for name in (schema, catalog) if name)
    routine = Function(
        routine_name,
        bindparam(PAYLOAD_PARAM, payload, type_=Text),
        packagenames=qualifiers,
    )
    return select(routine.label("result"))


# =========================
# SQLAlchemy invokers
# =========================
class SqlAlchemyInvoker:
    """
    Calls the routine through a SQLAlchemy Session, Connection or Engine.

    With a Session or Connection the caller owns the transaction. With an
    Engine every call checks out its own connection and commits on success.
    """

    def __init__(self, bind: Union[Session, Connection, Engine]):
        self.bind = bind

    def invoke(self, routine_name, payload, schema=None, catalog=None):
        statement = build_call(routine_name, payload, schema, catalog)

        if isinstance(self.bind, Engine):
            with self.bind.begin() as conn:
                return conn.execute(statement).scalar()

        return self.bind.execute(statement).scalar()


class AsyncSqlAlchemyInvoker:
    """Async twin of SqlAlchemyInvoker for AsyncSession/AsyncConnection/AsyncEngine."""

    def __init__(self, bind: Union[AsyncSession, AsyncConnection, AsyncEngine]):
        self.bind = bind

    async def invoke(self, routine_name, payload, schema=None, catalog=None):
        statement = build_call(routine_name, payload, schema, catalog)

        if isinstance(self.bind, AsyncEngine):
            async with self.bind.begin() as conn:
                result = await conn.execute(statement)
                return result.scalar()

        result = await self.bind.execute(statement)
        return result.scalar()


# =========================
# Engines and sessions
# =========================
def _database_url(config: Settings) -> str:
    if not config.DATABASE_URL:
        raise ConfigurationError(
            "No database configured. Set LOYSQL_DATABASE_URL in the environment or .env"
        )
    return config.DATABASE_URL


def create_db_engine(config: Settings = settings, **kwargs) -> Engine:
    kwargs.setdefault("echo", config.ECHO_SQL)
    return create_engine(_database_url(config), **kwargs)


def create_async_db_engine(config: Settings = settings, **kwargs) -> AsyncEngine:
    kwargs.setdefault("echo", config.ECHO_SQL)
    return create_async_engine(_database_url(config), **kwargs)


def get_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, class_=Session, expire_on_commit=False)


def get_async_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    # No refresh after commit, the session may already be gone in async code
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


# Dependency style helpers: one session per unit of work
def get_db(engine: Engine) -> Iterator[Session]:
    with get_session_factory(engine)() as session:
        yield session


async def get_async_db(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    async with get_async_session_factory(engine)() as session:
        yield session
