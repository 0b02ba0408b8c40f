import json

import pytest
import pytest_asyncio
from sqlalchemy import create_engine, event
from sqlalchemy.ext.asyncio import create_async_engine

from loysql.core.config import Settings
from loysql.core.executor import AsyncDynamicSqlExecutor, DynamicSqlExecutor

ROUTINE_NAME = "EXECUTE_DYNAMIC_SQL"

USERS = [
    {"id": 1, "name": "Aysel", "categoryId": 1, "cityId": 23},
    {"id": 2, "name": "Murad", "categoryId": 1, "cityId": 23},
    {"id": 3, "name": "Leyla", "categoryId": 2, "cityId": 10},
]


# Stand-in for the database side: reads the envelope and answers like the real routine
def dynamic_sql_routine(payload):
    request = json.loads(payload)
    query_name = request["queryName"]
    params = request["params"]

    if query_name == "GET_USERS":
        rows = [
            user
            for user in USERS
            if all(user.get(key) == value for key, value in params.items())
        ]
        return json.dumps(rows)
    if query_name == "GET_USER":
        found = [user for user in USERS if user["id"] == params.get("userId")]
        return json.dumps(found[0]) if found else None
    if query_name == "COUNT_USERS":
        return len(USERS)
    if query_name == "ECHO":
        return payload
    if query_name == "NOTHING":
        return None

    raise ValueError(f"Unknown query: {query_name}")


class RecordingInvoker:
    """Fake invoker that remembers every call and returns a canned result."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def invoke(self, routine_name, payload, schema=None, catalog=None):
        self.calls.append(
            {
                "routine_name": routine_name,
                "payload": payload,
                "schema": schema,
                "catalog": catalog,
            }
        )
        if self.error is not None:
            raise self.error
        return self.result


class AsyncRecordingInvoker(RecordingInvoker):
    async def invoke(self, routine_name, payload, schema=None, catalog=None):
        return super().invoke(routine_name, payload, schema=schema, catalog=catalog)


def make_settings(**overrides):
    # Never read a developer's .env during tests
    values = {
        "PROCEDURE_NAME": ROUTINE_NAME,
        "DEFAULT_SCHEMA": "LOY",
        "DEFAULT_CATALOG": "",
        "LOG_QUERIES": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


# Settings
@pytest.fixture
def config():
    return make_settings()


# Invoker that records calls instead of talking to a database
@pytest.fixture
def invoker():
    return RecordingInvoker()


@pytest.fixture
def executor(invoker, config):
    return DynamicSqlExecutor(invoker, config)


@pytest.fixture
def async_invoker():
    return AsyncRecordingInvoker()


@pytest.fixture
def async_executor(async_invoker, config):
    return AsyncDynamicSqlExecutor(async_invoker, config)


# SQLite cannot qualify function names, so no schema here
@pytest.fixture
def sqlite_config():
    return make_settings(DEFAULT_SCHEMA=None)


# In-memory SQLite with the routine registered on every new connection
@pytest.fixture
def sqlite_engine():
    engine = create_engine("sqlite://")

    @event.listens_for(engine, "connect")
    def register_routine(dbapi_connection, connection_record):
        dbapi_connection.create_function(ROUTINE_NAME, 1, dynamic_sql_routine)

    yield engine
    engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def async_sqlite_engine():
    pytest.importorskip("aiosqlite")
    engine = create_async_engine("sqlite+aiosqlite://")

    @event.listens_for(engine.sync_engine, "connect")
    def register_routine(dbapi_connection, connection_record):
        dbapi_connection.create_function(ROUTINE_NAME, 1, dynamic_sql_routine)

    yield engine
    await engine.dispose()


# Build Settings with a few fields changed
@pytest.fixture
def settings_factory():
    return make_settings
