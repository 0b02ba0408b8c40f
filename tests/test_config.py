import pytest
from pydantic import ValidationError

from loysql.core.autoconfig import create_async_executor, create_executor
from loysql.core.config import Settings
from loysql.core.database import AsyncSqlAlchemyInvoker, SqlAlchemyInvoker
from loysql.core.exceptions import ConfigurationError
from loysql.core.executor import AsyncDynamicSqlExecutor, DynamicSqlExecutor


def test_defaults(monkeypatch):
    for name in (
        "LOYSQL_PROCEDURE_NAME",
        "LOYSQL_DEFAULT_SCHEMA",
        "LOYSQL_DEFAULT_CATALOG",
        "LOYSQL_LOG_QUERIES",
        "LOYSQL_ENABLED",
    ):
        monkeypatch.delenv(name, raising=False)

    config = Settings(_env_file=None)

    assert config.ENABLED is True
    assert config.PROCEDURE_NAME == "EXECUTE_DYNAMIC_SQL"
    assert config.DEFAULT_SCHEMA is None
    assert config.DEFAULT_CATALOG is None
    assert config.LOG_QUERIES is False


def test_reads_prefixed_environment(monkeypatch):
    monkeypatch.setenv("LOYSQL_PROCEDURE_NAME", "DYNAMIC_SQL_EXECUTOR")
    monkeypatch.setenv("LOYSQL_DEFAULT_SCHEMA", "LOYALTY_SCHEMA")
    monkeypatch.setenv("LOYSQL_LOG_QUERIES", "true")
    monkeypatch.setenv("LOYSQL_ENABLED", "false")

    config = Settings(_env_file=None)

    assert config.PROCEDURE_NAME == "DYNAMIC_SQL_EXECUTOR"
    assert config.DEFAULT_SCHEMA == "LOYALTY_SCHEMA"
    assert config.LOG_QUERIES is True
    assert config.ENABLED is False


def test_reads_env_file(tmp_path, monkeypatch):
    monkeypatch.delenv("LOYSQL_DEFAULT_CATALOG", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("LOYSQL_DEFAULT_CATALOG=PKG_LOYALTY\nOTHER_SETTING=ignored\n")

    config = Settings(_env_file=env_file)

    assert config.DEFAULT_CATALOG == "PKG_LOYALTY"


def test_settings_are_frozen(config):
    with pytest.raises(ValidationError):
        config.PROCEDURE_NAME = "OTHER"


# =========================
# Wiring
# =========================
def test_create_executor_wraps_engine(sqlite_engine, config):
    executor = create_executor(sqlite_engine, config)

    assert isinstance(executor, DynamicSqlExecutor)
    assert isinstance(executor.invoker, SqlAlchemyInvoker)
    assert executor.invoker.bind is sqlite_engine


def test_create_executor_keeps_custom_invoker(invoker, config):
    executor = create_executor(invoker, config)

    assert executor.invoker is invoker


def test_create_executor_disabled(invoker, settings_factory):
    assert create_executor(invoker, settings_factory(ENABLED=False)) is None


def test_create_executor_empty_procedure_name(invoker, settings_factory):
    with pytest.raises(ConfigurationError):
        create_executor(invoker, settings_factory(PROCEDURE_NAME=""))


def test_create_executor_disabled_skips_validation(invoker, settings_factory):
    config = settings_factory(ENABLED=False, PROCEDURE_NAME="")

    assert create_executor(invoker, config) is None


@pytest.mark.asyncio
async def test_create_async_executor(async_sqlite_engine, config):
    executor = create_async_executor(async_sqlite_engine, config)

    assert isinstance(executor, AsyncDynamicSqlExecutor)
    assert isinstance(executor.invoker, AsyncSqlAlchemyInvoker)


def test_create_async_executor_disabled(async_invoker, settings_factory):
    assert create_async_executor(async_invoker, settings_factory(ENABLED=False)) is None
