import logging
from typing import Any, Optional

from sqlalchemy import Engine
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncSession
from sqlalchemy.orm import Session

from loysql.core.config import Settings, settings
from loysql.core.database import AsyncSqlAlchemyInvoker, SqlAlchemyInvoker
from loysql.core.executor import AsyncDynamicSqlExecutor, DynamicSqlExecutor

logger = logging.getLogger(__name__)

_SYNC_BINDS = (Session, Connection, Engine)
_ASYNC_BINDS = (AsyncSession, AsyncConnection, AsyncEngine)


def _log_configuration(config: Settings) -> None:
    logger.debug(
        "Configuration - Default Schema: %s, Log Queries: %s",
        config.DEFAULT_SCHEMA,
        config.LOG_QUERIES,
    )


def create_executor(bind: Any, config: Settings = settings) -> Optional[DynamicSqlExecutor]:
    """
    Wire a DynamicSqlExecutor from settings, the way an application would at startup.

    Args:
        bind: SQLAlchemy Session/Connection/Engine, or any RoutineInvoker.
        config: Settings to use, the process-wide instance by default.

    Returns:
        The executor, or None when LOYSQL_ENABLED is false.

    Raises:
        ConfigurationError: The procedure name is empty.

    Example:
        with Session(engine) as session:
            executor = create_executor(session)
    """

    if not config.ENABLED:
        logger.info("Dynamic SQL executor disabled (LOYSQL_ENABLED=false)")
        return None

    logger.info("Initializing Dynamic SQL executor")
    _log_configuration(config)

    invoker = SqlAlchemyInvoker(bind) if isinstance(bind, _SYNC_BINDS) else bind
    executor = DynamicSqlExecutor(invoker, config)

    logger.info("Dynamic SQL executor initialized successfully")
    return executor


def create_async_executor(
    bind: Any, config: Settings = settings
) -> Optional[AsyncDynamicSqlExecutor]:
    """Async counterpart of create_executor()."""

    if not config.ENABLED:
        logger.info("Dynamic SQL executor disabled (LOYSQL_ENABLED=false)")
        return None

    logger.info("Initializing async Dynamic SQL executor")
    _log_configuration(config)

    invoker = AsyncSqlAlchemyInvoker(bind) if isinstance(bind, _ASYNC_BINDS) else bind
    executor = AsyncDynamicSqlExecutor(invoker, config)

    logger.info("Async Dynamic SQL executor initialized successfully")
    return executor
