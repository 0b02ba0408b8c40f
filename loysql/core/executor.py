import logging
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

from loysql.core import envelope
from loysql.core.config import Settings
from loysql.core.database import AsyncRoutineInvoker, RoutineInvoker
from loysql.core.exceptions import (
    BuilderConsumedError,
    ConfigurationError,
    DispatchError,
)
from loysql.core.mapper import map_result
from loysql.core.schemas import QueryRequest, ResultShape


# -----------------------------------------------------------------------------
# EXECUTOR MODULE
# Purpose: run named SQL operations through one central database routine.
#
#   users = executor.new_request("GET_USERS_LIST") \
#       .set_argument("categoryId", 1) \
#       .set_argument("cityId", 23) \
#       .execute_list(UserRecord)
# -----------------------------------------------------------------------------

logger = logging.getLogger(__name__)

T = TypeVar("T")
B = TypeVar("B", bound="_BuilderBase")


class _ExecutorBase:
    """Configuration checks, payload creation and logging shared by both executors."""

    def __init__(self, config: Settings):
        if not config.PROCEDURE_NAME or not config.PROCEDURE_NAME.strip():
            raise ConfigurationError(
                "Executor is enabled but 'LOYSQL_PROCEDURE_NAME' is not configured. "
                "Set the procedure name in the environment or .env"
            )
        self.config = config

        logger.info(
            "%s initialized - Procedure: %s, Schema: %s",
            type(self).__name__,
            config.PROCEDURE_NAME,
            config.DEFAULT_SCHEMA,
        )

    @property
    def schema(self) -> Optional[str]:
        # An empty schema is never sent down, the connection's own schema applies
        return self.config.DEFAULT_SCHEMA or None

    def _create_payload(self, request: QueryRequest) -> str:
        payload = envelope.encode(request.query_name, request.params)
        self._log_query(request, payload)
        return payload

    def _log_query(self, request: QueryRequest, payload: str) -> None:
        if not self.config.LOG_QUERIES:
            return
        # Lazy %-args: a broken __repr__ is handled by logging, not raised here
        logger.info(
            "Executing query: %s with params: %s", request.query_name, request.params
        )
        logger.debug("JSON payload: %s", payload)

    def _invoke_kwargs(self, request: QueryRequest) -> Dict[str, Any]:
        return {"schema": self.schema, "catalog": request.catalog or None}


class DynamicSqlExecutor(_ExecutorBase):
    """
    Centralized executor for a database routine that accepts a JSON payload.

    Holds the invoker (the database handle) and the settings for its whole
    lifetime and keeps no per-call state, so a single instance can serve
    every caller.
    """

    def __init__(self, invoker: RoutineInvoker, config: Settings):
        super().__init__(config)
        self.invoker = invoker

    def new_request(self, query_name: str, catalog: Optional[str] = None) -> "QueryBuilder":
        """
        Start building a query execution.

        Args:
            query_name: The query identifier (e.g. "GET_USERS_LIST").
            catalog: Catalog for this request, defaults to DEFAULT_CATALOG.
        """
        return QueryBuilder(self, query_name, catalog)

    def dispatch(
        self,
        request: QueryRequest,
        shape: ResultShape,
        result_type: Optional[Any] = None,
    ) -> Any:
        """
        Encode the request, call the routine and map what it returned.

        Raises:
            SerializationError: Params cannot be encoded, the routine is not called.
            DispatchError: The database call failed.
            MappingError: The result does not fit result_type.
        """
        payload = self._create_payload(request)

        try:
            raw = self.invoker.invoke(
                self.config.PROCEDURE_NAME, payload, **self._invoke_kwargs(request)
            )
        except Exception as error:
            raise DispatchError(request.query_name, error) from error

        return map_result(raw, shape, result_type)


class AsyncDynamicSqlExecutor(_ExecutorBase):
    """Same as DynamicSqlExecutor, for AsyncSession based applications."""

    def __init__(self, invoker: AsyncRoutineInvoker, config: Settings):
        super().__init__(config)
        self.invoker = invoker

    def new_request(
        self, query_name: str, catalog: Optional[str] = None
    ) -> "AsyncQueryBuilder":
        return AsyncQueryBuilder(self, query_name, catalog)

    async def dispatch(
        self,
        request: QueryRequest,
        shape: ResultShape,
        result_type: Optional[Any] = None,
    ) -> Any:
        payload = self._create_payload(request)

        try:
            raw = await self.invoker.invoke(
                self.config.PROCEDURE_NAME, payload, **self._invoke_kwargs(request)
            )
        except Exception as error:
            raise DispatchError(request.query_name, error) from error

        return map_result(raw, shape, result_type)


# =========================
# Builders
# =========================
class _BuilderBase:
    """Accumulates params and the catalog for exactly one execution."""

    def __init__(self, executor: _ExecutorBase, query_name: str, catalog: Optional[str]):
        self.query_name = query_name
        self._executor = executor
        self._params: Dict[str, Any] = {}
        self._catalog = catalog if catalog is not None else executor.config.DEFAULT_CATALOG
        self._consumed = False

    @property
    def catalog(self) -> Optional[str]:
        return self._catalog

    @property
    def params(self) -> Dict[str, Any]:
        return dict(self._params)

    @property
    def consumed(self) -> bool:
        return self._consumed

    def _ensure_open(self) -> None:
        if self._consumed:
            raise BuilderConsumedError(
                f"Query builder for {self.query_name!r} was already executed, "
                "create a new one with new_request()"
            )

    def set_catalog(self: B, name: Optional[str]) -> B:
        """Override the catalog for this query only."""
        self._ensure_open()
        self._catalog = name
        return self

    def set_argument(self: B, name: str, value: Any) -> B:
        """Add a parameter, replacing any earlier value under the same name."""
        self._ensure_open()
        self._params[name] = value
        return self

    def merge_arguments(self: B, params: Optional[Mapping[str, Any]] = None) -> B:
        """Add multiple parameters at once. None or {} leaves things as they are."""
        self._ensure_open()
        if params:
            self._params.update(params)
        return self

    def build(self) -> QueryRequest:
        return QueryRequest(
            query_name=self.query_name, params=self._params, catalog=self._catalog
        )

    def _finalize(self) -> QueryRequest:
        self._ensure_open()
        self._consumed = True
        return self.build()


class QueryBuilder(_BuilderBase):
    """Fluent builder returned by DynamicSqlExecutor.new_request()."""

    def execute_list(self, result_type: Type[T]) -> List[T]:
        """Execute and return every row the routine produced, in its order."""
        return self._executor.dispatch(self._finalize(), ResultShape.LIST, result_type)

    def execute_single(self, result_type: Optional[Type[T]] = None) -> T:
        """Execute and return one value, the type's zero value if there is none."""
        return self._executor.dispatch(self._finalize(), ResultShape.SINGLE, result_type)

    def execute_void(self) -> None:
        """Execute without expecting a result."""
        self._executor.dispatch(self._finalize(), ResultShape.VOID)


class AsyncQueryBuilder(_BuilderBase):
    async def execute_list(self, result_type: Type[T]) -> List[T]:
        return await self._executor.dispatch(
            self._finalize(), ResultShape.LIST, result_type
        )

    async def execute_single(self, result_type: Optional[Type[T]] = None) -> T:
        return await self._executor.dispatch(
            self._finalize(), ResultShape.SINGLE, result_type
        )

    async def execute_void(self) -> None:
        await self._executor.dispatch(self._finalize(), ResultShape.VOID)
