"""Command dispatcher for table operations.

Per dispatched call:
    Received -> Validated -> (CacheHit | RemoteAttempt{1..N}) -> Succeeded | Failed

Implements:
- Operation resolution and required-parameter validation
- TTL memoization of read results (mutations bypass the cache)
- Filter compilation onto the remote query builder
- Bounded retry through the RetryExecutor
- Metrics for every call that reaches the remote stage
- Exactly one response envelope per call; errors never escape as exceptions
"""

import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from constants import (
    BATCH_OPERATIONS,
    DEFAULT_PAGE_SIZE,
    DEFAULT_SELECT,
    INFORMATION_SCHEMA,
    RETURNING_MINIMAL,
    RETURNING_REPRESENTATION,
)
from core.cache import QueryCache
from core.logging import dispatch_context, get_logger, log_execution_time
from .adapter import AdapterResult, RemoteDataAdapterProtocol
from .envelope import Envelope, error_envelope, success_envelope
from .errors import (
    GatewayError,
    InvalidParameter,
    MissingParameter,
    RemoteCallFailed,
    RequestValidationError,
    UnknownOperation,
)
from .filters import compile_filters, parse_filters
from .metrics import MetricsAggregator
from .models import FilterCondition, QuerySpec, fingerprint, require_table
from .operations import OperationSpec, OperationType, resolve_operation
from .retry import Deadline, RetryExecutor

logger = get_logger(__name__)

Handler = Callable[[Dict[str, Any], Optional[Deadline]], Awaitable[Any]]


class DataDispatcher:
    """Resolves operation names to handlers and orchestrates remote calls.

    The cache and metrics are injected service objects owned by this
    dispatcher; no other component writes to them.
    """

    def __init__(self, adapter: RemoteDataAdapterProtocol,
                 cache: QueryCache,
                 metrics: MetricsAggregator,
                 retry: RetryExecutor,
                 default_page_size: int = DEFAULT_PAGE_SIZE,
                 db_schema: str = "public",
                 request_timeout: Optional[float] = None):
        """Initialize dispatcher.

        Args:
            adapter: Remote data adapter
            cache: TTL cache for read results
            metrics: Metrics aggregator
            retry: Executor wrapping every remote call
            default_page_size: Range size when offset is given without limit
            db_schema: Schema inspected by the schema operation
            request_timeout: Default per-call deadline in seconds (None = none)
        """
        self.adapter = adapter
        self.cache = cache
        self.metrics = metrics
        self.retry = retry
        self.default_page_size = default_page_size
        self.db_schema = db_schema
        self.request_timeout = request_timeout

        self._handlers: Dict[OperationType, Handler] = {
            OperationType.QUERY: self._query,
            OperationType.INSERT: self._insert,
            OperationType.UPDATE: self._update,
            OperationType.DELETE: self._delete,
            OperationType.UPSERT: self._upsert,
            OperationType.RPC: self._rpc,
            OperationType.COUNT: self._count,
            OperationType.BATCH: self._batch,
            OperationType.SCHEMA: self._schema,
            OperationType.METRICS: self._metrics,
        }

    # =========================================================================
    # ENTRY POINT
    # =========================================================================

    async def dispatch(self, operation: str, parameters: Optional[Mapping[str, Any]] = None,
                       timeout: Optional[float] = None) -> Envelope:
        """Dispatch one operation and wrap the outcome in an envelope.

        Args:
            operation: Operation wire name (e.g. "query")
            parameters: Operation parameters
            timeout: Per-call deadline in seconds; falls back to request_timeout

        Returns:
            Success or error envelope
        """
        self.cache.sweep()

        with dispatch_context(str(operation)):
            try:
                deadline = self._deadline(timeout)
                payload = await self._run(operation, parameters, deadline)
            except GatewayError as e:
                self._log_failure(operation, e)
                return error_envelope(e)

        return success_envelope(payload)

    async def _run(self, operation: str, parameters: Optional[Mapping[str, Any]],
                   deadline: Optional[Deadline]) -> Any:
        """Validate, consult the cache, execute and record one operation.

        Returns the success payload; raises GatewayError on failure.
        """
        spec = resolve_operation(operation)
        if parameters is not None and not isinstance(parameters, Mapping):
            raise InvalidParameter("parameters", "must be an object")
        params = dict(parameters or {})
        # Validation annotates params; the cache key covers the caller's fields only
        caller_params = dict(params)
        self._validate(spec, params)
        cache_key = fingerprint(spec.name, caller_params) if spec.cacheable else None

        if cache_key is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                self.metrics.record_cache_hit()
                logger.debug("Cache hit", operation=spec.name, cache_key=cache_key)
                return cached

        handler = self._handlers[spec.operation]
        if not spec.remote:
            return await handler(params, deadline)

        started_at = self.metrics.start()
        wall_start = time.time()
        try:
            payload = await handler(params, deadline)
        except RequestValidationError:
            raise  # rejected while building the request, nothing was sent
        except GatewayError:
            self.metrics.record(started_at, False)
            raise

        self.metrics.record(started_at, True)
        if cache_key is not None:
            self.cache.set(cache_key, payload)

        log_execution_time(logger, spec.name, wall_start, time.time(),
                           table=params.get("table"))
        return payload

    def _deadline(self, timeout: Any) -> Optional[Deadline]:
        """Deadline for one call; the caller's timeout wins over request_timeout."""
        if timeout is None:
            timeout = self.request_timeout
        elif isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise InvalidParameter("timeout", "must be a positive number of seconds")
        return Deadline.after(timeout)

    def _validate(self, spec: OperationSpec, params: Dict[str, Any]) -> None:
        """Required fields, then filter shape, before anything remote happens."""
        spec.validate(params)
        if spec.accepts_filters:
            params["_filters"] = parse_filters(params.get("filters"), spec.operators)
        if "table" in spec.required:
            require_table(params)

    def _log_failure(self, operation: str, error: GatewayError) -> None:
        if isinstance(error, RequestValidationError):
            logger.warning("Request rejected", operation=operation, error=str(error))
        else:
            logger.error("Operation failed", operation=operation, error=str(error),
                         error_type=type(error).__name__)

    # =========================================================================
    # REMOTE EXECUTION
    # =========================================================================

    async def _execute(self, request: Any, deadline: Optional[Deadline],
                       label: str) -> AdapterResult:
        """Run a built request through the retry executor.

        A non-null adapter error becomes RemoteCallFailed inside the retried
        operation, so it consumes retry budget when transient.
        """
        async def attempt() -> AdapterResult:
            result = await self.adapter.execute(request)
            if result.error is not None:
                raise RemoteCallFailed(result.error)
            return result

        return await self.retry.execute(attempt, deadline=deadline, label=label)

    @staticmethod
    def _filters(params: Dict[str, Any]) -> List[FilterCondition]:
        return params.get("_filters") or []

    @staticmethod
    def _returning(params: Dict[str, Any]) -> str:
        returning = params.get("returning")
        if returning is None:
            returning = True
        if not isinstance(returning, bool):
            raise InvalidParameter("returning", "must be a boolean")
        return RETURNING_REPRESENTATION if returning else RETURNING_MINIMAL

    @staticmethod
    def _records(params: Dict[str, Any]) -> Any:
        data = params["data"]
        if isinstance(data, Mapping):
            return dict(data)
        if isinstance(data, list) and data and all(isinstance(r, Mapping) for r in data):
            return [dict(r) for r in data]
        raise InvalidParameter("data", "must be an object or a non-empty list of objects")

    # =========================================================================
    # HANDLERS
    # =========================================================================

    async def _query(self, params: Dict[str, Any], deadline: Optional[Deadline]) -> Dict[str, Any]:
        spec = QuerySpec.from_params(params, self._filters(params))

        query = self.adapter.table(spec.table).select(spec.select)
        query = compile_filters(query, spec.filters)

        if spec.order is not None:
            query = query.order(spec.order.column, desc=not spec.order.ascending)
        if spec.limit is not None:
            query = query.limit(spec.limit)
        bounds = spec.range_bounds(self.default_page_size)
        if bounds is not None:
            query = query.range(*bounds)
        if spec.single:
            query = query.single()

        result = await self._execute(query, deadline, "query")
        return {"data": result.data, "count": result.count}

    async def _insert(self, params: Dict[str, Any], deadline: Optional[Deadline]) -> Dict[str, Any]:
        table = require_table(params)
        request = self.adapter.table(table).insert(
            self._records(params), returning=self._returning(params)
        )
        result = await self._execute(request, deadline, "insert")
        return {"success": True, "data": result.data}

    async def _update(self, params: Dict[str, Any], deadline: Optional[Deadline]) -> Dict[str, Any]:
        table = require_table(params)
        patch = params["data"]
        if not isinstance(patch, Mapping) or not patch:
            raise InvalidParameter("data", "must be a non-empty object")

        request = self.adapter.table(table).update(dict(patch), returning=self._returning(params))
        request = compile_filters(request, self._filters(params))
        result = await self._execute(request, deadline, "update")
        return {"success": True, "data": result.data}

    async def _delete(self, params: Dict[str, Any], deadline: Optional[Deadline]) -> Dict[str, Any]:
        table = require_table(params)
        request = self.adapter.table(table).delete(returning=self._returning(params))
        request = compile_filters(request, self._filters(params))
        result = await self._execute(request, deadline, "delete")
        return {"success": True, "data": result.data}

    async def _upsert(self, params: Dict[str, Any], deadline: Optional[Deadline]) -> Dict[str, Any]:
        table = require_table(params)
        on_conflict = params.get("onConflict")
        if on_conflict is not None and not isinstance(on_conflict, str):
            raise InvalidParameter("onConflict", "must be a comma-separated column string")

        request = self.adapter.table(table).upsert(
            self._records(params),
            on_conflict=on_conflict or "",
            returning=self._returning(params),
        )
        result = await self._execute(request, deadline, "upsert")
        return {"success": True, "data": result.data}

    async def _rpc(self, params: Dict[str, Any], deadline: Optional[Deadline]) -> Dict[str, Any]:
        function_name = params["functionName"]
        if not isinstance(function_name, str) or not function_name:
            raise InvalidParameter("functionName", "must be a non-empty string")
        arguments = params.get("params")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, Mapping):
            raise InvalidParameter("params", "must be an object")

        request = self.adapter.rpc(function_name, dict(arguments))
        result = await self._execute(request, deadline, "rpc")
        return {"success": True, "data": result.data}

    async def _count(self, params: Dict[str, Any], deadline: Optional[Deadline]) -> Dict[str, Any]:
        table = require_table(params)
        query = self.adapter.table(table).select(DEFAULT_SELECT, count="exact", head=True)
        query = compile_filters(query, self._filters(params))
        result = await self._execute(query, deadline, "count")
        return {"count": result.count}

    async def _schema(self, params: Dict[str, Any], deadline: Optional[Deadline]) -> Dict[str, Any]:
        """Two reads (tables, columns) aggregated into one payload."""
        table = params.get("table")
        if table is not None and (not isinstance(table, str) or not table):
            raise InvalidParameter("table", "must be a non-empty string")

        def scoped(name: str) -> Any:
            query = (self.adapter.table(name, schema=INFORMATION_SCHEMA)
                     .select(DEFAULT_SELECT)
                     .eq("table_schema", self.db_schema))
            if table:
                query = query.eq("table_name", table)
            return query

        tables = await self._execute(scoped("tables"), deadline, "schema.tables")
        columns = await self._execute(scoped("columns"), deadline, "schema.columns")
        return {"tables": tables.data, "columns": columns.data}

    async def _metrics(self, params: Dict[str, Any], deadline: Optional[Deadline]) -> Dict[str, Any]:
        return self.metrics.snapshot()

    async def _batch(self, params: Dict[str, Any], deadline: Optional[Deadline]) -> Dict[str, Any]:
        """Run each item independently; no cross-item atomicity.

        A failed item does not stop or roll back the others.
        """
        operations = params["operations"]
        if not isinstance(operations, list):
            raise InvalidParameter("operations", "must be a list")

        results = []
        for index, item in enumerate(operations):
            results.append(await self._batch_item(index, item, deadline))

        success = all(slot["success"] for slot in results)
        logger.info("Batch completed",
                    items=len(results),
                    failed=sum(1 for slot in results if not slot["success"]))
        return {"success": success, "results": results}

    async def _batch_item(self, index: int, item: Any,
                          deadline: Optional[Deadline]) -> Dict[str, Any]:
        slot: Dict[str, Any] = {"index": index}
        try:
            if not isinstance(item, Mapping):
                raise InvalidParameter(f"operations[{index}]", "must be an object")

            verb = item.get("operation")
            slot["operation"] = verb
            slot["table"] = item.get("table")
            if verb is None:
                raise MissingParameter(OperationType.BATCH.value, "operation")
            if verb not in BATCH_OPERATIONS:
                raise UnknownOperation(str(verb))

            options = item.get("options")
            if options is None:
                options = {}
            if not isinstance(options, Mapping):
                raise InvalidParameter("options", "must be an object")

            sub_params: Dict[str, Any] = {"table": item.get("table")}
            if item.get("data") is not None:
                sub_params["data"] = item["data"]
            sub_params.update(options)

            payload = await self._run(BATCH_OPERATIONS[verb], sub_params, deadline)
        except GatewayError as e:
            error = e.to_dict()
            slot.update(success=False, error=error["error"], details=error["details"])
            return slot

        slot.update(success=True, data=payload)
        return slot
