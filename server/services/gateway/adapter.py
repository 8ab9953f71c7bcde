"""Remote data adapter for the hosted relational data service.

The dispatcher only talks to the narrow RemoteDataAdapterProtocol:

    adapter.table(name, schema=None) -> query builder
    adapter.rpc(function_name, params) -> query builder
    await adapter.execute(builder) -> AdapterResult

Builders expose the PostgREST chain (select/insert/update/delete/upsert,
filter methods, order/limit/range/single). ``execute`` never raises for
remote failures: it reports them in ``AdapterResult.error``.

Usage:
    adapter = SupabaseAdapter(settings)
    await adapter.startup()
    result = await adapter.execute(adapter.table("users").select("*").eq("id", 1))
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client

from core.config import Settings
from core.logging import get_logger
from .errors import AdapterConfigError

logger = get_logger(__name__)


# Failure kinds reported by adapters
KIND_API = "api"
KIND_TIMEOUT = "timeout"
KIND_NETWORK = "network"
# Raised by adapter code rather than reported by the service
KIND_UNCLASSIFIED = "unclassified"


@dataclass
class RemoteError:
    """Error reported by the remote data service."""
    message: str
    code: Optional[str] = None
    details: Any = None
    hint: Optional[str] = None
    status: Optional[int] = None
    kind: str = KIND_API

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "hint": self.hint,
            "status": self.status,
            "kind": self.kind,
        }

    @classmethod
    def from_api_error(cls, error: APIError) -> "RemoteError":
        """Create from a PostgREST APIError."""
        code = getattr(error, "code", None)
        status = None
        # PostgREST reports HTTP-ish codes ("404") for some gateway errors
        if isinstance(code, str) and code.isdigit() and len(code) == 3:
            status = int(code)
        return cls(
            message=getattr(error, "message", None) or str(error),
            code=code,
            details=getattr(error, "details", None),
            hint=getattr(error, "hint", None),
            status=status,
        )


@dataclass
class AdapterResult:
    """{data, error, count?} as returned by the remote service."""
    data: Any = None
    error: Optional[RemoteError] = None
    count: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RemoteDataAdapterProtocol(Protocol):
    """Protocol for remote data adapters (enables duck typing)."""

    def table(self, name: str, schema: Optional[str] = None) -> Any:
        """Start a query builder scoped to one table."""
        ...

    def rpc(self, function_name: str, params: Dict[str, Any]) -> Any:
        """Start a remote procedure call."""
        ...

    async def execute(self, request: Any) -> AdapterResult:
        """Run a built request; failures are reported, not raised."""
        ...


class SupabaseAdapter:
    """Adapter backed by the async Supabase client.

    The client is created in ``startup()``; missing credentials raise
    AdapterConfigError, which is allowed to terminate the process.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.client: Optional[AsyncClient] = None

    async def startup(self) -> None:
        """Create the async client."""
        if not self.settings.has_credentials:
            raise AdapterConfigError("Supabase credentials not configured")

        self.client = await acreate_client(self.settings.supabase_url, self.settings.supabase_key)
        logger.info("Supabase adapter initialized",
                    url=self.settings.supabase_url,
                    using_service_key=bool(self.settings.supabase_service_role_key))

    async def shutdown(self) -> None:
        """Close the client's HTTP session."""
        if self.client is not None:
            await self.client.postgrest.aclose()
            self.client = None
            logger.info("Supabase adapter closed")

    def _require_client(self) -> AsyncClient:
        if self.client is None:
            raise AdapterConfigError("Supabase adapter used before startup()")
        return self.client

    def table(self, name: str, schema: Optional[str] = None) -> Any:
        client = self._require_client()
        if schema:
            return client.schema(schema).table(name)
        return client.table(name)

    def rpc(self, function_name: str, params: Dict[str, Any]) -> Any:
        return self._require_client().rpc(function_name, params)

    async def execute(self, request: Any) -> AdapterResult:
        """Execute a built request, translating raised errors into results."""
        try:
            response = await request.execute()
        except APIError as e:
            return AdapterResult(error=RemoteError.from_api_error(e))
        except httpx.TimeoutException as e:
            return AdapterResult(error=RemoteError(
                message=f"Request timed out: {e}", kind=KIND_TIMEOUT))
        except httpx.HTTPStatusError as e:
            return AdapterResult(error=RemoteError(
                message=str(e), status=e.response.status_code))
        except httpx.TransportError as e:
            return AdapterResult(error=RemoteError(
                message=f"Connection failed: {e}", kind=KIND_NETWORK))

        if response is None:
            # maybe_single() style builders return None for zero rows
            return AdapterResult(data=None)
        return AdapterResult(data=response.data, count=getattr(response, "count", None))
