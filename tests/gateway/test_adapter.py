from __future__ import annotations

from types import SimpleNamespace

import httpx
import pytest
from postgrest.exceptions import APIError

from core.config import Settings
from services.gateway.adapter import (
    KIND_API,
    KIND_NETWORK,
    KIND_TIMEOUT,
    RemoteError,
    SupabaseAdapter,
)
from services.gateway.errors import AdapterConfigError


class StubRequest:
    """Built request whose execute() returns or raises a fixed outcome."""

    def __init__(self, outcome):
        self.outcome = outcome

    async def execute(self):
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


@pytest.fixture
def supabase_adapter() -> SupabaseAdapter:
    return SupabaseAdapter(Settings(_env_file=None, supabase_url=None,
                                    supabase_service_role_key=None, supabase_anon_key=None))


class TestRemoteError:

    def test_from_api_error(self) -> None:
        error = APIError({
            "message": "duplicate key value violates unique constraint",
            "code": "23505",
            "hint": None,
            "details": "Key (email)=(a@example.com) already exists.",
        })

        remote = RemoteError.from_api_error(error)

        assert remote.message == "duplicate key value violates unique constraint"
        assert remote.code == "23505"
        assert remote.details == "Key (email)=(a@example.com) already exists."
        assert remote.status is None
        assert remote.kind == KIND_API

    def test_http_style_code_becomes_status(self) -> None:
        remote = RemoteError.from_api_error(APIError({"message": "Not found", "code": "404"}))
        assert remote.status == 404

    def test_to_dict(self) -> None:
        assert RemoteError("boom", code="PGRST116").to_dict() == {
            "message": "boom",
            "code": "PGRST116",
            "details": None,
            "hint": None,
            "status": None,
            "kind": KIND_API,
        }


class TestSupabaseAdapterExecute:

    async def test_success(self, supabase_adapter: SupabaseAdapter) -> None:
        response = SimpleNamespace(data=[{"id": 1}], count=1)

        result = await supabase_adapter.execute(StubRequest(response))

        assert result.ok
        assert result.data == [{"id": 1}]
        assert result.count == 1

    async def test_empty_response(self, supabase_adapter: SupabaseAdapter) -> None:
        result = await supabase_adapter.execute(StubRequest(None))
        assert result.ok and result.data is None

    async def test_api_error_is_reported(self, supabase_adapter: SupabaseAdapter) -> None:
        request = StubRequest(APIError({"message": "permission denied", "code": "42501"}))

        result = await supabase_adapter.execute(request)

        assert not result.ok
        assert result.error.code == "42501"
        assert result.error.message == "permission denied"

    async def test_timeout_is_reported(self, supabase_adapter: SupabaseAdapter) -> None:
        result = await supabase_adapter.execute(StubRequest(httpx.ReadTimeout("timed out")))
        assert result.error.kind == KIND_TIMEOUT

    async def test_connection_failure_is_reported(self, supabase_adapter: SupabaseAdapter) -> None:
        result = await supabase_adapter.execute(StubRequest(httpx.ConnectError("refused")))
        assert result.error.kind == KIND_NETWORK

    async def test_http_status_is_reported(self, supabase_adapter: SupabaseAdapter) -> None:
        request = httpx.Request("GET", "https://db.example.com/rest/v1/users")
        response = httpx.Response(503, request=request)
        error = httpx.HTTPStatusError("Service Unavailable", request=request, response=response)

        result = await supabase_adapter.execute(StubRequest(error))

        assert result.error.status == 503

    async def test_unexpected_errors_propagate(self, supabase_adapter: SupabaseAdapter) -> None:
        with pytest.raises(KeyError):
            await supabase_adapter.execute(StubRequest(KeyError("data")))


class TestSupabaseAdapterLifecycle:

    async def test_startup_requires_credentials(self, supabase_adapter: SupabaseAdapter) -> None:
        with pytest.raises(AdapterConfigError):
            await supabase_adapter.startup()

    def test_builders_require_startup(self, supabase_adapter: SupabaseAdapter) -> None:
        with pytest.raises(AdapterConfigError):
            supabase_adapter.table("users")
        with pytest.raises(AdapterConfigError):
            supabase_adapter.rpc("fn", {})

    async def test_shutdown_before_startup_is_a_no_op(
            self, supabase_adapter: SupabaseAdapter) -> None:
        await supabase_adapter.shutdown()
        assert supabase_adapter.client is None
