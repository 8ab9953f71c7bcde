from __future__ import annotations

import json

from services.gateway.adapter import RemoteError
from services.gateway.envelope import error_envelope, is_error, success_envelope, unwrap
from services.gateway.errors import (
    InvalidFilterValue,
    RemoteCallFailed,
    RetriesExhausted,
)


def test_error_payload_shape() -> None:
    error = InvalidFilterValue("in", "a list of scalars", index=2, column="id")

    assert error.to_dict() == {
        "error": "Invalid value for operator 'in': expected a list of scalars",
        "details": {
            "type": "InvalidFilterValue",
            "index": 2,
            "column": "id",
            "operator": "in",
            "expected": "a list of scalars",
        },
    }


def test_retries_exhausted_wraps_plain_exceptions() -> None:
    error = RetriesExhausted(3, TimeoutError("read timed out"))

    details = error.to_dict()["details"]
    assert details["attempts"] == 3
    assert details["last_error"] == {"error": "read timed out",
                                     "details": {"type": "TimeoutError"}}


def test_remote_failure_carries_remote_fields() -> None:
    error = RemoteCallFailed(RemoteError("permission denied", code="42501", hint="grant it"))

    payload = error.to_dict()
    assert payload["error"] == "permission denied"
    assert payload["details"]["code"] == "42501"
    assert payload["details"]["hint"] == "grant it"


def test_envelopes() -> None:
    ok = success_envelope({"count": 3})
    assert ok["content"][0]["type"] == "text"
    assert json.loads(ok["content"][0]["text"]) == {"count": 3}
    assert not is_error(ok)

    failed = error_envelope(RemoteCallFailed(RemoteError("boom")))
    assert is_error(failed)
    assert unwrap(failed)["details"]["type"] == "RemoteCallFailed"
