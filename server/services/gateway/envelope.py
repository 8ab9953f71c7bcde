"""Uniform response envelopes.

Every dispatched operation produces exactly one envelope:

    {"content": [{"type": "text", "text": <JSON string>}]}

The JSON payload is the operation's success payload or
``{"error": message, "details": {...}}``.
"""

import json
from typing import Any, Dict

from .errors import GatewayError

Envelope = Dict[str, Any]


def _text_envelope(payload: Any) -> Envelope:
    return {
        "content": [{
            "type": "text",
            "text": json.dumps(payload, indent=2, default=str),
        }]
    }


def success_envelope(payload: Any) -> Envelope:
    return _text_envelope(payload)


def error_envelope(error: GatewayError) -> Envelope:
    return _text_envelope(error.to_dict())


def unwrap(envelope: Envelope) -> Any:
    """Decode the JSON payload carried by an envelope."""
    return json.loads(envelope["content"][0]["text"])


def is_error(envelope: Envelope) -> bool:
    payload = unwrap(envelope)
    return isinstance(payload, dict) and "error" in payload
