"""
Result schemas - per-call error values and the gateway response.

Error handling contract:
- Batch-level errors (validation, unexpected faults) become a
  GatewayResponse with a non-200 status and a {status, message} body
- Per-call failures are data: a CallError stored under the sub-call's
  name inside a successful response
"""

import json
from dataclasses import dataclass
from typing import Any

from batchgate.errors import GatewayError


@dataclass(frozen=True)
class CallError:
    """
    Captured failure of a single sub-call.

    Attributes:
        status: Status classification (500 unless the error carried one)
        message: Error message
        error_type: Exception class name
    """
    status: int
    message: str
    error_type: str = "Exception"

    @classmethod
    def from_exception(cls, exc: BaseException) -> "CallError":
        status = exc.status_code if isinstance(exc, GatewayError) else 500
        message = exc.message if isinstance(exc, GatewayError) else str(exc)
        return cls(status=status, message=message, error_type=type(exc).__name__)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "message": self.message,
            "error_type": self.error_type,
        }


def _json_default(value: Any) -> Any:
    if isinstance(value, CallError):
        return value.to_dict()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    return str(value)


@dataclass(frozen=True)
class GatewayResponse:
    """Response produced by the gateway for one batch."""
    status: int
    body: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @classmethod
    def from_error(cls, error: GatewayError) -> "GatewayResponse":
        return cls(status=error.status_code, body=error.to_dict())

    def to_json(self, indent: int | None = None) -> str:
        """Serialize the body, rendering CallError values as objects."""
        return json.dumps(self.body, indent=indent, default=_json_default)
