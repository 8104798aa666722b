"""
Error classes for batchgate.

Two families of errors exist:
- GatewayError: batch-level errors that carry a status classification.
  Validation errors short-circuit the whole batch before anything runs.
- ConfigError: raised while loading or validating gateway configuration.

Per-call invocation failures are NOT raised past the executor. They are
captured as CallError values in the result mapping (see schemas.result).
"""


class BatchgateError(Exception):
    """Base exception for batchgate."""
    pass


class GatewayError(BatchgateError):
    """
    Batch-level error with a status classification.

    Subclasses set a default status_code and message. Both can be
    overridden per instance.
    """

    status_code = 500
    default_message = "Internal Gateway Error"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    @property
    def status(self) -> int:
        """Alias for status_code."""
        return self.status_code

    def to_dict(self) -> dict:
        """Structured error body returned to the caller."""
        return {"status": self.status_code, "message": self.message}


class InvalidRequestBody(GatewayError):
    """
    Batch is empty or malformed.

    Examples:
    - body is neither a mapping nor a list
    - a sub-call has no method
    - a sub-call depends on itself, on an unknown name, or on a cycle
    """
    status_code = 422
    default_message = "Invalid Request Body"


class MaxRequestsExceeded(GatewayError):
    """Sub-call count exceeds the configured maximum."""
    status_code = 406
    default_message = "Max Requests Exceeded"


class ForbiddenRequest(GatewayError):
    """A referenced method fails the allow/deny policy check."""
    status_code = 403
    default_message = "Forbidden Request"


class MethodNotFound(GatewayError):
    """The invoker cannot resolve a method name."""
    status_code = 404
    default_message = "Method Not Found"


class InvocationTimeout(GatewayError):
    """A method did not settle within the invoker timeout."""
    status_code = 504
    default_message = "Invocation Timed Out"


class ConfigError(BatchgateError):
    """Configuration validation error."""
    pass
