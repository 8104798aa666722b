"""
Schema validation for submitted batches.

Checks run in three groups and stop at the first failing group:
1. Structural   -> InvalidRequestBody
   - every sub-call has a non-empty string method
   - no sub-call depends on itself
   - every dependency names a sub-call of the same batch
   - the dependency graph has no cycle
2. Cardinality  -> InvalidRequestBody (empty) / MaxRequestsExceeded (more
   distinct methods than the policy maximum)
3. Policy       -> ForbiddenRequest
   - deny-list is evaluated first and wins over the allow-list
   - an empty allow-list allows everything

Validation is side-effect free: errors are returned, not raised.
"""

import logging
from typing import Any, Optional

from batchgate.config import PolicyConfig
from batchgate.errors import (
    ForbiddenRequest,
    GatewayError,
    InvalidRequestBody,
    MaxRequestsExceeded,
)
from batchgate.globmatch import matches
from batchgate.schemas import BatchDocument

logger = logging.getLogger(__name__)


def find_cycle(document: BatchDocument) -> Optional[list[str]]:
    """
    Return one dependency cycle as a list of names, or None.

    Dangling dependency names are ignored here; they are reported
    separately by the structural check.
    """
    done: set[str] = set()

    for root in document.names():
        if root in done:
            continue
        path: list[str] = [root]
        on_path: set[str] = {root}
        pending = [iter(sorted(document[root].dependencies))]

        while pending:
            dep = next(pending[-1], None)
            if dep is None:
                pending.pop()
                finished = path.pop()
                on_path.discard(finished)
                done.add(finished)
                continue
            if dep not in document or dep in done:
                continue
            if dep in on_path:
                return path[path.index(dep):] + [dep]
            path.append(dep)
            on_path.add(dep)
            pending.append(iter(sorted(document[dep].dependencies)))

    return None


def _check_structure(document: BatchDocument) -> Optional[GatewayError]:
    for call in document:
        if not isinstance(call.method, str) or not call.method:
            return InvalidRequestBody(
                f"Invalid Request Body: sub-call '{call.name}' has no method"
            )
        if call.name in call.dependencies:
            return InvalidRequestBody(
                f"Invalid Request Body: sub-call '{call.name}' depends on itself"
            )
        missing = sorted(d for d in call.dependencies if d not in document)
        if missing:
            return InvalidRequestBody(
                f"Invalid Request Body: sub-call '{call.name}' depends on unknown "
                f"sub-call(s): {missing}"
            )

    cycle = find_cycle(document)
    if cycle:
        return InvalidRequestBody(
            f"Invalid Request Body: dependency cycle {' -> '.join(cycle)}"
        )
    return None


def _check_cardinality(document: BatchDocument, policy: PolicyConfig) -> Optional[GatewayError]:
    if len(document) == 0:
        return InvalidRequestBody("Invalid Request Body: batch is empty")
    methods = document.methods()
    if len(methods) > policy.max_requests:
        return MaxRequestsExceeded(
            f"Max Requests Exceeded: {len(methods)} distinct methods, maximum is {policy.max_requests}"
        )
    return None


def _check_policy(document: BatchDocument, policy: PolicyConfig) -> Optional[GatewayError]:
    methods = document.methods()

    if policy.forbidden_apis:
        denied = [m for m in methods if matches(m, policy.forbidden_apis)]
        if denied:
            return ForbiddenRequest(f"Forbidden Request: {denied}")

    if policy.allowed_apis:
        outside = [m for m in methods if not matches(m, policy.allowed_apis)]
        if outside:
            return ForbiddenRequest(f"Forbidden Request: {outside}")

    return None


def validate(document: BatchDocument, policy: PolicyConfig) -> Optional[GatewayError]:
    """
    Validate a parsed batch against structural rules and policy.

    Args:
        document: Parsed batch document
        policy: Admission policy

    Returns:
        The first applicable GatewayError, or None if the batch is valid
    """
    error = (
        _check_structure(document)
        or _check_cardinality(document, policy)
        or _check_policy(document, policy)
    )
    if error is not None:
        logger.debug(f"Batch rejected ({error.status_code}): {error.message}")
    return error


def validate_body(body: Any, policy: PolicyConfig) -> Optional[GatewayError]:
    """Parse and validate a raw request body in one step."""
    try:
        document = BatchDocument.parse(body)
    except InvalidRequestBody as e:
        return e
    return validate(document, policy)


class Validator:
    """Validator bound to one immutable policy."""

    def __init__(self, policy: PolicyConfig):
        self._policy = policy

    @property
    def policy(self) -> PolicyConfig:
        return self._policy

    def __call__(self, document: BatchDocument) -> Optional[GatewayError]:
        return validate(document, self._policy)
