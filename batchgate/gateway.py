"""
Gateway - single entry point for batch requests.

handle(body) runs:
1. Parse body into a BatchDocument (mapping or list form kept)
2. Validate (structure, cardinality, allow/deny policy)
3. Group into an ExecutionPlan
4. Execute stage by stage through the MethodInvoker
5. Assemble results in request order and shape

Batch-level errors (validation failures, unexpected faults) produce a
structured {status, message} response, or are handed to the configured
on_error handler. Per-call failures are part of the successful response.

Usage:
    invoker = RegistryInvoker()
    invoker.register("articles.create", create_article)
    invoker.register("articles.index", list_articles)

    gateway = Gateway(invoker, GatewayConfig(policy=PolicyConfig(max_requests=10)))
    response = await gateway.handle({
        "create": {"method": "articles.create", "params": {"title": "Hi"}},
        "list": {"method": "articles.index", "dependencies": ["create"]},
    })
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from batchgate.assembler import assemble
from batchgate.config import GatewayConfig
from batchgate.errors import GatewayError
from batchgate.executor import StageExecutor
from batchgate.globmatch import filter_names
from batchgate.grouper import group
from batchgate.invoker import MethodInvoker
from batchgate.schemas import BatchDocument, GatewayResponse
from batchgate.validator import Validator

logger = logging.getLogger(__name__)


# on_error(error, request, next) -> response; next() builds the default response
ErrorHandler = Callable[
    [GatewayError, Any, Callable[[], GatewayResponse]],
    Union[Any, Awaitable[Any]],
]


class Gateway:
    """
    Batch request orchestrator.

    The set of exposed methods is snapshotted once at construction:
    every invoker method except the gateway's own name, minus forbidden
    patterns, restricted to allowed patterns when any are configured.
    """

    def __init__(
        self,
        invoker: MethodInvoker,
        config: Optional[GatewayConfig] = None,
        on_error: Optional[ErrorHandler] = None,
    ):
        if on_error is not None and not callable(on_error):
            raise TypeError("on_error must be a callable")

        self.invoker = invoker
        self.config = config or GatewayConfig()
        self.on_error = on_error
        self._validator = Validator(self.config.policy)
        self._methods = self._snapshot_methods()
        self._executor = StageExecutor(invoker, methods=self._methods)

        logger.debug(
            f"Gateway '{self.config.name}' mounted at "
            f"{self.config.verb.upper()} /{self.config.path} "
            f"with {len(self._methods)} methods"
        )

    def _snapshot_methods(self) -> tuple[str, ...]:
        policy = self.config.policy
        names = [n for n in self.invoker.method_names() if n != self.config.name]
        if policy.forbidden_apis:
            denied = set(filter_names(names, policy.forbidden_apis))
            names = [n for n in names if n not in denied]
        if policy.allowed_apis:
            names = filter_names(names, policy.allowed_apis)
        return tuple(names)

    @property
    def methods(self) -> tuple[str, ...]:
        """Methods exposed through the gateway."""
        return self._methods

    @property
    def route(self) -> tuple[str, str, str]:
        """(verb, path, name) for mounting the gateway on an HTTP host."""
        return (self.config.verb, self.config.path, self.config.name)

    def describe(self) -> str:
        """Markdown notes listing the supported methods and their descriptions."""
        width = max((len(name) for name in self._methods), default=0)
        lines = [
            f"{name.ljust(width)} => {self.invoker.describe(name)}"
            for name in self._methods
        ]
        notes = "\n".join(lines)
        return (
            "## Batch gateway method\n\n"
            "### Support Methods:\n"
            f"```\n{notes} \n```"
        )

    async def _fail(self, error: GatewayError, request: Any) -> GatewayResponse:
        def default() -> GatewayResponse:
            return GatewayResponse.from_error(error)

        if self.on_error is None:
            return default()

        result = self.on_error(error, request, default)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, GatewayResponse):
            return result
        return GatewayResponse(status=error.status_code, body=result)

    async def handle(self, body: Any, request: Any = None) -> GatewayResponse:
        """
        Run one batch.

        Args:
            body: Request body, a mapping or a list of sub-call entries
            request: Inbound request context handed through to every sub-call

        Returns:
            GatewayResponse with the assembled results (status 200)
            or a structured batch-level error
        """
        try:
            document = BatchDocument.parse(body)
        except GatewayError as e:
            logger.info(f"Batch rejected ({e.status_code}): {e.message}")
            return await self._fail(e, request)

        error = self._validator(document)
        if error is not None:
            logger.info(f"Batch rejected ({error.status_code}): {error.message}")
            return await self._fail(error, request)

        try:
            plan = group(document, self.config.grouping)
            results = await self._executor.execute(plan, document, request)
            output = assemble(results, document)
        except GatewayError as e:
            logger.error(f"Batch failed ({e.status_code}): {e.message}")
            return await self._fail(e, request)
        except Exception as e:
            logger.error(f"Batch failed: {e}", exc_info=True)
            return await self._fail(GatewayError(f"Internal Gateway Error: {e}"), request)

        return GatewayResponse(status=200, body=output)

    def handle_sync(self, body: Any, request: Any = None) -> GatewayResponse:
        """Run handle() on a fresh event loop."""
        return asyncio.run(self.handle(body, request))
