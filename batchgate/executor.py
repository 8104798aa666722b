"""
Stage executor - run an ExecutionPlan against a MethodInvoker.

Execution flow:
1. Stages run strictly one after another
2. Every sub-call of a stage is started, then the stage waits for all
   of them to settle (asyncio.gather barrier)
3. A returned value is stored under the sub-call's name
4. A failure is stored as a CallError under the same name; it never
   aborts sibling sub-calls or later stages

A sub-call whose dependency failed still runs with its static params.
"""

import asyncio
import logging
import time
from typing import Any, Collection, Optional

from batchgate.errors import MethodNotFound
from batchgate.invoker import MethodHandle, MethodInvoker
from batchgate.schemas import BatchDocument, CallError, ExecutionPlan, Stage

logger = logging.getLogger(__name__)


class StageExecutor:
    """
    Executes staged plans through one invoker.

    Usage:
        executor = StageExecutor(invoker)
        results = await executor.execute(plan, document, request)
    """

    def __init__(self, invoker: MethodInvoker, methods: Optional[Collection[str]] = None):
        """
        Args:
            invoker: Invoker used for every sub-call
            methods: Method names allowed to resolve (None = anything the invoker knows)
        """
        self.invoker = invoker
        self.methods = frozenset(methods) if methods is not None else None

    def resolve(self, method: str) -> MethodHandle:
        """
        Resolve a method through the invoker.

        Raises:
            MethodNotFound: If the method is unknown or not exposed
        """
        handle = None
        if self.methods is None or method in self.methods:
            handle = self.invoker.resolve(method)
        if handle is None:
            raise MethodNotFound(f"Method not found: {method}")
        return handle

    async def _run_call(self, name: str, document: BatchDocument, request: Any, results: dict) -> None:
        call = document[name]
        try:
            handle = self.resolve(call.method)
            results[name] = await self.invoker.call(handle, call.params, request)
        except Exception as e:
            logger.warning(f"    FAIL {name} ({call.method}): {e}")
            results[name] = CallError.from_exception(e)

    async def _run_stage(self, index: int, stage: Stage, document: BatchDocument, request: Any, results: dict) -> None:
        logger.debug(f"  Stage {index}: {list(stage.names)}")
        await asyncio.gather(
            *(self._run_call(name, document, request, results) for name in stage)
        )

    async def execute(self, plan: ExecutionPlan, document: BatchDocument, request: Any = None) -> dict[str, Any]:
        """
        Run every stage of the plan.

        Args:
            plan: Stages produced by the grouper
            document: The batch the plan was built from
            request: Inbound request context handed to the invoker

        Returns:
            Mapping of sub-call name to result value or CallError
        """
        start_time = time.time()
        results: dict[str, Any] = {}

        for index, stage in enumerate(plan):
            await self._run_stage(index, stage, document, request, results)

        failed = sum(1 for v in results.values() if isinstance(v, CallError))
        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Batch executed: stages={len(plan)}, calls={len(results)}, "
            f"failed={failed}, duration={duration_ms}ms"
        )
        return results


async def execute(
    plan: ExecutionPlan,
    document: BatchDocument,
    invoker: MethodInvoker,
    request: Any = None,
) -> dict[str, Any]:
    """Run a plan with a one-off StageExecutor."""
    return await StageExecutor(invoker).execute(plan, document, request)
