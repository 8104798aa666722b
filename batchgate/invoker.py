"""
Method invoker - resolve method names and invoke them with a call context.

The gateway core never touches the host method registry directly. It
talks to a MethodInvoker:
- method_names(): enumerate the registry (snapshot taken once by the Gateway)
- resolve(name): look up a method handle, None if unknown
- call(handle, params, request): invoke and return the result, raising on failure

RegistryInvoker is the in-process implementation. Registered methods take
(params, context) and may be plain functions or coroutine functions:

    invoker = RegistryInvoker()
    invoker.register("articles.index", list_articles, description="List articles")

    async def create_article(params, ctx):
        ...
    invoker.register("articles.create", create_article)
"""

import asyncio
import importlib
import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union

from batchgate.errors import InvocationTimeout

logger = logging.getLogger(__name__)


# Type alias for registered methods
MethodFn = Callable[[Any, "CallContext"], Union[Any, Awaitable[Any]]]


@dataclass(frozen=True)
class MethodHandle:
    """A resolved, invocable method."""
    name: str
    fn: MethodFn
    description: str = ""


@dataclass
class CallContext:
    """
    Per-call context synthesized for each sub-call.

    Attributes:
        request: The inbound request context the batch arrived with (opaque)
        method: Name of the method being invoked
        params: Parameters passed to the method
        is_mock: Always True for sub-calls issued by the gateway
        state: Scratch space owned by the method for this call
    """
    request: Any
    method: str
    params: Any
    is_mock: bool = True
    state: dict[str, Any] = field(default_factory=dict)


class MethodInvoker(ABC):
    """
    Abstract base class for method invokers.

    Invokers own the method registry and the construction of the
    per-call context.
    """

    @abstractmethod
    def method_names(self) -> list[str]:
        """Return every invocable method name."""
        pass

    @abstractmethod
    def resolve(self, name: str) -> Optional[MethodHandle]:
        """Return the handle for `name`, or None if it is unknown."""
        pass

    @abstractmethod
    async def call(self, handle: MethodHandle, params: Any, request: Any = None) -> Any:
        """
        Invoke a method.

        Returns:
            The method's result

        Raises:
            Exception: If the method fails
        """
        pass

    def describe(self, name: str) -> str:
        """Human readable description of a method (empty if unknown)."""
        handle = self.resolve(name)
        return handle.description if handle is not None else ""


class RegistryInvoker(MethodInvoker):
    """
    In-process invoker backed by a name -> function registry.

    Plain functions run in a worker thread so they do not block the
    other sub-calls of the same stage.

    Usage:
        invoker = RegistryInvoker(timeout=10)
        invoker.register("articles.index", list_articles)
        handle = invoker.resolve("articles.index")
        result = await invoker.call(handle, {"page": 1}, request)
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        """
        Initialize an empty registry.

        Args:
            timeout: Seconds before a call fails with InvocationTimeout (None = no limit)
        """
        self._methods: dict[str, MethodHandle] = {}
        self.timeout = timeout

    def register(self, name: str, fn: MethodFn, description: str = "") -> None:
        """
        Register a method under a fully-qualified name.

        Args:
            name: Method name (e.g. "articles.index")
            fn: Function taking (params, context)
            description: Description shown in the gateway notes
        """
        if not callable(fn):
            raise TypeError(f"Method '{name}' must be callable, got {type(fn).__name__}")
        if not description:
            description = (inspect.getdoc(fn) or "").split("\n", 1)[0]
        self._methods[name] = MethodHandle(name=name, fn=fn, description=description)

    def unregister(self, name: str) -> None:
        self._methods.pop(name, None)

    def has(self, name: str) -> bool:
        return name in self._methods

    def method_names(self) -> list[str]:
        return list(self._methods.keys())

    def resolve(self, name: str) -> Optional[MethodHandle]:
        return self._methods.get(name)

    def create_context(self, handle: MethodHandle, params: Any, request: Any) -> CallContext:
        """Build the per-call context handed to the method."""
        return CallContext(request=request, method=handle.name, params=params)

    async def _invoke(self, handle: MethodHandle, params: Any, context: CallContext) -> Any:
        if inspect.iscoroutinefunction(handle.fn):
            return await handle.fn(params, context)
        result = await asyncio.to_thread(handle.fn, params, context)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def call(self, handle: MethodHandle, params: Any, request: Any = None) -> Any:
        context = self.create_context(handle, params, request)
        if self.timeout is None:
            return await self._invoke(handle, params, context)
        try:
            return await asyncio.wait_for(self._invoke(handle, params, context), self.timeout)
        except asyncio.TimeoutError:
            raise InvocationTimeout(
                f"Method '{handle.name}' did not complete within {self.timeout}s"
            )

    @classmethod
    def from_module(cls, spec: str, timeout: Optional[float] = None) -> "RegistryInvoker":
        """
        Build a registry from a "package.module:attribute" spec.

        The attribute is either a mapping of method name to function, or
        a function called with the new invoker to register methods.

        Raises:
            ValueError: If the spec is malformed or the attribute is unusable
            ImportError: If the module cannot be imported
        """
        module_name, _, attr = spec.partition(":")
        if not module_name or not attr:
            raise ValueError(f"Expected 'module:attribute', got: {spec}")

        module = importlib.import_module(module_name)
        try:
            target = getattr(module, attr)
        except AttributeError:
            raise ValueError(f"Module '{module_name}' has no attribute '{attr}'")

        invoker = cls(timeout=timeout)
        if isinstance(target, Mapping):
            for name, fn in target.items():
                invoker.register(name, fn)
        elif callable(target):
            target(invoker)
        else:
            raise ValueError(
                f"'{spec}' must be a mapping of methods or a register(invoker) function"
            )

        logger.debug(f"Loaded {len(invoker.method_names())} methods from {spec}")
        return invoker
