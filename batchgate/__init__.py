"""
batchgate - Batch request gateway

Runs a declarative batch of named sub-calls against a method registry:
validates it, groups sub-calls into dependency stages, runs each stage
concurrently and returns results keyed like the request.
"""

__version__ = "0.1.0"


__all__ = [
    "Gateway",
    "GatewayConfig",
    "PolicyConfig",
    "RegistryInvoker",
    "load_config",
]

from .config import GatewayConfig, PolicyConfig, load_config
from .gateway import Gateway
from .invoker import RegistryInvoker
