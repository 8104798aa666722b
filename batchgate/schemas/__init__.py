"""
batchgate.schemas - Data structures for the batch gateway.

BatchDocument -> ExecutionPlan -> result mapping -> GatewayResponse

Lifecycle:
1. BatchDocument: Normalized request body (mapping or sequence form)
2. ExecutionPlan: Ordered stages produced by the grouper
3. Result mapping: sub-call name -> value or CallError
4. GatewayResponse: Assembled output or structured batch-level error
"""

from .batch import BatchDocument, SubCall
from .plan import ExecutionPlan, Stage
from .result import CallError, GatewayResponse

__all__ = [
    # Batch
    "BatchDocument",
    "SubCall",
    # Plan
    "ExecutionPlan",
    "Stage",
    # Results
    "CallError",
    "GatewayResponse",
]
