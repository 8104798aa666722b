"""
Result assembler - restore request order and shape.

Results are collected in completion order. The assembled output follows
the batch's own key order, and a batch submitted as a list comes back as
a list in the same positional order.
"""

from typing import Any

from batchgate.schemas import BatchDocument


def force_order(results: dict[str, Any], document: BatchDocument) -> dict[str, Any]:
    """Return a new mapping whose keys follow the document's key order."""
    return {name: results.get(name) for name in document.names()}


def assemble(results: dict[str, Any], document: BatchDocument) -> Any:
    """
    Reorder a result mapping to match the submitted batch.

    Args:
        results: Mapping of sub-call name to value or CallError
        document: The batch the results belong to

    Returns:
        A dict keyed like the batch, or a list if the batch was a list
    """
    ordered = force_order(results, document)
    if document.is_sequence:
        return list(ordered.values())
    return ordered
