"""
Dependency grouper - convert a batch into an ExecutionPlan.

Two strategies are available:

level (default):
    Longest-path leveling. A sub-call with no dependencies runs in stage 0;
    any other sub-call runs one stage after its deepest dependency.
    Independent sub-calls always share a stage.

signature (legacy):
    Sub-calls are ordered with the legacy comparator, then bucketed by
    dependency signature (the sorted tuple of dependency names).
    Buckets keep first-appearance order unless a bucket depends on a
    later one, in which case it is held back until its dependencies have
    been emitted. Sub-calls with different, non-overlapping dependency
    sets land in different stages even when neither depends on the other.

Example:
    {a: [], b: [a], c: [], d: [c]}
    level     -> [[a, c], [b, d]]
    signature -> [[c, a], [d], [b]]
"""

import logging
from functools import cmp_to_key

from batchgate.errors import InvalidRequestBody
from batchgate.schemas import BatchDocument, ExecutionPlan, SubCall

logger = logging.getLogger(__name__)


DEFAULT_STRATEGY = "level"


def compare_calls(a: SubCall, b: SubCall) -> int:
    """
    Legacy tie-break between two sub-calls.

    Order of precedence:
    1. A sub-call depended upon by the other sorts first
    2. A sub-call with no dependencies sorts before one with some
    3. Fewer dependencies sort first
    4. Names in descending order
    """
    if a.name in b.dependencies:
        return -1
    if b.name in a.dependencies:
        return 1

    a_count = len(a.dependencies)
    b_count = len(b.dependencies)
    if a_count == 0 and b_count != 0:
        return -1
    if b_count == 0 and a_count != 0:
        return 1
    if a_count < b_count:
        return -1
    if a_count > b_count:
        return 1

    if a.name > b.name:
        return -1
    if a.name < b.name:
        return 1
    return 0


sort_key = cmp_to_key(compare_calls)


def group_by_level(document: BatchDocument) -> ExecutionPlan:
    """
    Assign each sub-call to stage 1 + max(stage of its dependencies).

    Raises:
        InvalidRequestBody: On a dangling dependency or a cycle
    """
    levels: dict[str, int] = {}

    for root in document.names():
        if root in levels:
            continue
        path = [root]
        on_path = {root}
        pending = [iter(sorted(document[root].dependencies))]

        while pending:
            dep = next(pending[-1], None)
            if dep is None:
                pending.pop()
                name = path.pop()
                on_path.discard(name)
                deps = document[name].dependencies
                levels[name] = 1 + max(levels[d] for d in deps) if deps else 0
                continue
            if dep not in document:
                raise InvalidRequestBody(
                    f"Invalid Request Body: sub-call '{path[-1]}' depends on unknown sub-call '{dep}'"
                )
            if dep in levels:
                continue
            if dep in on_path:
                raise InvalidRequestBody(
                    f"Invalid Request Body: dependency cycle through '{dep}'"
                )
            path.append(dep)
            on_path.add(dep)
            pending.append(iter(sorted(document[dep].dependencies)))

    stages: list[list[str]] = [[] for _ in range(max(levels.values(), default=-1) + 1)]
    for name in document.names():
        stages[levels[name]].append(name)
    return ExecutionPlan.from_lists(stages)


def group_by_signature(document: BatchDocument) -> ExecutionPlan:
    """
    Bucket sub-calls sharing an identical dependency set.

    Raises:
        InvalidRequestBody: On a dangling dependency or a cycle
    """
    ordered = sorted(document, key=sort_key)

    buckets: dict[tuple[str, ...], list[str]] = {}
    for call in ordered:
        buckets.setdefault(call.signature, []).append(call.name)

    bucket_of = {name: sig for sig, names in buckets.items() for name in names}
    needs: dict[tuple[str, ...], set[tuple[str, ...]]] = {}
    for sig, names in buckets.items():
        required = set()
        for name in names:
            for dep in document[name].dependencies:
                if dep not in bucket_of:
                    raise InvalidRequestBody(
                        f"Invalid Request Body: sub-call '{name}' depends on unknown sub-call '{dep}'"
                    )
                required.add(bucket_of[dep])
        needs[sig] = required

    stages: list[list[str]] = []
    emitted: set[tuple[str, ...]] = set()
    remaining = list(buckets)
    while remaining:
        ready = next((sig for sig in remaining if needs[sig] <= emitted), None)
        if ready is None:
            raise InvalidRequestBody("Invalid Request Body: dependency cycle between sub-calls")
        remaining.remove(ready)
        emitted.add(ready)
        stages.append(buckets[ready])

    return ExecutionPlan.from_lists(stages)


STRATEGIES = {
    "level": group_by_level,
    "signature": group_by_signature,
}


def group(document: BatchDocument, strategy: str = DEFAULT_STRATEGY) -> ExecutionPlan:
    """
    Build the ExecutionPlan for a validated batch.

    Args:
        document: Validated batch document
        strategy: "level" or "signature"

    Returns:
        ExecutionPlan covering every sub-call exactly once

    Raises:
        ValueError: If the strategy is unknown
        InvalidRequestBody: If the batch has dangling dependencies or cycles
    """
    try:
        grouper = STRATEGIES[strategy]
    except KeyError:
        raise ValueError(
            f"Unknown grouping strategy: {strategy}. Available: {list(STRATEGIES)}"
        )

    plan = grouper(document)
    logger.debug(f"Grouped {len(document)} sub-calls into {len(plan)} stages ({strategy})")
    return plan
