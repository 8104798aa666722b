"""
ExecutionPlan schema - ordered stages of concurrently runnable sub-calls.

Invariants:
- Every sub-call of the batch appears in exactly one stage
- Every dependency of a sub-call lives in a strictly earlier stage
"""

from dataclasses import dataclass
from typing import Any, Iterator


@dataclass(frozen=True)
class Stage:
    """A set of sub-call names safe to execute concurrently."""
    names: tuple[str, ...]

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)

    def __contains__(self, name: object) -> bool:
        return name in self.names


@dataclass(frozen=True)
class ExecutionPlan:
    """Ordered sequence of stages covering every sub-call exactly once."""
    stages: tuple[Stage, ...] = ()

    @classmethod
    def from_lists(cls, stages: list[list[str]]) -> "ExecutionPlan":
        return cls(stages=tuple(Stage(names=tuple(s)) for s in stages))

    def stage_of(self, name: str) -> int:
        """
        Index of the stage containing `name`.

        Raises:
            KeyError: If the name is not part of the plan
        """
        for index, stage in enumerate(self.stages):
            if name in stage:
                return index
        raise KeyError(f"Sub-call not in plan: {name}")

    def names(self) -> list[str]:
        """All sub-call names in execution order."""
        return [name for stage in self.stages for name in stage]

    def to_list(self) -> list[list[str]]:
        return [list(stage.names) for stage in self.stages]

    def to_dict(self) -> dict[str, Any]:
        return {"stages": self.to_list()}

    def __iter__(self) -> Iterator[Stage]:
        return iter(self.stages)

    def __len__(self) -> int:
        return len(self.stages)
