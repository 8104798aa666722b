"""
Batch document schema - the submitted set of named sub-calls.

Request body shapes accepted:

Mapping form:
{
  "articles": {"method": "muse.articles.index", "params": {...}, "dependencies": ["create"]},
  "create":   {"method": "muse.articles.create", "params": {...}}
}

Sequence form (compatibility):
[
  {"method": "muse.articles.create", "params": {...}},
  {"method": "muse.articles.index", "dependencies": [0]}
]

Sequence entries are named by their index ("0", "1", ...). The output of a
sequence batch is a sequence in the same positional order.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Iterator

from batchgate.errors import InvalidRequestBody


def _cast_to_list(value: Any) -> list:
    """Cast a dependencies value to a list (None -> [], scalar -> [scalar])."""
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


@dataclass(frozen=True)
class SubCall:
    """
    One named unit of work inside a batch.

    Attributes:
        name: Unique key within the batch
        method: Fully-qualified name of the target method
        params: Opaque value passed verbatim to the method
        dependencies: Names of sub-calls that must settle first
    """
    name: str
    method: Any
    params: Any = None
    dependencies: frozenset[str] = field(default_factory=frozenset)

    @property
    def signature(self) -> tuple[str, ...]:
        """Sorted dependency names; equal signatures mean equal dependency sets."""
        return tuple(sorted(self.dependencies))

    @classmethod
    def from_dict(cls, name: str, data: Any) -> "SubCall":
        """Build a SubCall from one raw body entry."""
        if not isinstance(data, Mapping):
            raise InvalidRequestBody(
                f"Invalid Request Body: entry '{name}' must be an object"
            )
        params = data.get("params")
        return cls(
            name=name,
            method=data.get("method"),
            params={} if params is None else params,
            dependencies=frozenset(str(d) for d in _cast_to_list(data.get("dependencies"))),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to the request entry shape."""
        return {
            "method": self.method,
            "params": self.params,
            "dependencies": sorted(self.dependencies),
        }


@dataclass(frozen=True)
class BatchDocument:
    """
    Ordered mapping of sub-call name to SubCall.

    Attributes:
        calls: Sub-calls keyed by name, in request order
        is_sequence: True when the body was submitted as a list
    """
    calls: dict[str, SubCall]
    is_sequence: bool = False

    @classmethod
    def parse(cls, body: Any) -> "BatchDocument":
        """
        Normalize a raw request body into a BatchDocument.

        Raises:
            InvalidRequestBody: If the body is neither a mapping nor a list,
                an entry is not an object, or two keys name the same sub-call
        """
        if body is None:
            return cls(calls={})

        if isinstance(body, Mapping):
            items = [(str(name), entry) for name, entry in body.items()]
            is_sequence = False
        elif isinstance(body, (list, tuple)):
            items = [(str(index), entry) for index, entry in enumerate(body)]
            is_sequence = True
        else:
            raise InvalidRequestBody(
                f"Invalid Request Body: expected object or array, got {type(body).__name__}"
            )

        calls: dict[str, SubCall] = {}
        for name, entry in items:
            # 0 and "0" name the same sub-call
            if name in calls:
                raise InvalidRequestBody(
                    f"Invalid Request Body: duplicate sub-call name '{name}'"
                )
            calls[name] = SubCall.from_dict(name, entry)
        return cls(calls=calls, is_sequence=is_sequence)

    def names(self) -> list[str]:
        """Sub-call names in request order."""
        return list(self.calls)

    def methods(self) -> list:
        """Distinct referenced methods, in first-reference order."""
        seen: list = []
        for call in self.calls.values():
            if call.method not in seen:
                seen.append(call.method)
        return seen

    def __getitem__(self, name: str) -> SubCall:
        return self.calls[name]

    def __contains__(self, name: object) -> bool:
        return name in self.calls

    def __iter__(self) -> Iterator[SubCall]:
        return iter(self.calls.values())

    def __len__(self) -> int:
        return len(self.calls)
