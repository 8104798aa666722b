"""
Glob matching for method names.

Patterns are shell-style and matched against the whole method name:
- *      any run of characters, dots included
- ?      exactly one character
- [seq]  one character from seq

Matching is case-sensitive. An empty pattern collection never matches;
callers decide whether an empty allow-list means "allow everything".
"""

from fnmatch import fnmatchcase
from typing import Iterable


def matches(name: str, patterns: Iterable[str]) -> bool:
    """Return True if `name` matches at least one pattern."""
    if not isinstance(name, str):
        return False
    return any(fnmatchcase(name, pattern) for pattern in patterns)


def filter_names(names: Iterable[str], patterns: Iterable[str]) -> list[str]:
    """Return the names matching any pattern, preserving input order."""
    patterns = list(patterns)
    return [name for name in names if matches(name, patterns)]
