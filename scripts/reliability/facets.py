"""Facet labels and the row-matching policy for variance component tables.

A facet is a named source of measurement variation (``subject``, ``session``,
``side``, ``repetition``).  Crossed or nested combinations are written by
joining the constituent names with :data:`FACET_DELIMITER`, e.g.
``subject:session``.  Matching always works on the delimited tokens of a label,
so ``side`` matches ``subject:side`` but not ``subject:side_effect``.
"""
from __future__ import annotations

from typing import Iterable

from .config import FACET_DELIMITER


def facet_tokens(label: str) -> frozenset[str]:
    """Return the constituent facet names of a (possibly combined) label."""

    return frozenset(part.strip() for part in str(label).split(FACET_DELIMITER) if part.strip())


def join_facets(*names: str) -> str:
    return FACET_DELIMITER.join(names)


def same_facet(left: str, right: str) -> bool:
    """True when two labels name the same combination, ignoring token order."""

    return facet_tokens(left) == facet_tokens(right)


def matches(row_label: str, facet_names: Iterable[str]) -> bool:
    """Decide whether a table row belongs to any of ``facet_names``.

    Each queried name may itself be a combination; it matches when all of its
    tokens are constituents of the row label.
    """

    row = facet_tokens(row_label)
    for name in facet_names:
        query = facet_tokens(name)
        if query and query <= row:
            return True
    return False


def matching_rows(labels: Iterable[str], facet_names: Iterable[str]) -> list[str]:
    names = list(facet_names)
    return [label for label in labels if matches(label, names)]


__all__ = ["facet_tokens", "join_facets", "same_facet", "matches", "matching_rows"]
