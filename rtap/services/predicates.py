"""Backend-neutral query predicates.

A predicate is a small tagged expression tree. The access filter builds one,
routes extend it with their own clauses, and a storage adapter either
evaluates it in memory (``matches``) or translates it for its query engine
(``to_where`` renders a plain nested mapping for that purpose).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Union

_MISSING = object()


@dataclass(frozen=True)
class MatchAll:
    """Always true; the "no restriction" predicate."""


@dataclass(frozen=True)
class Equals:
    field: str
    value: Any


@dataclass(frozen=True)
class LessThan:
    field: str
    value: Any


@dataclass(frozen=True)
class AnyEquals:
    """True when at least one value reached through ``path`` equals ``value``.

    ``path`` is dotted; collections met along the way are flattened, so
    ``"access_groups.member_ids"`` reads every member of every access group.
    """

    path: str
    value: Any


@dataclass(frozen=True)
class And:
    clauses: tuple["Predicate", ...]


@dataclass(frozen=True)
class Or:
    clauses: tuple["Predicate", ...]


Predicate = Union[MatchAll, Equals, LessThan, AnyEquals, And, Or]


def and_(*clauses: Predicate | None) -> Predicate:
    """Combine clauses with AND, dropping ``None`` and ``MatchAll`` members."""

    kept = tuple(
        clause for clause in clauses if clause is not None and not isinstance(clause, MatchAll)
    )
    if not kept:
        return MatchAll()
    if len(kept) == 1:
        return kept[0]
    return And(kept)


def _get(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name, _MISSING)
    return getattr(record, name, _MISSING)


def _resolve_path(record: Any, path: str) -> list[Any]:
    values = [record]
    for part in path.split("."):
        found: list[Any] = []
        for value in values:
            attr = _get(value, part)
            if attr is _MISSING or attr is None:
                continue
            if isinstance(attr, Iterable) and not isinstance(attr, (str, bytes, Mapping)):
                found.extend(attr)
            else:
                found.append(attr)
        values = found
    return values


def matches(predicate: Predicate, record: Any) -> bool:
    """Evaluate ``predicate`` against an in-memory record.

    Missing or ``None`` fields never satisfy a comparison.
    """

    if isinstance(predicate, MatchAll):
        return True
    if isinstance(predicate, Equals):
        value = _get(record, predicate.field)
        return value is not _MISSING and value is not None and value == predicate.value
    if isinstance(predicate, LessThan):
        value = _get(record, predicate.field)
        return value is not _MISSING and value is not None and value < predicate.value
    if isinstance(predicate, AnyEquals):
        return any(value == predicate.value for value in _resolve_path(record, predicate.path))
    if isinstance(predicate, And):
        return all(matches(clause, record) for clause in predicate.clauses)
    if isinstance(predicate, Or):
        return any(matches(clause, record) for clause in predicate.clauses)
    raise TypeError(f"Unsupported predicate: {predicate!r}")


def to_where(predicate: Predicate) -> dict[str, Any]:
    """Render ``predicate`` as a nested mapping.

    Example:
        >>> to_where(Or((Equals("visibility", "EVERYONE"), LessThan("id", 10))))
        {'OR': [{'visibility': 'EVERYONE'}, {'id': {'lt': 10}}]}
    """

    if isinstance(predicate, MatchAll):
        return {}
    if isinstance(predicate, Equals):
        return {predicate.field: predicate.value}
    if isinstance(predicate, LessThan):
        return {predicate.field: {"lt": predicate.value}}
    if isinstance(predicate, AnyEquals):
        return {predicate.path: {"some": predicate.value}}
    if isinstance(predicate, And):
        return {"AND": [to_where(clause) for clause in predicate.clauses]}
    if isinstance(predicate, Or):
        return {"OR": [to_where(clause) for clause in predicate.clauses]}
    raise TypeError(f"Unsupported predicate: {predicate!r}")
