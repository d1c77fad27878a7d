"""
Checking patterns and matching them against the classes of an e-graph.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from typing_extensions import assert_never

from .declarations import *

if TYPE_CHECKING:
    from .egraph import EGraph


__all__ = ["PatternError", "SearchMatches", "check_pattern", "ematch", "search"]


class PatternError(ValueError):
    """An ill-formed rewrite pattern."""


@dataclass(frozen=True)
class SearchMatches:
    """
    All the ways a pattern matched one class.
    """

    eclass: Id
    substs: list[Subst]

    def __len__(self) -> int:
        return len(self.substs)


def check_pattern(pattern: Pattern, arities: dict[Symbol, int] | None = None) -> dict[Symbol, int]:
    """
    Checks that every operator is used with a valid and consistent number of arguments.

    Pass in the arities returned from checking another pattern to check consistency across patterns.
    """
    arities = {} if arities is None else arities

    def helper(p: Pattern) -> None:
        match p:
            case Var(name):
                if not name:
                    msg = "Pattern variables must have a name"
                    raise PatternError(msg)
            case PatternTerm(op, args):
                if (msg := check_arity(op, len(args))) is not None:
                    raise PatternError(msg)
                seen = arities.setdefault(op, len(args))
                if seen != len(args):
                    msg = f"Operator {op!r} is used with both {seen} and {len(args)} arguments"
                    raise PatternError(msg)
                for arg in args:
                    helper(arg)
            case _:
                assert_never(p)

    helper(pattern)
    return arities


def search(egraph: EGraph, pattern: Pattern) -> list[SearchMatches]:
    """
    Matches the pattern against every class of the e-graph.
    """
    matches = []
    for eclass in egraph.classes():
        substs = ematch(egraph, pattern, eclass.id)
        if substs:
            matches.append(SearchMatches(eclass.id, substs))
    return matches


def ematch(egraph: EGraph, pattern: Pattern, id: Id, subst: Subst | None = None) -> list[Subst]:
    """
    Returns every extension of `subst` under which the pattern is represented in the class `id`.
    """
    return _ematch(egraph, pattern, id, {} if subst is None else subst)


def _ematch(egraph: EGraph, pattern: Pattern, id: Id, subst: Subst) -> list[Subst]:
    id = egraph.find(id)
    match pattern:
        case Var(name):
            bound = subst.get(name)
            if bound is None:
                return [{**subst, name: id}]
            return [subst] if egraph.find(bound) == id else []
        case PatternTerm(op, args):
            results = []
            for node in egraph[id].nodes:
                if node.op != op or len(node.children) != len(args):
                    continue
                todo = [subst]
                for arg, child in zip(args, node.children, strict=True):
                    todo = [s1 for s0 in todo for s1 in _ematch(egraph, arg, child, s0)]
                    if not todo:
                        break
                results.extend(todo)
            return results
        case _:
            assert_never(pattern)
