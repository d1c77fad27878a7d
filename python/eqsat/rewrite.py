"""
Rewrite rules, built like ``rewrite("(+ ?a ?b)", name="comm-add").to("(+ ?b ?a)")``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeAlias, Union

from .declarations import *
from .pattern import *
from .sexp import parse_pattern

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .egraph import EGraph


__all__ = [
    "Applier",
    "BiRewriteBuilder",
    "Condition",
    "Rewrite",
    "RewriteBuilder",
    "birewrite",
    "rewrite",
]

# Guards whether a match is applied, given the matched class and the substitution
Condition: TypeAlias = Callable[["EGraph", Id, Subst], bool]
# Dynamic right hand side. Returns the class to union with the matched class, or None to skip the match.
Applier: TypeAlias = Callable[["EGraph", Id, Subst], Union[Id, None]]

PatternLike: TypeAlias = Union[Pattern, str]


def _to_pattern(pattern: PatternLike) -> Pattern:
    return parse_pattern(pattern) if isinstance(pattern, str) else pattern


@dataclass(frozen=True)
class Rewrite:
    name: str
    searcher: Pattern
    applier: Pattern | Applier
    conditions: tuple[Condition, ...] = ()

    def __post_init__(self) -> None:
        try:
            arities = check_pattern(self.searcher)
            if isinstance(self.applier, Var | PatternTerm):
                check_pattern(self.applier, arities)
                unbound = set(pattern_vars(self.applier)) - set(pattern_vars(self.searcher))
                if unbound:
                    msg = f"Variables {', '.join(f'?{v}' for v in sorted(unbound))} are not bound by the searcher"
                    raise PatternError(msg)
        except PatternError as e:
            e.add_note(f"In rewrite {self.name!r}")
            raise

    def __str__(self) -> str:
        applier = self.applier
        if not isinstance(applier, Var | PatternTerm):
            applier = getattr(applier, "__name__", "<applier>")
        return f"{self.name}: {self.searcher} => {applier}"

    def search(self, egraph: EGraph) -> list[SearchMatches]:
        return search(egraph, self.searcher)

    def apply(self, egraph: EGraph, matches: Iterable[SearchMatches], limit: int | None = None) -> int:
        """
        Applies the matches, returning how many of them unioned two distinct classes.

        Stops once `limit` unions have been done, if it is given.
        """
        n_applied = 0
        for match in matches:
            for subst in match.substs:
                if limit is not None and n_applied >= limit:
                    return n_applied
                if not all(condition(egraph, match.eclass, subst) for condition in self.conditions):
                    continue
                if isinstance(self.applier, Var | PatternTerm):
                    new_id = egraph.add_instantiation(self.applier, subst)
                else:
                    new_id = self.applier(egraph, match.eclass, subst)
                    if new_id is None:
                        continue
                    if not isinstance(new_id, int):
                        msg = f"Applier of rewrite {self.name!r} returned {new_id!r} instead of a class id"
                        raise TypeError(msg)
                if egraph.union(match.eclass, new_id):
                    n_applied += 1
        return n_applied


@dataclass(frozen=True)
class RewriteBuilder:
    lhs: Pattern
    name: str | None = None

    def to(self, rhs: PatternLike | Applier, *conditions: Condition) -> Rewrite:
        applier = rhs if callable(rhs) else _to_pattern(rhs)
        name = self.name if self.name is not None else f"{self.lhs} => {applier}"
        return Rewrite(name, self.lhs, applier, conditions)


@dataclass(frozen=True)
class BiRewriteBuilder:
    lhs: Pattern
    name: str | None = None

    def to(self, rhs: PatternLike, *conditions: Condition) -> tuple[Rewrite, Rewrite]:
        """
        Returns the rewrite in both directions, the reverse one named with a ``-rev`` suffix.
        """
        rhs = _to_pattern(rhs)
        name = self.name if self.name is not None else f"{self.lhs} <=> {rhs}"
        return (
            Rewrite(name, self.lhs, rhs, conditions),
            Rewrite(f"{name}-rev", rhs, self.lhs, conditions),
        )


def rewrite(lhs: PatternLike, name: str | None = None) -> RewriteBuilder:
    """
    Starts a rewrite from `lhs`, finished by calling `to` with the right hand side and any conditions.
    """
    return RewriteBuilder(_to_pattern(lhs), name)


def birewrite(lhs: PatternLike, name: str | None = None) -> BiRewriteBuilder:
    return BiRewriteBuilder(_to_pattern(lhs), name)
