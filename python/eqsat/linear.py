"""
Linear arithmetic analysis.

Every class that is a linear combination of opaque subterms gets the summary ``3 * f(x) + 2 * y + 1``, stored as
the coefficients ``{f(x): 3, y: 2}`` keyed by class id and the constant ``1``. Classes with the same summary are
equal, so `modify` unions every class with a canonical sum built from its summary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeAlias, Union

from typing_extensions import assert_never

from .analysis import Analysis, merge_min
from .declarations import *

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from .egraph import EGraph


__all__ = ["ABSENT", "Absent", "LinExp", "LinearArith", "LinearData", "sum_pattern"]


@dataclass(frozen=True)
class Absent:
    """
    The class is not known to be a linear combination, for example it is the product of two variables.
    """

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = Absent()


@dataclass(frozen=True)
class LinExp:
    coefs: dict[Id, int] = field(default_factory=dict)
    constant: int = 0

    def __post_init__(self) -> None:
        assert all(self.coefs.values()), "Zero coefficients must be dropped"

    @classmethod
    def from_items(cls, items: Iterable[tuple[Id, int]], constant: int = 0) -> LinExp:
        """
        Sums the coefficients of repeated keys and drops the ones which cancel out.
        """
        coefs: dict[Id, int] = {}
        for key, coef in items:
            coefs[key] = coefs.get(key, 0) + coef
        return cls({k: v for k, v in coefs.items() if v}, constant)

    @property
    def is_constant(self) -> bool:
        return not self.coefs

    def add(self, other: LinExp) -> LinExp:
        return LinExp.from_items([*self.coefs.items(), *other.coefs.items()], self.constant + other.constant)

    def scale(self, factor: int) -> LinExp:
        if not factor:
            return LinExp({}, 0)
        return LinExp({k: v * factor for k, v in self.coefs.items()}, self.constant * factor)

    def mul(self, other: LinExp) -> LinExp | Absent:
        """
        Multiplies when one side is a constant, otherwise the product is not linear.
        """
        if self.is_constant:
            return other.scale(self.constant)
        if other.is_constant:
            return self.scale(other.constant)
        return ABSENT

    def canonicalize(self, find: Callable[[Id], Id]) -> LinExp:
        """
        Re-keys the coefficients by canonical class, combining keys of classes which were merged.
        """
        return LinExp.from_items(((find(k), v) for k, v in self.coefs.items()), self.constant)

    def sort_key(self) -> tuple[int, tuple[tuple[Id, int], ...], int]:
        return len(self.coefs) + bool(self.constant), tuple(sorted(self.coefs.items())), self.constant

    def __repr__(self) -> str:
        terms = [f"{v}*#{k}" for k, v in sorted(self.coefs.items())]
        if self.constant or not terms:
            terms.append(str(self.constant))
        return " + ".join(terms)


LinearData: TypeAlias = Union[LinExp, Absent]


def _order(data: LinearData) -> tuple:
    # Absent is the bottom of the lattice, so it sorts after every present value
    match data:
        case LinExp():
            return (0, data.sort_key())
        case Absent():
            return (1,)
        case _:
            assert_never(data)


def sum_pattern(terms: Iterable[Pattern], constant: int) -> Pattern:
    """
    Builds the left nested sum of the terms followed by the constant, omitting a zero constant unless there are no
    terms at all.
    """
    pattern: Pattern | None = None
    for term in terms:
        pattern = term if pattern is None else PatternTerm("+", (pattern, term))
    if constant or pattern is None:
        literal = PatternTerm(constant)
        pattern = literal if pattern is None else PatternTerm("+", (pattern, literal))
    return pattern


def _to_pattern(linexp: LinExp) -> tuple[Pattern, Subst]:
    subst: Subst = {}
    terms: list[Pattern] = []
    for key, coef in sorted(linexp.coefs.items()):
        var = Var(str(key))
        subst[var.name] = key
        terms.append(var if coef == 1 else PatternTerm("*", (PatternTerm(coef), var)))
    return sum_pattern(terms, linexp.constant), subst


class LinearArith(Analysis[LinearData]):
    """
    Summarizes classes built from ``+``, ``*`` and integer literals as linear combinations of the other classes.

    Symbols and function calls are opaque, each is the basis vector of its own class. The arguments of a call are
    never looked into, so ``(f 2 x)`` does not scale anything.
    """

    def make(self, egraph: EGraph[LinearData], node: ENode, id: Id) -> LinearData:
        match node.op:
            case int(value):
                return LinExp({}, value)
            case "+" | "*":
                left, right = (egraph[c].data for c in node.children)
                if isinstance(left, Absent) or isinstance(right, Absent):
                    return ABSENT
                left, right = left.canonicalize(egraph.find), right.canonicalize(egraph.find)
                return left.add(right) if node.op == "+" else left.mul(right)
            case str():
                return LinExp({id: 1}, 0)
            case _:
                assert_never(node.op)

    def merge(self, existing: LinearData, incoming: LinearData) -> tuple[LinearData, bool]:
        """
        Keeps the smaller summary, preferring present over absent, then fewer terms.

        Two present summaries of one class denote the same value, so keeping either is sound. The smaller one gives
        the smaller canonical sum.
        """
        return merge_min(existing, incoming, _order)

    def modify(self, egraph: EGraph[LinearData], id: Id) -> None:
        data = egraph[id].data
        if isinstance(data, Absent):
            return
        pattern, subst = _to_pattern(data.canonicalize(egraph.find))
        existing = egraph.lookup_instantiation(pattern, subst)
        if existing == egraph.find(id):
            return
        egraph.union(id, existing if existing is not None else egraph.add_instantiation(pattern, subst))
