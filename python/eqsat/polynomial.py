"""
Multivariate polynomial analysis, the variant of `LinearArith` that is closed under multiplication.

A class like ``3 * x * x * y + 2 * y + 1`` is summarized as ``{((x, 2), (y, 1)): 3, ((y, 1),): 2}`` with the
constant ``1``, where each monomial is a sorted tuple of (class id, exponent) pairs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeAlias

from typing_extensions import assert_never

from .analysis import Analysis, merge_min
from .declarations import *
from .linear import sum_pattern

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from .egraph import EGraph


__all__ = ["Monomial", "Polynomial", "PolynomialArith"]

Monomial: TypeAlias = tuple[tuple[Id, int], ...]

# The monomial of the constant term, only used while combining
_ONE: Monomial = ()


def _mul_monomials(m1: Monomial, m2: Monomial) -> Monomial:
    powers = dict(m1)
    for key, exponent in m2:
        powers[key] = powers.get(key, 0) + exponent
    return tuple(sorted(powers.items()))


@dataclass(frozen=True)
class Polynomial:
    terms: dict[Monomial, int] = field(default_factory=dict)
    constant: int = 0

    @classmethod
    def from_items(cls, items: Iterable[tuple[Monomial, int]]) -> Polynomial:
        """
        Sums repeated monomials, the empty monomial being the constant, and drops zero coefficients.
        """
        terms: dict[Monomial, int] = {}
        for monomial, coef in items:
            terms[monomial] = terms.get(monomial, 0) + coef
        constant = terms.pop(_ONE, 0)
        return cls({m: c for m, c in terms.items() if c}, constant)

    @classmethod
    def basis(cls, id: Id) -> Polynomial:
        return cls({((id, 1),): 1})

    def items(self) -> list[tuple[Monomial, int]]:
        return [*self.terms.items(), (_ONE, self.constant)]

    def add(self, other: Polynomial) -> Polynomial:
        return Polynomial.from_items([*self.items(), *other.items()])

    def mul(self, other: Polynomial) -> Polynomial:
        return Polynomial.from_items(
            (_mul_monomials(m1, m2), c1 * c2) for m1, c1 in self.items() for m2, c2 in other.items()
        )

    def canonicalize(self, find: Callable[[Id], Id]) -> Polynomial:
        def canonical(monomial: Monomial) -> Monomial:
            return _mul_monomials((), tuple((find(k), e) for k, e in monomial))

        return Polynomial.from_items((canonical(m), c) for m, c in self.items())

    def sort_key(self) -> tuple[int, tuple[tuple[Monomial, int], ...], int]:
        return len(self.terms) + bool(self.constant), tuple(sorted(self.terms.items())), self.constant

    def __repr__(self) -> str:
        terms = [
            "*".join([str(c), *(f"#{k}^{e}" if e > 1 else f"#{k}" for k, e in m)])
            for m, c in sorted(self.terms.items())
        ]
        if self.constant or not terms:
            terms.append(str(self.constant))
        return " + ".join(terms)


def _to_pattern(polynomial: Polynomial) -> tuple[Pattern, Subst]:
    subst: Subst = {}
    terms: list[Pattern] = []
    for monomial, coef in sorted(polynomial.terms.items()):
        product: Pattern | None = None
        for key, exponent in monomial:
            var = Var(str(key))
            subst[var.name] = key
            for _ in range(exponent):
                product = var if product is None else PatternTerm("*", (product, var))
        assert product is not None
        terms.append(product if coef == 1 else PatternTerm("*", (PatternTerm(coef), product)))
    return sum_pattern(terms, polynomial.constant), subst


class PolynomialArith(Analysis[Polynomial]):
    """
    Summarizes every class as a polynomial over its opaque subterms, so both sides of the distributive law, of
    commutativity and of associativity end up with the same summary and in the same class.
    """

    def make(self, egraph: EGraph[Polynomial], node: ENode, id: Id) -> Polynomial:
        match node.op:
            case int(value):
                return Polynomial({}, value)
            case "+" | "*":
                left, right = (egraph[c].data.canonicalize(egraph.find) for c in node.children)
                return left.add(right) if node.op == "+" else left.mul(right)
            case str():
                return Polynomial.basis(id)
            case _:
                assert_never(node.op)

    def merge(self, existing: Polynomial, incoming: Polynomial) -> tuple[Polynomial, bool]:
        return merge_min(existing, incoming, Polynomial.sort_key)

    def modify(self, egraph: EGraph[Polynomial], id: Id) -> None:
        pattern, subst = _to_pattern(egraph[id].data.canonicalize(egraph.find))
        existing = egraph.lookup_instantiation(pattern, subst)
        if existing == egraph.find(id):
            return
        egraph.union(id, existing if existing is not None else egraph.add_instantiation(pattern, subst))
