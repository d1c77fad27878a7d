"""
Extracting the cheapest term represented by an e-class.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, Protocol, TypeVar

from .declarations import *

if TYPE_CHECKING:
    from collections.abc import Callable

    from .egraph import EClass, EGraph


__all__ = ["AstDepth", "AstSize", "CostFunction", "Extractor"]

C = TypeVar("C")


class CostFunction(Protocol[C]):
    def cost(self, node: ENode, costs: Callable[[Id], C]) -> C:
        """
        Returns the cost of the node, given the cost of the best term of each child class.

        Costs must grow strictly from children to parents for extraction to terminate on cyclic e-graphs.
        """
        ...


class AstSize:
    def cost(self, node: ENode, costs: Callable[[Id], int]) -> int:
        return 1 + sum(map(costs, node.children))


class AstDepth:
    def cost(self, node: ENode, costs: Callable[[Id], int]) -> int:
        return 1 + max(map(costs, node.children), default=0)


@dataclass
class Extractor(Generic[C]):
    """
    Finds the cheapest node of every class, by iterating until no cost improves.
    """

    egraph: EGraph
    cost_function: CostFunction[Any] = field(default_factory=AstSize)
    _costs: dict[Id, tuple[C, ENode]] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.egraph.is_clean:
            msg = "The e-graph must be rebuilt before extracting from it"
            raise ValueError(msg)
        changed = True
        while changed:
            changed = False
            for eclass in self.egraph.classes():
                best = self._best_node(eclass)
                if best is None:
                    continue
                previous = self._costs.get(eclass.id)
                if previous is None or best[0] < previous[0]:
                    self._costs[eclass.id] = best
                    changed = True

    def _best_node(self, eclass: EClass) -> tuple[C, ENode] | None:
        best = None
        for node in eclass.nodes:
            if not all(self.egraph.find(child) in self._costs for child in node.children):
                continue
            cost = self.cost_function.cost(node, self.find_best_cost)
            if best is None or cost < best[0]:
                best = (cost, node)
        return best

    def _lookup(self, id: Id) -> tuple[C, ENode]:
        try:
            return self._costs[self.egraph.find(id)]
        except KeyError:
            msg = f"Class {id} has no finite term to extract"
            raise ValueError(msg) from None

    def find_best_cost(self, id: Id) -> C:
        return self._lookup(id)[0]

    def find_best_node(self, id: Id) -> ENode:
        return self._lookup(id)[1]

    def find_best_term(self, id: Id) -> Term:
        node = self.find_best_node(id)
        return Term(node.op, tuple(self.find_best_term(child) for child in node.children))

    def find_best(self, id: Id) -> tuple[C, Term]:
        return self.find_best_cost(id), self.find_best_term(id)
