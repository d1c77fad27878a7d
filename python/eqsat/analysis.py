"""
E-class analyses attach a lattice value to every e-class and keep it up to date as classes are merged.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

    from .declarations import ENode, Id
    from .egraph import EGraph


__all__ = ["Analysis", "NoAnalysis", "merge_min"]

D = TypeVar("D")


class Analysis(ABC, Generic[D]):
    """
    The callbacks the e-graph invokes to maintain one datum per e-class.

    * `make` computes the datum of a newly added node from the data of its children.
    * `merge` joins the data of two classes when they are unioned. It must not touch the e-graph.
    * `modify` is called on a class after its datum changed, once the e-graph is congruent again. It is the only
      callback allowed to add nodes or union classes, and it must do nothing when called again on a class it already
      brought to canonical form.
    """

    @abstractmethod
    def make(self, egraph: EGraph[D], node: ENode, id: Id) -> D:
        """
        Returns the datum of `node`, which is being added to the e-graph as the class `id`.

        Children data can be read with ``egraph[child].data``.
        """

    @abstractmethod
    def merge(self, existing: D, incoming: D) -> tuple[D, bool]:
        """
        Joins two data, returning the result and whether it differs from `existing`.
        """

    def modify(self, egraph: EGraph[D], id: Id) -> None:  # noqa: B027
        pass


class NoAnalysis(Analysis[None]):
    def make(self, egraph: EGraph[None], node: ENode, id: Id) -> None:
        return None

    def merge(self, existing: None, incoming: None) -> tuple[None, bool]:
        return None, False


def merge_min(existing: D, incoming: D, key: Callable[[D], Any]) -> tuple[D, bool]:
    """
    Joins by keeping the smaller datum under `key`, which must be a total order.

    Since the minimum of a total order is commutative, associative and idempotent, the joined value does not depend
    on the order classes are unioned in.
    """
    if existing == incoming or key(existing) <= key(incoming):
        return existing, False
    return incoming, True
