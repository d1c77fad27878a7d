"""
An e-graph: a hashcons of e-nodes over a union-find of e-classes, kept congruent by `EGraph.rebuild`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import graphviz
from typing_extensions import assert_never

from .analysis import Analysis, NoAnalysis
from .declarations import *
from .unionfind import UnionFind

if TYPE_CHECKING:
    from collections.abc import Iterator


__all__ = ["EClass", "EGraph"]

logger = logging.getLogger(__name__)

D = TypeVar("D")


@dataclass
class EClass(Generic[D]):
    id: Id
    nodes: list[ENode]
    data: D
    # Nodes with a child in this class, along with the class they belong to. Both may be stale until rebuilt.
    parents: list[tuple[ENode, Id]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[ENode]:
        return iter(self.nodes)

    def leaves(self) -> Iterator[ENode]:
        return (n for n in self.nodes if n.is_leaf)


@dataclass
class EGraph(Generic[D]):
    """
    Equivalence classes of e-nodes.

    Adding and unioning can be done in any order, but the hashcons and the class contents are only guaranteed to be
    canonical, and the analysis data up to date, after calling `rebuild`.
    """

    analysis: Analysis[Any] = field(default_factory=NoAnalysis)

    _unionfind: UnionFind = field(default_factory=UnionFind, repr=False)
    # Canonical e-node to the class it belongs to
    _memo: dict[ENode, Id] = field(default_factory=dict, repr=False)
    # Only holds roots, merged classes are removed
    _classes: dict[Id, EClass[D]] = field(default_factory=dict, repr=False)

    # Classes whose parents must be re-canonicalized
    _pending: list[Id] = field(default_factory=list, repr=False)
    # Parents whose datum must be recomputed because a child's datum changed
    _analysis_pending: list[tuple[ENode, Id]] = field(default_factory=list, repr=False)
    # Classes whose datum changed since `modify` last saw them
    _modify_pending: list[Id] = field(default_factory=list, repr=False)
    # Classes whose nodes may hold stale children
    _touched: set[Id] = field(default_factory=set, repr=False)

    # Number of nodes ever added and of unions which merged two distinct classes
    n_nodes: int = 0
    n_unions: int = 0

    def __getitem__(self, id: Id) -> EClass[D]:
        return self._classes[self.find(id)]

    def __len__(self) -> int:
        return len(self._classes)

    def __contains__(self, term: Term) -> bool:
        return self.lookup_term(term) is not None

    @property
    def number_of_classes(self) -> int:
        return len(self._classes)

    @property
    def total_size(self) -> int:
        """
        Number of e-nodes in all the classes.
        """
        return sum(len(c.nodes) for c in self._classes.values())

    @property
    def is_clean(self) -> bool:
        return not (self._pending or self._analysis_pending or self._modify_pending)

    def classes(self) -> list[EClass[D]]:
        return list(self._classes.values())

    def find(self, id: Id) -> Id:
        return self._unionfind.find(id)

    def canonicalize(self, node: ENode) -> ENode:
        return node.map_children(self._unionfind.find)

    ##
    # Adding and looking up
    ##

    def lookup(self, node: ENode) -> Id | None:
        """
        Returns the class of the node if it is in the e-graph, without adding it.
        """
        id = self._memo.get(self.canonicalize(node))
        return None if id is None else self.find(id)

    def lookup_term(self, term: Term) -> Id | None:
        children = []
        for arg in term.args:
            child = self.lookup_term(arg)
            if child is None:
                return None
            children.append(child)
        return self.lookup(ENode(term.op, tuple(children)))

    def lookup_instantiation(self, pattern: Pattern, subst: Subst) -> Id | None:
        match pattern:
            case Var(name):
                return self.find(subst[name])
            case PatternTerm(op, args):
                children = []
                for arg in args:
                    child = self.lookup_instantiation(arg, subst)
                    if child is None:
                        return None
                    children.append(child)
                return self.lookup(ENode(op, tuple(children)))
            case _:
                assert_never(pattern)

    def add(self, node: ENode) -> Id:
        """
        Adds the node, returning the class of an identical node if one is already present.
        """
        node = self.canonicalize(node)
        existing = self._memo.get(node)
        if existing is not None:
            return self.find(existing)
        id = self._unionfind.make_set()
        self._classes[id] = EClass(id, [node], self.analysis.make(self, node, id))
        self._memo[node] = id
        for child in dict.fromkeys(node.children):
            self._classes[child].parents.append((node, id))
        self._modify_pending.append(id)
        self.n_nodes += 1
        return id

    def add_term(self, term: Term) -> Id:
        return self.add(ENode(term.op, tuple(self.add_term(arg) for arg in term.args)))

    def add_instantiation(self, pattern: Pattern, subst: Subst) -> Id:
        """
        Adds the pattern with its variables replaced by the classes they are bound to.
        """
        match pattern:
            case Var(name):
                return self.find(subst[name])
            case PatternTerm(op, args):
                return self.add(ENode(op, tuple(self.add_instantiation(arg, subst) for arg in args)))
            case _:
                assert_never(pattern)

    def equivs(self, term1: Term, term2: Term) -> bool:
        """
        Returns whether both terms are present and in the same class.
        """
        id1, id2 = self.lookup_term(term1), self.lookup_term(term2)
        return id1 is not None and id1 == id2

    ##
    # Merging and rebuilding
    ##

    def union(self, id1: Id, id2: Id) -> bool:
        """
        Merges the classes of the two ids, returning whether they were distinct.

        Congruence is only restored by `rebuild`.
        """
        root1, root2 = self.find(id1), self.find(id2)
        if root1 == root2:
            return False
        class1, class2 = self._classes[root1], self._classes[root2]
        # The class with more parents survives, so fewer parents are moved. Ties go to the older class.
        if (len(class1.parents), -root1) < (len(class2.parents), -root2):
            root1, root2 = root2, root1
            class1, class2 = class2, class1
        self._unionfind.union(root1, root2)
        del self._classes[root2]
        self.n_unions += 1

        joined, changed = self.analysis.merge(class1.data, class2.data)
        if changed:
            self._analysis_pending.extend(class1.parents)
        if joined != class2.data:
            self._analysis_pending.extend(class2.parents)
        if changed or joined != class2.data:
            self._modify_pending.append(root1)
        class1.data = joined
        class1.nodes.extend(class2.nodes)
        class1.parents.extend(class2.parents)

        self._pending.append(root1)
        self._touched.add(root1)
        return True

    def rebuild(self) -> int:
        """
        Restores congruence, brings the analysis data up to date and lets the analysis modify changed classes.

        Returns the number of unions done while rebuilding.
        """
        n_unions = self.n_unions
        while not self.is_clean:
            self._process_unions()
            todo = dict.fromkeys(map(self.find, self._modify_pending))
            self._modify_pending.clear()
            for id in todo:
                self.analysis.modify(self, self.find(id))
        n_touched = len(self._touched)
        self._rebuild_classes()
        logger.debug(
            "Rebuilt e-graph with %d unions, %d classes touched, %d classes in total",
            self.n_unions - n_unions,
            n_touched,
            len(self._classes),
        )
        return self.n_unions - n_unions

    def _process_unions(self) -> None:
        while self._pending or self._analysis_pending:
            while self._pending:
                todo = dict.fromkeys(map(self.find, self._pending))
                self._pending.clear()
                for id in todo:
                    self._repair(self.find(id))
            while self._analysis_pending:
                node, id = self._analysis_pending.pop()
                eclass = self[id]
                node_data = self.analysis.make(self, self.canonicalize(node), eclass.id)
                joined, changed = self.analysis.merge(eclass.data, node_data)
                if changed:
                    eclass.data = joined
                    self._analysis_pending.extend(eclass.parents)
                    self._modify_pending.append(eclass.id)

    def _repair(self, id: Id) -> None:
        """
        Re-interns the parents of a merged class, unioning those which became identical.
        """
        eclass = self._classes[id]
        for node, _ in eclass.parents:
            self._memo.pop(node, None)
        parents: dict[ENode, Id] = {}
        congruent: list[tuple[Id, Id]] = []
        for node, parent_id in eclass.parents:
            node = self.canonicalize(node)  # noqa: PLW2901
            parent_id = self.find(parent_id)  # noqa: PLW2901
            existing = parents.get(node)
            if existing is not None and existing != parent_id:
                congruent.append((existing, parent_id))
            parents[node] = parent_id
            self._memo[node] = parent_id
            self._touched.add(parent_id)
        eclass.parents = list(parents.items())
        for id1, id2 in congruent:
            self.union(id1, id2)

    def _rebuild_classes(self) -> None:
        for id in dict.fromkeys(map(self.find, self._touched)):
            eclass = self._classes[id]
            eclass.nodes = list(dict.fromkeys(map(self.canonicalize, eclass.nodes)))
        self._touched.clear()

    ##
    # Display
    ##

    def graphviz(self) -> graphviz.Digraph:
        """
        Renders the e-graph with one cluster per class and edges from each e-node to its children's classes.
        """
        dot = graphviz.Digraph(graph_attr={"compound": "true", "clusterrank": "local"})
        for eclass in self._classes.values():
            with dot.subgraph(name=f"cluster_{eclass.id}") as cluster:
                cluster.attr(style="dotted,rounded", label=f"#{eclass.id}")
                for i, node in enumerate(eclass.nodes):
                    cluster.node(f"{eclass.id}.{i}", label=str(node.op), shape="box")
        for eclass in self._classes.values():
            for i, node in enumerate(eclass.nodes):
                for child in node.children:
                    child = self.find(child)  # noqa: PLW2901
                    dot.edge(f"{eclass.id}.{i}", f"{child}.0", lhead=f"cluster_{child}")
        return dot

    def __str__(self) -> str:
        lines = [f"EGraph with {len(self._classes)} classes and {self.total_size} nodes"]
        for id, eclass in sorted(self._classes.items()):
            nodes = ", ".join(map(str, eclass.nodes))
            lines.append(f"  #{id}: {nodes} [{eclass.data!r}]")
        return "\n".join(lines)
