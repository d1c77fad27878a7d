"""
The equality saturation loop: search, apply and rebuild until nothing changes or a limit is hit.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Generic, TypeVar

from typing_extensions import Self

from .egraph import EGraph
from .scheduler import BackoffScheduler, Scheduler
from .sexp import parse_term

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .declarations import Id, Term
    from .pattern import SearchMatches
    from .rewrite import Rewrite


__all__ = [
    "IterationLimit",
    "Iteration",
    "NodeLimit",
    "RunReport",
    "Runner",
    "Saturated",
    "StopReason",
    "TimeLimit",
]

logger = logging.getLogger(__name__)

D = TypeVar("D")


@dataclass(frozen=True)
class StopReason:
    @property
    def is_limit(self) -> bool:
        """
        Whether the run was cut short, in which case the e-graph may not hold every provable equality.
        """
        return not isinstance(self, Saturated)


@dataclass(frozen=True)
class Saturated(StopReason):
    def __str__(self) -> str:
        return "saturated"


@dataclass(frozen=True)
class IterationLimit(StopReason):
    limit: int

    def __str__(self) -> str:
        return f"iteration limit of {self.limit} reached"


@dataclass(frozen=True)
class NodeLimit(StopReason):
    limit: int

    def __str__(self) -> str:
        return f"node limit of {self.limit} reached"


@dataclass(frozen=True)
class TimeLimit(StopReason):
    seconds: float

    def __str__(self) -> str:
        return f"time limit of {self.seconds}s reached"


@dataclass(frozen=True)
class Iteration:
    """
    Statistics of one search, apply and rebuild cycle.
    """

    egraph_nodes: int
    egraph_classes: int
    # Matches found and unions done, per rule
    num_matches_per_rule: dict[str, int]
    applied: dict[str, int]
    n_added: int
    n_unions: int
    n_rebuild_unions: int
    search_time: timedelta
    apply_time: timedelta
    rebuild_time: timedelta

    @property
    def saturated(self) -> bool:
        return self.n_added == 0 and self.n_unions == 0

    @property
    def total_time(self) -> timedelta:
        return self.search_time + self.apply_time + self.rebuild_time


@dataclass(frozen=True)
class RunReport:
    iterations: list[Iteration]
    stop_reason: StopReason
    egraph_nodes: int
    egraph_classes: int
    total_time: timedelta

    @property
    def updated(self) -> bool:
        """
        Whether any iteration changed the e-graph.
        """
        return any(not i.saturated for i in self.iterations)

    @property
    def num_matches_per_rule(self) -> dict[str, int]:
        return _sum_per_rule(i.num_matches_per_rule for i in self.iterations)

    @property
    def applied_per_rule(self) -> dict[str, int]:
        return _sum_per_rule(i.applied for i in self.iterations)

    def __str__(self) -> str:
        return (
            f"Stopped after {len(self.iterations)} iterations ({self.stop_reason}) "
            f"with {self.egraph_nodes} nodes in {self.egraph_classes} classes, "
            f"in {self.total_time.total_seconds():.3f}s"
        )


def _sum_per_rule(per_iteration: Iterable[dict[str, int]]) -> dict[str, int]:
    totals: dict[str, int] = {}
    for counts in per_iteration:
        for name, n in counts.items():
            totals[name] = totals.get(name, 0) + n
    return totals


@dataclass
class Runner(Generic[D]):
    """
    Runs rewrites on an e-graph until saturation or until one of the limits is reached.

    ```python
    runner = Runner(EGraph(LinearArith()), iter_limit=7).with_expr("(+ a (+ a (+ a a)))")
    report = runner.run(rules)
    ```
    """

    egraph: EGraph[D] = field(default_factory=EGraph)
    iter_limit: int = 30
    node_limit: int = 10_000
    time_limit: timedelta = timedelta(seconds=5)
    scheduler: Scheduler = field(default_factory=BackoffScheduler)
    # Classes of the expressions the runner was seeded with
    roots: list[Id] = field(default_factory=list)
    iterations: list[Iteration] = field(default_factory=list)
    stop_reason: StopReason | None = None

    def with_term(self, term: Term) -> Self:
        self.roots.append(self.egraph.add_term(term))
        return self

    def with_expr(self, expr: str) -> Self:
        """
        Adds an expression in prefix syntax as another root.
        """
        return self.with_term(parse_term(expr))

    def run(self, rules: Iterable[Rewrite]) -> RunReport:
        """
        Saturates the e-graph with the rules. Every call starts over with no iterations, so the limits apply per call.
        """
        rules = list(rules)
        names = [r.name for r in rules]
        if len(set(names)) != len(names):
            duplicates = sorted({n for n in names if names.count(n) > 1})
            msg = f"Rewrite names must be unique, got duplicates {duplicates}"
            raise ValueError(msg)

        self.iterations = []
        self.stop_reason = None
        start = time.perf_counter()
        self.egraph.rebuild()
        while True:
            stop_reason = self._check_limits(start)
            if stop_reason is not None:
                break
            iteration = self._run_one(rules)
            self.iterations.append(iteration)
            logger.debug(
                "Iteration %d: %d unions, %d nodes added, %d nodes in %d classes",
                len(self.iterations) - 1,
                iteration.n_unions,
                iteration.n_added,
                iteration.egraph_nodes,
                iteration.egraph_classes,
            )
            if iteration.saturated and self.scheduler.can_stop(len(self.iterations) - 1):
                stop_reason = Saturated()
                break
        self.stop_reason = stop_reason
        report = RunReport(
            list(self.iterations),
            stop_reason,
            self.egraph.total_size,
            self.egraph.number_of_classes,
            timedelta(seconds=time.perf_counter() - start),
        )
        logger.info("%s", report)
        return report

    def _check_limits(self, start: float) -> StopReason | None:
        if len(self.iterations) >= self.iter_limit:
            return IterationLimit(self.iter_limit)
        if self.egraph.total_size > self.node_limit:
            return NodeLimit(self.node_limit)
        if time.perf_counter() - start > self.time_limit.total_seconds():
            return TimeLimit(self.time_limit.total_seconds())
        return None

    def _run_one(self, rules: list[Rewrite]) -> Iteration:
        i = len(self.iterations)
        egraph = self.egraph
        n_nodes, n_unions = egraph.n_nodes, egraph.n_unions

        # Every rule is searched before any is applied, so all see the same e-graph
        t0 = time.perf_counter()
        matches: dict[str, list[SearchMatches]] = {r.name: self.scheduler.search_rewrite(i, egraph, r) for r in rules}
        t1 = time.perf_counter()
        applied = {r.name: self.scheduler.apply_rewrite(i, egraph, r, matches[r.name]) for r in rules}
        t2 = time.perf_counter()
        n_apply_unions = egraph.n_unions - n_unions
        n_rebuild_unions = egraph.rebuild()
        t3 = time.perf_counter()

        return Iteration(
            egraph_nodes=egraph.total_size,
            egraph_classes=egraph.number_of_classes,
            num_matches_per_rule={name: sum(len(m) for m in ms) for name, ms in matches.items()},
            applied=applied,
            n_added=egraph.n_nodes - n_nodes,
            n_unions=n_apply_unions + n_rebuild_unions,
            n_rebuild_unions=n_rebuild_unions,
            search_time=timedelta(seconds=t1 - t0),
            apply_time=timedelta(seconds=t2 - t1),
            rebuild_time=timedelta(seconds=t3 - t2),
        )
