"""
Schedulers decide which matches of which rules are applied in every iteration, to keep explosive rules in check.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .egraph import EGraph
    from .pattern import SearchMatches
    from .rewrite import Rewrite


__all__ = ["BackoffScheduler", "FiringCapScheduler", "RuleStats", "Scheduler", "SimpleScheduler"]

logger = logging.getLogger(__name__)


class Scheduler:
    """
    Base scheduler, which searches and applies every rule in every iteration.
    """

    def can_stop(self, iteration: int) -> bool:
        """
        Called when an iteration changed nothing. Returning False keeps the runner going, for example to give banned
        rules another chance.
        """
        return True

    def search_rewrite(self, iteration: int, egraph: EGraph, rewrite: Rewrite) -> list[SearchMatches]:
        return rewrite.search(egraph)

    def apply_rewrite(self, iteration: int, egraph: EGraph, rewrite: Rewrite, matches: list[SearchMatches]) -> int:
        return rewrite.apply(egraph, matches)


class SimpleScheduler(Scheduler):
    """
    Applies every match of every rule. Only use it with rule sets that saturate quickly.
    """


@dataclass
class RuleStats:
    times_applied: int = 0
    banned_until: int = 0
    times_banned: int = 0
    match_limit: int = 1_000
    ban_length: int = 5


@dataclass
class BackoffScheduler(Scheduler):
    """
    Bans a rule for a while once it matches too often.

    A rule matching more than its match limit is skipped for its ban length in iterations. Both the limit and the
    ban length double every time the rule is banned.
    """

    default_match_limit: int = 1_000
    default_ban_length: int = 5
    stats: dict[str, RuleStats] = field(default_factory=dict)

    def rule_stats(self, name: str) -> RuleStats:
        if name not in self.stats:
            self.stats[name] = RuleStats(match_limit=self.default_match_limit, ban_length=self.default_ban_length)
        return self.stats[name]

    def do_not_ban(self, name: str) -> BackoffScheduler:
        return self.rule_match_limit(name, 2**62)

    def rule_match_limit(self, name: str, limit: int) -> BackoffScheduler:
        self.rule_stats(name).match_limit = limit
        return self

    def rule_ban_length(self, name: str, length: int) -> BackoffScheduler:
        self.rule_stats(name).ban_length = length
        return self

    def can_stop(self, iteration: int) -> bool:
        banned = [s for s in self.stats.values() if s.banned_until > iteration]
        if not banned:
            return True
        # Nothing else is happening, so skip ahead to when the next rule is unbanned
        delta = min(s.banned_until - iteration for s in banned)
        for s in banned:
            s.banned_until -= delta
        logger.debug("Saturated with %d banned rules, unbanning them %d iterations early", len(banned), delta)
        return False

    def search_rewrite(self, iteration: int, egraph: EGraph, rewrite: Rewrite) -> list[SearchMatches]:
        stats = self.rule_stats(rewrite.name)
        if iteration < stats.banned_until:
            return []
        matches = rewrite.search(egraph)
        n_matches = sum(len(m) for m in matches)
        threshold = stats.match_limit << stats.times_banned
        if n_matches > threshold:
            ban_length = stats.ban_length << stats.times_banned
            stats.times_banned += 1
            stats.banned_until = iteration + ban_length
            logger.debug(
                "Banning %s for %d iterations after %d matches (threshold %d)",
                rewrite.name,
                ban_length,
                n_matches,
                threshold,
            )
            return []
        stats.times_applied += 1
        return matches


@dataclass
class FiringCapScheduler(Scheduler):
    """
    Bans a rule for the rest of the run once it has unioned `cap` pairs of classes.

    The cap can be set per rule name with `caps`, rules without an entry use `cap`. A cap of None means unbounded.

    A run stops as `Saturated` once every rule is capped, even though capped rules may still have matches. Check
    `remaining` before taking the e-graph as fully simplified.
    """

    cap: int | None = None
    caps: dict[str, int | None] = field(default_factory=dict)
    fired: dict[str, int] = field(default_factory=dict)

    def remaining(self, name: str) -> int | None:
        cap = self.caps.get(name, self.cap)
        if cap is None:
            return None
        return max(cap - self.fired.get(name, 0), 0)

    def search_rewrite(self, iteration: int, egraph: EGraph, rewrite: Rewrite) -> list[SearchMatches]:
        if self.remaining(rewrite.name) == 0:
            return []
        return rewrite.search(egraph)

    def apply_rewrite(self, iteration: int, egraph: EGraph, rewrite: Rewrite, matches: list[SearchMatches]) -> int:
        remaining = self.remaining(rewrite.name)
        n_applied = rewrite.apply(egraph, matches, limit=remaining)
        self.fired[rewrite.name] = self.fired.get(rewrite.name, 0) + n_applied
        if remaining is not None and n_applied >= remaining:
            logger.debug("Banning %s after reaching its cap of %d unions", rewrite.name, self.fired[rewrite.name])
        return n_applied
