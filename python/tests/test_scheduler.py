from __future__ import annotations

from eqsat import *


def two_sums() -> EGraph:
    egraph = EGraph()
    egraph.add_term(parse_term("(+ a b)"))
    egraph.add_term(parse_term("(+ c d)"))
    return egraph


def n_commuted(egraph: EGraph) -> int:
    return sum(parse_term(t) in egraph for t in ["(+ b a)", "(+ d c)"])


def test_firing_cap():
    egraph = two_sums()
    scheduler = FiringCapScheduler(cap=1)
    report = Runner(egraph, scheduler=scheduler).run(associativity_rules())
    assert report.stop_reason == Saturated()
    assert scheduler.fired["comm-add"] == 1
    assert report.applied_per_rule["comm-add"] == 1
    assert scheduler.remaining("comm-add") == 0
    assert n_commuted(egraph) == 1
    # Saturated only as far as the caps allow, the capped rule would still commute the other sum
    (comm_add, _) = associativity_rules()
    assert comm_add.apply(egraph, comm_add.search(egraph)) == 1


def test_firing_cap_per_rule():
    scheduler = FiringCapScheduler(cap=0, caps={"comm-add": None})
    assert scheduler.remaining("comm-add") is None
    assert scheduler.remaining("assoc-add") == 0

    egraph = two_sums()
    report = Runner(egraph, scheduler=scheduler).run(associativity_rules())
    assert report.stop_reason == Saturated()
    assert n_commuted(egraph) == 2
    assert "assoc-add" not in scheduler.fired or scheduler.fired["assoc-add"] == 0


def test_firing_cap_unbounded():
    egraph = two_sums()
    Runner(egraph, scheduler=FiringCapScheduler()).run(associativity_rules())
    assert n_commuted(egraph) == 2


def test_backoff_ban():
    egraph = two_sums()
    scheduler = BackoffScheduler().rule_match_limit("comm-add", 1)
    runner = Runner(egraph, scheduler=scheduler)
    report = runner.run([rewrite("(+ ?a ?b)", name="comm-add").to("(+ ?b ?a)")])

    # Banned in the first iteration, then unbanned early once nothing else could change
    assert report.iterations[0].num_matches_per_rule == {"comm-add": 0}
    assert report.stop_reason == Saturated()
    assert n_commuted(egraph) == 2
    assert scheduler.stats["comm-add"].times_banned == 2
    assert len(report.iterations) == 4


def test_backoff_do_not_ban():
    egraph = two_sums()
    scheduler = BackoffScheduler(default_match_limit=1).do_not_ban("comm-add")
    report = Runner(egraph, scheduler=scheduler).run([rewrite("(+ ?a ?b)", name="comm-add").to("(+ ?b ?a)")])
    assert report.iterations[0].applied == {"comm-add": 2}
    assert scheduler.stats["comm-add"].times_banned == 0


def test_backoff_can_stop():
    scheduler = BackoffScheduler()
    scheduler.rule_stats("r").banned_until = 10
    assert not scheduler.can_stop(4)
    assert scheduler.stats["r"].banned_until == 4
    assert scheduler.can_stop(4)


def test_simple_scheduler_applies_everything():
    egraph = two_sums()
    report = Runner(egraph, scheduler=SimpleScheduler()).run([rewrite("(+ ?a ?b)", name="comm-add").to("(+ ?b ?a)")])
    assert report.iterations[0].applied == {"comm-add": 2}
    assert report.iterations[1].saturated
