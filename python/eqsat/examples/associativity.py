"""
Associativity and commutativity
===============================

Reassociating and commuting a sum of seven constants puts every non-empty subset of them in its own class.
"""

from __future__ import annotations

from eqsat import *

runner = Runner(iter_limit=7, scheduler=SimpleScheduler())
runner.with_expr("(+ 1 (+ 2 (+ 3 (+ 4 (+ 5 (+ 6 7))))))")
runner.run(associativity_rules())

assert runner.egraph.number_of_classes == 2**7 - 1
assert runner.egraph.equivs(
    parse_term("(+ 1 (+ 2 (+ 3 (+ 4 (+ 5 (+ 6 7))))))"),
    parse_term("(+ 7 (+ 6 (+ 5 (+ 4 (+ 3 (+ 2 1))))))"),
)
