"""
Linear arithmetic analysis
==========================

The analysis alone, without any rewrite rules, proves that ``x + x + x + x`` is ``4 * x`` and that
``1 + (a + (-2 + 1) * a)`` is ``1``.
"""

from __future__ import annotations

from eqsat import *

egraph = EGraph(LinearArith())
runner = Runner(egraph, iter_limit=10).with_expr("(+ x (+ x (+ x x)))").with_expr("(+ 1 (+ a (* (+ -2 1) a)))")
report = runner.run([])
assert report.stop_reason == Saturated()

four_x, one = runner.roots
extractor = Extractor(egraph)
assert str(extractor.find_best_term(four_x)) == "(* 4 x)"
assert egraph.find(one) == egraph.lookup_term(parse_term("1"))
