"""
Polynomial analysis
===================

With polynomial summaries, expanding ``(x + y) * (x + y)`` needs no distributivity rules.
"""

from __future__ import annotations

from eqsat import *

egraph = EGraph(PolynomialArith())
square = egraph.add_term(parse_term("(* (+ x y) (+ x y))"))
expanded = egraph.add_term(parse_term("(+ (* x x) (+ (* 2 (* x y)) (* y y)))"))
egraph.rebuild()

assert egraph.find(square) == egraph.find(expanded)
