"""
Rewrite rules for integer arithmetic over ``+``, ``*`` and ``-``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .rewrite import Condition, Rewrite, rewrite

if TYPE_CHECKING:
    from .declarations import Id, Subst
    from .egraph import EGraph


__all__ = ["arithmetic_rules", "associativity_rules", "is_not_zero"]


def is_not_zero(var: str) -> Condition:
    """
    Guard which holds unless the class bound to ``?var`` contains the literal 0.
    """
    name = var.removeprefix("?")

    def condition(egraph: EGraph, id: Id, subst: Subst) -> bool:
        return all(node.op != 0 for node in egraph[subst[name]].leaves())

    return condition


def associativity_rules() -> list[Rewrite]:
    return [
        rewrite("(+ ?a ?b)", name="comm-add").to("(+ ?b ?a)"),
        rewrite("(+ ?a (+ ?b ?c))", name="assoc-add").to("(+ (+ ?a ?b) ?c)"),
    ]


def arithmetic_rules() -> list[Rewrite]:
    """
    Commutativity, associativity, identities, distribution and factoring.

    ``add-zero`` and ``mul-one`` grow the e-graph without bound, so run these with a scheduler or small limits.
    """
    return [
        *associativity_rules(),
        rewrite("(* ?a ?b)", name="comm-mul").to("(* ?b ?a)"),
        rewrite("(* ?a (* ?b ?c))", name="assoc-mul").to("(* (* ?a ?b) ?c)"),
        rewrite("(- ?a ?b)", name="sub-canon").to("(+ ?a (* -1 ?b))"),
        rewrite("(+ ?a 0)", name="zero-add").to("?a"),
        rewrite("(* ?a 0)", name="zero-mul").to("0"),
        rewrite("(* ?a 1)", name="one-mul").to("?a"),
        rewrite("?a", name="add-zero").to("(+ ?a 0)"),
        rewrite("?a", name="mul-one").to("(* ?a 1)"),
        rewrite("(- ?a ?a)", name="cancel-sub").to("0"),
        rewrite("(/ ?a ?a)", name="cancel-div").to("1", is_not_zero("?a")),
        rewrite("(* ?a (+ ?b ?c))", name="distribute").to("(+ (* ?a ?b) (* ?a ?c))"),
        rewrite("(+ (* ?a ?b) (* ?a ?c))", name="factor").to("(* ?a (+ ?b ?c))"),
    ]
