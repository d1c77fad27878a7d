from __future__ import annotations

import pytest

from eqsat import *


def data(egraph: EGraph, expr: str) -> LinearData:
    id = egraph.add_term(parse_term(expr))
    return egraph[id].data


def id_of(egraph: EGraph, expr: str) -> Id:
    id = egraph.lookup_term(parse_term(expr))
    assert id is not None
    return id


class TestLinExp:
    def test_from_items(self):
        assert LinExp.from_items([(1, 2), (2, 1), (1, -2)], 3) == LinExp({2: 1}, 3)

    def test_zero_coefficients_are_rejected(self):
        with pytest.raises(AssertionError):
            LinExp({1: 0})

    def test_add(self):
        assert LinExp({1: 1}, 2).add(LinExp({1: -1, 2: 3}, -2)) == LinExp({2: 3}, 0)

    def test_scale(self):
        assert LinExp({1: 2}, 1).scale(-3) == LinExp({1: -6}, -3)
        assert LinExp({1: 2}, 1).scale(0) == LinExp()

    def test_mul(self):
        assert LinExp({}, 4).mul(LinExp({1: 1}, 1)) == LinExp({1: 4}, 4)
        assert LinExp({1: 1}, 1).mul(LinExp({}, 4)) == LinExp({1: 4}, 4)
        assert LinExp({1: 1}).mul(LinExp({2: 1})) is ABSENT

    def test_canonicalize_combines_merged_keys(self):
        find = {1: 1, 2: 1, 3: 3}.__getitem__
        assert LinExp({1: 1, 2: 2, 3: 1}).canonicalize(find) == LinExp({1: 3, 3: 1})
        assert LinExp({1: 1, 2: -1}).canonicalize(find) == LinExp()

    def test_repr(self):
        assert repr(LinExp({2: 1, 1: 3}, -1)) == "3*#1 + 1*#2 + -1"
        assert repr(LinExp()) == "0"
        assert repr(ABSENT) == "ABSENT"


class TestMake:
    def test_literal(self, linear_egraph: EGraph):
        assert data(linear_egraph, "3") == LinExp({}, 3)

    def test_symbol(self, linear_egraph: EGraph):
        id = linear_egraph.add_term(parse_term("x"))
        assert linear_egraph[id].data == LinExp({id: 1})

    def test_call_is_opaque(self, linear_egraph: EGraph):
        id = linear_egraph.add_term(parse_term("(f 2 x)"))
        assert linear_egraph[id].data == LinExp({id: 1})

    def test_sum(self, linear_egraph: EGraph):
        x = linear_egraph.add_term(parse_term("x"))
        assert data(linear_egraph, "(+ x (+ 2 x))") == LinExp({x: 2}, 2)

    def test_scaled(self, linear_egraph: EGraph):
        x = linear_egraph.add_term(parse_term("x"))
        assert data(linear_egraph, "(* (+ x 1) 3)") == LinExp({x: 3}, 3)

    @pytest.mark.parametrize(
        "expr",
        [
            pytest.param("(* x y)", id="product"),
            pytest.param("(+ (* x y) 1)", id="sum-of-product"),
            pytest.param("(* 2 (* x x))", id="scaled-product"),
        ],
    )
    def test_absent(self, linear_egraph: EGraph, expr: str):
        assert data(linear_egraph, expr) is ABSENT

    def test_uninterpreted_operator(self, linear_egraph: EGraph):
        id = linear_egraph.add_term(parse_term("(- x x)"))
        assert linear_egraph[id].data == LinExp({id: 1})


class TestMerge:
    @pytest.mark.parametrize(
        ("existing", "incoming", "expected"),
        [
            pytest.param(ABSENT, ABSENT, (ABSENT, False), id="both-absent"),
            pytest.param(ABSENT, LinExp({}, 1), (LinExp({}, 1), True), id="present-wins"),
            pytest.param(LinExp({}, 1), ABSENT, (LinExp({}, 1), False), id="present-kept"),
            pytest.param(LinExp({1: 1}), LinExp({1: 1}), (LinExp({1: 1}), False), id="equal"),
            pytest.param(LinExp({1: 1, 2: 1}), LinExp({3: 2}), (LinExp({3: 2}), True), id="fewer-terms"),
            pytest.param(LinExp({3: 1}), LinExp({2: 1}), (LinExp({2: 1}), True), id="smaller-key"),
            pytest.param(LinExp({2: 1}), LinExp({3: 1}), (LinExp({2: 1}), False), id="larger-key"),
        ],
    )
    def test_merge(self, existing: LinearData, incoming: LinearData, expected: tuple[LinearData, bool]):
        assert LinearArith().merge(existing, incoming) == expected

    def test_merge_is_order_independent(self):
        values = [ABSENT, LinExp({}, 5), LinExp({1: 1}, 2), LinExp({4: -1})]
        analysis = LinearArith()
        results = set()
        for start in range(len(values)):
            joined = values[start]
            for value in values[start + 1 :] + values[:start]:
                joined, _ = analysis.merge(joined, value)
            results.add(repr(joined))
        assert results == {"5"}


def test_collects_like_terms(linear_egraph: EGraph):
    """
    x + x + x + x is 4 * x, without any rewrite rules.
    """
    id = linear_egraph.add_term(parse_term("(+ x (+ x (+ x x)))"))
    linear_egraph.rebuild()
    assert linear_egraph.find(id) == id_of(linear_egraph, "(* 4 x)")
    assert linear_egraph.equivs(parse_term("(+ x x)"), parse_term("(* 2 x)"))
    assert Extractor(linear_egraph).find_best_term(id) == parse_term("(* 4 x)")


def test_cancels_to_constant(linear_egraph: EGraph):
    """
    1 + (a + (-2 + 1) * a) is 1.
    """
    id = linear_egraph.add_term(parse_term("(+ 1 (+ a (* (+ -2 1) a)))"))
    linear_egraph.rebuild()
    assert linear_egraph.find(id) == id_of(linear_egraph, "1")
    assert linear_egraph.equivs(parse_term("(+ a (* (+ -2 1) a))"), parse_term("0"))
    assert linear_egraph.equivs(parse_term("(+ -2 1)"), parse_term("-1"))


def test_canonical_form_ordering(linear_egraph: EGraph):
    y = linear_egraph.add_term(parse_term("y"))
    x = linear_egraph.add_term(parse_term("x"))
    id = linear_egraph.add_term(parse_term("(+ (+ 1 x) (* y 3))"))
    linear_egraph.rebuild()
    assert (y, x) == (0, 1)
    # Terms are ordered by class id, the constant comes last
    assert linear_egraph.find(id) == id_of(linear_egraph, "(+ (+ (* 3 y) x) 1)")


def test_sums_of_calls(linear_egraph: EGraph):
    id1 = linear_egraph.add_term(parse_term("(+ (f x) (+ (g y) (f x)))"))
    id2 = linear_egraph.add_term(parse_term("(+ (* 2 (f x)) (g y))"))
    linear_egraph.rebuild()
    assert linear_egraph.find(id1) == linear_egraph.find(id2)


def test_nonlinear_subterms_are_opaque(linear_egraph: EGraph):
    id1 = linear_egraph.add_term(parse_term("(+ (* x y) (* x y))"))
    id2 = linear_egraph.add_term(parse_term("(* 2 (* x y))"))
    linear_egraph.rebuild()
    assert linear_egraph[id1].data is ABSENT
    assert linear_egraph.find(id1) != linear_egraph.find(id2)


def test_modify_is_idempotent(linear_egraph: EGraph):
    linear_egraph.add_term(parse_term("(+ x (+ x (+ x x)))"))
    linear_egraph.add_term(parse_term("(+ 1 (+ a (* (+ -2 1) a)))"))
    linear_egraph.rebuild()
    n_nodes, n_unions = linear_egraph.n_nodes, linear_egraph.n_unions
    for eclass in linear_egraph.classes():
        linear_egraph.analysis.modify(linear_egraph, eclass.id)
    assert (linear_egraph.n_nodes, linear_egraph.n_unions) == (n_nodes, n_unions)
    assert linear_egraph.is_clean


def test_union_updates_parents(linear_egraph: EGraph):
    """
    Learning that y is 2 * x through a union turns x + y into 3 * x.
    """
    id = linear_egraph.add_term(parse_term("(+ x y)"))
    linear_egraph.union(id_of(linear_egraph, "y"), linear_egraph.add_term(parse_term("(* 2 x)")))
    linear_egraph.rebuild()
    assert linear_egraph.find(id) == id_of(linear_egraph, "(* 3 x)")


def test_with_associativity_rules():
    runner = Runner(EGraph(LinearArith()), iter_limit=7).with_expr("(+ a (+ a (+ a a)))")
    runner.run(associativity_rules())
    (root,) = runner.roots
    assert runner.egraph.find(root) == id_of(runner.egraph, "(* 4 a)")
    assert runner.egraph.equivs(parse_term("(+ (+ a a) (+ a a))"), parse_term("(* 4 a)"))


def test_make_is_pure(linear_egraph: EGraph):
    linear_egraph.add_term(parse_term("(+ (* 3 x) (+ y 2))"))
    linear_egraph.rebuild()
    analysis = linear_egraph.analysis
    for eclass in linear_egraph.classes():
        for node in eclass:
            assert analysis.make(linear_egraph, node, eclass.id) == analysis.make(linear_egraph, node, eclass.id)


def test_with_rules():
    runner = Runner(EGraph(LinearArith()), scheduler=SimpleScheduler()).with_expr("(- (+ x 3) (+ 3 x))")
    runner.run([rewrite("(- ?a ?b)", name="sub-canon").to("(+ ?a (* -1 ?b))")])
    assert runner.egraph.equivs(parse_term("(- (+ x 3) (+ 3 x))"), parse_term("0"))
