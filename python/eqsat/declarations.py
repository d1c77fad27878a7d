"""
Data only descriptions of e-nodes, terms and patterns.

The e-graph stores `ENode`s, whose children are class ids. `Term`s and patterns are plain trees, used for input,
for rules and for the output of extraction.
"""

from __future__ import annotations

import operator
from dataclasses import dataclass
from functools import reduce
from typing import TYPE_CHECKING, TypeAlias, Union

from typing_extensions import assert_never

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping


__all__ = [
    "FIXED_ARITIES",
    "ENode",
    "Id",
    "Pattern",
    "PatternTerm",
    "Subst",
    "Symbol",
    "Term",
    "Var",
    "check_arity",
    "pattern_vars",
    "term_to_pattern",
]

Id: TypeAlias = int
# Integers are literals, strings are operators, bare symbols and function names
Symbol: TypeAlias = Union[str, int]
Subst: TypeAlias = dict[str, Id]

# Operators with a fixed number of children. Every other string symbol is variadic, a bare symbol being a call
# with no arguments.
FIXED_ARITIES: dict[Symbol, int] = {"+": 2, "*": 2}


def check_arity(op: Symbol, n_children: int) -> str | None:
    """
    Returns an error message if `op` cannot be applied to `n_children` children.
    """
    if isinstance(op, int):
        return f"Literal {op} cannot have children" if n_children else None
    expected = FIXED_ARITIES.get(op)
    if expected is not None and expected != n_children:
        return f"Operator {op!r} expects {expected} children, got {n_children}"
    return None


def _to_sexp(op: Symbol, args: tuple[object, ...]) -> str:
    if not args:
        return str(op)
    return f"({op} {' '.join(map(str, args))})"


@dataclass(frozen=True)
class ENode:
    op: Symbol
    children: tuple[Id, ...] = ()

    def __post_init__(self) -> None:
        if (msg := check_arity(self.op, len(self.children))) is not None:
            raise ValueError(msg)

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def map_children(self, fn: Callable[[Id], Id]) -> ENode:
        if not self.children:
            return self
        return ENode(self.op, tuple(map(fn, self.children)))

    def __str__(self) -> str:
        return _to_sexp(self.op, tuple(f"#{c}" for c in self.children))


@dataclass(frozen=True)
class Term:
    """
    A ground expression tree.
    """

    op: Symbol
    args: tuple[Term, ...] = ()

    def __post_init__(self) -> None:
        if (msg := check_arity(self.op, len(self.args))) is not None:
            raise ValueError(msg)

    def __str__(self) -> str:
        return _to_sexp(self.op, self.args)

    def __iter__(self) -> Iterator[Term]:
        """
        Iterates over all subterms, children before parents.
        """
        for arg in self.args:
            yield from arg
        yield self

    def size(self) -> int:
        return 1 + sum(arg.size() for arg in self.args)

    def depth(self) -> int:
        return 1 + max((arg.depth() for arg in self.args), default=0)

    def evaluate(self, env: Mapping[str, int | Callable[..., int]]) -> int:
        """
        Evaluates the term as integer arithmetic.

        Bare symbols are looked up in `env`, calls apply the function found in `env` under their name.
        """
        args = [arg.evaluate(env) for arg in self.args]
        match self.op:
            case int(value):
                return value
            case "+":
                return sum(args)
            case "*":
                return reduce(operator.mul, args, 1)
            case "-" if len(args) == 1:
                return -args[0]
            case "-" if len(args) == 2:
                return args[0] - args[1]
            case str(name):
                value = env[name]
                if callable(value):
                    return value(*args)
                if args:
                    msg = f"{name} is bound to a value, but is called with arguments"
                    raise TypeError(msg)
                return value
            case _:
                assert_never(self.op)


@dataclass(frozen=True)
class Var:
    """
    A pattern variable, written ``?name``.
    """

    name: str

    def __str__(self) -> str:
        return f"?{self.name}"


@dataclass(frozen=True)
class PatternTerm:
    op: Symbol
    args: tuple[Pattern, ...] = ()

    def __str__(self) -> str:
        return _to_sexp(self.op, self.args)


Pattern: TypeAlias = Union[Var, PatternTerm]


def pattern_vars(pattern: Pattern) -> list[str]:
    """
    Returns the variable names of the pattern, in order of first appearance.
    """
    names: dict[str, None] = {}

    def helper(p: Pattern) -> None:
        match p:
            case Var(name):
                names[name] = None
            case PatternTerm(_, args):
                for arg in args:
                    helper(arg)
            case _:
                assert_never(p)

    helper(pattern)
    return list(names)


def term_to_pattern(term: Term) -> PatternTerm:
    return PatternTerm(term.op, tuple(term_to_pattern(arg) for arg in term.args))
