"""
Parsing of the parenthesized prefix syntax, like ``(+ a (* 2 b))``.

Printing is done by `str` on terms and patterns.
"""

from __future__ import annotations

import re
from typing import TypeAlias, Union

from .declarations import *

__all__ = ["ParseError", "parse_pattern", "parse_term", "read"]

_TOKEN = re.compile(r"\(|\)|[^\s()]+")
_INTEGER = re.compile(r"[+-]?\d+")

SExp: TypeAlias = Union[str, list["SExp"]]


class ParseError(ValueError):
    """Malformed surface syntax."""


def read(text: str) -> SExp:
    """
    Reads the text into nested lists of atoms, checking that it is a single balanced expression.
    """
    tokens = _TOKEN.findall(text)
    if not tokens:
        msg = "Cannot parse an empty expression"
        raise ParseError(msg)
    sexp, position = _read(tokens, 0, text)
    if position != len(tokens):
        msg = f"Unexpected trailing input {' '.join(tokens[position:])!r} in {text!r}"
        raise ParseError(msg)
    return sexp


def _read(tokens: list[str], position: int, text: str) -> tuple[SExp, int]:
    token = tokens[position]
    if token == ")":
        msg = f"Unexpected ')' in {text!r}"
        raise ParseError(msg)
    if token != "(":
        return token, position + 1
    position += 1
    items: list[SExp] = []
    while True:
        if position == len(tokens):
            msg = f"Missing ')' in {text!r}"
            raise ParseError(msg)
        if tokens[position] == ")":
            return items, position + 1
        item, position = _read(tokens, position, text)
        items.append(item)


def _symbol(atom: str) -> Symbol:
    if _INTEGER.fullmatch(atom):
        return int(atom)
    return atom


def _is_var(atom: str) -> bool:
    return atom.startswith("?")


def _head(sexp: list[SExp]) -> Symbol:
    if not sexp:
        msg = "Cannot parse an empty application '()'"
        raise ParseError(msg)
    head = sexp[0]
    if not isinstance(head, str) or _is_var(head):
        msg = f"Expected an operator at the start of {_unread(sexp)}"
        raise ParseError(msg)
    op = _symbol(head)
    if (msg := check_arity(op, len(sexp) - 1)) is not None:
        raise ParseError(f"{msg} in {_unread(sexp)}")
    return op


def _unread(sexp: SExp) -> str:
    if isinstance(sexp, str):
        return sexp
    return f"({' '.join(map(_unread, sexp))})"


def parse_term(text: str) -> Term:
    """
    Parses a ground term, rejecting pattern variables.
    """

    def to_term(sexp: SExp) -> Term:
        if isinstance(sexp, str):
            if _is_var(sexp):
                msg = f"Pattern variable {sexp} is not allowed in the term {text!r}"
                raise ParseError(msg)
            return Term(_symbol(sexp))
        op = _head(sexp)
        return Term(op, tuple(map(to_term, sexp[1:])))

    return to_term(read(text))


def parse_pattern(text: str) -> Pattern:
    """
    Parses a pattern, where atoms starting with ``?`` are variables.
    """

    def to_pattern(sexp: SExp) -> Pattern:
        if isinstance(sexp, str):
            if _is_var(sexp):
                if len(sexp) == 1:
                    msg = f"Pattern variable without a name in {text!r}"
                    raise ParseError(msg)
                return Var(sexp[1:])
            return PatternTerm(_symbol(sexp))
        op = _head(sexp)
        return PatternTerm(op, tuple(map(to_pattern, sexp[1:])))

    return to_pattern(read(text))
