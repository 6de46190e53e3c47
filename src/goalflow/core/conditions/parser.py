"""Parser for textual logical expressions.

Grammar (lowest to highest precedence)::

    expr  := term ("or" term)*
    term  := unary ("and" unary)*
    unary := "not" unary | atom
    atom  := "(" expr ")" | NAME

``&&``/``&``, ``||``/``|`` and ``!`` are accepted as symbolic operators.
Names may contain letters, digits, ``_``, ``.``, ``:`` and ``-``.
"""

from __future__ import annotations

import re

from goalflow.core.conditions.errors import ExpressionSyntaxError
from goalflow.core.conditions.models import And, Fact, LogicalExpression, Not, Or

_TOKEN = re.compile(r"\s*(?:(\(|\)|&&|\|\||&|\||!)|([A-Za-z_][\w.:\-]*))")

_AND = {"and", "&&", "&"}
_OR = {"or", "||", "|"}
_NOT = {"not", "!"}


def _tokenize(text: str) -> list[tuple[str, int]]:
    tokens: list[tuple[str, int]] = []
    pos = 0
    while pos < len(text):
        if text[pos:].strip() == "":
            break
        match = _TOKEN.match(text, pos)
        if match is None:
            raise ExpressionSyntaxError(text, pos, "unexpected character")
        token = match.group(1) or match.group(2)
        tokens.append((token, match.start(match.lastindex or 0)))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = _tokenize(text)
        self.index = 0

    def peek(self) -> str | None:
        if self.index < len(self.tokens):
            return self.tokens[self.index][0]
        return None

    def position(self) -> int:
        if self.index < len(self.tokens):
            return self.tokens[self.index][1]
        return len(self.text)

    def advance(self) -> str:
        token = self.tokens[self.index][0]
        self.index += 1
        return token

    def parse(self) -> LogicalExpression:
        if not self.tokens:
            raise ExpressionSyntaxError(self.text, 0, "empty expression")
        expr = self.expr()
        if self.peek() is not None:
            raise ExpressionSyntaxError(self.text, self.position(), f"unexpected {self.peek()!r}")
        return expr

    def expr(self) -> LogicalExpression:
        terms = [self.term()]
        while self.peek() in _OR:
            self.advance()
            terms.append(self.term())
        return terms[0] if len(terms) == 1 else Or(*terms)

    def term(self) -> LogicalExpression:
        terms = [self.unary()]
        while self.peek() in _AND:
            self.advance()
            terms.append(self.unary())
        return terms[0] if len(terms) == 1 else And(*terms)

    def unary(self) -> LogicalExpression:
        if self.peek() in _NOT:
            self.advance()
            return Not(self.unary())
        return self.atom()

    def atom(self) -> LogicalExpression:
        token = self.peek()
        if token is None:
            raise ExpressionSyntaxError(self.text, self.position(), "unexpected end of input")
        if token == "(":
            self.advance()
            inner = self.expr()
            if self.peek() != ")":
                raise ExpressionSyntaxError(self.text, self.position(), "expected ')'")
            self.advance()
            return inner
        if token == ")" or token in _AND or token in _OR:
            raise ExpressionSyntaxError(self.text, self.position(), f"unexpected {token!r}")
        self.advance()
        return Fact(name=token)


def parse_expression(text: str) -> LogicalExpression:
    """Parse *text* into a :data:`LogicalExpression`.

    Raises:
        ExpressionSyntaxError: If *text* is not a valid expression.
    """
    return _Parser(text).parse()
