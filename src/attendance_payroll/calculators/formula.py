"""Restricted arithmetic formulas for payroll components.

Formulas such as ``BASE_SALARY * 0.08`` or ``min(BASE_SALARY * 0.1, 5000)``
are tokenized and evaluated by a small recursive-descent parser over a fixed
set of variables. Nothing is ever compiled or executed as code.

Grammar::

    expr    := term (("+" | "-") term)*
    term    := unary (("*" | "/" | "%") unary)*
    unary   := ("+" | "-") unary | primary
    primary := NUMBER | VARIABLE | FUNC "(" expr ("," expr)* ")" | "(" expr ")"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, DivisionByZero, InvalidOperation
from typing import Callable, Mapping

from attendance_payroll.errors import PayrollError

logger = logging.getLogger(__name__)

ALLOWED_VARIABLES = frozenset(
    {"BASE_SALARY", "EARNED_SALARY", "GROSS_BASE", "WORKING_DAYS", "DAILY_SALARY"}
)
MAX_FORMULA_LENGTH = 500
MAX_DEPTH = 32


def _round(value: Decimal, places: Decimal = Decimal("0")) -> Decimal:
    exponent = Decimal(1).scaleb(-int(places))
    return value.quantize(exponent, rounding=ROUND_HALF_UP)


FUNCTIONS: dict[str, tuple[int, int, Callable[..., Decimal]]] = {
    # name: (min args, max args, implementation)
    "min": (1, 16, lambda *a: min(a)),
    "max": (1, 16, lambda *a: max(a)),
    "abs": (1, 1, lambda a: abs(a)),
    "round": (1, 2, _round),
}


class FormulaError(PayrollError):
    """Raised for invalid or non-finite formulas."""

    def __init__(self, formula: str, reason: str):
        self.formula = formula
        self.reason = reason
        super().__init__(f"Invalid formula '{formula}': {reason}")


@dataclass(frozen=True)
class Token:
    kind: str  # number | name | op | lparen | rparen | comma
    text: str
    position: int


def tokenize(formula: str) -> list[Token]:
    """Split a formula into tokens, rejecting anything outside the grammar."""
    tokens: list[Token] = []
    i = 0
    length = len(formula)
    while i < length:
        ch = formula[i]
        if ch.isspace():
            i += 1
            continue
        if ch.isdigit() or (ch == "." and i + 1 < length and formula[i + 1].isdigit()):
            start = i
            seen_dot = False
            while i < length and (formula[i].isdigit() or (formula[i] == "." and not seen_dot)):
                if formula[i] == ".":
                    seen_dot = True
                i += 1
            tokens.append(Token("number", formula[start:i], start))
            continue
        if ch.isalpha() or ch == "_":
            start = i
            while i < length and (formula[i].isalnum() or formula[i] == "_"):
                i += 1
            tokens.append(Token("name", formula[start:i], start))
            continue
        if ch in "+-*/%":
            tokens.append(Token("op", ch, i))
        elif ch == "(":
            tokens.append(Token("lparen", ch, i))
        elif ch == ")":
            tokens.append(Token("rparen", ch, i))
        elif ch == ",":
            tokens.append(Token("comma", ch, i))
        else:
            raise FormulaError(formula, f"unexpected character {ch!r} at position {i}")
        i += 1
    return tokens


class _Parser:
    def __init__(self, formula: str, tokens: list[Token], variables: Mapping[str, Decimal]):
        self.formula = formula
        self.tokens = tokens
        self.variables = variables
        self.pos = 0
        self.depth = 0

    def error(self, reason: str) -> FormulaError:
        return FormulaError(self.formula, reason)

    def peek(self) -> Token | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def take(self) -> Token:
        token = self.peek()
        if token is None:
            raise self.error("unexpected end of formula")
        self.pos += 1
        return token

    def expect(self, kind: str) -> Token:
        token = self.take()
        if token.kind != kind:
            raise self.error(f"expected {kind} at position {token.position}")
        return token

    def parse(self) -> Decimal:
        if not self.tokens:
            raise self.error("empty formula")
        value = self.expr()
        if self.peek() is not None:
            raise self.error(f"unexpected token {self.peek().text!r}")
        return value

    def expr(self) -> Decimal:
        self.depth += 1
        if self.depth > MAX_DEPTH:
            raise self.error("formula nested too deeply")
        value = self.term()
        while (token := self.peek()) is not None and token.kind == "op" and token.text in "+-":
            self.take()
            rhs = self.term()
            value = value + rhs if token.text == "+" else value - rhs
        self.depth -= 1
        return value

    def term(self) -> Decimal:
        value = self.unary()
        while (token := self.peek()) is not None and token.kind == "op" and token.text in "*/%":
            self.take()
            rhs = self.unary()
            if token.text == "*":
                value = value * rhs
            elif rhs == 0:
                raise self.error("division by zero")
            elif token.text == "/":
                value = value / rhs
            else:
                value = value % rhs
        return value

    def unary(self) -> Decimal:
        token = self.peek()
        if token is not None and token.kind == "op" and token.text in "+-":
            self.take()
            self.depth += 1
            if self.depth > MAX_DEPTH:
                raise self.error("formula nested too deeply")
            value = self.unary()
            self.depth -= 1
            return -value if token.text == "-" else value
        return self.primary()

    def primary(self) -> Decimal:
        token = self.take()
        if token.kind == "number":
            return Decimal(token.text)
        if token.kind == "lparen":
            value = self.expr()
            self.expect("rparen")
            return value
        if token.kind == "name":
            next_token = self.peek()
            if next_token is not None and next_token.kind == "lparen":
                return self.call(token)
            name = token.text.upper()
            if name not in ALLOWED_VARIABLES:
                raise self.error(f"unknown variable {token.text!r}")
            if name not in self.variables:
                raise self.error(f"variable {name} has no value")
            return Decimal(self.variables[name])
        raise self.error(f"unexpected token {token.text!r} at position {token.position}")

    def call(self, name_token: Token) -> Decimal:
        name = name_token.text.lower()
        if name not in FUNCTIONS:
            raise self.error(f"unknown function {name_token.text!r}")
        min_args, max_args, impl = FUNCTIONS[name]
        self.expect("lparen")
        args = [self.expr()]
        while (token := self.peek()) is not None and token.kind == "comma":
            self.take()
            args.append(self.expr())
        self.expect("rparen")
        if not min_args <= len(args) <= max_args:
            raise self.error(f"{name}() takes {min_args}-{max_args} arguments")
        return impl(*args)


def evaluate_formula(formula: str, variables: Mapping[str, Decimal]) -> Decimal:
    """Evaluate ``formula`` with ``variables``; raises FormulaError on any problem."""
    if formula is None or not formula.strip():
        raise FormulaError(formula or "", "empty formula")
    if len(formula) > MAX_FORMULA_LENGTH:
        raise FormulaError(formula[:40] + "...", "formula too long")
    upper_vars = {k.upper(): v for k, v in variables.items()}
    try:
        value = _Parser(formula, tokenize(formula), upper_vars).parse()
    except (InvalidOperation, DivisionByZero, OverflowError) as e:
        raise FormulaError(formula, f"arithmetic error: {e}") from e
    if not value.is_finite():
        raise FormulaError(formula, "result is not finite")
    return value


def safe_evaluate(formula: str | None, variables: Mapping[str, Decimal]) -> Decimal:
    """Evaluate a component formula, failing closed to 0."""
    try:
        return evaluate_formula(formula or "", variables)
    except FormulaError as e:
        logger.warning("Formula evaluation failed, using 0: %s", e)
        return Decimal("0")
