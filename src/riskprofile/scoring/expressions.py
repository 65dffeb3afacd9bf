"""Closed expression language for decision formulas, warnings and transforms.

Formula strings stored in a scoring configuration (``"min(capacity, tolerance)"``,
``"need > capacity + 10"``, ``"100 - value"``) are never executed as code.
They are tokenized and parsed into an immutable AST made of the node types
below, type-checked against the names that are in scope, and evaluated by
walking the tree.

Grammar::

    expr       := or_expr
    or_expr    := and_expr ("or" and_expr)*
    and_expr   := not_expr ("and" not_expr)*
    not_expr   := "not" not_expr | comparison
    comparison := arith (CMP arith)?
    arith      := term (("+" | "-") term)*
    term       := unary (("*" | "/") unary)*
    unary      := "-" unary | primary
    primary    := NUMBER | NAME | NAME "(" [expr ("," expr)*] ")" | "(" expr ")"
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum


class ExpressionError(Exception):
    """Raised when an expression cannot be parsed or fails type checking."""

    def __init__(self, expression: str, message: str) -> None:
        self.expression = expression
        self.message = message
        super().__init__(f"Invalid expression '{expression}': {message}")


class ExpressionKind(StrEnum):
    """Result type of an expression."""

    NUMBER = "number"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class Literal:
    value: float


@dataclass(frozen=True)
class Name:
    name: str


@dataclass(frozen=True)
class Unary:
    op: str
    operand: Node


@dataclass(frozen=True)
class Binary:
    op: str
    left: Node
    right: Node


@dataclass(frozen=True)
class Compare:
    op: str
    left: Node
    right: Node


@dataclass(frozen=True)
class Logical:
    op: str
    operands: tuple[Node, ...]


@dataclass(frozen=True)
class Call:
    func: str
    args: tuple[Node, ...]


Node = Literal | Name | Unary | Binary | Compare | Logical | Call

KEYWORDS = frozenset({"and", "or", "not"})
FUNCTIONS = frozenset({"min", "max", "abs", "weighted_sum"})
RESERVED_NAMES = KEYWORDS | FUNCTIONS | frozenset({"decision", "value"})

_COMPARISON_OPS = frozenset({">", ">=", "<", "<=", "==", "!="})

_TOKEN_PATTERN = re.compile(
    r"\s*(?:"
    r"(?P<number>\d+(?:\.\d*)?|\.\d+)"
    r"|(?P<name>[A-Za-z_][A-Za-z0-9_]*)"
    r"|(?P<op>>=|<=|==|!=|[-+*/()<>,])"
    r")"
)


@dataclass(frozen=True)
class _Token:
    kind: str
    text: str
    pos: int


def _tokenize(source: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    length = len(source)
    while pos < length:
        if source[pos:].strip() == "":
            break
        match = _TOKEN_PATTERN.match(source, pos)
        if match is None or match.end() == pos:
            raise ExpressionError(source, f"unexpected character at position {pos}")
        kind = match.lastgroup
        assert kind is not None
        tokens.append(_Token(kind=kind, text=match.group(kind), pos=match.start(kind)))
        pos = match.end()
    return tokens


class _Parser:
    """Recursive-descent parser producing the AST."""

    def __init__(self, source: str) -> None:
        self._source = source
        self._tokens = _tokenize(source)
        self._index = 0

    def parse(self) -> Node:
        if not self._tokens:
            raise ExpressionError(self._source, "expression is empty")
        node = self._or_expr()
        if self._index < len(self._tokens):
            token = self._tokens[self._index]
            raise ExpressionError(
                self._source, f"unexpected '{token.text}' at position {token.pos}"
            )
        return node

    def _peek(self) -> _Token | None:
        if self._index < len(self._tokens):
            return self._tokens[self._index]
        return None

    def _accept(self, text: str) -> bool:
        token = self._peek()
        if token is not None and token.kind != "number" and token.text == text:
            self._index += 1
            return True
        return False

    def _expect(self, text: str) -> None:
        if not self._accept(text):
            token = self._peek()
            found = f"'{token.text}'" if token is not None else "end of expression"
            raise ExpressionError(self._source, f"expected '{text}', found {found}")

    def _or_expr(self) -> Node:
        operands = [self._and_expr()]
        while self._accept("or"):
            operands.append(self._and_expr())
        return operands[0] if len(operands) == 1 else Logical("or", tuple(operands))

    def _and_expr(self) -> Node:
        operands = [self._not_expr()]
        while self._accept("and"):
            operands.append(self._not_expr())
        return operands[0] if len(operands) == 1 else Logical("and", tuple(operands))

    def _not_expr(self) -> Node:
        if self._accept("not"):
            return Unary("not", self._not_expr())
        return self._comparison()

    def _comparison(self) -> Node:
        left = self._arith()
        token = self._peek()
        if token is not None and token.kind == "op" and token.text in _COMPARISON_OPS:
            self._index += 1
            right = self._arith()
            nxt = self._peek()
            if nxt is not None and nxt.kind == "op" and nxt.text in _COMPARISON_OPS:
                raise ExpressionError(self._source, "chained comparisons are not supported")
            return Compare(token.text, left, right)
        return left

    def _arith(self) -> Node:
        node = self._term()
        while True:
            token = self._peek()
            if token is not None and token.kind == "op" and token.text in ("+", "-"):
                self._index += 1
                node = Binary(token.text, node, self._term())
            else:
                return node

    def _term(self) -> Node:
        node = self._unary()
        while True:
            token = self._peek()
            if token is not None and token.kind == "op" and token.text in ("*", "/"):
                self._index += 1
                node = Binary(token.text, node, self._unary())
            else:
                return node

    def _unary(self) -> Node:
        if self._accept("-"):
            return Unary("-", self._unary())
        return self._primary()

    def _primary(self) -> Node:
        token = self._peek()
        if token is None:
            raise ExpressionError(self._source, "unexpected end of expression")
        if token.kind == "number":
            self._index += 1
            return Literal(float(token.text))
        if token.kind == "name":
            if token.text in KEYWORDS:
                raise ExpressionError(
                    self._source, f"unexpected '{token.text}' at position {token.pos}"
                )
            self._index += 1
            if self._accept("("):
                args: list[Node] = []
                if not self._accept(")"):
                    args.append(self._or_expr())
                    while self._accept(","):
                        args.append(self._or_expr())
                    self._expect(")")
                return Call(token.text, tuple(args))
            return Name(token.text)
        if self._accept("("):
            node = self._or_expr()
            self._expect(")")
            return node
        raise ExpressionError(self._source, f"unexpected '{token.text}' at position {token.pos}")


@dataclass(frozen=True)
class Expression:
    """A parsed, type-checked expression.

    Attributes:
        source: The original formula string.
        root: Root AST node.
        kind: Result type (number or boolean).
        names: Variable names the expression reads.
    """

    source: str
    root: Node
    kind: ExpressionKind
    names: frozenset[str]

    def evaluate(
        self,
        variables: Mapping[str, float],
        weights: Mapping[str, float] | None = None,
    ) -> float | bool:
        """Evaluate the expression.

        Args:
            variables: Values for every name the expression reads.
            weights: Pillar weights, required when ``weighted_sum`` is used.

        Returns:
            float for numeric expressions, bool for boolean ones.
        """
        return _evaluate(self.root, variables, weights or {})

    def value_range(
        self,
        ranges: Mapping[str, tuple[float, float]],
        weights: Mapping[str, float] | None = None,
    ) -> tuple[float, float]:
        """Bound a numeric expression given bounds for its variables.

        Unbounded sides are reported as +/- infinity.
        """
        if self.kind is not ExpressionKind.NUMBER:
            raise ValueError("value_range is only defined for numeric expressions")
        return _interval(self.root, ranges, weights or {})


class _Checker:
    """Type checker: resolves names, functions and result kinds."""

    def __init__(
        self,
        source: str,
        names: frozenset[str],
        functions: frozenset[str],
        weighted_names: frozenset[str],
    ) -> None:
        self._source = source
        self._names = names
        self._functions = functions
        self._weighted_names = weighted_names
        self.used: set[str] = set()

    def _fail(self, message: str) -> ExpressionError:
        return ExpressionError(self._source, message)

    def check(self, node: Node) -> ExpressionKind:
        if isinstance(node, Literal):
            return ExpressionKind.NUMBER
        if isinstance(node, Name):
            if node.name not in self._names:
                allowed = ", ".join(sorted(self._names)) or "none"
                raise self._fail(f"unknown name '{node.name}' (allowed: {allowed})")
            self.used.add(node.name)
            return ExpressionKind.NUMBER
        if isinstance(node, Unary):
            kind = self.check(node.operand)
            if node.op == "not":
                self._require(kind, ExpressionKind.BOOLEAN, "'not'")
                return ExpressionKind.BOOLEAN
            self._require(kind, ExpressionKind.NUMBER, "unary '-'")
            return ExpressionKind.NUMBER
        if isinstance(node, Binary):
            self._require(self.check(node.left), ExpressionKind.NUMBER, f"'{node.op}'")
            self._require(self.check(node.right), ExpressionKind.NUMBER, f"'{node.op}'")
            if node.op == "/" and _literal_value(node.right) in (None, 0.0):
                raise self._fail("division is only allowed by a non-zero number literal")
            return ExpressionKind.NUMBER
        if isinstance(node, Compare):
            self._require(self.check(node.left), ExpressionKind.NUMBER, f"'{node.op}'")
            self._require(self.check(node.right), ExpressionKind.NUMBER, f"'{node.op}'")
            return ExpressionKind.BOOLEAN
        if isinstance(node, Logical):
            for operand in node.operands:
                self._require(self.check(operand), ExpressionKind.BOOLEAN, f"'{node.op}'")
            return ExpressionKind.BOOLEAN
        if isinstance(node, Call):
            return self._check_call(node)
        raise self._fail(f"unsupported node {type(node).__name__}")

    def _check_call(self, node: Call) -> ExpressionKind:
        if node.func not in self._functions:
            allowed = ", ".join(sorted(self._functions)) or "none"
            raise self._fail(f"unsupported function '{node.func}' (allowed: {allowed})")
        if node.func == "weighted_sum":
            for arg in node.args:
                if not isinstance(arg, Name) or arg.name not in self._weighted_names:
                    raise self._fail("weighted_sum() arguments must be pillar names")
                self.used.add(arg.name)
            if not node.args:
                self.used.update(self._weighted_names)
            return ExpressionKind.NUMBER
        if node.func == "abs" and len(node.args) != 1:
            raise self._fail("abs() takes exactly one argument")
        if node.func in ("min", "max") and not node.args:
            raise self._fail(f"{node.func}() needs at least one argument")
        for arg in node.args:
            self._require(self.check(arg), ExpressionKind.NUMBER, f"{node.func}()")
        return ExpressionKind.NUMBER

    def _require(self, actual: ExpressionKind, expected: ExpressionKind, where: str) -> None:
        if actual is not expected:
            raise self._fail(f"{where} expects a {expected.value} operand, got {actual.value}")


def _literal_value(node: Node) -> float | None:
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, Unary) and node.op == "-" and isinstance(node.operand, Literal):
        return -node.operand.value
    return None


def compile_expression(
    source: str,
    *,
    kind: ExpressionKind,
    names: Iterable[str],
    functions: Iterable[str] = ("min", "max", "abs"),
    weighted_names: Iterable[str] = (),
) -> Expression:
    """Parse and type-check an expression.

    Args:
        source: Formula string.
        kind: Required result type.
        names: Variable names in scope.
        functions: Function names allowed in this context.
        weighted_names: Names accepted by ``weighted_sum`` (pillars).

    Returns:
        Compiled Expression.

    Raises:
        ExpressionError: On syntax errors, unknown names or functions,
            or a result type other than ``kind``.
    """
    if not isinstance(source, str):
        raise ExpressionError(str(source), "expression must be a string")
    root = _Parser(source).parse()
    checker = _Checker(
        source,
        frozenset(names),
        frozenset(functions),
        frozenset(weighted_names),
    )
    actual = checker.check(root)
    if actual is not kind:
        raise ExpressionError(source, f"expected a {kind.value} expression, got {actual.value}")
    return Expression(source=source, root=root, kind=kind, names=frozenset(checker.used))


def compile_decision_formula(source: str, pillars: Iterable[str]) -> Expression:
    """Compile a decision formula over pillar scores."""
    pillar_names = tuple(pillars)
    return compile_expression(
        source,
        kind=ExpressionKind.NUMBER,
        names=pillar_names,
        functions=FUNCTIONS,
        weighted_names=pillar_names,
    )


def compile_warning_predicate(source: str, pillars: Iterable[str]) -> Expression:
    """Compile a warning predicate over pillar scores and the decision scalar."""
    pillar_names = tuple(pillars)
    return compile_expression(
        source,
        kind=ExpressionKind.BOOLEAN,
        names=(*pillar_names, "decision"),
        functions=FUNCTIONS,
        weighted_names=pillar_names,
    )


def compile_transform(source: str) -> Expression:
    """Compile a numeric transform over the answer ``value``."""
    return compile_expression(source, kind=ExpressionKind.NUMBER, names=("value",))


def _weighted_sum(
    args: tuple[Node, ...],
    variables: Mapping[str, float],
    weights: Mapping[str, float],
) -> float:
    names = [arg.name for arg in args if isinstance(arg, Name)] if args else list(weights)
    total = 0.0
    for name in names:
        total += variables[name] * weights[name]
    return total


def _evaluate(
    node: Node,
    variables: Mapping[str, float],
    weights: Mapping[str, float],
) -> float | bool:
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, Name):
        return float(variables[node.name])
    if isinstance(node, Unary):
        operand = _evaluate(node.operand, variables, weights)
        return (not operand) if node.op == "not" else -operand
    if isinstance(node, Binary):
        left = _evaluate(node.left, variables, weights)
        right = _evaluate(node.right, variables, weights)
        if node.op == "+":
            return left + right
        if node.op == "-":
            return left - right
        if node.op == "*":
            return left * right
        return left / right
    if isinstance(node, Compare):
        left = _evaluate(node.left, variables, weights)
        right = _evaluate(node.right, variables, weights)
        return _COMPARATORS[node.op](left, right)
    if isinstance(node, Logical):
        if node.op == "and":
            return all(_evaluate(operand, variables, weights) for operand in node.operands)
        return any(_evaluate(operand, variables, weights) for operand in node.operands)
    if isinstance(node, Call):
        if node.func == "weighted_sum":
            return _weighted_sum(node.args, variables, weights)
        values = [_evaluate(arg, variables, weights) for arg in node.args]
        if node.func == "min":
            return min(values)
        if node.func == "max":
            return max(values)
        return abs(values[0])
    raise TypeError(f"unsupported node {type(node).__name__}")


_COMPARATORS = {
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
}


def _mul(a: float, b: float) -> float:
    # 0 * inf is 0 for bounding purposes
    if a == 0.0 or b == 0.0:
        return 0.0
    return a * b


def _interval(
    node: Node,
    ranges: Mapping[str, tuple[float, float]],
    weights: Mapping[str, float],
) -> tuple[float, float]:
    if isinstance(node, Literal):
        return node.value, node.value
    if isinstance(node, Name):
        return ranges.get(node.name, (-math.inf, math.inf))
    if isinstance(node, Unary):
        lo, hi = _interval(node.operand, ranges, weights)
        return -hi, -lo
    if isinstance(node, Binary):
        a_lo, a_hi = _interval(node.left, ranges, weights)
        b_lo, b_hi = _interval(node.right, ranges, weights)
        if node.op == "+":
            return a_lo + b_lo, a_hi + b_hi
        if node.op == "-":
            return a_lo - b_hi, a_hi - b_lo
        if node.op == "*":
            products = [_mul(a_lo, b_lo), _mul(a_lo, b_hi), _mul(a_hi, b_lo), _mul(a_hi, b_hi)]
            return min(products), max(products)
        divisor = b_lo
        bounds = sorted((a_lo / divisor, a_hi / divisor))
        return bounds[0], bounds[1]
    if isinstance(node, Call):
        if node.func == "weighted_sum":
            names = [arg.name for arg in node.args if isinstance(arg, Name)] or list(weights)
            lo = hi = 0.0
            for name in names:
                n_lo, n_hi = ranges.get(name, (-math.inf, math.inf))
                lo += _mul(n_lo, weights[name])
                hi += _mul(n_hi, weights[name])
            return lo, hi
        bounds = [_interval(arg, ranges, weights) for arg in node.args]
        if node.func == "min":
            return min(b[0] for b in bounds), min(b[1] for b in bounds)
        if node.func == "max":
            return max(b[0] for b in bounds), max(b[1] for b in bounds)
        lo, hi = bounds[0]
        if lo >= 0:
            return lo, hi
        if hi <= 0:
            return -hi, -lo
        return 0.0, max(-lo, hi)
    raise TypeError(f"value_range is not defined for {type(node).__name__}")
