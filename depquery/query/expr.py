"""
Expression AST and reader for query expressions.

This is the small expression form understood by the static environment.
It supports:
- Target literals: //pkg:name, //pkg:, //pkg/..., 'quoted' or "quoted"
- Sets: set(//a:a //b:b)
- Functions: deps(x), deps(x, 1), rdeps(universe, x), rdeps(universe, x, 2),
  kind(regex, x), buildfile(x)
- Set operators (left associative): + / union, - / except, ^ / intersect

Example:
    >>> e = parse_expression("deps(//app:main) - kind('java_.*', //lib/...)")
    >>> sorted(e.collect_target_patterns())
    ['//app:main', '//lib/...']
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Union

from depquery.errors import QueryError, QueryParseError


# =============================================================================
# Target Evaluators
# =============================================================================

class TargetEvaluator(ABC):
    """Resolves a single target literal to a collection of values."""

    @abstractmethod
    def evaluate_target(self, target: str) -> Set[Any]:
        pass


# =============================================================================
# Expression AST
# =============================================================================

class Expression(ABC):
    """Base class for all query expressions."""

    @abstractmethod
    def evaluate(self, env: Any) -> Set[Any]:
        """Evaluate this expression against a query environment."""
        pass

    @abstractmethod
    def iter_target_literals(self) -> Iterator[str]:
        """Yield every target literal in the tree, in source order."""
        pass

    def collect_target_patterns(self, patterns: Optional[Set[str]] = None) -> Set[str]:
        """Add every target literal of this expression to patterns."""
        if patterns is None:
            patterns = set()
        patterns.update(self.iter_target_literals())
        return patterns

    def get_targets(self, evaluator: TargetEvaluator) -> List[Any]:
        """
        Resolve every target literal through evaluator.

        Returns:
            Deduplicated values in first-occurrence order
        """
        seen: Dict[Any, None] = {}
        for literal in self.iter_target_literals():
            for value in evaluator.evaluate_target(literal):
                seen.setdefault(value, None)
        return list(seen)


@dataclass
class TargetLiteral(Expression):
    """A target pattern such as //pkg:name or //pkg/..."""
    pattern: str

    def evaluate(self, env: Any) -> Set[Any]:
        return set(env.resolve_target_pattern(self.pattern))

    def iter_target_literals(self) -> Iterator[str]:
        yield self.pattern

    def __str__(self):
        return self.pattern


@dataclass
class SetExpression(Expression):
    """set(a b c): union of whitespace separated literals."""
    literals: List[TargetLiteral] = field(default_factory=list)

    def evaluate(self, env: Any) -> Set[Any]:
        result: Set[Any] = set()
        for literal in self.literals:
            result |= literal.evaluate(env)
        return result

    def iter_target_literals(self) -> Iterator[str]:
        for literal in self.literals:
            yield literal.pattern

    def __str__(self):
        return f"set({' '.join(str(l) for l in self.literals)})"


Argument = Union[Expression, str, int]


@dataclass
class FunctionCall(Expression):
    """A call to one of the registered query functions."""
    function: "QueryFunction"
    args: List[Argument] = field(default_factory=list)

    def evaluate(self, env: Any) -> Set[Any]:
        return self.function.impl(env, self.args)

    def iter_target_literals(self) -> Iterator[str]:
        for arg in self.args:
            if isinstance(arg, Expression):
                yield from arg.iter_target_literals()

    def __str__(self):
        return f"{self.function.name}({', '.join(_arg_str(a) for a in self.args)})"


@dataclass
class BinaryOperation(Expression):
    """Set operation between two sub-expressions."""
    op: str
    left: Expression
    right: Expression

    _OPS = {
        '+': lambda a, b: a | b,
        '-': lambda a, b: a - b,
        '^': lambda a, b: a & b,
    }

    def evaluate(self, env: Any) -> Set[Any]:
        return self._OPS[self.op](self.left.evaluate(env), self.right.evaluate(env))

    def iter_target_literals(self) -> Iterator[str]:
        yield from self.left.iter_target_literals()
        yield from self.right.iter_target_literals()

    def __str__(self):
        return f"({self.left} {self.op} {self.right})"


def _arg_str(arg: Argument) -> str:
    if isinstance(arg, str):
        return repr(arg)
    return str(arg)


# =============================================================================
# Functions
# =============================================================================

EXPRESSION = 'expression'
WORD = 'word'
INTEGER = 'integer'


@dataclass
class QueryFunction:
    """
    A query function signature plus its implementation.

    Attributes:
        name: Function name as written in queries
        arg_types: Argument kinds, in order
        mandatory: Number of leading arguments that must be present
        impl: Callable(env, args) -> set of targets
    """
    name: str
    arg_types: List[str]
    mandatory: int
    impl: Callable[[Any, List[Argument]], Set[Any]]


def _depth(args: List[Argument], index: int) -> Optional[int]:
    return args[index] if len(args) > index else None


def _deps(env: Any, args: List[Argument]) -> Set[Any]:
    return env.forward_closure(args[0].evaluate(env), _depth(args, 1))


def _rdeps(env: Any, args: List[Argument]) -> Set[Any]:
    return env.reverse_closure(
        args[0].evaluate(env), args[1].evaluate(env), _depth(args, 2)
    )


def _kind(env: Any, args: List[Argument]) -> Set[Any]:
    try:
        pattern = re.compile(args[0])
    except re.error as e:
        raise QueryError(f"Invalid kind() pattern {args[0]!r}: {e}")
    return {
        target for target in args[1].evaluate(env)
        if pattern.search(env.rule_type_of(target) or "")
    }


def _buildfile(env: Any, args: List[Argument]) -> Set[Any]:
    return {env.build_file_of(target) for target in args[0].evaluate(env)}


DEFAULT_FUNCTIONS: Dict[str, QueryFunction] = {
    f.name: f for f in [
        QueryFunction('deps', [EXPRESSION, INTEGER], 1, _deps),
        QueryFunction('rdeps', [EXPRESSION, EXPRESSION, INTEGER], 2, _rdeps),
        QueryFunction('kind', [WORD, EXPRESSION], 2, _kind),
        QueryFunction('buildfile', [EXPRESSION], 1, _buildfile),
    ]
}


# =============================================================================
# Reader
# =============================================================================

_TOKEN_RE = re.compile(
    r"""\s*(?:
        (?P<punct>[(),])
      | '(?P<squote>[^']*)'
      | "(?P<dquote>[^"]*)"
      | (?P<word>[^\s(),'"]+)
    )""",
    re.VERBOSE,
)

_OPERATORS = {
    '+': '+', 'union': '+',
    '-': '-', 'except': '-',
    '^': '^', 'intersect': '^',
}


@dataclass
class _Token:
    kind: str       # 'punct', 'word' or 'quoted'
    value: str
    position: int


def _tokenize(text: str) -> List[_Token]:
    tokens = []
    pos = 0
    while pos < len(text):
        if text[pos:].strip() == "":
            break
        match = _TOKEN_RE.match(text, pos)
        if not match or match.end() == pos:
            raise QueryParseError("Unexpected character", text, pos)
        start = match.start(match.lastgroup)
        if match.group('punct') is not None:
            tokens.append(_Token('punct', match.group('punct'), start))
        elif match.group('squote') is not None:
            tokens.append(_Token('quoted', match.group('squote'), start))
        elif match.group('dquote') is not None:
            tokens.append(_Token('quoted', match.group('dquote'), start))
        else:
            tokens.append(_Token('word', match.group('word'), start))
        pos = match.end()
    return tokens


class ExpressionReader:
    """Recursive-descent reader producing Expression trees."""

    def __init__(self, text: str, functions: Optional[Dict[str, QueryFunction]] = None):
        self.text = text
        self.functions = functions if functions is not None else DEFAULT_FUNCTIONS
        self.tokens = _tokenize(text)
        self.index = 0

    def read(self) -> Expression:
        if not self.tokens:
            raise QueryParseError("Empty query expression", self.text, 0)
        expression = self._expression()
        if self._peek() is not None:
            token = self._peek()
            raise QueryParseError(f"Unexpected token {token.value!r}", self.text, token.position)
        return expression

    # -- helpers ---------------------------------------------------------------

    def _peek(self) -> Optional[_Token]:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def _next(self) -> _Token:
        token = self._peek()
        if token is None:
            raise QueryParseError("Unexpected end of query", self.text, len(self.text))
        self.index += 1
        return token

    def _expect(self, value: str) -> None:
        token = self._next()
        if token.kind != 'punct' or token.value != value:
            raise QueryParseError(f"Expected {value!r}, got {token.value!r}", self.text, token.position)

    def _is_punct(self, token: Optional[_Token], value: str) -> bool:
        return token is not None and token.kind == 'punct' and token.value == value

    # -- grammar ---------------------------------------------------------------

    def _expression(self) -> Expression:
        left = self._primary()
        while True:
            token = self._peek()
            if token is None or token.kind != 'word' or token.value not in _OPERATORS:
                return left
            self.index += 1
            left = BinaryOperation(_OPERATORS[token.value], left, self._primary())

    def _primary(self) -> Expression:
        token = self._next()
        if self._is_punct(token, '('):
            inner = self._expression()
            self._expect(')')
            return inner
        if token.kind == 'punct':
            raise QueryParseError(f"Unexpected {token.value!r}", self.text, token.position)
        if token.kind == 'word' and self._is_punct(self._peek(), '('):
            return self._call(token)
        if token.kind == 'word' and token.value in _OPERATORS:
            raise QueryParseError(f"Missing operand before {token.value!r}", self.text, token.position)
        return TargetLiteral(token.value)

    def _call(self, name: _Token) -> Expression:
        self._expect('(')
        if name.value == 'set':
            literals = []
            while not self._is_punct(self._peek(), ')'):
                token = self._next()
                if token.kind == 'punct':
                    raise QueryParseError(f"Unexpected {token.value!r} in set()", self.text, token.position)
                literals.append(TargetLiteral(token.value))
            self._expect(')')
            return SetExpression(literals)

        function = self.functions.get(name.value)
        if function is None:
            raise QueryParseError(f"Unknown function {name.value!r}", self.text, name.position)

        args: List[Argument] = []
        if not self._is_punct(self._peek(), ')'):
            while True:
                if len(args) >= len(function.arg_types):
                    token = self._peek() or name
                    raise QueryParseError(
                        f"Too many arguments to {function.name}()", self.text, token.position
                    )
                args.append(self._argument(function.arg_types[len(args)]))
                if self._is_punct(self._peek(), ','):
                    self.index += 1
                    continue
                break
        self._expect(')')

        if len(args) < function.mandatory:
            raise QueryParseError(
                f"{function.name}() takes at least {function.mandatory} arguments, got {len(args)}",
                self.text, name.position
            )
        return FunctionCall(function, args)

    def _argument(self, arg_type: str) -> Argument:
        if arg_type == EXPRESSION:
            return self._expression()
        token = self._next()
        if token.kind == 'punct':
            raise QueryParseError(f"Unexpected {token.value!r}", self.text, token.position)
        if arg_type == INTEGER:
            try:
                return int(token.value)
            except ValueError:
                raise QueryParseError(f"Expected an integer, got {token.value!r}", self.text, token.position)
        return token.value


def parse_expression(text: str, functions: Optional[Dict[str, QueryFunction]] = None) -> Expression:
    """
    Parse a query expression.

    Args:
        text: Query text
        functions: Function table (defaults to DEFAULT_FUNCTIONS)

    Raises:
        QueryParseError: If the text is not a valid expression
    """
    return ExpressionReader(text, functions).read()
