"""
Query execution engine for depquery.

Runs query arguments against a QueryEnvironment. The first argument is the
query, or a query template when followed by inputs:

    deps(//app:main)                    single query
    deps(%s) //a:a //b:b                one query per input (multi-query)
    deps(%Ss) //a:a //b:b               one query over set('//a:a' '//b:b')

Multi-queries preload every target literal of every instantiated query in a
single call before evaluating, since pattern resolution dominates the cost
of running the same template many times.
"""
import logging
from typing import List, Sequence, Set, Tuple

from depquery.errors import UsageError
from depquery.model import QueryTarget
from .environment import QueryEnvironment
from .results import MultiQueryResult, QueryOutcome

logger = logging.getLogger(__name__)

SINGLE_SUBSTITUTOR = "%s"
SET_SUBSTITUTOR = "%Ss"


def _quote(word: str) -> str:
    return f'"{word}"' if "'" in word else f"'{word}'"


def normalize_set_pattern(template: str, args: Sequence[str]) -> str:
    """Replace %Ss in template with a set() of every argument."""
    return template.replace(SET_SUBSTITUTOR, f"set({' '.join(_quote(a) for a in args)})")


def instantiate_queries(template: str, inputs: Sequence[str]) -> List[Tuple[str, str]]:
    """(input, query) pairs for a %s template."""
    return [(value, template.replace(SINGLE_SUBSTITUTOR, value)) for value in inputs]


def expand_query_arguments(arguments: Sequence[str]) -> List[str]:
    """
    Every concrete query a set of arguments will evaluate.

    Raises:
        UsageError: If the arguments are not a valid query invocation
    """
    template, format_args = _split_arguments(arguments)
    if SET_SUBSTITUTOR in template:
        return [normalize_set_pattern(template, format_args)]
    if SINGLE_SUBSTITUTOR in template:
        return [query for _, query in instantiate_queries(template, format_args)]
    if format_args:
        raise UsageError("Must not specify format arguments without a %s or %Ss in the query")
    return [template]


def _split_arguments(arguments: Sequence[str]) -> Tuple[str, List[str]]:
    if not arguments or not arguments[0].strip():
        raise UsageError("must specify at least the query expression")
    return arguments[0], list(arguments[1:])


class QueryExecutor:
    """
    Evaluates single and multi-queries.

    Args:
        env: Environment the queries are evaluated against
    """

    def __init__(self, env: QueryEnvironment):
        self.env = env

    def format_and_run(self, arguments: Sequence[str]) -> QueryOutcome:
        """
        Run query arguments: a query or template followed by its inputs.

        Raises:
            UsageError: For an empty query, stray format arguments, or a
                template without inputs
            QueryError: If a query fails to parse or evaluate
        """
        template, format_args = _split_arguments(arguments)

        if SET_SUBSTITUTOR in template:
            query = normalize_set_pattern(template, format_args)
            return QueryOutcome(single=self.run_single(query), queries=[query])

        if SINGLE_SUBSTITUTOR in template:
            multi = self.run_multi(template, format_args)
            return QueryOutcome(
                multi=multi,
                queries=[query for _, query in instantiate_queries(template, format_args)],
            )

        if format_args:
            raise UsageError("Must not specify format arguments without a %s or %Ss in the query")

        return QueryOutcome(single=self.run_single(template), queries=[template])

    def run_single(self, query: str) -> Set[QueryTarget]:
        """Evaluate one query; the result is unordered."""
        result = self.env.evaluate_query(query)
        logger.debug("Printing out %d targets", len(result))
        return result

    def run_multi(self, template: str, inputs: Sequence[str]) -> MultiQueryResult:
        """
        Evaluate template once per input.

        Raises:
            UsageError: If inputs is empty
        """
        if not inputs:
            raise UsageError("specify one or more input targets after the query expression format")

        queries = instantiate_queries(template, inputs)

        target_literals: Set[str] = set()
        for _, query in queries:
            self.env.parse(query).collect_target_patterns(target_literals)
        self.env.preload_target_patterns(target_literals)

        result = MultiQueryResult()
        for value, query in queries:
            result.put_all(value, self.env.evaluate_query(query))

        logger.debug("Printing out %d targets", len(result))
        return result
