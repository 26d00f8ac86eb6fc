"""
depquery query engine.

This package evaluates queries against a target universe:
- Universe resolution from root patterns (cquery)
- Single queries, %s multi-queries and %Ss set queries
- Rank computation (minrank / maxrank)
- Attribute collection and projection

Example usage:

    from depquery.query import QueryExecutor, StaticQueryEnvironment, TargetUniverse

    universe = TargetUniverse.create_from_root_targets(["//app:main"], graph)
    env = StaticQueryEnvironment(universe)
    outcome = QueryExecutor(env).format_and_run(["deps(%s)", "//app:main", "//lib:core"])

    for key, targets in outcome.multi.items():
        print(key, [str(t) for t in targets])
"""

from .attributes import (
    AttributeCollector,
    AttributeService,
    NodeAttributeService,
    PatternsMatcher,
)
from .environment import QueryEnvironment, StaticQueryEnvironment
from .executor import QueryExecutor, expand_query_arguments
from .expr import Expression, parse_expression
from .ranks import RankMode, compute_ranks, sort_by_rank
from .results import MultiQueryResult, QueryOutcome
from .universe import TargetUniverse, resolve_roots

__all__ = [
    "AttributeCollector",
    "AttributeService",
    "NodeAttributeService",
    "PatternsMatcher",
    "QueryEnvironment",
    "StaticQueryEnvironment",
    "QueryExecutor",
    "expand_query_arguments",
    "Expression",
    "parse_expression",
    "RankMode",
    "compute_ranks",
    "sort_by_rank",
    "MultiQueryResult",
    "QueryOutcome",
    "TargetUniverse",
    "resolve_roots",
]
