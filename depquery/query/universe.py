"""
Target universe resolution.

The universe is the part of the loaded target graph a query can see: the
dependency closure of a set of root patterns. Roots come from
--target-universe when given, otherwise they are inferred from the target
literals of the query itself.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional, Set

from depquery.errors import QueryError
from depquery.model import BuildTarget, TargetGraph, TargetNode
from .expr import TargetEvaluator, parse_expression

logger = logging.getLogger(__name__)


class PassThroughTargetEvaluator(TargetEvaluator):
    """Resolves every literal to itself, with no wildcard expansion."""

    def evaluate_target(self, target: str) -> Set[str]:
        return {target}


def resolve_roots(explicit_roots: Optional[str], query: str) -> List[str]:
    """
    Determine the root patterns of the target universe.

    Args:
        explicit_roots: Comma separated --target-universe value, if given
        query: Query text used to infer roots otherwise

    Returns:
        Root patterns. Explicit roots are returned verbatim. Inferred roots
        are every target literal in the query, deduplicated in
        first-occurrence order. This includes literals of every function
        argument (both sides of rdeps(), for example), so the inferred
        universe may be larger than needed but is never too small.

    Raises:
        QueryError: If the query cannot be parsed
    """
    if explicit_roots is not None:
        return explicit_roots.split(',')

    expression = parse_expression(query)
    return expression.get_targets(PassThroughTargetEvaluator())


def match_target_pattern(pattern: str, graph: TargetGraph) -> List[TargetNode]:
    """
    Find the nodes of graph matched by a target pattern.

    Supported patterns:
        //pkg:name[#flavors][ (config)]  one target (every configuration
                                         unless one is given)
        //pkg:                           every target in a package
        //pkg/...                        every target beneath a path
        //...                            every target

    Raises:
        QueryError: If the pattern is invalid or matches nothing
    """
    pattern = pattern.strip()
    if not pattern.startswith('//'):
        raise QueryError(f"Invalid target pattern {pattern!r}: must start with '//'")

    if pattern.endswith('/...'):
        prefix = pattern[:-len('/...')]
        matched = [
            n for n in graph.nodes()
            if prefix == '/' or n.build_target.base_path == prefix
            or n.build_target.base_path.startswith(prefix + '/')
        ]
    elif pattern.endswith(':'):
        base_path = pattern[:-1]
        matched = [n for n in graph.nodes() if n.build_target.base_path == base_path]
    else:
        try:
            wanted = BuildTarget.parse(pattern)
        except ValueError as e:
            raise QueryError(str(e))
        matched = [
            n for n in graph.nodes()
            if n.build_target.unflavored == wanted.unflavored
            and (not wanted.flavors or n.build_target.flavors == wanted.flavors)
            and (wanted.configuration is None or n.configuration == wanted.configuration)
        ]

    if not matched:
        raise QueryError(f"No targets match pattern {pattern!r}")
    return matched


class TargetUniverse:
    """
    The subgraph of the target graph visible to queries.

    Attributes:
        target_graph: Graph of every node in the universe
    """

    def __init__(self, target_graph: TargetGraph):
        self.target_graph = target_graph

    @classmethod
    def create_from_root_targets(
        cls,
        roots: Iterable[str],
        graph: TargetGraph,
        pool_size: int = 4,
    ) -> "TargetUniverse":
        """
        Populate the universe from root patterns.

        Root patterns are resolved on a bounded worker pool; the call blocks
        until every root is resolved, then keeps the dependency closure.

        Raises:
            QueryError: If a root pattern matches nothing
        """
        roots = [r for r in roots if r.strip()]
        logger.debug("Populating target universe from %d roots", len(roots))

        matched: List[TargetNode] = []
        with ThreadPoolExecutor(max_workers=max(1, pool_size)) as pool:
            for nodes in pool.map(lambda root: match_target_pattern(root, graph), roots):
                matched.extend(nodes)

        universe = graph.reachable_from(matched)
        logger.debug("Target universe has %d nodes", len(universe))
        return cls(universe)

    @classmethod
    def from_graph(cls, graph: TargetGraph) -> "TargetUniverse":
        """A universe containing the whole graph."""
        return cls(graph)

    def get_node(self, target: BuildTarget) -> TargetNode:
        node = self.target_graph.get(target)
        if node is None:
            raise QueryError(f"Target {target} is not in the target universe")
        return node

    def resolve_target_pattern(self, pattern: str) -> List[TargetNode]:
        return match_target_pattern(pattern, self.target_graph)

    def __len__(self) -> int:
        return len(self.target_graph)
