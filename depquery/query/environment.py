"""
Query environments.

A QueryEnvironment evaluates query text against a target universe. The
engine only relies on the abstract interface; StaticQueryEnvironment is the
in-memory implementation used with graphs loaded from a graph file.
"""
import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Dict, Iterable, List, Optional, Set

from depquery.model import BuildTarget, FileTarget, QueryTarget, TargetGraph, TargetNode
from .expr import Expression, QueryFunction, parse_expression
from .universe import TargetUniverse

logger = logging.getLogger(__name__)


class QueryEnvironment(ABC):
    """Interface the query engine consumes."""

    @abstractmethod
    def parse(self, query: str) -> Expression:
        """Parse query text into an expression."""
        pass

    @abstractmethod
    def evaluate_query(self, query: str) -> Set[QueryTarget]:
        """Parse and evaluate query text."""
        pass

    @abstractmethod
    def preload_target_patterns(self, patterns: Iterable[str]) -> None:
        """Resolve target patterns ahead of evaluation, in bulk."""
        pass

    @property
    @abstractmethod
    def target_graph(self) -> TargetGraph:
        pass

    @abstractmethod
    def get_node(self, target: BuildTarget) -> TargetNode:
        pass

    def nodes_for_targets(self, targets: Iterable[QueryTarget]) -> List[TargetNode]:
        """TargetNodes of the build targets in targets; file targets are skipped."""
        nodes = []
        for target in sorted(targets):
            if isinstance(target, BuildTarget):
                nodes.append(self.get_node(target))
            elif not isinstance(target, FileTarget):
                raise TypeError(f"Unknown QueryTarget implementation - {type(target).__name__}")
        return nodes


class StaticQueryEnvironment(QueryEnvironment):
    """
    Evaluates queries over an in-memory target universe.

    Target pattern resolutions are cached, so preloading every literal of a
    batch once makes the per-query evaluations cheap.
    """

    def __init__(
        self,
        universe: TargetUniverse,
        build_file_name: str = "BUCK",
        functions: Optional[Dict[str, QueryFunction]] = None,
    ):
        self.universe = universe
        self.build_file_name = build_file_name
        self.functions = functions
        self._pattern_cache: Dict[str, Set[BuildTarget]] = {}

    @property
    def target_graph(self) -> TargetGraph:
        return self.universe.target_graph

    def parse(self, query: str) -> Expression:
        return parse_expression(query, self.functions)

    def evaluate_query(self, query: str) -> Set[QueryTarget]:
        result = self.parse(query).evaluate(self)
        logger.debug("Query %r matched %d targets", query, len(result))
        return result

    def preload_target_patterns(self, patterns: Iterable[str]) -> None:
        pending = [p for p in patterns if p not in self._pattern_cache]
        logger.debug("Preloading %d target patterns", len(pending))
        for pattern in pending:
            self._pattern_cache[pattern] = self._resolve(pattern)

    def resolve_target_pattern(self, pattern: str) -> Set[BuildTarget]:
        if pattern not in self._pattern_cache:
            self._pattern_cache[pattern] = self._resolve(pattern)
        return self._pattern_cache[pattern]

    def _resolve(self, pattern: str) -> Set[BuildTarget]:
        return {n.build_target for n in self.universe.resolve_target_pattern(pattern)}

    def get_node(self, target: BuildTarget) -> TargetNode:
        return self.universe.get_node(target)

    # -- functions used by query expressions -----------------------------------

    def forward_closure(self, targets: Iterable[QueryTarget], depth: Optional[int] = None) -> Set[QueryTarget]:
        """targets plus their transitive deps, up to depth edges away."""
        graph = self.target_graph
        starts = self.nodes_for_targets(targets)
        seen = {node: 0 for node in starts}
        queue = deque(starts)
        while queue:
            node = queue.popleft()
            if depth is not None and seen[node] >= depth:
                continue
            for dep in graph.outgoing_nodes_for(node):
                if dep not in seen:
                    seen[dep] = seen[node] + 1
                    queue.append(dep)
        return {node.build_target for node in seen}

    def reverse_closure(
        self,
        universe: Iterable[QueryTarget],
        targets: Iterable[QueryTarget],
        depth: Optional[int] = None,
    ) -> Set[QueryTarget]:
        """Nodes within the closure of universe that depend on targets."""
        allowed = {self.get_node(t) for t in self.forward_closure(universe)}
        graph = self.target_graph
        starts = [n for n in self.nodes_for_targets(targets) if n in allowed]
        seen = {node: 0 for node in starts}
        queue = deque(starts)
        while queue:
            node = queue.popleft()
            if depth is not None and seen[node] >= depth:
                continue
            for parent in graph.incoming_nodes_for(node):
                if parent in allowed and parent not in seen:
                    seen[parent] = seen[node] + 1
                    queue.append(parent)
        return {node.build_target for node in seen}

    def rule_type_of(self, target: QueryTarget) -> Optional[str]:
        if isinstance(target, BuildTarget):
            return self.get_node(target).rule_type
        return None

    def build_file_of(self, target: QueryTarget) -> FileTarget:
        if isinstance(target, FileTarget):
            return target
        package = target.base_path[2:]
        if not package:
            return FileTarget(self.build_file_name)
        return FileTarget(f"{package}/{self.build_file_name}")

    def __repr__(self) -> str:
        return f"StaticQueryEnvironment(targets={len(self.universe)})"
