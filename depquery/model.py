"""
Core model for depquery.

Defines the query target types, configured target nodes, and the dependency
graphs built from them:

- QueryTarget: BuildTarget or FileTarget, the values a query evaluates to
- UnflavoredTarget: identity of a target with flavors and configuration removed
- TargetNode: one rule instance bound to a single configuration
- TargetGraph: acyclic dependency graph of TargetNode (networkx backed)
- MergedTargetNode / MergedTargetGraph: nodes collapsed by unflavored identity

Example:
    >>> target = BuildTarget.parse("//lib:core#shared (linux)")
    >>> target.fully_qualified_name
    '//lib:core'
    >>> str(target)
    '//lib:core#shared (linux)'
"""
import re
from dataclasses import dataclass, field, replace
from typing import (
    Any, Callable, Dict, FrozenSet, Generic, Iterable, Iterator, List,
    Optional, Tuple, TypeVar
)

import networkx as nx


# =============================================================================
# Query Targets
# =============================================================================

_BUILD_TARGET_RE = re.compile(
    r'^(?P<base>//[^:#\s()]*)'
    r':(?P<name>[^:#\s()]+)'
    r'(?:#(?P<flavors>[^\s()]*))?'
    r'(?:\s+\((?P<config>[^()]+)\))?$'
)


@dataclass(frozen=True)
class UnflavoredTarget:
    """
    A build target stripped of flavors and configuration.

    This is the identity used to group configured nodes across
    configurations and to key rank maps.
    """
    base_path: str
    name: str

    @property
    def fully_qualified_name(self) -> str:
        return f"{self.base_path}:{self.name}"

    def __lt__(self, other: "UnflavoredTarget") -> bool:
        if not isinstance(other, UnflavoredTarget):
            return NotImplemented
        return self.fully_qualified_name < other.fully_qualified_name

    def __str__(self) -> str:
        return self.fully_qualified_name


class QueryTarget:
    """
    Base class for the values produced by query evaluation.

    There are exactly two kinds: BuildTarget and FileTarget. Targets are
    totally ordered (build targets first) so rendering is deterministic.
    """

    def sort_key(self) -> tuple:
        raise NotImplementedError

    def __lt__(self, other: "QueryTarget") -> bool:
        if not isinstance(other, QueryTarget):
            return NotImplemented
        return self.sort_key() < other.sort_key()


@dataclass(frozen=True)
class BuildTarget(QueryTarget):
    """
    A reference to a rule: //base/path:name, optional flavors and configuration.

    Attributes:
        base_path: Package path including the leading '//'
        name: Short rule name
        flavors: Build variant qualifiers
        configuration: Target configuration, None for unconfigured targets
    """
    base_path: str
    name: str
    flavors: FrozenSet[str] = frozenset()
    configuration: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> "BuildTarget":
        """Parse '//pkg:name', '//pkg:name#f1,f2' or '//pkg:name#f (cfg)'."""
        match = _BUILD_TARGET_RE.match(text.strip())
        if not match:
            raise ValueError(f"Invalid build target: {text!r}")
        flavors = match.group('flavors')
        return cls(
            base_path=match.group('base'),
            name=match.group('name'),
            flavors=frozenset(f for f in flavors.split(',') if f) if flavors else frozenset(),
            configuration=match.group('config'),
        )

    @property
    def fully_qualified_name(self) -> str:
        """The '//pkg:name' form, without flavors or configuration."""
        return f"{self.base_path}:{self.name}"

    @property
    def full_name(self) -> str:
        """Fully qualified name including flavors."""
        if not self.flavors:
            return self.fully_qualified_name
        return f"{self.fully_qualified_name}#{','.join(sorted(self.flavors))}"

    @property
    def unflavored(self) -> UnflavoredTarget:
        return UnflavoredTarget(self.base_path, self.name)

    def with_configuration(self, configuration: Optional[str]) -> "BuildTarget":
        return replace(self, configuration=configuration)

    def sort_key(self) -> tuple:
        return (0, self.fully_qualified_name, tuple(sorted(self.flavors)), self.configuration or "")

    def __str__(self) -> str:
        if self.configuration is None:
            return self.full_name
        return f"{self.full_name} ({self.configuration})"


@dataclass(frozen=True)
class FileTarget(QueryTarget):
    """A source file produced by a query (e.g. by buildfile())."""
    path: str

    def sort_key(self) -> tuple:
        return (1, self.path)

    def __str__(self) -> str:
        return self.path


def presentation_form(target: QueryTarget) -> str:
    """
    Canonical display string of a query target.

    Build targets are shown by fully qualified name: flavors are display
    noise and configurations are merged in every output format. File
    targets are shown unchanged.
    """
    if isinstance(target, BuildTarget):
        return target.fully_qualified_name
    if isinstance(target, FileTarget):
        return str(target)
    raise TypeError(f"Unknown QueryTarget implementation - {type(target).__name__}")


# =============================================================================
# Target Nodes
# =============================================================================

@dataclass(frozen=True, eq=False)
class TargetNode:
    """
    One rule instance bound to exactly one configuration.

    Attributes:
        build_target: Configured target of this rule
        rule_type: Rule type name (e.g. 'java_library')
        deps: Declared dependency edges
        visibility_patterns: Targets allowed to depend on this rule
        within_view_patterns: Targets this rule may depend on
        raw_attributes: Declared attributes keyed by lower-camel name,
            None when the rule could not be resolved
    """
    build_target: BuildTarget
    rule_type: str
    deps: Tuple[BuildTarget, ...] = ()
    visibility_patterns: Tuple[str, ...] = ()
    within_view_patterns: Tuple[str, ...] = ()
    raw_attributes: Optional[Dict[str, Any]] = field(default_factory=dict)

    @property
    def configuration(self) -> Optional[str]:
        return self.build_target.configuration

    def __lt__(self, other: "TargetNode") -> bool:
        if not isinstance(other, TargetNode):
            return NotImplemented
        return self.build_target < other.build_target

    def __repr__(self) -> str:
        return f"TargetNode({str(self.build_target)!r}, {self.rule_type!r})"


class MergedTargetNode:
    """
    The TargetNode instances that share one unflavored identity.

    The first grouped node is the representative (any_node) used for
    configuration-invariant lookups such as the rule type. If those fields
    differ across members, the representative's values win.
    """

    def __init__(self, build_target: UnflavoredTarget, nodes: Iterable[TargetNode]):
        self.build_target = build_target
        self.nodes: Tuple[TargetNode, ...] = tuple(nodes)
        if not self.nodes:
            raise ValueError(f"MergedTargetNode {build_target} has no nodes")
        for node in self.nodes:
            if node.build_target.unflavored != build_target:
                raise ValueError(
                    f"Cannot merge {node.build_target} into {build_target}"
                )

    @property
    def any_node(self) -> TargetNode:
        return self.nodes[0]

    @property
    def rule_type(self) -> str:
        return self.any_node.rule_type

    @property
    def target_configurations(self) -> FrozenSet[str]:
        return frozenset(
            n.configuration for n in self.nodes if n.configuration is not None
        )

    def __lt__(self, other: "MergedTargetNode") -> bool:
        if not isinstance(other, MergedTargetNode):
            return NotImplemented
        return self.build_target < other.build_target

    def __repr__(self) -> str:
        return f"MergedTargetNode({self.build_target.fully_qualified_name!r}, nodes={len(self.nodes)})"


def group_by_unflavored_target(nodes: Iterable[TargetNode]) -> Dict[UnflavoredTarget, MergedTargetNode]:
    """Merge nodes sharing an unflavored identity, keeping first-seen order."""
    groups: Dict[UnflavoredTarget, List[TargetNode]] = {}
    for node in nodes:
        groups.setdefault(node.build_target.unflavored, []).append(node)
    return {
        target: MergedTargetNode(target, members)
        for target, members in groups.items()
    }


# =============================================================================
# Graphs
# =============================================================================

N = TypeVar('N')


class DirectedAcyclicGraph(Generic[N]):
    """
    Read-only view over a networkx DiGraph whose nodes are sortable objects.

    Neighbor queries return nodes in sorted order so traversals are
    deterministic.
    """

    def __init__(self, graph: Optional[nx.DiGraph] = None):
        self._graph = graph if graph is not None else nx.DiGraph()

    def nodes(self) -> List[N]:
        return sorted(self._graph.nodes)

    def edges(self) -> List[Tuple[N, N]]:
        return sorted(self._graph.edges)

    def outgoing_nodes_for(self, node: N) -> List[N]:
        return sorted(self._graph.successors(node))

    def incoming_nodes_for(self, node: N) -> List[N]:
        return sorted(self._graph.predecessors(node))

    def nodes_with_no_incoming_edges(self) -> List[N]:
        return sorted(n for n, degree in self._graph.in_degree() if degree == 0)

    def validate(self) -> None:
        """Raise ValueError if the graph contains a cycle."""
        if not nx.is_directed_acyclic_graph(self._graph):
            cycle = nx.find_cycle(self._graph)
            path = " -> ".join(str(_node_label(src)) for src, _ in cycle)
            raise ValueError(f"Dependency cycle detected: {path}")

    def __contains__(self, node: object) -> bool:
        return node in self._graph

    def __iter__(self) -> Iterator[N]:
        return iter(self.nodes())

    def __len__(self) -> int:
        return self._graph.number_of_nodes()


def _node_label(node: Any) -> Any:
    return getattr(node, 'build_target', node)


class TargetGraph(DirectedAcyclicGraph[TargetNode]):
    """Dependency graph of configured target nodes."""

    def __init__(self, graph: Optional[nx.DiGraph] = None):
        super().__init__(graph)
        self._index: Dict[BuildTarget, TargetNode] = {
            node.build_target: node for node in self._graph.nodes
        }

    @classmethod
    def from_nodes(cls, nodes: Iterable[TargetNode]) -> "TargetGraph":
        """
        Build a graph from nodes, wiring edges from their declared deps.

        Raises:
            ValueError: If a dep is missing from the node set or a cycle exists
        """
        graph = nx.DiGraph()
        index: Dict[BuildTarget, TargetNode] = {}
        for node in nodes:
            if node.build_target in index:
                raise ValueError(f"Duplicate target: {node.build_target}")
            index[node.build_target] = node
            graph.add_node(node)

        for node in index.values():
            for dep in node.deps:
                dep_node = index.get(dep)
                if dep_node is None:
                    raise ValueError(f"{node.build_target} depends on unknown target {dep}")
                graph.add_edge(node, dep_node)

        result = cls(graph)
        result.validate()
        return result

    def get(self, target: BuildTarget) -> Optional[TargetNode]:
        return self._index.get(target)

    def subgraph(self, nodes: Iterable[TargetNode]) -> "TargetGraph":
        """Induced subgraph over the given nodes."""
        return TargetGraph(self._graph.subgraph(list(nodes)).copy())

    def reachable_from(self, roots: Iterable[TargetNode]) -> "TargetGraph":
        """Subgraph of everything reachable from roots (roots included)."""
        keep = set()
        for root in roots:
            keep.add(root)
            keep.update(nx.descendants(self._graph, root))
        return self.subgraph(keep)


class MergedTargetGraph(DirectedAcyclicGraph[MergedTargetNode]):
    """Dependency graph of nodes merged by unflavored identity."""

    def __init__(self, graph: Optional[nx.DiGraph] = None):
        super().__init__(graph)
        self._index: Dict[UnflavoredTarget, MergedTargetNode] = {
            node.build_target: node for node in self._graph.nodes
        }

    @classmethod
    def merge(cls, target_graph: TargetGraph) -> "MergedTargetGraph":
        """Collapse a TargetGraph by unflavored identity, dropping self loops."""
        merged = group_by_unflavored_target(target_graph.nodes())
        graph = nx.DiGraph()
        graph.add_nodes_from(merged.values())
        for src, dst in target_graph.edges():
            src_merged = merged[src.build_target.unflavored]
            dst_merged = merged[dst.build_target.unflavored]
            if src_merged is not dst_merged:
                graph.add_edge(src_merged, dst_merged)
        return cls(graph)

    def get(self, target: UnflavoredTarget) -> Optional[MergedTargetNode]:
        return self._index.get(target)

    def filter(self, keep: Callable[[MergedTargetNode], bool]) -> "MergedTargetGraph":
        """Induced subgraph over the nodes satisfying keep."""
        nodes = [n for n in self._graph.nodes if keep(n)]
        return MergedTargetGraph(self._graph.subgraph(nodes).copy())
