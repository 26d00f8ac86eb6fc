"""
Rank computation over the target graph.

A node's rank is its edge distance from the roots of the graph (nodes with
no incoming edges): the shortest path for MINRANK, the longest for MAXRANK.

Example:
    Graph A -> B -> C, A -> C:
        MINRANK  {A: 0, B: 1, C: 1}
        MAXRANK  {A: 0, B: 1, C: 2}
"""
from collections import deque
from enum import Enum
from typing import Callable, Dict, List, Tuple

from depquery.model import TargetGraph, TargetNode, UnflavoredTarget


class RankMode(Enum):
    """How ranks reached through several paths are combined."""
    MINRANK = "minrank"   # length of the shortest path from a root
    MAXRANK = "maxrank"   # length of the longest path from a root

    @property
    def merge(self) -> Callable[[int, int], int]:
        return min if self is RankMode.MINRANK else max


def compute_ranks(
    graph: TargetGraph,
    keep: Callable[[TargetNode], bool],
    mode: RankMode,
) -> Dict[UnflavoredTarget, int]:
    """
    Compute the rank of every node reachable from a root.

    Every node of the full graph with no incoming edges is a seed at rank 0.
    A breadth-first traversal runs from each seed over nodes satisfying
    keep; edges into other nodes are pruned, so those nodes never receive a
    rank. All traversals share one rank map, merged with min or max, and a
    node whose rank changes is visited again so its deps are updated.

    Args:
        graph: Full target graph
        keep: Predicate selecting the nodes that may be traversed
        mode: MINRANK or MAXRANK

    Returns:
        Rank by unflavored target, for reached nodes only
    """
    merge = mode.merge
    ranks: Dict[UnflavoredTarget, int] = {}

    for root in graph.nodes_with_no_incoming_edges():
        if not keep(root):
            continue
        root_key = root.build_target.unflavored
        ranks[root_key] = merge(ranks[root_key], 0) if root_key in ranks else 0

        visited = {root}
        queue = deque([root])
        while queue:
            node = queue.popleft()
            sink_rank = ranks[node.build_target.unflavored] + 1
            for sink in graph.outgoing_nodes_for(node):
                if not keep(sink):
                    continue
                key = sink.build_target.unflavored
                previous = ranks.get(key)
                ranks[key] = sink_rank if previous is None else merge(previous, sink_rank)
                # revisit on change so ranks are exact path lengths, not first-seen ones
                if sink not in visited or ranks[key] != previous:
                    visited.add(sink)
                    queue.append(sink)

    return ranks


def sort_by_rank(ranks: Dict[UnflavoredTarget, int]) -> List[Tuple[UnflavoredTarget, int]]:
    """Rank entries ordered by rank, ties broken by target name."""
    return sorted(ranks.items(), key=lambda item: (item[1], item[0].fully_qualified_name))
