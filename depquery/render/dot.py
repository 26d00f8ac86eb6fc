"""
Graphviz dot output for query results.

Renders a merged target graph as a digraph. Nodes are emitted either sorted
by name or in breadth-first order from the graph's roots. Compact mode
numbers the nodes and prints each name only once, as a label.

Example (sorted, not compact):

    digraph result_graph {
      "//app:main" [style=filled,color="#...",rule_type="java_binary"];
      "//lib:core" [style=filled,color="#...",rule_type="java_library"];
      "//app:main" -> "//lib:core";
    }
"""
import colorsys
import re
from collections import deque
from enum import Enum
from typing import Callable, Dict, List, Optional

from depquery.model import MergedTargetGraph, MergedTargetNode
from .output import OutputSink


class OutputOrder(Enum):
    SORTED = "sorted"
    BFS = "bfs"


def _escape(value: str) -> str:
    return value.replace('\\', '\\\\').replace('"', '\\"').replace('\n', '\\n')


def _attribute_name(key: str) -> str:
    return re.sub(r'\W', '_', key)


def type_to_color(type_name: str) -> str:
    """Consistent fill color for a rule type."""
    hash_val = 0
    for char in type_name:
        hash_val = (ord(char) + ((hash_val << 5) - hash_val)) & 0xFFFFFFFF
    hue = hash_val % 360

    r, g, b = colorsys.hls_to_rgb(hue / 360.0, 0.6, 0.6)
    return f"#{int(r*255):02x}{int(g*255):02x}{int(b*255):02x}"


class DotWriter:
    """
    Writes a MergedTargetGraph in dot format.

    Args:
        graph: Graph to render (already filtered to the query result)
        graph_name: Name of the digraph
        node_to_name: Display name of a node
        node_to_type_name: Rule type of a node
        node_to_attributes: Extra annotations of a node, if any
        output_order: SORTED or BFS
        compact: Number nodes instead of repeating their names
    """

    def __init__(
        self,
        graph: MergedTargetGraph,
        graph_name: str = "result_graph",
        node_to_name: Callable[[MergedTargetNode], str] = lambda n: n.build_target.fully_qualified_name,
        node_to_type_name: Callable[[MergedTargetNode], str] = lambda n: n.rule_type,
        node_to_attributes: Optional[Callable[[MergedTargetNode], Dict[str, str]]] = None,
        output_order: OutputOrder = OutputOrder.SORTED,
        compact: bool = False,
    ):
        self.graph = graph
        self.graph_name = graph_name
        self.node_to_name = node_to_name
        self.node_to_type_name = node_to_type_name
        self.node_to_attributes = node_to_attributes
        self.output_order = output_order
        self.compact = compact

    def ordered_nodes(self) -> List[MergedTargetNode]:
        """Nodes in emission order."""
        if self.output_order is OutputOrder.SORTED:
            return sorted(self.graph.nodes(), key=self.node_to_name)

        order: List[MergedTargetNode] = []
        seen = set()
        queue = deque()
        for root in sorted(self.graph.nodes_with_no_incoming_edges(), key=self.node_to_name):
            seen.add(root)
            queue.append(root)
        while queue:
            node = queue.popleft()
            order.append(node)
            for dep in sorted(self.graph.outgoing_nodes_for(node), key=self.node_to_name):
                if dep not in seen:
                    seen.add(dep)
                    queue.append(dep)
        return order

    def lines(self) -> List[str]:
        nodes = self.ordered_nodes()
        ids = {node: self._node_id(node, i) for i, node in enumerate(nodes, start=1)}

        lines = [f"digraph {self.graph_name} {{"]
        if self.output_order is OutputOrder.SORTED:
            lines.extend(self._node_line(node, ids[node]) for node in nodes)
            edges = sorted(
                self.graph.edges(),
                key=lambda e: (self.node_to_name(e[0]), self.node_to_name(e[1]))
            )
            lines.extend(f"  {ids[src]} -> {ids[dst]};" for src, dst in edges)
        else:
            for node in nodes:
                lines.append(self._node_line(node, ids[node]))
                for dep in sorted(self.graph.outgoing_nodes_for(node), key=self.node_to_name):
                    lines.append(f"  {ids[node]} -> {ids[dep]};")
        lines.append("}")
        return lines

    def write(self, sink: OutputSink) -> None:
        for line in self.lines():
            sink.write_line(line)

    def _node_id(self, node: MergedTargetNode, index: int) -> str:
        if self.compact:
            return str(index)
        return f'"{_escape(self.node_to_name(node))}"'

    def _node_line(self, node: MergedTargetNode, node_id: str) -> str:
        type_name = self.node_to_type_name(node)
        attrs = [("style", "filled"), ("color", f'"{type_to_color(type_name)}"')]
        if self.compact:
            attrs.append(("label", f'"{_escape(self.node_to_name(node))}"'))
        attrs.append(("rule_type", f'"{_escape(type_name)}"'))
        if self.node_to_attributes is not None:
            for key, value in sorted(self.node_to_attributes(node).items()):
                attrs.append((f"attr_{_attribute_name(key)}", f'"{_escape(value)}"'))
        rendered = ",".join(f"{key}={value}" for key, value in attrs)
        return f"  {node_id} [{rendered}];"
