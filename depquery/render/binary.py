"""
Binary graph output (--output-format thrift).

Serializes the result graph with msgpack for machine consumption:

    {
        "nodes": {"//app:main": {"node_id": "//app:main", "attributes": {...}}},
        "edges": [{"from": "//app:main", "to": "//lib:core"}],
    }

"attributes" is present only when attributes were requested; values are
strings.
"""
from typing import Any, Callable, Dict, Optional

import msgpack

from depquery.model import MergedTargetGraph, MergedTargetNode
from .output import OutputSink


def build_binary_graph(
    graph: MergedTargetGraph,
    node_to_name: Callable[[MergedTargetNode], str] = lambda n: n.build_target.fully_qualified_name,
    node_to_attributes: Optional[Callable[[MergedTargetNode], Dict[str, str]]] = None,
) -> Dict[str, Any]:
    """Build the serializable structure of graph."""
    nodes: Dict[str, Dict[str, Any]] = {}
    for node in sorted(graph.nodes(), key=node_to_name):
        name = node_to_name(node)
        entry: Dict[str, Any] = {"node_id": name}
        if node_to_attributes is not None:
            entry["attributes"] = dict(sorted(node_to_attributes(node).items()))
        nodes[name] = entry

    edges = sorted(
        ({"from": node_to_name(src), "to": node_to_name(dst)} for src, dst in graph.edges()),
        key=lambda e: (e["from"], e["to"])
    )
    return {"nodes": nodes, "edges": edges}


def write_binary_graph(
    graph: MergedTargetGraph,
    sink: OutputSink,
    node_to_name: Callable[[MergedTargetNode], str] = lambda n: n.build_target.fully_qualified_name,
    node_to_attributes: Optional[Callable[[MergedTargetNode], Dict[str, str]]] = None,
) -> None:
    payload = build_binary_graph(graph, node_to_name, node_to_attributes)
    sink.write_bytes(msgpack.packb(payload, use_bin_type=True))


def read_binary_graph(data: bytes) -> Dict[str, Any]:
    """Decode output written by write_binary_graph."""
    return msgpack.unpackb(data, raw=False)
