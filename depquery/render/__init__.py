"""
depquery result rendering.

Output formats: list, json, dot variants and a msgpack encoded graph
(thrift). Output goes to stdout or to a file.
"""

from .binary import read_binary_graph, write_binary_graph
from .dot import DotWriter, OutputOrder
from .formats import OutputFormat, SortOutputFormat
from .output import OutputSink, open_output
from .renderer import ResultRenderer

__all__ = [
    "read_binary_graph",
    "write_binary_graph",
    "DotWriter",
    "OutputOrder",
    "OutputFormat",
    "SortOutputFormat",
    "OutputSink",
    "open_output",
    "ResultRenderer",
]
