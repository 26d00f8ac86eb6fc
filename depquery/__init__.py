"""
depquery - Build Target Dependency Query Tool

Evaluates queries over a build target dependency graph and renders the
results as lists, JSON, dot graphs or a binary graph encoding.

Design Principles:
- The query language lives behind the QueryEnvironment interface
- Results are unordered sets; every output format imposes its own order
- One ParserState per invocation caches attribute lookups
- Configurations of a target are merged for display

Example Usage:
    >>> from depquery import load_graph, QueryExecutor, TargetUniverse, StaticQueryEnvironment
    >>> env = StaticQueryEnvironment(TargetUniverse.from_graph(load_graph("graph.yaml")))
    >>> QueryExecutor(env).format_and_run(["deps(//app:main)"])
"""

__version__ = "0.3.0"
__author__ = "depquery Contributors"

# Configuration
from depquery.config import DepQueryConfig, get_config, init_config

# Errors
from depquery.errors import DepQueryError, GraphFileError, QueryError, QueryParseError, UsageError

# Model
from depquery.model import (
    BuildTarget,
    FileTarget,
    MergedTargetGraph,
    MergedTargetNode,
    QueryTarget,
    TargetGraph,
    TargetNode,
    UnflavoredTarget,
    presentation_form,
)
from depquery.graph_file import load_graph
from depquery.session import ParserState

# Query engine
from depquery.query import (
    AttributeCollector,
    NodeAttributeService,
    PatternsMatcher,
    QueryExecutor,
    RankMode,
    StaticQueryEnvironment,
    TargetUniverse,
    compute_ranks,
)

# Rendering
from depquery.render import OutputFormat, ResultRenderer, SortOutputFormat, open_output

__all__ = [
    # Configuration
    "DepQueryConfig",
    "get_config",
    "init_config",
    # Errors
    "DepQueryError",
    "GraphFileError",
    "QueryError",
    "QueryParseError",
    "UsageError",
    # Model
    "BuildTarget",
    "FileTarget",
    "MergedTargetGraph",
    "MergedTargetNode",
    "QueryTarget",
    "TargetGraph",
    "TargetNode",
    "UnflavoredTarget",
    "presentation_form",
    "load_graph",
    "ParserState",
    # Query engine
    "AttributeCollector",
    "NodeAttributeService",
    "PatternsMatcher",
    "QueryExecutor",
    "RankMode",
    "StaticQueryEnvironment",
    "TargetUniverse",
    "compute_ranks",
    # Rendering
    "OutputFormat",
    "ResultRenderer",
    "SortOutputFormat",
    "open_output",
]
