"""
Output format options.

OutputFormat selects the encoding of query results (--output-format);
SortOutputFormat selects their ordering (--sort-output).
"""
from enum import Enum
from typing import Optional

from depquery.query.ranks import RankMode


class OutputFormat(Enum):
    """Values of the --output-format option."""
    LIST = "list"                        # one target per line
    DOT = "dot"                          # dot graph
    DOT_COMPACT = "dot_compact"          # dot graph, compacted
    DOT_BFS = "dot_bfs"                  # dot graph in bfs order
    DOT_BFS_COMPACT = "dot_bfs_compact"  # dot graph in bfs order, compacted
    JSON = "json"
    THRIFT = "thrift"                    # binary graph (msgpack)

    @classmethod
    def from_string(cls, s: str) -> "OutputFormat":
        """Parse an output format name (case-insensitive)."""
        try:
            return cls(s.lower().strip())
        except ValueError:
            raise ValueError(f"Unknown output format: {s}")

    @property
    def is_dot(self) -> bool:
        return self in (OutputFormat.DOT, OutputFormat.DOT_COMPACT,
                        OutputFormat.DOT_BFS, OutputFormat.DOT_BFS_COMPACT)

    @property
    def is_compact(self) -> bool:
        return self in (OutputFormat.DOT_COMPACT, OutputFormat.DOT_BFS_COMPACT)

    @property
    def is_bfs(self) -> bool:
        return self in (OutputFormat.DOT_BFS, OutputFormat.DOT_BFS_COMPACT)


class SortOutputFormat(Enum):
    """Values of the --sort-output option."""
    LABEL = "label"
    MINRANK = "minrank"   # rank by the length of the shortest path from a root
    MAXRANK = "maxrank"   # rank by the length of the longest path from a root

    @classmethod
    def from_string(cls, s: str) -> "SortOutputFormat":
        try:
            return cls(s.lower().strip())
        except ValueError:
            raise ValueError(f"Unknown sort output format: {s}")

    @property
    def needs_rank(self) -> bool:
        return self is not SortOutputFormat.LABEL

    @property
    def rank_mode(self) -> Optional[RankMode]:
        if self is SortOutputFormat.MINRANK:
            return RankMode.MINRANK
        if self is SortOutputFormat.MAXRANK:
            return RankMode.MAXRANK
        return None
