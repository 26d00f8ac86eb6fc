"""
Exception types for depquery.

Every error raised by the engine derives from DepQueryError so the CLI can
report it as a single human-readable line:

- UsageError: malformed invocation (empty query, stray format arguments)
- QueryError: an expression failed to parse or evaluate
- GraphFileError: the graph description could not be loaded
"""


class DepQueryError(Exception):
    """Base class for depquery errors."""
    pass


class UsageError(DepQueryError):
    """The command was invoked with an invalid combination of arguments."""
    pass


class QueryError(DepQueryError):
    """A query expression could not be parsed or evaluated."""
    pass


class QueryParseError(QueryError):
    """Error parsing a query expression."""

    def __init__(self, message: str, text: str = "", position: int = -1):
        self.text = text
        self.position = position
        if position >= 0:
            message = f"{message} (at position {position} in {text!r})"
        super().__init__(message)


class GraphFileError(DepQueryError):
    """Error loading a target graph description."""
    pass
