"""
Per-invocation parser session.

A ParserState amortizes raw attribute lookups across one command invocation:
every query in a batch and every rendered node shares it. It is an explicit
context object, created by the command, passed to each call that needs it,
and closed when the command finishes regardless of outcome.

Example:
    with ParserState() as state:
        attrs = service.get_raw_attributes(state, node)
"""
import logging
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class ParserState:
    """Session cache for raw attribute lookups."""

    def __init__(self, name: str = "query"):
        self.name = name
        self._cache: Dict[Any, Optional[Dict[str, Any]]] = {}
        self._closed = False
        self.hits = 0
        self.misses = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def get_or_compute(
        self,
        key: Any,
        compute: Callable[[], Optional[Dict[str, Any]]],
    ) -> Optional[Dict[str, Any]]:
        """
        Return the cached value for key, computing and storing it on a miss.

        Raises:
            RuntimeError: If the session has been closed
        """
        self._check_open()
        if key in self._cache:
            self.hits += 1
            return self._cache[key]
        self.misses += 1
        value = compute()
        self._cache[key] = value
        return value

    def close(self) -> None:
        if self._closed:
            return
        logger.debug(
            "Closing parser state %r (%d hits, %d misses)",
            self.name, self.hits, self.misses
        )
        self._cache.clear()
        self._closed = True

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError(f"Parser state {self.name!r} is closed")

    def __enter__(self) -> "ParserState":
        self._check_open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
