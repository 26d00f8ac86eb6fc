"""
Result containers for query execution.

A single query produces an unordered set of QueryTarget; ordering is applied
at render time. A multi-query (a template run once per input) produces a
MultiQueryResult, an ordered multimap from input string to targets.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from depquery.model import QueryTarget


class MultiQueryResult:
    """
    Ordered multimap of input -> query targets.

    Keys iterate in sorted order and each key's values in canonical target
    order, so output built from it is deterministic.
    """

    def __init__(self):
        self._results: Dict[str, Set[QueryTarget]] = {}

    def put_all(self, key: str, targets: Iterable[QueryTarget]) -> None:
        self._results.setdefault(key, set()).update(targets)

    def keys(self) -> List[str]:
        return sorted(self._results)

    def get(self, key: str) -> List[QueryTarget]:
        return sorted(self._results.get(key, ()))

    def items(self) -> List[Tuple[str, List[QueryTarget]]]:
        return [(key, self.get(key)) for key in self.keys()]

    def values(self) -> List[QueryTarget]:
        """Every value, grouped by key in key order."""
        return [target for _, targets in self.items() for target in targets]

    def combined(self) -> Set[QueryTarget]:
        """All targets of every key as one set."""
        result: Set[QueryTarget] = set()
        for targets in self._results.values():
            result |= targets
        return result

    def __contains__(self, key: object) -> bool:
        return key in self._results

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        """Number of key/value entries."""
        return sum(len(targets) for targets in self._results.values())

    def __repr__(self) -> str:
        return f"MultiQueryResult(keys={self.keys()!r}, size={len(self)})"


@dataclass
class QueryOutcome:
    """
    What a query command evaluated: either one result set or a multimap.

    Attributes:
        single: Result of a single query
        multi: Result of a template query run once per input
    """
    single: Optional[Set[QueryTarget]] = None
    multi: Optional[MultiQueryResult] = None
    queries: List[str] = field(default_factory=list)

    @property
    def is_multi(self) -> bool:
        return self.multi is not None

    @property
    def size(self) -> int:
        return len(self.multi) if self.multi is not None else len(self.single or ())
