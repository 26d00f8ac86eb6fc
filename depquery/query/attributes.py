"""
Attribute collection for query results.

Raw attributes of a rule are fetched from an attribute service, enriched
with attributes computed from the node (visibility, within_view,
target_configurations), renamed from lowerCamel to snake_case and projected
through the --output-attribute patterns.

Example:
    collector = AttributeCollector(service, state)
    matcher = PatternsMatcher(["vis.*"])
    collector.get_attributes(merged_node, matcher)
    # {'visibility': ['PUBLIC']}
"""
import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Pattern

from depquery.model import (
    MergedTargetNode, TargetNode, group_by_unflavored_target
)
from depquery.session import ParserState

logger = logging.getLogger(__name__)

VISIBILITY = "visibility"
WITHIN_VIEW = "within_view"
TARGET_CONFIGURATIONS = "target_configurations"

_CAMEL_BOUNDARY = re.compile(r'([A-Z])')


def camel_to_snake(name: str) -> str:
    """Convert a lowerCamel attribute name to snake_case ('mainClass' -> 'main_class')."""
    return _CAMEL_BOUNDARY.sub(r'_\1', name).lower()


# =============================================================================
# Pattern Matching
# =============================================================================

class PatternsMatcher:
    """
    Matches attribute names against literal names or regular expressions.

    A matcher built from zero patterns matches nothing.
    """

    def __init__(self, patterns: Iterable[str] = ()):
        self.patterns: List[str] = list(dict.fromkeys(patterns))
        self._compiled: List[Pattern] = []
        for pattern in self.patterns:
            try:
                self._compiled.append(re.compile(pattern))
            except re.error:
                logger.debug("Attribute pattern %r is not a valid regex, matching literally", pattern)

    @property
    def matches_none(self) -> bool:
        return not self.patterns

    def matches(self, name: str) -> bool:
        if name in self.patterns:
            return True
        return any(p.fullmatch(name) for p in self._compiled)

    def __len__(self) -> int:
        return len(self.patterns)

    def __repr__(self) -> str:
        return f"PatternsMatcher({self.patterns!r})"


# =============================================================================
# Attribute Service
# =============================================================================

class AttributeService(ABC):
    """Provides the raw, declared attributes of target nodes."""

    @abstractmethod
    def get_raw_attributes(self, state: ParserState, node: TargetNode) -> Optional[Dict[str, Any]]:
        """
        Raw attributes of node keyed by lowerCamel name.

        Returns:
            Attributes sorted by name, or None if the rule cannot be resolved
        """
        pass


class NodeAttributeService(AttributeService):
    """
    Serves the attributes recorded on TargetNode instances.

    Adds the name, rule type and base path of the rule, the way a build file
    parser reports them. Lookups are cached in the parser state.
    """

    def get_raw_attributes(self, state: ParserState, node: TargetNode) -> Optional[Dict[str, Any]]:
        return state.get_or_compute(node.build_target, lambda: self._read(node))

    def _read(self, node: TargetNode) -> Optional[Dict[str, Any]]:
        if node.raw_attributes is None:
            return None
        attributes = dict(node.raw_attributes)
        attributes['name'] = node.build_target.name
        attributes['ruleType'] = node.rule_type
        attributes['basePath'] = node.build_target.base_path
        return dict(sorted(attributes.items()))


# =============================================================================
# Collector
# =============================================================================

class AttributeCollector:
    """
    Computes projected attributes for merged target nodes.

    Args:
        service: Source of raw attributes
        state: Parser session shared by every lookup of this invocation
    """

    def __init__(self, service: AttributeService, state: ParserState):
        self.service = service
        self.state = state

    def get_attributes(self, node: MergedTargetNode, matcher: PatternsMatcher) -> Optional[Dict[str, Any]]:
        """
        Attributes of node selected by matcher, sorted by name.

        Returns:
            None if the rule cannot be resolved (a warning is logged). An
            empty dict if it resolves but matcher has no patterns.
        """
        raw = self.service.get_raw_attributes(self.state, node.any_node)
        if raw is None:
            logger.warning("unable to find rule for target %s", node.build_target.fully_qualified_name)
            return None

        computed = self._with_computed_attributes(raw, node)

        attributes: Dict[str, Any] = {}
        if not matcher.matches_none:
            for key, value in computed.items():
                snake_key = camel_to_snake(key)
                if matcher.matches(snake_key):
                    attributes[snake_key] = value

            if matcher.matches(TARGET_CONFIGURATIONS):
                attributes[TARGET_CONFIGURATIONS] = sorted(node.target_configurations)

        return dict(sorted(attributes.items()))

    def _with_computed_attributes(self, raw: Dict[str, Any], node: MergedTargetNode) -> Dict[str, Any]:
        computed = dict(raw)

        visibility = list(node.any_node.visibility_patterns)
        if visibility:
            computed[VISIBILITY] = visibility

        within_view = list(node.any_node.within_view_patterns)
        if within_view:
            computed[WITHIN_VIEW] = within_view

        return computed

    def collect_attributes(
        self,
        nodes: Iterable[TargetNode],
        matcher: PatternsMatcher,
    ) -> Dict[str, Dict[str, Any]]:
        """
        Attributes of nodes, merged by unflavored target.

        Returns:
            Attribute maps keyed by fully qualified name, sorted by key.
            Unresolvable nodes are left out.
        """
        result: Dict[str, Dict[str, Any]] = {}
        for target, merged in group_by_unflavored_target(nodes).items():
            attributes = self.get_attributes(merged, matcher)
            if attributes is not None:
                result[target.fully_qualified_name] = attributes
        return dict(sorted(result.items()))

    def display_attributes(self, node: MergedTargetNode, matcher: PatternsMatcher) -> Dict[str, str]:
        """Attributes of node as strings, for graph annotations."""
        attributes = self.get_attributes(node, matcher) or {}
        return {key: to_display_string(value) for key, value in attributes.items()}


def to_display_string(value: Any) -> str:
    """Render an attribute value as a single string."""
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, default=str)

