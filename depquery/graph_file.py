"""
Target graph files.

A graph file describes configured target nodes in YAML:

    targets:
      - target: //app:main
        type: java_binary
        configuration: linux          # optional
        deps: [//lib:core]            # configuration inherited when omitted
        visibility: [PUBLIC]
        within_view: []
        attributes: {mainClass: com.example.Main}

A null `attributes` marks a rule that cannot be resolved; its attributes are
reported as missing rather than empty.
"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

from depquery.errors import GraphFileError
from depquery.model import BuildTarget, TargetGraph, TargetNode

logger = logging.getLogger(__name__)


def _string_list(entry: Dict[str, Any], key: str, where: str) -> List[str]:
    value = entry.get(key) or []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise GraphFileError(f"{where}: '{key}' must be a list of strings")
    return value


def _parse_target(text: Any, where: str) -> BuildTarget:
    if not isinstance(text, str):
        raise GraphFileError(f"{where}: target must be a string, got {text!r}")
    try:
        return BuildTarget.parse(text)
    except ValueError as e:
        raise GraphFileError(f"{where}: {e}")


def parse_node(entry: Any, index: int) -> TargetNode:
    """
    Build a TargetNode from one entry of the targets list.

    Raises:
        GraphFileError: If the entry is malformed
    """
    where = f"targets[{index}]"
    if not isinstance(entry, dict):
        raise GraphFileError(f"{where}: expected a mapping, got {type(entry).__name__}")
    if 'target' not in entry or 'type' not in entry:
        raise GraphFileError(f"{where}: 'target' and 'type' are required")

    target = _parse_target(entry['target'], where)
    configuration = entry.get('configuration')
    if configuration is not None:
        target = target.with_configuration(str(configuration))

    deps = []
    for dep_text in _string_list(entry, 'deps', where):
        dep = _parse_target(dep_text, where)
        if dep.configuration is None:
            dep = dep.with_configuration(target.configuration)
        deps.append(dep)

    attributes = entry.get('attributes', {})
    if attributes is not None and not isinstance(attributes, dict):
        raise GraphFileError(f"{where}: 'attributes' must be a mapping or null")
    if attributes and not all(isinstance(key, str) for key in attributes):
        raise GraphFileError(f"{where}: attribute names must be strings")

    return TargetNode(
        build_target=target,
        rule_type=str(entry['type']),
        deps=tuple(deps),
        visibility_patterns=tuple(_string_list(entry, 'visibility', where)),
        within_view_patterns=tuple(_string_list(entry, 'within_view', where)),
        raw_attributes=dict(attributes) if attributes is not None else None,
    )


def build_graph(data: Any) -> TargetGraph:
    """
    Build a TargetGraph from parsed graph file content.

    Raises:
        GraphFileError: If the content is malformed, references unknown
            targets or contains a cycle
    """
    if not isinstance(data, dict) or not isinstance(data.get('targets'), list):
        raise GraphFileError("Graph file must contain a 'targets' list")

    nodes = [parse_node(entry, i) for i, entry in enumerate(data['targets'])]
    try:
        graph = TargetGraph.from_nodes(nodes)
    except ValueError as e:
        raise GraphFileError(str(e))

    logger.debug("Loaded %d target nodes", len(graph))
    return graph


def load_graph(path: Union[str, Path]) -> TargetGraph:
    """
    Load a target graph from a YAML file.

    Args:
        path: Path to the graph file

    Raises:
        GraphFileError: If the file is missing, not valid YAML or malformed
    """
    path = Path(path)

    if not path.exists():
        raise GraphFileError(f"Graph file not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise GraphFileError(f"Invalid YAML in {path}: {e}")

    return build_graph(data)


def parse_graph_string(yaml_string: str) -> TargetGraph:
    """Load a target graph from YAML text."""
    try:
        data = yaml.safe_load(yaml_string)
    except yaml.YAMLError as e:
        raise GraphFileError(f"Invalid YAML: {e}")
    return build_graph(data)
