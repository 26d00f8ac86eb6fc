import io
import os

import pytest

import depquery.config
from depquery.graph_file import parse_graph_string
from depquery.model import BuildTarget, TargetGraph, TargetNode
from depquery.query.attributes import AttributeCollector, NodeAttributeService
from depquery.query.environment import StaticQueryEnvironment
from depquery.query.universe import TargetUniverse
from depquery.render.output import OutputSink
from depquery.session import ParserState


SAMPLE_GRAPH_YAML = """
targets:
  - target: //app:main
    type: java_binary
    deps: [//lib:core, //lib:util]
    visibility: [PUBLIC]
    attributes:
      mainClass: com.example.Main
      srcs: [Main.java]
  - target: //lib:core
    type: java_library
    deps: [//third_party:guava]
    visibility: ['//app/...']
    within_view: ['//third_party/...']
    attributes:
      srcs: [Core.java]
  - target: //lib:util
    type: java_library
    deps: [//third_party:guava]
    attributes:
      srcs: [Util.java]
  - target: //third_party:guava
    type: prebuilt_jar
    visibility: [PUBLIC]
    attributes:
      binaryJar: guava.jar
  - target: //tools:gen
    type: genrule
    deps: [//lib:core]
    attributes: null
"""


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep user/local config files and DEPQUERY_* variables out of tests."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for key in list(os.environ):
        if key.startswith("DEPQUERY_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(depquery.config, "_config", None)
    return home


@pytest.fixture
def node_factory():
    """Build TargetNodes from target strings."""
    def make_node(target, rule_type="java_library", deps=(), visibility=(),
                  within_view=(), attributes=None, unresolvable=False):
        return TargetNode(
            build_target=BuildTarget.parse(target),
            rule_type=rule_type,
            deps=tuple(BuildTarget.parse(d) for d in deps),
            visibility_patterns=tuple(visibility),
            within_view_patterns=tuple(within_view),
            raw_attributes=None if unresolvable else dict(attributes or {}),
        )
    return make_node


@pytest.fixture
def diamond_graph(node_factory):
    """//app:a -> //lib:b -> //lib:c and //app:a -> //lib:c."""
    return TargetGraph.from_nodes([
        node_factory("//app:a", "java_binary", deps=["//lib:b", "//lib:c"]),
        node_factory("//lib:b", deps=["//lib:c"]),
        node_factory("//lib:c"),
    ])


@pytest.fixture
def sample_graph():
    return parse_graph_string(SAMPLE_GRAPH_YAML)


@pytest.fixture
def sample_env(sample_graph):
    return StaticQueryEnvironment(TargetUniverse.from_graph(sample_graph))


@pytest.fixture
def graph_file(tmp_path):
    """The sample graph written to a YAML file."""
    path = tmp_path / "graph.yaml"
    path.write_text(SAMPLE_GRAPH_YAML)
    return path


@pytest.fixture
def state():
    with ParserState("test") as state:
        yield state


@pytest.fixture
def collector(state):
    return AttributeCollector(NodeAttributeService(), state)


@pytest.fixture
def buffer_sink():
    """An OutputSink over an in-memory buffer."""
    return OutputSink(io.BytesIO())