"""
Tests for depquery/render.

Covers every output format for single and multi-queries, rank output, and
the stdout/file output destinations.
"""
import io
import json
import logging
import sys

import pytest

from depquery.errors import QueryError
from depquery.model import BuildTarget, FileTarget
from depquery.query.executor import QueryExecutor
from depquery.query.universe import TargetUniverse
from depquery.query.environment import StaticQueryEnvironment
from depquery.render.binary import read_binary_graph
from depquery.render.dot import type_to_color
from depquery.render.formats import OutputFormat, SortOutputFormat
from depquery.render.output import OutputSink, open_output
from depquery.render.renderer import ResultRenderer, distinct_presentation_forms


def render(env, collector, arguments, **options):
    outcome = QueryExecutor(env).format_and_run(arguments)
    renderer = ResultRenderer(env, collector, **options)
    stream = io.BytesIO()
    renderer.render(outcome, OutputSink(stream))
    return stream.getvalue()


def render_text(env, collector, arguments, **options):
    return render(env, collector, arguments, **options).decode("utf-8")


class TestListOutput:
    """Test --output-format list."""

    def test_one_target_per_line(self, sample_env, collector):
        output = render_text(sample_env, collector, ["deps(//app:main)"])
        assert output == "//app:main\n//lib:core\n//lib:util\n//third_party:guava\n"

    def test_rendering_is_idempotent(self, sample_env, collector):
        first = render_text(sample_env, collector, ["//..."])
        second = render_text(sample_env, collector, ["//..."])
        assert first == second

    def test_empty_result(self, sample_env, collector):
        assert render_text(sample_env, collector, ["//lib:core - //lib:core"]) == ""

    def test_distinct_presentation_forms(self):
        targets = [
            FileTarget("lib/BUCK"),
            BuildTarget.parse("//lib:core (linux)"),
            BuildTarget.parse("//lib:core#shared"),
        ]
        assert distinct_presentation_forms(targets) == ["//lib:core", "lib/BUCK"]

    def test_attributes_switch_to_json(self, sample_env, collector, caplog):
        with caplog.at_level(logging.DEBUG, logger="depquery.render.renderer"):
            listed = render_text(sample_env, collector, ["//lib:"], output_attributes=["rule_type"])
        as_json = render_text(sample_env, collector, ["//lib:"],
                              output_format=OutputFormat.JSON, output_attributes=["rule_type"])
        assert listed == as_json
        assert "instead of list" in caplog.text


class TestJsonOutput:
    """Test --output-format json."""

    def test_same_targets_as_list(self, sample_env, collector):
        listed = render_text(sample_env, collector, ["deps(//tools:gen)"]).splitlines()
        as_json = json.loads(render_text(sample_env, collector, ["deps(//tools:gen)"],
                                         output_format=OutputFormat.JSON))
        assert as_json == listed

    def test_file_targets(self, sample_env, collector):
        output = json.loads(render_text(sample_env, collector, ["buildfile(//lib:) + //lib:core"],
                                        output_format=OutputFormat.JSON))
        assert output == ["//lib:core", "lib/BUCK"]

    def test_attributes(self, sample_env, collector):
        output = json.loads(render_text(sample_env, collector, ["//app:main + //third_party:guava"],
                                        output_format=OutputFormat.JSON,
                                        output_attributes=["rule_type", "binary_jar"]))
        assert output == {
            "//app:main": {"rule_type": "java_binary"},
            "//third_party:guava": {"binary_jar": "guava.jar", "rule_type": "prebuilt_jar"},
        }

    def test_unresolvable_rule_left_out(self, sample_env, collector, caplog):
        with caplog.at_level(logging.WARNING):
            output = json.loads(render_text(sample_env, collector, ["//tools:gen + //lib:core"],
                                            output_format=OutputFormat.JSON,
                                            output_attributes=["name"]))
        assert output == {"//lib:core": {"name": "core"}}
        assert "unable to find rule for target //tools:gen" in caplog.text

    def test_compact_json(self, sample_env, collector):
        output = render_text(sample_env, collector, ["//lib:"],
                             output_format=OutputFormat.JSON, json_indent=None)
        assert output == '["//lib:core", "//lib:util"]\n'


class TestDotOutput:
    """Test the dot output formats."""

    def test_sorted(self, sample_env, collector):
        lines = render_text(sample_env, collector, ["deps(//lib:util)"],
                            output_format=OutputFormat.DOT).splitlines()
        color = type_to_color("java_library")
        assert lines[0] == "digraph result_graph {"
        assert lines[1] == f'  "//lib:util" [style=filled,color="{color}",rule_type="java_library"];'
        assert lines[2].startswith('  "//third_party:guava" [')
        assert lines[3] == '  "//lib:util" -> "//third_party:guava";'
        assert lines[4] == "}"

    def test_only_result_nodes(self, sample_env, collector):
        output = render_text(sample_env, collector, ["//lib:core + //tools:gen"],
                             output_format=OutputFormat.DOT)
        assert '"//tools:gen" -> "//lib:core";' in output
        assert "guava" not in output

    def test_compact(self, sample_env, collector):
        lines = render_text(sample_env, collector, ["deps(//lib:util)"],
                            output_format=OutputFormat.DOT_COMPACT).splitlines()
        assert lines[1].startswith("  1 [")
        assert 'label="//lib:util"' in lines[1]
        assert lines[3] == "  1 -> 2;"

    def test_bfs_interleaves_edges(self, sample_env, collector):
        lines = render_text(sample_env, collector, ["deps(//app:main)"],
                            output_format=OutputFormat.DOT_BFS).splitlines()
        assert lines[1].startswith('  "//app:main" [')
        assert lines[2] == '  "//app:main" -> "//lib:core";'
        assert lines[3] == '  "//app:main" -> "//lib:util";'
        assert lines[4].startswith('  "//lib:core" [')
        assert lines[5] == '  "//lib:core" -> "//third_party:guava";'
        assert lines[6].startswith('  "//lib:util" [')
        assert lines[8].startswith('  "//third_party:guava" [')

    def test_bfs_compact(self, sample_env, collector):
        lines = render_text(sample_env, collector, ["deps(//lib:util)"],
                            output_format=OutputFormat.DOT_BFS_COMPACT).splitlines()
        assert lines[2] == "  1 -> 2;"

    def test_attributes_annotate_nodes(self, sample_env, collector):
        output = render_text(sample_env, collector, ["//app:main"],
                             output_format=OutputFormat.DOT, output_attributes=["main_class"])
        assert 'attr_main_class="com.example.Main"' in output

    def test_same_rule_type_same_color(self):
        assert type_to_color("java_library") == type_to_color("java_library")
        assert type_to_color("java_library").startswith("#")


class TestBinaryOutput:
    """Test --output-format thrift."""

    def test_graph_round_trip(self, sample_env, collector):
        data = read_binary_graph(render(sample_env, collector, ["deps(//lib:util)"],
                                        output_format=OutputFormat.THRIFT))
        assert sorted(data["nodes"]) == ["//lib:util", "//third_party:guava"]
        assert data["edges"] == [{"from": "//lib:util", "to": "//third_party:guava"}]
        assert "attributes" not in data["nodes"]["//lib:util"]

    def test_attributes(self, sample_env, collector):
        data = read_binary_graph(render(sample_env, collector, ["//app:main"],
                                        output_format=OutputFormat.THRIFT,
                                        output_attributes=["rule_type"]))
        assert data["nodes"]["//app:main"]["attributes"] == {"rule_type": "java_binary"}


class TestRankOutput:
    """Test --sort-output minrank/maxrank."""

    def test_rank_lines(self, sample_env, collector):
        output = render_text(sample_env, collector, ["//..."], sort_output=SortOutputFormat.MINRANK)
        assert output.splitlines() == [
            "0 //app:main",
            "0 //tools:gen",
            "1 //lib:core",
            "1 //lib:util",
            "2 //third_party:guava",
        ]

    def test_rank_replaces_output_format(self, sample_env, collector):
        output = render_text(sample_env, collector, ["//..."], sort_output=SortOutputFormat.MAXRANK,
                             output_format=OutputFormat.DOT)
        assert not output.startswith("digraph")

    def test_rank_with_attributes(self, sample_env, collector):
        output = json.loads(render_text(sample_env, collector, ["//..."],
                                        sort_output=SortOutputFormat.MAXRANK,
                                        output_attributes=["rule_type"]))
        assert list(output) == [
            "//app:main", "//tools:gen", "//lib:core", "//lib:util", "//third_party:guava"
        ]
        assert output["//app:main"] == {"maxrank": 0, "rule_type": "java_binary"}
        assert output["//tools:gen"] == {"maxrank": 0}
        assert output["//third_party:guava"]["maxrank"] == 2

    def test_rank_in_target_universe(self, sample_graph, collector):
        universe = TargetUniverse.create_from_root_targets(["//lib:util"], sample_graph)
        env = StaticQueryEnvironment(universe)
        output = render_text(env, collector, ["deps(//lib:util)"], sort_output=SortOutputFormat.MAXRANK)
        assert output == "0 //lib:util\n1 //third_party:guava\n"


class TestMultiQueryOutput:
    """Test rendering of %s multi-queries."""

    def test_list(self, sample_env, collector):
        output = render_text(sample_env, collector, ["deps(%s)", "//lib:util", "//lib:core"])
        assert output.splitlines() == [
            "//lib:core", "//third_party:guava", "//lib:util", "//third_party:guava"
        ]

    def test_json(self, sample_env, collector):
        output = json.loads(render_text(sample_env, collector, ["deps(%s)", "//lib:util", "//lib:core"],
                                        output_format=OutputFormat.JSON))
        assert output == {
            "//lib:core": ["//lib:core", "//third_party:guava"],
            "//lib:util": ["//lib:util", "//third_party:guava"],
        }

    def test_attributes_combine_results(self, sample_env, collector):
        output = json.loads(render_text(sample_env, collector, ["deps(%s)", "//lib:util", "//lib:core"],
                                        output_attributes=["rule_type"]))
        assert list(output) == ["//lib:core", "//lib:util", "//third_party:guava"]

    @pytest.mark.parametrize("output_format", [
        OutputFormat.DOT, OutputFormat.DOT_BFS_COMPACT, OutputFormat.THRIFT
    ])
    def test_graph_formats_rejected(self, sample_env, collector, output_format):
        with pytest.raises(QueryError, match="do not support printing"):
            render(sample_env, collector, ["deps(%s)", "//lib:util"], output_format=output_format)


class TestOutputDestination:
    """Test stdout and --output-file destinations."""

    def test_stdout(self, capsys):
        with open_output() as sink:
            sink.write_line("//lib:core")
        assert capsys.readouterr().out == "//lib:core\n"
        assert not sys.stdout.closed

    def test_file(self, tmp_path, sample_env, collector):
        path = tmp_path / "out.txt"
        outcome = QueryExecutor(sample_env).format_and_run(["//lib:"])
        with open_output(path) as sink:
            ResultRenderer(sample_env, collector).render(outcome, sink)
        assert sink.stream.closed
        assert path.read_text() == "//lib:core\n//lib:util\n"

    def test_file_closed_on_error(self, tmp_path, sample_env, collector):
        outcome = QueryExecutor(sample_env).format_and_run(["deps(%s)", "//lib:util"])
        renderer = ResultRenderer(sample_env, collector, output_format=OutputFormat.DOT)
        with pytest.raises(QueryError):
            with open_output(tmp_path / "out.dot") as sink:
                renderer.render(outcome, sink)
        assert sink.stream.closed
