"""
Tests for depquery/query/executor.py and results.py.

Covers single queries, %s multi-queries with batched preloading, %Ss set
substitution, and the usage errors of malformed invocations.
"""
from unittest.mock import patch

import pytest

from depquery.errors import UsageError
from depquery.model import BuildTarget
from depquery.query.executor import (
    QueryExecutor, expand_query_arguments, instantiate_queries, normalize_set_pattern
)
from depquery.query.results import MultiQueryResult


def names(targets):
    return sorted(str(t) for t in targets)


class TestSubstitution:
    """Test query template instantiation."""

    def test_normalize_set_pattern(self):
        query = normalize_set_pattern("deps(%Ss)", ["//a:a", "//b:b"])
        assert query == "deps(set('//a:a' '//b:b'))"

    def test_normalize_set_pattern_quotes(self):
        assert normalize_set_pattern("%Ss", ["it's"]) == "set(\"it's\")"

    def test_instantiate_queries(self):
        assert instantiate_queries("deps(%s, 1)", ["//a:a", "//b:b"]) == [
            ("//a:a", "deps(//a:a, 1)"),
            ("//b:b", "deps(//b:b, 1)"),
        ]

    def test_expand_query_arguments(self):
        assert expand_query_arguments(["deps(//a:a)"]) == ["deps(//a:a)"]
        assert expand_query_arguments(["deps(%s)", "//a:a", "//b:b"]) == ["deps(//a:a)", "deps(//b:b)"]
        assert expand_query_arguments(["deps(%Ss)", "//a:a"]) == ["deps(set('//a:a'))"]


class TestSingleQuery:
    """Test plain queries."""

    def test_single_query(self, sample_env):
        outcome = QueryExecutor(sample_env).format_and_run(["//lib:"])
        assert not outcome.is_multi
        assert names(outcome.single) == ["//lib:core", "//lib:util"]
        assert outcome.queries == ["//lib:"]
        assert outcome.size == 2

    def test_set_substitution_runs_one_query(self, sample_env):
        outcome = QueryExecutor(sample_env).format_and_run(["deps(%Ss)", "//lib:core", "//lib:util"])
        assert not outcome.is_multi
        assert outcome.queries == ["deps(set('//lib:core' '//lib:util'))"]
        assert names(outcome.single) == ["//lib:core", "//lib:util", "//third_party:guava"]


class TestMultiQuery:
    """Test %s templates run once per input."""

    def test_preloads_once_with_union_of_literals(self, sample_env):
        executor = QueryExecutor(sample_env)
        with patch.object(sample_env, "preload_target_patterns",
                          wraps=sample_env.preload_target_patterns) as preload:
            outcome = executor.format_and_run(["deps(%s)", "//lib:core", "//lib:util"])

        preload.assert_called_once()
        assert set(preload.call_args[0][0]) == {"//lib:core", "//lib:util"}
        assert outcome.is_multi
        assert outcome.multi.keys() == ["//lib:core", "//lib:util"]

    def test_template_literals_are_preloaded(self, sample_env):
        with patch.object(sample_env, "preload_target_patterns") as preload:
            QueryExecutor(sample_env).format_and_run(
                ["rdeps(//..., %s)", "//lib:core", "//third_party:guava"]
            )
        assert set(preload.call_args[0][0]) == {"//...", "//lib:core", "//third_party:guava"}

    def test_results_per_input(self, sample_env):
        outcome = QueryExecutor(sample_env).format_and_run(["deps(%s)", "//lib:util", "//lib:core"])
        assert names(outcome.multi.get("//lib:core")) == ["//lib:core", "//third_party:guava"]
        assert names(outcome.multi.get("//lib:util")) == ["//lib:util", "//third_party:guava"]
        assert outcome.size == 4

    def test_keys_are_sorted(self, sample_env):
        outcome = QueryExecutor(sample_env).format_and_run(["%s", "//tools:gen", "//app:main"])
        assert list(outcome.multi) == ["//app:main", "//tools:gen"]


class TestUsageErrors:
    """Test malformed invocations."""

    @pytest.mark.parametrize("arguments", [[], [""], ["   "]])
    def test_missing_query(self, sample_env, arguments):
        with pytest.raises(UsageError, match="must specify at least the query expression"):
            QueryExecutor(sample_env).format_and_run(arguments)

    def test_format_arguments_without_placeholder(self, sample_env):
        with pytest.raises(UsageError, match="format arguments"):
            QueryExecutor(sample_env).format_and_run(["//lib:core", "//lib:util"])

    def test_template_without_inputs(self, sample_env):
        with pytest.raises(UsageError, match="input targets"):
            QueryExecutor(sample_env).format_and_run(["deps(%s)"])


class TestMultiQueryResult:
    """Test the result multimap."""

    def test_put_all_merges(self):
        result = MultiQueryResult()
        result.put_all("b", [BuildTarget.parse("//b:b")])
        result.put_all("a", [BuildTarget.parse("//z:z"), BuildTarget.parse("//a:a")])
        result.put_all("a", [BuildTarget.parse("//a:a")])
        assert result.keys() == ["a", "b"]
        assert [str(t) for t in result.get("a")] == ["//a:a", "//z:z"]
        assert len(result) == 3
        assert "a" in result and "c" not in result

    def test_values_and_combined(self):
        result = MultiQueryResult()
        result.put_all("b", [BuildTarget.parse("//a:a")])
        result.put_all("a", [BuildTarget.parse("//a:a"), BuildTarget.parse("//b:b")])
        assert [str(t) for t in result.values()] == ["//a:a", "//b:b", "//a:a"]
        assert names(result.combined()) == ["//a:a", "//b:b"]
