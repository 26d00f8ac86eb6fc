"""
Rendering of query results.

ResultRenderer turns a QueryOutcome into one of the output formats:

- list: one presentation form per line
- json: a list of presentation forms, or {target: attributes} when
  attributes are requested
- dot, dot_compact, dot_bfs, dot_bfs_compact: the result's dependency graph
- thrift: the result's dependency graph, msgpack encoded

A rank sort (--sort-output minrank/maxrank) replaces the format: ranked
attributes as JSON when attributes are requested, "<rank> <target>" lines
otherwise.
"""
import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from depquery.errors import QueryError
from depquery.model import (
    BuildTarget, MergedTargetGraph, MergedTargetNode, QueryTarget,
    group_by_unflavored_target, presentation_form
)
from depquery.query.attributes import AttributeCollector, PatternsMatcher
from depquery.query.environment import QueryEnvironment
from depquery.query.ranks import compute_ranks, sort_by_rank
from depquery.query.results import MultiQueryResult, QueryOutcome
from .binary import write_binary_graph
from .dot import DotWriter, OutputOrder
from .formats import OutputFormat, SortOutputFormat
from .output import OutputSink

logger = logging.getLogger(__name__)


def distinct_presentation_forms(targets: Iterable[QueryTarget]) -> List[str]:
    """Presentation forms of targets in canonical order, without duplicates."""
    return list(dict.fromkeys(presentation_form(t) for t in sorted(targets)))


class ResultRenderer:
    """
    Serializes query results.

    Args:
        env: Environment the results came from
        collector: Attribute source, used when attributes are requested
        output_format: Encoding of the output
        sort_output: LABEL, or a rank mode
        output_attributes: Attribute name patterns to output
        json_indent: Indentation of JSON output, None for compact
    """

    def __init__(
        self,
        env: QueryEnvironment,
        collector: AttributeCollector,
        output_format: OutputFormat = OutputFormat.LIST,
        sort_output: SortOutputFormat = SortOutputFormat.LABEL,
        output_attributes: Sequence[str] = (),
        json_indent: Optional[int] = 2,
    ):
        self.env = env
        self.collector = collector
        self.output_format = output_format
        self.sort_output = sort_output
        self.output_attributes = list(output_attributes)
        self.json_indent = json_indent

    @property
    def should_output_attributes(self) -> bool:
        return bool(self.output_attributes)

    def render(self, outcome: QueryOutcome, sink: OutputSink) -> None:
        if outcome.is_multi:
            self.render_multi(outcome.multi, sink)
        else:
            self.render_single(outcome.single or set(), sink)

    # =========================================================================
    # Single query
    # =========================================================================

    def render_single(self, result: Set[QueryTarget], sink: OutputSink) -> None:
        if self.sort_output.needs_rank:
            self._print_rank_output(result, sink)
            return

        output_format = self.output_format
        if output_format is OutputFormat.LIST and self.should_output_attributes:
            # attributes cannot be printed as a list
            logger.debug("Printing attributes as JSON instead of list")
            output_format = OutputFormat.JSON

        if output_format is OutputFormat.LIST:
            for form in distinct_presentation_forms(result):
                sink.write_line(form)
        elif output_format is OutputFormat.JSON:
            if self.should_output_attributes:
                self._print_attributes_json(result, sink)
            else:
                self._write_json(distinct_presentation_forms(result), sink)
        elif output_format.is_dot:
            self._print_dot(
                result, sink,
                OutputOrder.BFS if output_format.is_bfs else OutputOrder.SORTED,
                output_format.is_compact,
            )
        elif output_format is OutputFormat.THRIFT:
            graph = self._result_graph(result)
            write_binary_graph(graph, sink, node_to_attributes=self._node_to_attributes())
        else:
            raise ValueError(f"Unsupported output format: {output_format}")

    # =========================================================================
    # Multi-query
    # =========================================================================

    def check_multi_format(self) -> None:
        """Raise QueryError when multi-query results cannot use the output format."""
        if self.should_output_attributes or self.output_format in (OutputFormat.LIST, OutputFormat.JSON):
            return
        raise QueryError(
            "Multiqueries (those using `%s`) do not support printing with the given "
            f"output format: {self.output_format.value}"
        )

    def render_multi(self, result: MultiQueryResult, sink: OutputSink) -> None:
        self.check_multi_format()
        if self.sort_output.needs_rank:
            logger.debug("Ignoring --sort-output %s for a multi-query", self.sort_output.value)

        if self.should_output_attributes:
            # all results are printed together as if they came from one query
            self._print_attributes_json(result.combined(), sink)
        elif self.output_format is OutputFormat.LIST:
            for _, targets in result.items():
                for form in distinct_presentation_forms(targets):
                    sink.write_line(form)
        elif self.output_format is OutputFormat.JSON:
            self._write_json(
                {key: distinct_presentation_forms(targets) for key, targets in result.items()},
                sink,
            )

    # =========================================================================
    # Output helpers
    # =========================================================================

    def _matcher(self) -> PatternsMatcher:
        return PatternsMatcher(self.output_attributes)

    def _node_to_attributes(self):
        if not self.should_output_attributes:
            return None
        matcher = self._matcher()
        return lambda node: self.collector.display_attributes(node, matcher)

    def _print_attributes_json(self, result: Set[QueryTarget], sink: OutputSink) -> None:
        nodes = self.env.nodes_for_targets(result)
        self._write_json(self.collector.collect_attributes(nodes, self._matcher()), sink)

    def _result_graph(self, result: Set[QueryTarget]) -> MergedTargetGraph:
        """Merged graph of the environment restricted to the result's build targets."""
        wanted = {t.unflavored for t in result if isinstance(t, BuildTarget)}
        merged = MergedTargetGraph.merge(self.env.target_graph)
        return merged.filter(lambda node: node.build_target in wanted)

    def _print_dot(
        self,
        result: Set[QueryTarget],
        sink: OutputSink,
        output_order: OutputOrder,
        compact: bool,
    ) -> None:
        DotWriter(
            self._result_graph(result),
            "result_graph",
            node_to_attributes=self._node_to_attributes(),
            output_order=output_order,
            compact=compact,
        ).write(sink)

    def _print_rank_output(self, result: Set[QueryTarget], sink: OutputSink) -> None:
        nodes = self.env.nodes_for_targets(result)
        node_set = set(nodes)
        mode = self.sort_output.rank_mode
        ranks = compute_ranks(self.env.target_graph, node_set.__contains__, mode)

        if not self.should_output_attributes:
            for target, rank in sort_by_rank(ranks):
                sink.write_line(f"{rank} {target.fully_qualified_name}")
            return

        matcher = self._matcher()
        merged = group_by_unflavored_target(nodes)
        output: Dict[str, Dict[str, Any]] = {}
        for target, rank in sort_by_rank(ranks):
            node: MergedTargetNode = merged[target]
            # unresolved rules still get an entry holding only the rank
            attributes = self.collector.get_attributes(node, matcher) or {}
            attributes[mode.value] = rank
            output[target.fully_qualified_name] = dict(sorted(attributes.items()))

        unranked = len(merged) - len(output)
        if unranked:
            logger.debug("%d result targets are not reachable from a root", unranked)
        self._write_json(output, sink)

    def _write_json(self, value: Any, sink: OutputSink) -> None:
        sink.write_line(json.dumps(value, indent=self.json_indent, default=str))
