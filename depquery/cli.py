#!/usr/bin/env python3
"""
depquery - query a build target dependency graph.

Subcommands:
    query    evaluate queries over the whole target graph
    cquery   evaluate queries over the target universe (configured graph)
    config   show or initialize configuration
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import List

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from depquery.config import get_config, init_config, user_config_path
from depquery.errors import DepQueryError, UsageError
from depquery.graph_file import load_graph
from depquery.model import TargetGraph
from depquery.query.attributes import AttributeCollector, NodeAttributeService
from depquery.query.environment import StaticQueryEnvironment
from depquery.query.executor import QueryExecutor, expand_query_arguments
from depquery.query.universe import TargetUniverse, resolve_roots
from depquery.render.formats import OutputFormat, SortOutputFormat
from depquery.render.output import open_output
from depquery.render.renderer import ResultRenderer
from depquery.session import ParserState

console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)


def _output_options(args):
    """Resolve output options from flags, falling back to configuration."""
    config = get_config()
    try:
        output_format = OutputFormat.from_string(args.output_format or config.output_format)
        sort_output = SortOutputFormat.from_string(args.sort_output or config.sort_output)
    except ValueError as e:
        raise UsageError(str(e))

    if args.output_attributes:
        logger.warning("--output-attributes is deprecated, use --output-attribute instead")
    attributes = args.output_attribute or args.output_attributes or []
    return output_format, sort_output, attributes


def _universe_roots(args) -> List[str]:
    """Root patterns for cquery: --target-universe, or inferred from every query."""
    if args.target_universe is not None:
        return resolve_roots(args.target_universe, "")

    roots = {}
    for query in expand_query_arguments(args.arguments):
        for root in resolve_roots(None, query):
            roots.setdefault(root, None)
    return list(roots)


def _create_universe(args, graph: TargetGraph) -> TargetUniverse:
    if args.command != "cquery":
        return TargetUniverse.from_graph(graph)

    roots = _universe_roots(args)
    logger.debug("Target universe roots: %s", ", ".join(roots))
    return TargetUniverse.create_from_root_targets(
        roots, graph, pool_size=get_config().num_threads
    )


def cmd_query(args):
    """Run query or cquery."""
    config = get_config()
    output_format, sort_output, attributes = _output_options(args)

    graph = load_graph(config.graph_file)

    with ParserState(args.command) as state:
        env = StaticQueryEnvironment(
            _create_universe(args, graph),
            build_file_name=config.build_file_name,
        )
        outcome = QueryExecutor(env).format_and_run(args.arguments)
        for query in outcome.queries:
            logger.debug("Evaluated query: %s", query)

        renderer = ResultRenderer(
            env,
            AttributeCollector(NodeAttributeService(), state),
            output_format=output_format,
            sort_output=sort_output,
            output_attributes=attributes,
            json_indent=config.json_indent_or_none,
        )
        if outcome.is_multi:
            renderer.check_multi_format()
        with open_output(args.output_file) as sink:
            renderer.render(outcome, sink)


def cmd_config(args):
    """Manage configuration."""
    config = get_config()

    if args.action == "show":
        values = config.to_dict()
        if args.key:
            if args.key not in values:
                raise UsageError(f"Unknown config key: {args.key}")
            print(values[args.key])
            return

        table = Table(title="depquery configuration")
        table.add_column("Key", style="cyan")
        table.add_column("Value", style="white")
        for key, value in values.items():
            table.add_row(key, str(value))
        console.print(table)

    elif args.action == "init":
        config_path = Path(args.key) if args.key else user_config_path()
        if config_path.exists() and not args.force:
            raise UsageError(f"{config_path} already exists (use --force to overwrite)")
        config.save(config_path)
        console.print(f"[green]Created config at {escape(str(config_path))}[/green]")


def _add_query_arguments(parser: argparse.ArgumentParser):
    parser.add_argument("arguments", nargs="*", metavar="QUERY",
                        help="Query expression, optionally followed by inputs for %%s or %%Ss")
    parser.add_argument("--output-format",
                        choices=[f.value for f in OutputFormat],
                        help="Output format (default: list)")

    attributes = parser.add_mutually_exclusive_group()
    attributes.add_argument("--output-attribute", action="append", metavar="PATTERN",
                            help="Attribute to output, literal name or regex (repeatable)")
    attributes.add_argument("--output-attributes", nargs="+", metavar="PATTERN",
                            help="Deprecated: use --output-attribute")

    parser.add_argument("--sort-output", "--output", dest="sort_output",
                        choices=[s.value for s in SortOutputFormat],
                        help="Sort order of the results (default: label)")
    parser.add_argument("--output-file", help="Write results to this file instead of stdout")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="depquery",
        description="depquery - query a build target dependency graph",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  depquery query 'deps(//app:main)'
  depquery query 'deps(%s)' //app:main //tools:gen --output-format json
  depquery query 'rdeps(//..., %Ss)' //lib:a //lib:b
  depquery query '//...' --output-attribute 'vis.*'
  depquery cquery 'deps(//app:main)' --sort-output maxrank
  depquery cquery 'deps(//app:main)' --output-format dot --output-file graph.dot
  depquery config show
"""
    )
    parser.add_argument("--graph", help="Target graph file (YAML)")
    parser.add_argument("--config", help="Config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    query_parser = subparsers.add_parser("query", help="Query the target graph")
    _add_query_arguments(query_parser)
    query_parser.set_defaults(func=cmd_query)

    cquery_parser = subparsers.add_parser(
        "cquery",
        help="Query the configured target universe",
        description="Like query, but scoped to the target universe. Results from different "
                    "configurations of one target are shown once, without the configuration.",
    )
    _add_query_arguments(cquery_parser)
    cquery_parser.add_argument("--target-universe", metavar="TARGETS",
                               help="Comma separated root patterns of the target universe")
    cquery_parser.set_defaults(func=cmd_query, target_universe=None)

    config_parser = subparsers.add_parser("config", help="Manage configuration")
    config_parser.add_argument("action", choices=["show", "init"], help="Config action")
    config_parser.add_argument("key", nargs="?", help="Config key (show) or file path (init)")
    config_parser.add_argument("--force", action="store_true", help="Overwrite an existing file")
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv=None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = init_config(
            config_file=Path(args.config) if args.config else None,
            graph_file=args.graph,
        )
    except (OSError, ValueError) as e:
        err_console.print(f"[red]Error: could not load configuration: {escape(str(e))}[/red]")
        sys.exit(1)

    level = logging.DEBUG if args.verbose else getattr(logging, str(config.log_level).upper(), logging.WARNING)
    logging.basicConfig(level=level, format='%(levelname)s: %(message)s')

    try:
        args.func(args)
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except UsageError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(2)
    except (DepQueryError, OSError) as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
