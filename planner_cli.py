#!/usr/bin/env python3
"""Command-line interface for checking saved planner graphs."""

import argparse
import logging
import sys

from diagram import render_graph
from flow import calculate_flows
from graph_io import graph_from_import, import_graph_from_json, validate_imported_graph
from graph_model import Edge

_LOGGER = logging.getLogger("satisplanner")


def format_flow_table(edges: list[Edge]) -> str:
    """Format one line per edge with its allocated flow.

    Precondition:
        edges come from calculate_flows

    Postcondition:
        returns newline-joined lines like
        "miner:out-0 -> smelter:in-0  30/min  50.0%  #808000"
        edges without flow data are marked "unresolved"

    Args:
        edges: edges with recomputed data

    Returns:
        table text (empty string for no edges)
    """
    lines = []
    for edge in edges:
        endpoints = f"{edge.source}:{edge.source_handle} -> {edge.target}:{edge.target_handle}"
        if edge.data is None:
            lines.append(f"{endpoints}  unresolved")
        else:
            lines.append(
                f"{endpoints}  {edge.data.flow_per_min:g}/min  "
                f"{edge.data.utilization_pct:.1f}%  {edge.data.color_hex}"
            )
    return "\n".join(lines)


def _read_graph(path: str):
    """Read and validate a graph file.

    Returns:
        (nodes, edges)

    Raises:
        ValueError: if the file is not a valid graph
        OSError: if the file cannot be read
    """
    with open(path, "r", encoding="utf-8") as f:
        graph = import_graph_from_json(f.read())
    return graph_from_import(graph)


def _check_graph(path: str) -> int:
    """Print the import validation report; exit code 0 if valid."""
    with open(path, "r", encoding="utf-8") as f:
        graph = import_graph_from_json(f.read())
    validation = validate_imported_graph(graph)
    for warning in validation.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    for error in validation.errors:
        print(f"Error: {error}", file=sys.stderr)
    if validation.is_valid:
        print(f"{path}: OK ({len(graph.nodes)} nodes, {len(graph.edges)} edges)")
        return 0
    return 1


def _write_output(text: str, output_file: str | None) -> None:
    """Write text to output_file, or stdout when none is given."""
    if output_file:
        with open(output_file, "w", encoding="utf-8") as f:
            f.write(text)
        print(f"Output written to {output_file}", file=sys.stderr)
    else:
        print(text)


def _create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Compute conveyor flows of a saved Satisfactory planner graph",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Per-edge flow table
  %(prog)s factory.json

  # Graphviz diagram with utilization colors
  %(prog)s factory.json --format dot -f factory.dot

  # Only check the file structure
  %(prog)s factory.json --check
        """,
    )

    parser.add_argument("graph", help="Graph JSON file exported by the planner")

    parser.add_argument(
        "--format",
        choices=["table", "dot"],
        default="table",
        help="Output as a flow table or graphviz source (default: table)",
    )

    parser.add_argument(
        "--output-file", "-f", help="Write output to file instead of stdout"
    )

    parser.add_argument(
        "--check", action="store_true", help="Only validate the graph file"
    )

    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI function.

    Precondition:
        argv is None (use sys.argv) or a list of arguments

    Postcondition:
        returns 0 on success, 1 on error
        errors are printed to stderr

    Returns:
        exit code (0=success, 1=error)
    """
    parser = _create_argument_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO, format="%(message)s"
    )

    try:
        if args.check:
            return _check_graph(args.graph)

        nodes, edges = _read_graph(args.graph)
        edges = calculate_flows(nodes, edges)
        _LOGGER.debug("Computed flows for %s edges", len(edges))

        if args.format == "dot":
            output = render_graph(nodes, edges).source
        else:
            output = format_flow_table(edges)
        _write_output(output, args.output_file)
        return 0

    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
