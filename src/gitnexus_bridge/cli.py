"""Command-line interface for gitnexus-bridge."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path
from typing import Any

from rich.console import Console

from gitnexus_bridge import __version__
from gitnexus_bridge.augment import Augmenter
from gitnexus_bridge.config import Config, ConfigError, load_config
from gitnexus_bridge.host import ToolEvent
from gitnexus_bridge.logging import setup_logging
from gitnexus_bridge.rpc.client import RESULT_LABEL
from gitnexus_bridge.tools import GraphTools

console = Console(stderr=True)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="gitnexus-bridge",
        description="Knowledge-graph lookups and tool-result augmentation via gitnexus",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Extra config file layered over the standard locations",
    )
    parser.add_argument(
        "--cwd",
        default=None,
        help="Working directory whose index is queried (default: current directory)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command")

    augment_parser = subparsers.add_parser("augment", help="One-shot graph lookup for a pattern")
    augment_parser.add_argument("pattern", nargs="+", help="Symbol, filename, or search term")

    subparsers.add_parser("list-repos", help="List indexed repositories")

    query_parser = subparsers.add_parser("query", help="Search execution flows")
    query_parser.add_argument("text", nargs="+", help="Concept or error to search for")
    query_parser.add_argument("--limit", type=int, help="Maximum results (1-100)")
    query_parser.add_argument("--goal", help="What you are trying to achieve")

    context_parser = subparsers.add_parser("context", help="Callers/callees of a symbol")
    context_parser.add_argument("name", help="Symbol name")
    context_parser.add_argument("--file", help="File that defines the symbol")

    impact_parser = subparsers.add_parser("impact", help="Blast radius of a change")
    impact_parser.add_argument("target", help="Symbol to analyze")
    impact_parser.add_argument(
        "--direction",
        choices=["upstream", "downstream"],
        default="upstream",
    )
    impact_parser.add_argument("--depth", type=int, help="Traversal depth (1-10)")
    impact_parser.add_argument("--include-tests", action="store_true")

    changes_parser = subparsers.add_parser("detect-changes", help="Map a diff to affected flows")
    changes_parser.add_argument(
        "diff_file",
        nargs="?",
        default="-",
        help="Diff file, or - to read stdin (default)",
    )

    extract_parser = subparsers.add_parser(
        "extract",
        help="Show the lookup patterns a tool call would produce (no backend)",
    )
    extract_parser.add_argument("--tool", required=True, help="Tool name (grep, find, bash, read, read_many)")
    extract_parser.add_argument("--input", default="{}", help="Tool input as JSON")
    extract_parser.add_argument(
        "--output",
        default=None,
        help="Tool result text (use - to read stdin)",
    )

    return parser


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.command is None:
        parser.print_help()
        return 1

    cwd = os.path.abspath(parsed.cwd or os.getcwd())
    try:
        config = load_config(cwd=cwd, config_file=parsed.config)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 2

    if parsed.verbose:
        config.logging = replace(config.logging, verbose=min(4, 1 + parsed.verbose))
    setup_logging(config.logging)

    if parsed.command == "extract":
        return _run_extract(config, parsed)

    return asyncio.run(_run_backend_command(config, parsed, cwd))


def _run_extract(config: Config, parsed: argparse.Namespace) -> int:
    try:
        tool_input = json.loads(parsed.input)
    except json.JSONDecodeError as e:
        console.print(f"[red]Error: --input is not valid JSON: {e}[/red]")
        return 2
    if not isinstance(tool_input, dict):
        console.print("[red]Error: --input must be a JSON object[/red]")
        return 2

    output = parsed.output
    if output == "-":
        output = sys.stdin.read()
    content = [{"type": "text", "text": output}] if output else []
    event = ToolEvent.create(parsed.tool, tool_input, content)

    augmenter = Augmenter(config)
    if event.tool_name == "read_many":
        patterns = [p for _, p in augmenter.extractor.extract_batch(event.input, event.content)]
    else:
        patterns = augmenter.extractor.candidates(event, config.augment.secondary_limit)

    if not patterns:
        console.print("[dim]No lookup patterns.[/dim]")
        return 1
    for pattern in patterns:
        print(pattern)
    return 0


async def _run_backend_command(config: Config, parsed: argparse.Namespace, cwd: str) -> int:
    try:
        call = None if parsed.command == "augment" else _tool_call(parsed)
    except OSError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 2

    augmenter = Augmenter(config)
    augmenter.start_session(cwd)
    tools = GraphTools(augmenter.rpc, augmenter.index)

    try:
        if call is None:
            text = await augmenter.lookup(" ".join(parsed.pattern), cwd)
        else:
            text = await tools.call(*call, cwd)
    finally:
        await augmenter.rpc.close()

    if text.startswith(RESULT_LABEL):
        print(text)
        return 0
    console.print(f"[yellow]{text}[/yellow]")
    return 1


def _tool_call(parsed: argparse.Namespace) -> tuple[str, dict[str, Any]]:
    """Map a parsed subcommand to (tool name, raw arguments)."""
    if parsed.command == "list-repos":
        return "gitnexus_list_repos", {}
    if parsed.command == "query":
        return "gitnexus_query", {
            "query": " ".join(parsed.text),
            "limit": parsed.limit,
            "goal": parsed.goal,
        }
    if parsed.command == "context":
        return "gitnexus_context", {"name": parsed.name, "file": parsed.file}
    if parsed.command == "impact":
        return "gitnexus_impact", {
            "target": parsed.target,
            "direction": parsed.direction,
            "depth": parsed.depth,
            "include_tests": parsed.include_tests or None,
        }
    if parsed.command == "detect-changes":
        if parsed.diff_file == "-":
            diff = sys.stdin.read()
        else:
            diff = Path(parsed.diff_file).read_text(encoding="utf-8", errors="replace")
        return "gitnexus_detect_changes", {"diff": diff}
    raise ValueError(f"Unknown command: {parsed.command}")
