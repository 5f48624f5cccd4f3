"""CLI commands for fastpath.

Routes queries against a dry-run tool registry so patterns, thresholds and
models can be tried without a host application. Every tool simply echoes
its name and parameters.

Commands:
    fastpath route QUERY...  - Route a single query
    fastpath batch FILE      - Route every line of a file and print a report
    fastpath tools           - List routable tools
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import RouterConfig
from .core.intent import (
    ACTION_PATTERNS,
    QUERY_PATTERNS,
    IntentRouter,
    ParameterExtractor,
    PatternMatcher,
    RouteResult,
    Tool,
    create_router,
)

console = Console()
logger = logging.getLogger(__name__)

LOG_FILE_NAME = "fastpath.log"


def _setup_logging(log_dir: Path) -> None:
    """Configure rotating file logging.

    Uses INFO level by default; set FASTPATH_DEBUG=1 for DEBUG level.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = (log_dir / LOG_FILE_NAME).resolve()

    log_level = logging.DEBUG if os.environ.get("FASTPATH_DEBUG") else logging.INFO
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for existing in root_logger.handlers:
        if isinstance(existing, RotatingFileHandler) and Path(existing.baseFilename) == log_file:
            return

    # 5 MB per file, keep 3 backups
    handler = RotatingFileHandler(
        log_file,
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root_logger.addHandler(handler)


def _dry_run_handler(name: str):
    def handler(params: dict[str, Any]) -> str:
        return f"[dry-run] {name} {json.dumps(params, sort_keys=True)}"

    return handler


def dry_run_tools() -> list[Tool]:
    """Build an echo tool for every tool the router can resolve."""
    names = PatternMatcher().get_supported_tools()
    names.extend(n for n in ParameterExtractor().supported_intents if n not in names)
    return [Tool(name=name, handler=_dry_run_handler(name)) for name in names]


def load_config(args: argparse.Namespace) -> RouterConfig:
    """Load the router configuration, applying command-line overrides."""
    config = RouterConfig.load(Path(args.config_path).resolve())
    if args.model:
        config = config.model_copy(update={"model_path": Path(args.model).expanduser()})
    return config


def build_router(args: argparse.Namespace) -> IntentRouter:
    config = load_config(args)
    _setup_logging(config.log_dir)
    return create_router(tools=dry_run_tools(), config=config)


def _print_result(query: str, result: RouteResult) -> None:
    tier = result.tier.label if result.tier else "-"
    confidence = f"{result.confidence:.2f}" if result.confidence is not None else "-"

    if result.handled:
        console.print(f"[green]✓[/green] {escape(query)}")
        console.print(f"  Tier: {tier}  Tool: [cyan]{result.tool_name}[/cyan]  Confidence: {confidence}")
        console.print(f"  {escape(result.response or '')}")
        return

    console.print(f"[yellow]→ LLM[/yellow] {escape(query)}")
    console.print(f"  Tier: {tier}  Confidence: {confidence}")
    console.print(f"  [dim]{escape(result.reason or '')}[/dim]")
    if result.skill_id:
        console.print(f"  Skill: {result.skill_id}")


def route_query(args: argparse.Namespace) -> int:
    """Route one query.

    Args:
        args: Parsed arguments (query words, json flag)

    Returns:
        Exit code (0 if handled locally, 2 if escalated to the LLM)
    """
    query = " ".join(args.query).strip()
    if not query:
        console.print("[red]Error:[/red] Empty query")
        return 1

    router = build_router(args)

    async def _run() -> RouteResult:
        await router.initialize()
        return await router.route(query)

    result = asyncio.run(_run())

    if args.json:
        console.print_json(json.dumps(result.to_dict()))
    else:
        _print_result(query, result)

    return 0 if result.handled else 2


def route_batch(args: argparse.Namespace) -> int:
    """Route every non-empty line of a file and print the telemetry report.

    Args:
        args: Parsed arguments (file, json flag)

    Returns:
        Exit code (0 for success)
    """
    path = Path(args.file)
    if not path.exists():
        console.print(f"[red]Error:[/red] File not found: {path}")
        return 1

    queries = [line.strip() for line in path.read_text(encoding="utf-8").splitlines()]
    queries = [q for q in queries if q and not q.startswith("#")]

    router = build_router(args)

    async def _run() -> list[RouteResult]:
        await router.initialize()
        return [await router.route(q) for q in queries]

    results = asyncio.run(_run())

    if args.json:
        events = [event.to_dict() for event in router.telemetry.export()]
        console.print_json(json.dumps(events))
        return 0

    table = Table(title="Routing Results")
    table.add_column("Query", style="dim")
    table.add_column("Tier")
    table.add_column("Tool", style="cyan")
    table.add_column("Confidence", justify="right")

    for query, result in zip(queries, results):
        tier = result.tier.label if result.tier else "-"
        if not result.handled:
            tier = f"[yellow]{tier}[/yellow]"
        tool = result.tool_name or result.failed_tool_name or "-"
        confidence = f"{result.confidence:.2f}" if result.confidence is not None else "-"
        table.add_row(escape(query), tier, tool, confidence)

    console.print(table)
    console.print()
    console.print(router.telemetry.generate_report(), markup=False, highlight=False)

    return 0


def list_tools(args: argparse.Namespace) -> int:
    """List routable tools with their pattern counts.

    Args:
        args: Parsed arguments

    Returns:
        Exit code (0 for success)
    """
    extractor = ParameterExtractor()

    table = Table(title="Tools")
    table.add_column("Tool", style="cyan")
    table.add_column("Action Patterns", justify="right")
    table.add_column("Query Patterns", justify="right")
    table.add_column("Extraction")

    for tool in dry_run_tools():
        table.add_row(
            tool.name,
            str(len(ACTION_PATTERNS.get(tool.name, []))),
            str(len(QUERY_PATTERNS.get(tool.name, []))),
            "yes" if tool.name in extractor.supported_intents else "-",
        )

    console.print(table)
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="fastpath",
        description="fastpath: route commands locally before calling an LLM",
    )
    parser.add_argument(
        "--config",
        "-c",
        dest="config_path",
        default=".",
        help="Project directory holding .fastpath/config.yaml (default: current directory)",
    )
    parser.add_argument(
        "--model",
        "-m",
        help="Naive Bayes model artifact (overrides the configured model_path)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print machine-readable JSON",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # =========================================================================
    # route command
    # =========================================================================
    route_parser = subparsers.add_parser("route", help="Route a single query")
    route_parser.add_argument("query", nargs="+", help="Query text")
    route_parser.set_defaults(func=route_query)

    # =========================================================================
    # batch command
    # =========================================================================
    batch_parser = subparsers.add_parser("batch", help="Route every line of a file")
    batch_parser.add_argument("file", help="Text file with one query per line")
    batch_parser.set_defaults(func=route_batch)

    # =========================================================================
    # tools command
    # =========================================================================
    tools_parser = subparsers.add_parser("tools", help="List routable tools")
    tools_parser.set_defaults(func=list_tools)

    return parser


def run_cli(args: list[str] | None = None) -> int:
    """Run the CLI.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not hasattr(parsed, "func"):
        parser.print_help()
        return 0

    try:
        return parsed.func(parsed)
    except KeyboardInterrupt:
        console.print("\n[dim]Cancelled.[/dim]")
        return 130
    except Exception as e:
        logger.exception("CLI command failed")
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1


def main() -> None:
    sys.exit(run_cli())


__all__ = [
    "create_parser",
    "run_cli",
    "main",
    "route_query",
    "route_batch",
    "list_tools",
    "dry_run_tools",
]
