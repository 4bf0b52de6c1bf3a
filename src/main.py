# src/main.py — v1
"""CLI entry point — types, run commands.

Usage:
    agentengine types
    agentengine run <type> '<json input>' [options]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from agentengine.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    _setup_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="agentengine",
        description=f"agentengine v{__version__} — Agent execution runtime",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- types ---
    p_types = subparsers.add_parser("types", help="List built-in agent types")
    p_types.set_defaults(func=_cmd_types)

    # --- run ---
    p_run = subparsers.add_parser("run", help="Run one execution of an agent")
    p_run.add_argument("agent_type", help="Agent type, e.g. chat or task")
    p_run.add_argument("input", help="JSON input passed to the agent")
    p_run.add_argument(
        "--retries", type=int, default=None,
        help="Max retries (default: from settings)",
    )
    p_run.add_argument(
        "--backoff-ms", type=int, default=None,
        help="Backoff base in ms (default: from settings)",
    )
    p_run.add_argument(
        "--timeout-ms", type=int, default=None,
        help="Per-attempt execution deadline in ms",
    )
    p_run.add_argument(
        "--setting", action="append", default=[], metavar="KEY=VALUE",
        help="Agent setting override, may be repeated",
    )
    p_run.add_argument(
        "--cache", action="store_true",
        help="Enable the response cache plugin",
    )
    p_run.set_defaults(func=_cmd_run)

    return parser


async def _cmd_types(args: argparse.Namespace) -> int:
    """Print the built-in agent types."""
    from agentengine.config.agents import BUILTIN_AGENT_TYPES

    for type_name, class_path in BUILTIN_AGENT_TYPES.items():
        print(f"{type_name:10s} {class_path}")
    return 0


async def _cmd_run(args: argparse.Namespace) -> int:
    """Create an engine, run one dispatch, print response and stats."""
    from agentengine.config.settings import Settings
    from agentengine.core.engine import AgentEngine
    from agentengine.core.models import AgentConfig, RetryPolicy

    try:
        input_data = json.loads(args.input)
    except json.JSONDecodeError as exc:
        logger.error("Input is not valid JSON: %s", exc)
        return 1

    settings = Settings()
    engine = AgentEngine(settings=settings)
    engine.load_agent_types()
    if args.agent_type not in engine.available_types:
        logger.error("Unknown agent type: %s", args.agent_type)
        return 1

    retry_policy = None
    if args.retries is not None or args.backoff_ms is not None:
        retry_policy = RetryPolicy(
            max_retries=settings.default_max_retries if args.retries is None else args.retries,
            backoff_ms=settings.default_backoff_ms if args.backoff_ms is None else args.backoff_ms,
        )
    config = AgentConfig(
        name=f"cli-{args.agent_type}",
        settings=_parse_settings(args.setting),
        max_execution_time_ms=args.timeout_ms,
        retry_policy=retry_policy,
    )

    if args.cache or settings.cache_enabled:
        await engine.enable_cache()

    try:
        await engine.create_agent("cli", args.agent_type, config)
        response = await engine.execute_agent("cli", input_data)
        stats = engine.get_stats()
        info = engine.get_agent_info("cli")
    finally:
        await engine.shutdown()

    print(response.model_dump_json(indent=2))
    print(f"\nAttempts:     {info.metrics.executions_count if info else 0}")
    print(f"Success rate: {info.metrics.success_rate if info else 0:.1f}%")
    print(f"Executions:   {stats.total_executions}")
    return 0 if response.success else 2


def _parse_settings(pairs: list[str]) -> dict[str, object]:
    """Parse KEY=VALUE pairs; values are JSON-decoded when possible."""
    settings: dict[str, object] = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid setting {pair!r}, expected KEY=VALUE")
        try:
            settings[key] = json.loads(raw)
        except json.JSONDecodeError:
            settings[key] = raw
    return settings


def _setup_logging(verbose: bool) -> None:
    """Configure text logging on stderr for CLI usage."""
    from agentengine.logging.logger import setup_logging

    setup_logging(level="DEBUG" if verbose else "WARNING", log_format="text")


if __name__ == "__main__":
    sys.exit(main())
