#!/usr/bin/env python3
"""Entry point for mdmake."""

import argparse
import asyncio
import os
import sys
from pathlib import Path

from mdmake.core.engine import BuildEngine
from mdmake.core.listing import dependency_tree, list_targets
from mdmake.core.models import RunOptions
from mdmake.core.parser import DEFAULT_CONFIG, RegexMarkdownParser
from mdmake.exceptions import (
    ConfigNotFoundError,
    ConfigParseError,
    ExecutionError,
    MdMakeError,
    MissingFileError,
    TargetNotFoundError,
)
from mdmake.render import MarkdownRenderer, format_targets, format_tree
from mdmake.server import MdMakeMCPServer, setup_logging

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]

EXIT_CODES = [
    (ConfigNotFoundError, 1),
    (ConfigParseError, 2),
    (MissingFileError, 3),
    (ExecutionError, 4),
    (TargetNotFoundError, 5),
    (MdMakeError, 6),
]


def exit_code_for(error: MdMakeError) -> int:
    """Process exit code for a fatal error."""
    return next(code for cls, code in EXIT_CODES if isinstance(error, cls))


def config_paths(args) -> list[Path]:
    """Documents from -f, else MDMAKE_CONFIG, else ./Makefile.md."""
    if args.config:
        return [Path(p) for p in args.config]
    env_config = os.getenv("MDMAKE_CONFIG")
    if env_config:
        return [Path(p) for p in env_config.split(os.pathsep) if p.strip()]
    return [Path(DEFAULT_CONFIG)]


def log_level(args, default: str) -> str:
    """Log level from --log-level, else MDMAKE_LOG_LEVEL, else `default`."""
    if args.log_level:
        return args.log_level
    if getattr(args, "verbose", 0) >= 2:
        return "DEBUG"
    return os.getenv("MDMAKE_LOG_LEVEL", default)


def cmd_build(args):
    """Process targets, or list them."""
    setup_logging(log_level(args, "WARNING"))

    if args.directory:
        os.chdir(args.directory)

    paths = config_paths(args)
    missing = [p for p in paths if not p.exists()]
    if missing:
        print(f"ERROR: Please create a `{missing[0]}`!", file=sys.stderr)
        sys.exit(1)

    try:
        graph = RegexMarkdownParser().parse_files(paths)

        if args.list_targets:
            print(format_targets(list_targets(graph)), end="")
            return

        if args.tree:
            print(format_tree(dependency_tree(graph, args.targets)), end="")
            return

        options = RunOptions(
            force=args.force,
            dry_run=args.dry_run,
            script_mode=args.script_mode,
            verbosity=args.verbose,
            quiet=args.quiet,
            timeout=args.timeout,
        )
        engine = BuildEngine(graph, on_event=MarkdownRenderer(quiet=args.quiet))
        asyncio.run(engine.run(args.targets, options))
    except MdMakeError as e:
        print(f"ERROR: {e}!", file=sys.stderr)
        sys.exit(exit_code_for(e))


def cmd_serve(args):
    """Run the MCP server."""
    # Read configuration from environment variables (with CLI args as overrides)
    setup_logging(log_level(args, "INFO"))
    paths = config_paths(args)

    # Allowed targets from env (comma-separated) or args
    allowed_targets = args.allowed_targets
    if not allowed_targets and os.getenv("MDMAKE_ALLOWED_TARGETS"):
        allowed_targets = [t.strip() for t in os.getenv("MDMAKE_ALLOWED_TARGETS", "").split(",") if t.strip()]

    # Validate configuration exists
    missing = [p for p in paths if not p.exists()]
    if missing:
        print(f"Error: Configuration not found: {missing[0]}", file=sys.stderr)
        sys.exit(1)

    server = MdMakeMCPServer(
        config_paths=paths,
        allowed_targets=allowed_targets,
        max_output_chars=args.max_output_chars,
    )

    asyncio.run(server.run())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mdmake",
        description="Make-like build tool configured with Markdown",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Process the first target in ./Makefile.md
  mdmake

  # Process targets in order, forcing file targets
  mdmake -B update check build

  # Show what would run
  mdmake -n build

  # Run the MCP server (targets become tools)
  mdmake serve -f Makefile.md
        """,
    )
    parser.add_argument("-l", dest="list_targets", action="store_true", help="List available targets")
    parser.add_argument("-t", dest="tree", action="store_true", help="Print the dependency tree")
    parser.add_argument("-B", dest="force", action="store_true", help="Force processing")
    parser.add_argument("-n", dest="dry_run", action="store_true", help="Dry run")
    parser.add_argument("-s", dest="script_mode", action="store_true", help="Run recipes as scripts")
    parser.add_argument("-v", dest="verbose", action="count", default=0, help="Verbose (repeat for more)")
    parser.add_argument("-q", dest="quiet", action="store_true", help="Quiet")
    parser.add_argument("-C", dest="directory", type=Path, metavar="PATH", help="Change directory")
    parser.add_argument(
        "-f",
        dest="config",
        action="append",
        metavar="PATH",
        help=f"Configuration file, repeatable (default: ./{DEFAULT_CONFIG})",
    )
    parser.add_argument("--log-level", choices=LOG_LEVELS, help="Logging level (default: WARNING)")
    parser.add_argument("--timeout", type=float, help="Timeout in seconds per command")
    parser.add_argument("targets", nargs="*", metavar="NAME", help="Target(s)")
    parser.set_defaults(func=cmd_build)
    return parser


def build_serve_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mdmake serve", description="Run MCP server exposing targets as tools")
    parser.add_argument(
        "-f",
        dest="config",
        action="append",
        metavar="PATH",
        help=f"Configuration file, repeatable (default: ./{DEFAULT_CONFIG})",
    )
    parser.add_argument("--log-level", choices=LOG_LEVELS, help="Logging level (default: INFO)")
    parser.add_argument(
        "--allowed-targets",
        nargs="+",
        help="Allowlist of allowed targets (default: all targets)",
    )
    parser.add_argument(
        "--max-output-chars",
        type=int,
        default=0,
        help="Truncate tool output to this many characters (default: no limit)",
    )
    parser.set_defaults(func=cmd_serve)
    return parser


def main(argv: list[str] | None = None):
    """Main entry point."""
    argv = sys.argv[1:] if argv is None else argv

    # `serve` is the only subcommand; anything else is a target name
    if argv and argv[0] == "serve":
        args = build_serve_parser().parse_args(argv[1:])
    else:
        args = build_parser().parse_args(argv)

    args.func(args)


if __name__ == "__main__":
    main()
