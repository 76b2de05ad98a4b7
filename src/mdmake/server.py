"""MCP server that exposes Makefile.md targets as tools."""

import asyncio
import io
import logging
import re
import sys
import uuid
from collections.abc import Iterable
from pathlib import Path

from mcp.server import Server
from mcp.types import TextContent, Tool

from mdmake.core.engine import BuildEngine
from mdmake.core.executor import ShellExecutor, SubprocessShellExecutor
from mdmake.core.models import Graph, RunOptions
from mdmake.core.parser import MarkdownParser, RegexMarkdownParser
from mdmake.exceptions import ExecutionError, MdMakeError, TargetNotFoundError
from mdmake.render import MarkdownRenderer, format_name

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300

# MCP tool names are limited to letters, digits, `_` and `-`
TOOL_NAME_PATTERN = re.compile(r"[^A-Za-z0-9_-]")
MAX_TOOL_NAME = 64


def tool_name(target: str) -> str:
    """Tool name for a target: `build/app.o` -> `build_app_o`."""
    return TOOL_NAME_PATTERN.sub("_", target)[:MAX_TOOL_NAME] or "_"


def setup_logging(level: str = "INFO") -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


class MdMakeMCPServer:
    """MCP server that exposes Makefile.md targets as tools."""

    def __init__(
        self,
        config_paths: list[Path],
        parser: MarkdownParser | None = None,
        executor: ShellExecutor | None = None,
        allowed_targets: list[str] | None = None,
        max_output_chars: int = 0,
    ):
        self.config_paths = config_paths
        self.parser = parser or RegexMarkdownParser()
        self.executor = executor or SubprocessShellExecutor()
        self.allowed_targets = set(allowed_targets) if allowed_targets else None
        self.max_output_chars = max_output_chars
        self.graph: Graph | None = None
        self.tool_targets: dict[str, str] = {}
        self.server = Server("mdmake")

        # Register handlers
        @self.server.list_tools()
        async def handle_list_tools() -> list[Tool]:
            return await self._handle_list_tools()

        @self.server.call_tool()
        async def handle_call_tool(name: str, arguments: dict) -> list[TextContent]:
            return await self._handle_call_tool(name, arguments)

    async def initialize(self) -> None:
        """Initialize server by parsing the configuration documents."""
        logger.info(f"Parsing configuration: {', '.join(str(p) for p in self.config_paths)}")
        self.graph = self.parser.parse_files(self.config_paths)
        logger.info(f"Found {len(self.graph)} targets")

        self.tool_targets = self._tool_targets(t.name for t in self.graph if not t.is_wildcard)
        exposed = set(self.tool_targets.values())
        if not exposed:
            logger.warning(f"No targets found in {', '.join(str(p) for p in self.config_paths)}")

        if self.allowed_targets:
            logger.info(f"Allowed targets filter: {len(self.allowed_targets)} targets")

            # Check that all allowed targets exist in the configuration
            missing_targets = self.allowed_targets - exposed
            if missing_targets:
                missing_list = ", ".join(sorted(missing_targets))
                raise ValueError(
                    f"Allowed targets not found in configuration: {missing_list}. "
                    f"Available targets: {', '.join(sorted(exposed))}"
                )

    @staticmethod
    def _tool_targets(names: Iterable[str]) -> dict[str, str]:
        """Map unique tool names to target names, numbering clashes (`a_b`, `a_b_2`)."""
        tools: dict[str, str] = {}
        for name in names:
            base = tool_name(name)
            candidate = base
            count = 1
            while candidate in tools:
                count += 1
                suffix = f"_{count}"
                candidate = base[: MAX_TOOL_NAME - len(suffix)] + suffix
            if candidate != name:
                logger.debug(f"Target '{name}' exposed as tool '{candidate}'")
            tools[candidate] = name
        return tools

    def _is_exposed(self, name: str) -> bool:
        return self.allowed_targets is None or name in self.allowed_targets

    async def _handle_list_tools(self) -> list[Tool]:
        """Return all buildable targets as MCP tools."""
        if not self.graph:
            return []

        tools = []
        # Wildcard targets only supply recipes and have no tool name
        for name, target_name in self.tool_targets.items():
            target = self.graph.targets[target_name]
            if not self._is_exposed(target.name):
                logger.debug(f"Skipping non-allowed target: {target.name}")
                continue

            description = target.description or f"Process {format_name(target.name, target.is_file)}"
            if target.is_file:
                description = f"[file] {description}"
            if target.dependencies:
                deps = ", ".join(d.name for d in target.dependencies)
                description += f" (depends on: {deps})"

            tool = Tool(
                name=name,
                description=description,
                inputSchema={
                    "type": "object",
                    "properties": {
                        "force": {
                            "type": "boolean",
                            "description": "Rebuild file targets even when up to date",
                            "default": False,
                        },
                        "dry_run": {
                            "type": "boolean",
                            "description": "Show what would run without running it",
                            "default": False,
                        },
                        "timeout": {
                            "type": "integer",
                            "description": f"Timeout in seconds per command (default: {DEFAULT_TIMEOUT})",
                            "default": DEFAULT_TIMEOUT,
                            "minimum": 1,
                        },
                    },
                },
            )
            tools.append(tool)

        logger.info(f"Exposing {len(tools)} targets as MCP tools")
        return tools

    async def _handle_call_tool(self, name: str, arguments: dict) -> list[TextContent]:
        """Run a target and return the transcript."""
        try:
            if name not in self.tool_targets:
                available = ", ".join(sorted(self.tool_targets)) or "none"
                raise TargetNotFoundError(name, f"Target '{name}' not found. Available targets: {available}")
            name = self.tool_targets[name]

            if not self._is_exposed(name):
                allowed = ", ".join(sorted(self.allowed_targets or []))
                raise ValueError(f"Target '{name}' is not in the allowlist. Allowed targets: {allowed}")
        except (TargetNotFoundError, ValueError) as e:
            # User-facing errors - return clean message
            logger.warning(f"Tool call rejected: {e}")
            return [TextContent(type="text", text=f"Error: {str(e)}")]

        options = RunOptions(
            force=bool(arguments.get("force", False)),
            dry_run=bool(arguments.get("dry_run", False)),
            timeout=arguments.get("timeout", DEFAULT_TIMEOUT),
        )
        logger.info(f"Running target: {name} (timeout: {options.timeout}s)")

        transcript = io.StringIO()
        engine = BuildEngine(self.graph, executor=self.executor, on_event=MarkdownRenderer(transcript))
        progress_token = str(uuid.uuid4())
        await self._notify_progress(progress_token, 0)

        try:
            summary = await engine.run([name], options)
        except asyncio.CancelledError:
            logger.info(f"Target '{name}' was cancelled")
            await self._notify_progress(progress_token, 1)
            return [TextContent(type="text", text=f"Target '{name}' was cancelled before completion.")]
        except ExecutionError as e:
            logger.error(f"Execution failed for target '{name}': {e}")
            await self._notify_progress(progress_token, 1)
            return [TextContent(type="text", text=self._truncate(transcript.getvalue()) + f"\nError: {e}\n")]
        except MdMakeError as e:
            logger.warning(f"Configuration error for target '{name}': {e}")
            await self._notify_progress(progress_token, 1)
            return [TextContent(type="text", text=f"Error: {e}")]

        await self._notify_progress(progress_token, 1)

        output = f"Target: {name}\n"
        output += f"Executed: {', '.join(summary.executed) or 'nothing'}\n"
        output += f"Up to date: {', '.join(summary.up_to_date) or 'nothing'}\n\n"
        output += self._truncate(transcript.getvalue())
        return [TextContent(type="text", text=output)]

    def _truncate(self, text: str) -> str:
        """Keep the transcript under max_output_chars to avoid token overload."""
        if self.max_output_chars <= 0 or len(text) <= self.max_output_chars:
            return text
        omitted = len(text) - self.max_output_chars
        return text[: self.max_output_chars] + f"\n\n... (truncated, {omitted} chars omitted)\n"

    async def _notify_progress(self, progress_token: str, progress: int) -> None:
        try:
            await self.server.request_context.session.send_progress_notification(
                progress_token=progress_token,
                progress=progress,
                total=1,
            )
        except Exception:
            # If progress notifications fail, just log and continue
            logger.debug("Could not send progress notification (client may not support it)")

    async def run(self) -> None:
        """Run the MCP server with stdio transport."""
        from mcp.server.stdio import stdio_server

        await self.initialize()

        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options(),
            )
