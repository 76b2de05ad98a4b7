"""Markdown-styled plain text rendering of runs and listings."""

import sys
from collections.abc import Iterable
from typing import TextIO

from mdmake.core.models import EventKind, RunEvent, Target, TreeNode


def format_name(name: str, is_file: bool) -> str:
    """File names are shown as code spans, phony names as plain text."""
    return f"`{name}`" if is_file else name


class MarkdownRenderer:
    """Prints engine events as a Markdown transcript.

    Used as the engine's `on_event` callback. With `quiet` only command
    output is written.
    """

    def __init__(self, stream: TextIO | None = None, quiet: bool = False) -> None:
        self.stream = stream or sys.stdout
        self.quiet = quiet

    def write(self, text: str = "") -> None:
        self.stream.write(text + "\n")
        self.stream.flush()

    def __call__(self, event: RunEvent) -> None:
        if event.kind is EventKind.RESULT and event.result is not None:
            output = event.result.stdout + event.result.stderr
            if output:
                self.stream.write(output if output.endswith("\n") else output + "\n")
            if not self.quiet:
                if not event.result.success:
                    self.write(f"[exit code {event.result.exit_code}]")
                self.write("```")
                self.write()
            self.stream.flush()
            return

        if self.quiet:
            return

        if event.kind is EventKind.TARGET:
            self.write(f"# {format_name(event.target, event.is_file)}")
            self.write()
        elif event.kind is EventKind.UP_TO_DATE:
            self.write("*Up to date*")
            self.write()
        elif event.kind is EventKind.COMMAND and event.command is not None:
            self.write("```text")
            for line in event.command.rstrip("\n").splitlines():
                self.write(f"$ {line}")


def format_targets(targets: Iterable[Target]) -> str:
    """Bulleted list of targets, wildcard targets marked."""
    lines = ["# Targets", ""]
    for target in targets:
        line = f"* {format_name(target.name, target.is_file)}"
        if target.is_wildcard:
            line += " (wildcard)"
        if target.description:
            line += f" - {target.description}"
        lines.append(line)
    return "\n".join(lines) + "\n"


def format_tree(nodes: Iterable[TreeNode]) -> str:
    """Nested bulleted list of a dependency tree."""
    lines: list[str] = []

    def walk(node: TreeNode, depth: int) -> None:
        suffix = " (cycle)" if node.cycle else ""
        lines.append(f"{'  ' * depth}* {format_name(node.name, node.is_file)}{suffix}")
        for child in node.children:
            walk(child, depth + 1)

    for node in nodes:
        walk(node, 0)
    return "\n".join(lines) + "\n" if lines else ""
