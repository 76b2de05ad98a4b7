"""Markdown configuration parsing."""

import logging
import os
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path

from mdmake.core.models import Dependency, Graph, Recipe, ShellMode, Target, TargetKind, wildcard_extension
from mdmake.exceptions import ConfigNotFoundError, ConfigParseError, MdMakeError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = "Makefile.md"


class MarkdownParser(ABC):
    """Abstract base class for configuration parsing."""

    @abstractmethod
    def parse(self, config_path: Path, root: Path | None = None) -> Graph:
        """Parse a configuration document and return its graph."""
        pass

    @abstractmethod
    def parse_string(self, content: str, path: Path | None = None, root: Path | None = None) -> Graph:
        """Parse a configuration document from string content."""
        pass

    def parse_files(self, config_paths: Iterable[Path]) -> Graph:
        """Parse several documents into one graph rooted at the first one's directory."""
        paths = list(config_paths)
        if not paths:
            raise ConfigNotFoundError(DEFAULT_CONFIG)

        root = paths[0].parent
        graph = Graph(root=root)
        for path in paths:
            graph.merge(self.parse(path, root=root))

        logger.info(f"Merged {len(paths)} document(s): {len(graph)} targets")
        return graph


class RegexMarkdownParser(MarkdownParser):
    """Parse the Markdown subset that defines targets, line by line.

    Level-1 ATX headings open targets (a code span heading is a file),
    bullet items under a heading are dependencies (code spans are files),
    the first fenced code block is the recipe and the first paragraph is
    the description. Everything else is prose and is skipped.
    """

    # Pattern for target headings: # name  or  # `path`
    HEADING_PATTERN = re.compile(r"^ {0,3}#[ \t]+(.+?)(?:[ \t]+#+)?[ \t]*$")

    # Pattern for other headings, which end the current target's description
    OTHER_HEADING_PATTERN = re.compile(r"^ {0,3}#{2,6}(?:[ \t]|$)")

    # Pattern for a heading that is a single code span
    CODE_HEADING_PATTERN = re.compile(r"^`+\s*([^`]+?)\s*`+$")

    # Pattern for bullet list items
    LIST_ITEM_PATTERN = re.compile(r"^\s*[*+-][ \t]+(.*)$")

    # Pattern for inline code spans
    CODE_SPAN_PATTERN = re.compile(r"(`+)\s*(.+?)\s*\1")

    # Pattern for opening fences: ``` info  or  ~~~ info
    FENCE_PATTERN = re.compile(r"^( {0,3})(`{3,}|~{3,})[ \t]*([^`]*?)[ \t]*$")

    # Info strings that mean "run each line with the baseline shell"
    DEFAULT_INFO = {"", "text"}

    # Info string that means "run the body with the strict shell"
    SCRIPT_INFO = "script"

    def parse(self, config_path: Path, root: Path | None = None) -> Graph:
        """Parse configuration from file."""
        # Validate file exists
        if not config_path.exists():
            raise ConfigNotFoundError(str(config_path))

        # Validate it's a file, not a directory
        if not config_path.is_file():
            raise ConfigParseError(str(config_path), f"Path is not a file: {config_path}")

        # Validate file is readable
        if not os.access(config_path, os.R_OK):
            raise ConfigParseError(str(config_path), f"File is not readable: {config_path}")

        try:
            content = config_path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise ConfigParseError(str(config_path), f"File is not valid UTF-8: {e}")
        except PermissionError as e:
            raise ConfigParseError(str(config_path), f"Permission denied reading file: {e}")
        except OSError as e:
            logger.exception("Failed to read configuration")
            raise ConfigParseError(str(config_path), f"Failed to read file: {e}")

        try:
            return self.parse_string(content, config_path, root)
        except MdMakeError:
            raise
        except Exception as e:
            logger.exception("Failed to parse configuration")
            raise ConfigParseError(str(config_path), str(e))

    def parse_string(self, content: str, path: Path | None = None, root: Path | None = None) -> Graph:
        """Parse configuration from string content."""
        path = path or Path(DEFAULT_CONFIG)
        graph = Graph(root=root if root is not None else path.parent, sources=[path])
        dirname = graph.dirname

        current: Target | None = None
        fence: str | None = None
        fence_indent = 0
        recipe_lines: list[str] | None = None
        description: list[str] = []
        description_done = False

        def finish() -> None:
            if current is None:
                return
            current.description = " ".join(description)
            graph.add(current)

        for lineno, line in enumerate(content.splitlines(), start=1):
            # Inside a fenced block: collect recipe lines until the closing fence
            if fence is not None:
                stripped = line.strip()
                if set(stripped) == {fence[0]} and len(stripped) >= len(fence):
                    fence = None
                    recipe_lines = None
                    continue
                if recipe_lines is not None:
                    recipe_lines.append(self._dedent(line, fence_indent))
                continue

            fence_match = self.FENCE_PATTERN.match(line)
            if fence_match:
                fence_indent = len(fence_match.group(1))
                fence = fence_match.group(2)
                description_done = True
                if current is not None and current.recipe is None:
                    current.recipe = self._recipe(fence_match.group(3))
                    recipe_lines = current.recipe.lines
                else:
                    if current is not None:
                        logger.debug(f"{path}:{lineno}: ignoring extra code block in '{current.name}'")
                    recipe_lines = None
                continue

            heading_match = self.HEADING_PATTERN.match(line)
            if heading_match:
                finish()
                current = self._target(heading_match.group(1), dirname, str(path))
                description = []
                description_done = False
                continue

            if self.OTHER_HEADING_PATTERN.match(line):
                description_done = True
                continue

            if current is None:
                continue

            item_match = self.LIST_ITEM_PATTERN.match(line)
            if item_match:
                description_done = True
                current.dependencies.extend(self._dependencies(item_match.group(1), dirname))
                continue

            if not line.strip():
                if description:
                    description_done = True
                continue

            if not description_done:
                description.append(line.strip())

        if fence is not None:
            raise ConfigParseError(str(path), "Unterminated code block")
        finish()

        logger.info(f"Parsed {path}: {len(graph)} targets ({len(graph.wildcards())} wildcard)")
        if not len(graph):
            logger.warning(f"No targets found in {path}")

        return graph

    def _target(self, heading: str, dirname: str, source: str) -> Target:
        heading = heading.replace("{dirname}", dirname)
        code_match = self.CODE_HEADING_PATTERN.match(heading)
        if not code_match:
            return Target(name=heading.strip(), kind=TargetKind.PHONY, source=source)

        name = os.path.normpath(code_match.group(1))
        kind = TargetKind.WILDCARD if wildcard_extension(name) else TargetKind.FILE
        return Target(name=name, kind=kind, source=source)

    def _dependencies(self, item: str, dirname: str) -> list[Dependency]:
        item = item.replace("{dirname}", dirname)
        spans = [m.group(2) for m in self.CODE_SPAN_PATTERN.finditer(item)]
        if spans:
            return [Dependency.file(span) for span in spans]
        name = item.strip()
        return [Dependency.phony(name)] if name else []

    def _recipe(self, info: str) -> Recipe:
        info = info.strip()
        if info in self.DEFAULT_INFO:
            return Recipe(shell_mode=ShellMode.DEFAULT)
        if info == self.SCRIPT_INFO:
            return Recipe(shell_mode=ShellMode.SCRIPT)
        return Recipe(shell_mode=ShellMode.CUSTOM, shell_command=info)

    @staticmethod
    def _dedent(line: str, indent: int) -> str:
        removable = len(line) - len(line.lstrip(" "))
        return line[min(indent, removable) :]
