"""Data models for the target graph and its execution."""

import os
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from mdmake.exceptions import DuplicateTargetError

# `*.ext`, where ext may itself contain dots (`*.tar.gz`)
WILDCARD_PATTERN = re.compile(r"^\*\.([^*?\[\]/\\]+)$")


class TargetKind(Enum):
    """What backs a target."""

    PHONY = "phony"
    FILE = "file"
    WILDCARD = "wildcard"


class DependencyKind(Enum):
    """How a dependency is referenced."""

    PHONY = "phony"
    FILE = "file"


class ShellMode(Enum):
    """How a recipe is dispatched to a shell."""

    DEFAULT = "default"
    SCRIPT = "script"
    CUSTOM = "custom"


def is_comment(line: str) -> bool:
    """True for lines whose first non-whitespace character is `#`."""
    return line.lstrip().startswith("#")


def wildcard_extension(name: str) -> str | None:
    """Return `ext` for a `*.ext` name, else None."""
    match = WILDCARD_PATTERN.match(name)
    return match.group(1) if match else None


@dataclass
class Recipe:
    """Command text of a target plus its shell dispatch mode."""

    lines: list[str] = field(default_factory=list)
    shell_mode: ShellMode = ShellMode.DEFAULT
    shell_command: str | None = None

    def commands(self) -> list[str]:
        """Lines to run one by one: continuations joined, blanks and comments dropped."""
        joined = "\n".join(self.lines).replace("\\\n", "")
        return [line for line in joined.splitlines() if line.strip() and not is_comment(line)]

    def script(self) -> str:
        """Whole body as one script, without comment or blank lines."""
        kept = [line for line in self.lines if line.strip() and not is_comment(line)]
        return "\n".join(kept) + "\n" if kept else ""

    def is_empty(self) -> bool:
        return not any(line.strip() and not is_comment(line) for line in self.lines)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "lines": self.lines,
            "shell_mode": self.shell_mode.value,
            "shell_command": self.shell_command,
        }


@dataclass(frozen=True)
class Dependency:
    """Reference from a target to one of its prerequisites."""

    name: str
    kind: DependencyKind = DependencyKind.PHONY

    @property
    def is_file(self) -> bool:
        return self.kind is DependencyKind.FILE

    @property
    def wildcard_extension(self) -> str | None:
        return wildcard_extension(self.name) if self.is_file else None

    @classmethod
    def file(cls, path: str) -> "Dependency":
        return cls(name=path, kind=DependencyKind.FILE)

    @classmethod
    def phony(cls, name: str) -> "Dependency":
        return cls(name=name, kind=DependencyKind.PHONY)


@dataclass
class Target:
    """A named unit of work."""

    name: str
    kind: TargetKind = TargetKind.PHONY
    recipe: Recipe | None = None
    dependencies: list[Dependency] = field(default_factory=list)
    description: str = ""
    source: str | None = None

    @property
    def is_file(self) -> bool:
        """File and wildcard targets are both backed by paths."""
        return self.kind is not TargetKind.PHONY

    @property
    def is_wildcard(self) -> bool:
        return self.kind is TargetKind.WILDCARD

    @property
    def extension(self) -> str | None:
        """Extension a wildcard target applies to."""
        return wildcard_extension(self.name) if self.is_wildcard else None

    @property
    def has_recipe(self) -> bool:
        return self.recipe is not None and not self.recipe.is_empty()

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "name": self.name,
            "kind": self.kind.value,
            "recipe": self.recipe.to_dict() if self.recipe else None,
            "dependencies": [{"name": d.name, "kind": d.kind.value} for d in self.dependencies],
            "description": self.description,
        }


@dataclass
class Graph:
    """Merged target graph of one or more configuration documents."""

    root: Path = field(default_factory=Path.cwd)
    targets: dict[str, Target] = field(default_factory=dict)
    sources: list[Path] = field(default_factory=list)

    @property
    def dirname(self) -> str:
        """Directory-derived string substituted for `{dirname}`."""
        return Path(os.path.abspath(self.root)).name

    def __contains__(self, name: str) -> bool:
        return name in self.targets

    def __iter__(self) -> Iterator[Target]:
        return iter(self.targets.values())

    def __len__(self) -> int:
        return len(self.targets)

    def get(self, name: str) -> Target | None:
        """Get target by name."""
        return self.targets.get(name)

    def add(self, target: Target) -> None:
        """Add a target, refusing redefinitions."""
        existing = self.targets.get(target.name)
        if existing is not None:
            raise DuplicateTargetError(target.name, existing.source, target.source)
        self.targets[target.name] = target

    def merge(self, other: "Graph") -> None:
        """Add every target of another graph, in its order."""
        for target in other:
            self.add(target)
        self.sources.extend(other.sources)

    def first(self) -> Target | None:
        """First defined target that can be a goal."""
        return next((t for t in self.targets.values() if not t.is_wildcard), None)

    def wildcards(self) -> list[Target]:
        return [t for t in self.targets.values() if t.is_wildcard]


@dataclass
class RunOptions:
    """Options for one engine run."""

    force: bool = False
    dry_run: bool = False
    script_mode: bool = False
    verbosity: int = 0
    quiet: bool = False
    timeout: float | None = None


@dataclass
class ExecutionState:
    """Mutable bookkeeping of one run, threaded through the traversal."""

    processed: set[str] = field(default_factory=set)
    in_progress: list[str] = field(default_factory=list)
    rebuilt: set[str] = field(default_factory=set)


@dataclass
class ResolvedDependency:
    """A dependency materialized into concrete paths and/or a target."""

    dependency: Dependency
    target: Target | None = None
    paths: list[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Value substituted for `{0}`."""
        if self.dependency.is_file and self.paths:
            return " ".join(self.paths)
        return self.dependency.name


@dataclass
class PlanStep:
    """One target in execution order, with its dependencies resolved."""

    target: Target
    dependencies: list[ResolvedDependency] = field(default_factory=list)

    @property
    def first_dependency(self) -> str | None:
        return self.dependencies[0].text if self.dependencies else None


@dataclass
class CommandResult:
    """Result of running one recipe command or script."""

    success: bool
    exit_code: int
    stdout: str
    stderr: str
    duration: float
    command: str
    target: str = ""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "success": self.success,
            "exit_code": self.exit_code,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "duration": self.duration,
            "command": self.command,
            "target": self.target,
            "timestamp": self.timestamp.isoformat(),
        }


class EventKind(Enum):
    """Things the engine reports while running."""

    TARGET = "target"
    UP_TO_DATE = "up_to_date"
    COMMAND = "command"
    RESULT = "result"


@dataclass
class RunEvent:
    """Notification for the rendering layer."""

    kind: EventKind
    target: str
    is_file: bool = False
    command: str | None = None
    result: CommandResult | None = None


@dataclass
class RunSummary:
    """What a run did, in order."""

    executed: list[str] = field(default_factory=list)
    up_to_date: list[str] = field(default_factory=list)


@dataclass
class TreeNode:
    """Node of the hierarchical dependency listing."""

    name: str
    is_file: bool = False
    children: list["TreeNode"] = field(default_factory=list)
    cycle: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "name": self.name,
            "is_file": self.is_file,
            "cycle": self.cycle,
            "children": [child.to_dict() for child in self.children],
        }
