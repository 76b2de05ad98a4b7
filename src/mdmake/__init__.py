"""mdmake - Make-like build automation configured with Markdown."""

from mdmake.core.engine import BuildEngine
from mdmake.core.executor import DryRunShellExecutor, ShellExecutor, SubprocessShellExecutor
from mdmake.core.listing import dependency_tree, list_targets
from mdmake.core.models import (
    CommandResult,
    Dependency,
    Graph,
    Recipe,
    RunEvent,
    RunOptions,
    RunSummary,
    ShellMode,
    Target,
    TargetKind,
    TreeNode,
)
from mdmake.core.parser import MarkdownParser, RegexMarkdownParser
from mdmake.core.resolver import DependencyResolver
from mdmake.core.staleness import Staleness, StalenessChecker
from mdmake.exceptions import (
    AmbiguousWildcardError,
    ConfigNotFoundError,
    ConfigParseError,
    CyclicDependencyError,
    DuplicateTargetError,
    ExecutionError,
    MdMakeError,
    MissingFileError,
    TargetNotFoundError,
    WildcardGoalError,
)

__version__ = "0.1.0"

__all__ = [
    "Graph",
    "Target",
    "TargetKind",
    "Dependency",
    "Recipe",
    "ShellMode",
    "RunOptions",
    "RunEvent",
    "RunSummary",
    "CommandResult",
    "TreeNode",
    "MarkdownParser",
    "RegexMarkdownParser",
    "DependencyResolver",
    "Staleness",
    "StalenessChecker",
    "BuildEngine",
    "ShellExecutor",
    "SubprocessShellExecutor",
    "DryRunShellExecutor",
    "dependency_tree",
    "list_targets",
    "MdMakeError",
    "ConfigNotFoundError",
    "ConfigParseError",
    "DuplicateTargetError",
    "AmbiguousWildcardError",
    "TargetNotFoundError",
    "WildcardGoalError",
    "CyclicDependencyError",
    "MissingFileError",
    "ExecutionError",
]
