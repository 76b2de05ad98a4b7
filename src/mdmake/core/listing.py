"""Read-only views of the target graph."""

import logging
from collections.abc import Iterable

from mdmake.core.models import Graph, Target, TreeNode
from mdmake.core.resolver import DependencyResolver

logger = logging.getLogger(__name__)


def list_targets(graph: Graph) -> list[Target]:
    """Targets worth showing: phony ones, and file targets that do something."""
    return [t for t in graph if not t.is_file or t.has_recipe or t.dependencies]


def dependency_tree(graph: Graph, requested: Iterable[str] | None = None) -> list[TreeNode]:
    """Dependency hierarchy of `requested` (or the first target).

    Follows the same order as a run but without memoization, so a target
    shared by several dependents shows up under each of them. Globs are not
    expanded and nothing is executed.
    """
    resolver = DependencyResolver(graph)
    names = list(requested or [])
    if not names:
        first = graph.first()
        names = [first.name] if first else []
    return [_node(name, None, resolver, []) for name in names]


def _node(name: str, is_file: bool | None, resolver: DependencyResolver, path: list[str]) -> TreeNode:
    declared = resolver.graph.get(name)
    if is_file is False and (declared is None or not declared.is_file):
        target = declared
    else:
        target = resolver.effective_target(name)
        is_file = target.is_file if target is not None else True
    node = TreeNode(name=name, is_file=is_file)

    if name in path:
        node.cycle = True
        return node
    if target is None or target.is_wildcard:
        return node

    for dependency in resolver.effective_dependencies(target):
        node.children.append(_node(dependency.name, dependency.is_file, resolver, [*path, name]))
    return node
