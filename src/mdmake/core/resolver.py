"""Glob expansion and wildcard (implicit rule) resolution."""

import glob
import logging
import os
from dataclasses import replace
from pathlib import Path

from mdmake.core.models import (
    Dependency,
    Graph,
    ResolvedDependency,
    Target,
    TargetKind,
    wildcard_extension,
)
from mdmake.exceptions import AmbiguousWildcardError, MissingFileError, TargetNotFoundError

logger = logging.getLogger(__name__)


class DependencyResolver:
    """Turns dependencies into concrete targets and paths for one run.

    Every lookup is cached, so resolving the same dependency twice in a run
    gives the same answer even if recipes have touched the filesystem since.
    """

    def __init__(self, graph: Graph) -> None:
        self.graph = graph
        self._wildcards = {t.extension: t for t in graph.wildcards()}
        self._globs: dict[str, list[str]] = {}
        self._targets: dict[str, Target | None] = {}

    def path(self, name: str) -> Path:
        """Location of a file target or dependency on disk."""
        return self.graph.root / name

    def exists(self, name: str) -> bool:
        return self.path(name).exists()

    def wildcard_for(self, name: str) -> Target | None:
        """Wildcard target whose extension `name` carries, if any."""
        if wildcard_extension(os.path.basename(name)) is not None:
            return None
        matches = [t for ext, t in self._wildcards.items() if name.endswith("." + ext)]
        if len(matches) > 1:
            raise AmbiguousWildcardError(name, sorted(t.name for t in matches))
        return matches[0] if matches else None

    def effective_target(self, name: str) -> Target | None:
        """Target for `name` with the wildcard fallback applied.

        Returns a declared target as-is when it has its own recipe, a copy
        carrying the wildcard's recipe when it has none, an implicit target
        when only a wildcard matches, and None when nothing does.
        """
        if name in self._targets:
            return self._targets[name]

        declared = self.graph.get(name)
        if declared is not None and (declared.kind is not TargetKind.FILE or declared.has_recipe):
            effective: Target | None = declared
        else:
            wildcard = None if glob.has_magic(name) else self.wildcard_for(name)
            if wildcard is None:
                effective = declared
            elif declared is None:
                logger.debug(f"Implicit target '{name}' from {wildcard.name}")
                effective = Target(
                    name=name,
                    kind=TargetKind.FILE,
                    recipe=wildcard.recipe,
                    dependencies=list(wildcard.dependencies),
                    description=wildcard.description,
                    source=wildcard.source,
                )
            else:
                logger.debug(f"Target '{name}' uses recipe of {wildcard.name}")
                effective = replace(
                    declared,
                    recipe=wildcard.recipe,
                    dependencies=list(declared.dependencies or wildcard.dependencies),
                )

        self._targets[name] = effective
        return effective

    def effective_dependencies(self, target: Target) -> list[Dependency]:
        """Declared dependencies with a leading `*.ext` turned into the sibling path."""
        dependencies = list(target.dependencies)
        if not dependencies or target.kind is not TargetKind.FILE:
            return dependencies

        ext = dependencies[0].wildcard_extension
        if ext is not None:
            dependencies[0] = Dependency.file(self.derive_sibling(target.name, ext))
        return dependencies

    def derive_sibling(self, name: str, ext: str) -> str:
        """`dir/stem.old` -> `dir/stem.ext`, where `.old` is the wildcard or last suffix."""
        wildcard = self.wildcard_for(name)
        if wildcard is not None and wildcard.extension:
            stem = name[: -len(wildcard.extension) - 1]
        else:
            stem = os.path.splitext(name)[0]
        return f"{stem}.{ext}"

    def expand_glob(self, pattern: str) -> list[str]:
        """Existing paths matching `pattern`, relative to the graph root."""
        if pattern in self._globs:
            return self._globs[pattern]

        if glob.has_magic(pattern):
            matches = sorted(glob.glob(pattern, root_dir=self.graph.root, recursive=True))
        else:
            matches = [pattern] if self.exists(pattern) else []

        if not matches:
            logger.debug(f"No files match '{pattern}'")
        self._globs[pattern] = matches
        return matches

    def resolve(self, dependency: Dependency, owner: str) -> ResolvedDependency:
        """Materialize one (already derived) dependency of `owner`."""
        if not dependency.is_file:
            target = self.graph.get(dependency.name)
            if target is None:
                raise TargetNotFoundError(dependency.name, f"Target not found: {dependency.name} (required by '{owner}')")
            if not target.is_file:
                return ResolvedDependency(dependency=dependency, target=target)
            # A plain name that declares a file is resolved as that file
            dependency = Dependency.file(dependency.name)

        name = os.path.normpath(dependency.name)
        target = self.effective_target(name)
        if target is not None and target.kind is TargetKind.PHONY:
            return ResolvedDependency(dependency=dependency, target=target)
        if target is not None and not target.is_wildcard:
            if not target.has_recipe and not self.exists(name):
                raise MissingFileError(name, owner)
            return ResolvedDependency(dependency=dependency, target=target, paths=[name])

        return ResolvedDependency(dependency=dependency, paths=self.expand_glob(dependency.name))
