"""Timestamp-driven rebuild decisions for file targets."""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)


class Staleness(Enum):
    NEEDS_BUILD = "needs_build"
    UP_TO_DATE = "up_to_date"


@dataclass
class StalenessDecision:
    """Outcome of a staleness check and the reason for it."""

    state: Staleness
    reason: str

    @property
    def needs_build(self) -> bool:
        return self.state is Staleness.NEEDS_BUILD


def get_mtime(path: Path) -> float | None:
    """Modification time of `path`, or None when it does not exist."""
    try:
        return os.stat(path).st_mtime
    except FileNotFoundError:
        return None


class StalenessChecker:
    """Decides whether a file target's recipe must run.

    Called only after every dependency of the target has been processed, so
    mtimes already reflect this run's rebuilds.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def check(
        self,
        name: str,
        has_recipe: bool,
        dependency_paths: list[str],
        force: bool = False,
        dependency_rebuilt: bool = False,
    ) -> StalenessDecision:
        target_mtime = get_mtime(self.root / name)

        if target_mtime is None:
            if has_recipe:
                return StalenessDecision(Staleness.NEEDS_BUILD, "file does not exist")
            return StalenessDecision(Staleness.UP_TO_DATE, "file does not exist and there is no recipe")

        if force:
            return StalenessDecision(Staleness.NEEDS_BUILD, "forced")

        if dependency_rebuilt:
            return StalenessDecision(Staleness.NEEDS_BUILD, "a dependency was rebuilt")

        for path in dependency_paths:
            mtime = get_mtime(self.root / path)
            if mtime is not None and mtime > target_mtime:
                return StalenessDecision(Staleness.NEEDS_BUILD, f"'{path}' is newer")

        return StalenessDecision(Staleness.UP_TO_DATE, "up to date")
