"""Ordered, memoized, fail-fast processing of requested targets."""

import logging
import os
from collections.abc import Callable, Iterable

from mdmake.core.executor import DryRunShellExecutor, ShellExecutor, SubprocessShellExecutor
from mdmake.core.models import (
    CommandResult,
    EventKind,
    ExecutionState,
    Graph,
    PlanStep,
    RunEvent,
    RunOptions,
    RunSummary,
    ShellMode,
    Target,
)
from mdmake.core.resolver import DependencyResolver
from mdmake.core.staleness import StalenessChecker
from mdmake.exceptions import (
    CyclicDependencyError,
    ExecutionError,
    TargetNotFoundError,
    WildcardGoalError,
)

logger = logging.getLogger(__name__)

EventCallback = Callable[[RunEvent], None]


def substitute(line: str, first_dependency: str | None, target: str, dirname: str) -> str:
    """Expand the `{0}`, `{target}` and `{dirname}` tokens."""
    if first_dependency is not None:
        line = line.replace("{0}", first_dependency)
    return line.replace("{target}", target).replace("{dirname}", dirname)


class BuildEngine:
    """Runs the recipes of requested targets, dependencies first.

    A run has two phases. Planning walks the graph depth-first from each
    requested name, resolves every dependency and raises any configuration
    error before a single recipe runs. Execution then visits the planned
    targets in order, consulting timestamps for file targets and stopping
    at the first failing command.
    """

    def __init__(
        self,
        graph: Graph,
        executor: ShellExecutor | None = None,
        on_event: EventCallback | None = None,
    ) -> None:
        self.graph = graph
        self.executor = executor or SubprocessShellExecutor()
        self.on_event = on_event

    def requested_targets(self, requested: Iterable[str] | None) -> list[str]:
        """Requested names, or the first defined target when there are none."""
        names = list(requested or [])
        if names:
            return names
        first = self.graph.first()
        if first is None:
            raise TargetNotFoundError("", "No targets defined")
        return [first.name]

    def plan(
        self,
        requested: Iterable[str] | None = None,
        state: ExecutionState | None = None,
        resolver: DependencyResolver | None = None,
    ) -> list[PlanStep]:
        """Execution order for `requested`, each target at most once."""
        state = state or ExecutionState()
        resolver = resolver or DependencyResolver(self.graph)
        steps: list[PlanStep] = []
        for name in self.requested_targets(requested):
            target = self._goal(name, resolver)
            self._visit(target, resolver, state, steps)
        return steps

    def _goal(self, name: str, resolver: DependencyResolver) -> Target:
        declared = self.graph.get(name)
        target = resolver.effective_target(name if declared is not None else os.path.normpath(name))
        if target is None:
            raise TargetNotFoundError(name)
        if target.is_wildcard:
            raise WildcardGoalError(name)
        return target

    def _visit(
        self,
        target: Target,
        resolver: DependencyResolver,
        state: ExecutionState,
        steps: list[PlanStep],
    ) -> None:
        if target.name in state.processed:
            return
        if target.name in state.in_progress:
            start = state.in_progress.index(target.name)
            raise CyclicDependencyError([*state.in_progress[start:], target.name])

        state.in_progress.append(target.name)
        step = PlanStep(target=target)
        for dependency in resolver.effective_dependencies(target):
            resolved = resolver.resolve(dependency, target.name)
            step.dependencies.append(resolved)
            if resolved.target is not None:
                self._visit(resolved.target, resolver, state, steps)
        state.in_progress.pop()

        state.processed.add(target.name)
        steps.append(step)

    async def run(self, requested: Iterable[str] | None = None, options: RunOptions | None = None) -> RunSummary:
        """Process requested targets in order; raises on the first fatal condition."""
        options = options or RunOptions()
        state = ExecutionState()
        resolver = DependencyResolver(self.graph)
        checker = StalenessChecker(self.graph.root)
        executor = DryRunShellExecutor() if options.dry_run else self.executor
        summary = RunSummary()

        steps = self.plan(requested, state, resolver)
        logger.info(f"Planned {len(steps)} target(s)")

        for step in steps:
            await self._process(step, resolver, checker, state, options, executor, summary)

        logger.info(f"Executed {len(summary.executed)} target(s), {len(summary.up_to_date)} up to date")
        return summary

    async def _process(
        self,
        step: PlanStep,
        resolver: DependencyResolver,
        checker: StalenessChecker,
        state: ExecutionState,
        options: RunOptions,
        executor: ShellExecutor,
        summary: RunSummary,
    ) -> None:
        target = step.target

        if target.is_file:
            if not target.has_recipe:
                if not resolver.exists(target.name):
                    logger.warning(f"File '{target.name}' does not exist and has no recipe; nothing to do")
                return

            dependency_rebuilt = options.dry_run and any(
                d.target is not None and d.target.name in state.rebuilt for d in step.dependencies
            )
            paths = [path for d in step.dependencies if d.dependency.is_file for path in d.paths]
            decision = checker.check(target.name, True, paths, options.force, dependency_rebuilt)
            logger.debug(f"'{target.name}': {decision.reason}")

            if not decision.needs_build:
                summary.up_to_date.append(target.name)
                if not options.quiet:
                    self._emit(RunEvent(EventKind.TARGET, target.name, is_file=True))
                    self._emit(RunEvent(EventKind.UP_TO_DATE, target.name, is_file=True))
                return

        self._emit(RunEvent(EventKind.TARGET, target.name, is_file=target.is_file))
        if target.has_recipe:
            await self._run_recipe(step, options, executor)
            if target.is_file:
                state.rebuilt.add(target.name)
        summary.executed.append(target.name)

    async def _run_recipe(self, step: PlanStep, options: RunOptions, executor: ShellExecutor) -> None:
        target = step.target
        recipe = target.recipe
        assert recipe is not None

        def expand(text: str) -> str:
            return substitute(text, step.first_dependency, target.name, self.graph.dirname)

        mode = recipe.shell_mode
        if mode is ShellMode.DEFAULT and options.script_mode:
            mode = ShellMode.SCRIPT

        if mode is ShellMode.DEFAULT:
            for command in recipe.commands():
                command = expand(command)
                self._emit(RunEvent(EventKind.COMMAND, target.name, target.is_file, command=command))
                result = await executor.run_command(
                    command, self.graph.root, target=target.name, timeout=options.timeout
                )
                self._check(result, target)
            return

        # Custom interpreters may ignore errors; only their exit status is checked
        script = expand(recipe.script())
        shell = recipe.shell_command if mode is ShellMode.CUSTOM else None
        self._emit(RunEvent(EventKind.COMMAND, target.name, target.is_file, command=script))
        result = await executor.run_script(
            script,
            self.graph.root,
            shell=shell,
            trace=options.verbosity >= 1,
            target=target.name,
            timeout=options.timeout,
        )
        self._check(result, target)

    def _check(self, result: CommandResult, target: Target) -> None:
        self._emit(RunEvent(EventKind.RESULT, target.name, target.is_file, command=result.command, result=result))
        if not result.success:
            logger.error(f"Target '{target.name}' failed with exit code {result.exit_code}")
            raise ExecutionError(target.name, result.command, result.exit_code, result.stderr)

    def _emit(self, event: RunEvent) -> None:
        if self.on_event is not None:
            self.on_event(event)
