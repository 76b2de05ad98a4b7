"""Custom exceptions for mdmake."""


class MdMakeError(Exception):
    """Base exception for all mdmake errors."""

    pass


class ConfigNotFoundError(MdMakeError):
    """Configuration document not found at specified path."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Configuration not found: {path}")


class ConfigParseError(MdMakeError):
    """Error parsing a configuration document."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"Failed to parse {path}: {message}")


class DuplicateTargetError(MdMakeError):
    """Target defined more than once across the merged documents."""

    def __init__(self, target: str, first: str | None = None, second: str | None = None) -> None:
        self.target = target
        self.first = first
        self.second = second
        where = f" (in {first} and {second})" if first and second else ""
        super().__init__(f"Target defined more than once: {target}{where}")


class AmbiguousWildcardError(MdMakeError):
    """More than one wildcard target applies to the same file."""

    def __init__(self, path: str, wildcards: list[str]) -> None:
        self.path = path
        self.wildcards = wildcards
        super().__init__(f"Ambiguous wildcard targets for '{path}': {', '.join(wildcards)}")


class TargetNotFoundError(MdMakeError):
    """Target not found in configuration."""

    def __init__(self, target: str, message: str | None = None) -> None:
        self.target = target
        super().__init__(message or f"Target not found: {target}")


class WildcardGoalError(TargetNotFoundError):
    """A wildcard target was requested as a build goal."""

    def __init__(self, target: str) -> None:
        super().__init__(target, f"Wildcard target cannot be built directly: {target}")


class CyclicDependencyError(MdMakeError):
    """Dependency cycle between targets."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        super().__init__(f"Dependency cycle: {' -> '.join(cycle)}")


class MissingFileError(MdMakeError):
    """A required file does not exist and nothing can produce it."""

    def __init__(self, path: str, required_by: str | None = None) -> None:
        self.path = path
        self.required_by = required_by
        suffix = f" (required by '{required_by}')" if required_by else ""
        super().__init__(f"File does not exist and has no recipe: {path}{suffix}")


class ExecutionError(MdMakeError):
    """Error executing a recipe command."""

    def __init__(self, target: str, command: str, exit_code: int, stderr: str = "") -> None:
        self.target = target
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"Target '{target}' failed with exit code {exit_code}: {command}")
