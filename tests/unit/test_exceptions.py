"""Tests for custom exceptions."""

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


class TestExceptions:
    """Tests for exception classes."""

    def test_base_exception(self) -> None:
        """Base exception can be raised."""
        exc = MdMakeError("Test error")

        assert str(exc) == "Test error"
        assert isinstance(exc, Exception)

    def test_config_not_found_error(self) -> None:
        exc = ConfigNotFoundError("/path/to/Makefile.md")

        assert exc.path == "/path/to/Makefile.md"
        assert "Configuration not found: /path/to/Makefile.md" in str(exc)
        assert isinstance(exc, MdMakeError)

    def test_config_parse_error(self) -> None:
        exc = ConfigParseError("/path/to/Makefile.md", "Unterminated code block")

        assert exc.path == "/path/to/Makefile.md"
        assert "Failed to parse /path/to/Makefile.md: Unterminated code block" in str(exc)
        assert isinstance(exc, MdMakeError)

    def test_duplicate_target_error(self) -> None:
        exc = DuplicateTargetError("build", "a.md", "b.md")

        assert exc.target == "build"
        assert str(exc) == "Target defined more than once: build (in a.md and b.md)"

    def test_target_not_found_error(self) -> None:
        """TargetNotFoundError formats message correctly."""
        exc = TargetNotFoundError("deploy")

        assert exc.target == "deploy"
        assert "Target not found: deploy" in str(exc)
        assert isinstance(exc, MdMakeError)

    def test_wildcard_goal_error(self) -> None:
        exc = WildcardGoalError("*.png")

        assert exc.target == "*.png"
        assert "Wildcard target cannot be built directly: *.png" in str(exc)
        assert isinstance(exc, TargetNotFoundError)

    def test_ambiguous_wildcard_error(self) -> None:
        exc = AmbiguousWildcardError("dist.tar.gz", ["*.gz", "*.tar.gz"])

        assert exc.wildcards == ["*.gz", "*.tar.gz"]
        assert "dist.tar.gz" in str(exc)

    def test_cyclic_dependency_error(self) -> None:
        exc = CyclicDependencyError(["a", "b", "a"])

        assert exc.cycle == ["a", "b", "a"]
        assert str(exc) == "Dependency cycle: a -> b -> a"

    def test_missing_file_error(self) -> None:
        exc = MissingFileError("data.csv", "report")

        assert exc.required_by == "report"
        assert str(exc) == "File does not exist and has no recipe: data.csv (required by 'report')"

    def test_execution_error(self) -> None:
        """ExecutionError formats message correctly."""
        exc = ExecutionError("build", "make all", 1, "boom")

        assert exc.target == "build"
        assert exc.command == "make all"
        assert exc.exit_code == 1
        assert exc.stderr == "boom"
        assert "Target 'build' failed with exit code 1: make all" in str(exc)
        assert isinstance(exc, MdMakeError)
