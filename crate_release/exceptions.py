"""Exception hierarchy for crate-release.

Every failure that aborts a release is a ReleaseError. The set of kinds is
closed; each carries the fatal exit code 101.

Process exit codes:
- 0: Success (or release declined at the confirmation prompt)
- 2: Nothing selected for release
- 101: Fatal error
"""

EXIT_SUCCESS = 0
EXIT_NOTHING_SELECTED = 2
EXIT_FAILURE = 101


class ReleaseError(Exception):
    """Base exception for all release errors.

    Each subclass defines an exit_code for CLI error reporting.
    """

    exit_code: int = EXIT_FAILURE

    def __init__(
        self,
        message: str,
        details: str | None = None,
        fix_hint: str | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Brief error message
            details: Detailed explanation of what went wrong
            fix_hint: Suggested command or action to fix the issue
        """
        super().__init__(message)
        self.message = message
        self.details = details
        self.fix_hint = fix_hint

    def __str__(self) -> str:
        parts = [self.message]
        if self.details:
            parts.append(f"\nDetails: {self.details}")
        if self.fix_hint:
            parts.append(f"\nFix: {self.fix_hint}")
        return "".join(parts)


class ReleaseExit(Exception):
    """Terminates the pipeline with an exit code.

    The reason has already been logged where the decision was made, so the
    CLI exits with ``code`` and prints nothing further.
    """

    def __init__(self, code: int) -> None:
        super().__init__(f"exit {code}")
        self.code = code


class ReleaseIOError(ReleaseError):
    """Filesystem or process spawn failure."""


class ReplaceFileNotFoundError(ReleaseError):
    """A replacement rule targets a file that does not exist."""

    def __init__(self, path: object) -> None:
        super().__init__(
            f"Unable to find file {path} to perform replace",
            fix_hint="Check the `file` entries of your replacement rules",
        )
        self.path = path


class InvalidManifestError(ReleaseError):
    """Cargo.toml or cargo metadata could not be understood."""


class ConfigurationError(ReleaseError):
    """Configuration file errors.

    Raised when:
    - Config file has invalid syntax (YAML/TOML)
    - Config values fail validation
    - Unknown configuration keys are present
    """


class InvalidReleaseLevelError(ReleaseError):
    """Unknown bump level or a prerelease bump that moves backwards."""

    def __init__(self, level: str, details: str | None = None) -> None:
        super().__init__(
            f"Unsupported release level {level}, only major, minor and patch are supported",
            details=details,
            fix_hint="Use one of: major, minor, patch, release, rc, beta, alpha, or a version",
        )
        self.level = level


class UnsupportedPrereleaseVersionSchemeError(ReleaseError):
    """Prerelease string is not of the form ``<id>`` or ``<id>.<number>``."""

    def __init__(self, prerelease: str) -> None:
        super().__init__(
            f"This version scheme is not supported by cargo-release: {prerelease}",
            details="Use alpha.1, beta.1 or rc.1 style prerelease identifiers",
        )


class UnsupportedVersionReqError(ReleaseError):
    """A version or requirement cannot be moved to the requested version."""


class ReplacerConfigError(ReleaseError):
    """A replacement rule is missing one of file, search or replace."""

    def __init__(self, details: str | None = None) -> None:
        super().__init__(
            "Insufficient replacer config: file, search and replace are required.",
            details=details,
        )


class ReplacerRegexError(ReleaseError):
    """A replacement search pattern does not compile."""


class ReplacerMinError(ReleaseError):
    """Fewer matches than the rule requires."""

    def __init__(self, pattern: str, expected: int, found: int) -> None:
        super().__init__(
            f"For `{pattern}`, at least {expected} replacements expected, found {found}"
        )
        self.pattern = pattern
        self.expected = expected
        self.found = found


class ReplacerMaxError(ReleaseError):
    """More matches than the rule allows."""

    def __init__(self, pattern: str, expected: int, found: int) -> None:
        super().__init__(
            f"For `{pattern}`, at most {expected} replacements expected, found {found}"
        )
        self.pattern = pattern
        self.expected = expected
        self.found = found


class EnvironmentVariableError(ReleaseError):
    """An environment variable holds an unusable value."""

    def __init__(self, name: str, details: str | None = None) -> None:
        super().__init__(
            f"Environment variable `{name}` is not valid", details=details
        )
        self.name = name


class GitBinError(ReleaseError):
    """The git executable is missing."""

    def __init__(self) -> None:
        super().__init__(
            "git is not found. git is required for cargo-release workflow.",
            fix_hint="Install git and make sure it is on PATH",
        )


class PublishTimeoutError(ReleaseError):
    """A published crate never showed up in the registry index."""

    def __init__(self, details: str | None = None) -> None:
        super().__init__("Timeout waiting for crate to be published.", details=details)


class DependencyVersionConflictError(ReleaseError):
    """A dependent's requirement excludes the new version."""


class RegistryIndexError(ReleaseError):
    """The registry index could not be queried."""


class GitError(ReleaseError):
    """Git operation failures.

    Raised when:
    - Git commands fail
    - Branch or tag queries fail
    """
