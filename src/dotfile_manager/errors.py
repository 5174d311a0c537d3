"""Error taxonomy and tool output classification.

Git reports most conditions only as human-readable text. This module is the
single place that text is inspected: `classify` maps captured output onto a
small set of named signatures, and the exception types below carry that
classification so callers reason over categories instead of raw diagnostics.
"""

from collections.abc import Mapping
from enum import Enum


class Signature(Enum):
    """Known, recoverable or expected git failure signatures."""

    FETCH_FIRST = "fetch_first"
    NO_COMMITS = "no_commits"
    NO_REMOTE = "no_remote"
    NOTHING_TO_COMMIT = "nothing_to_commit"


DEFAULT_SIGNATURES: dict[Signature, str] = {
    Signature.FETCH_FIRST: "fetch first",
    Signature.NO_COMMITS: "ambiguous argument 'HEAD'",
    Signature.NO_REMOTE: "No such remote 'origin'",
    Signature.NOTHING_TO_COMMIT: "nothing to commit",
}
"""dict[Signature, str]: Substrings identifying each signature in git output."""


def classify(
    output: str, signatures: Mapping[Signature, str] | None = None
) -> Signature | None:
    """Matches captured tool output against the known error signatures.

    Args:
        output (str): The combined stdout/stderr of a failed command.
        signatures (Mapping[Signature, str] | None, optional): The substrings to
            match. Defaults to `DEFAULT_SIGNATURES`.

    Returns:
        Signature | None: The first matching signature, or None if the output
        matches none of them.
    """
    if not output:
        return None
    for signature, needle in (signatures or DEFAULT_SIGNATURES).items():
        if needle and needle in output:
            return signature
    return None


class DotfileError(Exception):
    """Base class for every error that aborts a reconciliation cycle."""

    title = "Dotfile Manager"

    @property
    def user_message(self) -> str:
        """A one-line message suitable for a desktop notification."""
        return str(self)


class ConfigurationError(DotfileError):
    """A required setting (repository path, remote URL) is missing.

    The operator must act; these are never retried automatically.
    """


class PreconditionError(DotfileError):
    """The repository or remote is in a state setup cannot safely resolve."""


class ToolInvocationError(DotfileError):
    """An external tool exited non-zero.

    Attributes:
        args_list (list[str]): The argument vector passed to the tool.
        output (str): The captured combined output stream.
        signature (Signature | None): The classified failure signature.
    """

    def __init__(
        self,
        args_list: list[str],
        output: str,
        signature: Signature | None = None,
        message: str | None = None,
    ):
        self.args_list = list(args_list)
        self.output = output
        self.signature = signature
        super().__init__(message or f"git {' '.join(self.args_list)} failed: {output}")

    @property
    def user_message(self) -> str:
        command = self.args_list[0] if self.args_list else "command"
        lines = [line.strip() for line in self.output.splitlines() if line.strip()]
        detail = lines[-1] if lines else "no output"
        return f"git {command} failed: {detail}"


class TransientConflictError(ToolInvocationError):
    """A push was rejected because the remote has commits missing locally."""
