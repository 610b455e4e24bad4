"""Exception types raised and reported by the engine."""

from __future__ import annotations


class FerroError(Exception):
    """Base class for all engine errors."""


class MountConflict(FerroError):
    """``mount`` was called while a tree is already mounted."""


class LifecycleError(FerroError):
    """A component instance was driven through an illegal transition."""


class TerminalUnavailable(FerroError):
    """stdin/stdout is not an interactive terminal."""


class StyleError(FerroError, ValueError):
    """A style attribute has an illegal value."""


class RenderFailure(FerroError):
    """A component's ``render`` raised.

    The original exception is kept on :attr:`error` (and as ``__cause__``
    when raised with ``from``).
    """

    def __init__(self, error: BaseException) -> None:
        super().__init__(f"{type(error).__name__}: {error}")
        self.error = error


class CleanupError(FerroError):
    """One or more best-effort teardown steps failed."""

    def __init__(self, failures: list[tuple[str, BaseException]]) -> None:
        steps = ", ".join(step for step, _ in failures)
        super().__init__(f"cleanup failed in: {steps}")
        self.failures = failures


class InputFailure(FerroError):
    """A key binding or a component's input handler raised.

    The original exception is kept on :attr:`error` and as ``__cause__``.
    """

    def __init__(self, error: BaseException) -> None:
        super().__init__(f"{type(error).__name__}: {error}")
        self.error = error
