from __future__ import annotations
from typing import Optional


class RunnerError(RuntimeError):
    """Base runner error."""
    reason = "RunnerError"


class ConfigError(RunnerError):
    """Raised when the run configuration is invalid."""
    reason = "ConfigError"


class StepValidationError(RunnerError):
    """Raised when a scenario file does not match the step schema."""
    reason = "StepValidationError"


class IncludeNotFoundError(RunnerError):
    """Raised when an include file is missing."""
    reason = "IncludeNotFoundError"


class DiscoveryError(RunnerError):
    """Raised when no scenario files are found."""
    reason = "DiscoveryError"


class HookError(RunnerError):
    """Raised when a setup hook fails."""
    reason = "HookError"


class Cancelled(RunnerError):
    """Raised at a command boundary once the run timeout has elapsed."""
    reason = "Cancelled"


class NavigationError(RunnerError):
    reason = "NavigationError"

    def __init__(self, message: str, *, url: str = "", elapsed_ms: float = 0.0,
                 load_state: Optional[str] = None, timed_out: bool = False):
        super().__init__(message)
        self.url = url
        self.elapsed_ms = elapsed_ms
        self.load_state = load_state
        self.timed_out = timed_out


class ElementNotFoundError(RunnerError):
    reason = "ElementNotFoundError"

    def __init__(self, selector: str, elapsed_ms: float):
        super().__init__(f"Element not found: {selector!r} after {elapsed_ms:.0f}ms")
        self.selector = selector
        self.elapsed_ms = elapsed_ms


class ActionError(RunnerError):
    reason = "ActionError"

    def __init__(self, message: str, *, selector: Optional[str] = None, action: Optional[str] = None):
        super().__init__(message)
        self.selector = selector
        self.action = action


class CommandAssertionError(RunnerError, AssertionError):
    """A predicate never became true within its retry budget."""
    reason = "AssertionError"

    def __init__(self, message: str, *, expected=None, observed=None, elapsed_ms: float = 0.0):
        super().__init__(
            f"{message}\n  expected: {expected!r}\n  observed: {observed!r}\n  after   : {elapsed_ms:.0f}ms"
        )
        self.expected = expected
        self.observed = observed
        self.elapsed_ms = elapsed_ms


def reason_of(err: BaseException) -> str:
    return getattr(err, "reason", None) or type(err).__name__
