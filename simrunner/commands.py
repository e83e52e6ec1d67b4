from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

# command kinds
NAVIGATE = "navigate"
LOCATE = "locate"
ACT = "act"
ASSERT = "assert"
KINDS = (NAVIGATE, LOCATE, ACT, ASSERT)

# command resolution states
UNRESOLVED = "unresolved"
RESOLVED = "resolved"
TIMED_OUT = "timed-out"
ERRORED = "errored"
SKIPPED = "skipped"
TERMINAL_STATES = (RESOLVED, TIMED_OUT, ERRORED, SKIPPED)

# scenario / outcome status
PENDING = "pending"
PASSED = "passed"
FAILED = "failed"


@dataclass(frozen=True)
class Command:
    kind: str
    selector: Optional[str] = None
    url: Optional[str] = None
    action: Optional[str] = None
    value: Any = None
    timeout_ms: Optional[int] = None
    retry_interval_ms: Optional[int] = None

    def __post_init__(self):
        if self.kind not in KINDS:
            raise ValueError(f"Unknown command kind: {self.kind!r}")
        if self.kind == NAVIGATE and not self.url:
            raise ValueError("navigate requires 'url'")
        if self.kind in (LOCATE, ACT) and not self.selector:
            raise ValueError(f"{self.kind} requires 'selector'")
        if self.kind in (ACT, ASSERT) and not self.action:
            raise ValueError(f"{self.kind} requires 'action'")

    def describe(self) -> str:
        if self.kind == NAVIGATE:
            return f"navigate {self.url}"
        parts = [self.kind]
        if self.action: parts.append(self.action)
        if self.selector: parts.append(repr(self.selector))
        if self.value is not None: parts.append(f"= {self.value!r}")
        return " ".join(parts)


@dataclass
class Scenario:
    id: str
    name: str
    source: str = ""
    commands: List[Command] = field(default_factory=list)
    status: str = PENDING


@dataclass
class ScenarioGroup:
    """All scenarios discovered in one file.

    A file that could not be loaded keeps no scenarios; ``load_error`` and
    ``load_reason`` say why.
    """
    name: str
    path: str
    scenarios: List[Scenario] = field(default_factory=list)
    load_error: Optional[str] = None
    load_reason: Optional[str] = None


@dataclass(frozen=True)
class CommandResult:
    index: int
    description: str
    kind: str
    state: str
    elapsed_ms: float = 0.0
    error: Optional[str] = None


@dataclass(frozen=True)
class Outcome:
    scenario_id: str
    status: str
    reason: Optional[str] = None
    message: Optional[str] = None
    elapsed_ms: float = 0.0
    commands: Tuple[CommandResult, ...] = ()
    artifacts: Tuple[Tuple[str, str], ...] = ()

    @property
    def passed(self) -> bool:
        return self.status == PASSED

    def count(self, state: str) -> int:
        return sum(1 for c in self.commands if c.state == state)

    def artifact(self, kind: str) -> Optional[str]:
        for k, p in self.artifacts:
            if k == kind:
                return p
        return None
