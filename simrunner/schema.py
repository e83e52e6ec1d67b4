# simrunner/schema.py
from __future__ import annotations
from typing import Any, Dict, List

from simrunner.exceptions import StepValidationError

NAVIGATE_TYPES = {"goto", "visit"}
LOCATE_TYPES = {"locate", "get", "wait_for_selector"}
ACT_TYPES = {"click", "dblclick", "fill", "press", "select_option", "check", "uncheck", "hover"}
ASSERT_TYPES = {
    "assert_visible", "assert_not_visible", "assert_exists", "assert_not_exists",
    "assert_text", "assert_contains", "assert_url",
}
STEP_TYPES = NAVIGATE_TYPES | LOCATE_TYPES | ACT_TYPES | ASSERT_TYPES

_NEEDS_VALUE = {"fill", "press", "select_option", "assert_text", "assert_contains", "assert_url"}


def _require(d: Dict[str, Any], key: str, msg: str):
    if key not in d or d[key] in (None, ""):
        raise StepValidationError(msg)


def validate_steps(steps: Any, where: str) -> None:
    if not isinstance(steps, list) or not steps:
        raise StepValidationError(f"{where}: must have a non-empty 'steps' list")

    for i, st in enumerate(steps, start=1):
        if not isinstance(st, dict):
            raise StepValidationError(f"{where}: step {i} must be a dict")
        if "include" in st:
            continue  # string or list, resolved while compiling
        t = (st.get("type") or "").strip().lower()
        if not t:
            raise StepValidationError(f"{where}: step {i} missing 'type'")
        if t not in STEP_TYPES:
            raise StepValidationError(f"{where}: step {i} has unknown type {t!r}")

        if t in NAVIGATE_TYPES:
            if not (st.get("url") or st.get("value")):
                raise StepValidationError(f"{where}: step {i} '{t}' requires 'url'")
        elif t != "assert_url":
            _require(st, "selector", f"{where}: step {i} '{t}' requires 'selector'")
        if t in _NEEDS_VALUE:
            _require(st, "value", f"{where}: step {i} '{t}' requires 'value'")

        for k in ("timeout_ms", "retry_delay_ms"):
            if k in st and (not isinstance(st[k], int) or isinstance(st[k], bool) or st[k] <= 0):
                raise StepValidationError(f"{where}: step {i} '{k}' must be a positive int")


def validate_scenario_file(s: Any, where: str) -> None:
    if not isinstance(s, dict):
        raise StepValidationError(f"{where}: scenario file must be a mapping")
    if "variables" in s and not isinstance(s["variables"], dict):
        raise StepValidationError(f"{where}: 'variables' must be a mapping")

    scenarios = s.get("scenarios")
    if scenarios is None:
        validate_steps(s.get("steps"), where)
        return
    if not isinstance(scenarios, list) or not scenarios:
        raise StepValidationError(f"{where}: 'scenarios' must be a non-empty list")
    names: List[str] = []
    for i, sc in enumerate(scenarios, start=1):
        if not isinstance(sc, dict):
            raise StepValidationError(f"{where}: scenario {i} must be a dict")
        name = str(sc.get("name") or f"scenario {i}")
        if name in names:
            raise StepValidationError(f"{where}: duplicate scenario name {name!r}")
        names.append(name)
        validate_steps(sc.get("steps"), f"{where} > {name}")
