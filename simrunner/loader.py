"""
Scenario discovery.

Scenario files are YAML. A file holds either one scenario (top-level ``steps``)
or several (``scenarios: [{name, steps}, ...]``). Steps are compiled into
:class:`~simrunner.commands.Command` objects here; nothing is executed.
"""
from __future__ import annotations
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from simrunner.commands import ACT, ASSERT, LOCATE, NAVIGATE, Command, Scenario, ScenarioGroup
from simrunner.config import RunConfig, rand_token, substitute_vars
from simrunner.exceptions import DiscoveryError, IncludeNotFoundError, StepValidationError
from simrunner.schema import ACT_TYPES, ASSERT_TYPES, LOCATE_TYPES, NAVIGATE_TYPES, validate_scenario_file, validate_steps
from simrunner.yaml_io import read_yaml

log = logging.getLogger(__name__)

_BRACES = re.compile(r"\{([^{}]*)\}")


def expand_braces(pattern: str) -> List[str]:
    """'a/*.{yaml,yml}' -> ['a/*.yaml', 'a/*.yml']"""
    m = _BRACES.search(pattern)
    if not m:
        return [pattern]
    out: List[str] = []
    for alt in m.group(1).split(","):
        out.extend(expand_braces(pattern[:m.start()] + alt.strip() + pattern[m.end():]))
    return out


def find_spec_files(root: Path, pattern: str, exclude: Sequence[Path] = ()) -> List[Path]:
    skip = {Path(p).resolve() for p in exclude}
    found = set()
    for pat in expand_braces(pattern):
        for p in root.glob(pat):
            rp = p.resolve()
            if p.is_file() and rp not in skip:
                found.add(rp)
    return sorted(found)


def load_support_steps(config: RunConfig) -> List[Dict[str, Any]]:
    if not config.support_file:
        return []
    path = config.root / config.support_file
    if not path.exists():
        raise DiscoveryError(f"Support file not found: {path.resolve()}")
    data = read_yaml(path) or {}
    if not isinstance(data, dict):
        raise StepValidationError(f"{path}: support file must be a mapping")
    steps = data.get("before_each") or []
    if steps:
        validate_steps(steps, f"{path} (before_each)")
    return steps


def discover(config: RunConfig, require: Optional[bool] = None) -> Iterator[ScenarioGroup]:
    """
    Yield one ScenarioGroup per file matching ``config.spec_pattern``.

    The generator is lazy: files are read one at a time as the caller advances it.
    Raises DiscoveryError on the first advance when nothing matches and
    ``require`` (default ``config.require_specs``) is true. A file that fails to
    parse or validate is yielded as a group carrying ``load_error`` so the
    files around it still run.
    """
    require = config.require_specs if require is None else require
    support_path = [config.root / config.support_file] if config.support_file else []
    files = find_spec_files(config.root, config.spec_pattern, exclude=support_path)
    if not files:
        if require:
            raise DiscoveryError(
                f"No scenario files match {config.spec_pattern!r} under {config.root.resolve()}"
            )
        log.warning("No scenario files match %r", config.spec_pattern)
        return

    before_each = load_support_steps(config)
    support_dir = support_path[0].parent if support_path else None
    log.info("Discovered %d scenario file(s)", len(files))
    for path in files:
        try:
            group = load_group(path, before_each=before_each, support_dir=support_dir)
        except (StepValidationError, IncludeNotFoundError) as e:
            log.error("Cannot load %s: %s", path, e)
            group = ScenarioGroup(name=path.name, path=str(path), load_error=str(e), load_reason=e.reason)
        yield group


def load_group(path: Path, before_each: Sequence[Dict[str, Any]] = (),
               support_dir: Optional[Path] = None) -> ScenarioGroup:
    data = read_yaml(path)
    validate_scenario_file(data, str(path))

    group_name = str(data.get("name") or path.name.split(".")[0])
    variables = dict(data.get("variables") or {})
    variables.setdefault("RAND", rand_token())

    if data.get("scenarios") is None:
        raw = [{"name": group_name, "steps": data["steps"]}]
    else:
        raw = data["scenarios"]

    group = ScenarioGroup(name=group_name, path=str(path))
    for i, sc in enumerate(raw, start=1):
        name = str(sc.get("name") or f"scenario {i}")
        commands = compile_steps(before_each, base_dir=support_dir or path.parent, variables=variables)
        commands += compile_steps(sc["steps"], base_dir=path.parent, variables=variables, stack=(path.resolve(),))
        group.scenarios.append(Scenario(id=f"{group_name} > {name}", name=name, source=str(path), commands=commands))
    return group


def compile_steps(steps: Sequence[Dict[str, Any]], *, base_dir: Path, variables: Dict[str, Any],
                  stack: Sequence[Path] = ()) -> List[Command]:
    commands: List[Command] = []
    for st in steps:
        if "include" in st:
            commands.extend(_compile_include(st["include"], base_dir=base_dir, variables=variables, stack=stack))
            continue
        t = st["type"].strip().lower()
        selector = substitute_vars(st.get("selector"), variables)
        value = substitute_vars(st.get("value"), variables)
        timing = {"timeout_ms": st.get("timeout_ms"), "retry_interval_ms": st.get("retry_delay_ms")}

        if t in NAVIGATE_TYPES:
            url = substitute_vars(st.get("url") or st.get("value"), variables)
            commands.append(Command(NAVIGATE, url=url, timeout_ms=st.get("timeout_ms")))
        elif t in LOCATE_TYPES:
            commands.append(Command(LOCATE, selector=selector, **timing))
        elif t in ACT_TYPES:
            prev = commands[-1] if commands else None
            if not (prev and prev.kind == LOCATE and prev.selector == selector):
                commands.append(Command(LOCATE, selector=selector, **timing))
            commands.append(Command(ACT, selector=selector, action=t, value=value, **timing))
        elif t in ASSERT_TYPES:
            commands.append(Command(ASSERT, selector=selector, action=t[len("assert_"):], value=value, **timing))
    return commands


def _compile_include(include, *, base_dir: Path, variables: Dict[str, Any], stack: Sequence[Path]) -> List[Command]:
    include_files = include if isinstance(include, list) else [include]
    out: List[Command] = []
    for inc in include_files:
        inc_path = (base_dir / str(inc)).resolve()
        if not inc_path.exists():
            raise IncludeNotFoundError(f"Include file not found: {inc_path}")
        if inc_path in stack:
            raise StepValidationError(f"Include cycle: {inc_path}")
        sub = read_yaml(inc_path)
        steps = sub.get("steps") if isinstance(sub, dict) else sub
        validate_steps(steps, str(inc_path))
        out.extend(compile_steps(steps, base_dir=inc_path.parent, variables=variables, stack=(*stack, inc_path)))
    return out
