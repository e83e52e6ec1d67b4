from __future__ import annotations
from pathlib import Path
from typing import Any, Type

import yaml

from simrunner.exceptions import RunnerError, StepValidationError


def read_yaml(path: Path, error: Type[RunnerError] = StepValidationError) -> Any:
    """Parse a YAML file; syntax errors are raised as ``error``."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"YAML file not found: {p.resolve()}")
    try:
        return yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise error(f"{p}: invalid YAML: {e}") from e
