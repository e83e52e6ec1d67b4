from __future__ import annotations
import os, random, string
from pathlib import Path
from typing import Optional, Any, Dict, List, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from simrunner.exceptions import ConfigError
from simrunner.yaml_io import read_yaml

DEFAULT_CONFIG_FILE = "e2e.config.yaml"


def _parse_viewport(v) -> Optional[Sequence[int]]:
    if not v: return None
    if isinstance(v, (list, tuple)) and len(v) == 2: return [int(v[0]), int(v[1])]
    if isinstance(v, str):
        parts = [p.strip() for p in v.lower().replace("×", "x").split("x")]
        if len(parts) == 2 and parts[0].isdigit() and parts[1].isdigit():
            return [int(parts[0]), int(parts[1])]
    raise ValueError("viewport must be like 1366x900 or [1366, 900]")


class RunConfig(BaseModel):
    """
    Run configuration. Keys may be given in camelCase (baseUrl) or snake_case (base_url).
    Passed explicitly to the loader, driver and reporter; never read from globals.
    """
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    base_url: str = Field("http://localhost:8000", alias="baseUrl")
    spec_pattern: str = Field("scenarios/**/*.e2e.{yaml,yml}", alias="specPattern")
    support_file: Optional[str] = Field(None, alias="supportFile")
    video: bool = False
    screenshot_on_failure: bool = Field(True, alias="screenshotOnFailure")
    setup_hooks: List[str] = Field(default_factory=list, alias="setupHooks")

    retry_interval_ms: int = Field(50, alias="retryIntervalMs", gt=0)
    timeout_ms: int = Field(4000, alias="timeoutMs", gt=0)
    navigation_timeout_ms: int = Field(30000, alias="navigationTimeoutMs", gt=0)
    run_timeout_ms: Optional[int] = Field(None, alias="runTimeoutMs")
    require_specs: bool = Field(True, alias="requireSpecs")
    preflight: bool = True

    browser: str = "chromium"
    headful: bool = False
    viewport: Optional[List[int]] = None
    slow_mo: int = Field(0, alias="slowMo", ge=0)
    reports_dir: str = Field("reports", alias="reportsDir")
    workers: int = Field(1, ge=1)

    root_dir: str = Field(".", alias="rootDir")

    @field_validator("viewport", mode="before")
    @classmethod
    def _viewport(cls, v):
        return _parse_viewport(v)

    @field_validator("setup_hooks", mode="before")
    @classmethod
    def _hooks(cls, v):
        if v is None: return []
        if isinstance(v, str): return [v]
        return v

    @field_validator("browser")
    @classmethod
    def _browser(cls, v: str):
        return (v or "chromium").strip().lower()

    @property
    def root(self) -> Path:
        return Path(self.root_dir)

    @property
    def reports_path(self) -> Path:
        p = Path(self.reports_dir)
        return p if p.is_absolute() else self.root / p


_ENV_OVERRIDES = {
    "BASE_URL": "base_url",
    "BROWSER": "browser",
    "HEADFUL": "headful",
    "TIMEOUT_MS": "timeout_ms",
    "NAV_TIMEOUT_MS": "navigation_timeout_ms",
    "RUN_TIMEOUT_MS": "run_timeout_ms",
    "VIDEO": "video",
    "SLOW_MO": "slow_mo",
    "WORKERS": "workers",
}


def load_config(path: Optional[Path] = None, env: Mapping[str, str] = os.environ,
                overrides: Optional[Dict[str, Any]] = None) -> RunConfig:
    """
    Read the YAML config (a missing default file means "all defaults"),
    then apply environment variables and explicit overrides, in that order.
    """
    raw: Dict[str, Any] = {}
    if path is None:
        path = Path(DEFAULT_CONFIG_FILE)
        if path.exists():
            raw = _read_config_file(path)
    else:
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path.resolve()}")
        raw = _read_config_file(path)

    if "rootDir" not in raw and "root_dir" not in raw:
        raw["rootDir"] = str(path.resolve().parent)

    for env_key, field in _ENV_OVERRIDES.items():
        if env.get(env_key) not in (None, ""):
            _drop_aliases(raw, field)
            raw[field] = env[env_key]

    for field, value in (overrides or {}).items():
        if value is None: continue
        _drop_aliases(raw, field)
        raw[field] = value

    try:
        return RunConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration ({path}):\n{e}") from e


def _read_config_file(path: Path) -> Dict[str, Any]:
    data = read_yaml(path, error=ConfigError) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config must be a mapping: {path}")
    # allow the cypress-like {e2e: {...}} nesting
    if isinstance(data.get("e2e"), dict):
        data = dict(data["e2e"])
    return data


def _drop_aliases(raw: Dict[str, Any], field: str) -> None:
    alias = RunConfig.model_fields[field].alias
    raw.pop(field, None)
    if alias: raw.pop(alias, None)


def rand_token(n: int = 6) -> str:
    return "".join(random.choice(string.ascii_lowercase + string.digits) for _ in range(n))


def resolve_url(base_url: Optional[str], sel: str) -> str:
    if not sel: return base_url or ""
    if sel.startswith("http://") or sel.startswith("https://"):
        return sel
    if base_url:
        if sel.startswith("/"): return base_url.rstrip("/") + sel
        return base_url.rstrip("/") + "/" + sel.lstrip("/")
    return sel


def substitute_vars(value: Any, variables: dict):
    if not isinstance(value, str): return value
    out = value
    for k, v in (variables or {}).items():
        out = out.replace(f"${{{k}}}", str(v))
    return out
