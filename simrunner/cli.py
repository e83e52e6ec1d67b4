import argparse
import sys
from pathlib import Path

from simrunner.config import load_config
from simrunner.exceptions import ConfigError, DiscoveryError, HookError, IncludeNotFoundError, StepValidationError
from simrunner.logging_config import setup_logging
from simrunner.runner import run


def build_argparser():
    ap = argparse.ArgumentParser(description="E2E runner (YAML scenarios + Playwright)")
    ap.add_argument("--config", type=Path, default=None, help="Path to e2e.config.yaml")
    ap.add_argument("--spec", dest="spec_pattern", default=None, help="Override the scenario glob")
    ap.add_argument("--base-url", dest="base_url", default=None)
    ap.add_argument("--browser", default=None, choices=("chromium", "firefox", "webkit"))
    ap.add_argument("--headful", action="store_true", default=None)
    ap.add_argument("--workers", type=int, default=None)
    ap.add_argument("--log-level", default="INFO")
    return ap


def main(argv=None) -> int:
    args = build_argparser().parse_args(argv)
    setup_logging(args.log_level)
    overrides = {
        "spec_pattern": args.spec_pattern,
        "base_url": args.base_url,
        "browser": args.browser,
        "headful": args.headful,
        "workers": args.workers,
    }
    try:
        config = load_config(args.config, overrides=overrides)
        return run(config)
    except (ConfigError, DiscoveryError, HookError, StepValidationError, IncludeNotFoundError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
