from __future__ import annotations
import importlib
import logging
import sys
from typing import Any, Callable, Dict, List

from simrunner.exceptions import ConfigError

log = logging.getLogger(__name__)

EVENTS = ("before:run", "before:scenario", "after:scenario", "after:run")


class HookRegistry:
    """
    Event listeners registered by setup hooks.

    A setup hook is a ``"package.module:function"`` string from the config; the
    function is called once as ``function(on, config)`` and registers listeners
    with ``on("after:scenario", callback)``.
    """

    def __init__(self):
        self._listeners: Dict[str, List[Callable[..., Any]]] = {e: [] for e in EVENTS}

    def on(self, event: str, fn: Callable[..., Any]) -> None:
        if event not in self._listeners:
            raise ConfigError(f"Unknown hook event {event!r}; expected one of {', '.join(EVENTS)}")
        if not callable(fn):
            raise ConfigError(f"Listener for {event!r} is not callable: {fn!r}")
        self._listeners[event].append(fn)

    def emit(self, event: str, *args: Any) -> None:
        for fn in self._listeners[event]:
            fn(*args)

    def count(self, event: str) -> int:
        return len(self._listeners[event])


def load_hooks(config) -> HookRegistry:
    registry = HookRegistry()
    # hook modules live next to the config file
    root = str(config.root.resolve())
    if config.setup_hooks and root not in sys.path:
        sys.path.insert(0, root)
    for spec in config.setup_hooks:
        module_name, _, func_name = spec.partition(":")
        if not module_name or not func_name:
            raise ConfigError(f"setupHooks entry must look like 'module:function', got {spec!r}")
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            raise ConfigError(f"Cannot import setup hook module {module_name!r}: {e}") from e
        setup = getattr(module, func_name, None)
        if not callable(setup):
            raise ConfigError(f"Setup hook {spec!r} is not a callable")
        setup(registry.on, config)
        log.debug("setup hook %s registered", spec)
    return registry
