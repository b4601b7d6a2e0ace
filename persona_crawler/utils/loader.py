from __future__ import annotations

import importlib
from typing import Any

from ..errors import ConfigError


def load_symbol(dotted: str) -> Any:
    """
    Resolve a strategy (or any other pluggable class) from config.
    Accepts "package.module:ClassName" or "package.module.ClassName".
    """
    target = (dotted or "").strip()
    if ":" in target:
        module_name, _, symbol_name = target.partition(":")
    elif "." in target:
        module_name, _, symbol_name = target.rpartition(".")
    else:
        raise ConfigError(f"not a dotted path: {dotted!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"cannot import {module_name!r} for {dotted!r}: {exc}") from exc
    try:
        return getattr(module, symbol_name)
    except AttributeError as exc:
        raise ConfigError(f"{module_name!r} has no attribute {symbol_name!r}") from exc
