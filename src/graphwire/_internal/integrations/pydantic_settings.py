from __future__ import annotations

import functools
import importlib
from typing import Any

from graphwire._internal.type_checks import is_runtime_class


@functools.cache
def settings_base() -> type[Any] | None:
    """Return ``pydantic_settings.BaseSettings`` or ``None`` when it is not installed."""
    try:
        module = importlib.import_module("pydantic_settings")
    except ImportError:
        return None
    base_settings = getattr(module, "BaseSettings", None)
    return base_settings if isinstance(base_settings, type) else None


def is_settings_class(candidate: object) -> bool:
    """Return whether a class is a Pydantic settings model.

    Settings models load their fields from the environment and dotenv files,
    so the builder constructs them from explicit overrides only instead of
    resolving each field from the registry.

    Args:
        candidate: Object to test.

    """
    base = settings_base()
    if base is None or not is_runtime_class(candidate):
        return False
    try:
        return issubclass(candidate, base)
    except TypeError:
        return False


__all__ = ["is_settings_class", "settings_base"]
