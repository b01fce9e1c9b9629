"""Dynamic instrument driver loading via importlib.

Example:
    factory = load_driver("benchlink_bkprecision.load:create_load")
    load = factory(port="/dev/ttyUSB0")
"""

from __future__ import annotations

import importlib
from typing import Any, Callable

from benchlink_core.errors import ConfigError


def load_driver(driver_path: str) -> Callable[..., Any]:
    """Load an instrument factory function from a module path.

    Args:
        driver_path: Path in "module:function" format.

    Returns:
        The factory function.

    Raises:
        ConfigError: If the path is malformed, the module cannot be
            imported, or the attribute is missing or not callable.
    """
    module_path, _, func_name = driver_path.rpartition(":")
    if not module_path or not func_name:
        raise ConfigError(
            f"Invalid driver path '{driver_path}': must be in 'module:function' format"
        )

    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise ConfigError(f"Failed to import module '{module_path}': {exc}") from exc

    factory = getattr(module, func_name, None)
    if factory is None:
        raise ConfigError(f"Module '{module_path}' has no attribute '{func_name}'")
    if not callable(factory):
        raise ConfigError(f"'{driver_path}' is not callable")

    return factory
