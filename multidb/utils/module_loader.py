"""Dotted-path imports for lazily loaded adapters."""

import importlib
from typing import Any

__all__ = ("import_string",)


def import_string(dotted_path: str) -> "Any":
    """Import the object named by ``dotted_path``.

    Adapters are registered by path so that a driver's third-party package is only imported once a connector
    using it is opened.

    Args:
        dotted_path: ``"package.module.Name"``, e.g. ``"multidb.adapters.sqlite.SqliteDriver"``.

    Raises:
        ImportError: If the module cannot be imported or has no such attribute.

    Returns:
        The imported object.
    """
    module_path, _, attr = dotted_path.rpartition(".")
    if not module_path:
        msg = f"{dotted_path} doesn't look like a module path"
        raise ImportError(msg)

    module = importlib.import_module(module_path)
    try:
        return getattr(module, attr)
    except AttributeError as e:
        msg = f"Module {module_path!r} has no attribute {attr!r}"
        raise ImportError(msg) from e
