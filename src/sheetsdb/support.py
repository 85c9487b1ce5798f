"""Small helpers shared by the resource classes."""

import importlib


def resolve_type(type_or_path: type | str) -> type:
    """Return the class itself, or import it from a dotted path.

    Dotted paths let models refer to each other before both are defined,
    e.g. ``"myproject.models.User"``.
    """
    if isinstance(type_or_path, type):
        return type_or_path
    module_name, _, attr_name = str(type_or_path).rpartition(".")
    if not module_name:
        msg = f'"{type_or_path}" is not a dotted path to a class.'
        raise ValueError(msg)
    resolved = getattr(importlib.import_module(module_name), attr_name, None)
    if not isinstance(resolved, type):
        msg = f'"{type_or_path}" does not refer to a class.'
        raise TypeError(msg)
    return resolved
