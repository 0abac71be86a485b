"""CLI package for interacting with the vitals alert service."""

from importlib import import_module
from types import ModuleType


def __getattr__(name: str) -> ModuleType:
    if name == "app":
        return import_module("cli.app")
    raise AttributeError(name)

# ``cli.app`` stays the module rather than the Typer instance so tests can patch
# ``cli.app.ApiClient``.

__all__ = []
