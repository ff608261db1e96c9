from __future__ import annotations

import importlib.metadata

from . import __version__


def get_version() -> str:
    """Installed distribution version, or the package version when running from a checkout."""
    try:
        return importlib.metadata.version("navim")
    except importlib.metadata.PackageNotFoundError:
        return __version__


def get_version_string() -> str:
    return f"navim {get_version()}"
