"""
Top-level package for zcommit.

This package exposes the main CLI entry point via the
``zcommit.cli`` module.
"""

__all__ = ["__version__"]

try:
    from zcommit._version import get_version
    __version__ = get_version()
except Exception:
    # Fallback if package metadata is unavailable (e.g. running from a checkout)
    __version__ = "0.0.0.dev0"
