"""
Version lookup for zcommit.

The version is read from the installed distribution metadata so that
``zcommit --version`` always reports what ``pip`` installed, regardless
of the repository the tool is run from.
"""

from importlib.metadata import PackageNotFoundError, version

DISTRIBUTION_NAME = "zcommit"
FALLBACK_VERSION = "0.0.0.dev0"


def get_version(distribution: str = DISTRIBUTION_NAME) -> str:
    """
    Return the installed version of ``distribution``.

    Args:
        distribution: Name of the distribution on the package index.

    Returns:
        The version string, or ``0.0.0.dev0`` when the package is not
        installed (for example when imported straight from ``src/``).
    """
    try:
        return version(distribution)
    except PackageNotFoundError:
        return FALLBACK_VERSION
