"""
Diff bundling for zcommit.

See :mod:`zcommit.diff.diff_bundler` for how staged diffs are bounded
before they are sent to the language model.
"""

from .diff_bundler import DiffBundle, build_diff_bundle  # noqa: F401
