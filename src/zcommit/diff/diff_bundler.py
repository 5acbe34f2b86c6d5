"""
Diff bundling utilities.

This module turns the raw output of ``git diff --cached`` into a
:class:`DiffBundle` that is small enough to send to the language model.
The unified diff is split into per-file sections; each section is
capped at a per-file budget and sections are accumulated until the
total budget is reached. Anything cut is replaced by an explicit
marker so the model knows content was left out.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

MAX_TOTAL_CHARS = 12_000
MAX_FILE_CHARS = 3_000

FILE_HEADER = "diff --git "


@dataclass(frozen=True)
class DiffBundle:
    """Summary and (possibly truncated) unified diff of the staged changes."""

    stat: str
    diff: str

    @property
    def is_empty(self) -> bool:
        return not self.diff.strip()


def split_file_diffs(raw_diff: str) -> List[str]:
    """Split a unified diff into one section per file.

    Text before the first ``diff --git`` header (there normally is none)
    is kept as its own section.
    """
    sections: List[str] = []
    current: List[str] = []
    for line in raw_diff.splitlines(keepends=True):
        if line.startswith(FILE_HEADER) and current:
            sections.append("".join(current))
            current = []
        current.append(line)
    if current:
        sections.append("".join(current))
    return [section for section in sections if section.strip()]


def truncate_file_diff(section: str, max_chars: int = MAX_FILE_CHARS) -> str:
    """Cap one file section at ``max_chars`` characters, marking the cut."""
    if len(section) <= max_chars:
        return section
    dropped = len(section) - max_chars
    return section[:max_chars].rstrip("\n") + f"\n... [{dropped} more characters truncated]\n"


def build_diff_bundle(
    stat: str,
    raw_diff: str,
    max_total: int = MAX_TOTAL_CHARS,
    max_per_file: int = MAX_FILE_CHARS,
) -> DiffBundle:
    """Build a :class:`DiffBundle` bounded by the total and per-file budgets.

    Parameters
    ----------
    stat : str
        Output of ``git diff --cached --stat``.
    raw_diff : str
        Output of ``git diff --cached``.
    max_total : int, optional
        Upper bound for the bundled diff text (markers excluded).
    max_per_file : int, optional
        Upper bound for each file section (marker excluded).

    Returns
    -------
    DiffBundle
        The bundle. When files had to be left out, the diff ends with a
        ``... [N more file(s) omitted]`` marker.
    """
    sections = split_file_diffs(raw_diff)
    included: List[str] = []
    used = 0
    cap = min(max_per_file, max_total)
    for index, section in enumerate(sections):
        # Only diff text counts against the budget, not the markers
        size = min(len(section), cap)
        if included and used + size > max_total:
            omitted = len(sections) - index
            included.append(f"\n... [{omitted} more file(s) omitted]\n")
            break
        included.append(truncate_file_diff(section, cap))
        used += size
    return DiffBundle(stat=stat.strip(), diff="".join(included).strip())
