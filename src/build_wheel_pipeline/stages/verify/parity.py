from __future__ import annotations

import difflib
import fnmatch
from typing import Iterable, Sequence

from .types import ParityResult


def _strip_top_level(name: str) -> str:
    # Names without a separator are kept whole.
    head, sep, rest = name.partition("/")
    return rest if sep else head


def _ignored(name: str, patterns: Sequence[str]) -> bool:
    return any(fnmatch.fnmatchcase(name, p) for p in patterns)


def normalize_sdist(members: Iterable[str], ignore: Sequence[str] = ()) -> list[str]:
    out = []
    for m in members:
        if m.endswith("/"):
            continue
        name = _strip_top_level(m)
        if name and not _ignored(name, ignore):
            out.append(name)
    return sorted(out)


def normalize_wheel(members: Iterable[str], ignore: Sequence[str] = ()) -> list[str]:
    return sorted(
        m for m in members if not m.endswith("/") and not _ignored(m, ignore)
    )


def compare_manifests(
    sdist: Iterable[str],
    wheel: Iterable[str],
    *,
    ignore: Sequence[str] = (),
) -> ParityResult:
    """
    Diff the sdist file set (top-level directory stripped) against the wheel's.
    """
    s = normalize_sdist(sdist, ignore)
    w = normalize_wheel(wheel, ignore)
    s_set, w_set = set(s), set(w)

    diff = "".join(
        difflib.unified_diff(
            [f"{x}\n" for x in s],
            [f"{x}\n" for x in w],
            fromfile="sdist",
            tofile="wheel",
        )
    )
    return ParityResult(
        sdist_files=tuple(s),
        wheel_files=tuple(w),
        only_in_sdist=tuple(x for x in s if x not in w_set),
        only_in_wheel=tuple(x for x in w if x not in s_set),
        diff=diff,
    )
